from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.widget import Widget
from textual.widgets import Button, Input, Label, MarkdownViewer

from backend.errors import MarketError, ValidationError
from backend.models import UserRole
from utils.access import AccessState
from utils.messages import UserLoginMessage
from utils.pricing import format_price
from utils.pure import generate_markdown_table
from views.modal_owner_bootstrap import OwnerBootstrapModal
from views.role_gate import AccessDenied, RoleGatedScreen


class AdminDashboardScreen(RoleGatedScreen):
    """
    Store overview plus admin grants.
    Non-admin owners listed in the configuration can claim access from the denied pane.
    """

    REQUIRED_ROLE = UserRole.ADMIN

    def compose_content(self) -> ComposeResult:
        yield MarkdownViewer(id="md-dashboard", show_table_of_contents=False)
        with Horizontal(id="hort-grant-admin"):
            with Vertical():
                yield Label("Grant admin by principal")
                yield Input(placeholder="Principal ID", id="input-grant-principal")
                yield Button("Grant Admin", id="btn-grant-principal", variant="warning")
            with Vertical():
                yield Label("Grant admin by email")
                yield Input(placeholder="user@example.com", id="input-grant-email")
                yield Button("Grant Admin", id="btn-grant-email", variant="warning")

    def compose_denied(self) -> Widget:
        return Vertical(
            AccessDenied(self.REQUIRED_ROLE),
            Label("", id="label-denied-principal"),
            Button(
                "Claim Owner Access",
                id="btn-owner-claim",
                variant="warning",
                classes="hidden",
            ),
            id="gate-denied",
        )

    async def on_denied(self, state: AccessState) -> None:
        session = self.app.session
        btn_claim = self.query_one("#btn-owner-claim", Button)
        btn_claim.add_class("hidden")
        if state is not AccessState.UNAUTHORIZED:
            self.query_one("#label-denied-principal", Label).update(
                "Sign in to continue."
            )
            return

        self.query_one("#label-denied-principal", Label).update(
            f"Signed in as {session.principal}"
        )
        try:
            profile = await self.app.queries.get_caller_profile()
        except MarketError as exc:
            self.report_failure(exc, "Could not load your profile.")
            return
        owners = self.app.settings.owner_emails
        if profile is not None and profile.email.lower() in owners:
            btn_claim.remove_class("hidden")

    @on(Button.Pressed, "#btn-owner-claim")
    @work()
    async def handle_owner_claim(self) -> None:
        try:
            profile = await self.app.queries.get_caller_profile()
        except MarketError as exc:
            self.report_failure(exc, "Could not load your profile.")
            return
        if profile is None:
            return
        if await self.app.push_screen_wait(OwnerBootstrapModal(profile.email)):
            self.post_message(UserLoginMessage())

    async def load_content(self) -> None:
        self.reload_stats()

    @work(exclusive=True, group="dashboard")
    async def reload_stats(self) -> None:
        queries = self.app.queries
        try:
            products = await queries.get_products()
            orders = await queries.get_all_orders()
            profiles = await queries.get_all_user_profiles()
        except MarketError as exc:
            self.report_failure(exc, "Failed to load dashboard.")
            return

        revenue = sum(o.total for o in orders)
        md = (
            "### Admin Dashboard\n\n"
            f"- Total Products: {len(products)}\n"
            f"- Total Orders: {len(orders)}\n"
            f"- Revenue: ${format_price(revenue)}\n\n"
            f"Signed in as `{self.app.session.principal}`\n\n"
        )
        if profiles:
            rows = [
                [p.text, prof.name, prof.email, prof.role.capitalize()]
                for p, prof in profiles
            ]
            md += "#### Users\n\n" + generate_markdown_table(
                ["Principal", "Name", "Email", "Role"], rows, ["l", "l", "l", "l"]
            )
        self.query_one("#md-dashboard", MarkdownViewer).document.update(md)

    @on(Button.Pressed, "#btn-grant-principal")
    @on(Input.Submitted, "#input-grant-principal")
    @work(exclusive=True, group="grant")
    async def handle_grant_principal(self) -> None:
        input_principal = self.query_one("#input-grant-principal", Input)
        try:
            await self.app.queries.add_admin_by_principal(input_principal.value)
        except ValidationError as exc:
            input_principal.add_class("-invalid")
            self.notify(str(exc), severity="error")
            return
        except MarketError as exc:
            self.report_failure(exc, "Failed to grant admin privileges.")
            return
        input_principal.remove_class("-invalid")
        self.notify(f"Granted admin privileges to {input_principal.value.strip()}.")
        input_principal.value = ""
        self.reload_stats()

    @on(Button.Pressed, "#btn-grant-email")
    @on(Input.Submitted, "#input-grant-email")
    @work(exclusive=True, group="grant")
    async def handle_grant_email(self) -> None:
        input_email = self.query_one("#input-grant-email", Input)
        try:
            await self.app.queries.add_admin_by_email(input_email.value)
        except ValidationError as exc:
            input_email.add_class("-invalid")
            self.notify(str(exc), severity="error")
            return
        except MarketError as exc:
            self.report_failure(exc, "Failed to grant admin privileges.")
            return
        input_email.remove_class("-invalid")
        self.notify(f"Granted admin privileges to {input_email.value.strip()}.")
        input_email.value = ""
        self.reload_stats()
