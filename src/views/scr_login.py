from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.events import Key
from textual.widgets import Button, Input, Label

from backend.errors import MarketError
from utils.messages import UserLoginMessage
from views.base_screen import BaseScreen
from views.modal_dialog import QuitDialogModal


class LoginScreen(BaseScreen):
    """
    Sign in with a principal, or continue as a guest.
    Dismisses once the session identity has settled.
    """

    def __init__(self):
        super().__init__()
        self.configure(header_sub_title="Sign In", show_sidebar=False)

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical(id="div-login"):
            yield Label(
                "Sign in to your account to browse products, manage your cart, "
                "and place orders.",
                id="label-login-intro",
            )
            yield Label("Principal ID")
            yield Input(placeholder="e.g. alice-7f3k2", id="input-login-principal")
            with Horizontal(id="div-login-btns"):
                yield Button("Quit", id="btn-quit")
                yield Button("Continue as Guest", id="btn-guest")
                yield Button("Sign In", id="btn-login", variant="primary")

    def on_mount(self):
        self.query_one("#input-login-principal").focus()

    def on_key(self, event: Key) -> None:
        if event.key == "enter" and self.focused == self.query_one(
            "#input-login-principal"
        ):
            self.handle_login_submit()

    @on(Button.Pressed, "#btn-login")
    @work(exclusive=True)
    async def handle_login_submit(self) -> None:
        input_principal = self.query_one("#input-login-principal", Input)
        text = input_principal.value.strip()

        if not text:
            self.notify("Principal ID cannot be empty!", severity="error")
            input_principal.add_class("-invalid")
            return

        try:
            identity = self.app.session.sign_in(text)
        except MarketError as exc:
            self.report_failure(exc, "Invalid principal ID.")
            input_principal.add_class("-invalid")
            input_principal.focus()
            return

        self.app.queries.reset()
        self.notify(f"Hello {identity.principal}!")
        self.app.post_message(UserLoginMessage())
        self.dismiss()

    @on(Button.Pressed, "#btn-guest")
    def handle_guest(self) -> None:
        self.app.session.restore(None)
        self.app.queries.reset()
        self.notify("Browsing as guest. Sign in to shop.")
        self.dismiss()

    @on(Button.Pressed, "#btn-quit")
    def handle_quit_(self) -> None:
        self.app.push_screen(QuitDialogModal())
