from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Container
from textual.events import ScreenResume
from textual.screen import Screen
from textual.widgets import Button, Footer, Header, Label, ListItem, ListView, Markdown

from backend.errors import MarketError
from backend.models import UserRole
from client.errors import user_message
from utils.messages import UserLoginMessage, UserLogoutMessage
from utils.pure import cart_item_count, generate_markdown_table
from views.modal_dialog import DialogModal, QuitDialogModal


class Sidebar(Container):
    def compose(self) -> ComposeResult:
        yield Label("User Info", id="label-info-1")
        yield Markdown("", id="md-userinfo")
        yield Button("Sign out", id="btn-logout", variant="error")
        yield Label("Menu", id="label-info-2")
        yield ListView(id="list-menu")

    def on_mount(self) -> None:
        self.refresh_info()

    @work(exclusive=True, group="sidebar")
    async def refresh_info(self) -> None:
        session = self.app.session
        queries = self.app.queries
        btn_logout = self.query_one("#btn-logout", Button)

        menu = dict(self.app.GUEST_MODES)
        if session.is_authenticated:
            role = UserRole.GUEST
            name = "-"
            items = 0
            try:
                role = await queries.get_caller_role()
                profile = await queries.get_caller_profile()
                name = profile.name if profile else "(no profile)"
                items = cart_item_count(await queries.get_cart())
            except MarketError as exc:
                self.log.warning(f"sidebar refresh failed: {exc}")
            table_rows = [
                ["Principal", session.principal.text],
                ["Name", name],
                ["Role", role.value.capitalize()],
                ["Cart", f"{items} item(s)"],
            ]
            menu = dict(self.app.CUSTOMER_MODES)
            if role is UserRole.ADMIN:
                menu.update(self.app.ADMIN_MODES)
            btn_logout.label = "Sign out"
            btn_logout.variant = "error"
        else:
            table_rows = [["Principal", "-"], ["Role", "Guest"]]
            btn_logout.label = "Sign in"
            btn_logout.variant = "primary"

        md_table_str = generate_markdown_table(None, table_rows, ["l", "l"])
        await self.query_one("#md-userinfo", Markdown).update(md_table_str)

        list_menu = self.query_one("#list-menu", ListView)
        await list_menu.clear()
        await list_menu.extend(
            [ListItem(Label(v), id="list-menu-item-" + k) for k, v in menu.items()]
        )
        self.highlight_item(self.app.current_mode)

    async def on_list_view_selected(self, event: ListView.Selected):
        selected_mode = event.item.id.removeprefix("list-menu-item-")
        self.highlight_item(self.app.current_mode)
        if self.app.current_mode != selected_mode:
            await self.app.switch_mode(selected_mode)

    @on(Button.Pressed, "#btn-logout")
    @work()
    async def handle_logout(self):
        if self.app.session.is_authenticated and not await self.app.push_screen_wait(
            DialogModal(
                "Are you sure you want to sign out?",
                primary_text="Yes",
                secondary_text="No",
                tone="warning",
            )
        ):
            return

        self.post_message(UserLogoutMessage())

    def highlight_item(self, mode_str: str):
        list_menu = self.query_one("#list-menu")
        for item in list_menu.children:
            item.highlighted = item.id == "list-menu-item-" + mode_str


class BaseScreen(Screen):
    """
    Inherited by all screens, contains common elements like
    headers, footers, sidebar, and keybindings.
    """

    BINDINGS = [
        Binding("ctrl+z", "quit", "Quit App", show=True),
    ]

    def __init__(self):
        super().__init__()

        self.configure()

    def configure(
        self,
        header_sub_title: str = "Nexo Market",
        show_sidebar: bool = True,
    ) -> None:
        """
        configure behavior of the base screen
        :return:
        """

        # auto gen titles and subtitles
        self.app.title = "Nexo Market"
        self.sub_title = header_sub_title
        titles = {
            **self.app.GUEST_MODES,
            **self.app.CUSTOMER_MODES,
            **self.app.ADMIN_MODES,
        }
        for k, v in self.app.MODES.items():
            if isinstance(self, v) and k in titles:
                self.sub_title = titles[k]

        self._show_sidebar = show_sidebar

    def compose(self) -> ComposeResult:
        if self._show_sidebar:
            yield Sidebar()
        yield Header()
        yield Footer(show_command_palette=False)

    @on(ScreenResume)
    @on(UserLoginMessage)
    def handle_refresh_sidebar(self):
        if self._show_sidebar:
            self.query_one(Sidebar).refresh_info()

    def report_failure(self, exc: MarketError, fallback: str) -> None:
        """Toast for a failed backend call; nothing else changes."""
        self.notify(user_message(exc, fallback), severity="error")

    @work()
    async def action_quit(self):
        await self.app.push_screen_wait(QuitDialogModal())
