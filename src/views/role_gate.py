from typing import Dict

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Vertical
from textual.events import ScreenResume
from textual.widget import Widget
from textual.widgets import Button, ContentSwitcher, Label, LoadingIndicator

from backend.errors import MarketError
from backend.models import UserRole
from utils.access import AccessGate, AccessState, denied_message
from utils.messages import UserLoginMessage
from views.base_screen import BaseScreen

_PANES: Dict[AccessState, str] = {
    AccessState.INITIALIZING: "gate-loading",
    AccessState.UNAUTHENTICATED: "gate-denied",
    AccessState.UNAUTHORIZED: "gate-denied",
    AccessState.AUTHORIZED: "gate-content",
}


class AccessDenied(Vertical):
    """Shown instead of a protected screen's content."""

    def __init__(self, required_role: UserRole, **kwargs) -> None:
        super().__init__(**kwargs)
        self.required_role = required_role

    def compose(self) -> ComposeResult:
        yield Label("Access Denied", id="label-denied-title")
        yield Label(denied_message(self.required_role), id="label-denied-msg")
        yield Button("Return to Catalog", id="btn-denied-home", variant="primary")

    @on(Button.Pressed, "#btn-denied-home")
    async def handle_go_home(self) -> None:
        await self.app.switch_mode("catalog")


class RoleGatedScreen(BaseScreen):
    """
    Screen whose content is only shown to identities holding REQUIRED_ROLE.

    Subclasses yield their widgets from compose_content() and load data in
    load_content(), which runs every time access is (re)granted.
    """

    REQUIRED_ROLE: UserRole = UserRole.USER

    access_state: AccessState = AccessState.INITIALIZING

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with ContentSwitcher(initial="gate-loading", id="gate"):
            yield LoadingIndicator(id="gate-loading")
            yield self.compose_denied()
            with Vertical(id="gate-content"):
                yield from self.compose_content()

    def compose_content(self) -> ComposeResult:
        yield from ()

    def compose_denied(self) -> Widget:
        return AccessDenied(self.REQUIRED_ROLE, id="gate-denied")

    async def load_content(self) -> None:
        pass

    async def on_denied(self, state: AccessState) -> None:
        pass

    def on_mount(self) -> None:
        self.check_access()

    @on(ScreenResume)
    @on(UserLoginMessage)
    def handle_recheck_access(self) -> None:
        self.check_access()

    @work(exclusive=True, group="gate")
    async def check_access(self) -> None:
        switcher = self.query_one("#gate", ContentSwitcher)
        switcher.current = "gate-loading"
        session = self.app.session

        gate = AccessGate(self.REQUIRED_ROLE)
        if not session.initializing:
            gate.identity_resolved(session.identity)
        if session.identity is not None:
            try:
                gate.role_resolved(await self.app.queries.get_caller_role())
            except MarketError as exc:
                gate.role_failed()
                self.report_failure(exc, "Could not check your permissions.")

        self.access_state = gate.state
        switcher.current = _PANES[self.access_state]
        if self.access_state is AccessState.AUTHORIZED:
            await self.load_content()
        elif self.access_state is not AccessState.INITIALIZING:
            await self.on_denied(self.access_state)
