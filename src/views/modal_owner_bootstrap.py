from textual import events, on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Label

from backend.errors import MarketError
from client.errors import user_message
from utils.logger import get_logger

_logger = get_logger(__name__)


class OwnerBootstrapModal(ModalScreen[bool]):
    """
    Lets a configured store owner grant themselves admin access.
    Returns True once the grant went through.
    """

    def __init__(self, email: str) -> None:
        super().__init__()
        self._email = email

    def compose(self) -> ComposeResult:
        with Vertical(id="div-dialog"):
            yield Label("Owner Access", id="caption")
            yield Label(
                f"{self._email} is registered as a store owner. "
                "Claim admin access for your account?"
            )
            with Horizontal(id="dialog"):
                yield Button("Cancel", id="btn-secondary")
                yield Button("Claim Admin Access", id="btn-primary", variant="warning")

    def on_mount(self) -> None:
        self.query_one("#btn-secondary").focus()

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(False)

    @on(Button.Pressed, "#btn-primary")
    @work(exclusive=True)
    async def handle_claim(self) -> None:
        try:
            await self.app.queries.add_admin_by_email(self._email)
        except MarketError as exc:
            self.notify(user_message(exc, "Failed to claim admin access."), severity="error")
            return
        _logger.warning(f"Owner {self._email} claimed admin access")
        self.notify("Admin access granted.")
        self.dismiss(True)

    @on(Button.Pressed, "#btn-secondary")
    def handle_cancel(self) -> None:
        self.dismiss(False)
