from textual import events, on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Label

from backend.errors import MarketError, ValidationError
from client.errors import user_message


class ProfileSetupModal(ModalScreen[bool]):
    """
    Asks a freshly signed-in identity for name and email.
    Returns True once the profile is saved, False if skipped.
    """

    def compose(self) -> ComposeResult:
        with Vertical(id="div-profile"):
            yield Label("Welcome! Please set up your profile.", id="caption")
            yield Label("Name")
            yield Input(placeholder="Jane Doe", id="input-profile-name")
            yield Label("Email")
            yield Input(placeholder="user@example.com", id="input-profile-email")
            with Horizontal():
                yield Button("Later", id="btn-skip")
                yield Button("Save Profile", id="btn-save", variant="primary")

    def on_mount(self) -> None:
        self.query_one("#input-profile-name").focus()

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(False)

    @on(Button.Pressed, "#btn-save")
    @on(Input.Submitted, "#input-profile-email")
    @work(exclusive=True)
    async def handle_save(self) -> None:
        name = self.query_one("#input-profile-name", Input).value
        email = self.query_one("#input-profile-email", Input).value
        try:
            await self.app.queries.save_caller_profile(name, email)
        except ValidationError as exc:
            field = self.query_one(f"#input-profile-{exc.field or 'name'}", Input)
            field.add_class("-invalid")
            field.focus()
            self.notify(str(exc), severity="error")
            return
        except MarketError as exc:
            self.notify(user_message(exc, "Failed to save profile."), severity="error")
            return

        self.notify("Profile saved.")
        self.dismiss(True)

    @on(Button.Pressed, "#btn-skip")
    def handle_skip(self) -> None:
        self.dismiss(False)
