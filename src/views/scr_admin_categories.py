from typing import List, Optional

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal
from textual.widgets import Button, DataTable, Label

from backend.errors import MarketError
from backend.models import Category, UserRole
from utils.pure import plural
from views.modal_dialog import ConfirmDeleteModal, InputDialogModal
from views.role_gate import RoleGatedScreen


class AdminCategoriesScreen(RoleGatedScreen):
    """Category list with create, rename and delete."""

    REQUIRED_ROLE = UserRole.ADMIN

    def __init__(self) -> None:
        super().__init__()
        self._categories: List[Category] = []

    def compose_content(self) -> ComposeResult:
        yield Label("", id="label-category-cnt")
        yield DataTable(id="table-categories")
        with Horizontal(id="hort-category-actions"):
            yield Button("Add Category", id="btn-add", variant="primary")
            yield Button("Rename", id="btn-rename")
            yield Button("Delete", id="btn-delete", variant="error")

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("ID", "Name")

    async def load_content(self) -> None:
        self.reload_categories()

    @work(exclusive=True, group="admin-categories")
    async def reload_categories(self) -> None:
        try:
            self._categories = await self.app.queries.get_categories()
        except MarketError as exc:
            self.report_failure(exc, "Failed to load categories.")
            return

        table = self.query_one(DataTable)
        table.clear()
        for c in self._categories:
            table.add_row(c.id, c.name)
        self.query_one("#label-category-cnt", Label).update(
            plural(len(self._categories), "category", "categories")
        )

    def selected_category(self) -> Optional[Category]:
        table = self.query_one(DataTable)
        if not table.row_count or table.cursor_row is None:
            self.notify("Select a category first.", severity="warning")
            return None
        cid = int(table.get_row_at(table.cursor_row)[0])
        return next((c for c in self._categories if c.id == cid), None)

    @on(Button.Pressed, "#btn-add")
    @work()
    async def handle_add(self) -> None:
        name = await self.app.push_screen_wait(
            InputDialogModal("New category name", placeholder="e.g. Electronics")
        )
        if name is None:
            return
        try:
            await self.app.queries.create_category(name)
        except MarketError as exc:
            self.report_failure(exc, "Failed to create category.")
            return
        self.notify(f"Category {name} created.")
        self.reload_categories()

    @on(Button.Pressed, "#btn-rename")
    @work()
    async def handle_rename(self) -> None:
        current = self.selected_category()
        if current is None:
            return
        name = await self.app.push_screen_wait(
            InputDialogModal(f"Rename {current.name}", value=current.name)
        )
        if name is None or name == current.name:
            return
        try:
            await self.app.queries.update_category(current.id, name)
        except MarketError as exc:
            self.report_failure(exc, "Failed to rename category.")
            return
        self.notify(f"Category renamed to {name}.")
        self.reload_categories()

    @on(Button.Pressed, "#btn-delete")
    @work()
    async def handle_delete(self) -> None:
        current = self.selected_category()
        if current is None:
            return
        if not await self.app.push_screen_wait(
            ConfirmDeleteModal(f"the category {current.name}")
        ):
            return
        try:
            await self.app.queries.delete_category(current.id)
        except MarketError as exc:
            self.report_failure(exc, "Failed to delete category.")
            return
        self.notify(f"Deleted category {current.name}.")
        self.reload_categories()
