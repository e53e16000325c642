from typing import List, Optional

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal
from textual.widgets import Button, DataTable, Label

from backend.errors import MarketError
from backend.models import Category, Product, UserRole, find_product
from utils.pricing import format_price
from utils.pure import plural
from views.modal_dialog import ConfirmDeleteModal
from views.modal_product_form import ProductFormModal
from views.role_gate import RoleGatedScreen


class AdminProductsScreen(RoleGatedScreen):
    """
    Every product regardless of status; approve, reject, add, edit and delete.
    Actions apply to the highlighted row.
    """

    REQUIRED_ROLE = UserRole.ADMIN

    def __init__(self) -> None:
        super().__init__()
        self._products: List[Product] = []
        self._categories: List[Category] = []

    def compose_content(self) -> ComposeResult:
        yield Label("", id="label-product-cnt")
        yield DataTable(id="table-admin-products")
        with Horizontal(id="hort-product-actions"):
            yield Button("Add Product", id="btn-add", variant="primary")
            yield Button("Edit", id="btn-edit")
            yield Button("Approve", id="btn-approve", variant="success")
            yield Button("Reject", id="btn-reject", variant="warning")
            yield Button("Delete", id="btn-delete", variant="error")

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("ID", "Title", "Category", "Price ($)", "Stock", "Status")

    async def load_content(self) -> None:
        self.reload_products()

    @work(exclusive=True, group="admin-products")
    async def reload_products(self) -> None:
        try:
            self._products = await self.app.queries.get_products()
            self._categories = await self.app.queries.get_categories()
        except MarketError as exc:
            self.report_failure(exc, "Failed to load products.")
            return

        table = self.query_one(DataTable)
        cursor = table.cursor_row
        table.clear()
        for p in self._products:
            table.add_row(
                p.id,
                p.title,
                p.category,
                format_price(p.price),
                p.stock,
                p.status.value.capitalize(),
            )
        if self._products and cursor is not None:
            table.move_cursor(row=min(cursor, len(self._products) - 1))
        self.query_one("#label-product-cnt", Label).update(
            plural(len(self._products), "product")
        )

    def selected_product(self) -> Optional[Product]:
        table = self.query_one(DataTable)
        if not table.row_count or table.cursor_row is None:
            self.notify("Select a product first.", severity="warning")
            return None
        pid = int(table.get_row_at(table.cursor_row)[0])
        return find_product(self._products, pid)

    @on(Button.Pressed, "#btn-add")
    @work()
    async def handle_add(self) -> None:
        product = await self.app.push_screen_wait(ProductFormModal(self._categories))
        if product is None:
            return
        try:
            new_id = await self.app.queries.create_product(product)
        except MarketError as exc:
            self.report_failure(exc, "Failed to create product.")
            return
        self.notify(f"Product #{new_id} created.")
        self.reload_products()

    @on(Button.Pressed, "#btn-edit")
    @work()
    async def handle_edit(self) -> None:
        current = self.selected_product()
        if current is None:
            return
        product = await self.app.push_screen_wait(
            ProductFormModal(self._categories, current)
        )
        if product is None:
            return
        try:
            await self.app.queries.update_product(current.id, product)
        except MarketError as exc:
            self.report_failure(exc, "Failed to update product.")
            return
        self.notify("Product updated successfully.")
        self.reload_products()

    @on(Button.Pressed, "#btn-approve")
    @work(group="admin-product-status")
    async def handle_approve(self) -> None:
        current = self.selected_product()
        if current is None:
            return
        try:
            await self.app.queries.approve_product(current.id)
        except MarketError as exc:
            self.report_failure(exc, "Failed to approve product.")
            return
        self.notify(f"Approved {current.title}.")
        self.reload_products()

    @on(Button.Pressed, "#btn-reject")
    @work(group="admin-product-status")
    async def handle_reject(self) -> None:
        current = self.selected_product()
        if current is None:
            return
        try:
            await self.app.queries.reject_product(current.id)
        except MarketError as exc:
            self.report_failure(exc, "Failed to reject product.")
            return
        self.notify(f"Rejected {current.title}.")
        self.reload_products()

    @on(Button.Pressed, "#btn-delete")
    @work()
    async def handle_delete(self) -> None:
        current = self.selected_product()
        if current is None:
            return
        if not await self.app.push_screen_wait(ConfirmDeleteModal(f'"{current.title}"')):
            return
        try:
            await self.app.queries.delete_product(current.id)
        except MarketError as exc:
            self.report_failure(exc, "Failed to delete product.")
            return
        self.notify(f"Deleted {current.title}.")
        self.reload_products()
