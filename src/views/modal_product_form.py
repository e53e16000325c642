from typing import List, Optional

from textual import events, on
from textual.app import ComposeResult
from textual.containers import Horizontal, VerticalScroll
from textual.screen import ModalScreen
from textual.validation import Number
from textual.widgets import Button, Input, Label, Select, TextArea

from backend.errors import ValidationError
from backend.models import Category, Product, ProductStatus
from utils.pricing import format_price
from utils.pure import product_from_form


class ProductFormModal(ModalScreen[Optional[Product]]):
    """
    Add or edit a product. Dismisses with the validated Product, or None when cancelled.
    A new product carries id 0.
    """

    def __init__(self, categories: List[Category], product: Optional[Product] = None):
        super().__init__()
        self._categories = categories
        self._product = product

    def compose(self) -> ComposeResult:
        prod = self._product
        names = [c.name for c in self._categories]
        # keep a category that has since been removed selectable
        if prod and prod.category and prod.category not in names:
            names.append(prod.category)

        with VerticalScroll(id="div-product-form"):
            yield Label("Edit Product" if prod else "Add New Product", id="caption")
            yield Label("Title *")
            yield Input(prod.title if prod else "", id="input-product-title")
            yield Label("Description *")
            yield TextArea(prod.description if prod else "", id="input-product-description")
            yield Label("Price ($) *")
            yield Input(
                format_price(prod.price) if prod else "",
                placeholder="0.00",
                id="input-product-price",
                type="number",
                validators=[Number(minimum=0.0)],
            )
            yield Label("Stock")
            yield Input(
                str(prod.stock) if prod else "",
                placeholder="0",
                id="input-product-stock",
                type="integer",
                validators=[Number(minimum=0)],
            )
            yield Label("Category *")
            yield Select(
                [(n, n) for n in names],
                value=prod.category if prod and prod.category else Select.BLANK,
                prompt="Select a category",
                id="input-product-category",
            )
            yield Label("Image URL")
            yield Input(prod.image if prod else "", id="input-product-image")
            yield Label("Status")
            yield Select(
                [(s.value.capitalize(), s.value) for s in ProductStatus],
                value=ProductStatus(prod.status).value
                if prod
                else ProductStatus.APPROVED.value,
                allow_blank=False,
                id="input-product-status",
            )
            with Horizontal():
                yield Button("Cancel", id="btn-quit")
                yield Button(
                    "Update Product" if prod else "Create Product",
                    id="btn-submit",
                    variant="primary",
                )

    def on_mount(self) -> None:
        self.query_one("#input-product-title").focus()

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(None)

    def read_form(self) -> dict:
        category = self.query_one("#input-product-category", Select).value
        status = self.query_one("#input-product-status", Select).value
        return {
            "title": self.query_one("#input-product-title", Input).value,
            "description": self.query_one("#input-product-description", TextArea).text,
            "price": self.query_one("#input-product-price", Input).value,
            "stock": self.query_one("#input-product-stock", Input).value,
            "category": "" if category is Select.BLANK else str(category),
            "image": self.query_one("#input-product-image", Input).value,
            "status": str(status),
        }

    @on(Button.Pressed, "#btn-submit")
    def handle_submit(self) -> None:
        for widget in self.query(".-invalid"):
            widget.remove_class("-invalid")
        try:
            product = product_from_form(
                self.read_form(), self._product.id if self._product else 0
            )
        except ValidationError as exc:
            if exc.field:
                field = self.query_one(f"#input-product-{exc.field}")
                field.add_class("-invalid")
                field.focus()
            self.notify(str(exc), severity="error")
            return
        self.dismiss(product)

    @on(Button.Pressed, "#btn-quit")
    def handle_quit(self) -> None:
        self.dismiss(None)
