from typing import List, Optional

from textual import events, on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.reactive import reactive
from textual.screen import ModalScreen
from textual.validation import Integer
from textual.widgets import Button, Input, Label, ListItem, ListView, MarkdownViewer

from backend.errors import MarketError
from backend.models import Product
from client.errors import user_message
from utils.pricing import format_price
from utils.pure import generate_markdown_table, similar_products, stock_hint


class ProdDetailModal(ModalScreen[bool]):
    """
    prod detail, plus ordering
    Will return true of cart changed, false if not
    """

    order_qty = reactive(1)

    def __init__(self, pid: int) -> None:
        super().__init__()

        self._pid = pid
        self._prod: Optional[Product] = None
        self._similar: List[Product] = []
        self._cart_changed = False

    def compose(self) -> ComposeResult:
        with Horizontal(id="hort-prod-detail"):
            yield MarkdownViewer("", show_table_of_contents=False)
            with Vertical(id="div-prod-order"):
                yield Label("", id="label-prod-price")
                yield Label("", id="label-prod-stock")
                yield Label("Order Quantity")
                with Horizontal():
                    yield Button("-", id="btn-sub-qty")
                    yield Input(value="1", id="input-order-qty", type="integer")
                    yield Button("+", id="btn-add-qty")
                with Horizontal():
                    yield Button("Go Back", id="btn-quit")
                    yield Button("Add to Cart", id="btn-addcart", variant="primary")
                yield Label("Similar Products", id="label-similar")
                yield ListView(id="list-similar")

    def on_mount(self):
        self.load_product(self._pid)

    @work(exclusive=True)
    async def load_product(self, pid: int) -> None:
        self._pid = pid
        try:
            self._prod = await self.app.queries.get_product(pid)
            products = await self.app.queries.get_products()
        except MarketError as exc:
            self.notify(user_message(exc, "Failed to load product."), severity="error")
            self.dismiss(self._cart_changed)
            return

        if self._prod is None:
            self.notify("Product not found.", severity="error")
            self.dismiss(self._cart_changed)
            return

        prod = self._prod
        table_rows = [
            ["Category", prod.category],
            ["Price", f"${format_price(prod.price)}"],
            ["Availability", stock_hint(prod.stock)],
        ]
        md_table_str = generate_markdown_table(["Attribute", "Value"], table_rows, ["l", "l"])
        header_md = f"### {prod.title}\n\n{prod.description}\n\n"
        await self.query_one(MarkdownViewer).document.update(header_md + md_table_str)

        self.query_one("#label-prod-price", Label).update(f"${format_price(prod.price)}")
        self.query_one("#label-prod-stock", Label).update(stock_hint(prod.stock))

        # update elements depending on stock cnt
        order_btn = self.query_one("#btn-addcart", Button)
        if prod.stock < 1:
            order_btn.label = "Out of Stock"
            order_btn.disabled = True
            order_btn.variant = "warning"
        else:
            order_btn.label = "Add to Cart"
            order_btn.disabled = False
            order_btn.variant = "primary"

        input_qty = self.query_one("#input-order-qty", Input)
        input_qty.validators = [Integer(minimum=1, maximum=max(prod.stock, 1))]
        self.order_qty = 1
        self.watch_order_qty(self.order_qty)

        self._similar = similar_products(products, prod)
        list_similar = self.query_one("#list-similar", ListView)
        await list_similar.clear()
        await list_similar.extend(
            [
                ListItem(
                    Label(f"{p.title}  ${format_price(p.price)}"),
                    id=f"list-similar-item-{p.id}",
                )
                for p in self._similar
            ]
        )
        self.query_one("#label-similar").display = bool(self._similar)

        input_qty.focus()

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(self._cart_changed)

    def on_input_changed(self, message: Input.Changed) -> None:
        if (
            message.input.id == "input-order-qty"
            and message.input.is_valid
            and self.focused == message.input
        ):
            self.order_qty = int(message.value)

    def watch_order_qty(self, qty: int) -> None:
        stock = self._prod.stock if self._prod else 1
        self.query_one("#btn-sub-qty").disabled = qty <= 1
        self.query_one("#btn-add-qty").disabled = qty >= stock
        self.query_one("#input-order-qty", Input).value = str(qty)

    @on(Button.Pressed, "#btn-add-qty")
    def handle_add_qty(self):
        self.order_qty += 1

    @on(Button.Pressed, "#btn-sub-qty")
    def handle_sub_qty(self):
        self.order_qty = max(1, self.order_qty - 1)

    @on(Button.Pressed, "#btn-quit")
    def handle_quit(self):
        self.dismiss(self._cart_changed)

    def on_list_view_selected(self, event: ListView.Selected) -> None:
        pid = int(event.item.id.removeprefix("list-similar-item-"))
        self.load_product(pid)

    @on(Button.Pressed, "#btn-addcart")
    @work(exclusive=True, group="addcart")
    async def handle_addcart(self):
        if not self.app.session.is_authenticated:
            self.notify("Please sign in to add items to cart.", severity="warning")
            return

        try:
            await self.app.queries.add_to_cart(self._pid, self.order_qty)
        except MarketError as exc:
            self.notify(user_message(exc, "Failed to add to cart."), severity="error")
            return

        self._cart_changed = True
        self.app.notify(f"Added {self.order_qty} x {self._prod.title} to cart.")
        self.dismiss(True)
