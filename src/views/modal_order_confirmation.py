from textual import events, on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Label, MarkdownViewer

from backend.errors import MarketError
from client.errors import user_message
from utils.pricing import format_price, line_total
from utils.pure import generate_markdown_table, order_item_title


class OrderConfirmationModal(ModalScreen[None]):
    """Thank-you page for a freshly placed order."""

    def __init__(self, order_id: int) -> None:
        super().__init__()
        self._order_id = order_id

    def compose(self) -> ComposeResult:
        with Vertical(id="div-order-confirmation"):
            yield Label("Order Confirmed!", id="caption")
            yield MarkdownViewer("", show_table_of_contents=False)
            with Horizontal():
                yield Button("View Orders", id="btn-orders")
                yield Button("Continue Shopping", id="btn-continue", variant="primary")

    def on_mount(self) -> None:
        self.load_order()

    @work(exclusive=True)
    async def load_order(self) -> None:
        md = f"### Order #{self._order_id}\n\nThank you for your purchase.\n\n"
        try:
            order = await self.app.queries.get_order(self._order_id)
            products = await self.app.queries.get_products()
        except MarketError as exc:
            self.notify(user_message(exc, "Failed to load order."), severity="error")
            order = None

        if order is not None:
            rows = [
                [
                    order_item_title(item, products),
                    item.quantity,
                    format_price(line_total(item.price, item.quantity)),
                ]
                for item in order.items
            ]
            md += generate_markdown_table(["Product", "Qty", "Line Total"], rows, ["l", "c", "r"])
            md += f"\n\n**Total:** ${format_price(order.total)}"
        await self.query_one(MarkdownViewer).document.update(md)
        self.query_one("#btn-continue").focus()

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(None)

    @on(Button.Pressed, "#btn-orders")
    async def handle_orders(self) -> None:
        self.dismiss(None)
        await self.app.switch_mode("orders")

    @on(Button.Pressed, "#btn-continue")
    async def handle_continue(self) -> None:
        self.dismiss(None)
        await self.app.switch_mode("catalog")
