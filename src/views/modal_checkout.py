from typing import Dict, List, Optional

from textual import events, on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Label, MarkdownViewer

from backend.errors import MarketError
from backend.models import ShippingAddress
from client.errors import user_message
from utils.logger import get_logger
from utils.pricing import format_price, line_total, summarize
from utils.pure import CartLine, generate_markdown_table
from views.modal_dialog import DialogModal

_logger = get_logger(__name__)

# input id suffix -> (label, placeholder, ShippingAddress field)
ADDRESS_FIELDS: Dict[str, tuple] = {
    "full-name": ("Full Name *", "Jane Doe", "full_name"),
    "line1": ("Address Line 1 *", "123 Main St", "address_line1"),
    "line2": ("Address Line 2", "Apt 4B", "address_line2"),
    "city": ("City *", "Anytown", "city"),
    "state": ("State / Province", "ST", "state"),
    "zip": ("ZIP / Postal Code", "00000", "zip_code"),
    "country": ("Country", "United States", "country"),
}

# ShippingAddress.missing_fields() name -> input id suffix
_REQUIRED_INPUTS = {
    "full name": "full-name",
    "address line 1": "line1",
    "city": "city",
}


class CheckoutModal(ModalScreen[Optional[int]]):
    """
    A modal screen for check out, including a table of all items and the shipping address form.
    Returns the new order id on success, None if nothing was ordered.
    """

    def __init__(self, lines: List[CartLine]):
        super().__init__()
        self._lines = lines

    def compose(self) -> ComposeResult:
        with Horizontal(id="hort-checkout"):
            with VerticalScroll(id="div-shipping"):
                yield Label("Shipping Address", id="label-shipping")
                for key, (caption, placeholder, _) in ADDRESS_FIELDS.items():
                    yield Label(caption)
                    yield Input(placeholder=placeholder, id=f"input-address-{key}")
            with Vertical(id="div-order-summary"):
                yield MarkdownViewer("", show_table_of_contents=False)
                with Horizontal():
                    yield Button("Go Back", id="btn-quit")
                    yield Button("Place Order", id="btn-submit", variant="primary")

    async def on_mount(self):
        # generate the order summary
        headers = ["Product", "Unit Price", "Quantity", "Line Total"]
        rows = [
            [
                line.title,
                format_price(line.price),
                line.quantity,
                format_price(line_total(line.price, line.quantity)),
            ]
            for line in self._lines
        ]
        summary = summarize(self._lines, self.app.settings.tax_rate)
        md = "### Order Summary\n\n"
        md += generate_markdown_table(headers, rows, ["l", "r", "c", "r"])
        md += (
            f"\n\n**Subtotal:** ${format_price(summary.subtotal)}  \n"
            f"**Estimated Tax:** ${format_price(summary.tax)}  \n"
            f"**Order Total:** ${format_price(summary.total)}"
        )
        await self.query_one(MarkdownViewer).document.update(md)
        self.query_one("#input-address-full-name").focus()

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(None)

    def read_address(self) -> ShippingAddress:
        values = {
            attr: self.query_one(f"#input-address-{key}", Input).value.strip()
            for key, (_, _, attr) in ADDRESS_FIELDS.items()
        }
        return ShippingAddress(**values)

    @on(Button.Pressed, "#btn-submit")
    @work(exclusive=True)
    async def handle_submit(self):
        for key in ADDRESS_FIELDS:
            self.query_one(f"#input-address-{key}", Input).remove_class("-invalid")

        address = self.read_address()
        missing = address.missing_fields()
        if missing:
            for name in missing:
                self.query_one(
                    f"#input-address-{_REQUIRED_INPUTS[name]}", Input
                ).add_class("-invalid")
            self.query_one(f"#input-address-{_REQUIRED_INPUTS[missing[0]]}").focus()
            self.notify(
                "Please fill in: " + ", ".join(missing) + ".", severity="error"
            )
            return

        if not await self.app.push_screen_wait(
            DialogModal(
                "Place order? This cannot be undone.",
                primary_text="Yes",
                secondary_text="No",
                tone="positive",
            )
        ):
            return

        btn_submit = self.query_one("#btn-submit", Button)
        btn_submit.disabled = True
        btn_submit.label = "Placing Order..."
        try:
            order_id = await self.app.queries.checkout()
        except MarketError as exc:
            self.notify(user_message(exc, "Failed to place order."), severity="error")
            btn_submit.disabled = False
            btn_submit.label = "Place Order"
            return

        _logger.info(f"Order {order_id} placed, shipping to {address.city}")
        self.notify(f"Order placed. Your order number is {order_id}.")
        self.dismiss(order_id)

    @on(Button.Pressed, "#btn-quit")
    def handle_quit(self):
        self.dismiss(None)
