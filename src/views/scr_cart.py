from typing import List

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Container, Horizontal, HorizontalGroup, VerticalScroll
from textual.message import Message
from textual.widgets import Button, Label, Rule

from backend.errors import MarketError
from utils.messages import CartChangedMessage
from utils.pricing import format_price, line_total, summarize
from utils.pure import CartLine, join_cart, plural
from views.modal_checkout import CheckoutModal
from views.modal_dialog import DialogModal
from views.modal_order_confirmation import OrderConfirmationModal
from views.role_gate import RoleGatedScreen


class CartItemQtyMessage(Message):
    """Asks the cart screen to step a line's quantity by delta."""

    bubble = True

    def __init__(self, product_id: int, delta: int) -> None:
        super().__init__()
        self.product_id = product_id
        self.delta = delta


class CartItemRemoveMessage(Message):
    bubble = True

    def __init__(self, product_id: int) -> None:
        super().__init__()
        self.product_id = product_id


class CartItemWidget(HorizontalGroup):
    def __init__(self, line: CartLine):
        super().__init__()
        self.line = line

    def compose(self):
        with Container(id="div-cart-item-group"):
            with Container(id="div-item"):
                yield Label(self.line.title, id="label-item-name")
                yield Label(f"${format_price(self.line.price)} each", id="label-item-price")
                yield Label(
                    f"${format_price(line_total(self.line.price, self.line.quantity))}",
                    id="label-item-total",
                )
            with Container(id="div-actions"):
                yield Button(
                    "-", id="btn-item-sub", disabled=self.line.quantity <= 1
                )
                yield Label(str(self.line.quantity), id="label-item-qty")
                yield Button("+", id="btn-item-add")
                yield Button("Remove", id="btn-item-remove", variant="error")

    @on(Button.Pressed, "#btn-item-sub")
    def handle_sub(self) -> None:
        # quantity never drops below 1, removal is explicit
        if self.line.quantity > 1:
            self.post_message(CartItemQtyMessage(self.line.product_id, -1))

    @on(Button.Pressed, "#btn-item-add")
    def handle_add(self) -> None:
        self.post_message(CartItemQtyMessage(self.line.product_id, 1))

    @on(Button.Pressed, "#btn-item-remove")
    def handle_remove(self) -> None:
        self.post_message(CartItemRemoveMessage(self.line.product_id))


class CartScreen(RoleGatedScreen):
    """
    Cart line items with quantity controls, price summary and checkout.
    Customers only.
    """

    def __init__(self) -> None:
        super().__init__()
        self._lines: List[CartLine] = []

    def compose_content(self) -> ComposeResult:
        yield Label("Shopping Cart", id="label-cart-title")
        yield VerticalScroll(id="vertscroll-content")
        yield Rule(line_style="dashed")
        yield Label("", id="label-cart-subtotal")
        yield Label("", id="label-cart-tax")
        yield Label("", id="label-cart-total")
        with Horizontal(id="hort-buttons"):
            yield Button("Clear Cart", id="btn-clear-cart")
            yield Button("Continue Shopping", id="btn-continue")
            yield Button("Checkout", id="btn-checkout", variant="primary")

    async def load_content(self) -> None:
        self.reload_cart()

    @on(CartChangedMessage)
    @work(exclusive=True, group="cart")  # must exclusive, else might race cond and gen duplicate
    async def reload_cart(self) -> None:
        try:
            cart = await self.app.queries.get_cart()
            products = await self.app.queries.get_products()
        except MarketError as exc:
            self.report_failure(exc, "Failed to load cart.")
            return
        self._lines = join_cart(cart, products)

        content = self.query_one("#vertscroll-content")
        await content.remove_children()
        await content.mount_all([CartItemWidget(line) for line in self._lines])

        if not self._lines:
            content.add_class("no-items")
            await content.mount(
                Label("Your cart is empty. Add some products to get started!")
            )
        else:
            content.remove_class("no-items")

        summary = summarize(self._lines, self.app.settings.tax_rate)
        self.query_one("#label-cart-title", Label).update(
            f"Shopping Cart ({plural(summary.item_count, 'item')})"
        )
        self.query_one("#label-cart-subtotal", Label).update(
            f"Subtotal: ${format_price(summary.subtotal)}"
        )
        self.query_one("#label-cart-tax", Label).update(
            f"Estimated Tax: ${format_price(summary.tax)}"
        )
        self.query_one("#label-cart-total", Label).update(
            f"Order Total: ${format_price(summary.total)}"
        )
        self.query_one("#btn-checkout").disabled = not self._lines
        self.query_one("#btn-clear-cart").disabled = not self._lines

        # cart count in sidebar
        self.handle_refresh_sidebar()

    @on(CartItemQtyMessage)
    @work(group="cart-mutation")
    async def handle_qty(self, message: CartItemQtyMessage) -> None:
        try:
            await self.app.queries.adjust_cart_item(message.product_id, message.delta)
        except MarketError as exc:
            self.report_failure(exc, "Failed to update cart.")
            return
        self.post_message(CartChangedMessage())

    @on(CartItemRemoveMessage)
    @work(group="cart-mutation")
    async def handle_remove(self, message: CartItemRemoveMessage) -> None:
        try:
            await self.app.queries.remove_from_cart(message.product_id)
        except MarketError as exc:
            self.report_failure(exc, "Failed to remove item.")
            return
        self.notify("Item removed from cart.", severity="information")
        self.post_message(CartChangedMessage())

    @on(Button.Pressed, "#btn-clear-cart")
    @work()
    async def handle_clear_cart(self) -> None:
        if not self._lines:
            self.app.notify("Cart is empty.", severity="warning")
            return

        remove_confirmed = await self.app.push_screen_wait(
            DialogModal(
                "Do you really want to remove all items from cart?",
                primary_text="Yes",
                secondary_text="No",
                tone="error",
            )
        )
        if not remove_confirmed:
            return
        try:
            await self.app.queries.clear_cart()
        except MarketError as exc:
            self.report_failure(exc, "Failed to clear cart.")
            return
        self.post_message(CartChangedMessage())

    @on(Button.Pressed, "#btn-continue")
    async def handle_continue(self) -> None:
        await self.app.switch_mode("catalog")

    @on(Button.Pressed, "#btn-checkout")
    @work()
    async def handle_checkout(self) -> None:
        """
        Open up checkout screen, then the confirmation of the placed order
        """
        if not self._lines:
            self.app.notify("Cart is empty.", severity="warning")
            return

        order_id = await self.app.push_screen_wait(CheckoutModal(self._lines))
        if order_id is not None:
            await self.app.push_screen_wait(OrderConfirmationModal(order_id))
        self.post_message(CartChangedMessage())
