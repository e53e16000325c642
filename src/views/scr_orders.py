from typing import List, Optional

from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal
from textual.widgets import Button, DataTable, Label, MarkdownViewer

from backend.errors import MarketError
from backend.models import OrderData, Product
from utils.pricing import format_price, line_total
from utils.pure import generate_markdown_table, order_item_title, plural
from views.role_gate import RoleGatedScreen

# items listed in the detail pane before collapsing into "N more"
PREVIEW_ITEMS = 3


def render_order_detail(
    order: Optional[OrderData], products: List[Product], limit: int = PREVIEW_ITEMS
) -> str:
    if order is None:
        return "### Select an order to view its details."

    rows = [
        [
            order_item_title(item, products),
            item.quantity,
            format_price(item.price),
            format_price(line_total(item.price, item.quantity)),
        ]
        for item in order.items[:limit]
    ]
    header = (
        f"### Order #{order.order_id}\n"
        f"{plural(len(order.items), 'item')}\n\n"
    )
    md = header + generate_markdown_table(
        ["Product", "Qty", "Unit Price", "Line Total"], rows, ["l", "r", "r", "r"]
    )
    hidden = len(order.items) - limit
    if hidden > 0:
        md += f"\n\n+{hidden} more item{'s' if hidden > 1 else ''}"
    md += f"\n\n**Total:** ${format_price(order.total)}"
    return md


class OrdersScreen(RoleGatedScreen):
    """
    Customers can browse their past orders, newest first, and view details.

    Layout:
    - Markdown detail view at the top, showing the highlighted order.
    - Orders table below.
    """

    # Show some hints in footer
    BINDINGS = [
        Binding("r", "refresh", "Refresh", show=True),
    ]

    def __init__(self) -> None:
        super().__init__()
        self._orders: List[OrderData] = []
        self._products: List[Product] = []

    def compose_content(self) -> ComposeResult:
        yield MarkdownViewer(id="md-order-detail", show_table_of_contents=False)
        yield DataTable(id="table-orders")
        with Horizontal(id="hort-table-control"):
            yield Label("", id="label-order-cnt")
            yield Button("Refresh", id="btn-refresh")

    def on_mount(self) -> None:
        # Setup orders table
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("Order No", "Items", "Total ($)")

    async def load_content(self) -> None:
        self.load_orders()

    @on(Button.Pressed, "#btn-refresh")
    def action_refresh(self) -> None:
        self.load_orders()

    @work(exclusive=True, group="orders")
    async def load_orders(self) -> None:
        try:
            self._orders = await self.app.queries.get_orders()
            self._products = await self.app.queries.get_products()
        except MarketError as exc:
            self.report_failure(exc, "Failed to load orders.")
            return

        table = self.query_one(DataTable)
        table.clear()
        for o in self._orders:
            table.add_row(
                o.order_id,
                sum(item.quantity for item in o.items),
                format_price(o.total),
                key=str(o.order_id),
            )
        self.query_one("#label-order-cnt", Label).update(
            plural(len(self._orders), "order")
            if self._orders
            else "No orders yet. Start shopping to place your first order!"
        )
        if self._orders:
            # ensure cursor at first row
            table.cursor_coordinate = (0, 0)
        self.render_detail()

    @on(DataTable.RowHighlighted)
    def handle_row_highlight(self) -> None:
        # Update detail when cursor moves
        self.render_detail()

    def render_detail(self) -> None:
        table = self.query_one(DataTable)
        order = None
        if table.row_count and table.cursor_row is not None:
            order_id = int(table.get_row_at(table.cursor_row)[0])
            order = next((o for o in self._orders if o.order_id == order_id), None)
        self.query_one("#md-order-detail", MarkdownViewer).document.update(
            render_order_detail(order, self._products)
        )
