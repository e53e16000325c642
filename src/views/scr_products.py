from typing import List

from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.events import ScreenResume
from textual.reactive import reactive
from textual.widgets import DataTable, Input, Label, OptionList
from textual.widgets.option_list import Option

from backend.errors import MarketError
from backend.models import Category, Product
from utils.pricing import format_price
from utils.pure import filter_products, plural, stock_hint
from views.base_screen import BaseScreen
from views.modal_prod_detail import ProdDetailModal

ALL_CATEGORIES = "__all__"


class CatalogScreen(BaseScreen):
    """
    approved products, filterable by category and title
    open to guests
    """

    # only here to be displayed in footer
    BINDINGS = [
        Binding("enter", "noop", "View Product", show=True, key_display="⏎"),
    ]

    query_str = reactive("")
    category = reactive("")

    def __init__(self):
        super().__init__()
        self._products: List[Product] = []
        self._categories: List[Category] = []

    def compose(self) -> ComposeResult:
        yield from super().compose()
        yield Input(id="input-search", placeholder="Search products...")
        with Horizontal(id="hort-catalog"):
            with Vertical(id="div-categories"):
                yield Label("Categories", id="label-categories")
                yield OptionList(id="optlist-categories")
            with Vertical(id="div-results"):
                yield Label("All Products", id="label-results-title")
                yield Label("", id="label-results-count")
                yield DataTable(id="table-products")

    def on_mount(self):
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("ID", "Title", "Category", "Price ($)", "Availability")

        self.query_one("#input-search").focus()
        self.reload_catalog()

    @on(ScreenResume)
    def handle_resume(self) -> None:
        self.reload_catalog()

    @work(exclusive=True, group="catalog")
    async def reload_catalog(self) -> None:
        try:
            self._products = await self.app.queries.get_products()
            self._categories = await self.app.queries.get_categories()
        except MarketError as exc:
            self.report_failure(exc, "Failed to load products.")
            return

        opt_list = self.query_one("#optlist-categories", OptionList)
        opt_list.clear_options()
        opt_list.add_options(
            [Option("All Products", id=ALL_CATEGORIES)]
            + [Option(c.name, id=f"cat-{c.id}") for c in self._categories]
        )
        self.render_results()

    def watch_query_str(self, _old: str, _new: str) -> None:
        self.render_results()

    def watch_category(self, _old: str, _new: str) -> None:
        self.render_results()

    def on_input_changed(self, message: Input.Changed) -> None:
        if message.input.id == "input-search":
            self.query_str = message.value

    def on_option_list_option_selected(self, message: OptionList.OptionSelected) -> None:
        if message.option.id == ALL_CATEGORIES:
            self.category = ""
            return
        name = str(message.option.prompt)
        # selecting the active category again clears the filter
        self.category = "" if name == self.category else name

    def render_results(self) -> None:
        if not self.is_mounted:
            return
        shown = filter_products(self._products, self.category, self.query_str)

        if self.query_str.strip():
            title = f'Search results for "{self.query_str.strip()}"'
        else:
            title = self.category or "All Products"
        self.query_one("#label-results-title", Label).update(title)
        self.query_one("#label-results-count", Label).update(
            plural(len(shown), "result") if shown else "No products found"
        )

        table = self.query_one(DataTable)
        table.clear()
        for p in shown:
            table.add_row(
                p.id, p.title, p.category, format_price(p.price), stock_hint(p.stock)
            )

    @work()
    async def open_product(self, product_id: int) -> None:
        await self.app.push_screen_wait(ProdDetailModal(product_id))

    @on(DataTable.RowSelected, "#table-products")
    def handle_row_selected(self, event: DataTable.RowSelected) -> None:
        row_selected = event.data_table.get_row(event.row_key)
        self.open_product(int(row_selected[0]))
