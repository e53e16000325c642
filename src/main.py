import os
from typing import Optional

from textual import on, work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.widgets import LoadingIndicator

import backend.database as database
from backend.errors import MarketError
from backend.interface import MarketService
from backend.service import LocalMarketService
from client.errors import user_message
from client.queries import MarketQueries
from utils.config import Settings, load_settings
from utils.logger import get_logger, redirect_to_file
from utils.messages import QuitRequestedMessage, UserLogoutMessage
from utils.state import Session
from views.modal_profile_setup import ProfileSetupModal
from views.scr_admin_categories import AdminCategoriesScreen
from views.scr_admin_dashboard import AdminDashboardScreen
from views.scr_admin_products import AdminProductsScreen
from views.scr_cart import CartScreen
from views.scr_login import LoginScreen
from views.scr_orders import OrdersScreen
from views.scr_products import CatalogScreen

_logger = get_logger("app")


class MarketApp(App):
    BINDINGS = [
        Binding("ctrl+t", "switch_light", "Toggle Theme", show=True),
    ]

    MODES = {
        "catalog": CatalogScreen,
        "cart": CartScreen,
        "orders": OrdersScreen,
        "admin": AdminDashboardScreen,
        "admin_products": AdminProductsScreen,
        "admin_categories": AdminCategoriesScreen,
    }

    GUEST_MODES = {"catalog": "Browse Products"}
    CUSTOMER_MODES = {
        "catalog": "Browse Products",
        "cart": "Cart",
        "orders": "Your Orders",
    }
    ADMIN_MODES = {
        "admin": "Admin Dashboard",
        "admin_products": "Manage Products",
        "admin_categories": "Categories",
    }

    CSS_PATH = "views/styles/market.tcss"

    settings: Settings
    session: Session
    queries: MarketQueries

    def __init__(
        self,
        settings: Optional[Settings] = None,
        service: Optional[MarketService] = None,
    ):
        super().__init__()
        self.settings = settings or load_settings()
        database.DB_PATH = self.settings.db_path
        self.session = Session(service or LocalMarketService(self.settings.owner_emails))
        self.queries = MarketQueries(self.session)

    def compose(self) -> ComposeResult:
        yield LoadingIndicator()

    async def on_mount(self) -> None:
        self.main_flow()

    def action_switch_light(self):
        if self.theme == "textual-dark":
            self.theme = "solarized-light"
        else:
            self.theme = "textual-dark"
        self.notify(f"Theme changed to {self.theme}")

    @on(UserLogoutMessage)
    @work
    async def handle_user_logout(self):
        if self.session.is_authenticated:
            self.session.sign_out()
            self.notify("Signed out.")
        self.queries.reset()
        self.main_flow()

    @on(QuitRequestedMessage)
    @work
    async def handle_quit(self):
        if self.session.is_authenticated:
            self.session.sign_out()
        self.exit()

    @work(exclusive=True, group="main-flow")
    async def main_flow(self):
        await self.push_screen_wait(LoginScreen())

        if self.session.is_authenticated:
            try:
                profile = await self.queries.get_caller_profile()
            except MarketError as exc:
                self.notify(user_message(exc, "Failed to load profile."), severity="error")
                profile = None
            else:
                if profile is None:
                    await self.push_screen_wait(ProfileSetupModal())

        await self.switch_mode("catalog")


def run() -> None:
    settings = load_settings()
    # the terminal UI owns stdout while it runs
    redirect_to_file(os.path.join(os.path.dirname(settings.db_path) or ".", "market.log"))
    _logger.info(f"Starting with database {settings.db_path}")
    app = MarketApp(settings)
    app.run()


if __name__ == "__main__":
    run()
