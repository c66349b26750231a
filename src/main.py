from typing import Dict, Optional

import httpx
from textual import on, work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.widgets import LoadingIndicator

import store.database as database
from backend.gateway import Gateway
from store import auth
from store.cart import CartSynchronizer
from store.session import Session, SessionState, SessionWatcher, identity_changed
from utils.config import Settings, load_settings
from utils.logger import get_logger
from utils.messages import (
    ModeSwitchedMessage,
    QuitRequestedMessage,
    SessionChangedMessage,
    UserLogoutMessage,
)
from utils.roles import Capability
from views.base_screen import Sidebar
from views.scr_admin_products import ProductsAdminScreen
from views.scr_all_orders import AllOrdersScreen
from views.scr_cart import CartScreen
from views.scr_catalog import CatalogScreen
from views.scr_dashboards import AnalyticsScreen, ShipmentsScreen
from views.scr_inventory import InventoryScreen
from views.scr_login import LoginScreen
from views.scr_my_orders import MyOrdersScreen

_logger = get_logger(__name__)


class ShopApp(App):
    BINDINGS = [
        Binding("ctrl+t", "switch_light", "Toggle Theme", show=True),
    ]

    MODES = {
        "catalog": CatalogScreen,
        "cart": CartScreen,
        "my_orders": MyOrdersScreen,
        "inventory": InventoryScreen,
        "products": ProductsAdminScreen,
        "all_orders": AllOrdersScreen,
        "shipments": ShipmentsScreen,
        "analytics": AnalyticsScreen,
    }

    MODE_TITLES = {
        "catalog": "Browse Products",
        "cart": "Cart",
        "my_orders": "My Orders",
        "inventory": "Inventory Management",
        "products": "Product Management",
        "all_orders": "All Orders",
        "shipments": "Shipment Dashboard",
        "analytics": "Sales Analytics",
    }

    MODE_CAPABILITIES = {
        "catalog": Capability.BROWSE_CATALOG,
        "cart": Capability.USE_CART,
        "my_orders": Capability.VIEW_OWN_ORDERS,
        "inventory": Capability.MANAGE_INVENTORY,
        "products": Capability.MANAGE_PRODUCTS,
        "all_orders": Capability.VIEW_ALL_ORDERS,
        "shipments": Capability.VIEW_SHIPMENTS,
        "analytics": Capability.VIEW_ANALYTICS,
    }

    CSS_PATH = "styles/shop.tcss"

    session: SessionState
    gateway: Gateway
    cart: CartSynchronizer

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__()
        self.settings = settings or load_settings()
        database.configure(self.settings.session_db)

        self.session = SessionState()
        self.gateway = Gateway.from_settings(self.settings, self.session, transport)
        self.cart = CartSynchronizer(self.gateway, self.session)
        self.watcher = SessionWatcher(
            self.session, self.settings.session_watch_interval
        )
        self._logging_out = False
        # (user_id, role) the current screens were built for
        self._shown_identity: tuple = (None, None)

    def compose(self) -> ComposeResult:
        yield LoadingIndicator()

    async def on_mount(self) -> None:
        self.session.subscribe(self._on_session_changed)
        await self.session.load()
        self.cart.attach()
        await self.watcher.start()
        self.main_flow()

    def menu_modes(self) -> Dict[str, str]:
        return {
            mode: self.MODE_TITLES[mode]
            for mode, cap in self.MODE_CAPABILITIES.items()
            if self.session.allows(cap)
        }

    def home_mode(self) -> str:
        # staff land on their first dashboard, everyone else on the catalog
        if self.session.snapshot.is_customer:
            return "catalog"
        for mode in self.menu_modes():
            if mode != "catalog":
                return mode
        return "catalog"

    def action_switch_light(self):
        if self.theme == "textual-dark":
            self.theme = "solarized-light"
        else:
            self.theme = "textual-dark"
        self.notify(f"Theme changed to {self.theme}")

    def _on_session_changed(self, session: Session) -> None:
        self.post_message(SessionChangedMessage(session.is_authenticated, session.identity))

    @on(SessionChangedMessage)
    def handle_session_changed(self, message: SessionChangedMessage) -> None:
        on_login_screen = isinstance(self.screen, LoginScreen)
        if message.authenticated:
            if on_login_screen:
                # logged in from another window
                self.screen.dismiss()
            elif identity_changed(self._shown_identity, message.identity):
                self.notify("Signed in as a different user.", severity="warning")
                self.main_flow()
            return
        self._shown_identity = (None, None)
        if on_login_screen:
            return
        if self._logging_out:
            self._logging_out = False
            self.notify("Logout successful.")
        else:
            self.notify("You were signed out.", severity="warning")
        self.main_flow()

    @on(UserLogoutMessage)
    @work
    async def handle_user_logout(self):
        self._logging_out = True
        await auth.logout(self.session, self.cart)

    @on(QuitRequestedMessage)
    @work
    async def handle_quit(self):
        self.cart.detach()
        await self.watcher.stop()
        await self.gateway.aclose()
        self.exit()

    @work(exclusive=True, group="main-flow")
    async def main_flow(self):
        if not self.session.is_authenticated():
            await self.push_screen_wait(LoginScreen())
        if not self.session.is_authenticated():
            return

        mode = self.home_mode()
        self._shown_identity = self.session.snapshot.identity
        if mode == self.current_mode:
            # same home screen, only the user or role changed
            for sidebar in self.screen.query(Sidebar):
                await sidebar.refresh_info()
            return
        self.post_message(ModeSwitchedMessage(self.current_mode, mode))
        await self.switch_mode(mode)


def run() -> None:
    settings = load_settings()
    _logger.debug(f"Using backend at {settings.api_url}")
    ShopApp(settings).run()


if __name__ == "__main__":
    run()
