from textual import on, work
from textual.app import ComposeResult
from textual.containers import Container, Horizontal, HorizontalGroup, VerticalScroll
from textual.events import ScreenResume
from textual.message import Message
from textual.widgets import Button, Label, Rule

from backend.errors import ApiError
from backend.models import CartItem
from store.cart import CartStatus
from utils.messages import CartChangedMessage, NewOrderMessage
from utils.pure import format_money
from views.base_screen import BaseScreen
from views.modal_checkout import CheckoutModal
from views.modal_dialog import DialogModal
from views.modal_prod_detail import ProdDetailModal


class CartItemActionEditMessage(Message):
    bubble = True


class CartItemActionRemoveMessage(Message):
    bubble = True


class CartItemActionLabel(Label):
    def action_edit(self):
        self.post_message(CartItemActionEditMessage())

    def action_remove(self):
        self.post_message(CartItemActionRemoveMessage())


class CartItemWidget(HorizontalGroup):
    def __init__(self, item: CartItem):
        super().__init__()
        self.item = item

    def compose(self):
        with Container(id="div-cart-item-group"):
            with Container(id="div-item"):
                yield Label(self.item.product_name, id="label-item-name")
                yield Label(f"x{self.item.quantity}", id="label-item-qty")
                yield Label(format_money(self.item.unit_price), id="label-item-price")
                yield Label(format_money(self.item.subtotal), id="label-item-subtotal")
            with Container(id="div-actions"):
                yield CartItemActionLabel(
                    "[@click=edit()]Edit[/]", id="link-item-edit"
                )
                yield CartItemActionLabel(
                    "[@click=remove()]Remove[/]", id="link-item-remove"
                )

    @on(CartItemActionEditMessage)
    @work()
    async def handle_edit_item(self):
        await self.app.push_screen_wait(ProdDetailModal(self.item.product))

    @on(CartItemActionRemoveMessage)
    @work()
    async def handle_remove_item(self):
        remove_confirmed = await self.app.push_screen_wait(
            DialogModal(
                "Do you really want to remove this item from cart?",
                primary_text="Yes",
                secondary_text="No",
                tone="warning",
            )
        )
        if not remove_confirmed:
            return

        try:
            await self.app.cart.remove_item(self.item.product)
        except ApiError as e:
            self.notify(str(e), severity="error")
            return
        self.notify("Item removed from cart.", severity="information")


class CartScreen(BaseScreen):
    """
    Renders the synchronizer's cache; never computes totals itself.
    """

    def compose(self) -> ComposeResult:
        yield from super().compose()
        yield VerticalScroll(id="vertscroll-content")
        yield Label("", id="label-cart-status")
        yield Label("Total Cart Value: $0.00", id="label-cart-total")
        yield Rule(line_style="dashed")
        with Horizontal(id="hort-buttons"):
            yield Button("Refresh", id="btn-refresh")
            yield Button("Checkout", id="btn-checkout", variant="primary")

    async def on_mount(self):
        self._remove_cart_listener = self.app.cart.add_listener(
            lambda _: self.post_message(CartChangedMessage())
        )
        self.render_cart()

    def on_unmount(self):
        self._remove_cart_listener()

    @on(CartChangedMessage)
    @on(ScreenResume)
    @work(exclusive=True, group="cart-render")
    async def render_cart(self) -> None:
        cart_sync = self.app.cart
        cart = cart_sync.cart
        items = list(cart.items) if cart else []

        status_label = self.query_one("#label-cart-status", Label)
        if cart_sync.status is CartStatus.LOADING:
            status_label.update("Loading cart...")
        elif cart_sync.error is not None:
            status_label.update(f"[red]{cart_sync.error}[/]")
        else:
            status_label.update("")

        content = self.query_one("#vertscroll-content")
        shown = [c.item for c in content.children]
        if shown != items:
            await content.remove_children()
            await content.mount_all([CartItemWidget(item) for item in items])
        content.set_class(not items, "no-items")

        self.query_one("#label-cart-total", Label).update(
            f"Total Cart Value: {format_money(cart_sync.cart_total())} "
            f"({cart_sync.item_count()} items)"
        )

    @on(Button.Pressed, "#btn-refresh")
    @work(exclusive=True, group="cart-refresh")
    async def handle_refresh(self) -> None:
        try:
            await self.app.cart.refresh()
        except ApiError as e:
            self.notify(f"Failed to refresh cart: {e}", severity="error")

    @on(Button.Pressed, "#btn-checkout")
    @work()
    async def handle_checkout(self) -> None:
        cart = self.app.cart.cart
        if cart is None or cart.is_empty:
            self.app.notify("Cart is empty.", severity="warning")
            return

        if await self.app.push_screen_wait(CheckoutModal()):
            self.app.post_message(NewOrderMessage())
