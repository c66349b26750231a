from textual import events, on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.reactive import reactive
from textual.screen import ModalScreen
from textual.validation import Number
from textual.widgets import Button, Input, Label, MarkdownViewer

from backend import endpoints
from backend.errors import ApiError
from backend.models import CartItem, Product
from utils.pure import format_money, generate_markdown_table, stock_label
from utils.roles import Capability


class ProdDetailModal(ModalScreen[bool]):
    """
    Product detail plus add-to-cart for customers.
    Returns True if the cart changed, False if not.
    """

    order_qty = reactive(1, init=False)

    def __init__(self, product_id: str) -> None:
        super().__init__()

        self._product_id = product_id

        self._prod: Product | None = None
        self._existing_cart_item: CartItem | None = None

    def compose(self) -> ComposeResult:
        with Horizontal(id="hort-prod-detail"):
            yield MarkdownViewer("", show_table_of_contents=False)
            with Vertical(id="div-order"):
                yield Label("Order Quantity")
                with Horizontal():
                    yield Button("-", id="btn-sub-qty")
                    yield Input(value="1", id="input-order-qty", type="integer")
                    yield Button("+", id="btn-add-qty")
                with Horizontal():
                    yield Button("Go Back", id="btn-quit")
                    yield Button("Add to Cart", id="btn-addcart", variant="primary")

    async def on_mount(self):
        try:
            self._prod = await endpoints.get_product(self.app.gateway, self._product_id)
        except ApiError as e:
            self.app.notify(f"Failed to load product: {e}", severity="error")
            self.dismiss(False)
            return
        if self._prod is None:
            self.app.notify("Product not found.", severity="error")
            self.dismiss(False)
            return

        prod = self._prod
        table_rows = [
            ["Name", prod.name],
            ["Category", prod.category or "-"],
            ["Price", format_money(prod.price)],
            ["Availability", f"{stock_label(prod.stock)} ({prod.stock})"],
            ["Description", prod.description or "-"],
        ]
        md_table_str = generate_markdown_table(
            ["Attribute", "Value"], table_rows, ["l", "l"]
        )
        header_md = f"### Product Detail: {prod.name}\n\n"
        await self.query_one(MarkdownViewer).document.update(header_md + md_table_str)

        order_btn = self.query_one("#btn-addcart", Button)
        if not self.app.session.allows(Capability.USE_CART):
            order_btn.label = "Customers only"
            order_btn.disabled = True
            self.query_one("#div-order").add_class("readonly")
            return
        if prod.stock < 1:
            order_btn.label = "Out of Stock"
            order_btn.disabled = True
            order_btn.variant = "warning"

        qty_input = self.query_one("#input-order-qty", Input)
        qty_input.validators = [Number(minimum=1, maximum=max(prod.stock, 1))]

        cart = self.app.cart.cart
        self._existing_cart_item = cart.find(prod.id) if cart else None
        if self._existing_cart_item:
            self.order_qty = self._existing_cart_item.quantity
            order_btn.label = "Update Cart"
        else:
            self.watch_order_qty(self.order_qty)

        qty_input.focus()

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(False)

    async def on_input_changed(self, message: Input.Changed) -> None:
        if (
            message.input.id == "input-order-qty"
            and message.input.is_valid
            and self.focused == message.input
        ):
            self.order_qty = int(message.value)

    def watch_order_qty(self, qty: int):
        if self._prod is None:
            return
        self.query_one("#btn-sub-qty").disabled = qty <= 1
        self.query_one("#btn-add-qty").disabled = qty >= self._prod.stock
        self.query_one("#input-order-qty", Input).value = str(qty)

    @on(Button.Pressed, "#btn-add-qty")
    def handle_add_qty(self):
        self.order_qty += 1

    @on(Button.Pressed, "#btn-sub-qty")
    def handle_sub_qty(self):
        self.order_qty -= 1

    @on(Button.Pressed, "#btn-quit")
    def handle_quit(self):
        self.dismiss(False)

    @on(Button.Pressed, "#btn-addcart")
    @work(exclusive=True)
    async def handle_addcart(self):
        cart = self.app.cart
        try:
            if self._existing_cart_item is None:
                await cart.add_item(self._prod, self.order_qty)
                self.app.notify("Item added to cart successfully.")
            else:
                await cart.update_quantity(self._prod.id, self.order_qty)
                self.app.notify("Updated cart item quantity.")
        except ApiError as e:
            # cache untouched, let the user adjust and retry
            self.app.notify(str(e), severity="error")
            return

        self.dismiss(True)
