from textual import events, on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Label, MarkdownViewer, Switch

from backend.errors import ApiError
from backend.models import ShippingInfo
from store import orders as order_store
from utils.pure import format_money, generate_markdown_table
from views.modal_dialog import DialogModal

SHIPPING_INPUTS = {
    "full_name": ("Full Name", "Jane Doe"),
    "address": ("Address", "123 Main St"),
    "city": ("City", "Melbourne"),
    "postal_code": ("Postal Code", "3000"),
}


class CheckoutModal(ModalScreen[bool]):
    """
    Order summary from the cached cart plus the shipping form.
    Return True when an order was placed, False otherwise.
    """

    def compose(self) -> ComposeResult:
        with Vertical():
            yield MarkdownViewer("", show_table_of_contents=False)
            for field, (label, placeholder) in SHIPPING_INPUTS.items():
                yield Label(label)
                yield Input(placeholder=placeholder, id=f"input-{field}")
            with Horizontal(id="hort-pay-now"):
                yield Switch(value=True, id="switch-pay-now")
                yield Label("Pay now from wallet")
            with Horizontal():
                yield Button("Go Back", id="btn-quit")
                yield Button("Place Order", id="btn-submit", variant="primary")

    async def on_mount(self):
        cart = self.app.cart.cart
        items = cart.items if cart else ()
        headers = ["Product Name", "Unit Price", "Quantity", "Subtotal"]
        rows = [
            [
                item.product_name,
                format_money(item.unit_price),
                item.quantity,
                format_money(item.subtotal),
            ]
            for item in items
        ]
        md = "### Order Summary\n\n"
        md += generate_markdown_table(headers, rows, ["l", "c", "c", "c"])
        md += f"\n\n**Total:** {format_money(self.app.cart.cart_total())}"
        await self.query_one(MarkdownViewer).document.update(md)
        self.query_one("#input-full_name").focus()

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(False)

    def _shipping(self) -> ShippingInfo:
        values = {
            field: self.query_one(f"#input-{field}", Input).value.strip()
            for field in SHIPPING_INPUTS
        }
        return ShippingInfo(**values)

    @on(Button.Pressed, "#btn-submit")
    @work(exclusive=True)
    async def handle_submit(self):
        shipping = self._shipping()
        missing = shipping.missing_fields()
        if missing:
            first = self.query_one(f"#input-{missing[0]}", Input)
            first.focus()
            first.add_class("-invalid")
            self.notify("Please fill in all shipping details.", severity="error")
            return

        pay_now = self.query_one("#switch-pay-now", Switch).value
        if not await self.app.push_screen_wait(
            DialogModal(
                "Place order? This cannot be undone.",
                primary_text="Yes",
                secondary_text="No",
                tone="positive",
            )
        ):
            return

        try:
            order = await self.app.cart.checkout(shipping, pay_now)
        except ApiError as e:
            self.notify(str(e), severity="error")
            return

        self.notify(order_store.placed_message(order))
        self.dismiss(True)

    @on(Button.Pressed, "#btn-quit")
    def handle_quit(self):
        self.dismiss(False)
