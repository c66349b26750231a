from math import ceil
from typing import Dict, List

from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.events import ScreenResume
from textual.reactive import reactive
from textual.widgets import Button, DataTable, Label, MarkdownViewer

from backend import endpoints
from backend.errors import ApiError
from backend.models import Order
from store import orders as order_store
from utils.messages import NewOrderMessage
from utils.pure import format_money, format_timestamp, generate_markdown_table, paginate
from views.base_screen import BaseScreen
from views.modal_dialog import DialogModal

PAGE_SIZE = 5


def order_markdown(order: Order) -> str:
    md = (
        f"### Order #{order.id}\n"
        f"Date: {format_timestamp(order.created_at)}  \n"
        f"Status: {order_store.order_status(order)}  \n"
    )
    if order.customer:
        md += f"Customer: {order.customer}  \n"
    if order.shipping:
        s = order.shipping
        md += f"Ship To: {s.full_name}, {s.address}, {s.city} {s.postal_code}\n"
    rows = [
        [i.product_name, i.quantity, format_money(i.price), format_money(i.price * i.quantity)]
        for i in order.items
    ]
    md += "\n" + generate_markdown_table(
        ["Product", "Qty", "Unit Price", "Line Total"], rows, ["l", "r", "r", "r"]
    )
    md += f"\n\n**Grand Total:** {format_money(order.total)}\n"

    invoice = order.invoice
    if invoice:
        md += (
            f"\n#### Invoice {invoice.invoice_number}\n"
            f"Amount due: {format_money(invoice.amount_due)}  \n"
            f"Status: {invoice.status}  \n"
            f"Due: {format_timestamp(invoice.due_date)}\n"
        )
        for r in invoice.receipts:
            md += f"- Receipt {r.receipt_number}: {format_money(r.amount_paid)}\n"
    if order.shipment:
        sh = order.shipment
        md += (
            f"\n#### Shipment\n"
            f"{sh.carrier or 'Carrier TBA'} / {sh.tracking_number}: {sh.status}  \n"
            f"Estimated delivery: {format_timestamp(sh.estimated_delivery)}\n"
        )
    return md


class MyOrdersScreen(BaseScreen):
    """
    Customers browse their orders (newest first), see invoice and
    shipment details, and pay pending invoices from the wallet.
    """

    BINDINGS = [
        Binding("fn+shift+2", "noop", "View Order Detail", show=True, key_display="⏎"),
    ]

    page_idx = reactive(1)
    page_cnt = reactive(1)

    def __init__(self) -> None:
        super().__init__()
        self._orders: List[Order] = []
        self._by_id: Dict[str, Order] = {}
        self._selected: Order | None = None

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical():
            yield MarkdownViewer(id="md-order-detail", show_table_of_contents=False)
            yield DataTable(id="table-orders")
        with Horizontal(id="hort-table-control"):
            yield Button("Refresh", id="btn-refresh")
            yield Button("<", id="btn-prev")
            yield Label("1 / 1", id="label-page")
            yield Button(">", id="btn-next")
            yield Button("Pay Invoice", id="btn-pay", variant="success", disabled=True)

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("Order", "Date", "Status", "Total")
        self.load_orders()

    def action_noop(self) -> None:
        pass

    @on(Button.Pressed, "#btn-refresh")
    @on(ScreenResume)
    @on(NewOrderMessage)
    def handle_refresh(self) -> None:
        self.load_orders()

    @work(exclusive=True, group="orders")
    async def load_orders(self) -> None:
        try:
            self._orders = await order_store.load_my_orders(
                self.app.gateway, self.app.session
            )
        except ApiError as e:
            self.notify(f"Failed to load orders: {e}", severity="error")
            self._orders = []
        self._by_id = {o.id: o for o in self._orders}
        self.page_cnt = max(ceil(len(self._orders) / PAGE_SIZE), 1)
        self.page_idx = min(self.page_idx, self.page_cnt)
        self._render_page()

    def watch_page_idx(self, _old: int, _new: int) -> None:
        if self.is_mounted:
            self._render_page()

    def _render_page(self) -> None:
        table = self.query_one(DataTable)
        table.clear()
        page = paginate(self._orders, self.page_idx, PAGE_SIZE)
        for o in page:
            table.add_row(
                o.id,
                format_timestamp(o.created_at),
                order_store.order_status(o),
                format_money(o.total),
            )
        self.query_one("#label-page", Label).update(f"{self.page_idx} / {self.page_cnt}")
        self.query_one("#btn-prev", Button).disabled = self.page_idx <= 1
        self.query_one("#btn-next", Button).disabled = self.page_idx >= self.page_cnt
        self._render_detail(page[0] if page else None)

    @on(DataTable.RowHighlighted)
    def handle_row_highlight(self, event: DataTable.RowHighlighted) -> None:
        row = event.data_table.get_row(event.row_key)
        self._render_detail(self._by_id.get(str(row[0])))

    def _render_detail(self, order: Order | None) -> None:
        self._selected = order
        pay_btn = self.query_one("#btn-pay", Button)
        viewer = self.query_one("#md-order-detail", MarkdownViewer)
        if order is None:
            pay_btn.disabled = True
            viewer.document.update("### Select an order to view its details.")
            return

        viewer.document.update(order_markdown(order))
        pay_btn.disabled = order.invoice is None or order.invoice.is_paid

    @on(Button.Pressed, "#btn-prev")
    def handle_prev(self) -> None:
        if self.page_idx > 1:
            self.page_idx -= 1

    @on(Button.Pressed, "#btn-next")
    def handle_next(self) -> None:
        if self.page_idx < self.page_cnt:
            self.page_idx += 1

    @on(Button.Pressed, "#btn-pay")
    @work(exclusive=True, group="pay")
    async def handle_pay(self) -> None:
        order = self._selected
        if order is None or order.invoice is None:
            return
        invoice = order.invoice
        if not await self.app.push_screen_wait(
            DialogModal(
                f"Pay {format_money(invoice.amount_due)} for order #{order.id}?",
                primary_text="Pay",
                secondary_text="Cancel",
                tone="positive",
            )
        ):
            return

        try:
            user = await endpoints.get_current_user(self.app.gateway)
            await order_store.pay_invoice(
                self.app.gateway, self.app.session, invoice, user.wallet
            )
        except ApiError as e:
            self.notify(str(e), severity="error")
            return

        self.notify("Payment successful! Your order is now being processed for shipment.")
        self.load_orders()
