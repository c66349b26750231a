from math import ceil
from typing import Dict, List

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.events import ScreenResume
from textual.reactive import reactive
from textual.widgets import Button, DataTable, Label, MarkdownViewer

from backend.errors import ApiError
from backend.models import Order
from store import orders as order_store
from utils.messages import NewOrderMessage
from utils.pure import format_money, format_timestamp, paginate
from views.base_screen import BaseScreen
from views.scr_my_orders import order_markdown

PAGE_SIZE = 10


class AllOrdersScreen(BaseScreen):
    """
    Every customer's orders, newest first. Admin only, read-only.
    """

    page_idx = reactive(1)
    page_cnt = reactive(1)

    def __init__(self) -> None:
        super().__init__()
        self._orders: List[Order] = []
        self._by_id: Dict[str, Order] = {}

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical():
            yield DataTable(id="table-all-orders")
            yield MarkdownViewer(id="md-all-order-detail", show_table_of_contents=False)
        with Horizontal(id="hort-table-control"):
            yield Button("Refresh", id="btn-refresh")
            yield Button("<", id="btn-prev")
            yield Label("1 / 1", id="label-page")
            yield Button(">", id="btn-next")

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("Order", "Customer", "Date", "Status", "Items", "Total")
        self.load_orders()

    @on(Button.Pressed, "#btn-refresh")
    @on(ScreenResume)
    @on(NewOrderMessage)
    def handle_refresh(self) -> None:
        self.load_orders()

    @work(exclusive=True, group="all-orders")
    async def load_orders(self) -> None:
        try:
            self._orders = await order_store.load_all_orders(
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
        for o in paginate(self._orders, self.page_idx, PAGE_SIZE):
            table.add_row(
                o.id,
                o.customer or "-",
                format_timestamp(o.created_at),
                order_store.order_status(o),
                sum(i.quantity for i in o.items),
                format_money(o.total),
            )
        self.query_one("#label-page", Label).update(f"{self.page_idx} / {self.page_cnt}")
        self.query_one("#btn-prev", Button).disabled = self.page_idx <= 1
        self.query_one("#btn-next", Button).disabled = self.page_idx >= self.page_cnt
        if not self._orders:
            self.query_one("#md-all-order-detail", MarkdownViewer).document.update(
                "### No orders yet."
            )

    @on(DataTable.RowHighlighted)
    def handle_row_highlight(self, event: DataTable.RowHighlighted) -> None:
        row = event.data_table.get_row(event.row_key)
        order = self._by_id.get(str(row[0]))
        if order is not None:
            self.query_one("#md-all-order-detail", MarkdownViewer).document.update(
                order_markdown(order)
            )

    @on(Button.Pressed, "#btn-prev")
    def handle_prev(self) -> None:
        if self.page_idx > 1:
            self.page_idx -= 1

    @on(Button.Pressed, "#btn-next")
    def handle_next(self) -> None:
        if self.page_idx < self.page_cnt:
            self.page_idx += 1
