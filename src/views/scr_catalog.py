from math import ceil
from typing import List

from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal
from textual.reactive import reactive
from textual.widgets import Button, DataTable, Input, Label

from backend import endpoints
from backend.errors import ApiError
from backend.models import Product
from utils.pure import format_money, paginate, stock_label
from views.base_screen import BaseScreen
from views.modal_prod_detail import ProdDetailModal

PAGE_SIZE = 5


class CatalogScreen(BaseScreen):
    """
    Product catalog with server-side search; open a row for details.
    """

    # only here so they show up in the footer
    BINDINGS = [
        Binding("fn+shift+1", "noop", "View Product", show=True, key_display="⏎"),
    ]

    page_idx = reactive(1)
    page_cnt = reactive(1)

    def __init__(self):
        super().__init__()
        self._products: List[Product] = []

    def compose(self) -> ComposeResult:
        yield from super().compose()
        yield Input(
            id="input-search", placeholder="Start typing to search products..."
        )
        yield DataTable(id="table-search-result")
        with Horizontal(id="hort-table-control"):
            yield Button("<", id="btn-prev")
            yield Label("1 / 1", id="label-page")
            yield Button(">", id="btn-next")

    def on_mount(self):
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("ID", "Name", "Category", "Price", "Availability")

        self.query_one("#input-search").focus()
        self.load_products("")

    def action_noop(self) -> None:
        pass

    async def on_input_changed(self, message: Input.Changed) -> None:
        if message.input.id == "input-search":
            self.load_products(message.value.strip())

    @on(DataTable.RowSelected)
    def handle_row_selected(self, event: DataTable.RowSelected) -> None:
        product_id = str(event.data_table.get_row(event.row_key)[0])
        self.open_detail(product_id)

    @work()
    async def open_detail(self, product_id: str) -> None:
        await self.app.push_screen_wait(ProdDetailModal(product_id))

    @work(exclusive=True, group="catalog")
    async def load_products(self, query: str) -> None:
        try:
            self._products = await endpoints.list_products(
                self.app.gateway, search=query
            )
        except ApiError as e:
            self.notify(f"Failed to load products: {e}", severity="error")
            self._products = []
        self.page_cnt = max(ceil(len(self._products) / PAGE_SIZE), 1)
        self.page_idx = 1
        self._render_page()

    def watch_page_idx(self, _old: int, _new: int) -> None:
        if self.is_mounted:
            self._render_page()

    def _render_page(self) -> None:
        table = self.query_one(DataTable)
        table.clear()
        for p in paginate(self._products, self.page_idx, PAGE_SIZE):
            table.add_row(
                p.id, p.name, p.category, format_money(p.price), stock_label(p.stock)
            )
        self.query_one("#label-page", Label).update(f"{self.page_idx} / {self.page_cnt}")
        self.query_one("#btn-prev", Button).disabled = self.page_idx <= 1
        self.query_one("#btn-next", Button).disabled = self.page_idx >= self.page_cnt

    @on(Button.Pressed, "#btn-prev")
    def handle_prev(self) -> None:
        if self.page_idx > 1:
            self.page_idx -= 1

    @on(Button.Pressed, "#btn-next")
    def handle_next(self) -> None:
        if self.page_idx < self.page_cnt:
            self.page_idx += 1
