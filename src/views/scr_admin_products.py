from __future__ import annotations

from typing import Dict, List, Optional

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.events import ScreenResume
from textual.validation import Integer, Number
from textual.widgets import Button, Input, Label, OptionList, Select
from textual.widgets.option_list import Option

from backend.errors import ApiError
from backend.models import Category, Product, ProductDraft
from store import catalog
from utils.pure import format_money
from views.base_screen import BaseScreen


class ProductsAdminScreen(BaseScreen):
    """
    Admins create products, edit them and switch them on or off.
    Inactive products stay listed here.
    """

    current_id: Optional[str] = None

    def __init__(self) -> None:
        super().__init__()
        self._products: Dict[str, Product] = {}
        self._categories: List[Category] = []

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Horizontal(id="hort-admin-products"):
            with Vertical(id="div-admin-list"):
                yield Input(id="input-search", placeholder="Filter products...")
                yield OptionList(id="optlist-admin-prods")
                yield Button("New product", id="btn-new")
            with Vertical(id="div-admin-form"):
                yield Label("New product", id="label-form-title")
                yield Input(placeholder="Name", id="input-name")
                yield Input(placeholder="Description", id="input-desc")
                with Horizontal(id="hort-price-stock"):
                    yield Input(
                        placeholder="Price",
                        id="input-price",
                        type="number",
                        validators=[Number(minimum=0.01)],
                    )
                    yield Input(
                        placeholder="Stock",
                        id="input-stock",
                        type="integer",
                        validators=[Integer(minimum=0)],
                    )
                yield Select([], prompt="Category", id="select-category")
                with Horizontal(id="hort-controls"):
                    yield Button("Disable", id="btn-toggle", variant="warning")
                    yield Button("Save", id="btn-save", variant="success")

    def on_mount(self) -> None:
        self.query_one("#btn-toggle").add_class("hidden")
        self.load_categories()
        self.load_products()

    @on(ScreenResume)
    def handle_resume(self) -> None:
        self.load_products()

    @on(Input.Changed, "#input-search")
    def handle_search(self) -> None:
        self._render_list()

    @work(exclusive=True, group="admin-categories")
    async def load_categories(self) -> None:
        try:
            self._categories = await catalog.load_categories(
                self.app.gateway, self.app.session
            )
        except ApiError as e:
            self.notify(f"Failed to load categories: {e}", severity="error")
            return
        self.query_one("#select-category", Select).set_options(
            [(c.name, c.id) for c in self._categories]
        )

    @work(exclusive=True, group="admin-products")
    async def load_products(self) -> None:
        try:
            products = await catalog.load_products(self.app.gateway, self.app.session)
        except ApiError as e:
            self.notify(f"Failed to load products: {e}", severity="error")
            return
        self._products = {p.id: p for p in products}
        self._render_list()

    def _render_list(self) -> None:
        query = self.query_one("#input-search", Input).value.strip().lower()
        opt_list = self.query_one("#optlist-admin-prods", OptionList)
        opt_list.clear_options()
        for p in self._products.values():
            if query and query not in p.name.lower():
                continue
            label = f"{p.name}  {format_money(p.price)}  [{p.stock}]"
            if not p.is_active:
                label += "  (inactive)"
            opt_list.add_option(Option(label, id=p.id))

    @on(OptionList.OptionSelected, "#optlist-admin-prods")
    def handle_select(self, message: OptionList.OptionSelected) -> None:
        product = self._products.get(message.option.id)
        if product is not None:
            self._fill_form(product)

    @on(Button.Pressed, "#btn-new")
    def handle_new(self) -> None:
        self._fill_form(None)
        self.query_one("#input-name", Input).focus()

    def _fill_form(self, product: Optional[Product]) -> None:
        self.current_id = product.id if product else None
        self.query_one("#input-name", Input).value = product.name if product else ""
        self.query_one("#input-desc", Input).value = product.description if product else ""
        self.query_one("#input-price", Input).value = f"{product.price:.2f}" if product else ""
        self.query_one("#input-stock", Input).value = str(product.stock) if product else ""

        select = self.query_one("#select-category", Select)
        # products carry either the category id or its name
        match = next(
            (
                c
                for c in self._categories
                if product and product.category in (c.id, c.name)
            ),
            None,
        )
        if match is not None:
            select.value = match.id
        else:
            select.clear()

        title = f"Edit: {product.name}" if product else "New product"
        self.query_one("#label-form-title", Label).update(title)
        toggle = self.query_one("#btn-toggle", Button)
        toggle.set_class(product is None, "hidden")
        if product is not None:
            toggle.label = "Disable" if product.is_active else "Enable"

    def _read_draft(self) -> Optional[ProductDraft]:
        inputs = [
            self.query_one(f"#{i}", Input)
            for i in ("input-name", "input-price", "input-stock")
        ]
        for widget in inputs:
            widget.remove_class("-invalid")
        name_input, price_input, stock_input = inputs
        category = self.query_one("#select-category", Select).value

        invalid = [w for w in inputs if not w.value.strip() or not w.is_valid]
        if invalid or category is Select.BLANK:
            for widget in invalid:
                widget.add_class("-invalid")
            self.notify("Name, price, stock and category are required.", severity="error")
            return None
        return ProductDraft(
            name=name_input.value.strip(),
            description=self.query_one("#input-desc", Input).value.strip(),
            price=float(price_input.value),
            stock=int(stock_input.value),
            category=str(category),
        )

    @on(Button.Pressed, "#btn-save")
    @work(exclusive=True, group="admin-save")
    async def handle_save(self) -> None:
        draft = self._read_draft()
        if draft is None:
            return
        creating = self.current_id is None
        try:
            product = await catalog.save_product(
                self.app.gateway, self.app.session, draft, self.current_id
            )
        except ApiError as e:
            self.notify(f"Failed to save product: {e}", severity="error")
            return
        self._products[product.id] = product
        self._render_list()
        self._fill_form(product)
        self.notify("Product added!" if creating else "Product updated!")

    @on(Button.Pressed, "#btn-toggle")
    @work(exclusive=True, group="admin-toggle")
    async def handle_toggle(self) -> None:
        product = self._products.get(self.current_id or "")
        if product is None:
            return
        try:
            product = await catalog.set_active(
                self.app.gateway, self.app.session, product, not product.is_active
            )
        except ApiError as e:
            self.notify(f"Failed to update product: {e}", severity="error")
            return
        self._products[product.id] = product
        self._render_list()
        self._fill_form(product)
        self.notify("Product enabled!" if product.is_active else "Product disabled!")
