from __future__ import annotations

from typing import Dict, List, Optional

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.validation import Integer
from textual.widgets import Button, Checkbox, Input, Label, MarkdownViewer, OptionList
from textual.widgets.option_list import Option

from backend import endpoints
from backend.errors import ApiError
from backend.models import Product
from utils.pure import format_money, generate_markdown_table, stock_label
from utils.roles import Capability
from views.base_screen import BaseScreen


class InventoryScreen(BaseScreen):
    """
    Inventory and admin users search products and adjust stock by a delta.
    """

    current_id: Optional[str] = None

    def __init__(self) -> None:
        super().__init__()
        self._products: Dict[str, Product] = {}

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical():
            with Horizontal(id="hort-search"):
                yield Input(id="input-search", placeholder="Search by name or category...")
                yield Checkbox("Show inactive", id="chk-inactive")
            yield OptionList(id="optlist-prods")
            yield MarkdownViewer(id="md-prod", show_table_of_contents=False)
            with Horizontal(id="hort-controls"):
                with Vertical():
                    yield Label("Stock change (+/-):")
                    yield Input(
                        placeholder="e.g. 10 or -3",
                        id="input-stock-delta",
                        type="integer",
                        validators=[Integer()],
                    )
                yield Button("Update", id="btn-update", variant="success")

    def on_mount(self) -> None:
        self.query_one("#input-search", Input).focus()
        self.query_one("#md-prod").add_class("hidden")
        self.query_one("#hort-controls").add_class("hidden")
        self.update_optlist("")

    def on_input_changed(self, message: Input.Changed) -> None:
        if message.input.id == "input-search":
            self.query_one("#optlist-prods").remove_class("hidden")
            self.update_optlist(message.value)

    @on(Checkbox.Changed, "#chk-inactive")
    def handle_inactive_toggle(self) -> None:
        self.update_optlist(self.query_one("#input-search", Input).value)

    def on_option_list_option_selected(self, message: OptionList.OptionSelected):
        self.current_id = message.option.id
        self.render_product()

        self.query_one("#optlist-prods").add_class("hidden")
        self.query_one("#md-prod").remove_class("hidden")
        self.query_one("#hort-controls").remove_class("hidden")

    @work(exclusive=True, group="inventory-search")
    async def update_optlist(self, query: str):
        include_inactive = self.query_one("#chk-inactive", Checkbox).value
        try:
            results: List[Product] = await endpoints.list_products(
                self.app.gateway, search=query.strip(), include_inactive=include_inactive
            )
        except ApiError as e:
            self.notify(f"Failed to load products: {e}", severity="error")
            return

        if not include_inactive:
            results = [p for p in results if p.is_active]
        self._products = {p.id: p for p in results}

        opt_list = self.query_one("#optlist-prods", OptionList)
        opt_list.clear_options()
        opt_list.add_options(
            [Option(f"{p.name}  [{p.stock}]", id=p.id) for p in results]
        )

    @work(exclusive=True, group="inventory-detail")
    async def render_product(self) -> None:
        try:
            prod = await endpoints.get_product(self.app.gateway, self.current_id)
        except ApiError as e:
            self.notify(f"Failed to load product: {e}", severity="error")
            return
        if prod is None:
            self.notify("Product no longer exists.", severity="warning")
            return
        self._products[prod.id] = prod

        rows = [
            ["Name", prod.name],
            ["Category", prod.category or "-"],
            ["Price", format_money(prod.price)],
            ["Stock", f"{prod.stock} ({stock_label(prod.stock)})"],
            ["Active", "yes" if prod.is_active else "no"],
        ]
        md_table = generate_markdown_table(["Attribute", "Value"], rows, ["l", "l"])
        await self.query_one("#md-prod", MarkdownViewer).document.update(
            f"### Product Detail: {prod.name}\n\n" + md_table
        )
        self.query_one("#input-stock-delta", Input).value = ""

    @on(Button.Pressed, "#btn-update")
    @work(exclusive=True, group="inventory-update")
    async def handle_update(self) -> None:
        if not self.app.session.allows(Capability.MANAGE_INVENTORY):
            self.notify("You don't have permission to change stock.", severity="error")
            return

        delta_input = self.query_one("#input-stock-delta", Input)
        raw = delta_input.value.strip()
        if not raw or not delta_input.is_valid or int(raw) == 0:
            delta_input.focus()
            delta_input.add_class("-invalid")
            self.notify("Please enter a valid amount", severity="error")
            return

        try:
            result = await endpoints.update_product_stock(
                self.app.gateway, self.current_id, int(raw)
            )
        except ApiError as e:
            self.notify(f"Failed to update stock: {e}", severity="error")
            return

        self.notify(result.message)
        self.render_product()
