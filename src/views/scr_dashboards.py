from textual import on, work
from textual.app import ComposeResult
from textual.containers import Vertical
from textual.events import ScreenResume
from textual.widgets import Button, MarkdownViewer, Select

from backend import endpoints
from backend.errors import ApiError
from backend.models import SalesAnalytics, ShipmentDashboard
from utils.messages import ModeSwitchedMessage, NewOrderMessage
from utils.pure import format_money, format_timestamp, generate_markdown_table
from views.base_screen import BaseScreen


def shipment_markdown(data: ShipmentDashboard) -> str:
    md = (
        "### Shipment Overview\n\n"
        f"- Total Shipments: {data.total_shipments}\n"
        f"- Pending: {data.pending_shipments}\n"
        f"- In Transit: {data.in_transit_shipments}\n"
        f"- Delivered: {data.delivered_shipments}\n\n"
    )
    if data.status_counts:
        md += "#### By Status\n\n" + generate_markdown_table(
            ["Status", "Count"],
            [[status.title(), cnt] for status, cnt in sorted(data.status_counts.items())],
            ["l", "r"],
        )
    rows = [
        [s.tracking_number, s.order_id or "-", s.carrier or "-", s.status, format_timestamp(s.created_at)]
        for s in data.recent_shipments
    ]
    if rows:
        md += "\n\n#### Recent Shipments\n\n" + generate_markdown_table(
            ["Tracking", "Order", "Carrier", "Status", "Created"], rows
        )
    return md


def analytics_markdown(data: SalesAnalytics) -> str:
    md = (
        f"### Sales Summary ({data.period_start or '?'} to {data.period_end or '?'})\n\n"
        f"- Total Orders: {data.total_orders}\n"
        f"- Total Revenue: {format_money(data.total_revenue)}\n"
        f"- Items Sold: {data.total_items_sold}\n"
        f"- Average Order Value: {format_money(data.average_order_value)}\n\n"
    )
    if data.sales_by_period:
        md += "#### Sales by Period\n\n" + generate_markdown_table(
            ["Period", "Orders", "Sales"],
            [[p, n, format_money(total)] for p, n, total in data.sales_by_period],
            ["l", "r", "r"],
        )
    if data.top_products:
        md += "\n\n#### Top Products\n\n" + generate_markdown_table(
            ["Product", "Category", "Qty", "Revenue"],
            [
                [p.product_name, p.category_name or "-", p.total_quantity, format_money(p.total_revenue)]
                for p in data.top_products
            ],
            ["l", "l", "r", "r"],
        )
    return md


class ShipmentsScreen(BaseScreen):
    """
    Shipment dashboard for admins and shipment managers.
    """

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical():
            yield MarkdownViewer(id="md-shipments", show_table_of_contents=False)
            yield Button("Refresh", id="btn-refresh")

    def on_mount(self) -> None:
        self.handle_reload()

    @on(Button.Pressed, "#btn-refresh")
    @on(ScreenResume)
    @on(ModeSwitchedMessage)
    @work(exclusive=True)
    async def handle_reload(self) -> None:
        viewer = self.query_one("#md-shipments", MarkdownViewer)
        try:
            data = await endpoints.get_shipment_dashboard(self.app.gateway)
        except ApiError as e:
            self.notify(f"Failed to load dashboard data: {e}", severity="error")
            await viewer.document.update("Failed to load dashboard data. Please try again.")
            return
        await viewer.document.update(shipment_markdown(data))


class AnalyticsScreen(BaseScreen):
    """
    Sales analytics for admins and statistics managers.
    """

    PERIODS = [("Day", "day"), ("Week", "week"), ("Month", "month"), ("Year", "year")]

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical():
            yield Select(self.PERIODS, value="month", allow_blank=False, id="select-period")
            yield MarkdownViewer(id="md-analytics", show_table_of_contents=False)

    def on_mount(self) -> None:
        self.handle_reload()

    @on(Select.Changed, "#select-period")
    @on(NewOrderMessage)
    @on(ScreenResume)
    @work(exclusive=True)
    async def handle_reload(self) -> None:
        period = self.query_one("#select-period", Select).value
        viewer = self.query_one("#md-analytics", MarkdownViewer)
        try:
            data = await endpoints.get_sales_analytics(self.app.gateway, period=str(period))
        except ApiError as e:
            self.notify(f"Failed to load analytics data: {e}", severity="error")
            await viewer.document.update("Failed to load analytics data. Please try again.")
            return
        await viewer.document.update(analytics_markdown(data))
