from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Container
from textual.events import Resize, ScreenResume
from textual.screen import Screen
from textual.widgets import Button, Footer, Header, Label, ListItem, ListView, Markdown

from utils.messages import CartChangedMessage, ModeSwitchedMessage, UserLogoutMessage
from utils.pure import format_money, generate_markdown_table
from utils.roles import role_label
from views.modal_dialog import DialogModal, QuitDialogModal, ResizeScreenPromptModal


class Sidebar(Container):
    """User info, cart badge, logout and the menu of modes the role may open."""

    def compose(self) -> ComposeResult:
        yield Label("User Info", id="label-info-1")
        yield Markdown("", id="md-userinfo")
        yield Label("", id="label-cart-badge")
        yield Button("Log out", id="btn-logout", variant="error")
        yield Label("Menu", id="label-info-2")
        yield ListView(id="list-menu")

    async def on_mount(self):
        self._remove_cart_listener = self.app.cart.add_listener(
            lambda _: self.post_message(CartChangedMessage())
        )
        await self.refresh_info()

    def on_unmount(self):
        self._remove_cart_listener()

    async def refresh_info(self) -> None:
        session = self.app.session
        if not session.is_authenticated():
            return

        table_rows = [
            ["User", session.current_username() or "-"],
            ["Role", role_label(session.current_role())],
        ]
        md_table_str = generate_markdown_table(None, table_rows, ["l", "l"])
        await self.query_one("#md-userinfo", Markdown).update(md_table_str)

        list_menu: ListView = self.query_one("#list-menu")
        await list_menu.clear()
        await list_menu.extend(
            [
                ListItem(Label(title), id="list-menu-item-" + mode)
                for mode, title in self.app.menu_modes().items()
            ]
        )
        self.highlight_item(self.app.current_mode)
        self.update_badge()

    @on(CartChangedMessage)
    def handle_cart_changed(self, message: CartChangedMessage) -> None:
        message.stop()
        self.update_badge()

    def update_badge(self) -> None:
        badge = self.query_one("#label-cart-badge", Label)
        cart = self.app.cart
        if not self.app.session.snapshot.is_customer:
            badge.add_class("hidden")
            return
        badge.remove_class("hidden")
        badge.update(f"Cart: {cart.item_count()} item(s), {format_money(cart.cart_total())}")

    async def on_list_view_selected(self, event: ListView.Selected):
        selected_mode = event.item.id.removeprefix("list-menu-item-")
        self.highlight_item(self.app.current_mode)
        if self.app.current_mode != selected_mode:
            self.app.post_message(
                ModeSwitchedMessage(self.app.current_mode, selected_mode)
            )
            await self.app.switch_mode(selected_mode)

    @on(Button.Pressed, "#btn-logout")
    @work()
    async def handle_logout(self):
        if not await self.app.push_screen_wait(
            DialogModal(
                "Are you sure you want to log out?",
                primary_text="Yes",
                secondary_text="No",
                tone="warning",
            )
        ):
            return

        self.app.post_message(UserLogoutMessage())

    def highlight_item(self, mode_str: str):
        list_menu = self.query_one("#list-menu")
        for item in list_menu.children:
            item.highlighted = item.id == "list-menu-item-" + mode_str


class BaseScreen(Screen):
    """
    Inherited by all screens, contains common elements like
    headers, footers, sidebar, and keybindings.
    """

    BINDINGS = [
        Binding("ctrl+z", "quit", "Quit App", show=True),
    ]

    def __init__(self):
        super().__init__()

        self.configure()

    def configure(
        self,
        header_sub_title: str = "Shop",
        show_sidebar: bool = True,
    ) -> None:
        self.app.title = "Terminal Shopfront"
        self.sub_title = header_sub_title
        for mode, screen_cls in self.app.MODES.items():
            if isinstance(self, screen_cls):
                self.sub_title = self.app.MODE_TITLES.get(mode, header_sub_title)

        self._show_sidebar = show_sidebar

    def compose(self) -> ComposeResult:
        if self._show_sidebar:
            yield Sidebar()
        yield Header()
        yield Footer(show_command_palette=False)

    async def on_resize(self, event: Resize) -> None:
        min_width = 60
        min_height = 20
        if event.size.width < min_width or event.size.height < min_height:
            self.app.push_screen(ResizeScreenPromptModal(min_width, min_height))

    @on(ScreenResume)
    async def handle_sidebar_resume(self) -> None:
        # the session may have changed while this screen was in the background
        if self._show_sidebar:
            await self.query_one(Sidebar).refresh_info()

    @work()
    async def action_quit(self):
        await self.app.push_screen_wait(QuitDialogModal())
