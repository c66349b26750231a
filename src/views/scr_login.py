from textual import on, work
from textual.app import ComposeResult
from textual.containers import Container, Horizontal, Vertical
from textual.events import Key
from textual.widgets import Button, Input, Label, TabbedContent, TabPane

from backend.errors import ApiError
from backend.models import Registration
from store import auth
from views.base_screen import BaseScreen
from views.modal_dialog import QuitDialogModal, SimpleDialogModal


class LoginScreen(BaseScreen):
    """
    Login and sign up. Stays up until the app sees an authenticated session,
    whether it was stored here or by another running instance.
    """

    def __init__(self):
        super().__init__()
        self.configure(header_sub_title="Login", show_sidebar=False)

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with TabbedContent(id="super-tab-loginscr"):
            with TabPane("Login", id="tab-login"):
                with Vertical(id="div-login"):
                    yield Label("Username")
                    yield Input(placeholder="jane", id="input-login-username")
                    yield Label("Password")
                    yield Input(
                        placeholder="*********", password=True, id="input-login-pwd"
                    )
                    with Horizontal(id="div-login-btns"):
                        yield Button("Quit", id="btn-quit")
                        yield Button("Login", id="btn-login", variant="primary")

            with TabPane("Sign up", id="tab-signup"):
                with Vertical(id="div-reg"):
                    yield Label("Username")
                    yield Input(placeholder="jane", id="input-reg-username")
                    with Horizontal(id="div-reg-names"):
                        yield Input(placeholder="First name", id="input-reg-first")
                        yield Input(placeholder="Last name", id="input-reg-last")
                    yield Label("Email")
                    yield Input(placeholder="user@example.com", id="input-reg-email")
                    yield Label("Phone (optional)")
                    yield Input(placeholder="0400 000 000", id="input-reg-phone")
                    yield Label("Password")
                    yield Input(
                        placeholder="*********", password=True, id="input-reg-pwd"
                    )
                    with Container(id="div-reg-btns"):
                        yield Button("Register", id="btn-reg", variant="primary")

    def on_mount(self):
        self.query_one("#input-login-username").focus()

    def on_key(self, event: Key) -> None:
        if event.key == "enter" and self.focused == self.query_one("#input-login-pwd"):
            self.handle_login_submit()
        if event.key == "enter" and self.focused == self.query_one("#input-reg-pwd"):
            self.handle_registration_submit()

    def _value(self, selector: str) -> str:
        return self.query_one(selector, Input).value.strip()

    @on(Button.Pressed, "#btn-login")
    @work(exclusive=True)
    async def handle_login_submit(self) -> None:
        username = self._value("#input-login-username")
        pwd = self._value("#input-login-pwd")

        try:
            user = await auth.login(self.app.gateway, self.app.session, username, pwd)
        except ApiError as e:
            self.notify(str(e) or "Invalid username or password.", severity="error")
            input_login_pwd = self.query_one("#input-login-pwd", Input)
            input_login_pwd.value = ""
            input_login_pwd.focus()
            input_login_pwd.add_class("-invalid")
            return

        # the app dismisses this screen when it sees the new session
        self.app.notify(f"Hello {user.username or username}!")

    @on(Button.Pressed, "#btn-reg")
    @work(exclusive=True)
    async def handle_registration_submit(self) -> None:
        profile = Registration(
            username=self._value("#input-reg-username"),
            email=self._value("#input-reg-email"),
            password=self._value("#input-reg-pwd"),
            first_name=self._value("#input-reg-first"),
            last_name=self._value("#input-reg-last"),
            phone=self._value("#input-reg-phone"),
        )

        try:
            await auth.register(self.app.gateway, profile)
        except ApiError as e:
            self.notify(
                str(e) or "Registration failed. Please try again.", severity="error"
            )
            return

        await self.app.push_screen_wait(
            SimpleDialogModal("Registration successful! Please login.")
        )

        self.get_child_by_type(TabbedContent).active = "tab-login"
        self.query_one("#input-login-username", Input).value = profile.username
        input_login_pwd = self.query_one("#input-login-pwd", Input)
        input_login_pwd.value = profile.password
        input_login_pwd.focus()

    @on(Button.Pressed, "#btn-quit")
    def handle_quit_(self) -> None:
        self.app.push_screen(QuitDialogModal())
