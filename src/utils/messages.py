from textual.message import Message


class QuitRequestedMessage(Message):
    """
    broadcasted when the app is about to quit
    """

    bubble = True


class UserLogoutMessage(Message):
    """
    posted by the sidebar when the user confirmed logging out
    """

    bubble = True


class SessionChangedMessage(Message):
    """
    Posted at App level whenever the session snapshot changes,
    including changes made by another running instance.
    """

    bubble = True

    def __init__(self, authenticated: bool, identity: tuple = (None, None)) -> None:
        super().__init__()
        self.authenticated = authenticated
        self.identity = identity


class CartChangedMessage(Message):
    """
    Posted at App level by the cart synchronizer listener after every cache
    or status change. Cart screen and sidebar badge re-render from it.
    """

    bubble = True


class NewOrderMessage(Message):
    """
    Fired when a new order is placed.
    Listened to by my orders and the dashboards
    """

    bubble = True


class ModeSwitchedMessage(Message):
    """
    fired whenever switch_mode is called
    must be fired from app level
    """

    bubble = True

    def __init__(self, old_mode: str, new_mode: str) -> None:
        super().__init__()
        self.old_mode = old_mode
        self.new_mode = new_mode
