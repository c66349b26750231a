# login / registration / logout flows binding the gateway to the session
from __future__ import annotations

from typing import Optional

from backend import endpoints
from backend.errors import ValidationError
from backend.gateway import Gateway
from backend.models import Credentials, Registration, User
from store.cart import CartSynchronizer
from store.session import SessionState
from utils.logger import get_logger
from utils.roles import Role

_logger = get_logger(__name__)


async def login(
    gw: Gateway, session: SessionState, username: str, password: str
) -> User:
    """
    Authenticate and, on success, store the session.

    Raises ValidationError for empty input and AuthenticationError when
    the backend rejects the credentials; the session is untouched then.
    """
    username = username.strip()
    if not username or not password:
        raise ValidationError("Username and password cannot be empty!")

    user = await endpoints.login(gw, username, password)
    await session.set_session(
        user.id,
        user.username or username,
        user.role or Role.CUSTOMER,
        Credentials(username, password),
    )
    return user


async def register(gw: Gateway, profile: Registration) -> User:
    missing = [
        name
        for name in ("username", "email", "password")
        if not getattr(profile, name).strip()
    ]
    if missing:
        raise ValidationError("Make sure all required fields are filled.")
    if "@" not in profile.email:
        raise ValidationError("Please enter a valid email address.")

    user = await endpoints.register(gw, profile)
    _logger.info(f"Registered {profile.username}.")
    return user


async def logout(session: SessionState, cart: Optional[CartSynchronizer] = None) -> None:
    # clear the cart first so nothing stale is shown while the store is written
    if cart is not None:
        cart.clear()
    await session.clear_session()
