from __future__ import annotations

import asyncio
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Union

from backend import endpoints
from backend.errors import ApiError, ValidationError
from backend.gateway import Gateway
from backend.models import Cart, Order, Product, ShippingInfo
from store.session import Session, SessionState
from utils.logger import get_logger
from utils.roles import Capability

_logger = get_logger(__name__)


class CartStatus(Enum):
    ANONYMOUS = "anonymous"
    NON_CUSTOMER = "non_customer"
    LOADING = "loading"
    READY = "ready"


CartListener = Callable[["CartSynchronizer"], None]


def _product_id(product: Union[Product, str]) -> str:
    return product.id if isinstance(product, Product) else str(product)


class CartSynchronizer:
    """
    Client-side cache of the logged-in customer's cart.

    The backend is authoritative: every mutation is sent first, then the
    whole cart is fetched again and replaces the cache. Nothing is
    changed locally ahead of the server.

    Follows the session: leaving the customer role clears the cache
    right away; entering it starts a fetch. Each session change bumps a
    generation counter, and a fetch that started under an older
    generation never writes the cache.
    """

    def __init__(self, gateway: Gateway, session: SessionState) -> None:
        self._gateway = gateway
        self._session = session

        self._cart: Optional[Cart] = None
        self._error: Optional[ApiError] = None
        self._status = CartStatus.ANONYMOUS
        self._generation = 0

        self._listeners: List[CartListener] = []
        self._load_task: Optional[asyncio.Task] = None
        self._unsubscribe: Optional[Callable[[], None]] = None

    # ---------------------------
    # Wiring
    # ---------------------------

    def attach(self) -> None:
        """
        Start following the session. Must be called from a running event
        loop, since entering the customer state schedules a fetch.
        """
        if self._unsubscribe is None:
            self._unsubscribe = self._session.subscribe(self.on_session_changed)
        self.on_session_changed(self._session.snapshot)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._cancel_load()

    def add_listener(self, listener: CartListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    async def wait_loaded(self) -> None:
        """Wait for the fetch started by the last session change, if any."""
        task = self._load_task
        if task is not None and not task.done():
            await asyncio.wait({task})

    # ---------------------------
    # Reads
    # ---------------------------

    @property
    def cart(self) -> Optional[Cart]:
        return self._cart

    @property
    def error(self) -> Optional[ApiError]:
        return self._error

    @property
    def status(self) -> CartStatus:
        return self._status

    def item_count(self) -> int:
        return self._cart.total_items if self._cart is not None else 0

    def cart_total(self) -> float:
        return self._cart.total if self._cart is not None else 0.0

    # ---------------------------
    # Session transitions
    # ---------------------------

    def on_session_changed(self, session: Session) -> None:
        self._generation += 1
        self._cancel_load()
        self._cart = None
        self._error = None

        if not session.is_authenticated:
            self._set_status(CartStatus.ANONYMOUS)
        elif not session.is_customer:
            self._set_status(CartStatus.NON_CUSTOMER)
        else:
            self._set_status(CartStatus.LOADING)
            self._load_task = asyncio.create_task(
                self._background_load(self._generation)
            )

    async def _background_load(self, generation: int) -> None:
        try:
            await self._fetch(generation)
        except ApiError as e:
            # already recorded on self.error, no automatic retry
            _logger.warning(f"Initial cart load failed: {e}")

    def _cancel_load(self) -> None:
        if self._load_task is not None and not self._load_task.done():
            self._load_task.cancel()
        self._load_task = None

    # ---------------------------
    # Operations
    # ---------------------------

    async def add_item(
        self, product: Union[Product, str], quantity: int = 1
    ) -> Optional[Cart]:
        generation = self._require(Capability.USE_CART)
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1.")
        product_id = _product_id(product)
        return await self._mutate(
            generation,
            lambda: endpoints.add_cart_item(self._gateway, product_id, quantity),
        )

    async def update_quantity(
        self, product: Union[Product, str], quantity: int
    ) -> Optional[Cart]:
        """Set the quantity of a line; zero or less removes it instead."""
        generation = self._require(Capability.USE_CART)
        product_id = _product_id(product)
        if quantity <= 0:
            return await self.remove_item(product_id)
        return await self._mutate(
            generation,
            lambda: endpoints.update_cart_item(self._gateway, product_id, quantity),
        )

    async def remove_item(self, product: Union[Product, str]) -> Optional[Cart]:
        generation = self._require(Capability.USE_CART)
        product_id = _product_id(product)
        return await self._mutate(
            generation,
            lambda: endpoints.remove_cart_item(self._gateway, product_id),
        )

    async def refresh(self) -> Optional[Cart]:
        generation = self._require(Capability.USE_CART)
        return await self._fetch(generation)

    def clear(self) -> None:
        """Drop the cached cart and error locally. Nothing is sent."""
        self._generation += 1
        self._cancel_load()
        self._cart = None
        self._error = None
        session = self._session.snapshot
        if not session.is_authenticated:
            self._set_status(CartStatus.ANONYMOUS)
        elif not session.is_customer:
            self._set_status(CartStatus.NON_CUSTOMER)
        else:
            self._set_status(CartStatus.READY)

    async def checkout(self, shipping: ShippingInfo, pay_now: bool) -> Order:
        """
        Place an order for the current cart, then refresh.

        The order is returned even if the refresh afterwards fails; that
        failure only ends up on self.error.
        """
        generation = self._require(Capability.PLACE_ORDER)
        if self._cart is None or self._cart.is_empty:
            raise ValidationError("Your cart is empty.")
        missing = shipping.missing_fields()
        if missing:
            raise ValidationError(
                f"Missing shipping details: {', '.join(f.replace('_', ' ') for f in missing)}."
            )

        try:
            order = await endpoints.place_order(self._gateway, shipping, pay_now)
        except ApiError as e:
            self._record_error(generation, e)
            raise
        _logger.info(f"Order {order.id} placed (pay_now={pay_now}).")

        try:
            await self._fetch(generation)
        except ApiError as e:
            _logger.warning(f"Cart refresh after checkout failed: {e}")
        return order

    # ---------------------------
    # Internals
    # ---------------------------

    def _require(self, capability: Capability) -> int:
        self._session.require(capability)
        return self._generation

    async def _mutate(
        self, generation: int, call: Callable[[], Awaitable[object]]
    ) -> Optional[Cart]:
        try:
            await call()
        except ApiError as e:
            self._record_error(generation, e)
            raise
        if generation != self._generation:
            # the session changed while the call was in flight
            return self._cart
        return await self._fetch(generation)

    async def _fetch(self, generation: int) -> Optional[Cart]:
        if generation != self._generation:
            return self._cart
        self._set_status(CartStatus.LOADING)
        try:
            cart = await endpoints.fetch_cart(self._gateway)
        except ApiError as e:
            # keep whatever was cached, a transient failure should not empty the cart
            self._record_error(generation, e)
            if generation == self._generation:
                self._set_status(CartStatus.READY)
            raise

        if generation != self._generation:
            _logger.debug("Dropping cart fetched for a previous session.")
            return self._cart

        self._cart = cart
        self._error = None
        self._set_status(CartStatus.READY)
        return cart

    def _record_error(self, generation: int, error: ApiError) -> None:
        if generation != self._generation:
            return
        _logger.warning(f"Cart operation failed: {error}")
        self._error = error
        self._notify()

    def _set_status(self, status: CartStatus) -> None:
        if status is not self._status:
            _logger.debug(f"Cart {self._status.value} -> {status.value}")
        self._status = status
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                _logger.exception(f"Cart listener {listener!r} failed")
