# src/backend/endpoints.py
# one coroutine per REST operation; all of them go through the Gateway
from __future__ import annotations

from typing import Callable, List, Optional, TypeVar

from backend import models
from backend.errors import (
    ApiError,
    AuthenticationError,
    AuthorizationError,
    NotFoundError,
    ValidationError,
)
from backend.gateway import Gateway

T = TypeVar("T")


def _parse(parser: Callable[..., T], payload) -> T:
    """Run a model parser; a body of the wrong shape becomes an ApiError."""
    try:
        return parser(payload)
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise ApiError("Invalid response from server") from e


def _parse_list(parser: Callable[..., T], payload) -> List[T]:
    return _parse(lambda p: [parser(item) for item in _results(p)], payload)


def _results(payload) -> list:
    """Accept both a bare list and a paginated {"results": [...]} body."""
    if payload is None:
        return []
    if isinstance(payload, dict):
        return payload.get("results") or []
    return list(payload)


def _unwrap(payload, key: str) -> dict:
    # some deployments wrap the object: {"user": {...}}, {"order": {...}}
    return payload.get(key, payload) if isinstance(payload, dict) else {}


# ---------------------------
# Auth & Registration
# ---------------------------


async def login(gw: Gateway, username: str, password: str) -> models.User:
    """Return the authenticated User; AuthenticationError if rejected."""
    try:
        payload = await gw.post(
            "auth/login/", {"username": username, "password": password}
        )
    except (AuthorizationError, ValidationError, NotFoundError) as e:
        raise AuthenticationError(
            e.message or "Invalid username or password", e.status
        ) from e
    data = _unwrap(payload, "user")
    if not data.get("id"):
        raise AuthenticationError("Login response did not include a user.")
    return _parse(models.User.from_json, data)


async def register(gw: Gateway, profile: models.Registration) -> models.User:
    payload = await gw.post("auth/register/", profile.to_json())
    return _parse(models.User.from_json, _unwrap(payload, "user"))


async def get_current_user(gw: Gateway) -> models.User:
    return _parse(models.User.from_json, await gw.get("users/me/"))


# ---------------------------
# Products & Categories
# ---------------------------


async def list_products(
    gw: Gateway,
    search: str = "",
    category: Optional[str] = None,
    include_inactive: bool = False,
) -> List[models.Product]:
    params = {}
    if search:
        params["search"] = search
    if category:
        params["category"] = category
    if include_inactive:
        params["include_inactive"] = "true"
    payload = await gw.get("products/", params=params or None)
    return _parse_list(models.Product.from_json, payload)


async def get_product(gw: Gateway, product_id: str) -> Optional[models.Product]:
    try:
        payload = await gw.get(f"products/{product_id}/")
    except NotFoundError:
        return None
    return _parse(models.Product.from_json, payload)


async def create_product(gw: Gateway, draft: models.ProductDraft) -> models.Product:
    payload = await gw.post("products/", draft.to_json())
    return _parse(models.Product.from_json, payload)


async def update_product(
    gw: Gateway, product_id: str, draft: models.ProductDraft
) -> models.Product:
    payload = await gw.patch(f"products/{product_id}/", draft.to_json())
    return _parse(models.Product.from_json, payload)


async def set_product_active(
    gw: Gateway, product_id: str, active: bool
) -> Optional[models.Product]:
    """Enable or disable a product; returns the updated product if the server sends it."""
    action = "enable" if active else "disable"
    payload = await gw.post(f"products/{product_id}/{action}/")
    if not isinstance(payload, dict) or not payload.get("id"):
        return None
    return _parse(models.Product.from_json, payload)


async def list_categories(gw: Gateway) -> List[models.Category]:
    payload = await gw.get("categories/")
    return _parse_list(models.Category.from_json, payload)


async def update_product_stock(
    gw: Gateway, product_id: str, amount: int
) -> models.StockUpdate:
    """Adjust stock by `amount` (negative to reduce)."""
    payload = await gw.post(
        f"products/{product_id}/update_stock/", {"amount": amount}
    )
    return _parse(lambda p: models.StockUpdate.from_json(product_id, p), payload or {})


# ---------------------------
# Cart
# ---------------------------


async def fetch_cart(gw: Gateway) -> Optional[models.Cart]:
    """Return the user's cart, or None if the backend has not created one yet."""
    try:
        payload = await gw.get("cart/")
    except NotFoundError:
        return None
    if not payload:
        return None
    return _parse(models.Cart.from_json, payload)


async def add_cart_item(
    gw: Gateway, product_id: str, quantity: int
) -> Optional[models.CartItem]:
    payload = await gw.post(
        "cart/add_item/", {"product_id": product_id, "quantity": quantity}
    )
    return _parse(models.CartItem.from_json, payload) if payload else None


async def update_cart_item(
    gw: Gateway, product_id: str, quantity: int
) -> Optional[models.CartItem]:
    payload = await gw.put(
        "cart/update_item/", {"product_id": product_id, "quantity": quantity}
    )
    return _parse(models.CartItem.from_json, payload) if payload else None


async def remove_cart_item(gw: Gateway, product_id: str) -> None:
    await gw.delete("cart/remove_item/", json={"product_id": product_id})


# ---------------------------
# Orders, Invoices & Payments
# ---------------------------


async def place_order(
    gw: Gateway, shipping: models.ShippingInfo, pay_now: bool
) -> models.Order:
    body = shipping.to_json()
    body["pay_now"] = pay_now
    payload = await gw.post("orders/", body)
    return _parse(models.Order.from_json, _unwrap(payload, "order"))


async def list_my_orders(gw: Gateway) -> List[models.Order]:
    payload = await gw.get("orders/my_orders/")
    return _parse_list(models.Order.from_json, payload)


async def list_all_orders(gw: Gateway) -> List[models.Order]:
    payload = await gw.get("orders/")
    return _parse_list(models.Order.from_json, payload)


async def get_order_invoice(gw: Gateway, order_id: str) -> Optional[models.Invoice]:
    try:
        payload = await gw.get(f"orders/{order_id}/invoice/")
    except NotFoundError:
        return None
    return _parse(models.Invoice.from_json, payload) if payload else None


async def pay_invoice(gw: Gateway, invoice_id: str) -> Optional[models.Receipt]:
    payload = await gw.post(f"invoices/{invoice_id}/pay/")
    if isinstance(payload, dict) and payload.get("receipt"):
        return _parse(models.Receipt.from_json, payload["receipt"])
    return None


# ---------------------------
# Dashboards
# ---------------------------


async def get_shipment_dashboard(gw: Gateway) -> models.ShipmentDashboard:
    payload = await gw.get("shipments/dashboard/")
    return _parse(models.ShipmentDashboard.from_json, payload or {})


async def get_sales_analytics(
    gw: Gateway,
    period: str = "month",
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
) -> models.SalesAnalytics:
    params = {"period": period}
    if start_date:
        params["start_date"] = start_date
    if end_date:
        params["end_date"] = end_date
    payload = await gw.get("analytics/sales/", params=params)
    return _parse(models.SalesAnalytics.from_json, payload or {})
