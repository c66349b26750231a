# product management for admins: create, edit, enable/disable
from __future__ import annotations

import dataclasses
from typing import List, Optional

from backend import endpoints
from backend.errors import ValidationError
from backend.gateway import Gateway
from backend.models import Category, Product, ProductDraft
from store.session import SessionState
from utils.logger import get_logger
from utils.roles import Capability

_logger = get_logger(__name__)


def check_draft(draft: ProductDraft) -> None:
    """Raise ValidationError unless name, category, price > 0 and stock >= 0 are set."""
    if not draft.name.strip() or not draft.category:
        raise ValidationError("Name, price, stock and category are required.")
    if draft.price <= 0:
        raise ValidationError("Price must be greater than zero.")
    if draft.stock < 0:
        raise ValidationError("Stock cannot be negative.")


async def load_products(gw: Gateway, session: SessionState) -> List[Product]:
    """All products, inactive ones included."""
    session.require(Capability.MANAGE_PRODUCTS)
    return await endpoints.list_products(gw, include_inactive=True)


async def load_categories(gw: Gateway, session: SessionState) -> List[Category]:
    session.require(Capability.MANAGE_PRODUCTS)
    return await endpoints.list_categories(gw)


async def save_product(
    gw: Gateway,
    session: SessionState,
    draft: ProductDraft,
    product_id: Optional[str] = None,
) -> Product:
    """Create a product, or update `product_id` when given."""
    session.require(Capability.MANAGE_PRODUCTS)
    check_draft(draft)
    if product_id is None:
        product = await endpoints.create_product(gw, draft)
        _logger.info(f"Created product {product.id} ({product.name}).")
    else:
        product = await endpoints.update_product(gw, product_id, draft)
        _logger.info(f"Updated product {product_id}.")
    return product


async def set_active(
    gw: Gateway, session: SessionState, product: Product, active: bool
) -> Product:
    session.require(Capability.MANAGE_PRODUCTS)
    updated = await endpoints.set_product_active(gw, product.id, active)
    _logger.info(f"Product {product.id} {'enabled' if active else 'disabled'}.")
    if updated is None:
        # server sent no body, reflect the change locally
        return dataclasses.replace(product, is_active=active)
    return updated
