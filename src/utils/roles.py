# role enumeration and the role -> capability lookup table
from __future__ import annotations

from enum import Enum, StrEnum
from typing import Dict, FrozenSet, Optional


class Role(StrEnum):
    CUSTOMER = "customer"
    ADMIN = "admin"
    INVENTORY_MANAGER = "inventory_manager"
    SHIPMENT_MANAGER = "shipment_manager"
    STATISTICS_MANAGER = "statistics_manager"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["Role"]:
        """Map a stored/served role string to a Role; unknown or empty gives None."""
        if not value:
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


class Capability(Enum):
    BROWSE_CATALOG = "browse_catalog"
    USE_CART = "use_cart"
    PLACE_ORDER = "place_order"
    VIEW_OWN_ORDERS = "view_own_orders"
    PAY_INVOICE = "pay_invoice"
    MANAGE_PRODUCTS = "manage_products"
    MANAGE_INVENTORY = "manage_inventory"
    VIEW_SHIPMENTS = "view_shipments"
    VIEW_ANALYTICS = "view_analytics"
    VIEW_ALL_ORDERS = "view_all_orders"


_COMMON = frozenset({Capability.BROWSE_CATALOG})

CAPABILITIES: Dict[Role, FrozenSet[Capability]] = {
    Role.CUSTOMER: _COMMON
    | {
        Capability.USE_CART,
        Capability.PLACE_ORDER,
        Capability.VIEW_OWN_ORDERS,
        Capability.PAY_INVOICE,
    },
    Role.ADMIN: _COMMON
    | {
        Capability.MANAGE_PRODUCTS,
        Capability.MANAGE_INVENTORY,
        Capability.VIEW_SHIPMENTS,
        Capability.VIEW_ANALYTICS,
        Capability.VIEW_ALL_ORDERS,
    },
    Role.INVENTORY_MANAGER: _COMMON | {Capability.MANAGE_INVENTORY},
    Role.SHIPMENT_MANAGER: _COMMON | {Capability.VIEW_SHIPMENTS},
    Role.STATISTICS_MANAGER: _COMMON | {Capability.VIEW_ANALYTICS},
}

_LABELS = {
    Role.CUSTOMER: "Customer",
    Role.ADMIN: "Administrator",
    Role.INVENTORY_MANAGER: "Inventory Manager",
    Role.SHIPMENT_MANAGER: "Shipment Manager",
    Role.STATISTICS_MANAGER: "Statistics Manager",
}


def can(role: Optional[Role], capability: Capability) -> bool:
    if role is None:
        return False
    return capability in CAPABILITIES.get(role, frozenset())


def role_label(role: Optional[Role]) -> str:
    # an unset role reads as customer but grants nothing (see can())
    return _LABELS.get(role, _LABELS[Role.CUSTOMER])
