# dataclass models for the objects the backend serves, plus their JSON parsing

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from utils.roles import Role

Json = Dict[str, Any]


def _num(val: Any, default: float = 0.0) -> float:
    # DRF serializes decimals as strings ("12.50")
    if val is None or val == "":
        return default
    return float(val)


def _id(val: Any) -> str:
    return "" if val is None else str(val)


@dataclass(frozen=True)
class Credentials:
    username: str
    secret: str


@dataclass(frozen=True)
class User:
    id: str
    username: str
    role: Optional[Role]
    email: str = ""
    first_name: str = ""
    last_name: str = ""
    wallet: Optional[float] = None

    @classmethod
    def from_json(cls, data: Json) -> "User":
        wallet = data.get("wallet")
        return cls(
            id=_id(data.get("id")),
            username=data.get("username", ""),
            role=Role.parse(data.get("role")),
            email=data.get("email") or "",
            first_name=data.get("first_name") or data.get("firstName") or "",
            last_name=data.get("last_name") or data.get("lastName") or "",
            wallet=None if wallet is None else _num(wallet),
        )


@dataclass(frozen=True)
class Registration:
    username: str
    email: str
    password: str
    first_name: str = ""
    last_name: str = ""
    phone: str = ""

    def to_json(self) -> Json:
        return {
            "username": self.username,
            "email": self.email,
            "password": self.password,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "phone": self.phone,
        }


@dataclass(frozen=True)
class Category:
    id: str
    name: str
    description: str = ""
    parent: Optional[str] = None

    @classmethod
    def from_json(cls, data: Json) -> "Category":
        parent = data.get("parentCategory", data.get("parent"))
        return cls(
            id=_id(data.get("id")),
            name=data.get("name", ""),
            description=data.get("description") or "",
            parent=None if parent is None else str(parent),
        )


@dataclass(frozen=True)
class Product:
    id: str
    name: str
    price: float
    stock: int = 0
    category: str = ""
    description: str = ""
    is_active: bool = True

    @classmethod
    def from_json(cls, data: Json) -> "Product":
        return cls(
            id=_id(data.get("id")),
            name=data.get("name", ""),
            price=_num(data.get("price")),
            stock=int(data.get("stock") or 0),
            category=_id(data.get("category_name") or data.get("category")),
            description=data.get("description") or "",
            is_active=bool(data.get("is_active", True)),
        )


@dataclass(frozen=True)
class ProductDraft:
    """Fields an admin edits when creating or updating a product."""

    name: str
    price: float
    stock: int
    category: str  # category id
    description: str = ""

    def to_json(self) -> Json:
        return {
            "name": self.name,
            "description": self.description,
            "price": f"{self.price:.2f}",
            "stock": self.stock,
            "category": self.category,
        }


@dataclass(frozen=True)
class CartItem:
    id: str
    product: str
    product_name: str
    unit_price: float  # snapshot taken when the item was added
    quantity: int
    subtotal: float

    @classmethod
    def from_json(cls, data: Json) -> "CartItem":
        return cls(
            id=_id(data.get("id")),
            product=_id(data.get("product")),
            product_name=data.get("product_name", ""),
            unit_price=_num(data.get("product_price")),
            quantity=int(data.get("quantity") or 0),
            subtotal=_num(data.get("subtotal")),
        )


@dataclass(frozen=True)
class Cart:
    id: str
    items: Tuple[CartItem, ...] = ()
    total_items: int = 0
    total: float = 0.0

    @classmethod
    def from_json(cls, data: Json) -> "Cart":
        return cls(
            id=_id(data.get("id")),
            items=tuple(CartItem.from_json(i) for i in data.get("items") or []),
            total_items=int(data.get("total_items") or 0),
            total=_num(data.get("total")),
        )

    def find(self, product_id: str) -> Optional[CartItem]:
        for item in self.items:
            if item.product == product_id:
                return item
        return None

    @property
    def is_empty(self) -> bool:
        return not self.items


@dataclass(frozen=True)
class ShippingInfo:
    full_name: str
    address: str
    city: str
    postal_code: str

    def missing_fields(self) -> List[str]:
        return [k for k, v in vars(self).items() if not str(v).strip()]

    def to_json(self) -> Json:
        return {
            "shipping_full_name": self.full_name,
            "shipping_address": self.address,
            "shipping_city": self.city,
            "shipping_postal_code": self.postal_code,
        }


@dataclass(frozen=True)
class Shipment:
    id: str
    tracking_number: str
    status: str
    carrier: str = ""
    estimated_delivery: Optional[str] = None
    actual_delivery: Optional[str] = None
    created_at: Optional[str] = None
    order_id: Optional[str] = None

    @classmethod
    def from_json(cls, data: Json) -> "Shipment":
        order_id = data.get("order_id")
        return cls(
            id=_id(data.get("id")),
            tracking_number=data.get("tracking_number", ""),
            status=data.get("status", ""),
            carrier=data.get("carrier") or "",
            estimated_delivery=data.get("estimated_delivery"),
            actual_delivery=data.get("actual_delivery"),
            created_at=data.get("created_at"),
            order_id=None if order_id is None else str(order_id),
        )


@dataclass(frozen=True)
class Receipt:
    id: str
    receipt_number: str
    amount_paid: float
    created_at: Optional[str] = None

    @classmethod
    def from_json(cls, data: Json) -> "Receipt":
        return cls(
            id=_id(data.get("id")),
            receipt_number=data.get("receipt_number", ""),
            amount_paid=_num(data.get("amount_paid")),
            created_at=data.get("created_at"),
        )


@dataclass(frozen=True)
class Invoice:
    id: str
    invoice_number: str
    amount_due: float
    status: str
    due_date: Optional[str] = None
    receipts: Tuple[Receipt, ...] = ()

    @classmethod
    def from_json(cls, data: Json) -> "Invoice":
        return cls(
            id=_id(data.get("id")),
            invoice_number=data.get("invoice_number", ""),
            amount_due=_num(data.get("amount_due")),
            status=data.get("status", ""),
            due_date=data.get("due_date"),
            receipts=tuple(Receipt.from_json(r) for r in data.get("receipts") or []),
        )

    @property
    def is_paid(self) -> bool:
        return self.status == "paid"


@dataclass(frozen=True)
class OrderItem:
    product: str
    product_name: str
    quantity: int
    price: float  # price at purchase

    @classmethod
    def from_json(cls, data: Json) -> "OrderItem":
        price = data.get("price_at_purchase", data.get("price"))
        return cls(
            product=_id(data.get("product_id") or data.get("product")),
            product_name=data.get("product_name", ""),
            quantity=int(data.get("quantity") or 0),
            price=_num(price),
        )


@dataclass(frozen=True)
class Order:
    id: str
    created_at: str
    total: float
    items: Tuple[OrderItem, ...] = ()
    status: str = ""
    payment_status: str = ""
    shipping: Optional[ShippingInfo] = None
    shipment: Optional[Shipment] = None
    invoice_id: Optional[str] = None
    customer: str = ""
    invoice: Optional[Invoice] = field(default=None, compare=False)

    @classmethod
    def from_json(cls, data: Json) -> "Order":
        shipping = None
        if data.get("shipping_address"):
            shipping = ShippingInfo(
                full_name=data.get("shipping_full_name") or "",
                address=data.get("shipping_address") or "",
                city=data.get("shipping_city") or "",
                postal_code=data.get("shipping_postal_code") or "",
            )
        shipment = data.get("shipment")
        invoice = data.get("invoice")
        invoice_id = None
        if isinstance(invoice, dict):
            invoice_id = _id(invoice.get("id"))
        elif invoice is not None:
            invoice_id = str(invoice)
        return cls(
            id=_id(data.get("id")),
            created_at=data.get("created_at") or "",
            total=_num(data.get("total")),
            items=tuple(OrderItem.from_json(i) for i in data.get("items") or []),
            status=data.get("status") or "",
            payment_status=data.get("payment_status") or "",
            shipping=shipping,
            shipment=Shipment.from_json(shipment) if shipment else None,
            invoice_id=invoice_id,
            customer=_id(data.get("user_name") or data.get("user")),
        )


@dataclass(frozen=True)
class StockUpdate:
    product_id: str
    new_stock: int
    message: str

    @classmethod
    def from_json(cls, product_id: str, data: Json) -> "StockUpdate":
        return cls(
            product_id=product_id,
            new_stock=int(data.get("new_stock") or 0),
            message=data.get("message") or "Stock updated.",
        )


@dataclass(frozen=True)
class ShipmentDashboard:
    total_shipments: int
    status_counts: Dict[str, int]
    pending_shipments: int
    in_transit_shipments: int
    delivered_shipments: int
    recent_shipments: Tuple[Shipment, ...] = ()

    @classmethod
    def from_json(cls, data: Json) -> "ShipmentDashboard":
        return cls(
            total_shipments=int(data.get("total_shipments") or 0),
            status_counts={
                str(k): int(v) for k, v in (data.get("status_counts") or {}).items()
            },
            pending_shipments=int(data.get("pending_shipments") or 0),
            in_transit_shipments=int(data.get("in_transit_shipments") or 0),
            delivered_shipments=int(data.get("delivered_shipments") or 0),
            recent_shipments=tuple(
                Shipment.from_json(s) for s in data.get("recent_shipments") or []
            ),
        )


@dataclass(frozen=True)
class TopProduct:
    product_id: str
    product_name: str
    category_name: str
    total_quantity: int
    total_revenue: float


@dataclass(frozen=True)
class SalesAnalytics:
    period_start: str
    period_end: str
    total_orders: int
    total_revenue: float
    total_items_sold: int
    average_order_value: float
    sales_by_period: Tuple[Tuple[str, int, float], ...] = ()
    top_products: Tuple[TopProduct, ...] = ()

    @classmethod
    def from_json(cls, data: Json) -> "SalesAnalytics":
        summary = data.get("summary") or {}
        return cls(
            period_start=summary.get("period_start") or "",
            period_end=summary.get("period_end") or "",
            total_orders=int(summary.get("total_orders") or 0),
            total_revenue=_num(summary.get("total_revenue")),
            total_items_sold=int(summary.get("total_items_sold") or 0),
            average_order_value=_num(summary.get("average_order_value")),
            sales_by_period=tuple(
                (
                    str(p.get("period", "")),
                    int(p.get("total_orders") or 0),
                    _num(p.get("total_sales")),
                )
                for p in data.get("sales_by_period") or []
            ),
            top_products=tuple(
                TopProduct(
                    product_id=_id(p.get("product_id")),
                    product_name=p.get("product_name", ""),
                    category_name=p.get("category_name") or "",
                    total_quantity=int(p.get("total_quantity") or 0),
                    total_revenue=_num(p.get("total_revenue")),
                )
                for p in data.get("top_products") or []
            ),
        )
