from __future__ import annotations

import asyncio
import dataclasses
from typing import List, Optional

from backend import endpoints
from backend.errors import ValidationError
from backend.gateway import Gateway
from backend.models import Invoice, Order, Receipt
from store.session import SessionState
from utils.logger import get_logger
from utils.roles import Capability

_logger = get_logger(__name__)


async def load_my_orders(gw: Gateway, session: SessionState) -> List[Order]:
    """The customer's orders, newest first, with their invoices attached."""
    session.require(Capability.VIEW_OWN_ORDERS)
    orders = await endpoints.list_my_orders(gw)

    async def with_invoice(order: Order) -> Order:
        if not order.invoice_id:
            return order
        invoice = await endpoints.get_order_invoice(gw, order.id)
        return dataclasses.replace(order, invoice=invoice) if invoice else order

    orders = list(await asyncio.gather(*(with_invoice(o) for o in orders)))
    # created_at is ISO-8601, so string order is time order
    orders.sort(key=lambda o: o.created_at, reverse=True)
    return orders


async def load_all_orders(gw: Gateway, session: SessionState) -> List[Order]:
    session.require(Capability.VIEW_ALL_ORDERS)
    orders = await endpoints.list_all_orders(gw)
    orders.sort(key=lambda o: o.created_at, reverse=True)
    return orders


async def pay_invoice(
    gw: Gateway, session: SessionState, invoice: Invoice, wallet: Optional[float]
) -> Optional[Receipt]:
    """
    Pay an invoice from the wallet.

    The balance is checked here first so an obviously short wallet never
    reaches the backend.
    """
    session.require(Capability.PAY_INVOICE)
    if invoice.is_paid:
        raise ValidationError("This invoice has already been paid.")
    if wallet is None:
        raise ValidationError(
            "Unable to process payment. User wallet information not available."
        )
    if wallet < invoice.amount_due:
        raise ValidationError(
            f"Insufficient wallet balance. Required: ${invoice.amount_due:.2f}, "
            f"Available: ${wallet:.2f}"
        )

    receipt = await endpoints.pay_invoice(gw, invoice.id)
    _logger.info(f"Invoice {invoice.invoice_number} paid.")
    return receipt


def order_status(order: Order) -> str:
    if order.payment_status == "paid":
        return "Paid"
    if order.invoice is not None and order.invoice.is_paid:
        return "Paid"
    if order.payment_status == "pending" or (
        order.invoice is not None and order.invoice.status == "pending"
    ):
        return "Payment Pending"
    if order.status:
        return order.status.replace("_", " ").title()
    return "Processing"


def placed_message(order: Order) -> str:
    """Confirmation for a fresh order, based on what the server reports as paid."""
    if order_status(order) == "Paid":
        return f"Order #{order.id} placed and paid."
    return f"Order #{order.id} placed. Pay the invoice from My Orders."
