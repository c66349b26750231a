import os
import sys
import unittest

# Ensure project src/ is on sys.path for imports
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
src_path = os.path.join(ROOT, "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from backend import endpoints  # noqa: E402
from backend.errors import NotPermittedError, ValidationError  # noqa: E402
from backend.models import Invoice, Order, ShippingInfo  # noqa: E402
from fake_backend import ShopTestCase  # noqa: E402
from store import orders as order_store  # noqa: E402
from store.cart import CartSynchronizer  # noqa: E402

SHIPPING = ShippingInfo("Alice Doe", "1 Main St", "Springfield", "12345")


class OrdersTestCase(ShopTestCase):
    async def asyncSetUp(self):
        await self.login_as("alice")
        self.cart = CartSynchronizer(self.gw, self.session)
        self.cart.attach()
        await self.cart.wait_loaded()

    async def asyncTearDown(self):
        self.cart.detach()
        await super().asyncTearDown()

    async def _order(self, product_id: str, qty: int, pay_now: bool = False) -> Order:
        await self.cart.add_item(product_id, qty)
        return await self.cart.checkout(SHIPPING, pay_now=pay_now)

    async def test_my_orders_newest_first_with_invoices(self):
        await self._order("p1", 1)
        await self._order("p2", 2, pay_now=True)

        orders = await order_store.load_my_orders(self.gw, self.session)

        self.assertEqual([o.id for o in orders], ["2", "1"])
        self.assertEqual(orders[0].invoice.status, "paid")
        self.assertEqual(orders[1].invoice.amount_due, 10)
        self.assertEqual(order_store.order_status(orders[0]), "Paid")
        self.assertEqual(order_store.order_status(orders[1]), "Payment Pending")

    async def test_pay_invoice(self):
        await self._order("p1", 2)
        [order] = await order_store.load_my_orders(self.gw, self.session)
        me = await endpoints.get_current_user(self.gw)

        receipt = await order_store.pay_invoice(self.gw, self.session, order.invoice, me.wallet)

        self.assertEqual(receipt.amount_paid, 20)
        me = await endpoints.get_current_user(self.gw)
        self.assertEqual(me.wallet, 80)
        [order] = await order_store.load_my_orders(self.gw, self.session)
        self.assertTrue(order.invoice.is_paid)

    async def test_short_wallet_never_reaches_backend(self):
        await self._order("p1", 2)
        [order] = await order_store.load_my_orders(self.gw, self.session)
        self.backend.requests.clear()

        with self.assertRaises(ValidationError) as ctx:
            await order_store.pay_invoice(self.gw, self.session, order.invoice, 12.5)

        self.assertEqual(
            str(ctx.exception),
            "Insufficient wallet balance. Required: $20.00, Available: $12.50",
        )
        self.assertEqual(self.backend.requests, [])

    async def test_unknown_wallet(self):
        invoice = Invoice("inv-1", "INV-0001", 5.0, "pending")
        with self.assertRaises(ValidationError) as ctx:
            await order_store.pay_invoice(self.gw, self.session, invoice, None)
        self.assertIn("wallet information not available", str(ctx.exception))

    async def test_paid_invoice_is_not_paid_twice(self):
        invoice = Invoice("inv-1", "INV-0001", 5.0, "paid")
        with self.assertRaises(ValidationError):
            await order_store.pay_invoice(self.gw, self.session, invoice, 100.0)
        self.assertEqual(self.backend.calls("POST"), [])

    async def test_staff_cannot_read_own_orders(self):
        await self.login_as("shipper")
        with self.assertRaises(NotPermittedError):
            await order_store.load_my_orders(self.gw, self.session)
        with self.assertRaises(NotPermittedError):
            await order_store.load_all_orders(self.gw, self.session)

    async def test_missing_invoice_is_tolerated(self):
        await self._order("p1", 1)
        self.backend.invoices.clear()
        [order] = await order_store.load_my_orders(self.gw, self.session)
        self.assertIsNone(order.invoice)
        self.assertEqual(order.invoice_id, "inv-1")

    async def test_placed_message_follows_payment_outcome(self):
        paid = await self._order("p2", 1, pay_now=True)
        self.assertEqual(order_store.placed_message(paid), f"Order #{paid.id} placed and paid.")

        # pay now was asked for but the wallet could not cover it
        self.backend.users["alice"]["wallet"] = 1.0
        unpaid = await self._order("p1", 1, pay_now=True)
        self.assertEqual(
            order_store.placed_message(unpaid),
            f"Order #{unpaid.id} placed. Pay the invoice from My Orders.",
        )

    async def test_admin_sees_every_order_newest_first(self):
        await self._order("p1", 1)
        await self._order("p2", 1)
        await self.login_as("root")

        orders = await order_store.load_all_orders(self.gw, self.session)

        self.assertEqual([o.id for o in orders], ["2", "1"])
        self.assertEqual({o.customer for o in orders}, {"alice"})
        self.assertEqual(self.backend.calls("GET", "orders/")[-1].url.path, "/api/orders/")

    async def test_customer_cannot_list_all_orders(self):
        self.backend.requests.clear()
        with self.assertRaises(NotPermittedError):
            await order_store.load_all_orders(self.gw, self.session)
        self.assertEqual(self.backend.requests, [])


class OrderStatusTestCase(unittest.TestCase):
    def test_labels(self):
        self.assertEqual(order_store.order_status(Order("1", "", 0, payment_status="paid")), "Paid")
        self.assertEqual(
            order_store.order_status(Order("1", "", 0, payment_status="pending")),
            "Payment Pending",
        )
        self.assertEqual(order_store.order_status(Order("1", "", 0, status="in_transit")), "In Transit")
        self.assertEqual(order_store.order_status(Order("1", "", 0)), "Processing")


if __name__ == "__main__":
    unittest.main()
