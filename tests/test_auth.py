import os
import sys
import unittest

# Ensure project src/ is on sys.path for imports
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
src_path = os.path.join(ROOT, "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from backend.errors import (  # noqa: E402
    AuthenticationError,
    AuthorizationError,
    ValidationError,
)
from backend.models import Credentials, Registration  # noqa: E402
from fake_backend import ShopTestCase  # noqa: E402
from store import auth  # noqa: E402
from store.cart import CartStatus, CartSynchronizer  # noqa: E402
from utils.config import UnauthorizedPolicy  # noqa: E402
from utils.roles import Role  # noqa: E402


class LoginTestCase(ShopTestCase):
    async def test_login_stores_session(self):
        user = await auth.login(self.gw, self.session, "alice", "pw")

        self.assertEqual(user.id, "u1")
        self.assertEqual(user.wallet, 100.0)
        self.assertEqual(self.session.current_user_id(), "u1")
        self.assertIs(self.session.current_role(), Role.CUSTOMER)
        self.assertEqual(self.session.credentials(), Credentials("alice", "pw"))
        # credentials go in the body, never in a header
        login_req = self.backend.calls("POST", "auth/login/")[0]
        self.assertNotIn("Authorization", login_req.headers)

    async def test_missing_role_defaults_to_customer(self):
        await auth.login(self.gw, self.session, "bob", "pw")
        self.assertIs(self.session.current_role(), Role.CUSTOMER)

    async def test_staff_role_is_kept(self):
        await auth.login(self.gw, self.session, "shipper", "pw")
        self.assertIs(self.session.current_role(), Role.SHIPMENT_MANAGER)

    async def test_wrong_password(self):
        with self.assertRaises(AuthenticationError) as ctx:
            await auth.login(self.gw, self.session, "alice", "nope")
        self.assertEqual(str(ctx.exception), "Invalid username or password")
        self.assertFalse(self.session.is_authenticated())

    async def test_failed_login_keeps_previous_session(self):
        await auth.login(self.gw, self.session, "alice", "pw")
        with self.assertRaises(AuthenticationError):
            await auth.login(self.gw, self.session, "root", "nope")
        self.assertEqual(self.session.current_username(), "alice")

    async def test_empty_input_is_rejected_locally(self):
        for username, password in (("", "pw"), ("alice", ""), ("   ", "pw")):
            with self.assertRaises(ValidationError):
                await auth.login(self.gw, self.session, username, password)
        self.assertEqual(self.backend.requests, [])

    async def test_logout_clears_cart_and_session(self):
        cart = CartSynchronizer(self.gw, self.session)
        cart.attach()
        self.backend.put_in_cart("u1", "p1", 1)
        await auth.login(self.gw, self.session, "alice", "pw")
        await cart.wait_loaded()
        self.assertEqual(cart.item_count(), 1)

        await auth.logout(self.session, cart)

        self.assertEqual(cart.item_count(), 0)
        self.assertIs(cart.status, CartStatus.ANONYMOUS)
        self.assertFalse(self.session.is_authenticated())
        cart.detach()


class RegisterTestCase(ShopTestCase):
    async def test_register(self):
        profile = Registration("carol", "carol@example.com", "pw", first_name="Carol")
        user = await auth.register(self.gw, profile)
        self.assertEqual(user.username, "carol")
        # registering does not log in
        self.assertFalse(self.session.is_authenticated())

    async def test_register_validates_locally(self):
        for profile in (
            Registration("", "x@example.com", "pw"),
            Registration("carol", "", "pw"),
            Registration("carol", "x@example.com", " "),
            Registration("carol", "not-an-email", "pw"),
        ):
            with self.assertRaises(ValidationError):
                await auth.register(self.gw, profile)
        self.assertEqual(self.backend.requests, [])

    async def test_register_taken_username(self):
        with self.assertRaises(ValidationError) as ctx:
            await auth.register(self.gw, Registration("alice", "a@example.com", "pw"))
        self.assertIn("already exists", str(ctx.exception))


class StaleCredentialsTestCase(ShopTestCase):
    on_unauthorized = UnauthorizedPolicy.CLEAR

    async def test_revoked_credentials_sign_out(self):
        cart = CartSynchronizer(self.gw, self.session)
        cart.attach()
        await auth.login(self.gw, self.session, "alice", "pw")
        await cart.wait_loaded()
        self.backend.users["alice"]["password"] = "changed"

        with self.assertRaises(AuthorizationError):
            await cart.refresh()

        self.assertFalse(self.session.is_authenticated())
        self.assertIs(cart.status, CartStatus.ANONYMOUS)
        self.assertIsNone(cart.error)
        cart.detach()


if __name__ == "__main__":
    unittest.main()
