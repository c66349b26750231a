import base64
import json
import os
import sys
import tempfile
import unittest

import httpx

# Ensure project src/ is on sys.path for imports
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
src_path = os.path.join(ROOT, "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from backend.errors import (  # noqa: E402
    ApiError,
    AuthorizationError,
    NotFoundError,
    TransportError,
    ValidationError,
)
from backend.gateway import Gateway, basic_auth_header, is_public_path  # noqa: E402
from backend.models import Credentials  # noqa: E402
from store import database  # noqa: E402
from store.session import SessionState  # noqa: E402
from utils.config import Settings, UnauthorizedPolicy  # noqa: E402
from utils.roles import Role  # noqa: E402

BASE_URL = "http://shop.test/api"


class GatewayTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        database.configure(os.path.join(self.temp_dir.name, "session.sqlite"))
        self.session = SessionState()
        self.requests = []
        self.reply = (200, {"json": {"ok": True}})

    def tearDown(self):
        self.temp_dir.cleanup()

    def _handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status, kwargs = self.reply
        return httpx.Response(status, **kwargs)

    def _gateway(self, **kwargs) -> Gateway:
        return Gateway(
            BASE_URL,
            self.session,
            transport=httpx.MockTransport(self._handler),
            **kwargs,
        )

    async def _login_alice(self):
        await self.session.set_session(
            "u1", "alice", Role.CUSTOMER, Credentials("alice", "s3cret")
        )

    # ---------- credentials ----------

    async def test_basic_auth_attached_when_logged_in(self):
        await self._login_alice()
        async with self._gateway() as gw:
            self.assertEqual(await gw.get("cart/"), {"ok": True})

        req = self.requests[0]
        self.assertEqual(str(req.url), "http://shop.test/api/cart/")
        expected = "Basic " + base64.b64encode(b"alice:s3cret").decode()
        self.assertEqual(req.headers["Authorization"], expected)
        self.assertEqual(req.headers["Accept"], "application/json")

    async def test_no_auth_header_when_anonymous(self):
        async with self._gateway() as gw:
            await gw.get("products/")
        self.assertNotIn("Authorization", self.requests[0].headers)

    async def test_login_and_register_never_carry_credentials(self):
        await self._login_alice()
        async with self._gateway() as gw:
            await gw.post("auth/login/", {"username": "bob", "password": "x"})
            await gw.post("/auth/register/", {"username": "bob"})
        for req in self.requests:
            self.assertNotIn("Authorization", req.headers)

    async def test_credentials_follow_the_session(self):
        async with self._gateway() as gw:
            await self._login_alice()
            await gw.get("cart/")
            await self.session.clear_session()
            await gw.get("cart/")
        self.assertIn("Authorization", self.requests[0].headers)
        self.assertNotIn("Authorization", self.requests[1].headers)

    # ---------- responses ----------

    async def test_no_content_returns_none(self):
        self.reply = (204, {})
        async with self._gateway() as gw:
            self.assertIsNone(await gw.delete("cart/remove_item/", json={"product_id": "p1"}))
        self.assertEqual(self.requests[0].method, "DELETE")
        self.assertEqual(json.loads(self.requests[0].content), {"product_id": "p1"})

    async def test_error_mapping(self):
        cases = [
            ((400, {"json": {"error": "Not enough stock"}}), ValidationError, "Not enough stock"),
            ((403, {"json": {"detail": "Nope"}}), AuthorizationError, "Nope"),
            ((404, {"json": {"detail": "Not found."}}), NotFoundError, "Not found."),
            ((422, {"json": {"quantity": ["Too many."]}}), ValidationError, "quantity: Too many."),
            ((500, {"text": "Internal Server Error"}), ApiError, "Internal Server Error"),
            ((502, {}), ApiError, "Request failed with status 502"),
        ]
        async with self._gateway() as gw:
            for reply, error_type, message in cases:
                self.reply = reply
                with self.subTest(status=reply[0]):
                    with self.assertRaises(error_type) as ctx:
                        await gw.get("products/")
                    self.assertIs(type(ctx.exception), error_type)
                    self.assertEqual(ctx.exception.message, message)
                    self.assertEqual(ctx.exception.status, reply[0])

    async def test_non_json_success_body(self):
        self.reply = (200, {"text": "<html>Service Unavailable</html>"})
        async with self._gateway() as gw:
            with self.assertRaises(ApiError) as ctx:
                await gw.get("products/")
        self.assertIs(type(ctx.exception), ApiError)
        self.assertEqual(ctx.exception.message, "Invalid response from server")
        self.assertEqual(ctx.exception.status, 200)

    async def test_transport_failure(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        gw = Gateway(BASE_URL, self.session, transport=httpx.MockTransport(refuse))
        with self.assertRaises(TransportError) as ctx:
            await gw.get("products/")
        self.assertIsNone(ctx.exception.status)
        await gw.aclose()

    # ---------- 401 policy ----------

    async def test_unauthorized_keeps_session_by_default(self):
        await self._login_alice()
        self.reply = (401, {"json": {"detail": "Invalid credentials."}})
        async with self._gateway() as gw:
            with self.assertRaises(AuthorizationError):
                await gw.get("cart/")
        self.assertEqual(self.session.current_user_id(), "u1")

    async def test_unauthorized_clears_session_when_configured(self):
        await self._login_alice()
        self.reply = (401, {"json": {"detail": "Invalid credentials."}})
        async with self._gateway(on_unauthorized=UnauthorizedPolicy.CLEAR) as gw:
            with self.assertRaises(AuthorizationError):
                await gw.get("cart/")
        self.assertFalse(self.session.is_authenticated())

    async def test_rejected_login_does_not_clear_session(self):
        await self._login_alice()
        self.reply = (401, {"json": {"detail": "Bad password."}})
        async with self._gateway(on_unauthorized=UnauthorizedPolicy.CLEAR) as gw:
            with self.assertRaises(AuthorizationError):
                await gw.post("auth/login/", {"username": "alice", "password": "x"})
        self.assertTrue(self.session.is_authenticated())

    async def test_forbidden_never_clears_session(self):
        await self._login_alice()
        self.reply = (403, {"json": {"detail": "Customers only."}})
        async with self._gateway(on_unauthorized=UnauthorizedPolicy.CLEAR) as gw:
            with self.assertRaises(AuthorizationError):
                await gw.get("cart/")
        self.assertTrue(self.session.is_authenticated())

    async def test_from_settings(self):
        settings = Settings(
            api_url="http://example.test/api/",
            http_timeout=3.0,
            on_unauthorized=UnauthorizedPolicy.CLEAR,
        )
        gw = Gateway.from_settings(settings, self.session)
        self.assertEqual(gw.base_url, "http://example.test/api/")
        self.assertIs(gw.on_unauthorized, UnauthorizedPolicy.CLEAR)
        await gw.aclose()


class GatewayHelpersTestCase(unittest.TestCase):
    def test_is_public_path(self):
        self.assertTrue(is_public_path("auth/login/"))
        self.assertTrue(is_public_path("/auth/register"))
        self.assertTrue(is_public_path("auth/login/?next=x"))
        self.assertFalse(is_public_path("auth/logout/"))
        self.assertFalse(is_public_path("cart/"))

    def test_basic_auth_header_utf8(self):
        header = basic_auth_header("zoë", "pä:ss")
        raw = base64.b64decode(header.removeprefix("Basic ")).decode("utf-8")
        self.assertEqual(raw, "zoë:pä:ss")


if __name__ == "__main__":
    unittest.main()
