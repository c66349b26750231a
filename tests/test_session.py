import os
import sys
import tempfile
import unittest
from unittest import mock

import aiosqlite

# Ensure project src/ is on sys.path for imports
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
src_path = os.path.join(ROOT, "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from backend.errors import NotPermittedError  # noqa: E402
from backend.models import Credentials  # noqa: E402
from store import database  # noqa: E402
from store.session import (  # noqa: E402
    ANONYMOUS,
    Session,
    SessionState,
    SessionWatcher,
    identity_changed,
)
from utils.roles import Capability, Role  # noqa: E402


class SessionTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        database.configure(os.path.join(self.temp_dir.name, "session.sqlite"))
        self.state = SessionState()
        self.seen = []
        self.state.subscribe(self.seen.append)

    def tearDown(self):
        self.temp_dir.cleanup()

    # ---------- reads ----------

    async def test_empty_store_loads_anonymous(self):
        loaded = await self.state.load()
        self.assertIs(loaded, ANONYMOUS)
        self.assertFalse(self.state.is_authenticated())
        self.assertIsNone(self.state.current_user_id())
        self.assertIsNone(self.state.current_role())
        self.assertIsNone(self.state.credentials())
        # nothing changed, nobody notified
        self.assertEqual(self.seen, [])

    async def test_set_session_persists_across_instances(self):
        creds = Credentials("alice", "pw")
        await self.state.set_session("u1", "alice", Role.CUSTOMER, creds)

        self.assertEqual(self.state.current_user_id(), "u1")
        self.assertEqual(self.state.current_username(), "alice")
        self.assertIs(self.state.current_role(), Role.CUSTOMER)
        self.assertEqual(self.state.credentials(), creds)

        other = SessionState()
        await other.load()
        self.assertEqual(other.snapshot, self.state.snapshot)

    async def test_set_session_requires_user_id(self):
        with self.assertRaises(ValueError):
            await self.state.set_session("", "alice", Role.CUSTOMER, Credentials("a", "b"))
        self.assertFalse(self.state.is_authenticated())

    async def test_role_given_as_string_is_parsed(self):
        await self.state.set_session("u9", "root", "admin", Credentials("root", "pw"))
        self.assertIs(self.state.current_role(), Role.ADMIN)

    async def test_unknown_stored_role_grants_nothing(self):
        async with database.connect() as conn:
            await database.replace_all(
                conn, {"userId": "u5", "username": "eve", "role": "superuser"}
            )
        await self.state.load()

        self.assertTrue(self.state.is_authenticated())
        self.assertIsNone(self.state.current_role())
        self.assertFalse(self.state.allows(Capability.BROWSE_CATALOG))
        self.assertIsNone(self.state.credentials())

    async def test_clear_session_removes_everything(self):
        await self.state.set_session("u1", "alice", Role.CUSTOMER, Credentials("alice", "pw"))
        await self.state.clear_session()

        self.assertIs(self.state.snapshot, ANONYMOUS)
        async with database.connect() as conn:
            self.assertEqual(await database.read_all(conn), {})

    # ---------- gating ----------

    async def test_require(self):
        with self.assertRaises(NotPermittedError) as ctx:
            self.state.require(Capability.USE_CART)
        self.assertIn("log in", str(ctx.exception))

        await self.state.set_session("u9", "root", Role.ADMIN, Credentials("root", "pw"))
        with self.assertRaises(NotPermittedError):
            self.state.require(Capability.USE_CART)
        self.assertEqual(self.state.require(Capability.VIEW_ANALYTICS).user_id, "u9")

    # ---------- subscriptions ----------

    async def test_subscribers_see_each_change_once(self):
        creds = Credentials("alice", "pw")
        await self.state.set_session("u1", "alice", Role.CUSTOMER, creds)
        await self.state.set_session("u1", "alice", Role.CUSTOMER, creds)
        await self.state.clear_session()
        await self.state.clear_session()

        self.assertEqual([s.user_id for s in self.seen], ["u1", None])

    async def test_listener_sees_new_snapshot_before_write_returns(self):
        observed = []
        self.state.subscribe(lambda s: observed.append(self.state.current_user_id()))
        await self.state.set_session("u1", "alice", Role.CUSTOMER, Credentials("alice", "pw"))
        self.assertEqual(observed, ["u1"])

    async def test_failing_listener_does_not_block_others(self):
        def boom(_session):
            raise RuntimeError("boom")

        state = SessionState()
        later = []
        state.subscribe(boom)
        state.subscribe(later.append)
        await state.set_session("u1", "alice", Role.CUSTOMER, Credentials("alice", "pw"))
        self.assertEqual(len(later), 1)

    async def test_unsubscribe(self):
        state = SessionState()
        got = []
        unsubscribe = state.subscribe(got.append)
        unsubscribe()
        unsubscribe()
        await state.set_session("u1", "alice", Role.CUSTOMER, Credentials("alice", "pw"))
        self.assertEqual(got, [])

    # ---------- other instances ----------

    async def test_watcher_picks_up_writes_from_another_instance(self):
        mine = SessionState()
        await mine.load()
        got = []
        mine.subscribe(got.append)
        # long interval, checks are driven by hand
        watcher = SessionWatcher(mine, interval=60)
        await watcher.start()
        try:
            self.assertFalse(await watcher.check())

            other = SessionState()
            await other.set_session("u1", "alice", Role.CUSTOMER, Credentials("alice", "pw"))
            self.assertTrue(await watcher.check())
            self.assertEqual(mine.current_user_id(), "u1")

            await other.clear_session()
            self.assertTrue(await watcher.check())
            self.assertFalse(mine.is_authenticated())
            self.assertEqual([s.user_id for s in got], ["u1", None])
        finally:
            await watcher.stop()

    async def test_watcher_check_before_start_is_noop(self):
        watcher = SessionWatcher(self.state)
        self.assertFalse(await watcher.check())
        await watcher.stop()

    async def test_failed_schema_setup_closes_connection(self):
        closed = []
        real_connect = aiosqlite.connect

        def tracking_connect(*args, **kwargs):
            conn = real_connect(*args, **kwargs)
            real_close = conn.close

            async def close():
                closed.append(conn)
                await real_close()

            conn.close = close
            return conn

        failing_init = mock.AsyncMock(side_effect=RuntimeError("disk full"))
        with mock.patch.object(database.aiosqlite, "connect", tracking_connect), \
                mock.patch.object(database, "_init_db", failing_init):
            with self.assertRaises(RuntimeError):
                async with database.connect():
                    self.fail("connection should not be handed out")

        self.assertEqual(len(closed), 1)
        # the schema is retried on the next connect
        async with database.connect() as conn:
            self.assertEqual(await database.read_all(conn), {})


class SessionSnapshotTestCase(unittest.TestCase):
    def test_store_round_trip_keeps_credentials(self):
        session = Session("u1", "alice", Role.CUSTOMER, Credentials("alice", "pw"))
        values = session.to_store()
        self.assertEqual(values["credentials.username"], "alice")
        self.assertEqual(values["role"], "customer")
        self.assertEqual(Session.from_store(values), session)

    def test_missing_user_id_is_anonymous(self):
        self.assertIs(Session.from_store({"username": "alice"}), ANONYMOUS)
        self.assertEqual(ANONYMOUS.to_store(), {})
        self.assertFalse(ANONYMOUS.is_customer)

    def test_identity_ignores_credentials(self):
        first = Session("u1", "alice", Role.CUSTOMER, Credentials("alice", "pw"))
        renewed = Session("u1", "alice", Role.CUSTOMER, Credentials("alice", "new"))
        self.assertEqual(first.identity, renewed.identity)
        self.assertEqual(ANONYMOUS.identity, (None, None))

    def test_identity_changed(self):
        alice = ("u1", Role.CUSTOMER)
        self.assertFalse(identity_changed(alice, alice))
        self.assertTrue(identity_changed(alice, ("u9", Role.ADMIN)))
        # same user promoted by another window
        self.assertTrue(identity_changed(alice, ("u1", Role.ADMIN)))
        # nothing shown yet, or signed out: the login flow handles those
        self.assertFalse(identity_changed((None, None), alice))
        self.assertFalse(identity_changed(alice, (None, None)))


if __name__ == "__main__":
    unittest.main()
