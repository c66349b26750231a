from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple, Union

import aiosqlite

import store.database as database
from backend.errors import NotPermittedError
from backend.models import Credentials
from utils.logger import get_logger
from utils.roles import Capability, Role, can

_logger = get_logger(__name__)

KEY_USER_ID = "userId"
KEY_USERNAME = "username"
KEY_ROLE = "role"
KEY_CRED_USERNAME = "credentials.username"
KEY_CRED_SECRET = "credentials.secret"


@dataclass(frozen=True)
class Session:
    """
    Snapshot of who is logged in.

    Fields:
      - user_id: backend user id; present iff authenticated
      - username: display name
      - role: one of Role, None if unset or unknown
      - credentials: username/secret pair used for Basic auth
    """

    user_id: Optional[str] = None
    username: Optional[str] = None
    role: Optional[Role] = None
    credentials: Optional[Credentials] = None

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    @property
    def is_customer(self) -> bool:
        return self.is_authenticated and self.role is Role.CUSTOMER

    @property
    def identity(self) -> Tuple[Optional[str], Optional[Role]]:
        """Who the session is for; unchanged by a credentials refresh."""
        return self.user_id, self.role

    @classmethod
    def from_store(cls, values: Dict[str, str]) -> "Session":
        user_id = values.get(KEY_USER_ID) or None
        if user_id is None:
            return ANONYMOUS
        creds = None
        if values.get(KEY_CRED_USERNAME) is not None and values.get(
            KEY_CRED_SECRET
        ) is not None:
            creds = Credentials(values[KEY_CRED_USERNAME], values[KEY_CRED_SECRET])
        return cls(
            user_id=user_id,
            username=values.get(KEY_USERNAME),
            role=Role.parse(values.get(KEY_ROLE)),
            credentials=creds,
        )

    def to_store(self) -> Dict[str, str]:
        if not self.is_authenticated:
            return {}
        values = {
            KEY_USER_ID: self.user_id,
            KEY_USERNAME: self.username or "",
            KEY_ROLE: self.role.value if self.role else "",
        }
        if self.credentials is not None:
            values[KEY_CRED_USERNAME] = self.credentials.username
            values[KEY_CRED_SECRET] = self.credentials.secret
        return values


ANONYMOUS = Session()


def identity_changed(shown: tuple, current: tuple) -> bool:
    """True when screens built for one signed-in user now belong to another user or role."""
    return shown[0] is not None and current[0] is not None and shown != current


SessionListener = Callable[[Session], None]


class SessionState:
    """
    Single source of truth for the logged-in user, persisted in sqlite.

    Reads come from an in-memory snapshot and never raise. Writes persist
    first, then swap the snapshot and notify subscribers synchronously,
    so by the time set_session/clear_session return every subscriber has
    seen the change.
    """

    def __init__(self) -> None:
        self._snapshot: Session = ANONYMOUS
        self._listeners: List[SessionListener] = []

    # ---------------------------
    # Reads
    # ---------------------------

    @property
    def snapshot(self) -> Session:
        return self._snapshot

    def current_user_id(self) -> Optional[str]:
        return self._snapshot.user_id

    def current_username(self) -> Optional[str]:
        return self._snapshot.username

    def current_role(self) -> Optional[Role]:
        if not self._snapshot.is_authenticated:
            return None
        return self._snapshot.role

    def credentials(self) -> Optional[Credentials]:
        return self._snapshot.credentials

    def is_authenticated(self) -> bool:
        return self._snapshot.is_authenticated

    def allows(self, capability: Capability) -> bool:
        return can(self.current_role(), capability)

    def require(self, capability: Capability) -> Session:
        """Return the snapshot if the current role has `capability`, else raise."""
        if not self._snapshot.is_authenticated:
            raise NotPermittedError("Please log in first.")
        if not can(self._snapshot.role, capability):
            raise NotPermittedError("You don't have permission to do that.")
        return self._snapshot

    # ---------------------------
    # Writes
    # ---------------------------

    async def load(self) -> Session:
        """Read the persisted session (e.g. at startup) and publish it."""
        async with database.connect() as conn:
            values = await database.read_all(conn)
        self._replace(Session.from_store(values))
        return self._snapshot

    async def set_session(
        self,
        user_id: str,
        username: str,
        role: Union[Role, str, None],
        credentials: Credentials,
    ) -> Session:
        if not user_id:
            raise ValueError("user_id is required")
        new = Session(
            user_id=str(user_id),
            username=username,
            role=role if isinstance(role, Role) else Role.parse(role),
            credentials=credentials,
        )
        async with database.connect() as conn:
            await database.replace_all(conn, new.to_store())
        self._replace(new)
        _logger.info(f"Session started for {username} ({new.role}).")
        return new

    async def clear_session(self) -> None:
        async with database.connect() as conn:
            await database.replace_all(conn, {})
        was = self._snapshot
        self._replace(ANONYMOUS)
        if was.is_authenticated:
            _logger.info(f"Session for {was.username} cleared.")

    async def reload(self) -> bool:
        """Re-read the store; True if it differed from the snapshot."""
        before = self._snapshot
        await self.load()
        return self._snapshot != before

    # ---------------------------
    # Subscriptions
    # ---------------------------

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Call `listener(session)` on every change. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _replace(self, new: Session) -> None:
        if new == self._snapshot:
            return
        self._snapshot = new
        for listener in list(self._listeners):
            try:
                listener(new)
            except Exception:
                _logger.exception(f"Session listener {listener!r} failed")


class SessionWatcher:
    """
    Notices session writes made by other app instances sharing the same file.

    Holds one dedicated connection and compares sqlite's data_version,
    which only moves when a different connection commits. Only then is
    the store re-read.
    """

    def __init__(self, state: SessionState, interval: float = 1.0) -> None:
        self._state = state
        self._interval = interval
        self._conn: Optional[aiosqlite.Connection] = None
        self._version: Optional[int] = None
        self._task: Optional[asyncio.Task] = None

    async def start(self) -> None:
        if self._conn is not None:
            return
        async with database.connect():
            pass  # make sure the schema exists
        self._conn = await aiosqlite.connect(database.DB_PATH)
        self._version = await database.data_version(self._conn)
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        if self._conn is not None:
            await self._conn.close()
            self._conn = None

    async def check(self) -> bool:
        """Reload the session if the file changed. True if the session differed."""
        if self._conn is None:
            return False
        version = await database.data_version(self._conn)
        if version == self._version:
            return False
        self._version = version
        changed = await self._state.reload()
        if changed:
            _logger.debug("Session changed by another instance.")
        return changed

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.check()
            except aiosqlite.Error as e:
                _logger.warning(f"Could not check session store: {e!r}")
