# manages the local sqlite file that persists the session across restarts
import asyncio
import os.path
from contextlib import asynccontextmanager
from sqlite3 import Row
from typing import Dict

import aiosqlite

from utils.logger import get_logger

_logger = get_logger(__name__)

DB_PATH = "data/session.sqlite"

SCHEMA = """
CREATE TABLE IF NOT EXISTS session_kv (
    key   TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""

_initialized = False
_init_lock = asyncio.Lock()


def configure(path: str) -> None:
    """Point the store at another file; the schema is re-checked on next connect."""
    global DB_PATH, _initialized, _init_lock
    DB_PATH = path
    _initialized = False
    _init_lock = asyncio.Lock()


async def _init_db(conn: aiosqlite.Connection) -> None:
    _logger.info(f"Initializing session store at {DB_PATH}...")
    await conn.executescript(SCHEMA)
    await conn.commit()


@asynccontextmanager
async def connect() -> aiosqlite.Connection:
    """Async context manager yielding an aiosqlite connection.

    Creates the parent directory and the schema on first use.
    """
    global _initialized
    parent = os.path.dirname(DB_PATH)
    if parent:
        os.makedirs(parent, exist_ok=True)

    conn = await aiosqlite.connect(DB_PATH)
    conn.row_factory = Row
    try:
        if not _initialized:
            async with _init_lock:
                if not _initialized:
                    await _init_db(conn)
                    _initialized = True
        yield conn
    finally:
        await conn.close()


async def read_all(conn: aiosqlite.Connection) -> Dict[str, str]:
    cur = await conn.execute("SELECT key, value FROM session_kv;")
    rows = await cur.fetchall()
    await cur.close()
    return {row["key"]: row["value"] for row in rows}


async def replace_all(conn: aiosqlite.Connection, values: Dict[str, str]) -> None:
    """Swap the whole key set in one transaction."""
    await conn.execute("DELETE FROM session_kv;")
    if values:
        await conn.executemany(
            "INSERT INTO session_kv(key, value) VALUES (?, ?);",
            list(values.items()),
        )
    await conn.commit()


async def data_version(conn: aiosqlite.Connection) -> int:
    # changes whenever another connection commits to the file
    cur = await conn.execute("PRAGMA data_version;")
    row = await cur.fetchone()
    await cur.close()
    return int(row[0])
