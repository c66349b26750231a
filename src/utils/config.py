# runtime settings, read from environment variables
from __future__ import annotations

import os
from dataclasses import dataclass
from enum import StrEnum
from typing import Mapping, Optional

DEFAULT_API_URL = "http://localhost:8000/api"
DEFAULT_SESSION_DB = "data/session.sqlite"


class UnauthorizedPolicy(StrEnum):
    """
    What the gateway does with the stored session when a call comes back 401.

    KEEP only logs the failure, CLEAR also wipes the session so the user
    has to log in again.
    """

    KEEP = "keep"
    CLEAR = "clear"


@dataclass(frozen=True)
class Settings:
    api_url: str = DEFAULT_API_URL
    session_db: str = DEFAULT_SESSION_DB
    http_timeout: float = 10.0
    session_watch_interval: float = 1.0
    on_unauthorized: UnauthorizedPolicy = UnauthorizedPolicy.KEEP
    debug: bool = False


def _positive_float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        val = float(raw)
    except ValueError:
        raise ValueError(f"{key} must be a number, got {raw!r}") from None
    if val <= 0:
        raise ValueError(f"{key} must be positive, got {raw!r}")
    return val


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """Build Settings from the environment (or the given mapping)."""
    env = os.environ if env is None else env

    policy_raw = (env.get("SHOP_ON_UNAUTHORIZED") or "keep").strip().lower()
    try:
        policy = UnauthorizedPolicy(policy_raw)
    except ValueError:
        raise ValueError(
            f"SHOP_ON_UNAUTHORIZED must be 'keep' or 'clear', got {policy_raw!r}"
        ) from None

    return Settings(
        api_url=(env.get("SHOP_API_URL") or DEFAULT_API_URL).rstrip("/"),
        session_db=env.get("SHOP_SESSION_DB") or DEFAULT_SESSION_DB,
        http_timeout=_positive_float(env, "SHOP_HTTP_TIMEOUT", 10.0),
        session_watch_interval=_positive_float(
            env, "SHOP_SESSION_WATCH_INTERVAL", 1.0
        ),
        on_unauthorized=policy,
        debug=bool(env.get("DEBUG")),
    )
