# error taxonomy surfaced by the gateway and the client-side stores
from __future__ import annotations

from typing import Optional

import httpx


class ApiError(Exception):
    """
    Base error for anything that goes wrong talking to the backend.

    status is the HTTP status, or None when no response was received
    (or when the check happened locally).
    """

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status

    def __str__(self) -> str:
        return self.message

    @classmethod
    def from_response(cls, response: httpx.Response) -> "ApiError":
        """Build the matching subclass for a non-2xx response."""
        message = _extract_message(response)
        status = response.status_code
        if status in (401, 403):
            return AuthorizationError(message, status)
        if status == 404:
            return NotFoundError(message, status)
        if status in (400, 409, 422):
            return ValidationError(message, status)
        return ApiError(message, status)


class AuthenticationError(ApiError):
    """Login rejected the credentials."""


class AuthorizationError(ApiError):
    """Session is missing, expired, or the role is not allowed on the server."""


class ValidationError(ApiError):
    """Request was understood but refused (stock, wallet, empty cart...)."""


class NotFoundError(ApiError):
    pass


class TransportError(ApiError):
    """The request never got a response."""


class NotPermittedError(ApiError):
    """Refused locally by the role gate; nothing was sent."""


def _extract_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        for key in ("error", "detail", "message"):
            val = body.get(key)
            if val:
                return str(val)
        # DRF field errors: {"quantity": ["Not enough stock."]}
        for key, val in body.items():
            if isinstance(val, list) and val:
                return f"{key}: {val[0]}"

    text = response.text.strip()
    if text:
        return text[:200]
    return f"Request failed with status {response.status_code}"
