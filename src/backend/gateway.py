# builds and sends every backend request; the only place credentials are attached
from __future__ import annotations

import base64
from typing import TYPE_CHECKING, Any, Optional

import httpx

from backend.errors import ApiError, AuthorizationError, TransportError
from utils.config import Settings, UnauthorizedPolicy
from utils.logger import get_logger

if TYPE_CHECKING:
    from store.session import SessionState

_logger = get_logger(__name__)

# these calls establish credentials, so they never carry any
PUBLIC_PATHS = frozenset({"auth/login", "auth/register"})


def is_public_path(path: str) -> bool:
    return path.split("?", 1)[0].strip("/") in PUBLIC_PATHS


def basic_auth_header(username: str, secret: str) -> str:
    token = base64.b64encode(f"{username}:{secret}".encode("utf-8")).decode("ascii")
    return f"Basic {token}"


class Gateway:
    """
    Thin request layer over httpx.AsyncClient.

    Attaches Basic credentials from the session to every call except
    login/signup, raises ApiError subclasses for transport failures and
    non-2xx responses, and never retries.
    """

    def __init__(
        self,
        base_url: str,
        session: "SessionState",
        *,
        timeout: float = 10.0,
        on_unauthorized: UnauthorizedPolicy = UnauthorizedPolicy.KEEP,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/") + "/"
        self.on_unauthorized = on_unauthorized
        self._session = session
        self._timeout = timeout
        self._transport = transport
        self._http_client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        session: "SessionState",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "Gateway":
        return cls(
            settings.api_url,
            session,
            timeout=settings.http_timeout,
            on_unauthorized=settings.on_unauthorized,
            transport=transport,
        )

    async def _get_http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self._timeout),
                transport=self._transport,
                headers={"Accept": "application/json"},
            )
        return self._http_client

    async def aclose(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def __aenter__(self) -> "Gateway":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    def auth_headers(self, path: str) -> dict:
        if is_public_path(path):
            return {}
        creds = self._session.credentials()
        if creds is None:
            return {}
        return {"Authorization": basic_auth_header(creds.username, creds.secret)}

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Optional[dict] = None,
    ) -> Any:
        """
        Send one request and return the decoded JSON body (None if empty).

        Raises TransportError when no response arrives and the matching
        ApiError subclass for any non-2xx status.
        """
        path = path.lstrip("/")
        client = await self._get_http_client()
        _logger.debug(f"{method} {path}")

        try:
            response = await client.request(
                method,
                path,
                json=json,
                params=params,
                headers=self.auth_headers(path),
            )
        except httpx.RequestError as e:
            _logger.warning(f"{method} {path} failed: {e!r}")
            raise TransportError(f"Could not reach the shop server ({e}).") from e

        if response.is_success:
            if response.status_code == 204 or not response.content:
                return None
            try:
                return response.json()
            except ValueError as e:
                _logger.warning(f"{method} {path} returned a non-JSON body: {e!r}")
                raise ApiError(
                    "Invalid response from server", response.status_code
                ) from e

        error = ApiError.from_response(response)
        _logger.warning(f"{method} {path} -> {response.status_code}: {error.message}")
        if isinstance(error, AuthorizationError) and response.status_code == 401:
            await self._handle_unauthorized(path)
        raise error

    async def _handle_unauthorized(self, path: str) -> None:
        if is_public_path(path):
            return
        if self.on_unauthorized is UnauthorizedPolicy.CLEAR:
            _logger.warning("Unauthorized, clearing stored session.")
            await self._session.clear_session()
        else:
            _logger.warning("Unauthorized, keeping stored session.")

    async def get(self, path: str, params: Optional[dict] = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json: Any = None) -> Any:
        return await self.request("POST", path, json=json)

    async def put(self, path: str, json: Any = None) -> Any:
        return await self.request("PUT", path, json=json)

    async def patch(self, path: str, json: Any = None) -> Any:
        return await self.request("PATCH", path, json=json)

    async def delete(
        self, path: str, json: Any = None, params: Optional[dict] = None
    ) -> Any:
        return await self.request("DELETE", path, json=json, params=params)
