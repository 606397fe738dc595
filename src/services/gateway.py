"""Authenticated HTTP gateway for the OrderUp backend.

Thin wrapper around httpx that every service module calls through.
It attaches the bearer token from the injected credential provider,
classifies non-2xx responses into typed OrderUpError subclasses, and
decodes JSON bodies.

Status mapping:
  401 -> UnauthenticatedError (stored credentials are cleared first)
  404 -> NotFoundError
  other non-2xx -> ServerError carrying the server's message
  transport failure -> NetworkError
  malformed JSON -> ResponseParseError
"""

import json
import logging
import re
from typing import Any, Protocol

import httpx

from src.errors import (
    NetworkError,
    NotFoundError,
    ResponseParseError,
    ServerError,
    UnauthenticatedError,
)
from src.services.credential_store import CredentialProvider

logger = logging.getLogger(__name__)

# Backend serializes 64-bit identifiers as "<digits>n" to survive JS clients
_BIGINT_PATTERN = re.compile(r"^\d+n$")

# Keys checked, in order, for a human-readable error message
_ERROR_MESSAGE_KEYS = ("message", "error_description", "error", "detail")


def decode_bigints(value: Any) -> Any:
    """Recursively convert "<digits>n" strings into Python ints.

    Args:
        value: Decoded JSON value (dict, list, or scalar).

    Returns:
        Same structure with big-integer strings replaced by ints.
    """
    if isinstance(value, str):
        if _BIGINT_PATTERN.match(value):
            return int(value[:-1])
        return value
    elif isinstance(value, dict):
        return {k: decode_bigints(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [decode_bigints(item) for item in value]
    return value


def parse_json_body(text: str) -> Any:
    """Parse a response body.

    Args:
        text: Raw response text.

    Returns:
        Decoded JSON with big integers restored, or None for an empty body.

    Raises:
        ResponseParseError: If the body is not valid JSON.
    """
    if not text or not text.strip():
        return None
    try:
        return decode_bigints(json.loads(text))
    except json.JSONDecodeError as e:
        raise ResponseParseError.from_exception(e) from e


def _extract_error_message(resp: httpx.Response) -> str:
    """Pull the server-supplied message out of an error response."""
    try:
        data = resp.json()
    except ValueError:
        data = None
    if isinstance(data, dict):
        for key in _ERROR_MESSAGE_KEYS:
            if data.get(key):
                return str(data[key])
    return resp.text or resp.reason_phrase


class RemoteCaller(Protocol):
    """What service modules need from a gateway.

    RemoteGateway implements it over HTTP; tests pass lightweight fakes.
    """

    async def request(
        self,
        path: str,
        method: str = "GET",
        params: dict[str, str | int] | None = None,
        body: Any = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        ...


class RemoteGateway:
    """Authenticated JSON-over-HTTP client for the backend API."""

    def __init__(
        self,
        base_url: str,
        credentials: CredentialProvider,
        timeout: float = 30.0,
    ) -> None:
        """Initialize with backend base URL and a credential provider.

        Args:
            base_url: Backend base URL, e.g. https://betaaccount.retailcloud.com.
            credentials: Source of the bearer token.
            timeout: Per-request timeout in seconds.
        """
        self._base_url = base_url.rstrip("/")
        self._credentials = credentials
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = None

    @property
    def credentials(self) -> CredentialProvider:
        return self._credentials

    async def __aenter__(self) -> "RemoteGateway":
        """Open httpx async client."""
        self._get_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Close httpx async client."""
        await self.aclose()

    async def aclose(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
            )
        return self._client

    def _build_headers(self, overrides: dict[str, str] | None) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        token = self._credentials.get()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        if overrides:
            headers.update(overrides)
        return headers

    def _raise_for_status(self, resp: httpx.Response, path: str) -> None:
        """Raise a typed OrderUpError on non-2xx responses.

        Args:
            resp: httpx.Response to check.
            path: Request path, used for not-found messages.

        Raises:
            UnauthenticatedError: On 401, after clearing stored credentials.
            NotFoundError: On 404.
            ServerError: On any other status >= 300.
        """
        status = resp.status_code
        if status == 401:
            logger.warning("Received 401 for %s; clearing stored credentials", path)
            self._credentials.clear()
            raise UnauthenticatedError.create()
        if status == 404:
            raise NotFoundError.for_resource("Resource", path)
        if status >= 300:
            raise ServerError.for_status(status, _extract_error_message(resp))

    async def request(
        self,
        path: str,
        method: str = "GET",
        params: dict[str, str | int] | None = None,
        body: Any = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """Perform an authenticated call and return the decoded body.

        Args:
            path: Path relative to the base URL.
            method: HTTP method.
            params: Query string parameters.
            body: JSON-serializable request body.
            headers: Header overrides, applied last.

        Returns:
            Decoded JSON body, or None for an empty response.

        Raises:
            OrderUpError: A typed subclass describing the failure.
        """
        client = self._get_client()
        logger.debug("%s %s params=%s", method, path, params)
        try:
            resp = await client.request(
                method,
                path,
                params=params,
                json=body,
                headers=self._build_headers(headers),
            )
        except httpx.RequestError as e:
            logger.warning("%s %s failed (transport): %s", method, path, e)
            raise NetworkError.from_exception(e) from e

        self._raise_for_status(resp, path)
        return parse_json_body(resp.text)
