"""
Request pipeline for the universal HTTP client.

Every verb funnels into one execution routine that joins the URL, injects
headers, enforces the deadline, dispatches through the transport, and turns
the outcome into a ``Result``. Expected failures never raise.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import anyio
import httpx

from universal_http.errors import ConfigError, ErrorKind
from universal_http.http_client import create_async_client
from universal_http.result import Result
from universal_http.settings import ClientConfig, resolve_config, validate_timeout

logger = logging.getLogger(__name__)

AUTH_STATUSES = frozenset({401, 403})

_MAX_MESSAGE_CHARS = 512
_JSON_METHODS = frozenset({"POST", "PUT", "PATCH"})
_BINARY_CONTENT_TYPES = ("application/octet-stream", "image/", "audio/", "video/")
# X-Auth-Error values that a refresh cannot fix.
_TERMINAL_AUTH_ERRORS = {
    "missing_token": "No access token found.",
    "token_revoked": "Session was revoked. Please log in again.",
    "invalid_token": "Invalid authentication. Please log in again.",
}


class TokenRefreshError(RuntimeError):
    """Raised internally when a refresh cycle does not yield a usable token."""


@dataclass(slots=True)
class _RefreshFlight:
    """One in-progress refresh that concurrent callers can wait on."""

    done: anyio.Event = field(default_factory=anyio.Event)
    token: str | None = None
    abandoned: bool = False


def _error_message(response: httpx.Response) -> str:
    snippet = response.text.strip()
    if len(snippet) > _MAX_MESSAGE_CHARS:
        snippet = f"{snippet[:_MAX_MESSAGE_CHARS]}..."
    return snippet or response.reason_phrase or "Request failed"


def _decode_body(method: str, response: httpx.Response) -> Any:
    if method == "HEAD":
        return {"status": response.status_code, "headers": dict(response.headers)}

    content_type = response.headers.get("content-type", "").lower()
    if content_type.startswith(_BINARY_CONTENT_TYPES):
        return response.content
    if content_type.startswith("text/"):
        return response.text

    try:
        data = response.json()
    except ValueError:
        return response.text
    # A JSON null is passed through raw so a success always carries data.
    return response.text if data is None else data


class Client:
    """Async HTTP client returning a ``Result`` for every call."""

    def __init__(self, config: ClientConfig | Mapping[str, Any]) -> None:
        self._config = resolve_config(config)
        self._http = create_async_client(self._config.transport, self._config.timeout_ms)
        self._refresh_flight: _RefreshFlight | None = None

    @property
    def config(self) -> ClientConfig:
        return self._config

    async def aclose(self) -> None:
        """Close the underlying HTTP resources."""
        await self._http.aclose()

    async def __aenter__(self) -> "Client":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def get(
        self,
        path: str,
        *,
        headers: Mapping[str, str] | None = None,
        timeout_ms: int | None = None,
    ) -> Result[Any]:
        return await self._execute("GET", path, headers=headers, timeout_ms=timeout_ms)

    async def post(
        self,
        path: str,
        body: Any = None,
        *,
        headers: Mapping[str, str] | None = None,
        timeout_ms: int | None = None,
    ) -> Result[Any]:
        return await self._execute("POST", path, body=body, headers=headers, timeout_ms=timeout_ms)

    async def put(
        self,
        path: str,
        body: Any = None,
        *,
        headers: Mapping[str, str] | None = None,
        timeout_ms: int | None = None,
    ) -> Result[Any]:
        return await self._execute("PUT", path, body=body, headers=headers, timeout_ms=timeout_ms)

    async def patch(
        self,
        path: str,
        body: Any = None,
        *,
        headers: Mapping[str, str] | None = None,
        timeout_ms: int | None = None,
    ) -> Result[Any]:
        return await self._execute("PATCH", path, body=body, headers=headers, timeout_ms=timeout_ms)

    async def delete(
        self,
        path: str,
        *,
        headers: Mapping[str, str] | None = None,
        timeout_ms: int | None = None,
    ) -> Result[Any]:
        return await self._execute("DELETE", path, headers=headers, timeout_ms=timeout_ms)

    async def head(
        self,
        path: str,
        *,
        headers: Mapping[str, str] | None = None,
        timeout_ms: int | None = None,
    ) -> Result[Any]:
        """Return ``{"status": ..., "headers": ...}`` as data on success."""
        return await self._execute("HEAD", path, headers=headers, timeout_ms=timeout_ms)

    async def request(
        self,
        method: str,
        path: str,
        body: Any = None,
        *,
        headers: Mapping[str, str] | None = None,
        timeout_ms: int | None = None,
    ) -> Result[Any]:
        """Run a call with an arbitrary HTTP method through the same pipeline."""
        method = method.strip().upper()
        if not method:
            raise ValueError("method must be a non-empty string.")
        return await self._execute(method, path, body=body, headers=headers, timeout_ms=timeout_ms)

    def url_for(self, path: str) -> str:
        """Join ``path`` onto the base URL with exactly one slash between them."""
        if path.startswith(("http://", "https://")):
            raise ValueError(f"path must be relative to the base URL, got {path!r}.")
        return f"{self._config.base_url.rstrip('/')}/{path.lstrip('/')}"

    async def _execute(
        self,
        method: str,
        path: str,
        *,
        body: Any = None,
        headers: Mapping[str, str] | None = None,
        timeout_ms: int | None = None,
    ) -> Result[Any]:
        """Run one logical call end-to-end under a single deadline."""
        url = self.url_for(path)
        if timeout_ms is None:
            timeout_ms = self._config.timeout_ms
        else:
            validate_timeout(timeout_ms, "timeout_ms")
        timeout_s = timeout_ms / 1000

        try:
            with anyio.fail_after(timeout_s):
                return await self._run(method, url, body, headers, timeout_s)
        except TimeoutError:
            logger.error(
                "Request exceeded its deadline",
                extra={"method": method, "url": url, "timeout_ms": timeout_ms},
            )
            return Result.failure(
                ErrorKind.TIMEOUT,
                f"Request timed out after {timeout_ms} ms ({method} {url}).",
            )
        except httpx.TimeoutException as exc:
            logger.error(
                "Transport timed out",
                extra={"method": method, "url": url, "timeout_ms": timeout_ms},
                exc_info=exc,
            )
            return Result.failure(ErrorKind.TIMEOUT, f"Request timed out ({method} {url}).")
        except httpx.RequestError as exc:
            logger.error(
                "Request failed before a response was received",
                extra={"method": method, "url": url},
                exc_info=exc,
            )
            return Result.failure(ErrorKind.NETWORK, f"Request failed ({method} {url}): {exc!s}")

    async def _run(
        self,
        method: str,
        url: str,
        body: Any,
        extra_headers: Mapping[str, str] | None,
        timeout_s: float,
    ) -> Result[Any]:
        headers = httpx.Headers(self._config.default_headers)
        if extra_headers:
            headers.update(extra_headers)
        if method in _JSON_METHODS:
            headers.setdefault("Content-Type", "application/json")

        try:
            token = await self._config.get_auth_token()
        except Exception:  # noqa: BLE001
            logger.warning(
                "Auth token lookup failed, sending request unauthenticated",
                extra={"method": method, "url": url},
                exc_info=True,
            )
            token = None

        response = await self._send(method, url, body, headers, token, timeout_s)
        if response.status_code in AUTH_STATUSES and self._config.on_token_refresh is not None:
            return await self._refresh_and_retry(method, url, body, headers, response, timeout_s)
        return self._classify(method, url, response)

    async def _send(
        self,
        method: str,
        url: str,
        body: Any,
        headers: httpx.Headers,
        token: str | None,
        timeout_s: float,
    ) -> httpx.Response:
        request_headers = headers.copy()
        if token:
            request_headers["Authorization"] = f"Bearer {token}"
        logger.debug(
            "Dispatching request",
            extra={"method": method, "url": url, "authenticated": bool(token)},
        )
        return await self._http.request(
            method,
            url,
            headers=request_headers,
            json=body,
            timeout=timeout_s,
        )

    async def _refresh_and_retry(
        self,
        method: str,
        url: str,
        body: Any,
        headers: httpx.Headers,
        response: httpx.Response,
        timeout_s: float,
    ) -> Result[Any]:
        status = response.status_code
        auth_error = response.headers.get("x-auth-error", "").strip().lower()
        if auth_error in _TERMINAL_AUTH_ERRORS:
            logger.warning(
                "Request rejected with a non-refreshable auth error",
                extra={"method": method, "url": url, "status_code": status, "auth_error": auth_error},
            )
            return Result.failure(ErrorKind.AUTH, _TERMINAL_AUTH_ERRORS[auth_error], status=status)

        try:
            token = await self._obtain_fresh_token()
        except Exception:  # noqa: BLE001
            logger.warning(
                "Token refresh failed",
                extra={"method": method, "url": url, "status_code": status},
                exc_info=True,
            )
            return Result.failure(ErrorKind.AUTH, "Session expired. Please log in again.", status=status)

        retry = await self._send(method, url, body, headers, token, timeout_s)
        if retry.status_code in AUTH_STATUSES:
            logger.warning(
                "Request still unauthorized after token refresh",
                extra={"method": method, "url": url, "status_code": retry.status_code},
            )
            return Result.failure(ErrorKind.AUTH, _error_message(retry), status=retry.status_code)
        return self._classify(method, url, retry)

    async def _obtain_fresh_token(self) -> str:
        if not self._config.share_refresh:
            return await self._refresh_once()

        while (flight := self._refresh_flight) is not None:
            await flight.done.wait()
            if flight.token is not None:
                return flight.token
            # The owning call was cancelled; the next waiter takes over the refresh.
            if not flight.abandoned:
                raise TokenRefreshError("Shared token refresh did not produce a token.")

        flight = self._refresh_flight = _RefreshFlight()
        try:
            flight.token = await self._refresh_once()
            return flight.token
        except anyio.get_cancelled_exc_class():
            flight.abandoned = True
            raise
        finally:
            self._refresh_flight = None
            flight.done.set()

    async def _refresh_once(self) -> str:
        source = self._config.refresh_token or self._config.get_auth_token
        token = await source()
        if not token:
            raise TokenRefreshError("Token refresh did not produce a token.")
        await self._config.on_token_refresh(token)
        logger.info("Access token refreshed")
        return token

    def _classify(self, method: str, url: str, response: httpx.Response) -> Result[Any]:
        if response.is_success:
            return Result.success(_decode_body(method, response))

        message = _error_message(response)
        logger.warning(
            "Request responded with error",
            extra={"method": method, "url": url, "status_code": response.status_code, "content": message},
        )
        return Result.failure(ErrorKind.HTTP_STATUS, message, status=response.status_code)


def create_client(
    config: ClientConfig | Mapping[str, Any] | None = None,
    **options: Any,
) -> Client:
    """Factory that builds a client from a config object, a mapping, or keyword options."""
    if config is None:
        config = options
    elif options:
        raise ConfigError("Pass either a config object or keyword options, not both.")
    return Client(config)
