"""Client configuration, its resolver, and environment-driven settings."""

import dataclasses
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Awaitable, Callable

import httpx
from dotenv import load_dotenv

from universal_http.errors import ConfigError
from universal_http.http_client import default_transport

if TYPE_CHECKING:
    from universal_http.token_store import TokenStore

TokenGetter = Callable[[], Awaitable[str | None]]
TokenRefreshHook = Callable[[str], Awaitable[None]]

DEFAULT_TIMEOUT_MS = 30_000


@dataclass(frozen=True, slots=True)
class ClientConfig:
    """Construction-time options for a client instance."""

    base_url: str
    get_auth_token: TokenGetter | None = None
    on_token_refresh: TokenRefreshHook | None = None
    refresh_token: TokenGetter | None = None
    default_headers: Mapping[str, str] = field(default_factory=dict)
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    transport: httpx.AsyncBaseTransport | None = None
    share_refresh: bool = False
    # Set by resolve_config when the transport was not supplied by the caller.
    transport_defaulted: bool = field(default=False, init=False, repr=False, compare=False)

    @classmethod
    def from_token_store(cls, base_url: str, store: "TokenStore", **options: Any) -> "ClientConfig":
        """Wire a token store into the two token hooks."""
        return cls(
            base_url=base_url,
            get_auth_token=store.get_token,
            on_token_refresh=store.set_token,
            **options,
        )


_CONFIG_FIELDS = frozenset(f.name for f in dataclasses.fields(ClientConfig) if f.init)


def validate_timeout(value: object, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigError(f"{field_name} must be a positive integer.")
    return value


def _require_callable(value: object, field_name: str, *, required: bool) -> None:
    if value is None:
        if required:
            raise ConfigError(f"{field_name} is required but was not provided.")
        return
    if not callable(value):
        raise ConfigError(f"{field_name} must be callable.")


def resolve_config(config: ClientConfig | Mapping[str, Any]) -> ClientConfig:
    """
    Validate a configuration and fill in every default.

    Accepts either a ``ClientConfig`` or a mapping with the same keys. The
    returned config is immutable and owns its own transport instance.
    """
    if isinstance(config, Mapping):
        unknown = set(config) - _CONFIG_FIELDS
        if unknown:
            raise ConfigError(f"Unknown client options: {', '.join(sorted(unknown))}.")
        if "base_url" not in config:
            raise ConfigError("base_url is required but was not provided.")
        config = ClientConfig(**config)

    base_url = config.base_url.strip() if isinstance(config.base_url, str) else ""
    if not base_url:
        raise ConfigError("base_url must be a non-empty string.")

    _require_callable(config.get_auth_token, "get_auth_token", required=True)
    _require_callable(config.on_token_refresh, "on_token_refresh", required=False)
    _require_callable(config.refresh_token, "refresh_token", required=False)
    timeout_ms = validate_timeout(config.timeout_ms, "timeout_ms")

    headers = config.default_headers or {}
    if not isinstance(headers, Mapping):
        raise ConfigError("default_headers must be a mapping of strings.")
    if not all(isinstance(k, str) and isinstance(v, str) for k, v in headers.items()):
        raise ConfigError("default_headers must be a mapping of strings.")

    # A defaulted transport is rebuilt on every resolve so clients never share one.
    transport_defaulted = config.transport is None or config.transport_defaulted
    transport = default_transport() if transport_defaulted else config.transport

    resolved = dataclasses.replace(
        config,
        base_url=base_url,
        default_headers=MappingProxyType(dict(headers)),
        timeout_ms=timeout_ms,
        transport=transport,
        share_refresh=bool(config.share_refresh),
    )
    object.__setattr__(resolved, "transport_defaulted", transport_defaulted)
    return resolved


@dataclass(frozen=True, slots=True)
class EnvSettings:
    """Runtime settings read from the process environment."""

    base_url: str
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    token_var: str = "ACCESS_TOKEN"

    @classmethod
    def load(cls) -> "EnvSettings":
        """
        Load settings from environment variables.

        python-dotenv is used so a local .env file works without exporting
        variables globally.
        """
        load_dotenv()

        base_url = os.getenv("UNIVERSAL_HTTP_BASE_URL", "").strip()
        if not base_url:
            raise ConfigError("UNIVERSAL_HTTP_BASE_URL is required but was not provided.")

        timeout_raw = os.getenv("UNIVERSAL_HTTP_TIMEOUT_MS", "").strip() or str(DEFAULT_TIMEOUT_MS)
        try:
            timeout_ms = int(timeout_raw)
        except ValueError as exc:
            raise ConfigError("UNIVERSAL_HTTP_TIMEOUT_MS must be an integer.") from exc
        validate_timeout(timeout_ms, "UNIVERSAL_HTTP_TIMEOUT_MS")

        token_var = os.getenv("UNIVERSAL_HTTP_TOKEN_VAR", "").strip() or "ACCESS_TOKEN"

        return cls(base_url=base_url, timeout_ms=timeout_ms, token_var=token_var)
