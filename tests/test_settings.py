from types import MappingProxyType

import httpx
import pytest

from universal_http import ClientConfig, ConfigError, EnvSettings, create_client, resolve_config
from universal_http import settings as settings_module


async def _no_token() -> str | None:
    return None


def test_resolve_fills_defaults() -> None:
    resolved = resolve_config(ClientConfig(base_url="  https://api.example.com ", get_auth_token=_no_token))

    assert resolved.base_url == "https://api.example.com"
    assert resolved.timeout_ms == 30_000
    assert resolved.on_token_refresh is None
    assert resolved.share_refresh is False
    assert isinstance(resolved.transport, httpx.AsyncHTTPTransport)
    assert isinstance(resolved.default_headers, MappingProxyType)
    assert dict(resolved.default_headers) == {}


def test_default_transport_is_not_shared_between_configs() -> None:
    first = resolve_config({"base_url": "https://a.example", "get_auth_token": _no_token})
    second = resolve_config({"base_url": "https://a.example", "get_auth_token": _no_token})

    assert first.transport is not second.transport


def test_resolved_config_is_immutable() -> None:
    headers = {"User-Agent": "test/1.0"}
    resolved = resolve_config(
        {"base_url": "https://api.example.com", "get_auth_token": _no_token, "default_headers": headers}
    )
    headers["X-Late"] = "mutation"

    assert dict(resolved.default_headers) == {"User-Agent": "test/1.0"}
    with pytest.raises(TypeError):
        resolved.default_headers["X-Other"] = "nope"  # type: ignore[index]
    with pytest.raises(AttributeError):
        resolved.timeout_ms = 5  # type: ignore[misc]


def test_explicit_transport_is_kept() -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(200))
    resolved = resolve_config(
        {"base_url": "https://api.example.com", "get_auth_token": _no_token, "transport": transport}
    )

    assert resolved.transport is transport


@pytest.mark.parametrize(
    "overrides",
    [
        {"base_url": ""},
        {"base_url": "   "},
        {"timeout_ms": 0},
        {"timeout_ms": -5},
        {"timeout_ms": 1.5},
        {"timeout_ms": "1000"},
        {"timeout_ms": True},
        {"get_auth_token": None},
        {"get_auth_token": "token"},
        {"on_token_refresh": 42},
        {"default_headers": {"X-Count": 1}},
        {"retries": 3},
    ],
)
def test_invalid_configuration_raises(overrides: dict) -> None:
    options = {"base_url": "https://api.example.com", "get_auth_token": _no_token, **overrides}
    with pytest.raises(ConfigError):
        resolve_config(options)


def test_missing_base_url_raises() -> None:
    with pytest.raises(ConfigError):
        resolve_config({"get_auth_token": _no_token})


def test_create_client_rejects_mixed_inputs() -> None:
    config = ClientConfig(base_url="https://api.example.com", get_auth_token=_no_token)
    with pytest.raises(ConfigError):
        create_client(config, timeout_ms=10)


def test_create_client_fails_fast_without_token_hook() -> None:
    with pytest.raises(ConfigError):
        create_client(base_url="https://api.example.com")


def test_env_settings_load(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings_module, "load_dotenv", lambda: None)
    monkeypatch.setenv("UNIVERSAL_HTTP_BASE_URL", "https://api.example.com")
    monkeypatch.setenv("UNIVERSAL_HTTP_TIMEOUT_MS", "12000")
    monkeypatch.delenv("UNIVERSAL_HTTP_TOKEN_VAR", raising=False)

    loaded = EnvSettings.load()

    assert loaded == EnvSettings(base_url="https://api.example.com", timeout_ms=12000, token_var="ACCESS_TOKEN")


@pytest.mark.parametrize(
    "env",
    [
        {"UNIVERSAL_HTTP_BASE_URL": ""},
        {"UNIVERSAL_HTTP_BASE_URL": "https://api.example.com", "UNIVERSAL_HTTP_TIMEOUT_MS": "soon"},
        {"UNIVERSAL_HTTP_BASE_URL": "https://api.example.com", "UNIVERSAL_HTTP_TIMEOUT_MS": "0"},
    ],
)
def test_env_settings_rejects_bad_values(monkeypatch: pytest.MonkeyPatch, env: dict[str, str]) -> None:
    monkeypatch.setattr(settings_module, "load_dotenv", lambda: None)
    monkeypatch.delenv("UNIVERSAL_HTTP_TIMEOUT_MS", raising=False)
    for key, value in env.items():
        monkeypatch.setenv(key, value)

    with pytest.raises(ConfigError):
        EnvSettings.load()


@pytest.mark.anyio
async def test_clients_from_one_resolved_config_get_their_own_transport() -> None:
    resolved = resolve_config({"base_url": "https://api.example.com", "get_auth_token": _no_token})

    first = create_client(resolved)
    second = create_client(resolved)
    assert first.config.transport is not second.config.transport
    assert first.config.transport is not resolved.transport

    await first.aclose()
    assert not second._http.is_closed
    await second.aclose()


@pytest.mark.anyio
async def test_injected_transport_is_passed_through_unchanged() -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(200))
    resolved = resolve_config(
        {"base_url": "https://api.example.com", "get_auth_token": _no_token, "transport": transport}
    )

    async with create_client(resolved) as client:
        assert client.config.transport is transport
        assert not client.config.transport_defaulted


def test_transport_defaulted_is_not_a_config_option() -> None:
    with pytest.raises(ConfigError):
        resolve_config(
            {"base_url": "https://api.example.com", "get_auth_token": _no_token, "transport_defaulted": True}
        )
