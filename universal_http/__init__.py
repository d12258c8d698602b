"""
Universal async HTTP client.

One request pipeline with bearer-token refresh, per-call deadlines, and a
uniform ``Result`` for every outcome, independent of where tokens are stored.
"""

from universal_http.client import Client, create_client
from universal_http.errors import ConfigError, ErrorInfo, ErrorKind
from universal_http.result import Result
from universal_http.settings import ClientConfig, EnvSettings, resolve_config
from universal_http.token_store import EnvTokenStore, FileTokenStore, MemoryTokenStore, TokenStore

__all__ = [
    "Client",
    "ClientConfig",
    "ConfigError",
    "EnvSettings",
    "EnvTokenStore",
    "ErrorInfo",
    "ErrorKind",
    "FileTokenStore",
    "MemoryTokenStore",
    "Result",
    "TokenStore",
    "create_client",
    "resolve_config",
]
