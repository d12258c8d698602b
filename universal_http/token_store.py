"""
Token storage backends.

The pipeline never inspects where it runs; it only calls the two token hooks.
These stores implement those hooks for the common hosting situations.
"""

import json
import logging
import os
from pathlib import Path
from typing import Protocol, runtime_checkable

import anyio

logger = logging.getLogger(__name__)


@runtime_checkable
class TokenStore(Protocol):
    """Capability interface for reading and persisting a bearer token."""

    async def get_token(self) -> str | None: ...

    async def set_token(self, token: str) -> None: ...

    async def clear(self) -> None: ...


class MemoryTokenStore:
    """Keeps the token for the lifetime of the object."""

    def __init__(self, token: str | None = None) -> None:
        self._token = token

    async def get_token(self) -> str | None:
        return self._token

    async def set_token(self, token: str) -> None:
        self._token = token

    async def clear(self) -> None:
        self._token = None


class EnvTokenStore:
    """Reads and writes the token through a process environment variable."""

    def __init__(self, var: str = "ACCESS_TOKEN") -> None:
        self.var = var

    async def get_token(self) -> str | None:
        return os.environ.get(self.var) or None

    async def set_token(self, token: str) -> None:
        os.environ[self.var] = token

    async def clear(self) -> None:
        os.environ.pop(self.var, None)


class FileTokenStore:
    """Persists the token in a small JSON document on disk."""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = Path(path)

    async def get_token(self) -> str | None:
        apath = anyio.Path(self.path)
        if not await apath.exists():
            return None
        try:
            payload = json.loads(await apath.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.warning("Ignoring unreadable token file", extra={"path": str(self.path)})
            return None
        token = payload.get("access_token") if isinstance(payload, dict) else None
        return token if isinstance(token, str) and token else None

    async def set_token(self, token: str) -> None:
        apath = anyio.Path(self.path)
        await apath.parent.mkdir(parents=True, exist_ok=True)
        await apath.write_text(json.dumps({"access_token": token}), encoding="utf-8")

    async def clear(self) -> None:
        await anyio.Path(self.path).unlink(missing_ok=True)
