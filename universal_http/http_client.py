"""Transport selection and AsyncClient construction."""

import httpx


def default_transport() -> httpx.AsyncBaseTransport:
    """
    Return the host's network transport.

    Every call builds a fresh instance so clients never share connection state.
    """
    return httpx.AsyncHTTPTransport()


def create_async_client(transport: httpx.AsyncBaseTransport, timeout_ms: int) -> httpx.AsyncClient:
    """
    Build the AsyncClient owned by one client instance.

    The pipeline joins URLs itself, so no ``base_url`` is configured here.
    Redirects are followed the same way the browser fetch primitive does.
    """
    return httpx.AsyncClient(
        transport=transport,
        timeout=timeout_ms / 1000,
        follow_redirects=True,
    )
