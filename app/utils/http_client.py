"""
HTTP client factory for OpenAI-compatible backend calls.

One shared `httpx.AsyncClient` is reused by every ChatOpenAI instance the
generator builds, so all model streams draw from a single connection pool.
HTTP/2 is disabled: long-lived streaming responses behind reverse proxies
fail with "terminated" errors when a reused HTTP/2 connection was closed
upstream.

Usage:
    from app.utils.http_client import get_http_client

    client = ChatOpenAI(
        model="...",
        http_async_client=get_http_client(),
        ...
    )
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

# Module-level client instance (lazy initialization)
_http_client: Optional[httpx.AsyncClient] = None


def get_connection_limits() -> httpx.Limits:
    """Connection pool limits sized for several concurrent model streams."""
    return httpx.Limits(
        max_keepalive_connections=20,
        max_connections=100,
        keepalive_expiry=30.0,  # Force-close idle connections to prevent zombies
    )


def get_http_client() -> httpx.AsyncClient:
    """Get the shared async HTTP client, creating it on first use."""
    global _http_client

    if _http_client is None:
        _http_client = httpx.AsyncClient(
            http2=False,
            limits=get_connection_limits(),
            timeout=httpx.Timeout(
                connect=30.0,
                read=600.0,  # Long reads for slow token streams
                write=30.0,
                pool=30.0,
            ),
        )
        logger.info("HTTP client configured: http2=False, max_connections=100, read_timeout=600s")

    return _http_client


async def close_http_client() -> None:
    """
    Close the shared HTTP client.

    Call this during application shutdown to cleanly release connections.
    """
    global _http_client

    if _http_client is not None:
        logger.info("Closing shared HTTP client")
        await _http_client.aclose()
        _http_client = None
