"""Shared httpx client construction and checked GET helper."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import httpx

from .config import HTTP_CONNECT_TIMEOUT_SECONDS, HTTP_TIMEOUT_SECONDS
from .errors import TransportError


def build_client() -> httpx.AsyncClient:
    """Create an httpx async client with the service-wide timeouts."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(HTTP_TIMEOUT_SECONDS, connect=HTTP_CONNECT_TIMEOUT_SECONDS),
        follow_redirects=True,
    )


@asynccontextmanager
async def client_scope(
    client: httpx.AsyncClient | None = None,
) -> AsyncIterator[httpx.AsyncClient]:
    """Yield *client*, or a fresh one that is closed on exit."""
    own_client = client is None
    if own_client:
        client = build_client()
    try:
        yield client
    finally:
        if own_client:
            await client.aclose()


async def get_checked(
    client: httpx.AsyncClient,
    url: str,
    *,
    failure_message: str,
    **kwargs: Any,
) -> httpx.Response:
    """GET *url* and return the response if it is a success.

    Raises TransportError with *failure_message* plus the status text on a
    non-success response, and on any network-level failure.
    """
    try:
        resp = await client.get(url, **kwargs)
    except httpx.RequestError as exc:
        raise TransportError(f"{failure_message}. {exc.__class__.__name__}: {exc}") from exc

    if not resp.is_success:
        raise TransportError(
            f"{failure_message}. {resp.status_code} {resp.reason_phrase}".rstrip()
        )
    return resp
