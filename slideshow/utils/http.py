"""HTTP helpers shared by the upstream API clients."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable

import httpx

from slideshow.core.errors import UpstreamError


@asynccontextmanager
async def open_client(
    client: httpx.AsyncClient | None, *, timeout: float
) -> AsyncIterator[httpx.AsyncClient]:
    """Yield the injected client, or a short-lived one bounded by ``timeout``."""
    if client is not None:
        yield client
        return
    async with httpx.AsyncClient(timeout=timeout) as owned:
        yield owned


async def send_checked(
    func: Callable[..., Awaitable[httpx.Response]],
    *args,
    **kwargs,
) -> httpx.Response:
    """Issue a single request and translate every failure into ``UpstreamError``."""
    try:
        response = await func(*args, **kwargs)
    except httpx.TimeoutException as exc:
        raise UpstreamError(None, f"timeout: {exc!r}") from exc
    except httpx.HTTPError as exc:
        raise UpstreamError(None, f"transport error: {exc!r}") from exc

    if not response.is_success:
        raise UpstreamError(response.status_code, response.text)
    return response


__all__ = ["open_client", "send_checked"]
