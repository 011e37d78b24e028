"""Single-request HTTP helper and cookie handling for the B2C login."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
import logging
from typing import Any

import aiohttp

from .const import REQUEST_TIMEOUT
from .exceptions import NetworkError

_LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT = aiohttp.ClientTimeout(total=REQUEST_TIMEOUT)


@dataclass(frozen=True)
class HttpResponse:
    """Captured result of one HTTP exchange."""

    status: int
    body: str
    set_cookies: tuple[str, ...] = ()
    location: str | None = None
    url: str = ""

    @property
    def ok(self) -> bool:
        """Return True for a 2xx status."""
        return 200 <= self.status < 300


def mask_token(token: str | None) -> str:
    """Mask a token for safe logging."""
    if not token:
        return "<none>"
    if len(token) <= 8:
        return "****"
    return f"{token[:4]}...{token[-4:]}"


async def async_request(
    session: aiohttp.ClientSession,
    method: str,
    url: str,
    *,
    headers: Mapping[str, str] | None = None,
    params: Mapping[str, str] | None = None,
    data: Any = None,
    json: Any = None,
    timeout: aiohttp.ClientTimeout = DEFAULT_TIMEOUT,
) -> HttpResponse:
    """Perform exactly one request without following redirects.

    Raises:
        NetworkError: On connection, DNS, TLS or timeout failures.
    """
    try:
        async with session.request(
            method,
            url,
            headers=dict(headers) if headers else None,
            params=params,
            data=data,
            json=json,
            allow_redirects=False,
            timeout=timeout,
        ) as resp:
            # Undecodable bytes are replaced so a garbled body surfaces as a
            # parse failure in the caller
            body = await resp.text(errors="replace")
            _LOGGER.debug(
                "%s %s: HTTP %s (%d bytes)",
                method,
                url.split("?", 1)[0],
                resp.status,
                len(body),
            )
            return HttpResponse(
                status=resp.status,
                body=body,
                set_cookies=tuple(resp.headers.getall("Set-Cookie", [])),
                location=resp.headers.get("Location"),
                url=str(resp.url),
            )
    except asyncio.TimeoutError as err:
        raise NetworkError(f"Request to {url} timed out") from err
    except aiohttp.ClientError as err:
        raise NetworkError(f"Error communicating with {url}: {err}") from err


def merge_cookies(
    existing: Mapping[str, str], set_cookie_headers: Iterable[str]
) -> dict[str, str]:
    """Merge raw Set-Cookie headers into a copy of a cookie jar.

    Existing names are overwritten in place, new names are appended in the
    order they are seen. Cookie attributes (Path, HttpOnly, ...) are dropped.
    """
    jar = dict(existing)
    for header in set_cookie_headers:
        pair = header.split(";", 1)[0].strip()
        if "=" not in pair:
            continue
        name, value = pair.split("=", 1)
        name = name.strip()
        if name:
            jar[name] = value
    return jar


def serialize_cookies(jar: Mapping[str, str]) -> str:
    """Serialize a cookie jar into a Cookie header value."""
    return "; ".join(f"{name}={value}" for name, value in jar.items())

