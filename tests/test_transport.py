"""Tests for the HTTP helper and cookie jar handling."""

from __future__ import annotations

import asyncio

import aiohttp
import pytest

from custom_components.legrand_cloud.exceptions import NetworkError
from custom_components.legrand_cloud.transport import (
    DEFAULT_TIMEOUT,
    async_request,
    mask_token,
    merge_cookies,
    serialize_cookies,
)

from .common import FakeResponse, FakeSession

URL = "https://login.example/authorize"


def test_merge_cookies_overwrites_and_appends() -> None:
    existing = {"a": "1"}
    jar = merge_cookies(existing, ["a=2; Path=/", "b=3; HttpOnly"])
    assert jar == {"a": "2", "b": "3"}
    assert serialize_cookies(jar) == "a=2; b=3"
    assert existing == {"a": "1"}


def test_merge_cookies_skips_malformed_and_keeps_equals_in_value() -> None:
    jar = merge_cookies({}, ["garbage; Path=/", "=x", "tok=a=b==; Secure"])
    assert jar == {"tok": "a=b=="}


def test_serialize_cookies_empty() -> None:
    assert serialize_cookies({}) == ""


def test_mask_token() -> None:
    assert mask_token(None) == "<none>"
    assert mask_token("short") == "****"
    assert mask_token("abcdefghijkl") == "abcd...ijkl"


async def test_async_request_captures_response() -> None:
    session = FakeSession()
    session.add(
        "GET",
        URL,
        FakeResponse(
            302,
            "moved",
            headers=[
                ("Set-Cookie", "a=1; Path=/"),
                ("Set-Cookie", "b=2"),
                ("Location", "app://auth?code=xyz"),
            ],
            url=URL,
        ),
    )

    resp = await async_request(session, "GET", URL, params={"q": "1"})

    assert resp.status == 302
    assert not resp.ok
    assert resp.body == "moved"
    assert resp.set_cookies == ("a=1; Path=/", "b=2")
    assert resp.location == "app://auth?code=xyz"
    request = session.requests[0]
    assert request.kwargs["allow_redirects"] is False
    assert request.kwargs["timeout"] is DEFAULT_TIMEOUT
    assert request.params == {"q": "1"}


async def test_async_request_without_location() -> None:
    session = FakeSession()
    session.add("POST", URL, FakeResponse(200, "{}"))

    resp = await async_request(session, "POST", URL, data={"x": "y"})

    assert resp.ok
    assert resp.location is None
    assert resp.set_cookies == ()
    assert session.requests[0].data == {"x": "y"}


@pytest.mark.parametrize(
    "error",
    [aiohttp.ClientConnectionError("refused"), asyncio.TimeoutError()],
)
async def test_async_request_maps_failures_to_network_error(
    error: BaseException,
) -> None:
    session = FakeSession()
    session.add("GET", URL, error)

    with pytest.raises(NetworkError):
        await async_request(session, "GET", URL)


async def test_async_request_replaces_undecodable_bytes() -> None:
    session = FakeSession()
    session.add("GET", URL, FakeResponse(200, b"\xff\xfe\xfa bad"))

    resp = await async_request(session, "GET", URL)

    assert resp.status == 200
    assert resp.body.endswith(" bad")
    assert "�" in resp.body
