"""Fake aiohttp session and canned B2C responses shared by the tests."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

from multidict import CIMultiDict

from custom_components.legrand_cloud.const import (
    B2C_AUTHORIZE_URL,
    B2C_CONFIRMED_URL,
    B2C_REDIRECT_URI,
    B2C_SELF_ASSERTED_URL,
    B2C_TOKEN_URL,
)

START = 1_700_000_000.0

AUTHORIZE_HTML = """<!DOCTYPE html>
<html><head>
<script>var SETTINGS = {"remoteResource":"https://example/unified.html",
"transId":"StateProperties=xyz","csrf":"abc123",
"api":"CombinedSigninAndSignup"};</script>
</head><body>
<form id="localAccountForm" method="post">
<input type="hidden" name="csrf_token" value="abc123" />
<input type="email" id="logonIdentifier" />
</form>
<a href="/tenant/policy/SelfAsserted?tx=StateProperties=xyz&amp;p=policy">x</a>
</body></html>
"""

TOKEN_JSON = (
    '{"access_token":"tok1","refresh_token":"ref1",'
    '"expires_in":3600,"token_type":"Bearer"}'
)


@dataclass
class FakeResponse:
    """Minimal stand-in for aiohttp.ClientResponse."""

    status: int = 200
    body: str | bytes = ""
    headers: Any = field(default_factory=CIMultiDict)
    url: str = ""

    def __post_init__(self) -> None:
        if not isinstance(self.headers, CIMultiDict):
            self.headers = CIMultiDict(self.headers)

    async def text(self, encoding: str = "utf-8", errors: str = "strict") -> str:
        # Yield so concurrent callers interleave like real I/O
        await asyncio.sleep(0)
        if isinstance(self.body, bytes):
            return self.body.decode(encoding, errors)
        return self.body

    async def __aenter__(self) -> FakeResponse:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        return None


@dataclass
class RecordedRequest:
    """A request made against the fake session."""

    method: str
    url: str
    kwargs: dict[str, Any]

    @property
    def params(self) -> dict[str, str]:
        return dict(self.kwargs.get("params") or {})

    @property
    def headers(self) -> dict[str, str]:
        return dict(self.kwargs.get("headers") or {})

    @property
    def data(self) -> dict[str, str]:
        return dict(self.kwargs.get("data") or {})

    @property
    def json(self) -> Any:
        return self.kwargs.get("json")


class FakeSession:
    """Serve queued responses per (method, url) and record every request."""

    def __init__(self) -> None:
        self._routes: list[tuple[str, str, FakeResponse | BaseException, bool]] = []
        self.requests: list[RecordedRequest] = []
        self.closed = False

    def add(
        self,
        method: str,
        url: str,
        response: FakeResponse | BaseException,
        *,
        repeat: bool = False,
    ) -> None:
        """Queue a response (or an exception to raise) for a request."""
        self._routes.append((method.upper(), url, response, repeat))

    def request(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        self.requests.append(RecordedRequest(method.upper(), url, kwargs))
        for index, (r_method, r_url, response, repeat) in enumerate(self._routes):
            if r_method == method.upper() and r_url == url:
                if not repeat:
                    del self._routes[index]
                if isinstance(response, BaseException):
                    raise response
                return response
        raise AssertionError(f"Unexpected request: {method} {url}")

    async def close(self) -> None:
        self.closed = True

    def calls(self, method: str, url: str) -> list[RecordedRequest]:
        """Return the recorded requests for a method and url."""
        return [r for r in self.requests if r.method == method and r.url == url]


def add_login_routes(
    session: FakeSession,
    *,
    authorize: FakeResponse | None = None,
    self_asserted: FakeResponse | None = None,
    confirmed: FakeResponse | None = None,
    token: FakeResponse | None = None,
) -> None:
    """Queue one complete, successful login choreography."""
    session.add(
        "GET",
        B2C_AUTHORIZE_URL,
        authorize
        or FakeResponse(
            200,
            AUTHORIZE_HTML,
            headers=[
                ("Set-Cookie", "x-ms-cpim-csrf=abc123; domain=login.example; path=/"),
                ("Set-Cookie", "x-ms-cpim-trans=t1; path=/; HttpOnly"),
            ],
        ),
    )
    session.add(
        "POST",
        B2C_SELF_ASSERTED_URL,
        self_asserted
        or FakeResponse(
            200,
            '{"status":"200"}',
            headers=[("Set-Cookie", "x-ms-cpim-cache|abc=c1; path=/")],
        ),
    )
    session.add(
        "GET",
        B2C_CONFIRMED_URL,
        confirmed
        or FakeResponse(
            302,
            "",
            headers=[
                (
                    "Location",
                    f"{B2C_REDIRECT_URI}?state=S1&code=AUTHCODE123&client_info=ci",
                )
            ],
        ),
    )
    session.add(
        "POST", B2C_TOKEN_URL, token or FakeResponse(200, TOKEN_JSON)
    )


class FakeClock:
    """Settable time source."""

    def __init__(self, now: float = START) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now
