"""Azure AD B2C login choreography for the Legrand cloud.

The identity provider only exposes its interactive sign-in pages, so the
login is a literal replay of what the mobile app's embedded browser does:

    S0  start                   fresh PKCE pair and state
    S1  GET  .../authorize      learn CSRF token, transaction id, cookies
    S2  POST .../SelfAsserted   submit email and password
    S3  GET  .../confirmed      harvest the authorization code

Each state is an immutable value holding only what the flow has established
so far, and each step turns one state into the next. A failed step raises;
there is nothing to resume from, so a retry always starts again at S0 with a
new PKCE pair.

Every value scraped from markup is read through an ordered chain of
extractor functions (first non-empty result wins) so that a change in the
provider's page shape can be handled by appending a function to a chain.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from html import unescape as html_unescape
import json
import logging
import re
from typing import Any, TypeVar
import urllib.parse

import aiohttp

from .const import (
    AUTH_USER_AGENT,
    B2C_AUTHORIZE_URL,
    B2C_BASE_URL,
    B2C_CLIENT_ID,
    B2C_CONFIRMED_URL,
    B2C_POLICY,
    B2C_REDIRECT_URI,
    B2C_SCOPES,
    B2C_SELF_ASSERTED_URL,
)
from .exceptions import AuthConfigError, InvalidCredentialsError, LoginConfirmationError
from .pkce import PkcePair, generate_pkce, generate_state
from .transport import (
    HttpResponse,
    async_request,
    mask_token,
    merge_cookies,
    serialize_cookies,
)

_LOGGER = logging.getLogger(__name__)

CSRF_COOKIE_MARKER = "x-ms-cpim-csrf"
TX_MARKER = "StateProperties="

_T = TypeVar("_T")


@dataclass(frozen=True)
class Credentials:
    """Account email and password for one authentication attempt."""

    email: str
    password: str = field(repr=False)


# ----------------------------------------------------------------------
# Choreography states
# ----------------------------------------------------------------------


@dataclass(frozen=True)
class LoginStarted:
    """S0: PKCE pair and state generated, nothing sent yet."""

    pkce: PkcePair
    state: str


@dataclass(frozen=True)
class LoginAuthorized:
    """S1 done: the sign-in page has been fetched and scraped."""

    pkce: PkcePair
    csrf_token: str
    tx: str
    cookies: Mapping[str, str]


@dataclass(frozen=True)
class CredentialsAccepted:
    """S2 done: the provider accepted the email and password."""

    pkce: PkcePair
    csrf_token: str
    tx: str
    cookies: Mapping[str, str]


@dataclass(frozen=True)
class LoginConfirmed:
    """S3 done: an authorization code is ready for the token exchange."""

    pkce: PkcePair
    code: str


# ----------------------------------------------------------------------
# Extractor chains
# ----------------------------------------------------------------------


@dataclass(frozen=True)
class AuthorizePage:
    """The sign-in page as seen by the CSRF and transaction extractors."""

    body: str
    cookies: Mapping[str, str]


@dataclass(frozen=True)
class ConfirmPage:
    """The confirmation response as seen by the code extractors."""

    body: str
    location: str | None


def first_match(
    extractors: Sequence[Callable[[_T], str | None]], source: _T
) -> str | None:
    """Return the first non-empty value produced by an extractor chain."""
    for extractor in extractors:
        value = extractor(source)
        if value:
            return value
    return None


def csrf_from_form_field(page: AuthorizePage) -> str | None:
    """Read the hidden csrf_token form field."""
    match = re.search(r'name="csrf_token"[^>]*value="([^"]+)"', page.body)
    return match.group(1) if match else None


def csrf_from_cookie(page: AuthorizePage) -> str | None:
    """Read the B2C CSRF cookie."""
    for name, value in page.cookies.items():
        if CSRF_COOKIE_MARKER in name.lower() and value:
            return value
    return None


def csrf_from_settings(page: AuthorizePage) -> str | None:
    """Read the csrf entry of the page's inline SETTINGS object."""
    match = re.search(r'"csrf"\s*:\s*"([^"]+)"', page.body)
    return match.group(1) if match else None


def tx_from_state_properties(page: AuthorizePage) -> str | None:
    """Read the StateProperties transaction marker embedded in page URLs."""
    match = re.search(rf"{TX_MARKER}([^\"&'\s<>]+)", page.body)
    return f"{TX_MARKER}{match.group(1)}" if match else None


def tx_from_settings(page: AuthorizePage) -> str | None:
    """Read the transId entry of the page's inline SETTINGS object."""
    match = re.search(r'"transId"\s*:\s*"([^"]+)"', page.body)
    return match.group(1) if match else None


def _code_from_url(url: str) -> str | None:
    parsed = urllib.parse.urlparse(url)
    for part in (parsed.query, parsed.fragment):
        codes = urllib.parse.parse_qs(part).get("code")
        if codes:
            return codes[0]
    return None


def code_from_location(page: ConfirmPage) -> str | None:
    """Read the code parameter of a redirect Location header."""
    if not page.location:
        return None
    return _code_from_url(page.location)


def code_from_body(page: ConfirmPage) -> str | None:
    """Find a code= parameter anywhere in the response body."""
    match = re.search(r"\bcode=([^&\"'\s<]+)", page.body)
    return urllib.parse.unquote(match.group(1)) if match else None


def code_from_redirect_script(page: ConfirmPage) -> str | None:
    """Find a client-side redirect carrying the code.

    Handles window.location / location.href assignments and
    location.replace() calls, including JavaScript-escaped URLs.
    """
    match = re.search(
        r"""location(?:\.href)?\s*=\s*['"]([^'"]+)['"]"""
        r"""|location\.replace\(\s*['"]([^'"]+)['"]""",
        page.body,
    )
    if not match:
        return None
    url = match.group(1) or match.group(2)
    url = url.replace("\\u0026", "&").replace("\\/", "/")
    return _code_from_url(html_unescape(url))


CSRF_EXTRACTORS: tuple[Callable[[AuthorizePage], str | None], ...] = (
    csrf_from_form_field,
    csrf_from_cookie,
    csrf_from_settings,
)

TX_EXTRACTORS: tuple[Callable[[AuthorizePage], str | None], ...] = (
    tx_from_state_properties,
    tx_from_settings,
)

CODE_EXTRACTORS: tuple[Callable[[ConfirmPage], str | None], ...] = (
    code_from_location,
    code_from_body,
    code_from_redirect_script,
)


# ----------------------------------------------------------------------
# Choreography driver
# ----------------------------------------------------------------------


class LegrandLogin:
    """Drive one Azure AD B2C sign-in from S0 to an authorization code."""

    def __init__(self, session: aiohttp.ClientSession) -> None:
        """Initialise the login driver.

        Args:
            session: aiohttp session without its own cookie handling; the
                     cookie jar is carried explicitly between steps.
        """
        self._session = session

    async def async_run(self, credentials: Credentials) -> LoginConfirmed:
        """Run S0 to S3 and return the confirmed state."""
        started = self.start()
        _LOGGER.debug("Legrand login: step 1, authorize")
        authorized = await self.async_authorize(started)
        _LOGGER.debug(
            "Legrand login: step 2, submit credentials (csrf=%s)",
            mask_token(authorized.csrf_token),
        )
        accepted = await self.async_submit_credentials(authorized, credentials)
        _LOGGER.debug("Legrand login: step 3, confirm")
        confirmed = await self.async_confirm(accepted)
        _LOGGER.debug(
            "Legrand login: got authorization code=%s", mask_token(confirmed.code)
        )
        return confirmed

    @staticmethod
    def start() -> LoginStarted:
        """S0: generate a fresh PKCE pair and state."""
        return LoginStarted(pkce=generate_pkce(), state=generate_state())

    async def async_authorize(self, started: LoginStarted) -> LoginAuthorized:
        """S1: fetch the sign-in page and scrape CSRF token and tx.

        Raises:
            AuthConfigError: If the page is missing an expected marker.
        """
        params = {
            "client_id": B2C_CLIENT_ID,
            "redirect_uri": B2C_REDIRECT_URI,
            "response_type": "code",
            "scope": B2C_SCOPES,
            "state": started.state,
            "code_challenge": started.pkce.challenge,
            "code_challenge_method": "S256",
            # Always show the form so the CSRF token is issued, even when a
            # previous SSO session would otherwise short-circuit the flow.
            "prompt": "login",
        }
        resp = await async_request(
            self._session,
            "GET",
            B2C_AUTHORIZE_URL,
            params=params,
            headers={
                "Accept": "text/html,application/xhtml+xml",
                "User-Agent": AUTH_USER_AGENT,
            },
        )
        if resp.status != 200:
            _LOGGER.warning(
                "Legrand authorize: HTTP %s, body: %s", resp.status, resp.body[:200]
            )
            raise AuthConfigError(
                f"Sign-in page request failed (HTTP {resp.status})",
                status=resp.status,
            )

        cookies = merge_cookies({}, resp.set_cookies)
        page = AuthorizePage(body=resp.body, cookies=cookies)

        csrf_token = first_match(CSRF_EXTRACTORS, page)
        if not csrf_token:
            _LOGGER.warning(
                "Legrand authorize: no CSRF token, cookies=%s, preview: %s",
                list(cookies),
                resp.body[:300],
            )
            raise AuthConfigError("Could not find CSRF token on the sign-in page")

        tx = first_match(TX_EXTRACTORS, page)
        if not tx:
            _LOGGER.warning(
                "Legrand authorize: no transaction id, preview: %s", resp.body[:300]
            )
            raise AuthConfigError(
                "Could not find transaction id on the sign-in page"
            )

        return LoginAuthorized(
            pkce=started.pkce, csrf_token=csrf_token, tx=tx, cookies=cookies
        )

    async def async_submit_credentials(
        self, authorized: LoginAuthorized, credentials: Credentials
    ) -> CredentialsAccepted:
        """S2: post the email and password to the SelfAsserted endpoint.

        Raises:
            InvalidCredentialsError: If the provider rejects the submission.
        """
        resp = await async_request(
            self._session,
            "POST",
            B2C_SELF_ASSERTED_URL,
            params={"tx": authorized.tx, "p": B2C_POLICY},
            data={
                "request_type": "RESPONSE",
                "logonIdentifier": credentials.email,
                "password": credentials.password,
            },
            headers={
                "Content-Type": "application/x-www-form-urlencoded; charset=UTF-8",
                "Accept": "application/json",
                "X-Requested-With": "XMLHttpRequest",
                "X-CSRF-TOKEN": authorized.csrf_token,
                "Cookie": serialize_cookies(authorized.cookies),
                "User-Agent": AUTH_USER_AGENT,
                "Origin": B2C_BASE_URL,
                "Referer": B2C_AUTHORIZE_URL,
            },
        )
        if resp.status != 200:
            raise InvalidCredentialsError(
                f"Credential submission failed (HTTP {resp.status}): "
                f"{resp.body[:200]}",
                status=resp.status,
            )

        message = _self_asserted_error(resp)
        if message is not None:
            raise InvalidCredentialsError(f"Login failed: {message}")

        return CredentialsAccepted(
            pkce=authorized.pkce,
            csrf_token=authorized.csrf_token,
            tx=authorized.tx,
            cookies=merge_cookies(authorized.cookies, resp.set_cookies),
        )

    async def async_confirm(self, accepted: CredentialsAccepted) -> LoginConfirmed:
        """S3: call the confirmation endpoint and harvest the code.

        Raises:
            LoginConfirmationError: If no authorization code can be found.
        """
        resp = await async_request(
            self._session,
            "GET",
            B2C_CONFIRMED_URL,
            params={
                "rememberMe": "false",
                "csrf_token": accepted.csrf_token,
                "tx": accepted.tx,
                "p": B2C_POLICY,
            },
            headers={
                "Accept": (
                    "text/html,application/xhtml+xml,"
                    "application/xml;q=0.9,*/*;q=0.8"
                ),
                "X-Requested-With": "XMLHttpRequest",
                "X-CSRF-TOKEN": accepted.csrf_token,
                "Cookie": serialize_cookies(accepted.cookies),
                "User-Agent": AUTH_USER_AGENT,
                "Referer": B2C_AUTHORIZE_URL,
            },
        )

        _raise_for_redirect_error(resp.location)

        code = first_match(
            CODE_EXTRACTORS, ConfirmPage(body=resp.body, location=resp.location)
        )
        if code:
            return LoginConfirmed(pkce=accepted.pkce, code=code)

        if "error" in resp.body.lower():
            raise LoginConfirmationError(
                f"Confirmation failed: {resp.body[:200]}", status=resp.status
            )
        raise LoginConfirmationError(
            "Could not get authorization code from confirmation response",
            status=resp.status,
        )


def _self_asserted_error(resp: HttpResponse) -> str | None:
    """Return the rejection message of a SelfAsserted response, if any.

    The endpoint answers HTTP 200 for both outcomes; a rejection is a JSON
    body with status "400" or a message. Non-JSON bodies are accepted.
    """
    try:
        data: Any = json.loads(resp.body)
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    if str(data.get("status")) == "400" or data.get("message"):
        return str(data.get("message") or "Invalid credentials")
    return None


def _raise_for_redirect_error(location: str | None) -> None:
    """Raise if the provider redirected back with an OAuth2 error."""
    if not location:
        return
    parsed = urllib.parse.urlparse(location)
    params = urllib.parse.parse_qs(parsed.query or parsed.fragment)
    if "error" in params and "code" not in params:
        description = params.get("error_description", params["error"])[0]
        raise LoginConfirmationError(f"Login was not confirmed: {description}")
