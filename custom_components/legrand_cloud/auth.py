"""Azure AD B2C authentication handler for the Legrand cloud."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
import json
import logging
import time
from typing import Any

import aiohttp

from .const import (
    AUTH_USER_AGENT,
    B2C_CLIENT_ID,
    B2C_REDIRECT_URI,
    B2C_SCOPES,
    B2C_TOKEN_URL,
    DEFAULT_TOKEN_LIFETIME,
    TOKEN_EXPIRY_MARGIN,
)
from .exceptions import (
    AuthenticationError,
    LegrandError,
    NoCredentialsError,
    TokenExchangeError,
)
from .login import Credentials, LegrandLogin
from .transport import async_request, mask_token

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenRecord:
    """An access token, its optional refresh token and its expiry."""

    access_token: str
    refresh_token: str | None
    expires_at: float

    def is_valid(self, now: float) -> bool:
        """Return True unless the token is within the expiry margin."""
        return now < self.expires_at - TOKEN_EXPIRY_MARGIN


def _create_login_session() -> aiohttp.ClientSession:
    """Create a session for one login attempt.

    Cookies are carried explicitly by the choreography, so the session
    must not keep (or resend) any of its own.
    """
    return aiohttp.ClientSession(cookie_jar=aiohttp.DummyCookieJar())


class LegrandAuth:
    """Handle Azure AD B2C authentication for the Legrand cloud.

    Holds a single token record and decides on every request whether to
    reuse it, refresh it with the refresh_token grant, or run the full
    login choreography. At most one refresh or login runs at a time;
    concurrent callers wait for it and share its result.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        email: str | None = None,
        password: str | None = None,
        *,
        login_session_factory: Callable[
            [], aiohttp.ClientSession
        ] = _create_login_session,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialise the auth handler.

        Args:
            session: aiohttp session used for the token endpoint.
            email: Account email, if logging in with a password.
            password: Account password.
            login_session_factory: Creates the cookie-less session used for
                                   each login attempt.
            clock: Returns the current time in epoch seconds.
        """
        self._session = session
        self._credentials = (
            Credentials(email=email, password=password)
            if email and password
            else None
        )
        self._login_session_factory = login_session_factory
        self._clock = clock
        self._token: TokenRecord | None = None
        self._lock = asyncio.Lock()
        self._shutdown = False

    @property
    def token(self) -> TokenRecord | None:
        """Return the current token record."""
        return self._token

    @property
    def access_token(self) -> str | None:
        """Return the current access token."""
        return self._token.access_token if self._token else None

    @property
    def refresh_token(self) -> str | None:
        """Return the current refresh token."""
        return self._token.refresh_token if self._token else None

    @property
    def expires_at(self) -> float:
        """Return the token expiry timestamp."""
        return self._token.expires_at if self._token else 0.0

    def has_credentials(self) -> bool:
        """Return True if an email and password are configured."""
        return self._credentials is not None

    def set_tokens(
        self,
        access_token: str,
        refresh_token: str | None = None,
        expires_in: float = DEFAULT_TOKEN_LIFETIME,
    ) -> None:
        """Store a manually obtained token.

        The token takes part in the normal expiry check. Without a refresh
        token it is replaced by a full login once expired.
        """
        self._token = TokenRecord(
            access_token=access_token,
            refresh_token=refresh_token or None,
            expires_at=self._clock() + expires_in,
        )
        _LOGGER.debug(
            "Access token set manually (token=%s, expires_in=%s)",
            mask_token(access_token),
            expires_in,
        )

    def shutdown(self) -> None:
        """Stop starting new logins; a valid cached token is still served."""
        self._shutdown = True

    async def async_get_access_token(self) -> str:
        """Return a valid access token, refreshing or logging in if necessary.

        Raises:
            NoCredentialsError: If the token expired and no password is set.
            AuthenticationError: If the fallback login fails.
        """
        token = self._token
        if token and token.is_valid(self._clock()):
            return token.access_token

        async with self._lock:
            # Another caller may have finished a refresh while we waited
            token = self._token
            if token and token.is_valid(self._clock()):
                return token.access_token

            if self._shutdown:
                raise AuthenticationError(
                    "Shutting down, not starting a new authentication"
                )

            if token and token.refresh_token:
                _LOGGER.debug("Access token expired, refreshing via refresh_token")
                try:
                    self._token = await self.async_refresh_token(token.refresh_token)
                except LegrandError as err:
                    _LOGGER.warning(
                        "Token refresh failed, logging in again: %s", err
                    )
                else:
                    return self._token.access_token

            self._token = await self._async_authenticate()
            return self._token.access_token

    async def async_login(self) -> TokenRecord:
        """Run the full login choreography, replacing any cached token."""
        async with self._lock:
            self._token = await self._async_authenticate()
            return self._token

    async def _async_authenticate(self) -> TokenRecord:
        """Log in with the configured credentials and exchange the code."""
        if self._credentials is None:
            raise NoCredentialsError(
                "No valid access token and no email/password configured"
            )

        _LOGGER.info("Authenticating with Legrand cloud")
        login_session = self._login_session_factory()
        try:
            confirmed = await LegrandLogin(login_session).async_run(
                self._credentials
            )
            token = await self.async_exchange_code(
                confirmed.code, confirmed.pkce.verifier
            )
        except LegrandError as err:
            _LOGGER.error(
                "Legrand authentication failed: %s: %s", type(err).__name__, err
            )
            raise
        finally:
            await login_session.close()

        _LOGGER.info("Legrand authentication successful")
        return token

    async def async_exchange_code(self, code: str, code_verifier: str) -> TokenRecord:
        """Exchange an authorization code for tokens using PKCE.

        Raises:
            TokenExchangeError: On a non-2xx status or unreadable body.
        """
        data = await self._async_post_token(
            {
                "grant_type": "authorization_code",
                "client_id": B2C_CLIENT_ID,
                "code": code,
                "redirect_uri": B2C_REDIRECT_URI,
                "code_verifier": code_verifier,
                "scope": B2C_SCOPES,
            }
        )
        return self._record_from_response(data, previous_refresh_token=None)

    async def async_refresh_token(self, refresh_token: str) -> TokenRecord:
        """Use a refresh token to obtain new tokens.

        The previous refresh token is kept if the response omits one.

        Raises:
            TokenExchangeError: On a non-2xx status or unreadable body.
        """
        data = await self._async_post_token(
            {
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "client_id": B2C_CLIENT_ID,
                "scope": B2C_SCOPES,
            }
        )
        record = self._record_from_response(
            data, previous_refresh_token=refresh_token
        )
        _LOGGER.debug(
            "Token refreshed, access_token=%s", mask_token(record.access_token)
        )
        return record

    async def _async_post_token(self, form: dict[str, str]) -> dict[str, Any]:
        """POST a form to the token endpoint and return the parsed JSON."""
        resp = await async_request(
            self._session,
            "POST",
            B2C_TOKEN_URL,
            data=form,
            headers={
                "Content-Type": "application/x-www-form-urlencoded",
                "Accept": "application/json",
                "User-Agent": AUTH_USER_AGENT,
            },
        )
        if not resp.ok:
            _LOGGER.error(
                "Token request (%s) failed (HTTP %s): %s",
                form["grant_type"],
                resp.status,
                resp.body[:200],
            )
            raise TokenExchangeError(
                f"Token request failed (HTTP {resp.status})", status=resp.status
            )
        try:
            data = json.loads(resp.body)
        except ValueError as err:
            raise TokenExchangeError(
                "Invalid token response", status=resp.status
            ) from err
        if not isinstance(data, dict) or not data.get("access_token"):
            raise TokenExchangeError(
                "Token response has no access_token", status=resp.status
            )
        return data

    def _record_from_response(
        self, data: dict[str, Any], previous_refresh_token: str | None
    ) -> TokenRecord:
        """Build a token record, stamping the expiry at receipt time."""
        try:
            expires_in = float(data.get("expires_in", DEFAULT_TOKEN_LIFETIME))
        except (TypeError, ValueError) as err:
            raise TokenExchangeError("Invalid expires_in in token response") from err
        return TokenRecord(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token") or previous_refresh_token,
            expires_at=self._clock() + expires_in,
        )
