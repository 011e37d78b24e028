"""Config flow for the Legrand Cloud integration."""

from __future__ import annotations

from collections.abc import Mapping
import logging
from typing import Any

import voluptuous as vol
from homeassistant.config_entries import (
    ConfigEntry,
    ConfigFlow,
    ConfigFlowResult,
    OptionsFlow,
)
from homeassistant.const import CONF_PASSWORD, CONF_SCAN_INTERVAL
from homeassistant.core import callback
from homeassistant.helpers.aiohttp_client import async_create_clientsession

from .api import LegrandApiClient
from .auth import LegrandAuth
from .const import (
    AUTH_METHOD_PASSWORD,
    AUTH_METHOD_TOKEN,
    CONF_ACCESS_TOKEN,
    CONF_AUTH_METHOD,
    CONF_DEBUG,
    CONF_DEVICES,
    CONF_EMAIL,
    DEFAULT_SCAN_INTERVAL,
    DOMAIN,
    MIN_SCAN_INTERVAL,
)
from .exceptions import (
    AuthConfigError,
    AuthenticationError,
    InvalidCredentialsError,
    LegrandError,
    RateLimitError,
)

_LOGGER = logging.getLogger(__name__)

PASSWORD_SCHEMA = vol.Schema(
    {
        vol.Required(CONF_EMAIL): str,
        vol.Required(CONF_PASSWORD): str,
    }
)

TOKEN_SCHEMA = vol.Schema(
    {
        vol.Required(CONF_ACCESS_TOKEN): str,
    }
)


def _error_key(err: LegrandError) -> str:
    """Map an exception to a config flow error key."""
    if isinstance(err, InvalidCredentialsError):
        return "invalid_auth"
    if isinstance(err, AuthConfigError):
        return "login_page_changed"
    if isinstance(err, RateLimitError):
        return "rate_limited"
    if isinstance(err, AuthenticationError) and err.status in (401, 403):
        return "invalid_auth"
    return "cannot_connect"


class LegrandConfigFlow(ConfigFlow, domain=DOMAIN):
    """Config flow for Legrand Cloud."""

    VERSION = 1

    async def async_step_user(
        self, user_input: dict[str, Any] | None = None
    ) -> ConfigFlowResult:
        """Handle the initial step: choose authentication method."""
        if user_input is not None:
            if user_input[CONF_AUTH_METHOD] == AUTH_METHOD_TOKEN:
                return await self.async_step_token()
            return await self.async_step_password()

        return self.async_show_form(
            step_id="user",
            data_schema=vol.Schema(
                {
                    vol.Required(
                        CONF_AUTH_METHOD, default=AUTH_METHOD_PASSWORD
                    ): vol.In(
                        {
                            AUTH_METHOD_PASSWORD: "Email + Password (Recommended)",
                            AUTH_METHOD_TOKEN: "Access Token",
                        }
                    ),
                }
            ),
        )

    async def _async_validate_password(self, email: str, password: str) -> None:
        """Log in and list plants to prove the account works."""
        session = async_create_clientsession(self.hass)
        auth = LegrandAuth(session, email=email, password=password)
        await auth.async_login()
        plants = await LegrandApiClient(session=session, auth=auth).async_get_plants()
        _LOGGER.debug("Legrand login OK, %d plant(s) on account", len(plants))

    async def _async_validate_token(self, token: str) -> None:
        """Call the API with a manually supplied token."""
        session = async_create_clientsession(self.hass)
        auth = LegrandAuth(session)
        auth.set_tokens(token)
        await LegrandApiClient(session=session, auth=auth).async_get_plants()

    async def async_step_password(
        self, user_input: dict[str, Any] | None = None
    ) -> ConfigFlowResult:
        """Handle email + password entry."""
        errors: dict[str, str] = {}

        if user_input is not None:
            email = user_input[CONF_EMAIL].strip()
            try:
                await self._async_validate_password(email, user_input[CONF_PASSWORD])
            except LegrandError as err:
                _LOGGER.warning(
                    "Legrand login: %s: %s", type(err).__name__, err
                )
                errors["base"] = _error_key(err)
            except Exception:
                _LOGGER.exception("Unexpected error during authentication")
                errors["base"] = "unknown"
            else:
                await self.async_set_unique_id(email.lower())
                self._abort_if_unique_id_configured()
                return self.async_create_entry(
                    title=f"Legrand - {email}",
                    data={
                        CONF_AUTH_METHOD: AUTH_METHOD_PASSWORD,
                        CONF_EMAIL: email,
                        CONF_PASSWORD: user_input[CONF_PASSWORD],
                    },
                )

        return self.async_show_form(
            step_id="password",
            data_schema=PASSWORD_SCHEMA,
            errors=errors,
        )

    async def async_step_token(
        self, user_input: dict[str, Any] | None = None
    ) -> ConfigFlowResult:
        """Handle manual access token entry."""
        errors: dict[str, str] = {}

        if user_input is not None:
            token = user_input[CONF_ACCESS_TOKEN].strip()
            if not token:
                errors["base"] = "invalid_auth"
            else:
                try:
                    await self._async_validate_token(token)
                except LegrandError as err:
                    _LOGGER.warning(
                        "Legrand access token: %s: %s", type(err).__name__, err
                    )
                    errors["base"] = _error_key(err)
                except Exception:
                    _LOGGER.exception("Unexpected error validating access token")
                    errors["base"] = "unknown"
                else:
                    await self.async_set_unique_id(f"token-{token[-12:]}")
                    self._abort_if_unique_id_configured()
                    return self.async_create_entry(
                        title="Legrand - Access Token",
                        data={
                            CONF_AUTH_METHOD: AUTH_METHOD_TOKEN,
                            CONF_ACCESS_TOKEN: token,
                        },
                    )

        return self.async_show_form(
            step_id="token",
            data_schema=TOKEN_SCHEMA,
            errors=errors,
        )

    # ------------------------------------------------------------------
    # Re-authentication
    # ------------------------------------------------------------------

    async def async_step_reauth(
        self, entry_data: Mapping[str, Any]
    ) -> ConfigFlowResult:
        """Handle re-authentication when the account is rejected."""
        if entry_data.get(CONF_AUTH_METHOD) == AUTH_METHOD_TOKEN:
            return await self.async_step_reauth_token()
        return await self.async_step_reauth_confirm()

    async def async_step_reauth_confirm(
        self, user_input: dict[str, Any] | None = None
    ) -> ConfigFlowResult:
        """Re-authenticate with email and password."""
        errors: dict[str, str] = {}
        entry = self._get_reauth_entry()

        if user_input is not None:
            email = user_input[CONF_EMAIL].strip()
            try:
                await self._async_validate_password(email, user_input[CONF_PASSWORD])
            except LegrandError as err:
                _LOGGER.warning("Legrand reauth: %s: %s", type(err).__name__, err)
                errors["base"] = _error_key(err)
            except Exception:
                _LOGGER.exception("Unexpected error during re-authentication")
                errors["base"] = "unknown"
            else:
                return self.async_update_reload_and_abort(
                    entry,
                    data={
                        **entry.data,
                        CONF_EMAIL: email,
                        CONF_PASSWORD: user_input[CONF_PASSWORD],
                    },
                )

        return self.async_show_form(
            step_id="reauth_confirm",
            data_schema=vol.Schema(
                {
                    vol.Required(
                        CONF_EMAIL, default=entry.data.get(CONF_EMAIL, "")
                    ): str,
                    vol.Required(CONF_PASSWORD): str,
                }
            ),
            errors=errors,
        )

    async def async_step_reauth_token(
        self, user_input: dict[str, Any] | None = None
    ) -> ConfigFlowResult:
        """Re-authenticate with a new access token."""
        errors: dict[str, str] = {}

        if user_input is not None:
            token = user_input[CONF_ACCESS_TOKEN].strip()
            try:
                await self._async_validate_token(token)
            except LegrandError as err:
                _LOGGER.warning(
                    "Legrand reauth token: %s: %s", type(err).__name__, err
                )
                errors["base"] = _error_key(err)
            except Exception:
                _LOGGER.exception("Unexpected error during token re-authentication")
                errors["base"] = "unknown"
            else:
                entry = self._get_reauth_entry()
                return self.async_update_reload_and_abort(
                    entry, data={**entry.data, CONF_ACCESS_TOKEN: token}
                )

        return self.async_show_form(
            step_id="reauth_token",
            data_schema=TOKEN_SCHEMA,
            errors=errors,
        )

    @staticmethod
    @callback
    def async_get_options_flow(config_entry: ConfigEntry) -> OptionsFlow:
        """Return the options flow."""
        return LegrandOptionsFlow()


class LegrandOptionsFlow(OptionsFlow):
    """Options for polling interval, device allow-list and debug logging."""

    async def async_step_init(
        self, user_input: dict[str, Any] | None = None
    ) -> ConfigFlowResult:
        """Manage the options."""
        if user_input is not None:
            return self.async_create_entry(data=user_input)

        options = self.config_entry.options
        return self.async_show_form(
            step_id="init",
            data_schema=vol.Schema(
                {
                    vol.Required(
                        CONF_SCAN_INTERVAL,
                        default=options.get(CONF_SCAN_INTERVAL, DEFAULT_SCAN_INTERVAL),
                    ): vol.All(vol.Coerce(int), vol.Range(min=MIN_SCAN_INTERVAL)),
                    vol.Optional(
                        CONF_DEVICES, default=options.get(CONF_DEVICES, "")
                    ): str,
                    vol.Required(
                        CONF_DEBUG, default=options.get(CONF_DEBUG, False)
                    ): bool,
                }
            ),
        )
