"""Legrand cloud device control API client."""

from __future__ import annotations

import json
import logging
from typing import Any
import uuid

import aiohttp

from .auth import LegrandAuth
from .const import (
    API_BASE_URL,
    API_COMMAND_TIMEOUT,
    API_SUBSCRIPTION_KEY,
    API_USER_AGENT,
    STATE_OFF,
    STATE_ON,
)
from .exceptions import ApiError, AuthenticationError, RateLimitError
from .models import DeviceState, Module, Plant
from .transport import async_request, mask_token

_LOGGER = logging.getLogger(__name__)

_PLANTS_PATH = "/servicecatalog/api/v3.0/plants"
_COMMANDS_PATH = "/devicemanagement/api/v2.0/modules/{module_id}/commands/{command}"


def clamp_level(level: float) -> int:
    """Round a brightness level and clamp it to 0-100."""
    return max(0, min(100, round(level)))


class LegrandApiClient:
    """API client for the Legrand cloud."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        auth: LegrandAuth,
        debug: bool = False,
    ) -> None:
        """Initialise the API client.

        Args:
            session: aiohttp session for making requests.
            auth: Auth handler for obtaining access tokens.
            debug: Log raw command responses.
        """
        self._session = session
        self._auth = auth
        self._debug = debug

    async def _async_get_headers(self) -> dict[str, str]:
        """Build authenticated request headers."""
        access_token = await self._auth.async_get_access_token()
        return {
            "Authorization": f"Bearer {access_token}",
            "Ocp-Apim-Subscription-Key": API_SUBSCRIPTION_KEY,
            "User-Agent": API_USER_AGENT,
            "Content-Type": "application/json",
            "Accept": "*/*",
            "Accept-Language": "en-US;q=1.0",
        }

    async def _async_request(
        self,
        method: str,
        path: str,
        payload: dict[str, Any] | None = None,
    ) -> Any:
        """Make an authenticated API request.

        Args:
            method: HTTP method.
            path: API path (appended to base URL).
            payload: Optional JSON body.

        Returns:
            Parsed JSON response, or an empty dict for an empty body.

        Raises:
            AuthenticationError: If the token is rejected.
            RateLimitError: If rate limited.
            ApiError: For other API errors.
            NetworkError: If the API cannot be reached.
        """
        headers = await self._async_get_headers()

        _LOGGER.debug(
            "API request: %s %s (token=%s)",
            method,
            path,
            mask_token(headers["Authorization"][7:]),
        )

        resp = await async_request(
            self._session,
            method,
            f"{API_BASE_URL}{path}",
            headers=headers,
            json=payload,
        )
        if resp.status in (401, 403):
            raise AuthenticationError(
                f"Access token rejected by Legrand API (HTTP {resp.status})",
                status=resp.status,
            )
        if resp.status == 429:
            raise RateLimitError("Legrand API rate limit exceeded")
        if not resp.ok:
            raise ApiError(
                f"API request failed (HTTP {resp.status}): {resp.body[:200]}",
                status=resp.status,
            )
        if not resp.body:
            return {}
        try:
            return json.loads(resp.body)
        except ValueError:
            _LOGGER.debug("Non-JSON response from %s: %s", path, resp.body[:200])
            return {}

    async def async_get_plants(self) -> list[Plant]:
        """Fetch all plants (homes) for the user."""
        data = await self._async_request("GET", _PLANTS_PATH)
        if not isinstance(data, list):
            _LOGGER.debug("Unexpected plants response: %s", data)
            return []
        return [Plant.from_dict(item) for item in data if isinstance(item, dict)]

    async def async_get_modules(self, plant_id: str) -> list[Module]:
        """Fetch all modules (devices) of a plant."""
        data = await self._async_request("GET", f"{_PLANTS_PATH}/{plant_id}/modules")
        if not isinstance(data, list):
            _LOGGER.debug("Unexpected modules response: %s", data)
            return []
        return [
            Module.from_dict(item, plant_id=plant_id)
            for item in data
            if isinstance(item, dict)
        ]

    async def async_discover_devices(self) -> list[Module]:
        """Discover all modules across all plants."""
        modules: list[Module] = []
        for plant in await self.async_get_plants():
            _LOGGER.info("Found plant: %s (%s)", plant.name, plant.plant_id)
            for module in await self.async_get_modules(plant.plant_id):
                _LOGGER.info(
                    "Found device: %s (%s) - %s",
                    module.display_name,
                    module.device_type,
                    module.status,
                )
                modules.append(module)
        return modules

    async def async_set_state(
        self, module_id: str, state: str, level: int | None = None
    ) -> None:
        """Send a setState command.

        Raises on any failure; commands are never retried here.
        """
        command: dict[str, Any] = {"state": state}
        if level is not None:
            command["level"] = level
        command["correlationID"] = str(uuid.uuid4())

        response = await self._async_request(
            "POST",
            _COMMANDS_PATH.format(module_id=module_id, command="setState"),
            {"command": command, "timeout": API_COMMAND_TIMEOUT},
        )
        if self._debug:
            _LOGGER.debug("setState response for %s: %s", module_id, response)

    async def async_turn_on(self, module_id: str) -> None:
        """Turn a module on."""
        _LOGGER.info("Turning on device %s", module_id)
        await self.async_set_state(module_id, STATE_ON)

    async def async_turn_off(self, module_id: str) -> None:
        """Turn a module off."""
        _LOGGER.info("Turning off device %s", module_id)
        await self.async_set_state(module_id, STATE_OFF)

    async def async_set_brightness(self, module_id: str, level: float) -> int:
        """Set the brightness of a dimmer.

        Levels are clamped to 0-100; a level of 0 turns the dimmer off.

        Returns:
            The level that was sent.
        """
        clamped = clamp_level(level)
        state = STATE_ON if clamped > 0 else STATE_OFF
        await self.async_set_state(module_id, state, level=clamped)
        _LOGGER.info("Set %s brightness to %d%%", module_id, clamped)
        return clamped

    async def async_get_status(self, module_id: str) -> DeviceState | None:
        """Query the live state of a module with the getState command.

        Returns:
            The device state, or None if the response carries no payload.
        """
        response = await self._async_request(
            "POST",
            _COMMANDS_PATH.format(module_id=module_id, command="getState"),
            {
                "timeout": API_COMMAND_TIMEOUT,
                "command": {"correlationID": str(uuid.uuid4())},
            },
        )
        if self._debug:
            _LOGGER.debug("getState response for %s: %s", module_id, response)

        payload = response.get("payload") if isinstance(response, dict) else None
        if not isinstance(payload, dict):
            return None
        return DeviceState.from_payload(payload)
