"""DataUpdateCoordinator for the Legrand Cloud integration."""

from __future__ import annotations

import asyncio
from datetime import timedelta
import logging

from homeassistant.config_entries import ConfigEntry
from homeassistant.const import CONF_SCAN_INTERVAL
from homeassistant.core import HomeAssistant
from homeassistant.exceptions import ConfigEntryAuthFailed
from homeassistant.helpers.update_coordinator import DataUpdateCoordinator, UpdateFailed

from .api import LegrandApiClient
from .auth import LegrandAuth
from .const import DEFAULT_SCAN_INTERVAL, DEVICE_TYPE_DIMMER, DEVICE_TYPE_SWITCH, DOMAIN
from .exceptions import InvalidCredentialsError, LegrandError, NoCredentialsError
from .models import DeviceState, LegrandData, Module

_LOGGER = logging.getLogger(__name__)

# Error message fragments that identify a rejected account
_AUTH_MARKERS = ("unauthorized", "invalid credentials", "invalid_grant")


def is_credential_failure(err: BaseException) -> bool:
    """Return True if retrying with the same account would fail again."""
    if isinstance(err, (InvalidCredentialsError, NoCredentialsError)):
        return True
    if getattr(err, "status", None) == 401:
        return True
    message = str(err).lower()
    return any(marker in message for marker in _AUTH_MARKERS)


def parse_device_list(value: str) -> list[Module]:
    """Parse a device allow-list.

    Entries are separated by commas or new lines; each is a module id,
    optionally followed by ``:dimmer`` or ``:switch``.
    """
    modules: list[Module] = []
    for entry in value.replace("\n", ",").split(","):
        entry = entry.strip()
        if not entry:
            continue
        module_id, _, kind = entry.partition(":")
        kind = kind.strip().lower()
        modules.append(
            Module(
                module_id=module_id.strip(),
                name="",
                device_type=DEVICE_TYPE_DIMMER
                if kind == DEVICE_TYPE_DIMMER
                else DEVICE_TYPE_SWITCH,
            )
        )
    return modules


class LegrandDataUpdateCoordinator(DataUpdateCoordinator[LegrandData]):
    """Coordinator that polls the live state of every Legrand module."""

    config_entry: ConfigEntry

    def __init__(
        self,
        hass: HomeAssistant,
        api_client: LegrandApiClient,
        auth: LegrandAuth,
        config_entry: ConfigEntry,
        configured_modules: list[Module] | None = None,
    ) -> None:
        """Initialise the coordinator.

        Args:
            configured_modules: Allow-list that replaces auto-discovery.
        """
        interval = config_entry.options.get(CONF_SCAN_INTERVAL, DEFAULT_SCAN_INTERVAL)
        super().__init__(
            hass,
            _LOGGER,
            config_entry=config_entry,
            name=DOMAIN,
            update_interval=timedelta(seconds=interval),
            always_update=False,
        )
        self.api_client = api_client
        self.auth = auth
        self.modules: dict[str, Module] = {}
        self._configured_modules = configured_modules or []
        self._shutting_down = False

    async def _async_setup(self) -> None:
        """Build the module list before the first refresh."""
        if self._configured_modules:
            _LOGGER.info(
                "Using %d manually configured device(s)",
                len(self._configured_modules),
            )
            self.modules = {m.module_id: m for m in self._configured_modules}
            return

        _LOGGER.info("Auto-discovering devices from Legrand cloud")
        try:
            modules = await self.api_client.async_discover_devices()
        except LegrandError as err:
            if is_credential_failure(err):
                raise ConfigEntryAuthFailed(str(err)) from err
            raise UpdateFailed(f"Failed to discover Legrand devices: {err}") from err

        if not modules:
            _LOGGER.warning("No Legrand devices found on this account")
        self.modules = {m.module_id: m for m in modules}

    async def _async_update_data(self) -> LegrandData:
        """Poll every module with the getState command.

        Called by the DataUpdateCoordinator on the configured interval.
        """
        if self._shutting_down:
            raise UpdateFailed("Integration is shutting down")

        previous = self.data.states if self.data else {}
        module_ids = list(self.modules)
        results = await asyncio.gather(
            *(self.api_client.async_get_status(mid) for mid in module_ids),
            return_exceptions=True,
        )

        states: dict[str, DeviceState] = {}
        failures = 0
        for module_id, result in zip(module_ids, results):
            if isinstance(result, LegrandError):
                if is_credential_failure(result):
                    _LOGGER.error(
                        "Polling stopped: authentication error, check email/password"
                    )
                    raise ConfigEntryAuthFailed(str(result)) from result
                failures += 1
                _LOGGER.warning("Polling error for %s: %s", module_id, result)
            elif isinstance(result, BaseException):
                raise result
            elif result is not None:
                states[module_id] = result
                continue
            else:
                _LOGGER.debug("%s: no state returned", module_id)

            if module_id in previous:
                states[module_id] = previous[module_id]

        if module_ids and failures == len(module_ids):
            raise UpdateFailed("Failed to poll any Legrand device")

        return LegrandData(modules=dict(self.modules), states=states)

    async def async_shutdown(self) -> None:
        """Stop polling without starting any new authentication."""
        self._shutting_down = True
        self.auth.shutdown()
        await super().async_shutdown()
