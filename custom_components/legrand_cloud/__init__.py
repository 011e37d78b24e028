"""Legrand Cloud (Radiant / Ambient WiFi) integration for Home Assistant."""

from __future__ import annotations

import logging

from homeassistant.config_entries import ConfigEntry
from homeassistant.const import CONF_PASSWORD, Platform
from homeassistant.core import HomeAssistant
from homeassistant.helpers.aiohttp_client import async_get_clientsession

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
    DOMAIN,
)
from .coordinator import LegrandDataUpdateCoordinator, parse_device_list

_LOGGER = logging.getLogger(__name__)

PLATFORMS: list[Platform] = [Platform.LIGHT]


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Set up Legrand Cloud from a config entry."""
    session = async_get_clientsession(hass)

    debug = entry.options.get(CONF_DEBUG, False)
    if debug:
        logging.getLogger(__package__).setLevel(logging.DEBUG)

    auth_method = entry.data.get(CONF_AUTH_METHOD, AUTH_METHOD_PASSWORD)
    if auth_method == AUTH_METHOD_TOKEN:
        # Manual token only: valid until it expires, then reauth is needed
        auth = LegrandAuth(session)
        auth.set_tokens(entry.data[CONF_ACCESS_TOKEN])
        _LOGGER.info("Using manually provided access token")
    else:
        auth = LegrandAuth(
            session,
            email=entry.data[CONF_EMAIL],
            password=entry.data[CONF_PASSWORD],
        )

    api_client = LegrandApiClient(session=session, auth=auth, debug=debug)

    coordinator = LegrandDataUpdateCoordinator(
        hass=hass,
        api_client=api_client,
        auth=auth,
        config_entry=entry,
        configured_modules=parse_device_list(entry.options.get(CONF_DEVICES, "")),
    )

    # Discover devices and fetch initial state (raises ConfigEntryNotReady)
    await coordinator.async_config_entry_first_refresh()

    hass.data.setdefault(DOMAIN, {})
    hass.data[DOMAIN][entry.entry_id] = coordinator

    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)
    entry.async_on_unload(entry.add_update_listener(_async_update_listener))

    return True


async def _async_update_listener(hass: HomeAssistant, entry: ConfigEntry) -> None:
    """Reload the entry when its options change."""
    await hass.config_entries.async_reload(entry.entry_id)


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Unload a config entry."""
    unload_ok = await hass.config_entries.async_unload_platforms(entry, PLATFORMS)
    if unload_ok:
        coordinator: LegrandDataUpdateCoordinator = hass.data[DOMAIN].pop(
            entry.entry_id
        )
        await coordinator.async_shutdown()
    return unload_ok
