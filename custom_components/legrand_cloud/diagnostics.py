"""Diagnostics support for the Legrand Cloud integration."""

from __future__ import annotations

from dataclasses import asdict
from typing import Any

from homeassistant.components.diagnostics import async_redact_data
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant

from .const import DOMAIN
from .coordinator import LegrandDataUpdateCoordinator

TO_REDACT = {
    "access_token",
    "refresh_token",
    "email",
    "password",
    "ip_address",
    "mac_address",
}


async def async_get_config_entry_diagnostics(
    hass: HomeAssistant, entry: ConfigEntry
) -> dict[str, Any]:
    """Return diagnostics for a config entry."""
    coordinator: LegrandDataUpdateCoordinator = hass.data[DOMAIN][entry.entry_id]
    data = coordinator.data

    return {
        "config_entry": async_redact_data(entry.as_dict(), TO_REDACT),
        "has_credentials": coordinator.auth.has_credentials(),
        "has_refresh_token": bool(coordinator.auth.refresh_token),
        "token_expires_at": coordinator.auth.expires_at,
        "modules": [
            async_redact_data(asdict(module), TO_REDACT)
            for module in coordinator.modules.values()
        ],
        "states": {
            module_id: asdict(state) for module_id, state in data.states.items()
        }
        if data
        else {},
    }
