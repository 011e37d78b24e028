"""Light platform for Legrand Cloud switches and dimmers."""

from __future__ import annotations

import logging
from typing import Any

from homeassistant.components.light import ATTR_BRIGHTNESS, ColorMode, LightEntity
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers.entity_platform import AddEntitiesCallback

from .const import DOMAIN
from .coordinator import LegrandDataUpdateCoordinator
from .entity import LegrandEntity
from .exceptions import LegrandError
from .models import DeviceState, Module

_LOGGER = logging.getLogger(__name__)


def level_to_brightness(level: int) -> int:
    """Convert a 0-100 Legrand level to a 0-255 brightness."""
    return round(level * 255 / 100)


def brightness_to_level(brightness: int) -> int:
    """Convert a 0-255 brightness to a 0-100 Legrand level."""
    if brightness <= 0:
        return 0
    return max(1, round(brightness * 100 / 255))


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up Legrand lights from a config entry."""
    coordinator: LegrandDataUpdateCoordinator = hass.data[DOMAIN][entry.entry_id]
    async_add_entities(
        LegrandLight(coordinator, module) for module in coordinator.modules.values()
    )


class LegrandLight(LegrandEntity, LightEntity):
    """A Legrand WiFi switch or dimmer."""

    def __init__(
        self,
        coordinator: LegrandDataUpdateCoordinator,
        module: Module,
    ) -> None:
        """Initialise the light."""
        super().__init__(coordinator, module)
        mode = ColorMode.BRIGHTNESS if module.is_dimmer else ColorMode.ONOFF
        self._attr_color_mode = mode
        self._attr_supported_color_modes = {mode}

    @property
    def _state(self) -> DeviceState | None:
        if self.coordinator.data is None:
            return None
        return self.coordinator.data.states.get(self.module.module_id)

    @property
    def is_on(self) -> bool | None:
        """Return True if the light is on."""
        state = self._state
        return state.on if state else None

    @property
    def brightness(self) -> int | None:
        """Return the brightness of a dimmer (0-255)."""
        state = self._state
        if not self.module.is_dimmer or state is None or state.brightness is None:
            return None
        return level_to_brightness(state.brightness)

    async def async_turn_on(self, **kwargs: Any) -> None:
        """Turn the light on, optionally at a brightness."""
        module_id = self.module.module_id
        previous = self._state
        try:
            if self.module.is_dimmer and ATTR_BRIGHTNESS in kwargs:
                level = await self.coordinator.api_client.async_set_brightness(
                    module_id, brightness_to_level(kwargs[ATTR_BRIGHTNESS])
                )
                new_state = DeviceState(on=level > 0, brightness=level)
            else:
                await self.coordinator.api_client.async_turn_on(module_id)
                new_state = DeviceState(
                    on=True, brightness=previous.brightness if previous else None
                )
        except LegrandError as err:
            raise HomeAssistantError(
                f"Failed to turn on {self.module.display_name}: {err}"
            ) from err
        self._apply_state(new_state)

    async def async_turn_off(self, **kwargs: Any) -> None:
        """Turn the light off."""
        previous = self._state
        try:
            await self.coordinator.api_client.async_turn_off(self.module.module_id)
        except LegrandError as err:
            raise HomeAssistantError(
                f"Failed to turn off {self.module.display_name}: {err}"
            ) from err
        self._apply_state(
            DeviceState(on=False, brightness=previous.brightness if previous else None)
        )

    def _apply_state(self, state: DeviceState) -> None:
        """Record a commanded state until the next poll confirms it."""
        if self.coordinator.data is not None:
            self.coordinator.data.states[self.module.module_id] = state
        _LOGGER.debug(
            "%s is now %s", self.module.display_name, "ON" if state.on else "OFF"
        )
        self.async_write_ha_state()
