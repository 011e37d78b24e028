"""Base entity for the Legrand Cloud integration."""

from __future__ import annotations

from homeassistant.helpers.device_registry import DeviceInfo
from homeassistant.helpers.update_coordinator import CoordinatorEntity

from .const import DOMAIN
from .coordinator import LegrandDataUpdateCoordinator
from .models import Module


class LegrandEntity(CoordinatorEntity[LegrandDataUpdateCoordinator]):
    """Base entity for one Legrand module."""

    _attr_has_entity_name = True
    _attr_name = None

    def __init__(
        self,
        coordinator: LegrandDataUpdateCoordinator,
        module: Module,
    ) -> None:
        """Initialise the entity."""
        super().__init__(coordinator)
        self.module = module
        self._attr_unique_id = f"legrand-cloud-{module.module_id}"

    @property
    def device_info(self) -> DeviceInfo:
        """Return device info for the module."""
        kind = "Dimmer" if self.module.is_dimmer else "Switch"
        return DeviceInfo(
            identifiers={(DOMAIN, self.module.module_id)},
            name=self.module.display_name,
            manufacturer="Legrand",
            model=self.module.device_model or f"Radiant WiFi {kind}",
            serial_number=self.module.module_id[:8],
            sw_version=self.module.firmware_version or None,
        )

    @property
    def available(self) -> bool:
        """Return True once the module has reported a state."""
        return (
            super().available
            and self.coordinator.data is not None
            and self.module.module_id in self.coordinator.data.states
        )
