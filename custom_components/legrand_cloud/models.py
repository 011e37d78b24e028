"""Data models for the Legrand Cloud integration."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .const import DEVICE_TYPE_DIMMER, DEVICE_TYPE_SWITCH, STATE_ON


@dataclass
class Plant:
    """A Legrand plant (home)."""

    plant_id: str
    name: str
    owner_email: str = ""
    status: str = ""
    type: str = ""
    country: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Plant:
        """Create a Plant from API response dict."""
        return cls(
            plant_id=str(data.get("id", "")),
            name=data.get("name", ""),
            owner_email=data.get("ownerEmail", ""),
            status=data.get("status", ""),
            type=data.get("type", ""),
            country=data.get("country", ""),
        )


@dataclass
class Module:
    """A Legrand module (switch or dimmer)."""

    module_id: str
    name: str
    status: str = ""
    device: str = ""
    device_type: str = ""
    device_model: str = ""
    connection_state: str = ""
    ip_address: str = ""
    mac_address: str = ""
    firmware_version: str = ""
    plant_id: str = ""

    @property
    def is_dimmer(self) -> bool:
        """Return True if the module supports brightness."""
        return DEVICE_TYPE_DIMMER in self.device_type.lower()

    @property
    def kind(self) -> str:
        """Return dimmer or switch."""
        return DEVICE_TYPE_DIMMER if self.is_dimmer else DEVICE_TYPE_SWITCH

    @property
    def display_name(self) -> str:
        """Return the module name, falling back to a name built from its id."""
        return self.name.strip() or f"Legrand Device {self.module_id[:8]}"

    @classmethod
    def from_dict(cls, data: dict[str, Any], plant_id: str = "") -> Module:
        """Create a Module from API response dict."""
        return cls(
            module_id=str(data.get("id", "")),
            name=data.get("name") or "",
            status=data.get("status", ""),
            device=data.get("device", ""),
            device_type=data.get("deviceType") or "",
            device_model=data.get("deviceModel", ""),
            connection_state=data.get("connectionState", ""),
            ip_address=data.get("ipAddress", ""),
            mac_address=data.get("macAddress", ""),
            firmware_version=data.get("firmwareVersion", ""),
            plant_id=str(data.get("plantId") or plant_id),
        )


@dataclass
class DeviceState:
    """On/off state and optional brightness (0-100) of a module."""

    on: bool
    brightness: int | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> DeviceState:
        """Create a DeviceState from a getState payload."""
        level = payload.get("level")
        return cls(
            on=payload.get("state") == STATE_ON,
            brightness=int(level)
            if isinstance(level, (int, float)) and not isinstance(level, bool)
            else None,
        )


@dataclass
class LegrandData:
    """Container for all data fetched by the coordinator."""

    modules: dict[str, Module] = field(default_factory=dict)
    states: dict[str, DeviceState] = field(default_factory=dict)
