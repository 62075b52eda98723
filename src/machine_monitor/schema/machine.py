"""
Machine roster schema as exchanged with the monitoring service.

Wire keys are camelCase (and ``_id`` for the identifier); attributes are
snake_case and populated through aliases.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class MachineStatus(str, Enum):
    """Operational status reported for a machine."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    MAINTENANCE = "maintenance"


# Wire key -> display label, in form order.
SENSOR_CHANNELS: dict[str, str] = {
    "Spindle_Speed_RPM": "Spindle Speed (RPM)",
    "Vibration_Level_mm_s": "Vibration Level (mm/s)",
    "Tool_Wear_mm": "Tool Wear (mm)",
    "Temperature_C": "Temperature (°C)",
    "Energy_Consumption_kWh": "Energy Consumption (kWh)",
}


class SensorReading(BaseModel):
    """
    Latest telemetry for one machine.

    A channel the service has never reported is ``None``; it is sent as 0.
    """

    spindle_speed_rpm: float | None = Field(default=None, alias="Spindle_Speed_RPM")
    vibration_level_mm_s: float | None = Field(default=None, alias="Vibration_Level_mm_s")
    tool_wear_mm: float | None = Field(default=None, alias="Tool_Wear_mm")
    temperature_c: float | None = Field(default=None, alias="Temperature_C")
    energy_consumption_kwh: float | None = Field(default=None, alias="Energy_Consumption_kWh")

    model_config = {"populate_by_name": True, "extra": "ignore"}

    def channel(self, wire_key: str) -> float | None:
        """Look up a channel by its wire key."""
        for name, info in type(self).model_fields.items():
            if info.alias == wire_key:
                return getattr(self, name)
        raise KeyError(wire_key)

    def to_wire(self) -> dict[str, float]:
        return {key: self.channel(key) or 0.0 for key in SENSOR_CHANNELS}


class Machine(BaseModel):
    """A monitored machine; ``id`` is server-assigned and opaque."""

    id: str = Field(alias="_id")
    name: str = Field(min_length=1)
    status: MachineStatus = MachineStatus.ACTIVE
    created_at: datetime | None = Field(default=None, alias="createdAt")
    sensor_data: SensorReading = Field(default_factory=SensorReading, alias="sensorData")

    model_config = {"populate_by_name": True, "extra": "ignore"}

    @property
    def is_active(self) -> bool:
        return self.status == MachineStatus.ACTIVE

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> Machine:
        if data.get("sensorData") is None:
            data = {k: v for k, v in data.items() if k != "sensorData"}
        return cls.model_validate(data)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")
