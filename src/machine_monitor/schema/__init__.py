"""Machine monitor schema definitions."""

from machine_monitor.schema.machine import SENSOR_CHANNELS, Machine, MachineStatus, SensorReading
from machine_monitor.schema.prediction import Prediction

__all__ = [
    "Machine",
    "MachineStatus",
    "SensorReading",
    "SENSOR_CHANNELS",
    "Prediction",
]
