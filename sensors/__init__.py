"""
Sensor drivers that can feed the gateway's telemetry from local hardware.
"""

import inspect
import sys

from .base import Sensor
from .bme280_sensor import BME280TempPressureHumidity

__all__ = [
    "Sensor",
    "BME280TempPressureHumidity",
    "get_sensor_class",
]


def get_sensor_class(class_name: str) -> type[Sensor] | None:
    """Get a Sensor driver exported by this package by name, or None if unknown."""
    for name, obj in inspect.getmembers(sys.modules[__name__], inspect.isclass):
        if name == class_name and issubclass(obj, Sensor) and obj is not Sensor:
            return obj
    return None
