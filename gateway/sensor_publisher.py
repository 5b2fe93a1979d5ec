"""
Local sensor publishing for the gateway.

Classes:
    LocalSensorPublisher: Background thread that reads local sensors and
        publishes their values onto the bus

Functions:
    instantiate_sensors: Create Sensor instances from configuration
"""

from __future__ import annotations

import logging
import threading

from sensors import Sensor, get_sensor_class
from utils.message_bus import MessageBus
from utils.messages import Pressure, RelativeHumidity, Temperature

logger = logging.getLogger(__name__)

# Reading name -> bus message type
READING_MESSAGES = {
    "Temperature": Temperature,
    "Pressure": Pressure,
    "Humidity": RelativeHumidity,
}


class LocalSensorPublisher(threading.Thread):
    """Background thread that reads local sensors and publishes to the bus."""

    def __init__(
        self,
        bus: MessageBus,
        sensors: list[tuple[Sensor, str]],
        interval_sec: float = 5.0,
    ):
        super().__init__(daemon=True, name="LocalSensorPublisher")
        self._bus = bus
        self._sensors = sensors
        self._interval_sec = interval_sec
        self._stop_event = threading.Event()

    def run(self) -> None:
        logger.info(
            f"Local sensor publisher started ({len(self._sensors)} sensors, "
            f"{self._interval_sec}s interval)"
        )
        while not self._stop_event.is_set():
            self.publish_readings()
            self._stop_event.wait(self._interval_sec)

    def stop(self) -> None:
        self._stop_event.set()

    def publish_readings(self) -> int:
        """
        Read every sensor once and publish recognized readings.

        Returns:
            Number of messages published
        """
        published = 0
        for sensor, class_name in self._sensors:
            try:
                values = sensor.read()
                names = sensor.get_names()
            except Exception as e:
                logger.error(f"Error reading local {class_name}: {e}")
                continue

            for value, name in zip(values, names):
                message_type = READING_MESSAGES.get(name)
                if message_type is None or value is None:
                    continue
                if self._bus.publish(message_type(float(value))):
                    published += 1
        return published

    def close_sensors(self) -> None:
        for sensor, class_name in self._sensors:
            try:
                sensor.close()
            except Exception as e:
                logger.warning(f"Error closing {class_name}: {e}")


def _build_sensor(entry: dict) -> Sensor | None:
    class_name = entry.get("class")
    if not class_name:
        logger.warning(f"Skipping sensor entry without a class: {entry}")
        return None

    sensor_class = get_sensor_class(class_name)
    if sensor_class is None:
        logger.warning(f"Unknown sensor class: {class_name}")
        return None

    try:
        sensor = sensor_class(**entry.get("config", {}))
        sensor.init()
    except Exception as e:
        logger.error(f"Failed to initialize {class_name}: {e}")
        return None

    logger.info(f"Initialized local sensor: {class_name}")
    return sensor


def instantiate_sensors(sensor_configs: list[dict]) -> list[tuple[Sensor, str]]:
    """Build and initialize each configured sensor, skipping entries that fail."""
    built = ((_build_sensor(entry), entry.get("class")) for entry in sensor_configs)
    return [(sensor, name) for sensor, name in built if sensor is not None]
