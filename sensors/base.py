"""Sensor base class."""

from abc import ABC, abstractmethod


class Sensor(ABC):
    """Abstract base class for all sensors."""

    @abstractmethod
    def init(self) -> None:
        """Initialize the sensor."""
        pass

    @abstractmethod
    def read(self) -> tuple:
        """Return the current sensor value(s) as a tuple."""
        pass

    @abstractmethod
    def get_names(self) -> tuple[str, ...]:
        """Return the sensor name(s). Tuple length matches read() output count."""
        pass

    @abstractmethod
    def get_units(self) -> tuple[str, ...]:
        """Return the units of measurement. Tuple length matches read() output count."""
        pass

    def close(self) -> None:
        """Release hardware resources. Override if sensor uses I2C/SPI/GPIO."""
        pass
