"""
Sensor data structures.

Reference: SDS011 Control Protocol V1.3
Multi-byte readings use Little-endian byte order.
"""

from dataclasses import dataclass
from typing import Any
import struct

from .constants import Command, ReportingMode, Sender
from .exceptions import UnknownCommandError, UnknownSenderError


@dataclass
class SensorReading:
    """PM2.5 and PM10 concentration in ug/m3."""
    pm2p5: float
    pm10: float

    @classmethod
    def from_bytes(cls, data: bytes) -> 'SensorReading':
        """
        Deserialize from a 0xC0 frame.

        Format (frame offsets):
        - 2..3: PM2.5 x10, uint16 little-endian
        - 4..5: PM10 x10, uint16 little-endian
        """
        if data[1] != Sender.READING:
            raise UnknownSenderError(data[1], data)
        pm2p5, pm10 = struct.unpack('<HH', bytes(data[2:6]))
        return cls(pm2p5 / 10, pm10 / 10)

    @property
    def is_sensible(self) -> bool:
        """A zero value means the sensor has nothing to report yet."""
        return self.pm2p5 > 0 and self.pm10 > 0

    def to_dict(self) -> dict:
        return {"pm2p5": self.pm2p5, "pm10": self.pm10}

    def __repr__(self) -> str:
        return f"SensorReading(pm2.5={self.pm2p5:.1f}ug/m3, pm10={self.pm10:.1f}ug/m3)"


@dataclass
class ConfigResponse:
    """Decoded reply to a configuration command."""
    command: int
    attribute: str     # DeviceState attribute carried by the reply
    value: Any

    @classmethod
    def from_bytes(cls, data: bytes) -> 'ConfigResponse':
        """
        Deserialize from a 0xC5 frame.

        Format (frame offsets):
        - 2: echoed command type
        - 3..5: command-specific value
        """
        if data[1] != Sender.CONFIG:
            raise UnknownSenderError(data[1], data)

        command = data[2]

        if command == Command.MODE:
            mode = ReportingMode.ACTIVE if data[4] == 0 else ReportingMode.QUERY
            return cls(command, "mode", mode)

        if command == Command.POWER:
            return cls(command, "is_sleeping", data[4] == 0)

        if command == Command.FIRMWARE:
            year, month, day = data[3], data[4], data[5]
            return cls(command, "firmware", f"{year:02d}-{month:02d}-{day:02d}")

        if command == Command.PERIOD:
            return cls(command, "working_period", data[4])

        raise UnknownCommandError(command, data)

    def __repr__(self) -> str:
        return f"ConfigResponse({Command.name_of(self.command)}: {self.attribute}={self.value!r})"
