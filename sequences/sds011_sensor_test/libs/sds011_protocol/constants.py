"""
Protocol constants for the SDS011 laser dust sensor.

Reference: Nova Fitness SDS011 Laser Dust Sensor Control Protocol V1.3
"""

from enum import Enum, IntEnum

# Frame delimiters
HEAD = 0xAA
TAIL = 0xAB

# Frame sizes
INBOUND_FRAME_SIZE = 10
OUTBOUND_FRAME_SIZE = 19

# Sensor id used when no target sensor is given
BROADCAST_ID = b"\xFF\xFF"

# Working period limits (minutes, 0 = continuous)
MIN_WORKING_PERIOD = 0
MAX_WORKING_PERIOD = 30

# Command scheduler defaults
RETRY_BUDGET = 10           # Attempts per command before it is failed
RETRY_INTERVAL = 0.15       # Seconds between attempts

# Serial defaults
DEFAULT_PORT = "/dev/ttyUSB0"
DEFAULT_BAUDRATE = 9600


class Sender(IntEnum):
    """Sender identifiers (byte 1 of every frame)."""
    READING = 0xC0      # Sensor -> Host, PM2.5/PM10 data
    CONFIG = 0xC5       # Sensor -> Host, reply to a configuration command
    HOST = 0xB4         # Host -> Sensor

    @classmethod
    def name_of(cls, sender: int) -> str:
        """Get sender name from ID."""
        names = {
            cls.READING: "READING",
            cls.CONFIG: "CONFIG",
            cls.HOST: "HOST",
        }
        return names.get(sender, f"Unknown(0x{sender:02X})")


class Command(IntEnum):
    """Command types (byte 2 of host commands and config replies)."""
    MODE = 0x02         # Data reporting mode
    QUERY = 0x04        # Query data
    POWER = 0x06        # Sleep and work
    FIRMWARE = 0x07     # Firmware version
    PERIOD = 0x08       # Working period

    @classmethod
    def name_of(cls, command: int) -> str:
        """Get command name from code."""
        names = {
            cls.MODE: "MODE",
            cls.QUERY: "QUERY",
            cls.POWER: "POWER",
            cls.FIRMWARE: "FIRMWARE",
            cls.PERIOD: "PERIOD",
        }
        return names.get(command, f"Unknown(0x{command:02X})")


class Mode(IntEnum):
    """Command access mode (byte 3 of host commands)."""
    GET = 0x00
    SET = 0x01


class ReportingMode(str, Enum):
    """Data reporting mode of the sensor."""
    ACTIVE = "active"   # Sensor pushes readings unsolicited
    QUERY = "query"     # Sensor reports only when queried


class Event(str, Enum):
    """Events emitted by the client."""
    DATA = "serial_data"
    MESSAGE = "message"
    MESSAGE_ERROR = "message_error"
    READING = "reading"
    ERROR = "error"
