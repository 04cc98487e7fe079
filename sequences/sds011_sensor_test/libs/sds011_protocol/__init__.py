"""
SDS011 Protocol - Python implementation of the SDS011 serial protocol.

This package provides:
- Protocol constants
- Additive checksum calculation
- Frame validation, building and stream parsing
- Device state and sensor data structures
- Single-flight retrying command scheduler
- Serial transport layer
- High-level protocol client
"""

from .constants import (
    HEAD, TAIL, INBOUND_FRAME_SIZE, OUTBOUND_FRAME_SIZE, BROADCAST_ID,
    MIN_WORKING_PERIOD, MAX_WORKING_PERIOD, RETRY_BUDGET, RETRY_INTERVAL,
    Sender, Command, Mode, ReportingMode, Event
)
from .checksum import Checksum
from .exceptions import (
    SDS011ProtocolError, FrameError, ChecksumError, DecodeError,
    UnknownSenderError, UnknownCommandError, CommandExhaustedError,
    ConnectionError, ConnectionClosedError
)
from .frame import (
    Frame, FrameBuilder, FrameParser, ParseResult,
    verify_frame, is_valid_frame, parse_sensor_id
)
from .sensors import SensorReading, ConfigResponse
from .state import DeviceState, PENDING
from .scheduler import CommandDescriptor, CommandScheduler
from .transport import Transport, SerialTransport
from .client import SDS011Client

__version__ = "1.0.0"
__all__ = [
    # Constants
    "HEAD", "TAIL", "INBOUND_FRAME_SIZE", "OUTBOUND_FRAME_SIZE", "BROADCAST_ID",
    "MIN_WORKING_PERIOD", "MAX_WORKING_PERIOD", "RETRY_BUDGET", "RETRY_INTERVAL",
    "Sender", "Command", "Mode", "ReportingMode", "Event",
    # Checksum
    "Checksum",
    # Exceptions
    "SDS011ProtocolError", "FrameError", "ChecksumError", "DecodeError",
    "UnknownSenderError", "UnknownCommandError", "CommandExhaustedError",
    "ConnectionError", "ConnectionClosedError",
    # Frame
    "Frame", "FrameBuilder", "FrameParser", "ParseResult",
    "verify_frame", "is_valid_frame", "parse_sensor_id",
    # Sensors / state
    "SensorReading", "ConfigResponse", "DeviceState", "PENDING",
    # Scheduler
    "CommandDescriptor", "CommandScheduler",
    # Transport
    "Transport", "SerialTransport",
    # Client
    "SDS011Client",
]
