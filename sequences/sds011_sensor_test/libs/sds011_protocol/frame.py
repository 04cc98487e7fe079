"""
Frame parsing and building.

Inbound Frame Format (Sensor -> Host, 10 bytes):
    [HEAD][SENDER][D1 D2 D3 D4 D5 D6][CHECKSUM][TAIL]
- HEAD: 0xAA
- SENDER: 0xC0 (reading) or 0xC5 (configuration reply)
- D1..D6: Sender-specific data
- CHECKSUM: Low byte of D1 + ... + D6
- TAIL: 0xAB

Outbound Frame Format (Host -> Sensor, 19 bytes):
    [HEAD][0xB4][CMD][MODE][ARG][0x00 x10][ID_HI][ID_LO][CHECKSUM][TAIL]
- CHECKSUM: Low byte of the sum of bytes 2..16
- ID_HI/ID_LO: Target sensor id, 0xFF 0xFF for any sensor
"""

import logging
import struct
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, Optional, Tuple

from .checksum import Checksum
from .constants import (
    HEAD, TAIL, INBOUND_FRAME_SIZE, OUTBOUND_FRAME_SIZE, BROADCAST_ID,
    Sender, Command, Mode
)
from .exceptions import FrameError, ChecksumError

logger = logging.getLogger(__name__)

PAYLOAD_SIZE = 6
CHECKSUM_OFFSET = 8


class ParseResult(Enum):
    """Frame parse result codes."""
    OK = 0
    INCOMPLETE = 1
    INVALID = 2
    DISCARDED = 3


def verify_frame(data: bytes) -> None:
    """
    Validate an inbound frame.

    Raises:
        FrameError: On wrong length or missing head/tail marker
        ChecksumError: On checksum mismatch
    """
    if len(data) != INBOUND_FRAME_SIZE:
        raise FrameError(
            f"Frame must be {INBOUND_FRAME_SIZE} bytes, got {len(data)}", data
        )
    if data[0] != HEAD or data[-1] != TAIL:
        raise FrameError("Invalid frame head or tail", data)

    expected = Checksum.calculate(data, 2, 7)
    if data[CHECKSUM_OFFSET] != expected:
        raise ChecksumError(expected, data[CHECKSUM_OFFSET], data)


def is_valid_frame(data: bytes) -> bool:
    """Check if given bytes are a valid inbound frame."""
    try:
        verify_frame(data)
    except FrameError:
        return False
    return True


def parse_sensor_id(sensor_id: Optional[str] = None) -> bytes:
    """
    Convert a sensor id string to its two wire bytes.

    Args:
        sensor_id: Four hex digits (e.g. "cafe"), None for any sensor

    Returns:
        Two id bytes (b"\\xFF\\xFF" when no id is given)

    Raises:
        ValueError: If the id is not exactly two hex-encoded bytes
    """
    if not sensor_id:
        return BROADCAST_ID

    id_bytes = bytes.fromhex(str(sensor_id))
    if len(id_bytes) != 2:
        raise ValueError(f"Sensor id must be 4 hex digits, got {sensor_id!r}")
    return id_bytes


@dataclass
class Frame:
    """Inbound protocol frame."""
    sender: int
    payload: bytes = field(default_factory=lambda: bytes(PAYLOAD_SIZE))

    def __post_init__(self):
        if isinstance(self.payload, (list, tuple, bytearray)):
            self.payload = bytes(self.payload)
        if len(self.payload) != PAYLOAD_SIZE:
            raise ValueError(f"Payload must be {PAYLOAD_SIZE} bytes")

    @classmethod
    def from_bytes(cls, data: bytes) -> 'Frame':
        """Validate and unpack a 10-byte inbound frame."""
        verify_frame(data)
        return cls(data[1], bytes(data[2:8]))

    def to_bytes(self) -> bytes:
        """Pack into a 10-byte inbound frame with checksum."""
        checksum = Checksum.calculate(self.payload)
        return bytes([HEAD, self.sender]) + self.payload + bytes([checksum, TAIL])

    def __repr__(self) -> str:
        return f"Frame(sender={Sender.name_of(self.sender)}, payload={self.payload.hex(' ')})"


class FrameBuilder:
    """Builds frames for transmission."""

    @staticmethod
    def build(
        command: int,
        mode: int,
        arg: int = 0,
        sensor_id: Optional[str] = None
    ) -> bytes:
        """
        Build complete host command with checksum.

        Args:
            command: Command type
            mode: Mode.GET or Mode.SET
            arg: Command argument byte
            sensor_id: Target sensor id (None for any sensor)

        Returns:
            19-byte command ready for transmission
        """
        frame = bytearray(OUTBOUND_FRAME_SIZE)
        frame[0] = HEAD
        frame[1] = Sender.HOST
        frame[2] = command & 0xFF
        frame[3] = mode & 0xFF
        frame[4] = arg & 0xFF
        frame[15:17] = parse_sensor_id(sensor_id)
        frame[17] = Checksum.calculate(frame, 2, 16)
        frame[18] = TAIL
        return bytes(frame)

    @staticmethod
    def build_query(sensor_id: Optional[str] = None) -> bytes:
        """Build QUERY command frame."""
        return FrameBuilder.build(Command.QUERY, Mode.GET, sensor_id=sensor_id)

    @staticmethod
    def build_set_reporting_mode(active: bool, sensor_id: Optional[str] = None) -> bytes:
        """Build set MODE command frame (0 = active, 1 = query)."""
        return FrameBuilder.build(Command.MODE, Mode.SET, 0 if active else 1, sensor_id)

    @staticmethod
    def build_get_reporting_mode(sensor_id: Optional[str] = None) -> bytes:
        """Build get MODE command frame."""
        return FrameBuilder.build(Command.MODE, Mode.GET, sensor_id=sensor_id)

    @staticmethod
    def build_set_sleep(sleep: bool, sensor_id: Optional[str] = None) -> bytes:
        """Build set POWER command frame (0 = sleep, 1 = work)."""
        return FrameBuilder.build(Command.POWER, Mode.SET, 0 if sleep else 1, sensor_id)

    @staticmethod
    def build_get_firmware(sensor_id: Optional[str] = None) -> bytes:
        """Build FIRMWARE command frame."""
        return FrameBuilder.build(Command.FIRMWARE, Mode.GET, sensor_id=sensor_id)

    @staticmethod
    def build_set_working_period(minutes: int, sensor_id: Optional[str] = None) -> bytes:
        """Build set PERIOD command frame."""
        return FrameBuilder.build(Command.PERIOD, Mode.SET, minutes, sensor_id)

    @staticmethod
    def build_get_working_period(sensor_id: Optional[str] = None) -> bytes:
        """Build get PERIOD command frame."""
        return FrameBuilder.build(Command.PERIOD, Mode.GET, sensor_id=sensor_id)

    @staticmethod
    def build_response(sender: int, payload: bytes) -> bytes:
        """Build an inbound (sensor side) frame, as used by simulators."""
        return Frame(sender, payload).to_bytes()

    @staticmethod
    def build_reading(pm2p5: float, pm10: float, sensor_id: bytes = b"\x00\x00") -> bytes:
        """Build a 0xC0 reading frame for the given concentrations (ug/m3)."""
        payload = struct.pack('<HH', round(pm2p5 * 10), round(pm10 * 10)) + sensor_id
        return FrameBuilder.build_response(Sender.READING, payload)


class FrameParser:
    """Recovers inbound frames from a chunked byte stream."""

    def __init__(self):
        self._buffer = bytearray()

    def feed(self, data: bytes) -> None:
        """Add data to parse buffer."""
        self._buffer.extend(data)

    def parse(self) -> Tuple[ParseResult, Optional[bytes]]:
        """
        Attempt one extraction step on the buffer.

        Returns:
            Tuple of (result, data)
            - OK: data is a valid frame
            - INVALID: data is a framed candidate that failed validation
            - DISCARDED: data is the garbage dropped while resynchronizing
            - INCOMPLETE: fewer than a frame's worth of bytes buffered, data is None
        """
        if len(self._buffer) < INBOUND_FRAME_SIZE:
            return (ParseResult.INCOMPLETE, None)

        start = self._buffer.find(HEAD)

        # No frame can start anywhere in the buffer
        if start == -1:
            return (ParseResult.DISCARDED, self._trim(len(self._buffer)))

        # Drop garbage before the head marker
        if start > 0:
            return (ParseResult.DISCARDED, self._trim(start))

        end = self._buffer.find(TAIL, start + INBOUND_FRAME_SIZE - 1)

        if end == -1:
            return (ParseResult.DISCARDED, self._trim(INBOUND_FRAME_SIZE))

        if end - start != INBOUND_FRAME_SIZE - 1:
            return (ParseResult.DISCARDED, self._trim(start + INBOUND_FRAME_SIZE))

        candidate = self._trim(INBOUND_FRAME_SIZE)
        if not is_valid_frame(candidate):
            return (ParseResult.INVALID, candidate)

        return (ParseResult.OK, candidate)

    def push(self, data: bytes) -> Iterator[Tuple[ParseResult, bytes]]:
        """
        Feed a chunk and lazily yield every framed candidate it completes.

        Yields:
            (ParseResult.OK, frame) or (ParseResult.INVALID, bytes)
        """
        self.feed(data)

        while True:
            result, frame = self.parse()

            if result == ParseResult.INCOMPLETE:
                return
            if result == ParseResult.DISCARDED:
                logger.debug(f"Discarded {len(frame)} bytes: {frame.hex(' ')}")
                continue

            yield (result, frame)

    def _trim(self, count: int) -> bytes:
        """Remove and return count bytes from the front of the buffer."""
        removed = bytes(self._buffer[:count])
        del self._buffer[:count]
        return removed

    def clear(self) -> None:
        """Clear parse buffer."""
        self._buffer = bytearray()

    @property
    def buffer_size(self) -> int:
        """Get current buffer size."""
        return len(self._buffer)
