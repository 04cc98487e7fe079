"""Shared fixtures: in-memory transports standing in for the serial port."""

from typing import List, Optional, Tuple

import pytest

from sequences.sds011_sensor_test.libs.sds011_protocol import (
    Command,
    ConnectionError,
    FrameBuilder,
    Mode,
    Sender,
    Transport,
)

# Example frame: PM2.5 = 7.5, PM10 = 8.1
EXAMPLE_FRAME = bytes.fromhex("AA C0 4B 00 51 00 E9 77 FC AB")


class FakeTransport(Transport):
    """Records writes and lets tests inject inbound chunks."""

    def __init__(self):
        super().__init__()
        self.writes: List[bytes] = []
        self.open_count = 0
        self.close_count = 0
        self._open = False

    def open(self) -> None:
        self._open = True
        self.open_count += 1

    def close(self) -> None:
        self._open = False
        self.close_count += 1

    def send(self, data: bytes) -> int:
        if not self._open:
            raise ConnectionError("Fake transport not open")
        self.writes.append(bytes(data))
        self.on_write(bytes(data))
        return len(data)

    def on_write(self, data: bytes) -> None:
        pass

    def inject(self, data: bytes) -> None:
        self._deliver(data)

    def inject_error(self, error: Exception) -> None:
        self._fail(error)

    @property
    def is_open(self) -> bool:
        return self._open

    @property
    def commands(self) -> List[Tuple[int, int, int]]:
        """(command, mode, arg) of every write."""
        return [(w[2], w[3], w[4]) for w in self.writes]


class FakeSensor(FakeTransport):
    """Answers host commands the way an SDS011 does."""

    def __init__(
        self,
        pm2p5: float = 12.3,
        pm10: float = 45.6,
        firmware: Tuple[int, int, int] = (18, 11, 16),
        responsive: bool = True,
        chunked: bool = False,
        ignore: Optional[List[int]] = None
    ):
        super().__init__()
        self.pm2p5 = pm2p5
        self.pm10 = pm10
        self.firmware = firmware
        self.query_mode = False
        self.sleeping = False
        self.working_period = 0
        self.responsive = responsive
        self.chunked = chunked
        self.ignore = ignore or []
        self.device_id = b"\x12\x34"

    def on_write(self, data: bytes) -> None:
        command, mode, arg = data[2], data[3], data[4]
        if not self.responsive or command in self.ignore:
            return

        if command == Command.QUERY:
            reply = FrameBuilder.build_reading(self.pm2p5, self.pm10, self.device_id)
        elif command == Command.MODE:
            if mode == Mode.SET:
                self.query_mode = arg == 1
            reply = self._config(command, mode, int(self.query_mode))
        elif command == Command.POWER:
            if mode == Mode.SET:
                self.sleeping = arg == 0
            reply = self._config(command, mode, 0 if self.sleeping else 1)
        elif command == Command.FIRMWARE:
            year, month, day = self.firmware
            reply = FrameBuilder.build_response(
                Sender.CONFIG, bytes([command, year, month, day]) + self.device_id
            )
        elif command == Command.PERIOD:
            if mode == Mode.SET:
                self.working_period = arg
            reply = self._config(command, mode, self.working_period)
        else:
            return

        if self.chunked:
            for i in range(len(reply)):
                self.inject(reply[i:i + 1])
        else:
            self.inject(reply)

    def _config(self, command: int, mode: int, value: int) -> bytes:
        payload = bytes([command, mode, value, 0]) + self.device_id
        return FrameBuilder.build_response(Sender.CONFIG, payload)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def sensor():
    return FakeSensor()
