"""
Serial transport layer.

Delivers received byte chunks to a data handler from a background
receive thread. Chunk boundaries carry no meaning; framing is done by
the FrameParser.
"""

import serial
import threading
import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional

from .constants import DEFAULT_BAUDRATE
from .exceptions import ConnectionError

logger = logging.getLogger(__name__)

DataHandler = Callable[[bytes], None]
ErrorHandler = Callable[[Exception], None]


class Transport(ABC):
    """Ordered byte-chunk channel to one sensor."""

    def __init__(self):
        self._on_data: Optional[DataHandler] = None
        self._on_error: Optional[ErrorHandler] = None

    def set_handlers(
        self,
        on_data: Optional[DataHandler] = None,
        on_error: Optional[ErrorHandler] = None
    ) -> None:
        """
        Register receive callbacks.

        Args:
            on_data: Called with every received chunk
            on_error: Called with transport errors
        """
        self._on_data = on_data
        self._on_error = on_error

    @abstractmethod
    def open(self) -> None:
        ...

    @abstractmethod
    def close(self) -> None:
        ...

    @abstractmethod
    def send(self, data: bytes) -> int:
        ...

    @property
    @abstractmethod
    def is_open(self) -> bool:
        ...

    def _deliver(self, data: bytes) -> None:
        if self._on_data is not None:
            self._on_data(data)

    def _fail(self, error: Exception) -> None:
        if self._on_error is not None:
            self._on_error(error)


class SerialTransport(Transport):
    """Serial communication transport layer."""

    def __init__(
        self,
        port: str,
        baudrate: int = DEFAULT_BAUDRATE,
        read_timeout: float = 0.1
    ):
        """
        Initialize serial transport.

        Args:
            port: Serial port name (e.g., '/dev/ttyUSB0' or 'COM3')
            baudrate: Baud rate (default: 9600)
            read_timeout: Internal read timeout for background thread
        """
        super().__init__()
        self.port = port
        self.baudrate = baudrate
        self.read_timeout = read_timeout
        self._serial: Optional[serial.Serial] = None
        self._rx_thread: Optional[threading.Thread] = None
        self._running = False

    def open(self) -> None:
        """Open serial port and start receive thread."""
        try:
            self._serial = serial.Serial(
                port=self.port,
                baudrate=self.baudrate,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                timeout=self.read_timeout
            )
            logger.info(f"Opened serial port {self.port} at {self.baudrate} bps")

            self._running = True
            self._rx_thread = threading.Thread(target=self._rx_loop, daemon=True)
            self._rx_thread.start()

        except serial.SerialException as e:
            raise ConnectionError(f"Failed to open {self.port}: {e}") from e

    def close(self) -> None:
        """Close serial port and stop receive thread."""
        self._running = False

        if self._rx_thread and self._rx_thread is not threading.current_thread():
            self._rx_thread.join(timeout=1.0)
        self._rx_thread = None

        if self._serial:
            try:
                self._serial.close()
            except serial.SerialException as e:
                logger.warning(f"Error closing {self.port}: {e}")
            self._serial = None
            logger.info(f"Closed serial port {self.port}")

    def send(self, data: bytes) -> int:
        """
        Send data over serial port.

        Args:
            data: Bytes to send

        Returns:
            Number of bytes sent

        Raises:
            ConnectionError: If port is not open
        """
        if not self._serial or not self._serial.is_open:
            raise ConnectionError("Serial port not open")

        try:
            count = self._serial.write(data)
            logger.debug(f"TX ({count} bytes): {data.hex(' ')}")
            return count
        except serial.SerialException as e:
            raise ConnectionError(f"Send failed: {e}") from e

    def _rx_loop(self) -> None:
        """Background receive thread."""
        while self._running and self._serial and self._serial.is_open:
            try:
                data = self._serial.read(self._serial.in_waiting or 1)
            except serial.SerialException as e:
                if self._running:
                    logger.error(f"RX error on {self.port}: {e}")
                    self._fail(ConnectionError(f"Receive failed: {e}"))
                break

            if data:
                logger.debug(f"RX ({len(data)} bytes): {data.hex(' ')}")
                self._deliver(data)

    @property
    def is_open(self) -> bool:
        """Check if port is open."""
        return self._serial is not None and self._serial.is_open

    def __enter__(self) -> 'SerialTransport':
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        status = "open" if self.is_open else "closed"
        return f"SerialTransport({self.port}, {self.baudrate}, {status})"
