"""
SDS011 Driver Module

Driver for the Nova Fitness SDS011 particulate matter sensor over UART.
Wraps the sds011_protocol package for sequence integration.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from .base import BaseDriver
from ..libs.sds011_protocol import (
    RETRY_BUDGET,
    RETRY_INTERVAL,
    SDS011Client,
    SerialTransport,
    Transport,
)
from ..libs.sds011_protocol.constants import DEFAULT_BAUDRATE, DEFAULT_PORT

logger = logging.getLogger(__name__)


class SDS011Driver(BaseDriver):
    """
    SDS011 sensor driver.

    Every operation is queued on the protocol client and awaited with
    the configured timeout on top of the client's retry budget.

    Attributes:
        port: Serial port path
        baudrate: Communication speed
        sensor_id: Target sensor id, None for any sensor
        timeout: Deadline for a single operation in seconds
    """

    def __init__(
        self,
        name: str = "SDS011Driver",
        config: Optional[Dict[str, Any]] = None,
        transport: Optional[Transport] = None
    ):
        """
        Initialize SDS011 driver.

        Args:
            name: Driver name
            config: Configuration with keys:
                - port: Serial port (default: "/dev/ttyUSB0")
                - baudrate: Baud rate (default: 9600)
                - read_timeout: Serial read timeout (default: 0.1)
                - sensor_id: Four hex digits, e.g. "cafe" (default: None)
                - retry_budget: Attempts per command (default: 10)
                - retry_interval: Seconds between attempts (default: 0.15)
                - timeout: Operation deadline (default: 5.0)
                - warm_up: Send a query right after opening (default: True)
            transport: Pre-built transport, replaces the serial port
        """
        super().__init__(name=name, config=config)

        self.port: str = self.config.get("port", DEFAULT_PORT)
        self.baudrate: int = self.config.get("baudrate", DEFAULT_BAUDRATE)
        self.read_timeout: float = self.config.get("read_timeout", 0.1)
        self.sensor_id: Optional[str] = self.config.get("sensor_id")
        self.retry_budget: int = self.config.get("retry_budget", RETRY_BUDGET)
        self.retry_interval: float = self.config.get("retry_interval", RETRY_INTERVAL)
        self.timeout: float = self.config.get("timeout", 5.0)
        self.warm_up: bool = self.config.get("warm_up", True)

        self._transport: Optional[Transport] = transport
        self._client: Optional[SDS011Client] = None
        self._firmware_version: Optional[str] = None

    async def connect(self) -> bool:
        """
        Open the serial port and read the firmware version.

        Returns:
            bool: True if the sensor answered
        """
        try:
            logger.info(f"Connecting to SDS011 on {self.port} at {self.baudrate} bps")

            if self._transport is None:
                self._transport = SerialTransport(
                    port=self.port,
                    baudrate=self.baudrate,
                    read_timeout=self.read_timeout
                )

            self._client = SDS011Client(
                transport=self._transport,
                sensor_id=self.sensor_id,
                retry_budget=self.retry_budget,
                retry_interval=self.retry_interval
            )

            self._client.attach()
            await self._run_sync(self._transport.open)
            self._client.open(warm_up=self.warm_up)
            self._connected = True

            self._firmware_version = await self._wait(self._client.get_firmware_version())
            logger.info(f"Connected to SDS011, firmware {self._firmware_version}")
            return True

        except Exception as e:
            logger.error(f"Failed to connect to SDS011: {e}")
            await self.disconnect()
            return False

    async def disconnect(self) -> None:
        """Close the client; queued operations fail with ConnectionClosedError."""
        if self._transport is not None and self._transport.is_open:
            try:
                await self._run_sync(self._transport.close)
            except Exception as e:
                logger.warning(f"Error closing transport: {e}")

        if self._client is not None:
            self._client.close()
            self._client = None

        self._connected = False
        logger.info("Disconnected from SDS011")

    async def reset(self) -> None:
        """Wake the sensor and re-read its firmware version."""
        self._require_connected()

        await self.set_sleep(False)
        self._firmware_version = await self.get_firmware_version()
        logger.info("SDS011 awake, firmware verified")

    async def identify(self) -> str:
        """
        Return sensor identification string.

        Returns:
            str: e.g. "Nova Fitness,SDS011,FFFF,FW-18-11-16"
        """
        address = (self.sensor_id or "ffff").upper()
        firmware = self._firmware_version or "Unknown"
        return f"Nova Fitness,SDS011,{address},FW-{firmware}"

    @property
    def client(self) -> Optional[SDS011Client]:
        return self._client

    # === Sensor Operations ===

    async def query(self) -> Dict[str, float]:
        """
        Read the current concentrations.

        Returns:
            Dict with "pm2p5" and "pm10" in ug/m3
        """
        self._require_connected()
        reading = await self._wait(self._client.query())
        return reading.to_dict()

    async def set_reporting_mode(self, mode: str) -> None:
        """
        Set reporting mode.

        Args:
            mode: "active" or "query"
        """
        self._require_connected()
        await self._wait(self._client.set_reporting_mode(mode))

    async def get_reporting_mode(self) -> str:
        self._require_connected()
        mode = await self._wait(self._client.get_reporting_mode())
        return mode.value

    async def set_sleep(self, sleep: bool) -> None:
        """
        Put the sensor to sleep or wake it up.

        Args:
            sleep: True stops fan and laser
        """
        self._require_connected()
        await self._wait(self._client.set_sleep(sleep))

    async def get_firmware_version(self) -> str:
        self._require_connected()
        return await self._wait(self._client.get_firmware_version())

    async def set_working_period(self, minutes: int) -> None:
        """
        Set working period.

        Args:
            minutes: 0 for continuous operation, up to 30
        """
        self._require_connected()
        await self._wait(self._client.set_working_period(minutes))

    async def get_working_period(self) -> int:
        self._require_connected()
        return await self._wait(self._client.get_working_period())

    # === Helper Methods ===

    async def _wait(self, future: asyncio.Future) -> Any:
        """Await a client command with the driver timeout."""
        return await asyncio.wait_for(future, timeout=self.timeout)
