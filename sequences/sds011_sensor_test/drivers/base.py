"""
Base Driver Module

Abstract base class for sensor drivers used by test sequences.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional


class BaseDriver(ABC):
    """
    Abstract async driver.

    Subclasses wrap a blocking or callback based protocol stack and
    expose it to sequences as coroutines.

    Attributes:
        name: Driver identifier name
        config: Configuration dictionary
    """

    def __init__(
        self,
        name: str = "BaseDriver",
        config: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize driver.

        Args:
            name: Driver identifier name
            config: Configuration dictionary (port, baudrate, etc.)
        """
        self.name = name
        self.config = config or {}
        self._connected = False

    @abstractmethod
    async def connect(self) -> bool:
        """
        Open the link to the device.

        Returns:
            bool: True if the device answered
        """
        ...

    @abstractmethod
    async def disconnect(self) -> None:
        """Release the link. Safe to call more than once."""
        ...

    @abstractmethod
    async def reset(self) -> None:
        """Bring the device back to a known working state."""
        ...

    async def identify(self) -> str:
        """
        Return device identification string.

        Returns:
            str: "Manufacturer,Model,Address,Version"
        """
        return "Unknown"

    async def is_connected(self) -> bool:
        return self._connected

    def _require_connected(self) -> None:
        if not self._connected:
            raise RuntimeError(f"{self.name} is not connected")

    async def _run_sync(self, func: Callable[..., Any], *args, **kwargs) -> Any:
        """Run a blocking call (port open/close) in the default executor."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, lambda: func(*args, **kwargs))

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r}, connected={self._connected})"
