"""
Last observed state of the sensor.

The client owns exactly one DeviceState per connection. Inbound frame
decoding writes the observed fields; a command's prepare step resets
the fields it waits for to PENDING. Nothing else writes to it.
"""

import logging
from dataclasses import dataclass, fields
from typing import Any, Union

from .constants import ReportingMode
from .sensors import ConfigResponse, SensorReading

logger = logging.getLogger(__name__)


class _Pending:
    """Marker for a field not observed since it was last requested."""

    def __repr__(self) -> str:
        return "PENDING"

    def __bool__(self) -> bool:
        return False


PENDING: Any = _Pending()


@dataclass
class DeviceState:
    """Shared record of sensor attributes observed on the wire."""
    pm2p5: Union[float, _Pending] = PENDING
    pm10: Union[float, _Pending] = PENDING
    mode: Union[ReportingMode, _Pending] = PENDING
    is_sleeping: Union[bool, _Pending] = PENDING
    firmware: Union[str, _Pending] = PENDING
    working_period: Union[int, _Pending] = PENDING
    closed: bool = False

    @classmethod
    def observed_fields(cls) -> tuple:
        """Names of the fields filled in from sensor replies."""
        return tuple(f.name for f in fields(cls) if f.name != "closed")

    def apply_reading(self, reading: SensorReading) -> None:
        """Store a decoded 0xC0 reading."""
        if self.closed:
            return
        self.pm2p5 = reading.pm2p5
        self.pm10 = reading.pm10

    def apply_config(self, response: ConfigResponse) -> None:
        """Store the single attribute carried by a 0xC5 reply."""
        if self.closed:
            return
        setattr(self, response.attribute, response.value)

    def reset(self, *names: str) -> None:
        """Mark fields as not yet observed."""
        if self.closed:
            return
        for name in names:
            if name not in self.observed_fields():
                raise AttributeError(f"DeviceState has no observed field {name!r}")
            setattr(self, name, PENDING)

    def is_pending(self, *names: str) -> bool:
        """True if any of the given fields has not been observed."""
        return any(getattr(self, name) is PENDING for name in names)

    def mark_closed(self) -> None:
        self.closed = True
        logger.debug("Device state closed")
