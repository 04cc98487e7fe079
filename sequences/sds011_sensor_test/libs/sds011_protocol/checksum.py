"""
Frame checksum.

The SDS011 checksum is the low byte of the sum of the data bytes:
bytes 2..7 of an inbound frame, bytes 2..16 of a host command.
"""

from typing import Optional


class Checksum:
    """Additive 8-bit checksum."""

    @staticmethod
    def calculate(data: bytes, start: int = 0, end: Optional[int] = None) -> int:
        """
        Calculate checksum over data[start..end], both ends inclusive.

        Args:
            data: Frame bytes
            start: Index of the first byte to include
            end: Index of the last byte to include (None for the last byte)

        Returns:
            Sum of the selected bytes modulo 256
        """
        if end is None:
            end = len(data) - 1
        return sum(data[start:end + 1]) & 0xFF

    @staticmethod
    def verify(data: bytes, checksum: int, start: int = 0, end: Optional[int] = None) -> bool:
        """Check a received checksum against the calculated one."""
        return Checksum.calculate(data, start, end) == checksum
