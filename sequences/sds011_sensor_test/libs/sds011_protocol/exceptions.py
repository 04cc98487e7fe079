"""
Custom exceptions for SDS011 protocol.
"""

from .constants import Command, Sender


class SDS011ProtocolError(Exception):
    """Base exception for SDS011 protocol errors."""
    pass


class FrameError(SDS011ProtocolError):
    """Frame parsing or decoding error."""

    def __init__(self, message: str, data: bytes = b""):
        self.data = bytes(data)
        super().__init__(message)


class ChecksumError(FrameError):
    """Checksum verification failed."""

    def __init__(self, expected: int, received: int, data: bytes = b""):
        self.expected = expected
        self.received = received
        super().__init__(
            f"Checksum mismatch: expected 0x{expected:02X}, received 0x{received:02X}",
            data
        )


class DecodeError(FrameError):
    """Valid frame whose content cannot be interpreted."""
    pass


class UnknownSenderError(DecodeError):
    """Frame from a sender this driver does not handle."""

    def __init__(self, sender: int, data: bytes = b""):
        self.sender = sender
        super().__init__(
            f"Cannot handle message from {Sender.name_of(sender)} sender",
            data
        )


class UnknownCommandError(DecodeError):
    """Configuration reply echoing an unknown command type."""

    def __init__(self, command: int, data: bytes = b""):
        self.command = command
        super().__init__(
            f"Unhandled command in reply: {Command.name_of(command)}",
            data
        )


class CommandExhaustedError(SDS011ProtocolError):
    """Command was not answered within its retry budget."""

    def __init__(self, command: str, retries: int):
        self.command = command
        self.retries = retries
        super().__init__(f"Command {command} failed after {retries} retries")


class ConnectionError(SDS011ProtocolError):
    """Serial connection error."""
    pass


class ConnectionClosedError(ConnectionError):
    """Operation on a closed sensor connection."""

    def __init__(self, message: str = "Sensor connection is closed"):
        super().__init__(message)
