"""
Single-flight retrying command scheduler.

The wire protocol carries no request ids, so a command is never matched
against a reply. Instead the scheduler repeatedly writes the head
command and polls its fulfillment check, which looks at the decoded
device state, until it passes or the retry budget is spent.
"""

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Optional

from .constants import RETRY_BUDGET, RETRY_INTERVAL
from .exceptions import CommandExhaustedError

logger = logging.getLogger(__name__)


@dataclass
class CommandDescriptor:
    """
    A queued intent.

    Attributes:
        name: Command name for logs and errors
        prepare: Runs once before the first attempt (resets observed state)
        execute: Writes the command to the transport
        is_fulfilled: True once the device state reflects the command
        on_success: Called once when fulfilled
        on_failure: Called once with the exception when the command fails
    """
    name: str
    prepare: Callable[[], None]
    execute: Callable[[], None]
    is_fulfilled: Callable[[], bool]
    on_success: Callable[[], None]
    on_failure: Callable[[BaseException], None]


class CommandScheduler:
    """FIFO queue where only the head command is ever active."""

    def __init__(
        self,
        retry_budget: int = RETRY_BUDGET,
        retry_interval: float = RETRY_INTERVAL,
        loop: Optional[asyncio.AbstractEventLoop] = None
    ):
        """
        Initialize scheduler.

        Args:
            retry_budget: Attempts allowed per command
            retry_interval: Seconds between attempts
            loop: Event loop for the retry timer (default: running loop)
        """
        self.retry_budget = retry_budget
        self.retry_interval = retry_interval
        self._loop = loop
        self._queue: Deque[CommandDescriptor] = deque()
        self._retry_count = 0
        self._processing = False
        self._timer: Optional[asyncio.TimerHandle] = None

    def enqueue(self, command: CommandDescriptor) -> None:
        """Append command; start processing if the scheduler is idle."""
        if not isinstance(command, CommandDescriptor):
            raise TypeError(f"Argument of type {CommandDescriptor.__name__} is required")

        self._queue.append(command)
        logger.debug(f"Enqueued {command.name} ({len(self._queue)} pending)")

        if not self._processing:
            self._process()

    def clear(self, exc: Optional[BaseException] = None) -> None:
        """
        Drop all queued commands and stop the retry timer.

        Args:
            exc: If given, every dropped command is failed with it
        """
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

        dropped = list(self._queue)
        self._queue.clear()
        self._retry_count = 0
        self._processing = False

        if exc is not None:
            for command in dropped:
                self._settle(command.on_failure, exc)

    def _process(self) -> None:
        """Run one scheduling tick, continuing synchronously past resolved commands."""
        self._timer = None
        self._processing = True

        while self._queue:
            command = self._queue[0]

            try:
                if self._retry_count == 0:
                    command.prepare()

                self._retry_count += 1
                if self._retry_count > self.retry_budget:
                    self._finish()
                    logger.warning(f"Command {command.name} failed after {self.retry_budget} retries")
                    self._settle(command.on_failure, CommandExhaustedError(command.name, self.retry_budget))
                    continue

                if command.is_fulfilled():
                    self._finish()
                    logger.debug(f"Command {command.name} fulfilled")
                    self._settle(command.on_success)
                    continue

                command.execute()

            except Exception as e:
                self._finish()
                logger.error(f"Command {command.name} failed: {e}")
                self._settle(command.on_failure, e)
                continue

            self._timer = self._get_loop().call_later(self.retry_interval, self._process)
            return

        self._processing = False
        self._retry_count = 0

    @staticmethod
    def _settle(callback: Callable[..., None], *args) -> None:
        """Run a terminal continuation; a raising callback must not stall the queue."""
        try:
            callback(*args)
        except Exception:
            logger.exception("Command completion callback failed")

    def _finish(self) -> None:
        """Remove the head command and reset the attempt counter."""
        self._queue.popleft()
        self._retry_count = 0

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    @property
    def is_processing(self) -> bool:
        """True while a command is active."""
        return self._processing

    @property
    def pending(self) -> int:
        """Number of queued commands, including the active one."""
        return len(self._queue)
