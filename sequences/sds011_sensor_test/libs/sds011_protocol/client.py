"""
High-level protocol client.

Owns the device state of one sensor connection, turns received bytes
into decoded messages and events, and exposes the sensor commands as
futures settled by the command scheduler.
"""

import asyncio
import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from .constants import (
    MIN_WORKING_PERIOD, MAX_WORKING_PERIOD, RETRY_BUDGET, RETRY_INTERVAL,
    Event, ReportingMode, Sender
)
from .exceptions import ConnectionClosedError, DecodeError, FrameError, UnknownSenderError
from .frame import FrameBuilder, FrameParser, ParseResult, parse_sensor_id, verify_frame
from .scheduler import CommandDescriptor, CommandScheduler
from .sensors import ConfigResponse, SensorReading
from .state import DeviceState
from .transport import Transport

logger = logging.getLogger(__name__)

Listener = Callable[..., None]


class SDS011Client:
    """High-level client for the SDS011 serial protocol."""

    def __init__(
        self,
        transport: Transport,
        sensor_id: Optional[str] = None,
        retry_budget: int = RETRY_BUDGET,
        retry_interval: float = RETRY_INTERVAL,
        loop: Optional[asyncio.AbstractEventLoop] = None
    ):
        """
        Initialize SDS011 client.

        Args:
            transport: Byte channel to the sensor
            sensor_id: Four hex digits addressing one sensor (None for any)
            retry_budget: Attempts per command before it fails
            retry_interval: Seconds between attempts
            loop: Event loop all handlers run on (default: running loop)

        Raises:
            ValueError: If sensor_id is malformed
        """
        parse_sensor_id(sensor_id)

        self.transport = transport
        self.sensor_id = sensor_id
        self._loop = loop
        self._state = DeviceState()
        self._parser = FrameParser()
        self._scheduler = CommandScheduler(retry_budget, retry_interval, loop)
        self._listeners: Dict[Event, List[Listener]] = defaultdict(list)

    # === Connection ===

    def attach(self) -> None:
        """
        Install the receive handlers on the transport.

        Received data and errors are handed over to the event loop, so
        decoding never runs concurrently with the command scheduler. Call
        before opening the transport elsewhere so no early byte is lost.
        """
        if self._state.closed:
            raise ConnectionClosedError()

        loop = self._get_loop()
        self.transport.set_handlers(
            on_data=lambda data: loop.call_soon_threadsafe(self.data_received, data),
            on_error=lambda exc: loop.call_soon_threadsafe(self.error_received, exc)
        )

    def open(self, warm_up: bool = True) -> None:
        """
        Attach to the transport and open it.

        Args:
            warm_up: Queue an initial query to wake the sensor
        """
        self.attach()
        if not self.transport.is_open:
            self.transport.open()

        if warm_up:
            self.query().add_done_callback(self._log_warm_up)

    def close(self) -> None:
        """Close connection and fail every queued command."""
        if self._state.closed:
            logger.info("Sensor connection is already closed")
            return

        self._state.mark_closed()
        self._scheduler.clear(ConnectionClosedError())
        self._parser.clear()
        if self.transport.is_open:
            self.transport.close()
        self._listeners.clear()
        logger.info("Sensor connection closed")

    @property
    def closed(self) -> bool:
        return self._state.closed

    @property
    def state(self) -> DeviceState:
        """Last observed sensor state (read only for callers)."""
        return self._state

    @property
    def pending_commands(self) -> int:
        return self._scheduler.pending

    # === Events ===

    def add_listener(self, event: Event, callback: Listener) -> None:
        """Register callback for an event."""
        self._listeners[Event(event)].append(callback)

    def remove_listener(self, event: Event, callback: Listener) -> None:
        """Unregister callback; unknown callbacks are ignored."""
        listeners = self._listeners.get(Event(event), [])
        if callback in listeners:
            listeners.remove(callback)

    def _emit(self, event: Event, *args: Any) -> None:
        for callback in list(self._listeners.get(event, [])):
            try:
                callback(*args)
            except Exception:
                logger.exception(f"Listener for {event.value} failed")

    # === Receive path ===

    def data_received(self, data: bytes) -> None:
        """Handle a chunk of bytes from the transport."""
        if self._state.closed:
            return

        self._emit(Event.DATA, data)

        for result, frame in self._parser.push(data):
            if result == ParseResult.OK:
                self._emit(Event.MESSAGE, frame)
                self._handle_message(frame)
                continue

            try:
                verify_frame(frame)
            except FrameError as e:
                logger.warning(f"Received invalid frame {frame.hex(' ')}: {e}")
                self._emit(Event.MESSAGE_ERROR, e)

    def error_received(self, error: Exception) -> None:
        """Handle a transport error."""
        logger.error(f"Transport error: {error}")
        self._emit(Event.ERROR, error)

    def _handle_message(self, frame: bytes) -> None:
        """Decode a valid frame into the device state."""
        sender = frame[1]

        try:
            if sender == Sender.READING:
                reading = SensorReading.from_bytes(frame)
                self._state.apply_reading(reading)
                logger.debug(f"Received {reading}")

                if reading.is_sensible:
                    self._emit(Event.READING, reading)

            elif sender == Sender.CONFIG:
                response = ConfigResponse.from_bytes(frame)
                self._state.apply_config(response)
                logger.debug(f"Received {response}")

            else:
                raise UnknownSenderError(sender, frame)

        except DecodeError as e:
            logger.warning(f"Cannot decode frame {frame.hex(' ')}: {e}")
            self._emit(Event.MESSAGE_ERROR, e)

    # === Commands ===

    def query(self) -> 'asyncio.Future[SensorReading]':
        """
        Query sensor for its latest reading.

        Returns:
            Future resolved with a SensorReading
        """
        state = self._state
        return self._enqueue(
            "QUERY",
            ("pm2p5", "pm10"),
            lambda: FrameBuilder.build_query(self.sensor_id),
            result=lambda: SensorReading(state.pm2p5, state.pm10)
        )

    def set_reporting_mode(self, mode: Union[ReportingMode, str]) -> 'asyncio.Future[None]':
        """
        Set reporting mode. The setting survives power off.

        Args:
            mode: "active" (sensor pushes readings) or "query" (readings on request)

        Raises:
            ValueError: If mode is not a known reporting mode
        """
        try:
            mode = ReportingMode(mode)
        except ValueError:
            raise ValueError(f"Invalid mode {mode!r}, expected 'active' or 'query'") from None

        state = self._state
        return self._enqueue(
            "SET_MODE",
            ("mode",),
            lambda: FrameBuilder.build_set_reporting_mode(mode == ReportingMode.ACTIVE, self.sensor_id),
            is_fulfilled=lambda: state.mode == mode
        )

    def get_reporting_mode(self) -> 'asyncio.Future[ReportingMode]':
        """Get reporting mode."""
        state = self._state
        return self._enqueue(
            "GET_MODE",
            ("mode",),
            lambda: FrameBuilder.build_get_reporting_mode(self.sensor_id),
            result=lambda: state.mode
        )

    def set_sleep(self, sleep: bool) -> 'asyncio.Future[None]':
        """
        Put the sensor to sleep (fan and laser off) or wake it up.

        Args:
            sleep: True to sleep, False to work
        """
        sleep = bool(sleep)
        state = self._state
        return self._enqueue(
            "SET_SLEEP",
            ("is_sleeping",),
            lambda: FrameBuilder.build_set_sleep(sleep, self.sensor_id),
            is_fulfilled=lambda: state.is_sleeping == sleep
        )

    def get_firmware_version(self) -> 'asyncio.Future[str]':
        """Read firmware version as "YY-MM-DD"."""
        state = self._state
        return self._enqueue(
            "GET_FIRMWARE",
            ("firmware",),
            lambda: FrameBuilder.build_get_firmware(self.sensor_id),
            result=lambda: state.firmware
        )

    def set_working_period(self, minutes: int) -> 'asyncio.Future[None]':
        """
        Set working period. The setting survives power off.

        Args:
            minutes: 0 (continuous) to 30

        Raises:
            ValueError: If minutes is out of range
        """
        if (isinstance(minutes, bool) or not isinstance(minutes, int)
                or not MIN_WORKING_PERIOD <= minutes <= MAX_WORKING_PERIOD):
            raise ValueError(
                f"Working period must be {MIN_WORKING_PERIOD}-{MAX_WORKING_PERIOD} minutes, "
                f"got {minutes!r}"
            )

        state = self._state
        return self._enqueue(
            "SET_PERIOD",
            ("working_period",),
            lambda: FrameBuilder.build_set_working_period(minutes, self.sensor_id),
            is_fulfilled=lambda: state.working_period == minutes
        )

    def get_working_period(self) -> 'asyncio.Future[int]':
        """Get working period in minutes."""
        state = self._state
        return self._enqueue(
            "GET_PERIOD",
            ("working_period",),
            lambda: FrameBuilder.build_get_working_period(self.sensor_id),
            result=lambda: state.working_period
        )

    def _enqueue(
        self,
        name: str,
        observes: Sequence[str],
        build: Callable[[], bytes],
        is_fulfilled: Optional[Callable[[], bool]] = None,
        result: Optional[Callable[[], Any]] = None
    ) -> asyncio.Future:
        """
        Queue a command waiting on the given state fields.

        Args:
            name: Command name
            observes: DeviceState fields reset before and checked after sending
            build: Returns the command bytes for each attempt
            is_fulfilled: Extra check once the fields are observed
            result: Value the future resolves with (None if omitted)
        """
        if self._state.closed:
            raise ConnectionClosedError()

        future = self._get_loop().create_future()
        state = self._state
        transport = self.transport

        def prepare() -> None:
            state.reset(*observes)

        def execute() -> None:
            transport.send(build())

        def fulfilled() -> bool:
            # Caller gave up (e.g. wait_for timeout): release the queue
            if future.cancelled():
                return True
            if state.is_pending(*observes):
                return False
            return is_fulfilled is None or is_fulfilled()

        def on_success() -> None:
            if not future.done():
                future.set_result(result() if result else None)

        def on_failure(exc: BaseException) -> None:
            if not future.done():
                future.set_exception(exc)

        self._scheduler.enqueue(
            CommandDescriptor(name, prepare, execute, fulfilled, on_success, on_failure)
        )
        return future

    def _log_warm_up(self, future: asyncio.Future) -> None:
        if future.cancelled():
            return
        if future.exception() is not None:
            logger.warning(f"Warm-up query failed: {future.exception()}")
        else:
            logger.debug(f"Warm-up query returned {future.result()}")

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def __repr__(self) -> str:
        status = "closed" if self._state.closed else "open"
        return f"SDS011Client({self.transport!r}, sensor_id={self.sensor_id!r}, {status})"
