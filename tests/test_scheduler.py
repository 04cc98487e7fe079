"""Tests for the single-flight retrying command scheduler."""

import asyncio
import logging
from dataclasses import replace
from typing import List

import pytest

from sequences.sds011_sensor_test.libs.sds011_protocol import (
    CommandDescriptor,
    CommandExhaustedError,
    CommandScheduler,
)


class Recorder:
    """Builds descriptors that log every callback into a shared list."""

    def __init__(self, log: List[str]):
        self.log = log
        self.loop = asyncio.get_running_loop()

    def command(self, name: str, fulfilled_after: int = -1, fail_execute: bool = False):
        """
        Args:
            fulfilled_after: Executes needed before fulfilled, -1 for never
        """
        future = self.loop.create_future()
        executes = []

        def execute():
            self.log.append(name)
            executes.append(1)
            if fail_execute:
                raise OSError("write failed")

        def is_fulfilled():
            return fulfilled_after >= 0 and len(executes) >= fulfilled_after

        def on_success():
            self.log.append(f"{name}:ok")
            future.set_result(len(executes))

        def on_failure(exc):
            self.log.append(f"{name}:failed")
            future.set_exception(exc)

        descriptor = CommandDescriptor(
            name=name,
            prepare=lambda: self.log.append(f"{name}:prepare"),
            execute=execute,
            is_fulfilled=is_fulfilled,
            on_success=on_success,
            on_failure=on_failure,
        )
        return descriptor, future


@pytest.mark.asyncio
async def test_exhausts_after_exactly_budget_executes():
    log: List[str] = []
    scheduler = CommandScheduler(retry_budget=10, retry_interval=0.001)
    command, future = Recorder(log).command("A")

    scheduler.enqueue(command)

    with pytest.raises(CommandExhaustedError) as exc_info:
        await asyncio.wait_for(future, timeout=2.0)
    assert log.count("A") == 10
    assert exc_info.value.retries == 10
    assert exc_info.value.command == "A"
    assert not scheduler.is_processing


@pytest.mark.asyncio
async def test_prepare_runs_once_before_first_execute():
    log: List[str] = []
    scheduler = CommandScheduler(retry_budget=3, retry_interval=0.001)
    command, future = Recorder(log).command("A")

    scheduler.enqueue(command)
    with pytest.raises(CommandExhaustedError):
        await asyncio.wait_for(future, timeout=2.0)

    assert log == ["A:prepare", "A", "A", "A", "A:failed"]


@pytest.mark.asyncio
async def test_fifo_second_command_waits_for_first():
    log: List[str] = []
    recorder = Recorder(log)
    scheduler = CommandScheduler(retry_budget=3, retry_interval=0.001)
    first, first_future = recorder.command("A")
    second, second_future = recorder.command("B", fulfilled_after=1)

    scheduler.enqueue(first)
    scheduler.enqueue(second)
    assert scheduler.pending == 2

    assert await asyncio.wait_for(second_future, timeout=2.0) == 1
    assert isinstance(first_future.exception(), CommandExhaustedError)
    assert log == [
        "A:prepare", "A", "A", "A", "A:failed",
        "B:prepare", "B", "B:ok",
    ]
    assert scheduler.pending == 0


@pytest.mark.asyncio
async def test_already_fulfilled_resolves_without_execute():
    log: List[str] = []
    scheduler = CommandScheduler(retry_interval=0.001)
    command, future = Recorder(log).command("A", fulfilled_after=0)

    scheduler.enqueue(command)

    assert future.done()
    assert log == ["A:prepare", "A:ok"]
    assert not scheduler.is_processing


@pytest.mark.asyncio
async def test_fulfilled_after_some_attempts():
    log: List[str] = []
    scheduler = CommandScheduler(retry_budget=10, retry_interval=0.001)
    command, future = Recorder(log).command("A", fulfilled_after=4)

    scheduler.enqueue(command)

    assert await asyncio.wait_for(future, timeout=2.0) == 4
    assert log.count("A") == 4


@pytest.mark.asyncio
async def test_execute_error_fails_command_and_continues():
    log: List[str] = []
    recorder = Recorder(log)
    scheduler = CommandScheduler(retry_budget=3, retry_interval=0.001)
    broken, broken_future = recorder.command("A", fail_execute=True)
    working, working_future = recorder.command("B", fulfilled_after=1)

    scheduler.enqueue(broken)
    scheduler.enqueue(working)

    with pytest.raises(OSError):
        await broken_future
    await asyncio.wait_for(working_future, timeout=2.0)
    assert log == ["A:prepare", "A", "A:failed", "B:prepare", "B", "B:ok"]


@pytest.mark.asyncio
async def test_raising_prepare_fails_only_that_command():
    log: List[str] = []
    recorder = Recorder(log)
    scheduler = CommandScheduler(retry_interval=0.001)
    broken, broken_future = recorder.command("A", fulfilled_after=1)
    working, working_future = recorder.command("B", fulfilled_after=1)

    def prepare():
        raise ValueError("bad state")

    scheduler.enqueue(replace(broken, prepare=prepare))
    scheduler.enqueue(working)

    with pytest.raises(ValueError):
        await broken_future
    await asyncio.wait_for(working_future, timeout=2.0)
    assert log == ["A:failed", "B:prepare", "B", "B:ok"]
    assert not scheduler.is_processing


@pytest.mark.asyncio
async def test_raising_fulfillment_check_fails_the_command():
    log: List[str] = []
    recorder = Recorder(log)
    scheduler = CommandScheduler(retry_interval=0.001)
    command, future = recorder.command("A")

    def is_fulfilled():
        raise KeyError("mode")

    scheduler.enqueue(replace(command, is_fulfilled=is_fulfilled))

    with pytest.raises(KeyError):
        await asyncio.wait_for(future, timeout=2.0)
    assert log == ["A:prepare", "A:failed"]
    assert scheduler.pending == 0
    assert not scheduler.is_processing


@pytest.mark.asyncio
async def test_raising_completion_callback_does_not_stall_queue(caplog):
    log: List[str] = []
    recorder = Recorder(log)
    scheduler = CommandScheduler(retry_interval=0.001)
    first, _ = recorder.command("A", fulfilled_after=1)
    second, second_future = recorder.command("B", fulfilled_after=1)

    def on_success():
        raise RuntimeError("caller bug")

    with caplog.at_level(logging.ERROR):
        scheduler.enqueue(replace(first, on_success=on_success))
        scheduler.enqueue(second)
        await asyncio.wait_for(second_future, timeout=2.0)

    assert log == ["A:prepare", "A", "B:prepare", "B", "B:ok"]
    assert "completion callback failed" in caplog.text
    assert not scheduler.is_processing
    assert scheduler.pending == 0


@pytest.mark.asyncio
async def test_clear_fails_queued_commands():
    log: List[str] = []
    recorder = Recorder(log)
    scheduler = CommandScheduler(retry_budget=10, retry_interval=0.05)
    first, first_future = recorder.command("A")
    second, second_future = recorder.command("B")

    scheduler.enqueue(first)
    scheduler.enqueue(second)
    scheduler.clear(RuntimeError("closed"))

    for future in (first_future, second_future):
        with pytest.raises(RuntimeError):
            await future
    assert scheduler.pending == 0
    assert not scheduler.is_processing

    await asyncio.sleep(0.1)
    assert log.count("A") == 1


@pytest.mark.asyncio
async def test_clear_without_error_leaves_callers_pending():
    log: List[str] = []
    scheduler = CommandScheduler(retry_interval=0.05)
    command, future = Recorder(log).command("A")

    scheduler.enqueue(command)
    scheduler.clear()

    assert not future.done()
    assert scheduler.pending == 0


@pytest.mark.asyncio
async def test_enqueue_after_idle_restarts_processing():
    log: List[str] = []
    recorder = Recorder(log)
    scheduler = CommandScheduler(retry_interval=0.001)
    first, first_future = recorder.command("A", fulfilled_after=1)

    scheduler.enqueue(first)
    await asyncio.wait_for(first_future, timeout=2.0)
    assert not scheduler.is_processing

    second, second_future = recorder.command("B", fulfilled_after=1)
    scheduler.enqueue(second)
    assert scheduler.is_processing
    await asyncio.wait_for(second_future, timeout=2.0)


def test_enqueue_rejects_non_descriptor():
    with pytest.raises(TypeError):
        CommandScheduler().enqueue(lambda: None)
