"""
Tests for the Wire event channel and the run control signals.
"""

import asyncio

import pytest

from sleuth.domain import EventType
from sleuth.runtime import (
    AbortSignal,
    Interruption,
    RunCancelledError,
    RunControl,
    RunControlRegistry,
    RunInterruptedError,
    Wire,
)


class TestWire:
    @pytest.mark.asyncio
    async def test_events_are_read_in_write_order(self):
        wire = Wire()
        for i in range(5):
            await wire.write(i)
        await wire.close()
        assert [item async for item in wire.read()] == [0, 1, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_writes_after_close_are_ignored(self):
        wire = Wire()
        await wire.write("a")
        await wire.close()
        await wire.write("b")
        wire.write_nowait("c")
        assert [item async for item in wire.read()] == ["a"]
        assert wire.closed

    @pytest.mark.asyncio
    async def test_heartbeat_yields_pings_while_idle(self):
        wire = Wire()
        received = []

        async def reader():
            async for item in wire.read(heartbeat=0.01):
                received.append(item)
                if len(received) == 3:
                    break

        await asyncio.wait_for(reader(), timeout=2.0)
        assert all(item.type == EventType.PING for item in received)

    @pytest.mark.asyncio
    async def test_heartbeat_stops_when_closed(self):
        wire = Wire()

        async def close_later():
            await asyncio.sleep(0.03)
            await wire.write("last")
            await wire.close()

        closer = asyncio.create_task(close_later())
        items = await asyncio.wait_for(
            _collect(wire.read(heartbeat=0.005)), timeout=2.0
        )
        await closer
        assert items[-1] == "last"

    @pytest.mark.asyncio
    async def test_multiple_readers_all_stop(self):
        wire = Wire()
        await wire.close()
        first = await _collect(wire.read())
        second = await _collect(wire.read())
        assert first == second == []


async def _collect(iterator):
    return [item async for item in iterator]


class TestAbortSignal:
    def test_first_reason_wins(self):
        signal = AbortSignal()
        signal.abort("first")
        signal.abort("second")
        assert signal.is_aborted()
        assert signal.reason == "first"

    def test_reset(self):
        signal = AbortSignal()
        signal.abort("x")
        signal.reset()
        assert not signal.is_aborted()
        assert signal.reason is None

    @pytest.mark.asyncio
    async def test_wait_returns_after_abort(self):
        signal = AbortSignal()
        asyncio.get_running_loop().call_later(0.01, signal.abort, "later")
        await asyncio.wait_for(signal.wait(), timeout=1.0)
        assert signal.reason == "later"


class TestRunControl:
    def test_classify_failure(self):
        assert RunControl().classify(ValueError("x")) == Interruption.FAILURE

    def test_classify_soft_stop(self):
        control = RunControl()
        control.soft_stop()
        assert control.classify(RunInterruptedError()) == Interruption.SOFT_STOP

    def test_interruption_without_soft_stop_is_a_failure(self):
        assert RunControl().classify(RunInterruptedError()) == Interruption.FAILURE

    def test_hard_cancel_wins_over_soft_stop(self):
        control = RunControl()
        control.soft_stop()
        control.cancel()
        assert control.classify(RunInterruptedError()) == Interruption.CANCELLED
        assert RunControl().classify(RunCancelledError()) == Interruption.CANCELLED
        assert RunControl().classify(asyncio.CancelledError()) == Interruption.CANCELLED

    def test_clear_soft_stop(self):
        control = RunControl()
        control.soft_stop()
        control.clear_soft_stop()
        assert not control.is_soft_stopped


class TestRunControlRegistry:
    def test_requests_reach_registered_runs(self):
        registry = RunControlRegistry()
        control = registry.register("msg_1")
        assert registry.soft_stop("msg_1")
        assert control.is_soft_stopped
        assert registry.cancel("msg_1", "user")
        assert control.abort_signal.reason == "user"

    def test_unknown_or_cleaned_up_ids_are_no_ops(self):
        registry = RunControlRegistry()
        assert not registry.cancel("missing")
        registry.register("msg_1")
        registry.cleanup("msg_1")
        assert "msg_1" not in registry
        assert not registry.soft_stop("msg_1")
        assert len(registry) == 0
