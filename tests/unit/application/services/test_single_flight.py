"""Tests for SingleFlight."""

import asyncio

import pytest

from huddle.application.services.single_flight import SingleFlight


class TestSingleFlight:
    """Tests for per-key deduplication."""

    async def test_concurrent_callers_share_one_computation(self) -> None:
        flights: SingleFlight[str] = SingleFlight()
        gate = asyncio.Event()
        calls = 0

        async def compute() -> str:
            nonlocal calls
            calls += 1
            await gate.wait()
            return "done"

        first = asyncio.create_task(flights.do("m1", compute))
        second = asyncio.create_task(flights.do("m1", compute))
        await asyncio.sleep(0)
        assert "m1" in flights
        gate.set()

        assert await asyncio.gather(first, second) == ["done", "done"]
        assert calls == 1

    async def test_start_reports_leader(self) -> None:
        flights: SingleFlight[int] = SingleFlight()
        gate = asyncio.Event()

        async def compute() -> int:
            await gate.wait()
            return 1

        task, leader = flights.start("m1", compute)
        same_task, follower_leads = flights.start("m1", compute)
        gate.set()
        await task

        assert leader is True
        assert follower_leads is False
        assert same_task is task

    async def test_entry_dropped_after_completion(self) -> None:
        flights: SingleFlight[int] = SingleFlight()
        results = iter([1, 2])

        async def compute() -> int:
            return next(results)

        assert await flights.do("m1", compute) == 1
        await asyncio.sleep(0)
        assert len(flights) == 0
        assert await flights.do("m1", compute) == 2

    async def test_different_keys_run_separately(self) -> None:
        flights: SingleFlight[str] = SingleFlight()

        async def compute(value: str) -> str:
            await asyncio.sleep(0)
            return value

        results = await asyncio.gather(
            flights.do("a", lambda: compute("a")),
            flights.do("b", lambda: compute("b")),
        )

        assert results == ["a", "b"]

    async def test_failure_shared_and_forgotten(self) -> None:
        flights: SingleFlight[str] = SingleFlight()

        async def compute() -> str:
            await asyncio.sleep(0)
            raise RuntimeError("boom")

        first = asyncio.create_task(flights.do("m1", compute))
        second = asyncio.create_task(flights.do("m1", compute))

        for waiter in (first, second):
            with pytest.raises(RuntimeError):
                await waiter
        await asyncio.sleep(0)
        assert "m1" not in flights

    async def test_cancelled_waiter_does_not_cancel_computation(self) -> None:
        flights: SingleFlight[str] = SingleFlight()
        gate = asyncio.Event()

        async def compute() -> str:
            await gate.wait()
            return "done"

        waiter = asyncio.create_task(flights.do("m1", compute))
        await asyncio.sleep(0)
        task, _ = flights.start("m1", compute)

        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter
        gate.set()

        assert await task == "done"
