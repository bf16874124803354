"""Tests for AdmissionGate and Slot."""

import anyio
import pytest

from pushrelay.errors import SlotReleaseError
from pushrelay.gate import AdmissionGate

pytestmark = pytest.mark.anyio

TIMEOUT_SECONDS = 2
CAPACITY = 3


class TestAdmissionGate:
    @pytest.mark.parametrize("capacity", [0, -1])
    def test_capacity_must_be_positive(self, capacity: int) -> None:
        with pytest.raises(ValueError, match="greater than 0"):
            AdmissionGate(capacity)

    async def test_starts_fully_available(self) -> None:
        gate = AdmissionGate(CAPACITY)
        assert gate.capacity == CAPACITY
        assert gate.available == CAPACITY
        assert gate.in_flight == 0

    async def test_acquire_reserves_slot(self) -> None:
        gate = AdmissionGate(CAPACITY)
        slot = await gate.acquire()

        assert not slot.released
        assert gate.available == CAPACITY - 1
        assert gate.in_flight == 1

    async def test_release_returns_slot(self) -> None:
        gate = AdmissionGate(CAPACITY)
        slot = await gate.acquire()
        slot.release()

        assert slot.released
        assert gate.available == CAPACITY

    async def test_double_release_raises_and_keeps_count(self) -> None:
        gate = AdmissionGate(CAPACITY)
        first = await gate.acquire()
        await gate.acquire()
        first.release()

        with pytest.raises(SlotReleaseError):
            first.release()
        assert gate.available == CAPACITY - 1

    async def test_with_block_releases_on_exception(self) -> None:
        gate = AdmissionGate(1)
        slot = await gate.acquire()

        with pytest.raises(RuntimeError):
            with slot:
                raise RuntimeError("boom")

        assert slot.released
        assert gate.available == 1

    async def test_with_block_after_explicit_release_is_noop(self) -> None:
        gate = AdmissionGate(1)
        slot = await gate.acquire()
        with slot:
            slot.release()
        assert gate.available == 1


class TestAdmissionGateBlocking:
    async def test_acquire_waits_when_full(self) -> None:
        gate = AdmissionGate(1)
        held = await gate.acquire()
        acquired = anyio.Event()

        async def waiter() -> None:
            slot = await gate.acquire()
            acquired.set()
            slot.release()

        with anyio.fail_after(TIMEOUT_SECONDS):
            async with anyio.create_task_group() as tg:
                tg.start_soon(waiter)
                await anyio.sleep(0.05)
                assert not acquired.is_set()

                held.release()
                await acquired.wait()

        assert gate.available == 1

    async def test_waiters_served_in_order(self) -> None:
        gate = AdmissionGate(1)
        held = await gate.acquire()
        order: list[int] = []

        async def waiter(index: int) -> None:
            slot = await gate.acquire()
            order.append(index)
            slot.release()

        with anyio.fail_after(TIMEOUT_SECONDS):
            async with anyio.create_task_group() as tg:
                for index in range(CAPACITY):
                    tg.start_soon(waiter, index)
                    await anyio.sleep(0.01)
                held.release()

        assert order == list(range(CAPACITY))

    async def test_never_exceeds_capacity(self) -> None:
        gate = AdmissionGate(CAPACITY)
        active = 0
        peak = 0

        async def worker() -> None:
            nonlocal active, peak
            with await gate.acquire():
                active += 1
                peak = max(peak, active)
                await anyio.sleep(0.01)
                active -= 1

        with anyio.fail_after(TIMEOUT_SECONDS):
            async with anyio.create_task_group() as tg:
                for _ in range(CAPACITY * 4):
                    tg.start_soon(worker)

        assert peak == CAPACITY
        assert gate.available == CAPACITY
