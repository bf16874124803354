"""Per-topic admission control."""

from types import TracebackType

import anyio

from pushrelay.errors import SlotReleaseError


class Slot:
    """One reserved unit of an AdmissionGate.

    Released exactly once, either explicitly or on leaving a ``with`` block:

        slot = await gate.acquire()
        with slot:
            await do_work()
    """

    __slots__ = ("_gate", "_released")

    def __init__(self, gate: "AdmissionGate") -> None:
        self._gate = gate
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        """Return the slot to its gate.

        Raises SlotReleaseError if the slot was already released.
        """
        if self._released:
            raise SlotReleaseError("admission slot released twice")
        self._released = True
        self._gate._semaphore.release()

    def __enter__(self) -> "Slot":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if not self._released:
            self.release()


class AdmissionGate:
    """Counting limiter bounding in-flight deliveries for one topic.

    ``acquire()`` suspends while all slots are taken; waiters are woken in
    FIFO order as slots are released.
    """

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            msg = f"capacity must be greater than 0, got {capacity}"
            raise ValueError(msg)
        self._capacity = capacity
        self._semaphore = anyio.Semaphore(capacity, max_value=capacity)

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def available(self) -> int:
        """Slots that can be acquired without waiting."""
        return self._semaphore.value

    @property
    def in_flight(self) -> int:
        return self._capacity - self._semaphore.value

    async def acquire(self) -> Slot:
        """Wait for a free slot and reserve it."""
        await self._semaphore.acquire()
        return Slot(self)

    def __repr__(self) -> str:
        return f"AdmissionGate(capacity={self._capacity}, in_flight={self.in_flight})"
