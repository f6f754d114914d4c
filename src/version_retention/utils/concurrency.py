"""Bounded-concurrency scheduling of lazily produced async operations.

``bounded_as_completed`` pulls awaitables from a plain iterator one at a time,
keeps at most ``max_concurrency`` of them running, and yields a
:class:`TaskOutcome` for each as soon as it settles. A settled slot is refilled
from the iterator before its outcome is handed to the consumer, so the source
is never asked for more work than there are free slots.

Operations are never cancelled by the scheduler. A consumer that stops
iterating early leaves already-started operations running to completion in the
background.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING, Generic, TypeVar, cast

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Iterable, Iterator

T = TypeVar("T")

# The event loop only keeps weak references to tasks.
_RUNNING_TASKS: set[asyncio.Future[object]] = set()


@dataclass(frozen=True, slots=True)
class TaskOutcome(Generic[T]):
    """Settled result of one scheduled operation.

    ``sequence`` is the 0-based position in which the operation was pulled
    from the source; ``slot`` is the slot that ran it.
    """

    slot: int
    sequence: int
    value: T | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Return the value, or raise the error the operation failed with."""
        if self.error is not None:
            raise self.error
        return cast("T", self.value)


@dataclass(slots=True)
class _Slot(Generic[T]):
    index: int
    sequence: int
    task: asyncio.Future[T]


class _Source(Generic[T]):
    """Pull side of the scheduler; remembers exhaustion so it is never re-polled."""

    __slots__ = ("_exhausted", "_iterator", "_pulled")

    def __init__(self, source: Iterable[Awaitable[T]]) -> None:
        self._iterator: Iterator[Awaitable[T]] = iter(source)
        self._exhausted = False
        self._pulled = 0

    @property
    def exhausted(self) -> bool:
        return self._exhausted

    def pull(self, slot_index: int) -> _Slot[T] | None:
        if self._exhausted:
            return None
        try:
            awaitable = next(self._iterator)
        except StopIteration:
            self._exhausted = True
            return None
        sequence = self._pulled
        self._pulled += 1
        return _Slot(index=slot_index, sequence=sequence, task=_start(awaitable))


def bounded_as_completed(
    max_concurrency: int,
    source: Iterable[Awaitable[T]],
) -> AsyncIterator[TaskOutcome[T]]:
    """Run awaitables from ``source`` with at most ``max_concurrency`` in flight.

    Outcomes are yielded in completion order. When several operations settle
    together they are reported in ascending slot order. A failed operation is
    reported through ``TaskOutcome.error`` and does not stop admission of
    further operations.

    Raises ``ValueError`` immediately, before anything is pulled from
    ``source``, when ``max_concurrency`` is not a positive integer.
    """
    if isinstance(max_concurrency, bool) or not isinstance(max_concurrency, int):
        raise ValueError(f"max_concurrency must be an integer, got {max_concurrency!r}")
    if max_concurrency < 1:
        raise ValueError(f"max_concurrency must be >= 1, got {max_concurrency}")
    return _schedule(max_concurrency, _Source(source))


async def bounded_gather(max_concurrency: int, source: Iterable[Awaitable[T]]) -> list[T]:
    """Drain ``bounded_as_completed`` and return values in completion order.

    Every operation runs to completion; the first failure (in completion order)
    is raised afterwards.
    """
    values: list[T] = []
    first_error: BaseException | None = None
    async for outcome in bounded_as_completed(max_concurrency, source):
        if outcome.error is not None:
            if first_error is None:
                first_error = outcome.error
            continue
        values.append(cast("T", outcome.value))
    if first_error is not None:
        raise first_error
    return values


async def _schedule(
    max_concurrency: int,
    pending: _Source[T],
) -> AsyncIterator[TaskOutcome[T]]:
    slots: list[_Slot[T] | None] = [pending.pull(index) for index in range(max_concurrency)]

    while True:
        # Retired slots drop out of the wait set; each live task is awaited once.
        active = {slot.task: slot for slot in slots if slot is not None}
        if not active:
            return

        done, _ = await asyncio.wait(set(active), return_when=asyncio.FIRST_COMPLETED)
        for task in sorted(done, key=lambda item: active[item].index):
            settled = active[task]
            slots[settled.index] = pending.pull(settled.index)
            yield _settle(settled)


def _settle(slot: _Slot[T]) -> TaskOutcome[T]:
    task = slot.task
    if task.cancelled():
        return TaskOutcome(
            slot=slot.index,
            sequence=slot.sequence,
            error=asyncio.CancelledError("operation cancelled"),
        )
    error = task.exception()
    if error is not None:
        return TaskOutcome(slot=slot.index, sequence=slot.sequence, error=error)
    return TaskOutcome(slot=slot.index, sequence=slot.sequence, value=task.result())


def _start(awaitable: Awaitable[T]) -> asyncio.Future[T]:
    task = asyncio.ensure_future(awaitable)
    _RUNNING_TASKS.add(cast("asyncio.Future[object]", task))
    task.add_done_callback(_forget)
    return task


def _forget(task: asyncio.Future[object]) -> None:
    _RUNNING_TASKS.discard(task)
    # Mark the exception retrieved for tasks whose consumer went away.
    if not task.cancelled():
        task.exception()


__all__ = [
    "TaskOutcome",
    "bounded_as_completed",
    "bounded_gather",
]
