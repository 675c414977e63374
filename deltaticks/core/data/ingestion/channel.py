"""Bounded producer/flusher hand-off with release-after-write capacity."""

from __future__ import annotations

import asyncio
from typing import Generic, TypeVar

T = TypeVar("T")


class ChannelClosedError(RuntimeError):
    """Raised when putting into a closed channel."""


class FlushChannel(Generic[T]):
    """Queue between a row producer and a batch flusher.

    The channel holds ``capacity`` permits. ``put`` takes one permit per item
    and the flusher only returns permits through :meth:`release` once the
    batch it took has been written, so queued, pending and in-flight items
    together never exceed ``capacity``.
    """

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._capacity = capacity
        self._permits = asyncio.Semaphore(capacity)
        self._pending: list[T] = []
        self._in_flight = 0
        self._closed = False
        self._failure: BaseException | None = None
        self._ready = asyncio.Event()
        self.peak_unflushed = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def unflushed(self) -> int:
        return len(self._pending) + self._in_flight

    @property
    def closed(self) -> bool:
        return self._closed

    async def put(self, item: T) -> None:
        """Add ``item``, waiting while the channel is at capacity."""

        self._raise_if_unusable()
        await self._permits.acquire()
        self._raise_if_unusable()
        self._pending.append(item)
        self.peak_unflushed = max(self.peak_unflushed, self.unflushed)
        if len(self._pending) >= self._capacity:
            self._ready.set()

    def close(self) -> None:
        """Signal end of input. Does not consume capacity."""

        self._closed = True
        self._ready.set()

    def abort(self, error: BaseException) -> None:
        """Fail the channel and wake any blocked producer."""

        self._failure = error
        self._closed = True
        self._ready.set()
        for _ in range(self._capacity):
            self._permits.release()

    async def take(self, timeout: float) -> list[T] | None:
        """Wait for a full batch, close, or ``timeout`` seconds.

        Returns the pending items (possibly empty after a timeout), or ``None``
        once the channel is closed and drained. The caller must
        :meth:`release` the returned items after writing them.
        """

        if len(self._pending) < self._capacity and not self._closed:
            try:
                await asyncio.wait_for(self._ready.wait(), timeout)
            except TimeoutError:
                pass
        self._ready.clear()
        if self._closed:
            # keep waking subsequent takes until drained
            self._ready.set()
        if not self._pending:
            return None if self._closed else []
        batch, self._pending = self._pending, []
        self._in_flight += len(batch)
        return batch

    def release(self, count: int) -> None:
        """Return ``count`` permits after their items were written."""

        self._in_flight -= count
        if self._failure is not None:
            return
        for _ in range(count):
            self._permits.release()

    def _raise_if_unusable(self) -> None:
        if self._failure is not None:
            raise self._failure
        if self._closed:
            raise ChannelClosedError("channel is closed")


__all__ = ["ChannelClosedError", "FlushChannel"]
