"""
Bounded, non-blocking event queue between producers and the dispatcher.

Design:
- Fixed capacity ring buffer; a push into a full buffer fails instead of
  waiting (drop-on-full)
- Many producers on arbitrary threads, one consumer (the dispatcher)
- Index updates happen under a short ``threading.Lock`` critical section;
  no caller ever waits on the consumer or on I/O
"""

from __future__ import annotations

import threading
from typing import Callable, Generic, TypeVar

T = TypeVar("T")


class NonBlockingRingQueue(Generic[T]):
    """Multi-producer/single-consumer bounded FIFO with drop-on-full.

    - ``try_enqueue`` returns False when full; the item is not stored.
    - ``drain`` pulls every currently queued item at once, oldest first.
    """

    __slots__ = ("_buffer", "_capacity", "_head", "_size", "_lock")

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be > 0")
        self._buffer: list[T | None] = [None] * capacity
        self._capacity = capacity
        self._head = 0  # next index to read
        self._size = 0
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def qsize(self) -> int:
        return self._size

    def is_empty(self) -> bool:
        return self._size == 0

    def is_full(self) -> bool:
        return self._size >= self._capacity

    def try_enqueue(self, item: T) -> bool:
        """Attempt to push an item; returns False if the queue is full."""
        with self._lock:
            return self._push_locked(item)

    def try_enqueue_with(self, factory: Callable[[], T]) -> bool:
        """Build an item with ``factory`` under the lock and push it.

        Items are built in the order they are stored, so anything captured at
        build time (a timestamp) follows enqueue order across producers.
        ``factory`` is not called when the queue is full.
        """
        with self._lock:
            if self._size >= self._capacity:
                return False
            return self._push_locked(factory())

    def _push_locked(self, item: T) -> bool:
        if self._size >= self._capacity:
            return False
        tail = (self._head + self._size) % self._capacity
        self._buffer[tail] = item
        self._size += 1
        return True

    def try_dequeue(self) -> tuple[bool, T | None]:
        """Attempt to pop the oldest item; returns (False, None) if empty."""
        with self._lock:
            if self._size == 0:
                return False, None
            item = self._buffer[self._head]
            self._buffer[self._head] = None
            self._head = (self._head + 1) % self._capacity
            self._size -= 1
            return True, item

    def drain(self) -> list[T]:
        """Remove and return all queued items in enqueue order."""
        with self._lock:
            items: list[T] = []
            for _ in range(self._size):
                item = self._buffer[self._head]
                self._buffer[self._head] = None
                self._head = (self._head + 1) % self._capacity
                items.append(item)  # type: ignore[arg-type]
            self._size = 0
            return items
