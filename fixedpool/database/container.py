"""
Bounded Handle Container

A thread-safe bounded FIFO holding idle handles. Blocking takes can be
cancelled through a ``CancellationToken``, which is how a waiting thread is
interrupted from another thread.
"""

import threading
import time
from collections import deque
from typing import Deque, Generic, List, Optional, Set, TypeVar

from fixedpool.database.exceptions import ContainerFullError, PoolClosedError, WaitInterrupted

T = TypeVar("T")


class CancellationToken:
    """Cancels blocking container waits from another thread.

    A token may be shared by several waits; once cancelled it stays cancelled.
    """

    def __init__(self) -> None:
        self._cancelled = threading.Event()
        self._lock = threading.Lock()
        self._conditions: Set[threading.Condition] = set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        """Set the token and wake every wait currently using it."""
        self._cancelled.set()
        with self._lock:
            conditions = list(self._conditions)
        for cond in conditions:
            with cond:
                cond.notify_all()

    def _register(self, cond: threading.Condition) -> None:
        with self._lock:
            self._conditions.add(cond)

    def _unregister(self, cond: threading.Condition) -> None:
        with self._lock:
            self._conditions.discard(cond)


class HandleContainer(Generic[T]):
    """Bounded FIFO guarded by a single condition variable."""

    def __init__(self, capacity: int):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._capacity = capacity
        self._items: Deque[T] = deque()
        self._not_empty = threading.Condition(threading.Lock())
        self._closed = False

    @property
    def capacity(self) -> int:
        return self._capacity

    def size(self) -> int:
        with self._not_empty:
            return len(self._items)

    def remaining_capacity(self) -> int:
        with self._not_empty:
            return self._capacity - len(self._items)

    def offer(self, item: T) -> None:
        """Enqueue without blocking.

        Raises:
            ContainerFullError: if the container already holds ``capacity`` items.
        """
        with self._not_empty:
            if len(self._items) >= self._capacity:
                raise ContainerFullError(
                    f"Container is full ({self._capacity}/{self._capacity})"
                )
            self._items.append(item)
            self._not_empty.notify()

    def poll(self) -> Optional[T]:
        """Dequeue without blocking; None when empty."""
        with self._not_empty:
            if not self._items:
                return None
            return self._items.popleft()

    def take(
        self,
        timeout: Optional[float] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> Optional[T]:
        """Dequeue, waiting until an item arrives.

        Args:
            timeout: seconds to wait; None waits indefinitely.
            cancel: token that aborts the wait when cancelled.

        Returns:
            The item, or None if ``timeout`` elapsed first.

        Raises:
            WaitInterrupted: if ``cancel`` is (or becomes) cancelled while waiting.
            PoolClosedError: if the container is (or becomes) closed while waiting.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        if cancel is not None:
            cancel._register(self._not_empty)
        try:
            with self._not_empty:
                while True:
                    if self._closed:
                        raise PoolClosedError("Pool was closed while waiting for a connection")
                    if cancel is not None and cancel.cancelled:
                        if self._items:
                            # Pass on a wakeup this waiter may have consumed
                            self._not_empty.notify()
                        raise WaitInterrupted("Wait for a pooled connection was interrupted")
                    if self._items:
                        return self._items.popleft()
                    if deadline is None:
                        self._not_empty.wait()
                        continue
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        return None
                    self._not_empty.wait(remaining)
        finally:
            if cancel is not None:
                cancel._unregister(self._not_empty)

    def remove(self, item: T) -> bool:
        """Remove ``item`` if queued; return whether it was found."""
        with self._not_empty:
            try:
                self._items.remove(item)
            except ValueError:
                return False
            return True

    def drain(self) -> List[T]:
        """Remove and return every queued item."""
        with self._not_empty:
            items = list(self._items)
            self._items.clear()
            return items

    def close(self) -> None:
        """Fail every current and future blocking take with ``PoolClosedError``."""
        with self._not_empty:
            self._closed = True
            self._not_empty.notify_all()
