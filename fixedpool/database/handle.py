"""
Pooled Handle

A ``PooledHandle`` wraps one live connection owned by a ``ConnectionPool``.
Membership is tracked as a single state guarded by a per-handle lock:

    IN_CONTAINER --(pool dequeue)--> CHECKED_OUT --(release)--> IN_CONTAINER
    any state --(destroy)--> DESTROYED

``in_use`` is separate bookkeeping set by ``acquire()`` and cleared by
``release()``. A handle that was dequeued but never acquired can still be
released.
"""

import itertools
import threading
from enum import Enum
from typing import TYPE_CHECKING, Any

from fixedpool.database.exceptions import (
    ConnectionInvalid,
    ContainerFullError,
    FactoryError,
    HandleDestroyedError,
    PoolStateError,
    ReleaseFailure,
)
from fixedpool.utils.logger import get_logger

if TYPE_CHECKING:
    from fixedpool.database.pool import ConnectionPool

logger = get_logger(__name__, utility="pool")

_handle_ids = itertools.count(1)


class HandleState(Enum):
    """Where a handle currently lives."""

    IN_CONTAINER = "in_container"
    CHECKED_OUT = "checked_out"
    DESTROYED = "destroyed"


class PooledHandle:
    """One pooled connection. Use as ``with handle as conn:`` to guarantee release."""

    def __init__(self, connection: Any, pool: "ConnectionPool"):
        if connection is None:
            raise FactoryError("Tried to add a null connection to the pool")
        self._connection = connection
        self._pool = pool
        self._state = HandleState.IN_CONTAINER
        self._in_use = False
        self._lock = threading.RLock()
        self.handle_id = next(_handle_ids)

    @property
    def state(self) -> HandleState:
        return self._state

    @property
    def in_use(self) -> bool:
        return self._in_use

    @property
    def destroyed(self) -> bool:
        return self._state is HandleState.DESTROYED

    def __repr__(self) -> str:
        return f"PooledHandle(id={self.handle_id}, state={self._state.value}, in_use={self._in_use})"

    def __enter__(self) -> Any:
        try:
            return self.acquire()
        except ConnectionInvalid:
            self.release()
            raise

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.release()
        return False

    def acquire(self) -> Any:
        """Mark the handle in use and return a live connection.

        A closed connection is replaced through the factory before returning.

        Raises:
            HandleDestroyedError: if the handle was destroyed.
            PoolStateError: if the handle is back in the pool's container.
            ConnectionInvalid: if the connection is dead and cannot be replaced.
        """
        with self._lock:
            if self._state is HandleState.DESTROYED:
                raise HandleDestroyedError(f"Handle {self.handle_id} was destroyed")
            if self._state is HandleState.IN_CONTAINER:
                raise PoolStateError(
                    f"Handle {self.handle_id} is idle in the pool; obtain it from the pool first"
                )
            if self._in_use:
                logger.warning(f"Pooled connection {self.handle_id} is being accessed while already in use")
            self._in_use = True

            if not self._connection_is_valid():
                logger.warning(f"Pooled connection {self.handle_id} was closed or invalid; refreshing")
                try:
                    self._refresh_locked()
                except FactoryError as exc:
                    raise ConnectionInvalid(
                        f"Pooled connection {self.handle_id} is invalid and could not be refreshed",
                        handle_id=self.handle_id,
                        original=exc,
                    ) from exc
            return self._connection

    def release(self) -> None:
        """Return the handle to its pool. Never raises.

        Destroyed handles are not re-enqueued. A dead connection is refreshed
        first; if that fails the handle goes back with its dead connection
        and ``acquire()`` retries the refresh later. Only ``destroy()`` and a
        closed pool take a handle out of circulation.
        """
        with self._lock:
            if self._state is HandleState.IN_CONTAINER:
                logger.warning(f"release() called on pooled connection {self.handle_id} that is already released")
                return
            if not self._in_use:
                logger.warning(f"release() called on pooled connection {self.handle_id} that was never acquired")
            self._in_use = False

            if self._state is HandleState.DESTROYED:
                return

            if self._pool.closed:
                logger.debug(f"Pool closed; destroying released connection {self.handle_id}")
                self._destroy_locked()
                return

            if not self._connection_is_valid():
                logger.warning(f"Pooled connection {self.handle_id} was closed; refreshing before re-pooling")
                try:
                    self._refresh_locked()
                except FactoryError as exc:
                    # Re-pooled broken; the next acquire() retries the refresh
                    failure = ReleaseFailure(
                        f"Could not refresh connection {self.handle_id} on release",
                        handle_id=self.handle_id,
                        original=exc,
                    )
                    logger.error(f"{failure.message}; re-pooling it for retry on next acquire: {exc}")

            self._state = HandleState.IN_CONTAINER
            try:
                self._pool.container.offer(self)
            except ContainerFullError as exc:
                failure = ReleaseFailure(
                    f"No space in the pool to re-add connection {self.handle_id}",
                    handle_id=self.handle_id,
                    original=exc,
                )
                logger.critical(f"{failure.message}; capacity accounting is broken: {exc}")
                self._state = HandleState.CHECKED_OUT
                self._destroy_locked()
                return

            # close() may have drained the container between the check above and the offer
            if self._pool.closed:
                self._destroy_locked()

    def mark_in_use(self, in_use: bool) -> None:
        """Set the in-use flag directly, e.g. before handing the connection to another owner.

        This is bookkeeping only; it does not move the handle in or out of the pool.
        """
        with self._lock:
            self._in_use = bool(in_use)

    def refresh(self) -> Any:
        """Replace the wrapped connection with a new one from the factory.

        The stale connection is not closed; it is assumed dead already.

        Raises:
            FactoryError: if the factory cannot create a connection.
        """
        with self._lock:
            return self._refresh_locked()

    def destroy(self) -> None:
        """Close the connection and take the handle out of circulation for good."""
        with self._lock:
            self._destroy_locked()

    def _connection_is_valid(self) -> bool:
        try:
            return self._pool.factory.is_valid(self._connection)
        except Exception as exc:
            logger.warning(f"Validity check failed for pooled connection {self.handle_id}: {exc}")
            return False

    def _refresh_locked(self) -> Any:
        self._connection = self._pool.create_connection()
        self._pool._record_refresh()
        return self._connection

    def _destroy_locked(self) -> None:
        if self._state is HandleState.DESTROYED:
            return
        if self._state is HandleState.IN_CONTAINER:
            self._pool.container.remove(self)
        self._state = HandleState.DESTROYED
        self._pool._record_destroy()
        try:
            self._pool.factory.close(self._connection)
        except Exception as exc:
            # Nothing useful to do when closing a broken connection fails
            logger.debug(f"Ignoring close failure on destroyed connection {self.handle_id}: {exc}")

    def _checkout(self) -> bool:
        """Claim the handle after the pool dequeued it; False if it was destroyed meanwhile."""
        with self._lock:
            if self._state is not HandleState.IN_CONTAINER:
                return False
            self._state = HandleState.CHECKED_OUT
            return True
