"""
Fixed-Capacity Connection Pool

This module provides ``ConnectionPool``: a bounded set of ``PooledHandle``
objects created up front by a ``ConnectionFactory`` and handed out through
non-blocking, blocking and timed acquisition.
"""

import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Generator, Mapping, Optional, Union

from fixedpool.database.container import CancellationToken, HandleContainer
from fixedpool.database.exceptions import (
    FactoryError,
    InitializationError,
    PoolClosedError,
    PoolExhaustedError,
    PoolNotInitializedError,
    WaitInterrupted,
)
from fixedpool.database.factory import ConnectionFactory, Endpoint
from fixedpool.database.handle import PooledHandle
from fixedpool.utils.logger import get_logger

logger = get_logger(__name__, utility="pool")


@dataclass(frozen=True)
class PoolStats:
    """Point-in-time snapshot of pool accounting."""
    capacity: int
    available: int
    checked_out: int
    destroyed: int
    refreshed: int
    initialized: bool
    closed: bool


class ConnectionPool:
    """Thread-safe fixed-capacity pool of connection handles.

    Usage:
        pool = ConnectionPool(PsycopgConnectionFactory())
        pool.init(4, "postgresql://app@localhost/app")
        handle = pool.get_connection_wait(timeout_millis=500)
        if handle is not None:
            with handle as conn:
                ...
    """

    def __init__(self, factory: ConnectionFactory):
        self._factory = factory
        self._container: Optional[HandleContainer[PooledHandle]] = None
        self._endpoint: Optional[Endpoint] = None
        self._capacity = 0
        self._initialized = False
        self._closed = False
        # Reentrant so init routines can call each other without deadlocking
        self._lifecycle_lock = threading.RLock()
        self._counter_lock = threading.Lock()
        self._destroyed = 0
        self._refreshed = 0

    @property
    def factory(self) -> ConnectionFactory:
        return self._factory

    @property
    def container(self) -> Optional[HandleContainer[PooledHandle]]:
        return self._container

    @property
    def endpoint(self) -> Optional[Endpoint]:
        return self._endpoint

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def closed(self) -> bool:
        return self._closed

    def is_initialized(self) -> bool:
        return self._initialized

    def init(
        self,
        size: int,
        endpoint: Union[Endpoint, str],
        parameters: Optional[Mapping[str, Any]] = None,
    ) -> None:
        """Create ``size`` connections and fill the pool.

        Calling init on an already initialized pool logs a warning and does
        nothing. If any connection cannot be created, the ones already
        created are closed and the pool stays uninitialized.

        Args:
            size: number of connections; fixed for the pool's lifetime.
            endpoint: an ``Endpoint`` or a connection string.
            parameters: optional driver parameters when ``endpoint`` is a string.

        Raises:
            ValueError: if ``size`` is not a positive integer.
            InitializationError: if the factory fails for any connection.
            PoolClosedError: if the pool was closed.
        """
        with self._lifecycle_lock:
            if self._closed:
                raise PoolClosedError("Cannot initialize a closed connection pool")
            if self._initialized:
                logger.warning("Tried to initialize the connection pool more than once")
                return
            if isinstance(size, bool) or not isinstance(size, int) or size <= 0:
                raise ValueError(f"Pool size must be a positive integer, got {size!r}")
            if isinstance(endpoint, Endpoint):
                if parameters is not None:
                    raise ValueError("Pass parameters inside the Endpoint, not alongside it")
            else:
                endpoint = Endpoint(endpoint, parameters)

            self._endpoint = endpoint
            connections = []
            try:
                for _ in range(size):
                    connections.append(self.create_connection())
            except FactoryError as exc:
                self._close_quietly(connections)
                self._endpoint = None
                raise InitializationError(
                    f"Failed to create connection {len(connections) + 1} of {size} "
                    f"for {endpoint.describe()}: {exc.message}",
                    created=len(connections),
                    requested=size,
                    original=exc,
                ) from exc

            container: HandleContainer[PooledHandle] = HandleContainer(size)
            self._container = container
            self._capacity = size
            for conn in connections:
                container.offer(PooledHandle(conn, self))
            self._initialized = True
            logger.info(f"Initialized connection pool with {size} connections to {endpoint.describe()}")

    def create_connection(self) -> Any:
        """Ask the factory for one live connection to the pool's endpoint.

        Raises:
            FactoryError: if the factory fails or returns nothing.
        """
        endpoint = self._endpoint
        if endpoint is None:
            raise PoolNotInitializedError("Connection pool has no endpoint; call init() first")
        try:
            conn = self._factory.create(endpoint)
        except FactoryError:
            raise
        except Exception as exc:
            raise FactoryError(
                f"Connection factory failed for {endpoint.describe()}: {exc}", original=exc
            ) from exc
        if conn is None:
            raise FactoryError(f"Connection factory returned no connection for {endpoint.describe()}")
        return conn

    def get_connection(self) -> Optional[PooledHandle]:
        """Return an idle handle, or None immediately when none is available."""
        container = self._require_open()
        while True:
            handle = container.poll()
            if handle is None:
                return None
            if handle._checkout():
                return handle

    def get_connection_wait(
        self,
        timeout_millis: Optional[int] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> Optional[PooledHandle]:
        """Return an idle handle, blocking until one is released.

        Args:
            timeout_millis: upper bound on the wait; None blocks indefinitely.
            cancel: token whose cancellation aborts the wait.

        Returns:
            A handle, or None if ``timeout_millis`` elapsed first. Never None
            when waiting indefinitely.

        Raises:
            WaitInterrupted: if ``cancel`` fired while waiting.
        """
        if timeout_millis is not None and timeout_millis < 0:
            raise ValueError(f"timeout_millis must be non-negative, got {timeout_millis}")
        container = self._require_open()
        deadline = None if timeout_millis is None else time.monotonic() + timeout_millis / 1000.0
        try:
            while True:
                remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
                handle = container.take(remaining, cancel)
                if handle is None:
                    return None
                if handle._checkout():
                    return handle
        except WaitInterrupted:
            logger.warning("Interrupted while waiting for the connection queue")
            raise

    @contextmanager
    def connection(
        self,
        timeout_millis: Optional[int] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> Generator[Any, None, None]:
        """Yield a live connection and return its handle to the pool on exit.

        Uncommitted work is rolled back through the factory's ``reset`` before
        the handle goes back.

        Raises:
            PoolExhaustedError: if no handle became available within ``timeout_millis``.
        """
        handle = self.get_connection_wait(timeout_millis, cancel)
        if handle is None:
            raise PoolExhaustedError(f"No pooled connection available within {timeout_millis} ms")
        conn = None
        try:
            conn = handle.acquire()
            yield conn
        finally:
            if conn is not None:
                self._reset_quietly(conn)
            handle.release()

    def stats(self) -> PoolStats:
        available = self._container.size() if self._container is not None else 0
        with self._counter_lock:
            destroyed = self._destroyed
            refreshed = self._refreshed
        return PoolStats(
            capacity=self._capacity,
            available=available,
            checked_out=max(0, self._capacity - available - destroyed),
            destroyed=destroyed,
            refreshed=refreshed,
            initialized=self._initialized,
            closed=self._closed,
        )

    def close(self) -> None:
        """Destroy idle handles and refuse further acquisition.

        Handles still checked out are destroyed when they are released.
        """
        with self._lifecycle_lock:
            if self._closed:
                return
            self._closed = True
            container = self._container
            if container is None:
                return
            container.close()
            idle = container.drain()
        for handle in idle:
            handle.destroy()
        logger.info(f"Connection pool closed ({len(idle)} idle connections destroyed)")

    def __enter__(self) -> "ConnectionPool":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.close()
        return False

    def __repr__(self) -> str:
        if self._closed:
            state = "closed"
        elif self._initialized:
            state = "open"
        else:
            state = "uninitialized"
        available = self._container.size() if self._container is not None else 0
        return f"ConnectionPool(capacity={self._capacity}, available={available}, state={state})"

    def _require_open(self) -> HandleContainer[PooledHandle]:
        if self._closed:
            raise PoolClosedError("Connection pool is closed")
        if not self._initialized or self._container is None:
            raise PoolNotInitializedError("Connection pool is not initialized; call init() first")
        return self._container

    def _record_destroy(self) -> None:
        with self._counter_lock:
            self._destroyed += 1

    def _record_refresh(self) -> None:
        with self._counter_lock:
            self._refreshed += 1

    def _reset_quietly(self, conn: Any) -> None:
        try:
            self._factory.reset(conn)
        except Exception as exc:
            # A broken connection is caught by the validity check on release
            logger.debug(f"Ignoring reset failure before re-pooling: {exc}")

    def _close_quietly(self, connections) -> None:
        for conn in connections:
            try:
                self._factory.close(conn)
            except Exception as exc:
                logger.debug(f"Ignoring close failure during init rollback: {exc}")
