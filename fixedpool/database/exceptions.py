"""
Exception hierarchy for the connection pool.

Absence of an idle handle is not an error: ``get_connection()`` and timed
waits return ``None``. Only the scoped ``ConnectionPool.connection()`` helper
turns that into ``PoolExhaustedError``.
"""

from typing import Optional


class PoolError(Exception):
    """Base class for every pool-related error."""

    def __init__(self, message: str, original: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.original = original


class FactoryError(PoolError):
    """Raised when the connection factory cannot produce a live connection."""


class InitializationError(PoolError):
    """Raised when pool initialization fails to create every connection."""

    def __init__(
        self,
        message: str,
        created: int,
        requested: int,
        original: Optional[BaseException] = None,
    ):
        super().__init__(message, original)
        self.created = created
        self.requested = requested


class ConnectionInvalid(PoolError):
    """Raised by ``PooledHandle.acquire()`` when a dead connection cannot be refreshed."""

    def __init__(self, message: str, handle_id: int, original: Optional[BaseException] = None):
        super().__init__(message, original)
        self.handle_id = handle_id


class WaitInterrupted(PoolError):
    """Raised when a blocking acquisition is cancelled while waiting."""


class PoolExhaustedError(PoolError):
    """Raised by the scoped ``connection()`` helper when no handle became available."""


class ReleaseFailure(PoolError):
    """Describes a failed release; logged by the handle, never raised to callers."""

    def __init__(self, message: str, handle_id: int, original: Optional[BaseException] = None):
        super().__init__(message, original)
        self.handle_id = handle_id


class PoolStateError(PoolError):
    """Raised when an operation is not valid in the pool's current lifecycle state."""


class PoolNotInitializedError(PoolStateError):
    """Raised when acquiring from a pool before ``init()`` succeeded."""


class PoolClosedError(PoolStateError):
    """Raised when acquiring from a pool after ``close()``."""


class HandleDestroyedError(PoolError):
    """Raised when acquiring a handle that was destroyed."""


class ContainerFullError(PoolError):
    """Raised when offering a handle to a container already at capacity."""
