"""
fixedpool

A fixed-capacity pool of reusable database connection handles.
"""

from fixedpool.database import (
    CallableConnectionFactory,
    CancellationToken,
    ConnectionFactory,
    ConnectionInvalid,
    ConnectionPool,
    Endpoint,
    InitializationError,
    PoolConfig,
    PoolError,
    PoolExhaustedError,
    PooledHandle,
    PsycopgConnectionFactory,
    WaitInterrupted,
)

__version__ = "0.1.0"

__all__ = [
    "CallableConnectionFactory",
    "CancellationToken",
    "ConnectionFactory",
    "ConnectionInvalid",
    "ConnectionPool",
    "Endpoint",
    "InitializationError",
    "PoolConfig",
    "PoolError",
    "PoolExhaustedError",
    "PooledHandle",
    "PsycopgConnectionFactory",
    "WaitInterrupted",
]
