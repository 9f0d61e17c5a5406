"""
Database Package

This package provides the fixed-capacity connection pool, its handles, the
connection factories it draws from, and the supporting configuration.
"""

from fixedpool.database.config import PoolConfig
from fixedpool.database.container import CancellationToken, HandleContainer
from fixedpool.database.exceptions import (
    ConnectionInvalid,
    ContainerFullError,
    FactoryError,
    HandleDestroyedError,
    InitializationError,
    PoolClosedError,
    PoolError,
    PoolExhaustedError,
    PoolNotInitializedError,
    PoolStateError,
    ReleaseFailure,
    WaitInterrupted,
)
from fixedpool.database.factory import (
    CallableConnectionFactory,
    ConnectionFactory,
    Endpoint,
    PsycopgConnectionFactory,
)
from fixedpool.database.handle import HandleState, PooledHandle
from fixedpool.database.pool import ConnectionPool, PoolStats
from fixedpool.database.registry import (
    close_all_pools,
    close_pool,
    get_pool,
    init_pool,
    registered_pools,
)

__all__ = [
    "PoolConfig",
    "CancellationToken",
    "HandleContainer",
    "ConnectionInvalid",
    "ContainerFullError",
    "FactoryError",
    "HandleDestroyedError",
    "InitializationError",
    "PoolClosedError",
    "PoolError",
    "PoolExhaustedError",
    "PoolNotInitializedError",
    "PoolStateError",
    "ReleaseFailure",
    "WaitInterrupted",
    "CallableConnectionFactory",
    "ConnectionFactory",
    "Endpoint",
    "PsycopgConnectionFactory",
    "HandleState",
    "PooledHandle",
    "ConnectionPool",
    "PoolStats",
    "close_all_pools",
    "close_pool",
    "get_pool",
    "init_pool",
    "registered_pools",
]
