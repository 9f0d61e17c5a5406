"""
Named Pool Registry

Process-wide convenience for applications that share one pool per name.
The pool itself has no global state; this module only keeps references.
"""

import atexit
import threading
from typing import Any, Dict, List, Mapping, Optional, Union

from fixedpool.database.factory import ConnectionFactory, Endpoint
from fixedpool.database.pool import ConnectionPool
from fixedpool.utils.logger import get_logger

logger = get_logger(__name__, utility="pool")

DEFAULT_POOL = "default"

_POOLS: Dict[str, ConnectionPool] = {}
# Reentrant so close_all_pools can call close_pool while holding it
_REGISTRY_LOCK = threading.RLock()


def init_pool(
    factory: ConnectionFactory,
    size: int,
    endpoint: Union[Endpoint, str],
    parameters: Optional[Mapping[str, Any]] = None,
    name: str = DEFAULT_POOL,
) -> ConnectionPool:
    """Create, initialize and register a pool under ``name`` (idempotent).

    Returns the already registered pool on subsequent calls; a failed init
    registers nothing.
    """
    pool = _POOLS.get(name)
    if pool is not None:
        return pool
    with _REGISTRY_LOCK:
        pool = _POOLS.get(name)
        if pool is None:
            pool = ConnectionPool(factory)
            pool.init(size, endpoint, parameters)
            _POOLS[name] = pool
            logger.info(f"Registered connection pool '{name}'")
    return pool


def get_pool(name: str = DEFAULT_POOL) -> ConnectionPool:
    """Return the pool registered under ``name``.

    Raises:
        KeyError: if no pool was registered under that name.
    """
    with _REGISTRY_LOCK:
        try:
            return _POOLS[name]
        except KeyError:
            raise KeyError(f"No connection pool registered as '{name}'") from None


def registered_pools() -> List[str]:
    with _REGISTRY_LOCK:
        return sorted(_POOLS)


def close_pool(name: str = DEFAULT_POOL) -> None:
    """Close and unregister the pool under ``name`` if present."""
    with _REGISTRY_LOCK:
        pool = _POOLS.pop(name, None)
    if pool is not None:
        pool.close()


def close_all_pools() -> None:
    """Close and unregister every pool."""
    with _REGISTRY_LOCK:
        names = list(_POOLS)
        for name in names:
            close_pool(name)


# Ensure pools are closed on normal interpreter exit
atexit.register(close_all_pools)
