"""
Connection Factory

This module defines the endpoint descriptor handed to the pool at init time
and the factories that turn it into live connections. The pool treats a
connection as an opaque object; factories own creating, validating and
closing it.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional

import psycopg

from fixedpool.database.exceptions import FactoryError
from fixedpool.utils.logger import get_logger

logger = get_logger(__name__, utility="pool")

_SECRET_PAIR_RE = re.compile(r"(?i)\b(password|passwd|secret|token)=([^\s&;]+)")
_URL_PASSWORD_RE = re.compile(r"(://[^:/@\s]+):([^@\s]+)@")
_SECRET_KEYS = {"password", "passwd", "secret", "token"}


@dataclass(frozen=True)
class Endpoint:
    """Immutable endpoint descriptor: a connection string plus optional parameters.

    ``parameters=None`` means the driver is called with the connection string
    only; an empty mapping is passed through as-is.
    """

    url: str
    parameters: Optional[Mapping[str, Any]] = field(default=None)

    def __post_init__(self) -> None:
        if not isinstance(self.url, str) or not self.url.strip():
            raise ValueError("Endpoint url must be a non-empty string")
        if self.parameters is not None:
            # Copy so later mutation of the caller's dict cannot leak in
            object.__setattr__(self, "parameters", MappingProxyType(dict(self.parameters)))

    def describe(self) -> str:
        """Return a log-safe description with credentials masked."""
        url = _URL_PASSWORD_RE.sub(r"\1:***@", self.url)
        url = _SECRET_PAIR_RE.sub(lambda m: f"{m.group(1)}=***", url)
        if self.parameters is None:
            return url
        keys = ", ".join(
            f"{k}=***" if k.lower() in _SECRET_KEYS else f"{k}={v!r}"
            for k, v in sorted(self.parameters.items())
        )
        return f"{url} [{keys}]"


class ConnectionFactory(ABC):
    """Creates, validates and closes connections for a pool."""

    @abstractmethod
    def create(self, endpoint: Endpoint) -> Any:
        """Open one live connection to ``endpoint``.

        Raises:
            FactoryError: if the driver fails or returns no connection.
        """

    def is_valid(self, connection: Any) -> bool:
        """Return False when the connection is known to be closed."""
        if connection is None:
            return False
        if getattr(connection, "closed", False):
            return False
        is_closed = getattr(connection, "is_closed", None)
        if callable(is_closed) and is_closed():
            return False
        return True

    def reset(self, connection: Any) -> None:
        """Roll back any open transaction before the connection is re-pooled."""
        if getattr(connection, "autocommit", False):
            return
        rollback = getattr(connection, "rollback", None)
        if callable(rollback):
            rollback()

    def close(self, connection: Any) -> None:
        close = getattr(connection, "close", None)
        if callable(close):
            close()


class CallableConnectionFactory(ConnectionFactory):
    """Adapts a DB-API style ``connect`` callable.

    ``connect_fn(url)`` is used when the endpoint has no parameters,
    ``connect_fn(url, **parameters)`` otherwise.
    """

    def __init__(self, connect_fn: Callable[..., Any]):
        if not callable(connect_fn):
            raise TypeError("connect_fn must be callable")
        self._connect_fn = connect_fn

    def create(self, endpoint: Endpoint) -> Any:
        try:
            if endpoint.parameters is None:
                conn = self._connect_fn(endpoint.url)
            else:
                conn = self._connect_fn(endpoint.url, **endpoint.parameters)
        except Exception as exc:
            raise FactoryError(
                f"Failed to connect to {endpoint.describe()}: {exc}", original=exc
            ) from exc
        if conn is None:
            raise FactoryError(f"Factory returned no connection for {endpoint.describe()}")
        return conn


class PsycopgConnectionFactory(ConnectionFactory):
    """PostgreSQL connections through psycopg 3.

    Args:
        autocommit: passed to ``psycopg.connect``.
        probe: when True, ``is_valid`` also runs ``SELECT 1`` on the connection.
    """

    def __init__(self, autocommit: bool = False, probe: bool = False):
        self._autocommit = autocommit
        self._probe = probe

    def create(self, endpoint: Endpoint) -> psycopg.Connection:
        params = dict(endpoint.parameters or {})
        try:
            conn = psycopg.connect(endpoint.url, autocommit=self._autocommit, **params)
        except psycopg.Error as exc:
            raise FactoryError(
                f"Failed to connect to {endpoint.describe()}: {exc}", original=exc
            ) from exc
        if conn is None:
            raise FactoryError(f"psycopg returned no connection for {endpoint.describe()}")
        return conn

    def is_valid(self, connection: Any) -> bool:
        if connection is None or getattr(connection, "closed", True):
            return False
        if getattr(connection, "broken", False):
            return False
        if not self._probe:
            return True
        try:
            with connection.cursor() as cur:
                cur.execute("SELECT 1")
                result = cur.fetchone()
            # Ensure the probe's implicit transaction is not leaked to the next borrower
            if not connection.autocommit:
                connection.rollback()
            return result is not None and result[0] == 1
        except psycopg.Error as exc:
            logger.warning(f"Connection validation failed: {exc}")
            return False
