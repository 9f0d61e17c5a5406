"""Canonical DB test fakes: ConnectionFake and FactoryFake.

- ConnectionFake: a connection-like object with a ``closed`` flag that tests
    can flip to simulate a connection dying underneath the pool.
- FactoryFake: a ConnectionFactory that records every connection it creates
    and can be switched into a failing mode.
"""

import itertools
import threading
from typing import List, Optional

from fixedpool.database.exceptions import FactoryError
from fixedpool.database.factory import ConnectionFactory, Endpoint

_conn_ids = itertools.count(1)


class ConnectionFake:
    """Connection-like fake; ``close()`` can be told to fail."""

    def __init__(self, endpoint: Optional[Endpoint] = None):
        self.conn_id = next(_conn_ids)
        self.endpoint = endpoint
        self.closed = False
        self.close_calls = 0
        self.fail_on_close = False

    def close(self):
        self.close_calls += 1
        if self.fail_on_close:
            raise RuntimeError("close failed")
        self.closed = True

    def invalidate(self):
        """Simulate the server dropping the connection."""
        self.closed = True

    def __repr__(self):
        return f"ConnectionFake(id={self.conn_id}, closed={self.closed})"


class FactoryFake(ConnectionFactory):
    """Factory fake.

    Args:
        fail_after: number of successful creates before every create fails.
    """

    def __init__(self, fail_after: Optional[int] = None):
        self.created: List[ConnectionFake] = []
        self.calls = 0
        self.fail_after = fail_after
        self.failing = False
        self._lock = threading.Lock()

    def create(self, endpoint: Endpoint) -> ConnectionFake:
        with self._lock:
            self.calls += 1
            if self.failing or (
                self.fail_after is not None and len(self.created) >= self.fail_after
            ):
                raise FactoryError(f"fake factory refused connection #{self.calls}")
            conn = ConnectionFake(endpoint)
            self.created.append(conn)
            return conn
