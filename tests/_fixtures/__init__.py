"""Fixtures package for tests.

Re-export the canonical fakes so tests can import them from
`tests._fixtures` directly.
"""

from .db import ConnectionFake, FactoryFake

__all__ = [
    "ConnectionFake",
    "FactoryFake",
]
