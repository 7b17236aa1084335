"""Storage failure taxonomy.

Backends translate their native failures (OSError, sqlite3.Error, ...) into
these classes so callers can tell "the store is gone" from "the store is full"
without knowing which backend is configured.
"""

from __future__ import annotations


class StoreError(Exception):
    """Base class for every durable-store failure."""


class StoreUnavailableError(StoreError):
    """The backing store cannot be reached, opened or written."""


class QuotaExceededError(StoreError):
    """The backing store refused a write because it is full."""


class CorruptedValueError(StoreError):
    """A stored value exists but cannot be decoded as text."""
