"""Abstract store interface.

Every durable backend (JSON file, SQLite, in-memory) implements this
interface. mdreview_core depends on BaseStore — not on a concrete backend —
so backends are swappable without touching the persistence layer.

The interface is a plain string key-value store: the persistence layer owns
the payload format, the backend only moves bytes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class BaseStore(ABC):
    """Pluggable durable key-value store.

    Failures are reported with the classes in mdreview_store.errors:
    StoreUnavailableError when the backend cannot be used at all,
    QuotaExceededError when it is full and CorruptedValueError when a stored
    value cannot be decoded.
    """

    @abstractmethod
    def get(self, key: str) -> str | None:
        """Return the value stored under key, or None if the key is absent."""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store value under key, replacing any previous value."""

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete key. Removing a missing key is not an error."""

    def is_available(self) -> bool:
        """Return True if the backend can currently accept writes.

        Default is True; backends with a cheap probe should override this.
        """
        return True

    def close(self) -> None:
        """Release any resources held by the store (connections, file handles).

        Optional — subclasses that need cleanup should override this.
        Default is a no-op so callers can always call close() safely.
        """
