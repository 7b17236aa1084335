"""MemoryStore — process-local dictionary backend.

Behaves like a browser's localStorage: values live as long as the store
object, writes beyond an optional byte quota are refused, and the whole
store can be switched off to exercise the unavailable path.
"""

from __future__ import annotations

import logging

from mdreview_store.base import BaseStore
from mdreview_store.errors import QuotaExceededError, StoreUnavailableError

logger = logging.getLogger(__name__)


class MemoryStore(BaseStore):
    """Stores values in a dict.

    quota_bytes caps the UTF-8 size of all keys and values together; None
    means unlimited. Setting `available = False` makes every write fail with
    StoreUnavailableError.
    """

    def __init__(self, quota_bytes: int | None = None):
        self._data: dict[str, str] = {}
        self._quota_bytes = quota_bytes
        self.available = True

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        if not self.available:
            raise StoreUnavailableError("Memory store is disabled.")
        if self._quota_bytes is not None:
            others = sum(_size(k, v) for k, v in self._data.items() if k != key)
            needed = others + _size(key, value)
            if needed > self._quota_bytes:
                logger.debug("MemoryStore quota hit: %d > %d bytes", needed, self._quota_bytes)
                raise QuotaExceededError(f"Storage quota exceeded ({needed} > {self._quota_bytes} bytes).")
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def is_available(self) -> bool:
        return self.available


def _size(key: str, value: str) -> int:
    return len(key.encode("utf-8")) + len(value.encode("utf-8"))
