"""No-op store — the backend used when persistence is switched off.

Reads always come back empty and writes are refused with
StoreUnavailableError, so the session keeps working in memory and reports
each lost write as a warning. Using a NoOpStore rather than None lets the
persistence layer always call the store without conditional checks.
"""

from __future__ import annotations

from mdreview_store.base import BaseStore
from mdreview_store.errors import StoreUnavailableError


class NoOpStore(BaseStore):
    """Holds nothing and reports itself as unavailable.

    Configure with `store: none` in .mdreview.yml.
    """

    def get(self, key: str) -> str | None:
        return None

    def set(self, key: str, value: str) -> None:
        raise StoreUnavailableError("No durable store is configured; changes are kept in memory only.")

    def remove(self, key: str) -> None:
        pass  # intentional no-op

    def is_available(self) -> bool:
        return False
