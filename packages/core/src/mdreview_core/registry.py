"""Document registry — which document is loaded, and its stored metadata."""

from __future__ import annotations

import logging
import random
import re
import string
from datetime import datetime

from mdreview_core.models import DocumentRecord, ensure_utc, utc_now
from mdreview_core.persistence import PersistenceAdapter

logger = logging.getLogger(__name__)

_LINE_BREAK = re.compile(r"\r?\n")
_ID_ALPHABET = string.ascii_lowercase + string.digits


def split_lines(raw_text: str) -> tuple[str, ...]:
    """Split on \\n or \\r\\n, keeping empty lines, including a trailing one."""
    return tuple(_LINE_BREAK.split(raw_text))


def generate_document_id(name: str, now: datetime) -> str:
    """Build `<name>-<epoch-ms>-<7 random base36 chars>`; loading the same file twice gives two ids."""
    millis = int(now.timestamp() * 1000)
    suffix = "".join(random.choices(_ID_ALPHABET, k=7))
    return f"{name}-{millis}-{suffix}"


class FileRegistry:
    """Creates DocumentRecords and keeps them in the durable store.

    Storage goes through the same PersistenceAdapter as the comments, so
    documents and comments share one record and one failure model.
    """

    def __init__(self, adapter: PersistenceAdapter):
        self._adapter = adapter

    def create(self, name: str, raw_text: str, now: datetime | None = None) -> DocumentRecord:
        loaded_at = ensure_utc(now) if now is not None else utc_now()
        return DocumentRecord(
            id=generate_document_id(name, loaded_at),
            name=name,
            raw_text=raw_text,
            lines=split_lines(raw_text),
            loaded_at=loaded_at,
        )

    def save(self, document: DocumentRecord) -> None:
        """Persist document and make it the current one.

        Raises StoreUnavailableError / QuotaExceededError from the store.
        """
        self._adapter.write_document(document)
        logger.debug("Registered document %s as current", document.id)

    def find(self, document_id: str) -> DocumentRecord | None:
        return self._adapter.read_document(document_id)

    def current_id(self) -> str | None:
        return self._adapter.current_document_id()

    def document_ids(self) -> list[str]:
        return self._adapter.document_ids()
