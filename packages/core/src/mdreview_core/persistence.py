"""Persistence adapter — the only code that reads or writes the durable record.

All documents and comments live in one JSON object stored under a single key
of the configured BaseStore:

    {
      "version": "1.0.0",
      "documents": {"<documentId>": {"id", "name", "rawText", "lines", "loadedAt"}},
      "comments":  {"<documentId>": [{"id", "lineNumber", "text", "createdAt", "updatedAt"}]},
      "currentDocumentId": "<documentId>" | null
    }

Comments are stored as a flat list per document and regrouped by line on
read, so the grouping can never drift from the records themselves.

Reads never raise on bad data: an unparsable or wrong-shaped record is
replaced by the canonical empty record and one CorruptedDataWarning is
handed to the `on_warning` callback. Writes raise the store's
StoreUnavailableError / QuotaExceededError and leave deciding what to do
about it to the caller.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from datetime import datetime, timezone

from mdreview_core.errors import CorruptedDataWarning
from mdreview_core.index import EMPTY, CommentIndex, flatten, from_records
from mdreview_core.models import CommentRecord, DocumentRecord, ensure_utc
from mdreview_store.base import BaseStore
from mdreview_store.errors import StoreError, StoreUnavailableError

logger = logging.getLogger(__name__)

STORE_KEY = "md-review-app"
STORE_VERSION = "1.0.0"


def empty_record() -> dict:
    """The canonical empty structure used whenever stored data can't be trusted."""
    return {
        "version": STORE_VERSION,
        "documents": {},
        "comments": {},
        "currentDocumentId": None,
    }


def format_timestamp(value: datetime) -> str:
    return ensure_utc(value).isoformat().replace("+00:00", "Z")


def parse_timestamp(value) -> datetime:
    """Parse an ISO-8601 string or epoch milliseconds into an aware UTC datetime."""
    if isinstance(value, bool):
        raise ValueError(f"Invalid timestamp: {value!r}")
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError) as e:
            # inf, nan and values beyond the platform time_t range
            raise ValueError(f"Timestamp out of range: {value!r}") from e
    if isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            return ensure_utc(datetime.fromisoformat(text))
        except OverflowError as e:
            # "0001-01-01T00:00:00+05:00" falls below datetime.min once moved to UTC
            raise ValueError(f"Timestamp out of range: {value!r}") from e
    raise ValueError(f"Invalid timestamp: {value!r}")


def _structure_problem(data) -> str | None:
    """Describe what is wrong with the top level of a decoded record, if anything."""
    if not isinstance(data, dict):
        return "top level is not an object"
    version = data.get("version")
    if not isinstance(version, str) or not version:
        return "missing or invalid version"
    for name in ("documents", "comments"):
        if not isinstance(data.get(name), dict):
            return f"missing or invalid {name}"
    return None


class PersistenceAdapter:
    """Reads and writes one document partition at a time.

    Holds no review state of its own — every call loads the record from the
    store, transforms it and (for writes) stores it back.
    """

    def __init__(
        self,
        store: BaseStore,
        key: str = STORE_KEY,
        on_warning: Callable[[Warning], None] | None = None,
    ):
        self._store = store
        self._key = key
        self.on_warning = on_warning

    def is_available(self) -> bool:
        return self._store.is_available()

    # ------------------------------------------------------------------ #
    # Comments                                                             #
    # ------------------------------------------------------------------ #

    def write(self, document_id: str, index: CommentIndex) -> None:
        """Replace the stored comments of document_id with the contents of index.

        Other documents' partitions are carried over untouched.
        """
        data = self._load_for_write()
        data["comments"][document_id] = [self._comment_to_dict(c) for c in flatten(index)]
        self._save(data)
        logger.debug("Wrote %d comment(s) for %s", len(data["comments"][document_id]), document_id)

    def read(self, document_id: str) -> CommentIndex:
        """Return the stored comments of document_id grouped by line.

        A document with no stored comments gets an empty index.
        """
        data = self._load()
        entries = data["comments"].get(document_id)
        if entries is None:
            return EMPTY
        if not isinstance(entries, list):
            logger.warning("Stored comments for %s are not a list; ignoring them.", document_id)
            return EMPTY

        records = []
        for entry in entries:
            try:
                records.append(self._comment_from_dict(entry))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed stored comment for %s: %s", document_id, e)
        return from_records(records)

    def reset_all(self) -> None:
        """Delete the whole durable record. Safe to call when nothing is stored."""
        self._store.remove(self._key)
        logger.info("Cleared all stored review data (key %s).", self._key)

    # ------------------------------------------------------------------ #
    # Documents                                                            #
    # ------------------------------------------------------------------ #

    def write_document(self, document: DocumentRecord) -> None:
        """Store document metadata and mark it as the current document."""
        data = self._load_for_write()
        data["documents"][document.id] = self._document_to_dict(document)
        data["currentDocumentId"] = document.id
        self._save(data)
        logger.debug("Saved document %s (%d lines)", document.id, document.line_count)

    def read_document(self, document_id: str) -> DocumentRecord | None:
        data = self._load()
        entry = data["documents"].get(document_id)
        if entry is None:
            return None
        try:
            return self._document_from_dict(entry)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Stored document %s is malformed: %s", document_id, e)
            return None

    def current_document_id(self) -> str | None:
        current = self._load().get("currentDocumentId")
        return current if isinstance(current, str) else None

    def document_ids(self) -> list[str]:
        return list(self._load()["documents"])

    # ------------------------------------------------------------------ #
    # Record I/O                                                           #
    # ------------------------------------------------------------------ #

    def _load(self) -> dict:
        """Fetch and validate the record; fall back to the empty one on any problem."""
        try:
            raw = self._store.get(self._key)
        except StoreError as e:
            return self._corrupted(f"store could not be read ({e})")
        if raw is None:
            return empty_record()

        try:
            data = json.loads(raw)
        except (ValueError, RecursionError) as e:
            return self._corrupted(f"payload is not valid JSON ({e})")

        problem = _structure_problem(data)
        if problem:
            return self._corrupted(problem)
        return data

    def _load_for_write(self) -> dict:
        if not self._store.is_available():
            raise StoreUnavailableError("Durable storage is not available.")
        return self._load()

    def _save(self, data: dict) -> None:
        data["version"] = STORE_VERSION
        self._store.set(self._key, json.dumps(data, ensure_ascii=False))

    def _corrupted(self, reason: str) -> dict:
        logger.warning("Stored review data is corrupted: %s. Starting with fresh storage.", reason)
        if self.on_warning is not None:
            self.on_warning(
                CorruptedDataWarning(f"Storage data corrupted ({reason}). Previous data may be lost.")
            )
        return empty_record()

    # ------------------------------------------------------------------ #
    # Record <-> dict                                                      #
    # ------------------------------------------------------------------ #

    @staticmethod
    def _comment_to_dict(comment: CommentRecord) -> dict:
        return {
            "id": comment.id,
            "lineNumber": comment.line_number,
            "text": comment.text,
            "createdAt": format_timestamp(comment.created_at),
            "updatedAt": format_timestamp(comment.updated_at),
        }

    @staticmethod
    def _comment_from_dict(d: dict) -> CommentRecord:
        comment_id = d["id"]
        line_number = d["lineNumber"]
        text = d["text"]
        if not isinstance(comment_id, str) or not comment_id:
            raise ValueError(f"invalid id {comment_id!r}")
        if isinstance(line_number, bool) or not isinstance(line_number, int) or line_number < 1:
            raise ValueError(f"invalid lineNumber {line_number!r}")
        if not isinstance(text, str) or not text.strip():
            raise ValueError("empty text")
        created_at = parse_timestamp(d["createdAt"])
        updated_at = parse_timestamp(d["updatedAt"])
        return CommentRecord(
            id=comment_id,
            line_number=line_number,
            text=text,
            created_at=created_at,
            updated_at=max(updated_at, created_at),
        )

    @staticmethod
    def _document_to_dict(document: DocumentRecord) -> dict:
        return {
            "id": document.id,
            "name": document.name,
            "rawText": document.raw_text,
            "lines": list(document.lines),
            "loadedAt": format_timestamp(document.loaded_at),
        }

    @staticmethod
    def _document_from_dict(d: dict) -> DocumentRecord:
        lines = d["lines"]
        if not isinstance(lines, list) or not all(isinstance(line, str) for line in lines):
            raise ValueError("lines is not a list of strings")
        for name in ("id", "name", "rawText"):
            if not isinstance(d[name], str):
                raise ValueError(f"invalid {name}")
        return DocumentRecord(
            id=d["id"],
            name=d["name"],
            raw_text=d["rawText"],
            lines=tuple(lines),
            loaded_at=parse_timestamp(d["loadedAt"]),
        )
