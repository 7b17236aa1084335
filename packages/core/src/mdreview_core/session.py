"""Review session orchestration.

A ReviewSession owns the loaded document and its live comment index. Every
mutation runs the same pipeline:

    validate → pure index transform → write-through → install new index

The new index is installed even when the write fails: a storage failure
costs durability, not the correctness of the running session. The caller
learns about it through MutationResult.error and the session's warnings.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from mdreview_core import index as ci
from mdreview_core.errors import (
    CommentNotFoundError,
    InvalidStateError,
    NoDocumentLoadedError,
    StorageWarning,
)
from mdreview_core.index import EMPTY, CommentIndex
from mdreview_core.models import CommentRecord, DocumentRecord, utc_now
from mdreview_core.persistence import STORE_KEY, PersistenceAdapter
from mdreview_core.registry import FileRegistry
from mdreview_core.validation import validate_line_number
from mdreview_store.base import BaseStore
from mdreview_store.errors import StoreError

logger = logging.getLogger(__name__)


class CommentState(str, Enum):
    VIEWING = "viewing"
    EDITING = "editing"
    CONFIRM_PENDING = "confirm_pending"


@dataclass
class MutationResult:
    """Outcome of a mutating session call.

    `index` is the session's index after the call. `error` is set when the
    change could not be written to durable storage.
    """

    index: CommentIndex
    comment: CommentRecord | None = None
    error: StoreError | None = None

    @property
    def persisted(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class ReviewSnapshot:
    """Export-ready view of one document and its comments (oldest first)."""

    document: DocumentRecord
    comments: list[CommentRecord] = field(default_factory=list)

    @property
    def lines(self) -> tuple[str, ...]:
        return self.document.lines

    def by_line(self) -> list[tuple[int, list[CommentRecord]]]:
        """Comments grouped by line number, lines ascending."""
        grouped: dict[int, list[CommentRecord]] = {}
        for comment in self.comments:
            grouped.setdefault(comment.line_number, []).append(comment)
        return sorted(grouped.items())


class ReviewSession:
    """Explicit, caller-owned review state.

    A fresh session has no document and an empty index. Storage and
    corrupted-data warnings accumulate until drain_warnings() is called.
    """

    def __init__(
        self,
        adapter: PersistenceAdapter,
        registry: FileRegistry | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._adapter = adapter
        self._registry = registry or FileRegistry(adapter)
        self._clock = clock
        self._warnings: list[Warning] = []
        adapter.on_warning = self._warnings.append

        self._document: DocumentRecord | None = None
        self._index: CommentIndex = EMPTY
        self._reset_view_state()

        if not adapter.is_available():
            logger.warning("Durable storage is not available; comments will not be saved.")
            self._warnings.append(StorageWarning("Storage unavailable. Comments will not be saved."))

    @classmethod
    def from_store(cls, store: BaseStore, key: str = STORE_KEY, clock: Callable[[], datetime] = utc_now):
        return cls(PersistenceAdapter(store, key=key), clock=clock)

    def _reset_view_state(self) -> None:
        self._active_line: int | None = None
        self._editing_id: str | None = None
        self._pending_delete_id: str | None = None

    # ------------------------------------------------------------------ #
    # State accessors                                                      #
    # ------------------------------------------------------------------ #

    @property
    def document(self) -> DocumentRecord | None:
        return self._document

    @property
    def index(self) -> CommentIndex:
        return self._index

    @property
    def active_line(self) -> int | None:
        return self._active_line

    @property
    def warnings(self) -> list[Warning]:
        return list(self._warnings)

    def drain_warnings(self) -> list[Warning]:
        drained = list(self._warnings)
        self._warnings.clear()
        return drained

    def comments_for_line(self, line_number: int) -> list[CommentRecord]:
        return ci.for_line(self._index, line_number)

    def all_comments(self) -> list[CommentRecord]:
        return ci.flatten(self._index)

    def comment_count(self) -> int:
        return ci.count(self._index)

    def snapshot(self) -> ReviewSnapshot:
        return ReviewSnapshot(document=self._require_document(), comments=ci.flatten(self._index))

    # ------------------------------------------------------------------ #
    # Documents                                                            #
    # ------------------------------------------------------------------ #

    def load_document(self, name: str, raw_text: str) -> DocumentRecord:
        """Install a newly loaded document and its stored comments.

        Discards the active line and any pending edit/delete. Other
        documents' stored comments are not touched.
        """
        document = self._registry.create(name, raw_text, now=self._clock())
        self._reset_view_state()
        try:
            self._registry.save(document)
        except StoreError as e:
            self._storage_failed("File loaded but could not be saved to storage. Comments may not persist.", e)

        self._document = document
        self._index = self._adapter.read(document.id)
        logger.info("Loaded %s (%d lines, %d stored comment(s))", name, document.line_count, self.comment_count())
        return document

    def resume(self, document_id: str | None = None) -> DocumentRecord | None:
        """Reinstall a stored document with its comments.

        Defaults to the document that was current when the store was last
        written. Returns None if there is nothing to resume.
        """
        current_id = self._registry.current_id()
        document_id = document_id or current_id
        if document_id is None:
            return None
        document = self._registry.find(document_id)
        if document is None:
            logger.debug("No stored document %s to resume", document_id)
            return None

        self._reset_view_state()
        if document_id != current_id:
            try:
                self._registry.save(document)
            except StoreError as e:
                self._storage_failed("Could not record the current document in storage.", e)
        self._document = document
        self._index = self._adapter.read(document.id)
        return document

    # ------------------------------------------------------------------ #
    # Comment mutations                                                    #
    # ------------------------------------------------------------------ #

    def add_comment(self, line_number: int, text: str) -> MutationResult:
        document = self._require_document()
        validate_line_number(line_number, document.line_count)
        comment = ci.create(line_number, text, now=self._clock())
        result = self._commit(
            ci.insert(self._index, comment), comment, "Comment added but could not be saved to storage."
        )
        self._active_line = None
        return result

    def update_comment(self, comment_id: str, text: str) -> MutationResult:
        self._require_document()
        new_index = ci.replace(self._index, comment_id, text, now=self._clock())
        result = self._commit(
            new_index, ci.find(new_index, comment_id), "Comment updated but could not be saved to storage."
        )
        if self._editing_id == comment_id:
            self._editing_id = None
        return result

    def delete_comment(self, comment_id: str) -> MutationResult:
        self._require_document()
        removed = ci.find(self._index, comment_id)
        new_index = ci.remove(self._index, comment_id)
        result = self._commit(new_index, removed, "Comment deleted but could not be saved to storage.")
        if self._editing_id == comment_id:
            self._editing_id = None
        if self._pending_delete_id == comment_id:
            self._pending_delete_id = None
        return result

    def reset_all(self) -> MutationResult:
        """Wipe every stored document and comment and return to a fresh session."""
        error = None
        try:
            self._adapter.reset_all()
        except StoreError as e:
            error = e
            self._storage_failed("Stored review data could not be cleared.", e)
        self._document = None
        self._index = EMPTY
        self._reset_view_state()
        return MutationResult(index=EMPTY, error=error)

    # ------------------------------------------------------------------ #
    # Per-comment UI state                                                 #
    # ------------------------------------------------------------------ #

    def comment_state(self, comment_id: str) -> CommentState:
        if self._editing_id == comment_id:
            return CommentState.EDITING
        if self._pending_delete_id == comment_id:
            return CommentState.CONFIRM_PENDING
        return CommentState.VIEWING

    def set_active_line(self, line_number: int | None) -> None:
        if line_number is not None:
            validate_line_number(line_number, self._require_document().line_count)
        self._active_line = line_number

    def begin_edit(self, comment_id: str) -> CommentRecord:
        comment = self._require_comment(comment_id)
        if self._pending_delete_id == comment_id:
            raise InvalidStateError("Comment is awaiting delete confirmation.")
        self._editing_id = comment_id
        return comment

    def save_edit(self, text: str) -> MutationResult:
        """Apply the edit in progress. On a validation error the edit stays open."""
        if self._editing_id is None:
            raise InvalidStateError("No comment is being edited.")
        return self.update_comment(self._editing_id, text)

    def cancel_edit(self) -> None:
        if self._editing_id is None:
            raise InvalidStateError("No comment is being edited.")
        self._editing_id = None

    def request_delete(self, comment_id: str) -> CommentRecord:
        comment = self._require_comment(comment_id)
        if self._editing_id == comment_id:
            raise InvalidStateError("Comment is being edited.")
        self._pending_delete_id = comment_id
        return comment

    def confirm_delete(self) -> MutationResult:
        if self._pending_delete_id is None:
            raise InvalidStateError("No deletion is awaiting confirmation.")
        return self.delete_comment(self._pending_delete_id)

    def cancel_delete(self) -> None:
        if self._pending_delete_id is None:
            raise InvalidStateError("No deletion is awaiting confirmation.")
        self._pending_delete_id = None

    # ------------------------------------------------------------------ #
    # Internals                                                            #
    # ------------------------------------------------------------------ #

    def _require_document(self) -> DocumentRecord:
        if self._document is None:
            raise NoDocumentLoadedError("No file loaded.")
        return self._document

    def _require_comment(self, comment_id: str) -> CommentRecord:
        self._require_document()
        comment = ci.find(self._index, comment_id)
        if comment is None:
            raise CommentNotFoundError(f"Comment {comment_id!r} not found.")
        return comment

    def _commit(self, new_index: CommentIndex, comment: CommentRecord | None, failure_message: str) -> MutationResult:
        error = None
        try:
            self._adapter.write(self._document.id, new_index)
        except StoreError as e:
            error = e
            self._storage_failed(failure_message, e)
        self._index = new_index
        return MutationResult(index=new_index, comment=comment, error=error)

    def _storage_failed(self, message: str, error: StoreError) -> None:
        logger.warning("%s (%s: %s)", message, type(error).__name__, error)
        self._warnings.append(StorageWarning(f"{message} ({error})"))
