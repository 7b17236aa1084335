"""Error taxonomy for review operations.

Validation and lookup errors are raised synchronously and leave the comment
index untouched. Storage failures live in mdreview_store.errors and are
reported through MutationResult instead of being raised.
"""

from __future__ import annotations


class ReviewError(Exception):
    """Base class for errors a review operation reports to its caller."""


class EmptyTextError(ReviewError, ValueError):
    """Comment text is empty or whitespace-only."""


class OutOfRangeError(ReviewError, ValueError):
    """Line number is below 1 or beyond the current document."""


class CommentNotFoundError(ReviewError, LookupError):
    """No comment with the given id exists in the index."""


class NoDocumentLoadedError(ReviewError):
    """A comment operation was attempted before any document was loaded."""


class InvalidStateError(ReviewError):
    """An edit/delete transition was requested from the wrong state."""


class UnsupportedFileError(ReviewError, ValueError):
    """The file to load is not a Markdown document."""


class StorageWarning(UserWarning):
    """A change was applied in memory but did not reach durable storage."""


class CorruptedDataWarning(UserWarning):
    """Persisted data could not be trusted and was replaced by an empty record.

    Delivered to the caller as a value, never raised.
    """
