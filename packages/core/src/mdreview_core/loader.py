"""Read a Markdown file from disk into raw text for ReviewSession.load_document()."""

from __future__ import annotations

import logging
from pathlib import Path

from mdreview_core.errors import UnsupportedFileError

logger = logging.getLogger(__name__)

DEFAULT_EXTENSIONS = (".md", ".markdown")
MAX_FILE_SIZE = 10 * 1024 * 1024


def is_supported_file(path: str | Path, extensions=DEFAULT_EXTENSIONS) -> bool:
    """Return True if the file name ends with one of the accepted extensions (case-insensitive)."""
    name = Path(path).name.lower()
    return any(name.endswith(ext.lower()) for ext in extensions)


def read_document_file(
    path: str | Path,
    extensions=DEFAULT_EXTENSIONS,
    max_file_size: int | None = MAX_FILE_SIZE,
) -> tuple[str, str]:
    """Return (file name, text) for a Markdown file.

    Large files are loaded anyway; only a warning is logged.
    Raises UnsupportedFileError for other file types and FileNotFoundError
    if the path does not exist.
    """
    p = Path(path)
    if not is_supported_file(p, extensions):
        accepted = " and ".join(extensions)
        raise UnsupportedFileError(f"Invalid file type. Only {accepted} files are supported.")
    if not p.is_file():
        raise FileNotFoundError(f"File not found: {path}")

    size = p.stat().st_size
    if max_file_size is not None and size > max_file_size:
        logger.warning(
            "%s is %.1f MB, larger than %.1f MB. Performance may be affected.",
            p.name,
            size / (1024 * 1024),
            max_file_size / (1024 * 1024),
        )

    # newline="" keeps \r\n intact so line splitting sees the original breaks.
    with open(p, encoding="utf-8", errors="replace", newline="") as f:
        return p.name, f.read()
