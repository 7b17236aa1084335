"""FileStore — one plain file per key inside a local directory.

Why a directory of files as the default store:
- Zero infra: nothing to install, works offline.
- Inspectable: the persisted record is ordinary JSON that can be opened,
  diffed or backed up with any tool.
- Atomic writes: each value is written to a temp file and moved into place
  with os.replace(), so a crash mid-write never leaves a half-written value.

Layout: `<directory>/<key>.json`, file content is the value verbatim.
"""

from __future__ import annotations

import errno
import logging
import os
import re
import tempfile
from pathlib import Path

from mdreview_store.base import BaseStore
from mdreview_store.errors import CorruptedValueError, QuotaExceededError, StoreUnavailableError

logger = logging.getLogger(__name__)

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9._-]+$")
_QUOTA_ERRNOS = {errno.ENOSPC, getattr(errno, "EDQUOT", errno.ENOSPC)}


class FileStore(BaseStore):
    """Stores each key as a file under `directory`.

    The directory defaults to `.mdreview` in the current working directory.
    Configure via .mdreview.yml: `store_path: /path/to/dir`. `quota_bytes`
    caps the size of a single value; None means unlimited.
    """

    def __init__(self, directory: str = ".mdreview", quota_bytes: int | None = None):
        self._dir = Path(directory)
        self._quota_bytes = quota_bytes

    def _path(self, key: str) -> Path:
        if not _KEY_PATTERN.fullmatch(key):
            raise ValueError(f"Invalid store key: {key!r}")
        return self._dir / f"{key}.json"

    def get(self, key: str) -> str | None:
        path = self._path(key)
        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StoreUnavailableError(f"Cannot read {path}: {e}") from e
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise CorruptedValueError(f"{path} is not valid UTF-8: {e}") from e

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        payload = value.encode("utf-8")
        if self._quota_bytes is not None and len(payload) > self._quota_bytes:
            raise QuotaExceededError(f"Storage quota exceeded ({len(payload)} > {self._quota_bytes} bytes).")

        tmp_name = None
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self._dir, prefix=f".{key}.", suffix=".tmp")
            with os.fdopen(fd, "wb") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
            tmp_name = None
        except OSError as e:
            if e.errno in _QUOTA_ERRNOS:
                raise QuotaExceededError(f"No space left to write {path}.") from e
            raise StoreUnavailableError(f"Cannot write {path}: {e}") from e
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
        logger.debug("FileStore wrote %d bytes to %s", len(payload), path)

    def remove(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StoreUnavailableError(f"Cannot remove {path}: {e}") from e

    def is_available(self) -> bool:
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.warning("FileStore directory %s is not usable: %s", self._dir, e)
            return False
        return os.access(self._dir, os.W_OK)
