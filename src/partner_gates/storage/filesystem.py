"""Local filesystem blob store.

Each key maps to a JSON file under the root directory
(``templates/current/gate-0`` -> ``{root}/templates/current/gate-0.json``).
Writes go to a temporary file that is then renamed over the target, so a
reader never sees a half-written document.

Conditional writes hold an exclusive ``<key>.json.lock`` file for the
check-and-replace, so separate processes (or store instances) sharing a
root cannot both win against the same etag.
"""

import json
import logging
import os
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, List, Optional, Tuple

from partner_gates.errors import PreconditionFailedError, StorageError
from partner_gates.storage.protocol import compute_etag, serialize

logger = logging.getLogger(__name__)

_SUFFIX = ".json"
_LOCK_SUFFIX = ".lock"
_LOCK_POLL_SECONDS = 0.01


class FileSystemBlobStore:
    """Blob store rooted at a directory.

    Args:
        root: Directory holding the JSON documents.
        lock_timeout: Seconds to wait for another writer's key lock.
        stale_lock_after: Age in seconds after which a key lock is assumed
            to belong to a crashed writer and is removed.
    """

    def __init__(
        self,
        root: Path,
        *,
        lock_timeout: float = 10.0,
        stale_lock_after: float = 60.0,
    ):
        self.root = Path(root)
        self.lock_timeout = lock_timeout
        self.stale_lock_after = stale_lock_after
        self._lock = threading.Lock()

    def _path(self, key: str) -> Path:
        parts = key.split("/")
        if not key or any(p in ("", ".", "..") for p in parts):
            raise StorageError(f"Invalid storage key '{key}'")
        return self.root.joinpath(*parts[:-1]) / f"{parts[-1]}{_SUFFIX}"

    def _read(self, path: Path) -> Optional[str]:
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except OSError as exc:
            raise StorageError(f"Failed to read {path}: {exc}") from exc

    # ── Key locks ────────────────────────────────────────────────────

    @contextmanager
    def _key_lock(self, path: Path) -> Iterator[None]:
        """Hold the exclusive lock file of one document."""
        lock_path = path.with_name(path.name + _LOCK_SUFFIX)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"Failed to create {path.parent}: {exc}") from exc

        deadline = time.monotonic() + self.lock_timeout
        while True:
            try:
                fd = os.open(str(lock_path), os.O_CREAT | os.O_EXCL | os.O_WRONLY)
            except FileExistsError:
                if self._break_stale_lock(lock_path):
                    continue
                if time.monotonic() >= deadline:
                    raise StorageError(f"Timed out waiting for lock on {path}")
                time.sleep(_LOCK_POLL_SECONDS)
            except OSError as exc:
                raise StorageError(f"Failed to lock {path}: {exc}") from exc
            else:
                os.close(fd)
                break

        try:
            yield
        finally:
            try:
                lock_path.unlink()
            except FileNotFoundError:
                logger.warning(f"Lock {lock_path} was removed by another writer")

    def _break_stale_lock(self, lock_path: Path) -> bool:
        """Remove a lock older than ``stale_lock_after``; True if it is gone."""
        try:
            age = time.time() - lock_path.stat().st_mtime
        except FileNotFoundError:
            return True
        if age < self.stale_lock_after:
            return False
        logger.warning(f"Removing stale lock {lock_path} ({age:.0f}s old)")
        try:
            lock_path.unlink()
        except FileNotFoundError:
            pass
        return True

    # ── BlobStore ────────────────────────────────────────────────────

    def get(self, key: str) -> Optional[Any]:
        return self.get_entry(key)[0]

    def get_entry(self, key: str) -> Tuple[Optional[Any], Optional[str]]:
        path = self._path(key)
        with self._lock:
            payload = self._read(path)
        if payload is None:
            return None, None
        try:
            return json.loads(payload), compute_etag(payload)
        except json.JSONDecodeError as exc:
            raise StorageError(f"Corrupt JSON at {path}: {exc}") from exc

    def set(
        self,
        key: str,
        value: Any,
        *,
        if_match: Optional[str] = None,
        if_none_match: bool = False,
    ) -> str:
        path = self._path(key)
        payload = serialize(value)

        with self._lock, self._key_lock(path):
            existing = self._read(path)
            if if_none_match and existing is not None:
                raise PreconditionFailedError(key, f"Key '{key}' already exists")
            if if_match is not None and (existing is None or compute_etag(existing) != if_match):
                raise PreconditionFailedError(key)

            tmp_path = path.with_name(path.name + ".tmp")
            try:
                tmp_path.write_text(payload, encoding="utf-8")
                tmp_path.replace(path)
            except OSError as exc:
                if tmp_path.exists():
                    tmp_path.unlink()
                raise StorageError(f"Failed to write {path}: {exc}") from exc

        logger.debug(f"Wrote {key}")
        return compute_etag(payload)

    def list(self, prefix: str = "") -> List[str]:
        if not self.root.exists():
            return []
        keys = []
        for path in self.root.rglob(f"*{_SUFFIX}"):
            key = path.relative_to(self.root).as_posix()[: -len(_SUFFIX)]
            if key.startswith(prefix):
                keys.append(key)
        return sorted(keys)

    def delete(self, key: str) -> None:
        path = self._path(key)
        if not path.parent.exists():
            return
        with self._lock, self._key_lock(path):
            try:
                path.unlink()
            except FileNotFoundError:
                pass
            except OSError as exc:
                raise StorageError(f"Failed to delete {path}: {exc}") from exc
