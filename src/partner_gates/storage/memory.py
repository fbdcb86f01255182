"""In-memory blob store for tests and embedding."""

import json
import logging
import threading
from typing import Any, Dict, List, Optional, Tuple

from partner_gates.errors import PreconditionFailedError
from partner_gates.storage.protocol import compute_etag, serialize

logger = logging.getLogger(__name__)


class InMemoryBlobStore:
    """Thread-safe dict-backed store.

    Values are held as serialised JSON so callers never share mutable state
    with the store.
    """

    def __init__(self) -> None:
        self._data: Dict[str, Tuple[str, str]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        return self.get_entry(key)[0]

    def get_entry(self, key: str) -> Tuple[Optional[Any], Optional[str]]:
        with self._lock:
            entry = self._data.get(key)
        if entry is None:
            return None, None
        payload, etag = entry
        return json.loads(payload), etag

    def set(
        self,
        key: str,
        value: Any,
        *,
        if_match: Optional[str] = None,
        if_none_match: bool = False,
    ) -> str:
        payload = serialize(value)
        etag = compute_etag(payload)
        with self._lock:
            existing = self._data.get(key)
            if if_none_match and existing is not None:
                raise PreconditionFailedError(key, f"Key '{key}' already exists")
            if if_match is not None and (existing is None or existing[1] != if_match):
                raise PreconditionFailedError(key)
            self._data[key] = (payload, etag)
        return etag

    def list(self, prefix: str = "") -> List[str]:
        with self._lock:
            return sorted(k for k in self._data if k.startswith(prefix))

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)
