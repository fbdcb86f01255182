"""Blob store protocol.

The engine persists opaque JSON documents under string keys such as
``templates/current/{id}`` or ``submissions/{id}``. Every stored value has
an etag; writes can be made conditional on it so that read-modify-write
sequences detect a concurrent writer instead of overwriting it.
"""

import hashlib
import json
from typing import Any, List, Optional, Protocol, Tuple, runtime_checkable


@runtime_checkable
class BlobStore(Protocol):
    """Key-value store of JSON documents with conditional writes."""

    def get(self, key: str) -> Optional[Any]:
        """Return the stored value, or None if the key does not exist."""
        ...

    def get_entry(self, key: str) -> Tuple[Optional[Any], Optional[str]]:
        """Return ``(value, etag)``; both None if the key does not exist."""
        ...

    def set(
        self,
        key: str,
        value: Any,
        *,
        if_match: Optional[str] = None,
        if_none_match: bool = False,
    ) -> str:
        """Store a value and return its new etag.

        Args:
            key: Storage key.
            value: JSON-serialisable document.
            if_match: Only write if the stored etag equals this value.
            if_none_match: Only write if the key does not exist yet.

        Raises:
            PreconditionFailedError: If a condition does not hold.
        """
        ...

    def list(self, prefix: str = "") -> List[str]:
        """Keys starting with ``prefix``, sorted."""
        ...

    def delete(self, key: str) -> None:
        """Remove a key; deleting a missing key is a no-op."""
        ...


def serialize(value: Any) -> str:
    """Canonical JSON text of a value (sorted keys, compact)."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


def compute_etag(payload: str) -> str:
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()
