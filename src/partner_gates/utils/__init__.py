"""Shared helpers."""

from partner_gates.utils.timestamps import ensure_aware, strictly_after, utcnow

__all__ = ["ensure_aware", "strictly_after", "utcnow"]
