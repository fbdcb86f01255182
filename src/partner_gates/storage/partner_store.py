"""Partner record persistence."""

import logging
from datetime import datetime
from typing import List, Optional, Tuple

from partner_gates.errors import PartnerNotFoundError, PreconditionFailedError, VersionConflictError
from partner_gates.schemas.partner import PartnerRecord
from partner_gates.storage.protocol import BlobStore
from partner_gates.utils.timestamps import strictly_after, utcnow

logger = logging.getLogger(__name__)

PARTNERS_PREFIX = "partners/"


def partner_key(partner_id: str) -> str:
    return f"{PARTNERS_PREFIX}{partner_id}"


class PartnerStore:
    """Partner records keyed by partner id.

    ``load`` returns the record together with its etag; passing that etag
    back to ``save`` rejects the write if the record changed meanwhile.
    """

    def __init__(self, store: BlobStore):
        self.store = store

    def load(self, partner_id: str) -> Tuple[PartnerRecord, str]:
        """Load a partner and its etag.

        Raises:
            PartnerNotFoundError: If the partner does not exist.
        """
        raw, etag = self.store.get_entry(partner_key(partner_id))
        if raw is None:
            raise PartnerNotFoundError(f"Partner '{partner_id}' not found")
        return PartnerRecord.model_validate(raw), etag

    def get(self, partner_id: str) -> PartnerRecord:
        return self.load(partner_id)[0]

    def find(self, partner_id: str) -> Optional[PartnerRecord]:
        raw = self.store.get(partner_key(partner_id))
        if raw is None:
            return None
        return PartnerRecord.model_validate(raw)

    def save(
        self,
        partner: PartnerRecord,
        *,
        etag: Optional[str] = None,
        create: bool = False,
        now: Optional[datetime] = None,
    ) -> str:
        """Write a partner record and return the new etag.

        Args:
            partner: Record to write; ``updatedAt`` is bumped in place.
            etag: Etag from :meth:`load`; the write fails if the record changed.
            create: Require that the partner does not exist yet.
            now: Save timestamp; defaults to the current UTC time.

        Raises:
            VersionConflictError: If the record changed or already exists.
        """
        key = partner_key(partner.id)
        now = now or utcnow()
        partner.updated_at = now if create else strictly_after(partner.updated_at, now)
        try:
            new_etag = self.store.set(
                key, partner.to_record(), if_match=etag, if_none_match=create
            )
        except PreconditionFailedError as e:
            raise VersionConflictError(
                f"Partner '{partner.id}' was modified concurrently; reload and retry",
                key=key,
            ) from e
        logger.debug(f"Saved partner '{partner.id}'")
        return new_etag

    def list(self) -> List[PartnerRecord]:
        partners = []
        for key in self.store.list(PARTNERS_PREFIX):
            raw = self.store.get(key)
            if raw is not None:
                partners.append(PartnerRecord.model_validate(raw))
        return partners

    def delete(self, partner_id: str) -> None:
        self.store.delete(partner_key(partner_id))
        logger.info(f"Deleted partner '{partner_id}'")
