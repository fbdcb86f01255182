"""Submission persistence with optimistic concurrency.

Edits follow read, mutate, conditional write. The caller passes the
``updatedAt`` it based its edit on; a stored value that differs means
someone else saved in between and the edit is rejected rather than
silently overwriting theirs.
"""

import logging
import secrets
import string
from datetime import datetime
from typing import Callable, List, Optional

from partner_gates.errors import (
    PreconditionFailedError,
    SubmissionNotFoundError,
    VersionConflictError,
)
from partner_gates.schemas.submission import Submission
from partner_gates.storage.protocol import BlobStore
from partner_gates.utils.timestamps import ensure_aware, strictly_after, utcnow

logger = logging.getLogger(__name__)

SUBMISSIONS_PREFIX = "submissions/"

_ID_ALPHABET = string.ascii_lowercase + string.digits

SubmissionMutation = Callable[[Submission], Optional[Submission]]


def submission_key(submission_id: str) -> str:
    return f"{SUBMISSIONS_PREFIX}{submission_id}"


def generate_submission_id(now: Optional[datetime] = None) -> str:
    """Id of the form ``submission-{epoch millis}-{7 random chars}``."""
    now = now or utcnow()
    millis = int(now.timestamp() * 1000)
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(7))
    return f"submission-{millis}-{suffix}"


class SubmissionStore:
    """CRUD over submissions in a blob store."""

    def __init__(self, store: BlobStore):
        self.store = store

    def create(self, submission: Submission, *, now: Optional[datetime] = None) -> Submission:
        """Persist a new submission.

        Assigns an id when the submission has none and stamps
        ``createdAt``/``updatedAt``.

        Raises:
            VersionConflictError: If a submission with that id already exists.
        """
        now = now or utcnow()
        record = submission.model_copy(deep=True)
        if not record.id:
            record.id = generate_submission_id(now)
        record.created_at = now
        record.updated_at = now

        key = submission_key(record.id)
        try:
            self.store.set(key, record.to_record(), if_none_match=True)
        except PreconditionFailedError as e:
            raise VersionConflictError(f"Submission '{record.id}' already exists", key=key) from e

        logger.info(
            f"Created submission '{record.id}' for partner '{record.partner_id}' "
            f"({record.questionnaire_id} v{record.template_version})"
        )
        return record

    def find(self, submission_id: str) -> Optional[Submission]:
        raw = self.store.get(submission_key(submission_id))
        if raw is None:
            return None
        return Submission.model_validate(raw)

    def get(self, submission_id: str) -> Submission:
        """Load a submission.

        Raises:
            SubmissionNotFoundError: If it does not exist.
        """
        submission = self.find(submission_id)
        if submission is None:
            raise SubmissionNotFoundError(f"Submission '{submission_id}' not found")
        return submission

    def update(
        self,
        submission_id: str,
        mutate: SubmissionMutation,
        expected_updated_at: Optional[datetime],
        *,
        now: Optional[datetime] = None,
    ) -> Submission:
        """Apply an edit to a stored submission.

        ``mutate`` receives a working copy and may change it in place or
        return a replacement. Whatever it does, ``id``, ``createdAt`` and
        ``templateVersion`` keep their stored values and ``updatedAt`` moves
        strictly forward.

        Args:
            submission_id: Submission to edit.
            mutate: Edit to apply.
            expected_updated_at: ``updatedAt`` the caller read before editing.
                None skips the stale-basis check (the etag still guards the write).
            now: Edit timestamp; defaults to the current UTC time.

        Raises:
            SubmissionNotFoundError: If the submission does not exist.
            VersionConflictError: If the basis is stale or a concurrent edit won.
        """
        key = submission_key(submission_id)
        raw, etag = self.store.get_entry(key)
        if raw is None:
            raise SubmissionNotFoundError(f"Submission '{submission_id}' not found")

        current = Submission.model_validate(raw)
        if expected_updated_at is not None and ensure_aware(current.updated_at) != ensure_aware(
            expected_updated_at
        ):
            raise VersionConflictError(
                f"Submission '{submission_id}' changed since it was loaded; reload and retry",
                key=key,
            )

        working = current.model_copy(deep=True)
        updated = mutate(working) or working
        updated.id = current.id
        updated.created_at = current.created_at
        updated.template_version = current.template_version
        updated.updated_at = strictly_after(current.updated_at or current.created_at, now)

        try:
            self.store.set(key, updated.to_record(), if_match=etag)
        except PreconditionFailedError as e:
            raise VersionConflictError(
                f"Submission '{submission_id}' was saved concurrently; reload and retry",
                key=key,
            ) from e

        logger.info(f"Updated submission '{submission_id}'")
        return updated

    def list_all(self) -> List[Submission]:
        submissions = []
        for key in self.store.list(SUBMISSIONS_PREFIX):
            raw = self.store.get(key)
            if raw is not None:
                submissions.append(Submission.model_validate(raw))
        return submissions

    def list_by_partner(self, partner_id: str) -> List[Submission]:
        """Submissions of one partner, oldest first."""
        submissions = [s for s in self.list_all() if s.partner_id == partner_id]
        return sorted(submissions, key=lambda s: (s.created_at is None, s.created_at or 0))

    def delete(self, submission_id: str) -> None:
        self.store.delete(submission_key(submission_id))
        logger.info(f"Deleted submission '{submission_id}'")
