"""Exception hierarchy for the partner gates engine.

Validation, conflict and access errors propagate to the caller so the UI
layer can show a message (or offer reload-and-retry for conflicts).
Evaluation-time anomalies are recovered inside the engine and only logged.
"""

from typing import List, Optional


class PartnerGatesError(Exception):
    """Base exception for all partner gates errors."""

    pass


class TemplateValidationError(PartnerGatesError):
    """Template definition failed validation; carries every violation found."""

    def __init__(self, errors: List[str], template_id: Optional[str] = None):
        self.errors = list(errors)
        self.template_id = template_id
        prefix = f"Template '{template_id}' is invalid" if template_id else "Template is invalid"
        super().__init__(f"{prefix}: " + "; ".join(self.errors))


class VersionConflictError(PartnerGatesError):
    """A concurrent writer won the race, or the caller's basis is stale."""

    def __init__(self, message: str, key: Optional[str] = None):
        self.key = key
        super().__init__(message)


class UnevaluableRuleError(PartnerGatesError):
    """A rule cannot be evaluated (bad operand kind, unknown field).

    Never escapes the evaluation package: the rule is treated as failed.
    """

    pass


class TemplateNotFoundError(PartnerGatesError):
    """No current template exists for the requested id."""

    pass


class SubmissionNotFoundError(PartnerGatesError):
    """Submission id does not exist in storage."""

    pass


class PartnerNotFoundError(PartnerGatesError):
    """Partner id does not exist in storage."""

    pass


class GateTransitionError(PartnerGatesError):
    """Requested gate status change is not a valid transition."""

    pass


class GateAccessError(PartnerGatesError):
    """Gate questionnaire cannot be opened (blocked or predecessor not passed)."""

    def __init__(self, message: str, blockers: Optional[List[str]] = None):
        self.blockers = list(blockers or [])
        super().__init__(message)


class StorageError(PartnerGatesError):
    """Underlying blob store failed to read or write."""

    pass


class PreconditionFailedError(StorageError):
    """Conditional write rejected because the stored etag did not match."""

    def __init__(self, key: str, message: Optional[str] = None):
        self.key = key
        super().__init__(message or f"Precondition failed for key '{key}'")
