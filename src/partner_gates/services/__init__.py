"""Service layer: onboarding entry points and submission rendering."""

from partner_gates.services.onboarding import (
    Evaluation,
    GateSummary,
    OnboardingService,
    SubmissionOutcome,
)
from partner_gates.services.rendering import (
    RenderedField,
    RenderedSection,
    RenderedSubmission,
    render_submission,
)

__all__ = [
    "Evaluation",
    "GateSummary",
    "OnboardingService",
    "RenderedField",
    "RenderedSection",
    "RenderedSubmission",
    "SubmissionOutcome",
    "render_submission",
]
