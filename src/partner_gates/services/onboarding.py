"""Onboarding service: the engine's entry points.

Ties the evaluation pipeline (section scorer, gate qualifier) to gate
progression and to the template, submission and partner stores. A
submission is always scored against the template version it is bound to.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from partner_gates.config.gates import GatesConfig, get_gate_config
from partner_gates.errors import (
    GateAccessError,
    PartnerGatesError,
    PartnerNotFoundError,
    StorageError,
    VersionConflictError,
)
from partner_gates.evaluation.gate_qualifier import overall_status, qualify_gate
from partner_gates.evaluation.section_scorer import default_failure_message, score_section
from partner_gates.progression.state_machine import GateStateMachine
from partner_gates.schemas.partner import GateProgress, GateStatus, PartnerRecord
from partner_gates.schemas.qualification import QualificationResult
from partner_gates.schemas.submission import (
    SectionData,
    SectionResult,
    SectionStatus,
    Signature,
    Submission,
    SubmissionStatus,
    UserRole,
)
from partner_gates.schemas.template import (
    CriteriaType,
    Section,
    TemplateDefinition,
    active_fields,
    all_fields_for_render,
)
from partner_gates.services.rendering import RenderedSubmission, render_submission
from partner_gates.storage.filesystem import FileSystemBlobStore
from partner_gates.storage.partner_store import PartnerStore
from partner_gates.storage.protocol import BlobStore
from partner_gates.storage.submission_store import SubmissionStore
from partner_gates.storage.template_store import SaveResult, TemplateVersionStore
from partner_gates.utils.timestamps import utcnow

logger = logging.getLogger(__name__)


@dataclass
class SubmissionOutcome:
    """Result of submitting a questionnaire."""

    submission: Submission
    qualification: QualificationResult
    gate_progress: GateProgress


@dataclass
class GateSummary:
    """One row of a partner's gate overview."""

    gate_id: str
    name: str
    status: GateStatus
    completion: int
    blockers: List[str]
    is_current: bool = False


@dataclass
class Evaluation:
    """Section statuses and gate qualification for one set of answers."""

    sections: List[SectionData]
    statuses: Dict[str, SectionStatus]
    qualification: QualificationResult
    overall: SubmissionStatus


_Edit = Callable[
    [Dict[str, Any], Dict[str, SectionStatus]],
    Tuple[Dict[str, Any], Dict[str, SectionStatus]],
]


class OnboardingService:
    """Entry points for scoring, qualification, progression and templates.

    Args:
        store: Blob store holding templates, submissions and partners.
        config: Gate configuration; defaults to the cached active config.
    """

    def __init__(self, store: BlobStore, config: Optional[GatesConfig] = None):
        self.config = config or get_gate_config()
        self.templates = TemplateVersionStore(store)
        self.submissions = SubmissionStore(store)
        self.partners = PartnerStore(store)
        self.gates = GateStateMachine(self.config)

    @classmethod
    def from_data_dir(
        cls, data_dir: Path, config: Optional[GatesConfig] = None
    ) -> "OnboardingService":
        return cls(FileSystemBlobStore(data_dir), config)

    # ── Evaluation ───────────────────────────────────────────────────

    def score_section(
        self,
        section: Section,
        field_values: Mapping[str, Any],
        *,
        gate_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> SectionStatus:
        """Score a section, applying any checks the gate configures for it."""
        return score_section(
            section, field_values, now=now, extra_checks=self._section_checks(gate_id, section.id)
        )

    def qualify_gate(
        self,
        gate_id: str,
        section_statuses: Mapping[str, SectionStatus],
        raw_fields: Optional[Mapping[str, Any]] = None,
    ) -> QualificationResult:
        return qualify_gate(gate_id, section_statuses, raw_fields, config=self.config)

    def _section_checks(self, gate_id: Optional[str], section_id: str) -> Sequence[str]:
        if gate_id is None:
            return ()
        gate = self.config.get_gate(gate_id)
        if gate is None:
            return ()
        return gate.section_checks.get(section_id, ())

    def _evaluate(
        self,
        template: TemplateDefinition,
        gate_id: str,
        values: Mapping[str, Any],
        previous: Optional[Mapping[str, SectionStatus]] = None,
        now: Optional[datetime] = None,
    ) -> Evaluation:
        """Score every section of a definition and qualify the gate.

        Only fields active in ``template`` are kept. Manual sections keep a
        reviewer's earlier decision from ``previous``.
        """
        previous = previous or {}
        sections: List[SectionData] = []
        statuses: Dict[str, SectionStatus] = {}
        kept_values: Dict[str, Any] = {}

        for section in template.sections:
            fields = {f.id: values[f.id] for f in section.active_fields() if f.id in values}
            kept_values.update(fields)

            earlier = previous.get(section.id)
            criteria = section.pass_fail_criteria
            is_manual = criteria is None or criteria.type == CriteriaType.MANUAL
            if is_manual and earlier is not None and earlier.result != SectionResult.PENDING:
                status = earlier
            else:
                status = self.score_section(section, fields, gate_id=gate_id, now=now)

            statuses[section.id] = status
            sections.append(SectionData(section_id=section.id, fields=fields, status=status))

        dropped = set(values) - set(kept_values)
        if dropped:
            logger.debug(f"Ignoring fields not active in template '{template.name}': {sorted(dropped)}")

        qualification = self.qualify_gate(gate_id, statuses, kept_values)
        return Evaluation(
            sections=sections,
            statuses=statuses,
            qualification=qualification,
            overall=overall_status(qualification, statuses),
        )

    def evaluate_answers(
        self, questionnaire_id: str, answers: Mapping[str, Any]
    ) -> Evaluation:
        """Score answers against the current template without storing anything."""
        template = self.templates.get_current(questionnaire_id)
        return self._evaluate(template, self._gate_for(questionnaire_id, template), answers)

    # ── Templates ────────────────────────────────────────────────────

    def save_template(
        self,
        template_id: str,
        sections: Sequence[Union[Section, Dict[str, Any]]],
        updated_by: str,
        *,
        name: Optional[str] = None,
        gate_id: Optional[str] = None,
    ) -> SaveResult:
        return self.templates.save(template_id, sections, updated_by, name=name, gate_id=gate_id)

    def resolve_template_for_submission(
        self, template_id: str, submission: Optional[Submission] = None
    ) -> TemplateDefinition:
        return self.templates.resolve_for_submission(template_id, submission)

    def _gate_for(self, questionnaire_id: str, template: TemplateDefinition) -> str:
        if template.gate_id and self.config.get_gate(template.gate_id) is not None:
            return template.gate_id
        gate = self.config.gate_for_questionnaire(questionnaire_id)
        if gate is None:
            raise GateAccessError(f"Questionnaire '{questionnaire_id}' is not assigned to a gate")
        return gate.id

    # ── Partners and gates ───────────────────────────────────────────

    def register_partner(
        self,
        partner_id: str,
        partner_name: str = "",
        *,
        tier: Optional[str] = None,
        ccv: float = 0.0,
        lrp: float = 0.0,
    ) -> PartnerRecord:
        partner = self.gates.new_partner(partner_id, partner_name, tier=tier, ccv=ccv, lrp=lrp)
        self.partners.save(partner, create=True)
        logger.info(f"Registered partner '{partner_id}' at gate '{partner.current_gate}'")
        return partner

    def start_gate(self, partner_id: str, gate_id: str) -> GateProgress:
        partner, etag = self.partners.load(partner_id)
        progress = self.gates.start_gate(partner, gate_id)
        self.partners.save(partner, etag=etag)
        return progress

    def advance_gate(
        self,
        partner_id: str,
        gate_id: str,
        qualification: Union[QualificationResult, bool],
    ) -> GateProgress:
        """Apply a qualification outcome to a partner's in-progress gate."""
        partner, etag = self.partners.load(partner_id)
        progress = self.gates.advance_gate(partner, gate_id, qualification)
        self.partners.save(partner, etag=etag)
        return progress

    def block_gate(self, partner_id: str, gate_id: str, blockers: List[str]) -> GateProgress:
        partner, etag = self.partners.load(partner_id)
        progress = self.gates.block_gate(partner, gate_id, blockers)
        self.partners.save(partner, etag=etag)
        return progress

    def unblock_gate(self, partner_id: str, gate_id: str) -> GateProgress:
        partner, etag = self.partners.load(partner_id)
        progress = self.gates.unblock_gate(partner, gate_id)
        self.partners.save(partner, etag=etag)
        return progress

    def approve_gate(
        self,
        partner_id: str,
        gate_id: str,
        approved_by: str,
        *,
        role: Optional[UserRole] = None,
        notes: Optional[str] = None,
    ) -> GateProgress:
        partner, etag = self.partners.load(partner_id)
        progress = self.gates.approve_gate(partner, gate_id, approved_by, role=role, notes=notes)
        self.partners.save(partner, etag=etag)
        return progress

    def gate_overview(self, partner_id: str) -> List[GateSummary]:
        """Status, completion and blockers of every gate for a partner."""
        partner = self.partners.get(partner_id)
        submissions = {s.id: s for s in self.submissions.list_by_partner(partner_id)}
        rows = []
        for gate in self.config.gates:
            progress = partner.gates.get(gate.id) or GateProgress(gate_id=gate.id)
            rows.append(
                GateSummary(
                    gate_id=gate.id,
                    name=gate.label,
                    status=progress.status,
                    completion=self.gates.gate_completion_percentage(progress, submissions),
                    blockers=self.gates.gate_blockers(partner, gate.id),
                    is_current=partner.current_gate == gate.id,
                )
            )
        return rows

    def _sync_gate(
        self, partner: PartnerRecord, gate_id: str, submission: Submission
    ) -> GateProgress:
        """Move an in-progress gate once a submission has a final outcome.

        A failing submission fails the gate. A passing one passes it when
        every questionnaire the gate requires has a passing submission.
        Partial outcomes leave the gate in progress.
        """
        progress = self.gates.progress(partner, gate_id)
        if progress.status != GateStatus.IN_PROGRESS:
            logger.debug(f"Gate '{gate_id}' is {progress.status.value}; not re-evaluated")
            return progress

        qualification = submission.qualification
        if submission.overall_status == SubmissionStatus.FAIL and qualification is not None:
            return self.gates.advance_gate(partner, gate_id, qualification)

        if submission.overall_status == SubmissionStatus.PASS and qualification is not None:
            linked = {}
            for submission_id in progress.questionnaires.values():
                if submission_id == submission.id:
                    linked[submission_id] = submission
                    continue
                other = self.submissions.find(submission_id)
                if other is not None:
                    linked[submission_id] = other
            if self.gates.gate_completion_percentage(progress, linked) == 100:
                return self.gates.advance_gate(partner, gate_id, qualification)
            logger.info(f"Gate '{gate_id}' still awaits other questionnaires")

        return progress

    # ── Submissions ──────────────────────────────────────────────────

    def submit_questionnaire(
        self,
        partner_id: str,
        questionnaire_id: str,
        answers: Mapping[str, Any],
        *,
        submitted_by: str,
        role: Optional[UserRole] = None,
        signature: Optional[Signature] = None,
        now: Optional[datetime] = None,
    ) -> SubmissionOutcome:
        """Score and record a questionnaire submission for a partner.

        Opens the gate (enforcing access), binds the submission to the current
        template version, drops answers to removed or unknown fields, scores
        and qualifies it, then moves the gate when the outcome is final.

        Args:
            partner_id: Partner submitting.
            questionnaire_id: Template id of the questionnaire.
            answers: Submitted values keyed by field id.
            submitted_by: Identity of the submitter.
            role: Role of the submitter.
            signature: Signature captured with the submission.
            now: Submission timestamp; defaults to the current UTC time.

        Raises:
            TemplateNotFoundError: If the questionnaire has no template.
            PartnerNotFoundError: If the partner does not exist.
            GateAccessError: If the gate is blocked or not yet reachable.
            VersionConflictError: If the partner record changed concurrently; the new
                submission is removed again.
        """
        now = now or utcnow()
        template = self.templates.get_current(questionnaire_id)
        gate_id = self._gate_for(questionnaire_id, template)

        partner, etag = self.partners.load(partner_id)
        self.gates.start_gate(partner, gate_id, now=now)

        evaluation = self._evaluate(template, gate_id, answers, now=now)
        submission = self.submissions.create(
            Submission(
                questionnaire_id=questionnaire_id,
                partner_id=partner_id,
                gate_id=gate_id,
                template_version=template.version,
                sections=evaluation.sections,
                section_statuses=evaluation.statuses,
                overall_status=evaluation.overall,
                qualification=evaluation.qualification,
                signature=signature,
                submitted_by=submitted_by,
                submitted_by_role=role,
                submitted_at=now,
            ),
            now=now,
        )

        progress = self.gates.progress(partner, gate_id)
        progress.questionnaires[questionnaire_id] = submission.id
        progress = self._sync_gate(partner, gate_id, submission)
        try:
            self.partners.save(partner, etag=etag, now=now)
        except VersionConflictError:
            self._discard_submission(submission.id)
            raise

        logger.info(
            f"Partner '{partner_id}' submitted '{questionnaire_id}': "
            f"{submission.overall_status.value}; gate '{gate_id}' {progress.status.value}"
        )
        return SubmissionOutcome(
            submission=submission,
            qualification=evaluation.qualification,
            gate_progress=progress,
        )

    def _discard_submission(self, submission_id: str) -> None:
        """Remove a submission whose partner update was rejected."""
        try:
            self.submissions.delete(submission_id)
        except StorageError as e:
            logger.error(f"Could not remove unlinked submission '{submission_id}': {e}")

    def _rescored(
        self,
        submission_id: str,
        expected_updated_at: Optional[datetime],
        edit: _Edit,
        now: Optional[datetime],
    ) -> Submission:
        """Apply ``edit`` to a submission's answers and statuses, then rescore."""
        stored = self.submissions.get(submission_id)
        template = self.templates.resolve_for_submission(stored.questionnaire_id, stored)
        gate_id = stored.gate_id or self._gate_for(stored.questionnaire_id, template)

        def mutate(submission: Submission) -> Submission:
            values, statuses = edit(submission.field_values(), dict(submission.section_statuses))
            evaluation = self._evaluate(template, gate_id, values, previous=statuses, now=now)
            submission.gate_id = gate_id
            submission.sections = evaluation.sections
            submission.section_statuses = evaluation.statuses
            submission.qualification = evaluation.qualification
            submission.overall_status = evaluation.overall
            return submission

        updated = self.submissions.update(submission_id, mutate, expected_updated_at, now=now)

        try:
            partner_record, etag = self.partners.load(updated.partner_id)
        except PartnerNotFoundError:
            logger.warning(f"Submission '{submission_id}' belongs to unknown partner")
            return updated
        self._sync_gate(partner_record, gate_id, updated)
        self.partners.save(partner_record, etag=etag, now=now)
        return updated

    def edit_submission(
        self,
        submission_id: str,
        answers: Mapping[str, Any],
        expected_updated_at: Optional[datetime],
        *,
        now: Optional[datetime] = None,
    ) -> Submission:
        """Change answers of an existing submission and rescore it.

        Scoring uses the template version the submission is bound to, which
        never changes.

        Raises:
            SubmissionNotFoundError: If the submission does not exist.
            VersionConflictError: If the submission changed since ``expected_updated_at``.
        """

        def edit(values: Dict[str, Any], statuses: Dict[str, SectionStatus]):
            values.update(answers)
            return values, statuses

        return self._rescored(submission_id, expected_updated_at, edit, now)

    def adjudicate_section(
        self,
        submission_id: str,
        section_id: str,
        result: SectionResult,
        evaluated_by: str,
        *,
        notes: Optional[str] = None,
        failure_reasons: Optional[List[str]] = None,
        expected_updated_at: Optional[datetime] = None,
        now: Optional[datetime] = None,
    ) -> Submission:
        """Record a reviewer's decision on a manually assessed section.

        Raises:
            PartnerGatesError: If the section is unknown, scored automatically,
                or ``result`` is pending.
        """
        if result == SectionResult.PENDING:
            raise PartnerGatesError("A manual decision must be pass or fail")

        stored = self.submissions.get(submission_id)
        template = self.templates.resolve_for_submission(stored.questionnaire_id, stored)
        section = template.get_section(section_id)
        if section is None:
            raise PartnerGatesError(
                f"Section '{section_id}' is not part of submission '{submission_id}'"
            )
        criteria = section.pass_fail_criteria
        if criteria is not None and criteria.type == CriteriaType.AUTOMATIC:
            raise PartnerGatesError(f"Section '{section_id}' is scored automatically")

        reasons = None
        if result == SectionResult.FAIL:
            reasons = failure_reasons or [default_failure_message(section)]
        decision = SectionStatus(
            result=result,
            failure_reasons=reasons,
            notes=notes,
            evaluated_at=now or utcnow(),
            evaluated_by=evaluated_by,
        )

        def edit(values: Dict[str, Any], statuses: Dict[str, SectionStatus]):
            statuses[section_id] = decision
            return values, statuses

        logger.info(
            f"{evaluated_by} marked section '{section_id}' of '{submission_id}' {result.value}"
        )
        return self._rescored(submission_id, expected_updated_at, edit, now)

    def render_submission(self, submission_id: str) -> RenderedSubmission:
        """Render a submission over the template version it was made on.

        Fields the current template has since removed or dropped are flagged
        removed, keeping the layout of the bound version.
        """
        submission = self.submissions.get(submission_id)
        template = self.templates.resolve_for_submission(submission.questionnaire_id, submission)
        current = self.templates.get_current(submission.questionnaire_id)
        removed_since = frozenset()
        if current.version != template.version:
            still_active = {f.id for f in active_fields(current)}
            removed_since = frozenset(
                f.id for f in all_fields_for_render(template) if f.id not in still_active
            )
        return render_submission(submission, template, removed_since)
