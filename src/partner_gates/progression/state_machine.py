"""Gate progression state machine.

Each partner holds one :class:`GateProgress` per gate. Gates are strictly
ordered by the gate config: a gate can be opened only once the gate
immediately before it has ``passed``.

Allowed transitions::

    not-started -> in-progress | blocked
    in-progress -> passed | failed | blocked
    failed      -> in-progress | blocked     (resubmission)
    blocked     -> in-progress               (explicit unblock)
    passed      -> (terminal)

Every state except ``passed`` can be blocked. Blocking a passed gate raises
:class:`GateTransitionError`; the partner never moves back behind it.

Re-entering the current state is a no-op. Methods mutate the partner record
they are given; persisting it is the caller's job.
"""

import logging
import math
from datetime import datetime
from typing import Dict, FrozenSet, List, Mapping, Optional, Union

from partner_gates.config.gates import GatesConfig, get_gate_config
from partner_gates.errors import GateAccessError, GateTransitionError
from partner_gates.schemas.partner import Approval, GateProgress, GateStatus, PartnerRecord
from partner_gates.schemas.qualification import QualificationResult
from partner_gates.schemas.submission import Submission, SubmissionStatus, UserRole
from partner_gates.utils.timestamps import utcnow

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: Dict[GateStatus, FrozenSet[GateStatus]] = {
    GateStatus.NOT_STARTED: frozenset({GateStatus.IN_PROGRESS, GateStatus.BLOCKED}),
    GateStatus.IN_PROGRESS: frozenset(
        {GateStatus.PASSED, GateStatus.FAILED, GateStatus.BLOCKED}
    ),
    GateStatus.FAILED: frozenset({GateStatus.IN_PROGRESS, GateStatus.BLOCKED}),
    GateStatus.BLOCKED: frozenset({GateStatus.IN_PROGRESS}),
    # Terminal, so block_gate on a passed gate is rejected
    GateStatus.PASSED: frozenset(),
}


def can_transition(current: GateStatus, target: GateStatus) -> bool:
    return current == target or target in ALLOWED_TRANSITIONS[current]


def transition(progress: GateProgress, target: GateStatus) -> GateProgress:
    """Move a gate to ``target``.

    Raises:
        GateTransitionError: If the move is not an allowed transition.
    """
    if progress.status == target:
        return progress
    if target not in ALLOWED_TRANSITIONS[progress.status]:
        raise GateTransitionError(
            f"Gate '{progress.gate_id}' cannot move from "
            f"{progress.status.value} to {target.value}"
        )
    logger.debug(f"Gate '{progress.gate_id}': {progress.status.value} -> {target.value}")
    progress.status = target
    return progress


def initialize_gate_progress(gate_id: str) -> GateProgress:
    """Fresh progress record for a gate."""
    return GateProgress(gate_id=gate_id, status=GateStatus.NOT_STARTED)


class GateStateMachine:
    """Gate access and progression rules over partner records.

    Args:
        config: Gate configuration; defaults to the cached active config.
    """

    def __init__(self, config: Optional[GatesConfig] = None):
        self.config = config or get_gate_config()

    # ── Partners ─────────────────────────────────────────────────────

    def new_partner(
        self,
        partner_id: str,
        partner_name: str = "",
        *,
        tier: Optional[str] = None,
        ccv: float = 0.0,
        lrp: float = 0.0,
    ) -> PartnerRecord:
        """Create a partner positioned at the first gate."""
        first_gate = self.config.gates[0].id
        return PartnerRecord(
            id=partner_id,
            partner_name=partner_name,
            tier=tier,
            ccv=ccv,
            lrp=lrp,
            current_gate=first_gate,
            gates={first_gate: initialize_gate_progress(first_gate)},
        )

    def _require_gate(self, gate_id: str) -> None:
        if self.config.get_gate(gate_id) is None:
            raise GateTransitionError(f"Unknown gate '{gate_id}'")

    def progress(self, partner: PartnerRecord, gate_id: str) -> GateProgress:
        """Progress record of a gate, initialised on first use."""
        self._require_gate(gate_id)
        progress = partner.gates.get(gate_id)
        if progress is None:
            progress = initialize_gate_progress(gate_id)
            partner.gates[gate_id] = progress
        return progress

    # ── Access ───────────────────────────────────────────────────────

    def access_blockers(self, partner: PartnerRecord, gate_id: str) -> List[str]:
        """Reasons the gate cannot be opened yet; empty when it can."""
        if self.config.get_gate(gate_id) is None:
            return [f"Invalid gate ID '{gate_id}'"]

        previous = self.config.previous_gate(gate_id)
        if previous is None:
            return []

        previous_progress = partner.gates.get(previous)
        if previous_progress is None:
            return [f"Previous gate ({previous}) has not been started"]
        if previous_progress.status != GateStatus.PASSED:
            name = self.config.get_gate(previous).label
            return [f'Previous gate "{name}" must be completed before progressing to {gate_id}']
        return []

    def can_access_gate(self, partner: PartnerRecord, gate_id: str) -> bool:
        return not self.access_blockers(partner, gate_id)

    def gate_blockers(self, partner: PartnerRecord, gate_id: str) -> List[str]:
        """Access blockers followed by the blockers recorded on the gate."""
        blockers = self.access_blockers(partner, gate_id)
        progress = partner.gates.get(gate_id)
        if progress is not None:
            blockers.extend(progress.blockers)
        return blockers

    # ── Transitions ──────────────────────────────────────────────────

    def start_gate(
        self, partner: PartnerRecord, gate_id: str, *, now: Optional[datetime] = None
    ) -> GateProgress:
        """Open a gate's questionnaires for editing.

        Starting an in-progress gate is a no-op; starting a failed gate
        reopens it for resubmission.

        Raises:
            GateAccessError: If the gate is blocked or its predecessor has not passed.
            GateTransitionError: If the gate has already passed.
        """
        progress = self.progress(partner, gate_id)

        if progress.status == GateStatus.BLOCKED:
            raise GateAccessError(f"Gate '{gate_id}' is blocked", progress.blockers)

        blockers = self.access_blockers(partner, gate_id)
        if blockers:
            raise GateAccessError(f"Gate '{gate_id}' is not accessible", blockers)

        transition(progress, GateStatus.IN_PROGRESS)
        if progress.started_date is None:
            progress.started_date = now or utcnow()
        return progress

    def advance_gate(
        self,
        partner: PartnerRecord,
        gate_id: str,
        qualification: Union[QualificationResult, bool],
        *,
        now: Optional[datetime] = None,
    ) -> GateProgress:
        """Record the outcome of a submission on an in-progress gate.

        A qualifying outcome passes the gate, clears its blockers and moves
        the partner to the next gate. Otherwise the gate fails with the
        qualification reason as its blocker.

        Raises:
            GateTransitionError: If the gate is not in progress.
        """
        if isinstance(qualification, bool):
            qualification = QualificationResult(
                qualifies=qualification,
                reason="Gate criteria met" if qualification else "Gate criteria not met",
            )

        progress = self.progress(partner, gate_id)
        if qualification.qualifies:
            self._pass_gate(partner, progress, now=now)
        else:
            transition(progress, GateStatus.FAILED)
            progress.blockers = [qualification.reason]
            logger.info(f"Partner '{partner.id}' failed gate '{gate_id}': {qualification.reason}")
        return progress

    def _pass_gate(
        self, partner: PartnerRecord, progress: GateProgress, *, now: Optional[datetime]
    ) -> None:
        already_passed = progress.status == GateStatus.PASSED
        transition(progress, GateStatus.PASSED)
        if already_passed:
            return

        progress.completed_date = now or utcnow()
        progress.blockers = []

        next_gate = self.config.next_gate(progress.gate_id)
        if next_gate is not None:
            partner.current_gate = next_gate
            if next_gate not in partner.gates:
                partner.gates[next_gate] = initialize_gate_progress(next_gate)
        logger.info(
            f"Partner '{partner.id}' passed gate '{progress.gate_id}'"
            + (f"; now at '{next_gate}'" if next_gate else "")
        )

    def block_gate(
        self, partner: PartnerRecord, gate_id: str, blockers: List[str]
    ) -> GateProgress:
        """Block a gate with the given reasons.

        Raises:
            GateTransitionError: If the gate has already passed.
        """
        progress = self.progress(partner, gate_id)
        transition(progress, GateStatus.BLOCKED)
        progress.blockers = list(blockers)
        logger.info(f"Partner '{partner.id}' gate '{gate_id}' blocked: {blockers}")
        return progress

    def unblock_gate(
        self, partner: PartnerRecord, gate_id: str, *, now: Optional[datetime] = None
    ) -> GateProgress:
        """Lift a block and reopen the gate.

        Raises:
            GateTransitionError: If the gate is not blocked.
            GateAccessError: If the predecessor gate has still not passed.
        """
        progress = self.progress(partner, gate_id)
        if progress.status != GateStatus.BLOCKED:
            raise GateTransitionError(
                f"Gate '{gate_id}' is {progress.status.value}, not blocked"
            )

        blockers = self.access_blockers(partner, gate_id)
        if blockers:
            raise GateAccessError(f"Gate '{gate_id}' is not accessible", blockers)

        transition(progress, GateStatus.IN_PROGRESS)
        progress.blockers = []
        if progress.started_date is None:
            progress.started_date = now or utcnow()
        return progress

    def approve_gate(
        self,
        partner: PartnerRecord,
        gate_id: str,
        approved_by: str,
        *,
        role: Optional[UserRole] = None,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> GateProgress:
        """Record a sign-off and pass the gate.

        A gate that has not been started (or has failed) is opened first, so
        it must be accessible. Approving a passed gate only adds the approval.

        Raises:
            GateAccessError: If the gate cannot be opened.
            GateTransitionError: If the gate is blocked.
        """
        now = now or utcnow()
        progress = self.progress(partner, gate_id)

        if progress.status == GateStatus.BLOCKED:
            raise GateTransitionError(f"Gate '{gate_id}' is blocked; unblock it before approval")
        if progress.status in (GateStatus.NOT_STARTED, GateStatus.FAILED):
            self.start_gate(partner, gate_id, now=now)

        progress.approvals.append(
            Approval(approved_by=approved_by, approved_by_role=role, approved_at=now, notes=notes)
        )
        self._pass_gate(partner, progress, now=now)
        return progress

    # ── Reporting ────────────────────────────────────────────────────

    def gate_completion_percentage(
        self, progress: GateProgress, submissions: Mapping[str, Submission]
    ) -> int:
        """Share of the gate's required questionnaires with a passing submission.

        Args:
            progress: Gate progress record.
            submissions: Submissions keyed by submission id.

        Returns:
            Rounded percentage 0-100. Gates without questionnaires report 100
            once passed, else 0.
        """
        gate = self.config.get_gate(progress.gate_id)
        if gate is None or not gate.questionnaires:
            return 100 if progress.status == GateStatus.PASSED else 0

        completed = 0
        for questionnaire_id in gate.questionnaires:
            submission_id = progress.questionnaires.get(questionnaire_id)
            if not submission_id:
                continue
            submission = submissions.get(submission_id)
            if submission is not None and submission.overall_status == SubmissionStatus.PASS:
                completed += 1

        return math.floor(completed / len(gate.questionnaires) * 100 + 0.5)
