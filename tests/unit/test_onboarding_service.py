"""Unit tests for the onboarding service entry points."""

import pytest

from partner_gates.errors import (
    GateAccessError,
    GateTransitionError,
    PartnerGatesError,
    PartnerNotFoundError,
    TemplateNotFoundError,
    VersionConflictError,
)
from partner_gates.schemas.partner import GateStatus
from partner_gates.schemas.qualification import QualificationPath
from partner_gates.schemas.submission import SectionResult, Signature, SubmissionStatus, UserRole
from partner_gates.services.onboarding import OnboardingService
from partner_gates.storage.memory import InMemoryBlobStore

PRE_CONTRACT = "pre-contract-pdm"
KICKOFF = "gate-0-kickoff"


@pytest.fixture
def acme(service):
    return service.register_partner("acme", "Acme Corp", tier="Tier 1")


@pytest.fixture
def pre_contract(service, two_sections):
    return service.save_template(PRE_CONTRACT, two_sections, "pdm@example.com").template


def submit(service, answers, questionnaire_id=PRE_CONTRACT, **kwargs):
    kwargs.setdefault("submitted_by", "pam@example.com")
    return service.submit_questionnaire("acme", questionnaire_id, answers, **kwargs)


class TestRegisterPartner:
    """Tests for register_partner."""

    def test_partner_starts_at_first_gate(self, service, acme):
        stored = service.partners.get("acme")
        assert stored.current_gate == "pre-contract"
        assert stored.tier == "Tier 1"

    def test_duplicate_partner(self, service, acme):
        with pytest.raises(VersionConflictError):
            service.register_partner("acme")


class TestSubmitQuestionnaire:
    """Tests for submit_questionnaire."""

    def test_passing_submission_passes_gate(self, service, acme, pre_contract):
        outcome = submit(service, {"field-a": "Yes", "field-b": "Yes"}, role=UserRole.PAM)

        assert outcome.submission.overall_status == SubmissionStatus.PASS
        assert outcome.submission.template_version == 1
        assert outcome.submission.gate_id == "pre-contract"
        assert outcome.submission.submitted_by_role == UserRole.PAM
        assert outcome.gate_progress.status == GateStatus.PASSED

        partner = service.partners.get("acme")
        assert partner.current_gate == "gate-0"
        assert partner.gates["pre-contract"].questionnaires == {PRE_CONTRACT: outcome.submission.id}

    def test_failing_submission_fails_gate(self, service, acme, pre_contract):
        outcome = submit(service, {"field-a": "Yes", "field-b": "No"})

        statuses = outcome.submission.section_statuses
        assert statuses["section-a"].result == SectionResult.PASS
        assert statuses["section-b"].result == SectionResult.FAIL
        assert statuses["section-b"].failure_reasons == ["Field B must be Yes"]
        assert outcome.gate_progress.status == GateStatus.FAILED
        assert outcome.gate_progress.blockers == [
            "Only 1 of 2 sections passed. All sections must pass to qualify."
        ]

    def test_resubmission_after_failure(self, service, acme, pre_contract):
        first = submit(service, {"field-a": "No", "field-b": "No"})
        second = submit(service, {"field-a": "Yes", "field-b": "Yes"})

        assert first.submission.id != second.submission.id
        progress = service.partners.get("acme").gates["pre-contract"]
        assert progress.status == GateStatus.PASSED
        assert progress.questionnaires[PRE_CONTRACT] == second.submission.id
        assert progress.blockers == []

    def test_passed_gate_rejects_resubmission(self, service, acme, pre_contract):
        submit(service, {"field-a": "Yes", "field-b": "Yes"})
        with pytest.raises(GateTransitionError):
            submit(service, {"field-a": "Yes", "field-b": "Yes"})

    def test_later_gate_is_locked(self, service, acme, make_yes_no_section):
        service.save_template(KICKOFF, [make_yes_no_section("s", "f", "S")], "pdm@example.com")
        with pytest.raises(GateAccessError) as exc_info:
            submit(service, {"f": "Yes"}, questionnaire_id=KICKOFF)
        assert "must be completed" in exc_info.value.blockers[0]
        assert service.submissions.list_all() == []

    def test_blocked_gate_rejects_submission(self, service, acme, pre_contract):
        service.block_gate("acme", "pre-contract", ["Awaiting NDA"])
        with pytest.raises(GateAccessError):
            submit(service, {"field-a": "Yes", "field-b": "Yes"})

    def test_unknown_partner(self, service, pre_contract):
        with pytest.raises(PartnerNotFoundError):
            submit(service, {"field-a": "Yes"})

    def test_unknown_template(self, service, acme):
        with pytest.raises(TemplateNotFoundError):
            submit(service, {}, questionnaire_id="nope")

    def test_questionnaire_without_gate(self, service, acme, two_sections):
        service.save_template("orphan", two_sections, "pdm@example.com")
        with pytest.raises(GateAccessError):
            submit(service, {}, questionnaire_id="orphan")

    def test_template_gate_id_takes_precedence(self, service, acme, two_sections):
        service.save_template("custom", two_sections, "pdm@example.com", gate_id="pre-contract")
        outcome = submit(service, {"field-a": "Yes", "field-b": "Yes"}, questionnaire_id="custom")
        assert outcome.submission.gate_id == "pre-contract"

    def test_removed_and_unknown_fields_are_dropped(self, service, acme, two_sections):
        two_sections[0]["fields"].append(
            {"id": "legacy", "type": "text", "label": "Legacy", "order": 5, "removed": True}
        )
        service.save_template(PRE_CONTRACT, two_sections, "pdm@example.com")
        outcome = submit(
            service, {"field-a": "Yes", "field-b": "Yes", "legacy": "old", "stray": 1}
        )
        assert outcome.submission.field_values() == {"field-a": "Yes", "field-b": "Yes"}

    def test_signature_is_stored(self, service, acme, pre_contract):
        signature = Signature.model_validate(
            {"type": "typed", "data": "Jo", "signerName": "Jo", "signerEmail": "jo@acme.com"}
        )
        outcome = submit(service, {"field-a": "Yes", "field-b": "Yes"}, signature=signature)
        stored = service.submissions.get(outcome.submission.id)
        assert stored.signature.signer_email == "jo@acme.com"

    def test_strategic_tier_check_applies_on_pre_contract(self, service, acme):
        tier_section = {
            "id": "strategic-classification",
            "title": "Strategic Classification",
            "fields": [
                {"id": "partner-tier", "type": "select", "label": "Tier", "options": ["Tier 0", "Tier 1"]},
                {"id": "ccv-amount", "type": "number", "label": "CCV"},
                {"id": "country-lrp", "type": "number", "label": "Country LRP"},
            ],
            "passFailCriteria": {"type": "automatic", "rules": []},
        }
        service.save_template(PRE_CONTRACT, [tier_section], "pdm@example.com")
        outcome = submit(
            service, {"partner-tier": "Tier 0", "ccv-amount": 10_000_000, "country-lrp": 20_000_000}
        )
        status = outcome.submission.section_statuses["strategic-classification"]
        assert status.result == SectionResult.FAIL
        assert status.failure_reasons == ["Tier 0 requires CCV ≥ $50M"]
        assert status.notes == "CCV is 50.00% of Country LRP"


class TestThresholdGate:
    """Tests for the gate-0 threshold rule through the service."""

    @pytest.fixture
    def kickoff(self, service, acme, make_yes_no_section):
        sections = [make_yes_no_section(f"s{i}", f"f{i}", f"Criterion {i}") for i in range(6)]
        sections[0]["fields"].append({"id": "ccv-amount", "type": "number", "label": "CCV", "order": 2})
        service.save_template(KICKOFF, sections, "pdm@example.com")
        service.approve_gate("acme", "pre-contract", "pdm@example.com", role=UserRole.PDM)

    def test_override_qualifies_with_no_passing_sections(self, service, kickoff):
        answers = {f"f{i}": "No" for i in range(6)}
        answers["ccv-amount"] = 50_000_000
        outcome = submit(service, answers, questionnaire_id=KICKOFF)

        assert outcome.qualification.path == QualificationPath.OVERRIDE
        assert outcome.submission.overall_status == SubmissionStatus.PASS
        assert service.partners.get("acme").current_gate == "gate-1"

    def test_below_minimum_fails(self, service, kickoff):
        answers = {f"f{i}": "Yes" if i < 3 else "No" for i in range(6)}
        answers["ccv-amount"] = 49_999_999
        outcome = submit(service, answers, questionnaire_id=KICKOFF)

        assert outcome.qualification.reason == (
            "Partner only meets 3 of 6 criteria. Minimum 4 required."
        )
        assert outcome.gate_progress.status == GateStatus.FAILED

    def test_minimum_met(self, service, kickoff):
        answers = {f"f{i}": "Yes" if i < 4 else "No" for i in range(6)}
        outcome = submit(service, answers, questionnaire_id=KICKOFF)
        assert outcome.qualification.path == QualificationPath.THRESHOLD
        assert outcome.gate_progress.status == GateStatus.PASSED


class TestManualReview:
    """Tests for adjudicating manually assessed sections."""

    @pytest.fixture
    def partial(self, service, acme, two_sections, manual_section):
        service.save_template(PRE_CONTRACT, [two_sections[0], manual_section], "pdm@example.com")
        return submit(service, {"field-a": "Yes", "review-notes": "Strong fit"})

    def test_pending_review_is_partial_and_gate_stays_open(self, partial):
        assert partial.submission.overall_status == SubmissionStatus.PARTIAL
        assert partial.submission.section_statuses["review"].result == SectionResult.PENDING
        assert partial.gate_progress.status == GateStatus.IN_PROGRESS

    def test_approving_review_passes_gate(self, service, partial):
        updated = service.adjudicate_section(
            partial.submission.id, "review", SectionResult.PASS, "pdm@example.com", notes="ok"
        )
        assert updated.overall_status == SubmissionStatus.PASS
        assert updated.section_statuses["review"].evaluated_by == "pdm@example.com"
        assert service.partners.get("acme").gates["pre-contract"].status == GateStatus.PASSED

    def test_rejecting_review_fails_gate(self, service, partial):
        updated = service.adjudicate_section(
            partial.submission.id, "review", SectionResult.FAIL, "pdm@example.com"
        )
        assert updated.section_statuses["review"].failure_reasons == [
            "Reviewer Assessment: Required criteria not met"
        ]
        assert service.partners.get("acme").gates["pre-contract"].status == GateStatus.FAILED

    def test_review_decision_survives_answer_edit(self, service, partial):
        reviewed = service.adjudicate_section(
            partial.submission.id, "review", SectionResult.FAIL, "pdm@example.com"
        )
        edited = service.edit_submission(
            partial.submission.id, {"review-notes": "Updated"}, reviewed.updated_at
        )
        assert edited.section_statuses["review"].result == SectionResult.FAIL

    def test_automatic_section_cannot_be_adjudicated(self, service, partial):
        with pytest.raises(PartnerGatesError, match="scored automatically"):
            service.adjudicate_section(
                partial.submission.id, "section-a", SectionResult.PASS, "pdm@example.com"
            )

    def test_pending_is_not_a_decision(self, service, partial):
        with pytest.raises(PartnerGatesError):
            service.adjudicate_section(
                partial.submission.id, "review", SectionResult.PENDING, "pdm@example.com"
            )

    def test_unknown_section(self, service, partial):
        with pytest.raises(PartnerGatesError, match="not part of submission"):
            service.adjudicate_section(
                partial.submission.id, "nope", SectionResult.PASS, "pdm@example.com"
            )

    def test_stale_basis(self, service, partial):
        service.edit_submission(partial.submission.id, {"review-notes": "v2"}, None)
        with pytest.raises(VersionConflictError):
            service.adjudicate_section(
                partial.submission.id,
                "review",
                SectionResult.PASS,
                "pdm@example.com",
                expected_updated_at=partial.submission.updated_at,
            )


class TestEditSubmission:
    """Tests for editing answers after a template change."""

    def test_edit_rescores_against_bound_version(self, service, acme, pre_contract, two_sections):
        outcome = submit(service, {"field-a": "Yes", "field-b": "No"})

        # v2 removes field-b and its section entirely
        service.save_template(PRE_CONTRACT, [two_sections[0]], "pdm@example.com")

        edited = service.edit_submission(
            outcome.submission.id, {"field-b": "Yes"}, outcome.submission.updated_at
        )
        assert edited.template_version == 1
        assert set(edited.section_statuses) == {"section-a", "section-b"}
        assert edited.overall_status == SubmissionStatus.PASS
        assert edited.updated_at > outcome.submission.updated_at

    def test_edit_does_not_reopen_failed_gate(self, service, acme, pre_contract):
        outcome = submit(service, {"field-a": "Yes", "field-b": "No"})
        service.edit_submission(outcome.submission.id, {"field-b": "Yes"}, None)
        assert service.partners.get("acme").gates["pre-contract"].status == GateStatus.FAILED

    def test_stale_edit_conflicts(self, service, acme, pre_contract):
        outcome = submit(service, {"field-a": "Yes", "field-b": "No"})
        service.edit_submission(outcome.submission.id, {"field-a": "No"}, outcome.submission.updated_at)
        with pytest.raises(VersionConflictError):
            service.edit_submission(
                outcome.submission.id, {"field-b": "Yes"}, outcome.submission.updated_at
            )


class TestGateOperations:
    """Tests for gate management through the service."""

    def test_evaluate_answers_stores_nothing(self, service, pre_contract):
        evaluation = service.evaluate_answers(PRE_CONTRACT, {"field-a": "Yes", "field-b": "No"})
        assert evaluation.overall == SubmissionStatus.FAIL
        assert evaluation.statuses["section-b"].failure_reasons == ["Field B must be Yes"]
        assert service.submissions.list_all() == []

    def test_gate_overview(self, service, acme, pre_contract):
        submit(service, {"field-a": "Yes", "field-b": "Yes"})
        overview = service.gate_overview("acme")

        assert [row.gate_id for row in overview] == service.config.gate_ids
        first, second = overview[0], overview[1]
        assert first.status == GateStatus.PASSED
        assert first.completion == 100
        assert second.is_current is True
        assert second.status == GateStatus.NOT_STARTED
        assert overview[2].blockers == [
            'Previous gate "Gate 0: Onboarding Kickoff" must be completed before progressing to gate-1'
        ]

    def test_block_and_unblock(self, service, acme):
        blocked = service.block_gate("acme", "pre-contract", ["Legal hold"])
        assert blocked.status == GateStatus.BLOCKED
        assert service.partners.get("acme").gates["pre-contract"].blockers == ["Legal hold"]

        reopened = service.unblock_gate("acme", "pre-contract")
        assert reopened.status == GateStatus.IN_PROGRESS

    def test_advance_gate_with_boolean(self, service, acme):
        service.start_gate("acme", "pre-contract")
        progress = service.advance_gate("acme", "pre-contract", False)
        assert progress.status == GateStatus.FAILED
        assert progress.blockers == ["Gate criteria not met"]

    def test_approve_gate_persists(self, service, acme):
        service.approve_gate("acme", "pre-contract", "pdm@example.com", role=UserRole.PDM)
        partner = service.partners.get("acme")
        assert partner.gates["pre-contract"].approvals[0].approved_by == "pdm@example.com"
        assert partner.current_gate == "gate-0"


class PartnerRenamingBlobStore(InMemoryBlobStore):
    """Rewrites the partner record right after the next submission is stored."""

    def __init__(self):
        super().__init__()
        self.armed = False

    def set(self, key, value, **kwargs):
        etag = super().set(key, value, **kwargs)
        if self.armed and key.startswith("submissions/"):
            self.armed = False
            partner = self.get("partners/acme")
            partner["partnerName"] = "Acme Renamed"
            super().set("partners/acme", partner)
        return etag


class TestSubmitConflict:
    """A partner update that loses its race must not leave a submission behind."""

    @pytest.fixture
    def racing(self, gates_config, two_sections):
        store = PartnerRenamingBlobStore()
        onboarding = OnboardingService(store, gates_config)
        onboarding.save_template(PRE_CONTRACT, two_sections, "pdm@example.com")
        onboarding.register_partner("acme", "Acme Corp")
        return onboarding, store

    def test_conflict_removes_new_submission(self, racing):
        onboarding, store = racing
        store.armed = True

        with pytest.raises(VersionConflictError):
            submit(onboarding, {"field-a": "Yes", "field-b": "Yes"})

        assert onboarding.submissions.list_by_partner("acme") == []
        partner = onboarding.partners.get("acme")
        assert partner.partner_name == "Acme Renamed"
        assert "pre-contract" not in partner.gates or not partner.gates["pre-contract"].questionnaires

    def test_retry_after_conflict_links_one_submission(self, racing):
        onboarding, store = racing
        store.armed = True
        with pytest.raises(VersionConflictError):
            submit(onboarding, {"field-a": "Yes", "field-b": "Yes"})

        outcome = submit(onboarding, {"field-a": "Yes", "field-b": "Yes"})

        stored = onboarding.submissions.list_by_partner("acme")
        assert [s.id for s in stored] == [outcome.submission.id]
        assert onboarding.partners.get("acme").gates["pre-contract"].status == GateStatus.PASSED


class TestRenderSubmission:
    """Rendering a submission after its template changed."""

    def test_field_removed_later_is_flagged(self, service, acme, pre_contract, two_sections):
        outcome = submit(service, {"field-a": "Yes", "field-b": "No"})
        revised = [dict(two_sections[0]), dict(two_sections[1])]
        revised[1]["fields"] = [dict(revised[1]["fields"][0], removed=True)]
        service.save_template(PRE_CONTRACT, revised, "pdm@example.com")

        rendered = service.render_submission(outcome.submission.id)

        field_a, field_b = rendered.sections[0].fields[0], rendered.sections[1].fields[0]
        assert (field_a.id, field_a.removed) == ("field-a", False)
        assert (field_b.id, field_b.removed, field_b.value) == ("field-b", True, "No")

    def test_field_dropped_from_template_is_flagged(self, service, acme, pre_contract, two_sections):
        outcome = submit(service, {"field-a": "Yes", "field-b": "No"})
        service.save_template(PRE_CONTRACT, [two_sections[0]], "pdm@example.com")

        rendered = service.render_submission(outcome.submission.id)

        assert [s.id for s in rendered.sections] == ["section-a", "section-b"]
        assert rendered.sections[1].fields[0].removed is True
        assert rendered.sections[1].fields[0].value == "No"

    def test_unchanged_template_flags_nothing(self, service, acme, pre_contract):
        outcome = submit(service, {"field-a": "Yes", "field-b": "No"})
        rendered = service.render_submission(outcome.submission.id)
        assert not any(f.removed for s in rendered.sections for f in s.fields)
