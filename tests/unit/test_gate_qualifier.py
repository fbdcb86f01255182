"""Unit tests for gate qualification and overall submission status."""

import pytest

from partner_gates.config.gates import GatesConfig
from partner_gates.evaluation.gate_qualifier import (
    overall_status,
    qualification_config_for,
    qualify_gate,
)
from partner_gates.schemas.qualification import QualificationPath
from partner_gates.schemas.submission import SectionResult, SectionStatus, SubmissionStatus

OVERRIDE_REASON = "Tier 0 partner (CCV ≥ $50M) automatically qualifies for white-glove onboarding"


def statuses(*results):
    return {f"s{i}": SectionStatus(result=SectionResult(r)) for i, r in enumerate(results)}


class TestAllSectionsMode:
    """Tests for gates requiring every section to pass."""

    def test_all_pass(self, gates_config):
        result = qualify_gate("pre-contract", statuses("pass", "pass"), config=gates_config)
        assert result.qualifies is True
        assert result.reason == "All 2 sections passed"
        assert result.path == QualificationPath.ALL_SECTIONS
        assert result.required_sections == 2

    def test_one_failure_blocks(self, gates_config):
        result = qualify_gate("gate-1", statuses("pass", "fail"), config=gates_config)
        assert result.qualifies is False
        assert result.reason == "Only 1 of 2 sections passed. All sections must pass to qualify."
        assert result.passed_sections == 1
        assert result.total_sections == 2

    def test_pending_section_blocks(self, gates_config):
        result = qualify_gate("gate-2", statuses("pass", "pending"), config=gates_config)
        assert result.qualifies is False

    def test_unknown_gate_uses_all_sections(self, gates_config, caplog):
        result = qualify_gate("gate-99", statuses("pass"), config=gates_config)
        assert result.qualifies is True
        assert result.path == QualificationPath.ALL_SECTIONS
        assert "Unknown gate 'gate-99'" in caplog.text


class TestThresholdMode:
    """Tests for the gate-0 threshold rule and CCV override."""

    def test_minimum_met(self, gates_config):
        result = qualify_gate(
            "gate-0", statuses("pass", "pass", "pass", "pass", "fail", "fail"), config=gates_config
        )
        assert result.qualifies is True
        assert result.path == QualificationPath.THRESHOLD
        assert result.reason == "Partner meets 4 of 6 criteria (minimum 4 required)"

    def test_one_below_minimum(self, gates_config):
        result = qualify_gate(
            "gate-0", statuses("pass", "pass", "pass", "fail", "fail", "fail"), config=gates_config
        )
        assert result.qualifies is False
        assert result.reason == "Partner only meets 3 of 6 criteria. Minimum 4 required."
        assert result.required_sections == 4

    def test_override_at_exact_threshold(self, gates_config):
        result = qualify_gate(
            "gate-0",
            statuses("fail", "fail", "fail", "fail", "fail", "fail"),
            {"ccv-amount": 50_000_000},
            config=gates_config,
        )
        assert result.qualifies is True
        assert result.path == QualificationPath.OVERRIDE
        assert result.reason == OVERRIDE_REASON

    def test_override_one_below_threshold(self, gates_config):
        result = qualify_gate(
            "gate-0",
            statuses("pass", "pass", "pass", "fail", "fail", "fail"),
            {"ccv-amount": 49_999_999},
            config=gates_config,
        )
        assert result.qualifies is False
        assert result.path == QualificationPath.THRESHOLD

    def test_override_reads_numeric_strings(self, gates_config):
        result = qualify_gate(
            "gate-0", statuses("fail"), {"ccv-amount": "75000000"}, config=gates_config
        )
        assert result.path == QualificationPath.OVERRIDE

    def test_non_numeric_override_field_is_ignored(self, gates_config):
        result = qualify_gate(
            "gate-0", statuses("fail"), {"ccv-amount": "lots"}, config=gates_config
        )
        assert result.qualifies is False
        assert result.path == QualificationPath.THRESHOLD

    def test_override_only_applies_where_configured(self, gates_config):
        result = qualify_gate(
            "gate-1", statuses("fail"), {"ccv-amount": 90_000_000}, config=gates_config
        )
        assert result.qualifies is False

    def test_threshold_without_override(self):
        config = GatesConfig.model_validate(
            {
                "gates": [
                    {
                        "id": "g",
                        "qualification": {"mode": "threshold", "minimumPassingSections": 1},
                    }
                ]
            }
        )
        assert qualification_config_for("g", config).override is None
        assert qualify_gate("g", statuses("pass", "fail"), config=config).qualifies is True


class TestOverallStatus:
    """Tests for the submission-level outcome."""

    def test_qualifying_is_pass(self, gates_config):
        section_statuses = statuses("pass", "pass")
        result = qualify_gate("pre-contract", section_statuses, config=gates_config)
        assert overall_status(result, section_statuses) == SubmissionStatus.PASS

    def test_failure_is_fail(self, gates_config):
        section_statuses = statuses("pass", "fail", "pending")
        result = qualify_gate("pre-contract", section_statuses, config=gates_config)
        assert overall_status(result, section_statuses) == SubmissionStatus.FAIL

    def test_pending_review_is_partial(self, gates_config):
        section_statuses = statuses("pass", "pending")
        result = qualify_gate("pre-contract", section_statuses, config=gates_config)
        assert overall_status(result, section_statuses) == SubmissionStatus.PARTIAL

    @pytest.mark.parametrize(
        "results,expected",
        [
            (("pass", "pass", "pending", "pending", "fail", "fail"), SubmissionStatus.PARTIAL),
            (("pass", "pending", "pending", "fail", "fail", "fail"), SubmissionStatus.FAIL),
        ],
    )
    def test_threshold_partial_only_when_reviews_can_reach_minimum(
        self, gates_config, results, expected
    ):
        section_statuses = statuses(*results)
        result = qualify_gate("gate-0", section_statuses, config=gates_config)
        assert overall_status(result, section_statuses) == expected
