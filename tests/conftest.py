"""
Pytest fixtures shared by the partner gates test suite.
Provides gate configs, in-memory stores and sample questionnaire sections.
"""

from datetime import datetime, timezone

import pytest

from partner_gates.config.gates import (
    CONFIG_ENV_VAR,
    DEFAULT_CONFIG_PATH,
    GatesConfig,
    load_gate_config,
    reset_gate_config_cache,
)
from partner_gates.services.onboarding import OnboardingService
from partner_gates.startup import DATA_DIR_ENV_VAR, reset_state
from partner_gates.storage.memory import InMemoryBlobStore


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch):
    """Use the bundled gate config and forget cached state around each test."""
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    monkeypatch.delenv(DATA_DIR_ENV_VAR, raising=False)
    reset_gate_config_cache()
    reset_state()
    yield
    reset_gate_config_cache()
    reset_state()


@pytest.fixture
def fixed_now():
    return datetime(2025, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def gates_config() -> GatesConfig:
    """The bundled six-gate journey."""
    return load_gate_config(DEFAULT_CONFIG_PATH)


@pytest.fixture
def simple_gates() -> GatesConfig:
    """Two all-sections gates followed by a gate without questionnaires."""
    return GatesConfig.model_validate(
        {
            "gates": [
                {"id": "alpha", "name": "Alpha", "questionnaires": ["alpha-q"]},
                {"id": "beta", "name": "Beta", "questionnaires": ["beta-q1", "beta-q2"]},
                {"id": "done", "name": "Done", "questionnaires": []},
            ]
        }
    )


@pytest.fixture
def blob_store() -> InMemoryBlobStore:
    return InMemoryBlobStore()


@pytest.fixture
def service(blob_store, gates_config) -> OnboardingService:
    return OnboardingService(blob_store, gates_config)


def yes_no_section(section_id: str, field_id: str, title: str, message=None) -> dict:
    """Automatic section passing only when its single select field is 'Yes'."""
    rule = {"fieldId": field_id, "operator": "equals", "value": "Yes"}
    if message:
        rule["failureMessage"] = message
    return {
        "id": section_id,
        "title": title,
        "fields": [
            {
                "id": field_id,
                "type": "select",
                "label": f"{title} confirmed?",
                "options": ["Yes", "No"],
                "order": 1,
            }
        ],
        "passFailCriteria": {"type": "automatic", "rules": [rule]},
    }


@pytest.fixture
def make_yes_no_section():
    return yes_no_section


@pytest.fixture
def two_sections() -> list:
    """Sections A and B, each requiring its field to be 'Yes'."""
    return [
        yes_no_section("section-a", "field-a", "Section A", "Field A must be Yes"),
        yes_no_section("section-b", "field-b", "Section B", "Field B must be Yes"),
    ]


@pytest.fixture
def manual_section() -> dict:
    return {
        "id": "review",
        "title": "Reviewer Assessment",
        "fields": [{"id": "review-notes", "type": "textarea", "label": "Notes", "order": 1}],
        "passFailCriteria": {"type": "manual"},
    }
