"""Gate configuration schema and loader.

Gates form a strict linear order. Each gate names the questionnaires that
guard it, how its sections are turned into a qualification decision, and
any extra named checks to run on particular sections.

Configuration is read from YAML. Resolution order:

1. An explicit path passed to :func:`load_gate_config`.
2. The ``PARTNER_GATES_CONFIG`` environment variable.
3. The ``gates.yaml`` bundled with this package.
"""

import logging
import os
from pathlib import Path
from typing import Dict, List, Literal, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "PARTNER_GATES_CONFIG"
DEFAULT_CONFIG_PATH = Path(__file__).parent / "gates.yaml"


class OverrideRule(BaseModel):
    """Numeric field that qualifies a gate outright once it reaches a threshold.

    Attributes:
        field_id: Submission field holding the number.
        threshold: Inclusive lower bound.
        reason: Reason reported when the override fires.
    """

    model_config = ConfigDict(populate_by_name=True)

    field_id: str = Field(..., alias="fieldId", min_length=1)
    threshold: float = Field(..., description="Inclusive lower bound")
    reason: str = Field(
        default="Override threshold reached",
        description="Qualification reason when the override applies",
    )


class QualificationConfig(BaseModel):
    """How section results turn into a gate qualification decision."""

    model_config = ConfigDict(populate_by_name=True)

    mode: Literal["all_sections", "threshold"] = Field(
        default="all_sections",
        description="all_sections requires every section to pass",
    )
    minimum_passing_sections: Optional[int] = Field(
        default=None,
        alias="minimumPassingSections",
        ge=0,
        description="Required for threshold mode",
    )
    override: Optional[OverrideRule] = Field(
        default=None,
        description="Optional bypass of the section count",
    )

    @model_validator(mode="after")
    def check_threshold_settings(self) -> "QualificationConfig":
        if self.mode == "threshold" and self.minimum_passing_sections is None:
            raise ValueError("threshold qualification requires minimumPassingSections")
        return self


class GateConfig(BaseModel):
    """One gate of the onboarding journey."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., min_length=1)
    name: str = Field(default="", description="Display label")
    description: Optional[str] = None
    questionnaires: List[str] = Field(
        default_factory=list,
        description="Questionnaire ids that must pass for the gate to complete",
    )
    qualification: QualificationConfig = Field(default_factory=QualificationConfig)
    section_checks: Dict[str, List[str]] = Field(
        default_factory=dict,
        alias="sectionChecks",
        description="Section id -> named checks run after its rules",
    )

    @property
    def label(self) -> str:
        return self.name or self.id


class GatesConfig(BaseModel):
    """Ordered gate definitions."""

    gates: List[GateConfig] = Field(..., min_length=1)

    @field_validator("gates")
    @classmethod
    def validate_unique_ids(cls, v: List[GateConfig]) -> List[GateConfig]:
        """Validate gate ids are unique."""
        seen = set()
        for gate in v:
            if gate.id in seen:
                raise ValueError(f"Duplicate gate id '{gate.id}'")
            seen.add(gate.id)
        return v

    @property
    def gate_ids(self) -> List[str]:
        return [g.id for g in self.gates]

    def get_gate(self, gate_id: str) -> Optional[GateConfig]:
        for gate in self.gates:
            if gate.id == gate_id:
                return gate
        return None

    def index_of(self, gate_id: str) -> int:
        """Position of a gate in the order, or -1 when unknown."""
        try:
            return self.gate_ids.index(gate_id)
        except ValueError:
            return -1

    def previous_gate(self, gate_id: str) -> Optional[str]:
        index = self.index_of(gate_id)
        if index <= 0:
            return None
        return self.gates[index - 1].id

    def next_gate(self, gate_id: str) -> Optional[str]:
        index = self.index_of(gate_id)
        if index < 0 or index >= len(self.gates) - 1:
            return None
        return self.gates[index + 1].id

    def gate_for_questionnaire(self, questionnaire_id: str) -> Optional[GateConfig]:
        """Find the gate a questionnaire belongs to."""
        for gate in self.gates:
            if questionnaire_id in gate.questionnaires:
                return gate
        return None


def resolve_config_path(config_path: Optional[Path] = None) -> Path:
    if config_path is not None:
        return Path(config_path)
    env_path = os.getenv(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path)
    return DEFAULT_CONFIG_PATH


def load_gate_config(config_path: Optional[Path] = None) -> GatesConfig:
    """Load gate configuration from YAML file.

    Args:
        config_path: Optional explicit path to a gates YAML file.

    Returns:
        Validated GatesConfig.

    Raises:
        ValueError: If the file is missing, empty, or invalid.
    """
    path = resolve_config_path(config_path)

    if not path.exists():
        raise ValueError(f"Gate config not found at {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in gate config {path}: {e}") from e

    if data is None:
        raise ValueError(f"Empty gate config at {path}")

    try:
        config = GatesConfig.model_validate(data)
    except ValueError as e:
        raise ValueError(f"Failed to load gate config from {path}: {e}") from e

    logger.debug(f"Loaded {len(config.gates)} gates from {path}")
    return config


# Cached gate config (loaded once per session)
_cached_config: Optional[GatesConfig] = None


def get_gate_config(force_reload: bool = False) -> GatesConfig:
    """Get the active gate configuration (cached).

    Args:
        force_reload: If True, reload from disk even if cached.
    """
    global _cached_config

    if force_reload or _cached_config is None:
        _cached_config = load_gate_config()

    return _cached_config


def reset_gate_config_cache() -> None:
    """Reset the gate config cache.

    Call this after changing PARTNER_GATES_CONFIG so the next lookup rereads it.
    """
    global _cached_config
    _cached_config = None
