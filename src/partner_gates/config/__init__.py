"""Configuration loading for partner_gates."""

from partner_gates.config.gates import (
    CONFIG_ENV_VAR,
    GateConfig,
    GatesConfig,
    OverrideRule,
    QualificationConfig,
    get_gate_config,
    load_gate_config,
    reset_gate_config_cache,
)

__all__ = [
    "CONFIG_ENV_VAR",
    "GateConfig",
    "GatesConfig",
    "OverrideRule",
    "QualificationConfig",
    "get_gate_config",
    "load_gate_config",
    "reset_gate_config_cache",
]
