"""Gate progression for partner onboarding."""

from partner_gates.progression.state_machine import (
    ALLOWED_TRANSITIONS,
    GateStateMachine,
    can_transition,
    initialize_gate_progress,
    transition,
)

__all__ = [
    "ALLOWED_TRANSITIONS",
    "GateStateMachine",
    "can_transition",
    "initialize_gate_progress",
    "transition",
]
