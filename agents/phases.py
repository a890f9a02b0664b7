"""Fixed interview phase ordering."""
from __future__ import annotations

from typing import Tuple

from agents.types import Phase

PHASE_ORDER: Tuple[Phase, ...] = (
    "setup",
    "warmup",
    "behavioral",
    "technical",
    "system_design",
    "product",
    "wrap_up",
    "completed",
)
# Phases reachable through planner-driven transitions.
INTERVIEW_PHASES: Tuple[Phase, ...] = ("warmup", "behavioral", "technical", "system_design", "product", "wrap_up")


def next_phase(phase: str) -> Phase:
    """Return the phase after ``phase``; ``wrap_up`` is terminal for transitions."""

    if phase not in INTERVIEW_PHASES:
        return "wrap_up"
    index = INTERVIEW_PHASES.index(phase)
    if index + 1 >= len(INTERVIEW_PHASES):
        return "wrap_up"
    return INTERVIEW_PHASES[index + 1]


def phase_rank(phase: str) -> int:
    return PHASE_ORDER.index(phase)


__all__ = ["INTERVIEW_PHASES", "PHASE_ORDER", "next_phase", "phase_rank"]
