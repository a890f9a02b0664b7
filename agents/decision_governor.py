"""Decision governor: bounds what the planner is allowed to do."""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import List, Optional

from agents.phases import next_phase
from agents.types import Phase, PlannerAction, PlannerDecision
from config.settings import settings
from planner.results import Parsed

WRAP_UP_TIME_FRACTION = 0.8
MIN_QUESTION_CAP = 6
MAX_QUESTION_CAP = 12


@dataclass(frozen=True)
class WrapUpThresholds:
    min_elapsed: float
    min_questions: int


@dataclass(frozen=True)
class GovernedDecision:
    """Action the orchestrator will execute, with the planner's proposal kept for audit."""

    action: PlannerAction
    reasoning: str
    context: str
    proposed: Optional[str] = None
    overridden: bool = False
    failed_thresholds: List[str] = field(default_factory=list)
    next_phase: Optional[Phase] = None


def wrap_up_thresholds(duration_minutes: float) -> WrapUpThresholds:
    return WrapUpThresholds(
        min_elapsed=WRAP_UP_TIME_FRACTION * duration_minutes,
        min_questions=max(3, math.ceil(duration_minutes / 5)),
    )


def max_questions(duration_minutes: float) -> int:
    """Question cap after which the session ends regardless of the planner."""

    return max(MIN_QUESTION_CAP, min(MAX_QUESTION_CAP, math.floor(duration_minutes / 4)))


def should_terminate(elapsed_minutes: float, duration_minutes: float, questions_asked: int, phase: str) -> bool:
    return (
        elapsed_minutes >= duration_minutes
        or questions_asked >= max_questions(duration_minutes)
        or phase == "completed"
    )


def govern(
    parsed: Parsed[PlannerDecision],
    *,
    elapsed_minutes: float,
    duration_minutes: float,
    questions_asked: int,
    phase: Phase,
) -> GovernedDecision:
    """Turn a planner proposal into the action that will actually run."""

    if not parsed.ok:
        raw = parsed.failure.truncated_raw(settings.RAW_CONTEXT_CHARS) if parsed.failure else ""
        return GovernedDecision(action="MOVE_NEXT", reasoning="parse failure", context=raw, overridden=True)

    decision = parsed.value
    action = decision.decision
    if action == "WRAP_UP":
        limits = wrap_up_thresholds(duration_minutes)
        failed: List[str] = []
        if elapsed_minutes < limits.min_elapsed:
            failed.append(f"elapsed {elapsed_minutes:.1f} < {limits.min_elapsed:.1f} minutes")
        if questions_asked < limits.min_questions:
            failed.append(f"questions {questions_asked} < {limits.min_questions}")
        if failed:
            return GovernedDecision(
                action="MOVE_NEXT",
                reasoning=f"WRAP_UP overridden: {'; '.join(failed)}",
                context=decision.context,
                proposed=action,
                overridden=True,
                failed_thresholds=failed,
            )
        return GovernedDecision(
            action=action,
            reasoning=decision.reasoning,
            context=decision.context,
            proposed=action,
            next_phase="wrap_up",
        )
    if action == "CHANGE_PHASE":
        return GovernedDecision(
            action=action,
            reasoning=decision.reasoning,
            context=decision.context,
            proposed=action,
            next_phase=next_phase(phase),
        )
    return GovernedDecision(action=action, reasoning=decision.reasoning, context=decision.context, proposed=action)


__all__ = [
    "GovernedDecision",
    "WrapUpThresholds",
    "govern",
    "max_questions",
    "should_terminate",
    "wrap_up_thresholds",
]
