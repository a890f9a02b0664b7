"""Tests for the decision governor and hard termination rule."""
from __future__ import annotations

import pytest

from agents.decision_governor import govern, max_questions, should_terminate, wrap_up_thresholds
from agents.types import PlannerDecision
from planner.results import Parsed


def _proposal(action: str) -> Parsed[PlannerDecision]:
    return Parsed.success(PlannerDecision(decision=action, reasoning="planner says so", context="ctx"))


def test_wrap_up_on_first_turn_is_demoted():
    result = govern(_proposal("WRAP_UP"), elapsed_minutes=1, duration_minutes=30, questions_asked=1, phase="warmup")

    assert result.action == "MOVE_NEXT"
    assert result.overridden is True
    assert result.proposed == "WRAP_UP"
    assert len(result.failed_thresholds) == 2
    assert "WRAP_UP overridden" in result.reasoning
    assert result.next_phase is None


def test_wrap_up_records_only_the_failed_threshold():
    result = govern(_proposal("WRAP_UP"), elapsed_minutes=25, duration_minutes=30, questions_asked=2, phase="technical")

    assert result.action == "MOVE_NEXT"
    assert result.failed_thresholds == ["questions 2 < 6"]


def test_wrap_up_honored_when_both_thresholds_met():
    result = govern(_proposal("WRAP_UP"), elapsed_minutes=24, duration_minutes=30, questions_asked=6, phase="product")

    assert result.action == "WRAP_UP"
    assert result.overridden is False
    assert result.next_phase == "wrap_up"


def test_change_phase_is_always_honored():
    result = govern(_proposal("CHANGE_PHASE"), elapsed_minutes=0, duration_minutes=30, questions_asked=1, phase="warmup")

    assert result.action == "CHANGE_PHASE"
    assert result.next_phase == "behavioral"


@pytest.mark.parametrize("action", ["ASK_FOLLOWUP", "MOVE_NEXT", "CLARIFY", "REDIRECT", "MODERATE"])
def test_other_actions_pass_through(action):
    result = govern(_proposal(action), elapsed_minutes=3, duration_minutes=30, questions_asked=2, phase="behavioral")

    assert result.action == action
    assert result.reasoning == "planner says so"
    assert result.overridden is False


def test_parse_failure_defaults_to_move_next_with_truncated_raw():
    raw = "x" * 500
    result = govern(
        Parsed.failed("parse failure", raw=raw),
        elapsed_minutes=3,
        duration_minutes=30,
        questions_asked=2,
        phase="behavioral",
    )

    assert result.action == "MOVE_NEXT"
    assert result.reasoning == "parse failure"
    assert len(result.context) == 200


@pytest.mark.parametrize("duration, expected", [(30, 7), (10, 6), (20, 6), (48, 12), (120, 12), (40, 10)])
def test_max_questions_is_clamped(duration, expected):
    assert max_questions(duration) == expected


def test_wrap_up_thresholds():
    limits = wrap_up_thresholds(30)
    assert limits.min_elapsed == pytest.approx(24.0)
    assert limits.min_questions == 6
    assert wrap_up_thresholds(10).min_questions == 3


def test_should_terminate_on_each_condition():
    assert should_terminate(30, 30, 1, "warmup")
    assert should_terminate(5, 30, 7, "warmup")
    assert should_terminate(5, 30, 1, "completed")
    assert not should_terminate(5, 30, 6, "technical")
