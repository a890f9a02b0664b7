"""Snapshot of session facts handed to the planner for one call."""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel

from agents.types import Phase
from interview.state import SessionConfig


class PlannerContext(BaseModel):
    config: SessionConfig
    phase: Phase
    questions_asked: int = 0
    elapsed_minutes: float = 0.0
    last_question: str = ""
    last_response: str = ""
    recent_history: str = ""
    full_history: str = ""
    candidate_name: Optional[str] = None
    warning_count: int = 0

    @property
    def remaining_minutes(self) -> float:
        return self.config.duration_minutes - self.elapsed_minutes


__all__ = ["PlannerContext"]
