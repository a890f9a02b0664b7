"""Serializable session record tracked across interview turns."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from agents.types import Evaluation, Phase

Clock = Callable[[], datetime]
Role = Literal["user", "assistant", "system"]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SessionConfig(BaseModel):
    """Interview setup chosen by the candidate; immutable after creation."""

    model_config = ConfigDict(frozen=True)

    role: str
    seniority: str
    interview_types: List[str] = Field(min_length=1)
    company: Optional[str] = None
    job_description: Optional[str] = None
    duration_minutes: int = Field(default=30, gt=0)
    question_familiarity: Literal["known", "mixed", "unique"] = "mixed"
    interview_mode: Literal["practice", "mock"] = "mock"

    @field_validator("interview_types")
    @classmethod
    def _dedupe_types(cls, value: List[str]) -> List[str]:
        seen: List[str] = []
        for item in value:
            item = item.strip()
            if item and item not in seen:
                seen.append(item)
        if not seen:
            raise ValueError("at least one interview type is required")
        return seen


class SessionState(BaseModel):
    phase: Phase = "warmup"
    questions_asked: int = Field(default=0, ge=0)
    start_time: datetime
    last_activity: datetime
    end_time: Optional[datetime] = None
    is_active: bool = True

    def elapsed_minutes(self, now: datetime) -> float:
        return max(0.0, (now - self.start_time).total_seconds() / 60.0)


class TurnMetadata(BaseModel):
    phase: Optional[Phase] = None
    feedback_score: Optional[float] = None
    question: Optional[str] = None
    action: Optional[str] = None
    client_message_id: Optional[str] = None


class Turn(BaseModel):
    role: Role
    content: str
    timestamp: datetime
    metadata: Optional[TurnMetadata] = None


class DecisionLogEntry(BaseModel):
    timestamp: datetime
    action: str
    reasoning: str = ""
    context: str = ""


class SessionRecord(BaseModel):
    """Full persisted state of one interview session."""

    session_id: str
    candidate_name: Optional[str] = None
    candidate_email: Optional[str] = None
    config: SessionConfig
    state: SessionState
    transcript: List[Turn] = Field(default_factory=list)
    decision_log: List[DecisionLogEntry] = Field(default_factory=list)
    evaluation: Optional[Evaluation] = None
    version: int = 0
    created_at: datetime
    updated_at: datetime

    @property
    def warning_count(self) -> int:
        return sum(1 for entry in self.decision_log if entry.action == "MODERATE")

    def last_question(self) -> str:
        """Most recent question the assistant posed to the candidate."""

        for turn in reversed(self.transcript):
            if turn.role != "assistant":
                continue
            if turn.metadata and turn.metadata.question:
                return turn.metadata.question
            return turn.content
        return "Previous question"

    def recent_turns(self, limit: int) -> List[Turn]:
        if limit <= 0:
            return []
        return list(self.transcript[-limit:])

    def find_reply_to(self, client_message_id: str) -> Optional[Turn]:
        """Return the assistant turn recorded right after the tagged user message."""

        for index, turn in enumerate(self.transcript):
            meta = turn.metadata
            if turn.role == "user" and meta and meta.client_message_id == client_message_id:
                for later in self.transcript[index + 1 :]:
                    if later.role == "assistant":
                        return later
                return None
        return None


def format_history(turns: List[Turn]) -> str:
    """Render turns as ``Candidate:``/``Interviewer:`` lines for prompts."""

    lines = []
    for turn in turns:
        speaker = "Candidate" if turn.role == "user" else "Interviewer"
        lines.append(f"{speaker}: {turn.content}")
    return "\n".join(lines)


__all__ = [
    "Clock",
    "DecisionLogEntry",
    "SessionConfig",
    "SessionRecord",
    "SessionState",
    "Turn",
    "TurnMetadata",
    "format_history",
    "utc_now",
]
