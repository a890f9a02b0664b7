"""Pydantic schemas for the interview session API."""
from __future__ import annotations

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from agents.types import Evaluation
from interview.state import SessionState, Turn


class CreateSessionReq(BaseModel):
    role: str
    seniority: str
    interview_types: List[str]
    company: Optional[str] = None
    job_description: Optional[str] = None
    duration_minutes: Optional[int] = None
    question_familiarity: Literal["known", "mixed", "unique"] = "mixed"
    interview_mode: Literal["practice", "mock"] = "mock"
    candidate_name: Optional[str] = None
    candidate_email: Optional[str] = None

    def config_payload(self) -> Dict[str, object]:
        return self.model_dump(exclude={"candidate_name", "candidate_email"}, exclude_none=True)


class MessageReq(BaseModel):
    session_id: str
    message: str
    client_message_id: Optional[str] = Field(default=None, max_length=128)


class CreateSessionResp(BaseModel):
    session_id: str
    first_turn: Turn
    state: SessionState


class TurnResp(BaseModel):
    session_id: str
    turn: Turn
    state: SessionState
    evaluation: Optional[Evaluation] = None


class HealthResp(BaseModel):
    status: Literal["healthy", "degraded"]
    active_provider: Optional[str] = None
    reachable: bool
    timestamp: str


class RoleOptions(BaseModel):
    seniorities: List[str] = Field(default_factory=list)
    interview_types: List[str] = Field(default_factory=list)
