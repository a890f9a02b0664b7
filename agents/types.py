"""Shared type definitions for agents."""
from typing import List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator

Phase = Literal["setup", "warmup", "behavioral", "technical", "system_design", "product", "wrap_up", "completed"]
PlannerAction = Literal[
    "ASK_FOLLOWUP",
    "MOVE_NEXT",
    "CHANGE_PHASE",
    "CLARIFY",
    "WRAP_UP",
    "REDIRECT",
    "MODERATE",
]
GuardAction = Literal["TERMINATE", "MODERATE", "REDIRECT"]
Severity = Literal["low", "medium", "high"]
Recommendation = Literal["Strong Hire", "Hire", "Maybe", "No Hire"]


class PlannerDecision(BaseModel):
    """Next action proposed by the planner."""

    decision: PlannerAction = Field(validation_alias=AliasChoices("decision", "action"))
    reasoning: str = ""
    context: str = ""


class ModerationVerdict(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    is_appropriate: bool = Field(alias="isAppropriate")
    is_on_topic: bool = Field(default=True, alias="isOnTopic")
    contains_profanity: bool = Field(default=False, alias="containsProfanity")
    is_abusive: bool = Field(default=False, alias="isAbusive")
    severity: Severity = "low"
    reason: str = "Response appears appropriate"
    flagged_words: List[str] = Field(default_factory=list, alias="flaggedWords")

    @model_validator(mode="after")
    def _fold_abuse(self) -> "ModerationVerdict":
        # Abuse counts as profanity; either makes the turn inappropriate.
        if self.is_abusive:
            self.contains_profanity = True
        if self.contains_profanity:
            self.is_appropriate = False
        return self


class PracticeFeedback(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    score: float = Field(ge=0.0, le=5.0)
    feedback: str
    sample_answers: List[str] = Field(default_factory=list, alias="sampleAnswers")
    improvements: List[str] = Field(default_factory=list)
    next_question: str = Field(alias="nextQuestion", min_length=1)


class CriterionEvaluation(BaseModel):
    score: float = Field(ge=0.0, le=5.0)
    feedback: str


class OverallEvaluation(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    score: float = Field(ge=0.0, le=5.0)
    recommendation: Recommendation
    strengths: List[str] = Field(default_factory=list)
    improvements: List[str] = Field(default_factory=list)
    detailed_feedback: str = Field(default="", alias="detailedFeedback")


class Evaluation(BaseModel):
    """Final structured evaluation of a completed session."""

    model_config = ConfigDict(populate_by_name=True)

    communication: Optional[CriterionEvaluation] = None
    technical_depth: Optional[CriterionEvaluation] = Field(default=None, alias="technicalDepth")
    problem_solving: Optional[CriterionEvaluation] = Field(default=None, alias="problemSolving")
    leadership: Optional[CriterionEvaluation] = None
    overall: OverallEvaluation
