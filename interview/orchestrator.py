"""Turn orchestration: the only code path that mutates a session record."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from agents.decision_governor import GovernedDecision, govern, should_terminate
from agents.moderation_guard import GuardOutcome, screen_message
from agents.types import CriterionEvaluation, Evaluation, OverallEvaluation, Phase, PracticeFeedback
from config.settings import settings
from errors import ServiceUnavailable
from llm_gateway import LlmGatewayError
from observability.logger import log_event
from observability.tracing import span
from planner.context import PlannerContext
from planner.facade import ProviderFacade
from planner.results import Parsed
from storage.flags import ModerationFlagPayload
from storage.sessions import update_session

from .state import (
    Clock,
    DecisionLogEntry,
    SessionConfig,
    SessionRecord,
    SessionState,
    Turn,
    TurnMetadata,
    format_history,
    utc_now,
)

Saver = Callable[..., SessionRecord]

PRACTICE_FALLBACK = "Great answer! Let me ask you the next question..."
WRAP_UP_FALLBACK = (
    "Thank you for your time today. That brings us to the end of the interview; "
    "your evaluation will be ready shortly."
)
PHASE_FALLBACK_QUESTIONS = {
    "warmup": "Could you tell me a little about your background and what drew you to this role?",
    "behavioral": "Tell me about a time you had to handle a difficult situation at work. What did you do?",
    "technical": "Walk me through a technical problem you solved recently and the trade-offs you considered.",
    "system_design": "How would you design a system that has to scale to ten times its current traffic?",
    "product": "How do you decide which features to prioritise when resources are limited?",
    "wrap_up": "Is there anything else you would like to share before we finish?",
}
RESTATE_PREFIX = "Let me ask that again: "


def fallback_evaluation() -> Evaluation:
    """Neutral evaluation used when the planner's evaluation is unusable."""

    neutral = CriterionEvaluation(score=3, feedback="Not enough information to assess in detail.")
    return Evaluation(
        communication=neutral,
        technical_depth=neutral,
        problem_solving=neutral,
        overall=OverallEvaluation(
            score=3,
            recommendation="Maybe",
            strengths=["Participated in the interview"],
            improvements=["Could provide more detailed responses"],
            detailed_feedback=(
                "Thank you for completing the mock interview. "
                "Please review the conversation for areas of improvement."
            ),
        ),
    )


def format_feedback(feedback: PracticeFeedback) -> str:
    """Render practice feedback as the text shown to the candidate."""

    sections = [f"Your Score: {feedback.score:g}/5", f"Feedback: {feedback.feedback}"]
    if feedback.sample_answers:
        answers = "\n".join(f"{i}. {answer}" for i, answer in enumerate(feedback.sample_answers, start=1))
        sections.append(f"Sample Answers:\n{answers}")
    if feedback.improvements:
        sections.append("Improvements:\n" + "\n".join(f"• {item}" for item in feedback.improvements))
    sections.append(f"Next Question: {feedback.next_question}")
    return "\n\n".join(sections)


def opening_fallback(config: SessionConfig, candidate_name: Optional[str] = None) -> str:
    greeting = f"Hello {candidate_name}!" if candidate_name else "Hello!"
    return (
        f"{greeting} Welcome to your {config.seniority} {config.role} interview. "
        f"{PHASE_FALLBACK_QUESTIONS['warmup']}"
    )


@dataclass
class TurnOutcome:
    """Result of one processed candidate message."""

    turn: Turn
    state: SessionState
    evaluation: Optional[Evaluation] = None
    record: Optional[SessionRecord] = None
    flags: List[ModerationFlagPayload] = field(default_factory=list)


class TurnOrchestrator:
    """Runs the per-message pipeline and commits the result in a single write.

    Planner trouble never escapes this class: every planner call has a local
    fallback. Only persistence errors propagate, and those leave the stored
    record untouched.
    """

    def __init__(self, facade: ProviderFacade, *, clock: Clock = utc_now, save: Optional[Saver] = None):
        self.facade = facade
        self.clock = clock
        self.save = save or update_session

    def opening_turn(self, config: SessionConfig, candidate_name: Optional[str] = None) -> Turn:
        """First assistant turn of a new session."""

        try:
            content = self.facade.generate_opening(config, candidate_name)
        except (LlmGatewayError, ServiceUnavailable) as exc:
            log_event("planner.fallback", "-", level=logging.WARNING, node="opening", outcome=str(exc))
            content = opening_fallback(config, candidate_name)
        return Turn(
            role="assistant",
            content=content,
            timestamp=self.clock(),
            metadata=TurnMetadata(phase="warmup", action="OPENING"),
        )

    def handle(self, record: SessionRecord, text: str, *, client_message_id: Optional[str] = None) -> TurnOutcome:
        session_id = record.session_id
        expected_version = record.version
        working = record.model_copy(deep=True)
        now = self.clock()
        question = record.last_question()
        log_event("turn.start", session_id, phase=working.state.phase, version=expected_version)

        working.transcript.append(
            Turn(
                role="user",
                content=text,
                timestamp=now,
                metadata=TurnMetadata(phase=working.state.phase, client_message_id=client_message_id),
            )
        )
        working.state.questions_asked += 1
        working.state.last_activity = now

        with span(session_id, "moderation"):
            guard = screen_message(
                self.facade,
                text=text,
                question=question,
                recent_history=format_history(record.recent_turns(settings.RECENT_HISTORY_MESSAGES)),
                warning_count=record.warning_count,
            )

        flags: List[ModerationFlagPayload] = []
        feedback_score: Optional[float] = None
        next_question: Optional[str] = None
        finalize = False
        terminated = False

        if not guard.proceed:
            flags.append(guard.flag(session_id, working.state.phase, text))
            reply, action = self._apply_guard(working, guard, now)
            next_question = question if guard.action != "TERMINATE" else None
            terminated = guard.action == "TERMINATE"
        elif working.config.interview_mode == "practice":
            with span(session_id, "feedback"):
                reply, feedback_score, next_question = self._practice_turn(working, text, question, now)
            action = "FEEDBACK"
        else:
            with span(session_id, "planner"):
                reply, action, finalize = self._mock_turn(working, text, question, now)
            if action in ("REDIRECT", "CLARIFY", "MODERATE"):
                next_question = question

        assistant_turn = Turn(
            role="assistant",
            content=reply,
            timestamp=now,
            metadata=TurnMetadata(
                phase=working.state.phase,
                feedback_score=feedback_score,
                question=next_question,
                action=action,
            ),
        )
        working.transcript.append(assistant_turn)
        working.updated_at = now

        if not terminated:
            elapsed = working.state.elapsed_minutes(now)
            if finalize or should_terminate(
                elapsed, working.config.duration_minutes, working.state.questions_asked, working.state.phase
            ):
                # graded on the full transcript, closing reply included
                with span(session_id, "evaluation"):
                    working.evaluation = self._evaluate(working, now)
                self._freeze(working, now)
                assistant_turn.metadata.phase = working.state.phase

        with span(session_id, "persist"):
            stored = self.save(working, expected_version=expected_version, flags=flags)
        log_event(
            "turn.end",
            session_id,
            phase=stored.state.phase,
            action=action,
            outcome="completed" if not stored.state.is_active else "active",
            version=stored.version,
        )
        return TurnOutcome(
            turn=assistant_turn,
            state=stored.state,
            evaluation=stored.evaluation,
            record=stored,
            flags=flags,
        )

    def _apply_guard(self, working: SessionRecord, guard: GuardOutcome, now: datetime) -> Tuple[str, str]:
        working.decision_log.append(
            DecisionLogEntry(
                timestamp=now,
                action=guard.action,
                reasoning=guard.verdict.reason,
                context=f"severity={guard.verdict.severity} warnings={guard.warning_count}",
            )
        )
        log_event(
            "moderation.action",
            working.session_id,
            level=logging.WARNING,
            action=guard.action,
            severity=guard.verdict.severity,
            outcome="fallback" if guard.fallback else "planner",
        )
        if guard.action == "TERMINATE":
            self._freeze(working, now)
        return guard.message, guard.action

    def _practice_turn(
        self, working: SessionRecord, text: str, question: str, now: datetime
    ) -> Tuple[str, Optional[float], Optional[str]]:
        try:
            parsed = self.facade.generate_feedback(self._context(working, text, question, now))
        except ServiceUnavailable as exc:
            parsed = Parsed.failed("provider error", raw=str(exc))
        if not parsed.ok:
            reason = parsed.failure.reason if parsed.failure else "unknown"
            log_event("planner.fallback", working.session_id, level=logging.WARNING, node="feedback", outcome=reason)
            return PRACTICE_FALLBACK, None, None
        feedback = parsed.value
        return format_feedback(feedback), feedback.score, feedback.next_question

    def _mock_turn(self, working: SessionRecord, text: str, question: str, now: datetime) -> Tuple[str, str, bool]:
        state = working.state
        ctx = self._context(working, text, question, now)
        try:
            proposal = self.facade.propose_action(ctx)
        except ServiceUnavailable as exc:
            proposal = Parsed.failed("provider error", raw=str(exc))
        decision = govern(
            proposal,
            elapsed_minutes=ctx.elapsed_minutes,
            duration_minutes=working.config.duration_minutes,
            questions_asked=state.questions_asked,
            phase=state.phase,
        )
        self._log_decision(working, decision, now)

        if decision.next_phase is not None:
            state.phase = decision.next_phase

        try:
            reply = self.facade.generate_content(decision.action, ctx)
        except (LlmGatewayError, ServiceUnavailable) as exc:
            log_event(
                "planner.fallback",
                working.session_id,
                level=logging.WARNING,
                node="content",
                action=decision.action,
                outcome=str(exc),
            )
            reply = self._content_fallback(decision.action, state.phase, question)
        return reply, decision.action, decision.action == "WRAP_UP"

    def _log_decision(self, working: SessionRecord, decision: GovernedDecision, now: datetime) -> None:
        working.decision_log.append(
            DecisionLogEntry(timestamp=now, action=decision.action, reasoning=decision.reasoning, context=decision.context)
        )
        log_event(
            "planner.decision",
            working.session_id,
            phase=working.state.phase,
            action=decision.action,
            proposed=decision.proposed,
            overridden=decision.overridden,
            failed_thresholds=decision.failed_thresholds,
        )

    @staticmethod
    def _content_fallback(action: str, phase: Phase, question: str) -> str:
        if action in ("REDIRECT", "CLARIFY", "MODERATE"):
            return RESTATE_PREFIX + question
        if action == "WRAP_UP":
            return WRAP_UP_FALLBACK
        return PHASE_FALLBACK_QUESTIONS.get(phase, PHASE_FALLBACK_QUESTIONS["wrap_up"])

    def _evaluate(self, working: SessionRecord, now: datetime) -> Evaluation:
        ctx = self._context(working, "", working.last_question(), now)
        try:
            parsed = self.facade.generate_evaluation(ctx)
        except ServiceUnavailable:
            return fallback_evaluation()
        if not parsed.ok:
            reason = parsed.failure.reason if parsed.failure else "unknown"
            log_event("planner.fallback", working.session_id, level=logging.WARNING, node="evaluation", outcome=reason)
            return fallback_evaluation()
        return parsed.value

    @staticmethod
    def _context(working: SessionRecord, text: str, question: str, now: datetime) -> PlannerContext:
        return PlannerContext(
            config=working.config,
            phase=working.state.phase,
            questions_asked=working.state.questions_asked,
            elapsed_minutes=working.state.elapsed_minutes(now),
            last_question=question,
            last_response=text,
            recent_history=format_history(working.recent_turns(settings.PLANNER_CONTEXT_MESSAGES)),
            full_history=format_history(working.transcript),
            candidate_name=working.candidate_name,
            warning_count=working.warning_count,
        )

    @staticmethod
    def _freeze(working: SessionRecord, now: datetime) -> None:
        working.state.is_active = False
        working.state.end_time = now
        working.state.phase = "completed"


__all__ = [
    "PRACTICE_FALLBACK",
    "TurnOrchestrator",
    "TurnOutcome",
    "fallback_evaluation",
    "format_feedback",
    "opening_fallback",
]
