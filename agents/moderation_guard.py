"""Moderation guard screening every candidate message before planning."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from agents.types import GuardAction, ModerationVerdict
from config.settings import settings
from errors import ServiceUnavailable
from planner.facade import ProviderFacade
from storage.flags import ModerationFlagPayload

TERMINATE_MESSAGE = (
    "I need to end our interview session here. Professional communication is required "
    "for interview practice. Thank you for your time."
)
WARNING_MESSAGE = (
    "I need you to maintain professional communication during our interview. "
    "This is your first warning. Let's continue professionally.\n\n"
    "Let me repeat the question: {question}"
)
REDIRECT_MESSAGE = (
    "I notice your response isn't directly addressing the question I asked. "
    "Let me help redirect our conversation.\n\n"
    "The question was: {question}\n\n"
    "Could you please provide a response that specifically addresses this question "
    "about your professional experience?"
)
# Warnings at which the session is ended instead of warned again.
TERMINATE_AT = 2


@dataclass(frozen=True)
class GuardOutcome:
    """Verdict plus the escalation it triggered; ``action`` is None to proceed."""

    verdict: ModerationVerdict
    action: Optional[GuardAction] = None
    message: str = ""
    warning_count: int = 0
    fallback: bool = False

    @property
    def proceed(self) -> bool:
        return self.action is None

    def flag(self, session_id: str, phase: str, raw_text: str) -> ModerationFlagPayload:
        return ModerationFlagPayload(
            session_id=session_id,
            phase=phase,
            action=self.action or "ALLOW",
            severity=self.verdict.severity,
            reason=self.verdict.reason,
            flagged_words=list(self.verdict.flagged_words),
            raw_text=raw_text,
            safe_reply=self.message,
            warning_count=self.warning_count,
            metadata={"fallback": self.fallback, "on_topic": self.verdict.is_on_topic},
        )


def fallback_verdict(text: str, min_chars: Optional[int] = None) -> ModerationVerdict:
    """Local verdict used when the planner cannot classify the message."""

    min_chars = settings.MODERATION_MIN_CHARS if min_chars is None else min_chars
    if len(text.strip()) < min_chars:
        return ModerationVerdict(
            is_appropriate=False,
            is_on_topic=False,
            severity="medium",
            reason="Response too short or empty",
        )
    return ModerationVerdict(is_appropriate=True, is_on_topic=True, severity="low", reason="Moderation unavailable")


def escalate(verdict: ModerationVerdict, warning_count: int, question: str, *, fallback: bool = False) -> GuardOutcome:
    """Map a verdict and the prior warning count onto a guard action."""

    if verdict.contains_profanity or verdict.severity == "high":
        count = warning_count + 1
        if count >= TERMINATE_AT:
            return GuardOutcome(verdict, "TERMINATE", TERMINATE_MESSAGE, count, fallback)
        return GuardOutcome(verdict, "MODERATE", WARNING_MESSAGE.format(question=question), count, fallback)
    if not verdict.is_on_topic:
        return GuardOutcome(verdict, "REDIRECT", REDIRECT_MESSAGE.format(question=question), warning_count, fallback)
    return GuardOutcome(verdict, None, "", warning_count, fallback)


def screen_message(
    facade: ProviderFacade,
    *,
    text: str,
    question: str,
    recent_history: str,
    warning_count: int,
) -> GuardOutcome:
    """Classify ``text`` through the planner, falling back to local rules."""

    try:
        parsed = facade.classify_message(text, question, warning_count, recent_history)
    except ServiceUnavailable:
        parsed = None
    if parsed is not None and parsed.ok:
        return escalate(parsed.value, warning_count, question)
    return escalate(fallback_verdict(text), warning_count, question, fallback=True)


__all__ = [
    "GuardOutcome",
    "REDIRECT_MESSAGE",
    "TERMINATE_MESSAGE",
    "WARNING_MESSAGE",
    "escalate",
    "fallback_verdict",
    "screen_message",
]
