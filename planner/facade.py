"""Single entry point for every planner call made by the interview engine."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from agents.types import Evaluation, ModerationVerdict, PlannerAction, PlannerDecision, PracticeFeedback
from errors import ServiceUnavailable
from interview.state import SessionConfig
from llm_gateway import LlmGatewayError, retry_hint, schema_instructions, validate
from observability.logger import log_event

from . import prompts
from .context import PlannerContext
from .providers import PlannerProvider
from .results import Parsed

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

SYSTEM_PROMPT = "You are an experienced, professional interviewer. Be concise and ask one question at a time."


@dataclass(frozen=True)
class ActiveProvider:
    """Provider chosen once at startup; ``provider`` is None when nothing answered."""

    name: Optional[str] = None
    provider: Optional[PlannerProvider] = None

    @property
    def available(self) -> bool:
        return self.provider is not None


def select_active_provider(
    primary: Optional[PlannerProvider], secondary: Optional[PlannerProvider]
) -> ActiveProvider:
    """Probe the primary then the secondary provider; the first to answer wins."""

    for slot, candidate in (("primary", primary), ("secondary", secondary)):
        if candidate is None:
            continue
        if candidate.probe():
            log_event("provider.selected", "-", provider=candidate.name, slot=slot)
            return ActiveProvider(name=candidate.name, provider=candidate)
        log_event("provider.unreachable", "-", provider=candidate.name, slot=slot)
    log_event("provider.none", "-")
    return ActiveProvider()


class ProviderFacade:
    """Planner operations over the active provider.

    Structured calls never raise on bad planner output: they return a
    :class:`Parsed` carrying either the validated model or a failure. Text
    calls raise :class:`LlmGatewayError` on transport problems so the caller
    can substitute its own wording.
    """

    def __init__(self, handle: ActiveProvider, *, max_retries: int = 2):
        self.handle = handle
        self.max_retries = max_retries

    @property
    def provider_name(self) -> Optional[str]:
        return self.handle.name

    def _provider(self) -> PlannerProvider:
        if self.handle.provider is None:
            raise ServiceUnavailable("no planner provider is reachable")
        return self.handle.provider

    def probe(self) -> bool:
        provider = self.handle.provider
        if provider is None:
            return False
        return provider.probe()

    def propose_action(self, ctx: PlannerContext) -> Parsed[PlannerDecision]:
        return self._structured(PlannerDecision, prompts.agentic_decision(ctx), label="decision")

    def classify_message(
        self, text: str, question: str, previous_warnings: int, recent_history: str
    ) -> Parsed[ModerationVerdict]:
        prompt = prompts.moderation(text, question, previous_warnings, recent_history)
        return self._structured(ModerationVerdict, prompt, label="moderation", temperature=0.1)

    def generate_feedback(self, ctx: PlannerContext) -> Parsed[PracticeFeedback]:
        return self._structured(PracticeFeedback, prompts.practice_feedback(ctx), label="feedback")

    def generate_evaluation(self, ctx: PlannerContext) -> Parsed[Evaluation]:
        return self._structured(Evaluation, prompts.evaluation(ctx), label="evaluation", temperature=0.3)

    def generate_content(self, action: PlannerAction, ctx: PlannerContext) -> str:
        """Interviewer wording for ``action``.

        Raises:
            ServiceUnavailable: no provider was selected at startup.
            LlmGatewayError: the provider call failed or returned nothing.
        """

        builder = prompts.CONTENT_PROMPTS.get(action, prompts.next_question)
        return self._text(builder(ctx))

    def generate_opening(self, config: SessionConfig, candidate_name: Optional[str] = None) -> str:
        return self._text(prompts.opening_question(config, candidate_name))

    def _text(self, prompt: str) -> str:
        provider = self._provider()
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ]
        reply = provider.complete(messages).strip()
        if not reply:
            raise LlmGatewayError("planner returned an empty reply")
        return reply

    def _structured(self, schema: Type[T], prompt: str, *, label: str, temperature: Optional[float] = None) -> Parsed[T]:
        provider = self._provider()
        options = {"temperature": temperature} if temperature is not None else None
        messages: List[Dict[str, str]] = [
            {"role": "system", "content": schema_instructions(schema)},
            {"role": "user", "content": prompt},
        ]
        route = getattr(provider, "route", None)
        retries = route.max_retries if route is not None else self.max_retries
        raw = ""
        last_error = ""
        for attempt in range(retries + 1):
            if attempt and last_error:
                messages = messages[:2] + [{"role": "system", "content": retry_hint(last_error)}]
            try:
                raw = provider.complete(messages, options=options)
            except LlmGatewayError as exc:
                logger.warning("Planner %s call failed provider=%s: %s", label, provider.name, exc)
                return Parsed.failed("provider error", raw=str(exc))
            try:
                return Parsed.success(validate(schema, raw))
            except (ValidationError, json.JSONDecodeError, ValueError) as exc:
                last_error = str(exc)
                logger.info("Planner %s reply invalid attempt=%d: %s", label, attempt + 1, (last_error.splitlines() or [""])[0])
        return Parsed.failed("parse failure", raw=raw)


__all__ = ["ActiveProvider", "ProviderFacade", "SYSTEM_PROMPT", "select_active_provider"]
