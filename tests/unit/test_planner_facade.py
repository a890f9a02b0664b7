"""Tests for provider selection and the planner façade contracts."""
from __future__ import annotations

import pytest

from errors import ServiceUnavailable
from interview.state import SessionConfig
from llm_gateway import LlmGatewayError
from planner.context import PlannerContext
from planner.facade import ActiveProvider, ProviderFacade, select_active_provider

from fakes import DECISION_OK, ScriptedProvider


@pytest.fixture
def ctx():
    config = SessionConfig(role="Software Engineer", seniority="Senior", interview_types=["Technical"])
    return PlannerContext(config=config, phase="technical", questions_asked=2, elapsed_minutes=5.0,
                          last_question="Why?", last_response="Because.")


def test_primary_wins_when_reachable():
    primary, secondary = ScriptedProvider("remote"), ScriptedProvider("local")

    handle = select_active_provider(primary, secondary)

    assert handle.name == "remote"
    assert secondary.calls == []


def test_secondary_selected_and_sticky_when_primary_recovers():
    primary = ScriptedProvider("remote", reachable=False)
    secondary = ScriptedProvider("local")
    handle = select_active_provider(primary, secondary)
    facade = ProviderFacade(handle)

    primary.reachable = True

    assert handle.name == "local"
    assert facade.provider_name == "local"
    assert facade.probe() is True
    assert primary.count("probe") == 1


def test_no_provider_makes_every_call_unavailable(ctx):
    handle = select_active_provider(ScriptedProvider("a", reachable=False), ScriptedProvider("b", reachable=False))
    facade = ProviderFacade(handle)

    assert handle.available is False
    assert facade.probe() is False
    with pytest.raises(ServiceUnavailable):
        facade.propose_action(ctx)
    with pytest.raises(ServiceUnavailable):
        facade.generate_content("MOVE_NEXT", ctx)
    with pytest.raises(ServiceUnavailable):
        facade.generate_evaluation(ctx)
    with pytest.raises(ServiceUnavailable):
        facade.generate_feedback(ctx)


def test_active_provider_is_immutable():
    handle = ActiveProvider(name="x", provider=ScriptedProvider("x"))
    with pytest.raises(Exception):
        handle.name = "y"  # type: ignore[misc]


def test_structured_call_retries_then_succeeds(facade, provider, ctx):
    provider.decision = ["not json at all", DECISION_OK]

    parsed = facade.propose_action(ctx)

    assert parsed.ok
    assert parsed.value.decision == "MOVE_NEXT"
    assert provider.count("decision") == 2


def test_structured_call_returns_failure_instead_of_raising(facade, provider, ctx):
    provider.decision = '{"decision": "DANCE"'

    parsed = facade.propose_action(ctx)

    assert not parsed.ok
    assert parsed.failure.reason == "parse failure"
    assert parsed.failure.raw.startswith('{"decision"')
    assert provider.count("decision") == facade.max_retries + 1


def test_structured_call_extracts_json_from_chatter(facade, provider, ctx):
    provider.decision = 'Sure! ```json\n{"action": "CLARIFY", "reasoning": "vague"}\n``` hope that helps'

    parsed = facade.propose_action(ctx)

    assert parsed.ok
    assert parsed.value.decision == "CLARIFY"


def test_transport_error_on_structured_call_is_a_failure(ctx):
    class Broken(ScriptedProvider):
        def complete(self, messages, *, options=None):
            raise LlmGatewayError("boom")

    facade = ProviderFacade(ActiveProvider(name="broken", provider=Broken("broken")))

    parsed = facade.generate_evaluation(ctx)

    assert parsed.failure.reason == "provider error"


def test_text_call_raises_gateway_error(facade, provider, ctx):
    provider.fail_text = True

    with pytest.raises(LlmGatewayError):
        facade.generate_content("ASK_FOLLOWUP", ctx)


def test_empty_text_reply_is_an_error(facade, provider, ctx):
    provider.text = "   "

    with pytest.raises(LlmGatewayError):
        facade.generate_opening(ctx.config)
