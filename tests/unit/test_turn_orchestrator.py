"""Behavioural tests for the turn pipeline run through the session service."""
from __future__ import annotations

import json

import pytest

from agents.phases import phase_rank
from agents.moderation_guard import TERMINATE_MESSAGE
from errors import InvalidSessionState, PersistenceFailure, ServiceUnavailable, SessionNotFound, SessionValidationError
from interview.orchestrator import PRACTICE_FALLBACK, TurnOrchestrator, fallback_evaluation
from interview.sessions import _SESSION_LOCKS, InterviewService
from planner.facade import ActiveProvider, ProviderFacade, select_active_provider
from storage.flags import list_moderation_flags
from storage.sessions import load_session

from fakes import MODERATION_OFF_TOPIC, MODERATION_PROFANE, QUESTION_TEXT, ScriptedProvider

ANSWER = "I led the rewrite of our billing pipeline and cut failures by half."


def _decision(action: str) -> str:
    return json.dumps({"decision": action, "reasoning": f"planner chose {action}", "context": ""})


def _send(service, clock, session_id, text=ANSWER, minutes=1.0, **kwargs):
    clock.advance(minutes)
    return service.send_message(session_id, text, **kwargs)


def test_create_session_seeds_warmup_and_opening(service, mock_config, provider):
    created = service.create_session(mock_config, candidate_name="Sam")

    record = service.get_session(created.session_id)
    assert created.state.phase == "warmup"
    assert created.first_turn.content == QUESTION_TEXT
    assert record.version == 1
    assert record.candidate_name == "Sam"
    assert [turn.role for turn in record.transcript] == ["assistant"]


def test_opening_falls_back_when_planner_text_fails(service, mock_config, provider):
    provider.fail_text = True

    created = service.create_session(mock_config)

    assert "Welcome to your Senior Software Engineer interview" in created.first_turn.content


def test_phases_never_move_backwards(service, clock, mock_config, provider):
    provider.decision = [_decision("CHANGE_PHASE"), _decision("MOVE_NEXT"), _decision("CHANGE_PHASE")] * 3
    session_id = service.create_session(dict(mock_config, duration_minutes=60)).session_id
    seen = ["warmup"]

    for _ in range(12):
        outcome = _send(service, clock, session_id)
        seen.append(outcome.state.phase)
        if not outcome.state.is_active:
            break

    assert seen[-1] == "completed"
    ranks = [phase_rank(phase) for phase in seen]
    assert ranks == sorted(ranks)


def test_early_wrap_up_is_demoted(service, clock, mock_config, provider):
    provider.decision = _decision("WRAP_UP")
    session_id = service.create_session(mock_config).session_id

    outcome = _send(service, clock, session_id)

    record = service.get_session(session_id)
    assert outcome.state.is_active is True
    assert phase_rank(outcome.state.phase) < phase_rank("wrap_up")
    assert record.decision_log[-1].action == "MOVE_NEXT"
    assert "WRAP_UP overridden" in record.decision_log[-1].reasoning
    assert outcome.turn.metadata.action == "MOVE_NEXT"


def test_question_cap_terminates_always_move_next_planner(service, clock, mock_config, provider):
    session_id = service.create_session(mock_config).session_id

    for turn in range(1, 7):
        outcome = _send(service, clock, session_id)
        assert outcome.state.is_active, f"ended early on turn {turn}"

    final = _send(service, clock, session_id)

    assert final.state.is_active is False
    assert final.state.phase == "completed"
    assert final.state.end_time is not None
    assert final.state.questions_asked == 7
    assert final.evaluation.overall.recommendation == "Hire"
    with pytest.raises(InvalidSessionState):
        _send(service, clock, session_id)


def test_elapsed_time_terminates(service, clock, mock_config):
    session_id = service.create_session(mock_config).session_id

    outcome = _send(service, clock, session_id, minutes=31)

    assert outcome.state.is_active is False
    assert outcome.evaluation is not None


def test_second_moderation_terminates_without_planning(service, clock, mock_config, provider):
    provider.moderation = MODERATION_PROFANE
    session_id = service.create_session(mock_config).session_id

    first = _send(service, clock, session_id, text="darn this question")
    assert first.turn.metadata.action == "MODERATE"
    assert first.state.is_active is True
    assert first.state.phase == "warmup"
    assert "Let me repeat the question: " + QUESTION_TEXT in first.turn.content

    before = list(provider.calls)
    second = _send(service, clock, session_id, text="darn it again")
    new_calls = provider.calls[len(before):]

    assert second.turn.content == TERMINATE_MESSAGE
    assert second.state.is_active is False
    assert second.state.phase == "completed"
    assert second.evaluation is None
    assert set(new_calls) == {"moderation"}
    record = service.get_session(session_id)
    assert record.warning_count == 1
    assert [entry.action for entry in record.decision_log] == ["MODERATE", "TERMINATE"]
    assert [row["action"] for row in list_moderation_flags(session_id)] == ["TERMINATE", "MODERATE"]


def test_redirect_restates_question_and_keeps_phase(service, clock, mock_config, provider):
    provider.moderation = MODERATION_OFF_TOPIC
    session_id = service.create_session(mock_config).session_id

    outcome = _send(service, clock, session_id, text="What is for lunch today?")

    assert outcome.turn.metadata.action == "REDIRECT"
    assert QUESTION_TEXT in outcome.turn.content
    assert outcome.state.phase == "warmup"
    assert provider.count("decision") == 0
    assert service.get_session(session_id).warning_count == 0


def test_malformed_decision_still_returns_a_turn(service, clock, mock_config, provider):
    provider.decision = '{"decision": "MOVE_NE'
    session_id = service.create_session(mock_config).session_id

    outcome = _send(service, clock, session_id)

    record = service.get_session(session_id)
    assert outcome.turn.role == "assistant"
    assert outcome.turn.content == QUESTION_TEXT
    assert record.decision_log[-1].action == "MOVE_NEXT"
    assert record.decision_log[-1].reasoning == "parse failure"
    assert record.decision_log[-1].context.startswith('{"decision"')


def test_content_failure_uses_local_question(service, clock, mock_config, provider):
    session_id = service.create_session(mock_config).session_id
    provider.fail_text = True

    outcome = _send(service, clock, session_id)

    assert outcome.turn.content
    assert outcome.state.is_active


def test_honored_wrap_up_finalizes_with_evaluation(service, clock, mock_config, provider):
    session_id = service.create_session(mock_config).session_id
    for _ in range(5):
        _send(service, clock, session_id)
    provider.decision = _decision("WRAP_UP")
    provider.text = "Thanks for your time today."

    outcome = _send(service, clock, session_id, minutes=20)

    record = service.get_session(session_id)
    assert record.decision_log[-1].action == "WRAP_UP"
    assert outcome.turn.content == "Thanks for your time today."
    assert outcome.state.phase == "completed"
    assert outcome.evaluation is not None


def test_garbage_evaluation_falls_back(service, clock, mock_config, provider):
    provider.evaluation = "no idea"
    session_id = service.create_session(mock_config).session_id

    outcome = _send(service, clock, session_id, minutes=40)

    assert outcome.evaluation == fallback_evaluation()
    assert outcome.evaluation.overall.score == 3


def test_evaluation_reads_are_identical(service, clock, mock_config):
    session_id = service.create_session(mock_config).session_id
    with pytest.raises(Exception) as not_ready:
        service.get_evaluation(session_id)
    assert not_ready.value.status_code == 409

    _send(service, clock, session_id, minutes=40)

    first = service.get_evaluation(session_id).model_dump_json(by_alias=True)
    second = service.get_evaluation(session_id).model_dump_json(by_alias=True)
    assert first == second


def test_practice_mode_formats_feedback(service, clock, practice_config, provider):
    session_id = service.create_session(practice_config).session_id

    outcome = _send(service, clock, session_id)

    assert outcome.turn.content.startswith("Your Score: 4/5")
    assert "Sample Answers:\n1. Acceptable answer" in outcome.turn.content
    assert "• Quantify the impact" in outcome.turn.content
    assert outcome.turn.metadata.feedback_score == 4
    assert outcome.turn.metadata.question == "How do you handle conflicting priorities?"
    assert provider.count("decision") == 0


def test_practice_mode_fallback_text(service, clock, practice_config, provider):
    provider.feedback = "{}"
    session_id = service.create_session(practice_config).session_id

    outcome = _send(service, clock, session_id)

    assert outcome.turn.content == PRACTICE_FALLBACK


def test_client_message_id_replays_without_mutation(service, clock, mock_config, provider):
    session_id = service.create_session(mock_config).session_id
    first = _send(service, clock, session_id, client_message_id="m-1")
    calls = len(provider.calls)

    again = _send(service, clock, session_id, client_message_id="m-1")

    record = service.get_session(session_id)
    assert again.turn == first.turn
    assert record.version == 2
    assert len(record.transcript) == 3
    assert len(provider.calls) == calls


def test_persistence_failure_leaves_record_untouched(facade, clock, catalog, mock_config):
    def failing_save(record, *, expected_version, flags=()):
        raise PersistenceFailure("disk full")

    broken = InterviewService(
        facade,
        catalog=catalog,
        clock=clock,
        orchestrator=TurnOrchestrator(facade, clock=clock, save=failing_save),
    )
    session_id = broken.create_session(mock_config).session_id

    with pytest.raises(PersistenceFailure):
        _send(broken, clock, session_id, client_message_id="m-1")

    record = load_session(session_id)
    assert record.version == 1
    assert len(record.transcript) == 1
    assert record.state.questions_asked == 0

    retried = InterviewService(facade, catalog=catalog, clock=clock).send_message(
        session_id, ANSWER, client_message_id="m-1"
    )
    assert load_session(session_id).version == 2
    assert retried.turn.role == "assistant"


def test_invalid_config_rejected_before_any_write(service, mock_config, provider):
    with pytest.raises(SessionValidationError):
        service.create_session(dict(mock_config, seniority="Chief Wizard"))
    with pytest.raises(SessionValidationError):
        service.create_session(dict(mock_config, duration_minutes=0))
    with pytest.raises(SessionValidationError):
        service.create_session(dict(mock_config, interview_types=[]))
    assert provider.calls == []


def test_no_provider_rejects_create_and_send(clock, catalog, mock_config, service):
    session_id = service.create_session(mock_config).session_id
    offline = InterviewService(ProviderFacade(ActiveProvider()), catalog=catalog, clock=clock)

    with pytest.raises(ServiceUnavailable):
        offline.create_session(mock_config)
    with pytest.raises(ServiceUnavailable):
        offline.send_message(session_id, ANSWER)
    assert load_session(session_id).version == 1


def test_unknown_session(service):
    with pytest.raises(SessionNotFound):
        service.send_message("nope", ANSWER)


def test_health_sticks_to_secondary_provider(clock, catalog):
    primary = ScriptedProvider("remote", reachable=False)
    secondary = ScriptedProvider("local")
    service = InterviewService(ProviderFacade(select_active_provider(primary, secondary)), catalog=catalog, clock=clock)

    assert service.health()["active_provider"] == "local"
    primary.reachable = True
    report = service.health()

    assert report["active_provider"] == "local"
    assert report["reachable"] is True
    assert primary.count("probe") == 1


def test_garbled_planner_still_hits_question_cap(service, clock, mock_config, provider):
    provider.decision = "not json at all"
    session_id = service.create_session(mock_config).session_id

    for turn in range(1, 7):
        assert _send(service, clock, session_id).state.is_active, f"ended early on turn {turn}"
    final = _send(service, clock, session_id)

    record = service.get_session(session_id)
    assert final.state.is_active is False
    assert final.state.phase == "completed"
    assert final.state.questions_asked == 7
    assert len(record.decision_log) == 7
    assert {(entry.action, entry.reasoning) for entry in record.decision_log} == {("MOVE_NEXT", "parse failure")}


def test_evaluation_sees_closing_reply(service, clock, mock_config, provider):
    session_id = service.create_session(mock_config).session_id
    for _ in range(5):
        _send(service, clock, session_id)
    provider.decision = _decision("WRAP_UP")
    provider.text = "Thanks, it was great hearing about the billing rewrite."

    outcome = _send(service, clock, session_id, minutes=20)

    assert "Thanks, it was great hearing about the billing rewrite." in provider.last_prompt("evaluation")
    assert outcome.turn.metadata.phase == "completed"
    assert service.get_session(session_id).transcript[-1].metadata.phase == "completed"


def test_session_locks_released_for_unknown_and_finished_turns(service, clock, mock_config):
    baseline = len(_SESSION_LOCKS)
    for i in range(50):
        with pytest.raises(SessionNotFound):
            service.send_message(f"bogus-{i}", ANSWER)
    session_id = service.create_session(mock_config).session_id
    _send(service, clock, session_id)

    assert len(_SESSION_LOCKS) == baseline


def test_offline_service_still_reports_missing_and_replays(clock, catalog, mock_config, service):
    session_id = service.create_session(mock_config).session_id
    first = _send(service, clock, session_id, client_message_id="m-1")
    offline = InterviewService(ProviderFacade(ActiveProvider()), catalog=catalog, clock=clock)

    with pytest.raises(SessionNotFound):
        offline.send_message("missing", ANSWER)
    replayed = offline.send_message(session_id, ANSWER, client_message_id="m-1")
    assert replayed.turn == first.turn
    with pytest.raises(ServiceUnavailable):
        offline.send_message(session_id, ANSWER, client_message_id="m-2")
    assert load_session(session_id).version == 2
