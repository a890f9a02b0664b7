"""Session service: the operations exposed to API callers."""
from __future__ import annotations

import threading
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple, Union

from pydantic import ValidationError

from config.roles import RoleCatalog, role_catalog
from config.routes import load_config
from config.settings import settings
from errors import EvaluationNotReady, InvalidSessionState, ServiceUnavailable, SessionNotFound, SessionValidationError
from agents.types import Evaluation
from llm_gateway import HttpClient
from observability.logger import log_event
from planner.facade import ProviderFacade, select_active_provider
from planner.providers import build_providers
from storage.sessions import insert_session, load_session

from .orchestrator import TurnOrchestrator, TurnOutcome
from .state import Clock, SessionConfig, SessionRecord, SessionState, Turn, utc_now

_SESSION_LOCKS: Dict[str, Tuple[threading.Lock, int]] = {}
_SESSION_LOCKS_GUARD = threading.Lock()


@contextmanager
def _session_lock(session_id: str) -> Iterator[None]:
    """Serialise turns for one session; the entry lives only while a turn holds or waits on it."""

    with _SESSION_LOCKS_GUARD:
        lock, users = _SESSION_LOCKS.get(session_id, (None, 0))
        if lock is None:
            lock = threading.Lock()
        _SESSION_LOCKS[session_id] = (lock, users + 1)
    try:
        with lock:
            yield
    finally:
        with _SESSION_LOCKS_GUARD:
            lock, users = _SESSION_LOCKS[session_id]
            if users <= 1:
                del _SESSION_LOCKS[session_id]
            else:
                _SESSION_LOCKS[session_id] = (lock, users - 1)


@dataclass
class SessionCreated:
    session_id: str
    first_turn: Turn
    state: SessionState


def _first_error(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return str(exc)
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first.get('msg')}" if location else str(first.get("msg"))


class InterviewService:
    """Creates sessions and feeds candidate messages through the orchestrator."""

    def __init__(
        self,
        facade: ProviderFacade,
        *,
        catalog: Optional[RoleCatalog] = None,
        clock: Clock = utc_now,
        orchestrator: Optional[TurnOrchestrator] = None,
    ):
        self.facade = facade
        self.catalog = catalog or role_catalog()
        self.clock = clock
        self.orchestrator = orchestrator or TurnOrchestrator(facade, clock=clock)

    def _require_provider(self) -> None:
        if not self.facade.handle.available:
            raise ServiceUnavailable("no planner provider is reachable; retry later")

    def validate_config(self, config: Union[SessionConfig, Mapping[str, Any]]) -> SessionConfig:
        """Return a validated config or raise :class:`SessionValidationError`."""

        if not isinstance(config, SessionConfig):
            payload = dict(config)
            payload.setdefault("duration_minutes", settings.DEFAULT_DURATION_MINUTES)
            try:
                config = SessionConfig.model_validate(payload)
            except ValidationError as exc:
                raise SessionValidationError(_first_error(exc)) from exc
        problems = self.catalog.problems(config.role, config.seniority, config.interview_types)
        if problems:
            raise SessionValidationError("; ".join(problems))
        return config

    def create_session(
        self,
        config: Union[SessionConfig, Mapping[str, Any]],
        *,
        candidate_name: Optional[str] = None,
        candidate_email: Optional[str] = None,
    ) -> SessionCreated:
        config = self.validate_config(config)
        self._require_provider()

        first_turn = self.orchestrator.opening_turn(config, candidate_name)
        now = self.clock()
        record = SessionRecord(
            session_id=str(uuid.uuid4()),
            candidate_name=candidate_name,
            candidate_email=candidate_email,
            config=config,
            state=SessionState(phase="warmup", start_time=now, last_activity=now),
            transcript=[first_turn],
            created_at=now,
            updated_at=now,
        )
        stored = insert_session(record)
        log_event(
            "session.created",
            stored.session_id,
            phase=stored.state.phase,
            provider=self.facade.provider_name,
            mode=config.interview_mode,
        )
        return SessionCreated(session_id=stored.session_id, first_turn=first_turn, state=stored.state)

    def send_message(self, session_id: str, text: str, client_message_id: Optional[str] = None) -> TurnOutcome:
        """Process one candidate message.

        A retry carrying an already-recorded ``client_message_id`` returns the
        stored reply without touching the session.
        """

        self.get_session(session_id)  # unknown ids never reach the lock map
        with _session_lock(session_id):
            record = self.get_session(session_id)
            if client_message_id:
                previous = record.find_reply_to(client_message_id)
                if previous is not None:
                    log_event("turn.replayed", session_id, version=record.version)
                    return TurnOutcome(turn=previous, state=record.state, evaluation=record.evaluation, record=record)
            if not record.state.is_active:
                raise InvalidSessionState(f"session {session_id} has ended")
            self._require_provider()
            return self.orchestrator.handle(record, text, client_message_id=client_message_id)

    def get_session(self, session_id: str) -> SessionRecord:
        record = load_session(session_id)
        if record is None:
            raise SessionNotFound(f"session {session_id} not found")
        return record

    def get_evaluation(self, session_id: str) -> Evaluation:
        record = self.get_session(session_id)
        if record.evaluation is None:
            raise EvaluationNotReady(f"session {session_id} has no evaluation yet")
        return record.evaluation

    def health(self) -> Dict[str, Any]:
        reachable = self.facade.probe()
        return {
            "status": "healthy" if reachable else "degraded",
            "active_provider": self.facade.provider_name,
            "reachable": reachable,
            "timestamp": self.clock().isoformat(),
        }

    def role_catalog(self) -> Dict[str, Dict[str, List[str]]]:
        return self.catalog.as_dict()


def build_service(
    config_path: Optional[Union[str, Path]] = None, *, client: Optional[HttpClient] = None
) -> InterviewService:
    """Load routes, pick the active provider once and wire the service."""

    app_config = load_config(Path(config_path or settings.APP_CONFIG_PATH))
    primary, secondary = build_providers(app_config, client=client)
    handle = select_active_provider(primary, secondary)
    return InterviewService(ProviderFacade(handle))


__all__ = ["InterviewService", "SessionCreated", "build_service"]
