"""FastAPI routes for interview session control."""
from __future__ import annotations

from typing import Dict

from fastapi import APIRouter, Depends, Request

from agents.types import Evaluation
from api.schemas import CreateSessionReq, CreateSessionResp, HealthResp, MessageReq, RoleOptions, TurnResp
from interview.sessions import InterviewService
from interview.state import SessionRecord


router = APIRouter()


def get_service(request: Request) -> InterviewService:
    return request.app.state.service


@router.post("/api/sessions", response_model=CreateSessionResp, status_code=201)
def create_session(req: CreateSessionReq, service: InterviewService = Depends(get_service)) -> CreateSessionResp:
    created = service.create_session(
        req.config_payload(),
        candidate_name=req.candidate_name,
        candidate_email=req.candidate_email,
    )
    return CreateSessionResp(session_id=created.session_id, first_turn=created.first_turn, state=created.state)


@router.post("/api/sessions/message", response_model=TurnResp)
def send_message(req: MessageReq, service: InterviewService = Depends(get_service)) -> TurnResp:
    outcome = service.send_message(req.session_id, req.message, client_message_id=req.client_message_id)
    return TurnResp(session_id=req.session_id, turn=outcome.turn, state=outcome.state, evaluation=outcome.evaluation)


@router.get("/api/sessions/{session_id}", response_model=SessionRecord)
def get_session(session_id: str, service: InterviewService = Depends(get_service)) -> SessionRecord:
    return service.get_session(session_id)


@router.get("/api/sessions/{session_id}/evaluation", response_model=Evaluation)
def get_evaluation(session_id: str, service: InterviewService = Depends(get_service)) -> Evaluation:
    return service.get_evaluation(session_id)


@router.get("/api/role-config", response_model=Dict[str, RoleOptions])
def role_config(service: InterviewService = Depends(get_service)) -> Dict[str, RoleOptions]:
    return {role: RoleOptions(**options) for role, options in service.role_catalog().items()}


@router.get("/health", response_model=HealthResp)
def health(service: InterviewService = Depends(get_service)) -> HealthResp:
    return HealthResp(**service.health())
