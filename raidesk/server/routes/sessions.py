from __future__ import annotations

from typing import Literal, Optional

from fastapi import APIRouter, Request

from ...app import SessionService
from ...core.logging.audit import audit_event, safe_excerpt
from ...core.schemas import Session
from ..schemas import CancelResponse, CreateSessionRequest, MessageRequest, RefinePlanRequest, SessionListResponse


router = APIRouter(prefix="/sessions", tags=["sessions"])


def _service(request: Request) -> SessionService:
    return request.app.state.service


def _request_id(request: Request) -> str | None:
    return request.headers.get("X-Request-ID") or request.headers.get("X-Request-Id")


@router.post("", response_model=Session)
def create_session(request: Request, payload: Optional[CreateSessionRequest] = None) -> Session:
    mock = payload.mock_mode if payload else None
    return _service(request).create_session(mock=mock)


@router.get("", response_model=SessionListResponse)
def list_sessions(request: Request) -> SessionListResponse:
    return SessionListResponse(sessions=_service(request).list_sessions())


@router.get("/{session_id}", response_model=Session)
def get_session(session_id: str, request: Request) -> Session:
    return _service(request).get_session(session_id)


@router.post("/{session_id}/messages", response_model=Session)
def send_message(session_id: str, payload: MessageRequest, request: Request) -> Session:
    audit_event(
        "api_message",
        session_id=session_id,
        request_id=_request_id(request),
        excerpt=safe_excerpt(payload.content),
    )
    return _service(request).send_message(session_id, payload.content)


@router.post("/{session_id}/plans/{plan_id}/select", response_model=Session)
def select_plan(session_id: str, plan_id: str, request: Request) -> Session:
    audit_event("api_select_plan", session_id=session_id, plan_id=plan_id, request_id=_request_id(request))
    return _service(request).select_plan(session_id, plan_id)


@router.post("/{session_id}/plans/{plan_id}/refine", response_model=Session)
def refine_plan(session_id: str, plan_id: str, payload: RefinePlanRequest, request: Request) -> Session:
    audit_event("api_refine_plan", session_id=session_id, plan_id=plan_id, request_id=_request_id(request))
    return _service(request).refine_plan(session_id, plan_id, payload.modifications)


@router.post("/{session_id}/reset", response_model=Session)
def reset_session(session_id: str, request: Request) -> Session:
    return _service(request).reset(session_id)


@router.post("/{session_id}/mock-mode", response_model=Session)
def toggle_mock_mode(session_id: str, request: Request) -> Session:
    return _service(request).toggle_mock_mode(session_id)


@router.post("/{session_id}/cancel", response_model=CancelResponse)
def cancel_request(session_id: str, request: Request) -> CancelResponse:
    return CancelResponse(cancelled=_service(request).cancel(session_id))


@router.post("/{session_id}/panels/{panel}", response_model=Session)
def toggle_panel(session_id: str, panel: Literal["summary", "flowchart"], request: Request) -> Session:
    return _service(request).toggle_panel(session_id, panel)
