"""FastAPI routes used by the typing client."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_call_service, get_read_service, get_registry
from api.schemas import (
    ActiveCallsResponse,
    CallStatusResponse,
    CallSummary,
    EndCallRequest,
    HealthResponse,
    InitiateCallRequest,
    InitiateCallResponse,
    MessageResponse,
    OutboundItem,
    SpeakTextRequest,
    TranscriptionItem,
)
from calls.registry import SessionRegistry, utcnow
from calls.service import CallService
from config.settings import Settings, get_settings

LOGGER = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health(
    registry: SessionRegistry = Depends(get_registry),
    settings: Settings = Depends(get_settings),
) -> HealthResponse:
    sessions = await registry.list()
    return HealthResponse(
        timestamp=utcnow(),
        active_calls=sum(1 for session in sessions if session.active),
        call_strategy=settings.call_strategy,
        twilio_configured=settings.twilio_configured,
    )


@router.post("/initiate-call", response_model=InitiateCallResponse)
async def initiate_call(
    payload: InitiateCallRequest,
    service: CallService = Depends(get_call_service),
) -> InitiateCallResponse:
    result = await service.start_call(payload.to)
    return InitiateCallResponse(
        call_sid=result.session_id,
        conference_sid=result.auxiliary_id,
        status=result.status.value,
        to=result.destination,
    )


@router.post("/speak-text", response_model=MessageResponse)
async def speak_text(
    payload: SpeakTextRequest,
    service: CallService = Depends(get_call_service),
) -> MessageResponse:
    await service.speak_text(payload.call_sid, payload.text, payload.voice)
    return MessageResponse(message="Text spoken successfully")


@router.post("/end-call", response_model=MessageResponse)
async def end_call(
    payload: EndCallRequest,
    service: CallService = Depends(get_call_service),
) -> MessageResponse:
    ended = await service.end_call(payload.call_sid)
    return MessageResponse(message="Call ended successfully" if ended else "Call already ended")


@router.get("/call-status/{call_sid}", response_model=CallStatusResponse)
async def call_status(
    call_sid: str,
    since: int = Query(default=0, ge=0, description="Number of transcriptions the client already has."),
    service: CallService = Depends(get_read_service),
) -> CallStatusResponse:
    view = await service.get_status(call_sid, since=since)
    session = view.session
    return CallStatusResponse(
        call_sid=session.id,
        to=session.destination,
        status=session.status.value,
        is_active=session.active,
        start_time=session.started_at,
        end_time=session.ended_at,
        conference_sid=session.auxiliary_id,
        transcriptions=[TranscriptionItem(text=t.text, timestamp=t.timestamp) for t in view.transcript],
        message_queue=[
            OutboundItem(text=m.text, timestamp=m.timestamp, voice=m.voice) for m in view.outbound
        ],
        next_cursor=view.next_cursor,
    )


@router.get("/active-calls", response_model=ActiveCallsResponse)
async def active_calls(
    service: CallService = Depends(get_read_service),
) -> ActiveCallsResponse:
    sessions = await service.list_sessions()
    return ActiveCallsResponse(
        active_calls=[
            CallSummary(
                call_sid=session.id,
                to=session.destination,
                status=session.status.value,
                is_active=session.active,
                start_time=session.started_at,
                conference_sid=session.auxiliary_id,
                transcript_count=len(session.transcript),
                message_count=len(session.outbound),
            )
            for session in sessions
        ]
    )
