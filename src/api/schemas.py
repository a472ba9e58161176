"""API-facing Pydantic models.

Field names are snake_case in Python and camelCase on the wire, matching what
the browser client sends and expects.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class HealthResponse(CamelModel):
    status: str = "ok"
    timestamp: datetime
    active_calls: int
    call_strategy: str
    twilio_configured: bool


class InitiateCallRequest(CamelModel):
    to: str = Field(description="Destination number in any common format, e.g. (555) 123-4567.")


class InitiateCallResponse(CamelModel):
    success: bool = True
    call_sid: str
    conference_sid: str | None = None
    status: str
    to: str


class SpeakTextRequest(CamelModel):
    call_sid: str
    text: str = Field(max_length=4096)
    voice: str | None = None


class EndCallRequest(CamelModel):
    call_sid: str


class MessageResponse(CamelModel):
    success: bool = True
    message: str


class TranscriptionItem(CamelModel):
    text: str
    timestamp: datetime


class OutboundItem(CamelModel):
    text: str
    timestamp: datetime
    voice: str | None = None


class CallStatusResponse(CamelModel):
    success: bool = True
    call_sid: str
    to: str
    status: str
    is_active: bool
    start_time: datetime
    end_time: datetime | None = None
    conference_sid: str | None = None
    transcriptions: list[TranscriptionItem]
    message_queue: list[OutboundItem]
    next_cursor: int


class CallSummary(CamelModel):
    call_sid: str
    to: str
    status: str
    is_active: bool
    start_time: datetime
    conference_sid: str | None = None
    transcript_count: int
    message_count: int


class ActiveCallsResponse(CamelModel):
    success: bool = True
    active_calls: list[CallSummary]


class ErrorResponse(CamelModel):
    success: bool = False
    error: str
    code: int | None = None
