"""Applies Twilio webhook events to the session registry.

Events for calls the registry does not know are dropped with a warning; they
never create sessions. Every ``apply_*`` method reports whether the registry
changed, but callers acknowledge the provider either way.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from calls.errors import SessionInactiveError, SessionNotFoundError
from calls.registry import CallStatus, SessionRegistry, parse_call_status

LOGGER = logging.getLogger(__name__)

_TRUTHY = {"true", "1", "yes"}

_CONFERENCE_STATUS = {
    "participant-join": CallStatus.ANSWERED,
    "conference-end": CallStatus.COMPLETED,
}


@dataclass(frozen=True)
class StatusEvent:
    call_sid: str
    status: str


@dataclass(frozen=True)
class TranscriptionEvent:
    call_sid: str | None
    auxiliary_id: str | None
    text: str
    final: bool
    timestamp: datetime | None = None


@dataclass(frozen=True)
class ConferenceEvent:
    event: str
    room: str | None
    conference_sid: str | None
    call_sid: str | None


def _field(form: Mapping[str, Any], name: str) -> str:
    return str(form.get(name) or "").strip()


def _parse_timestamp(value: str) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_status_event(form: Mapping[str, Any]) -> StatusEvent | None:
    call_sid = _field(form, "CallSid")
    status = _field(form, "CallStatus")
    if not call_sid or not status:
        return None
    return StatusEvent(call_sid=call_sid, status=status)


def parse_transcription_event(form: Mapping[str, Any]) -> TranscriptionEvent | None:
    """Parse either a real-time transcription callback or a recording transcription callback.

    Real-time callbacks carry ``TranscriptionEvent``/``TranscriptionData``/``Final``;
    recording callbacks carry ``TranscriptionStatus``/``TranscriptionText``.
    Returns None for callbacks that carry no transcript (start/stop notices).
    """

    call_sid = _field(form, "CallSid") or None
    auxiliary_id = _field(form, "FriendlyName") or _field(form, "ConferenceSid") or None

    event_type = _field(form, "TranscriptionEvent")
    if event_type:
        if event_type != "transcription-content":
            return None
        raw_data = _field(form, "TranscriptionData")
        try:
            data = json.loads(raw_data) if raw_data else {}
        except json.JSONDecodeError:
            LOGGER.warning("Unparseable TranscriptionData for call %s", call_sid)
            return None
        text = str(data.get("transcript") or "").strip() if isinstance(data, dict) else ""
        return TranscriptionEvent(
            call_sid=call_sid,
            auxiliary_id=auxiliary_id,
            text=text,
            final=_field(form, "Final").lower() in _TRUTHY,
            timestamp=_parse_timestamp(_field(form, "Timestamp")),
        )

    if "TranscriptionStatus" in form or "TranscriptionText" in form:
        return TranscriptionEvent(
            call_sid=call_sid,
            auxiliary_id=auxiliary_id,
            text=_field(form, "TranscriptionText"),
            final=_field(form, "TranscriptionStatus").lower() == "completed",
        )

    return None


def parse_conference_event(form: Mapping[str, Any]) -> ConferenceEvent | None:
    event = _field(form, "StatusCallbackEvent")
    if not event:
        return None
    return ConferenceEvent(
        event=event,
        room=_field(form, "FriendlyName") or None,
        conference_sid=_field(form, "ConferenceSid") or None,
        call_sid=_field(form, "CallSid") or None,
    )


class WebhookIngest:
    def __init__(self, registry: SessionRegistry) -> None:
        self._registry = registry

    async def apply_status(self, event: StatusEvent) -> bool:
        session_id = self._registry.resolve(event.call_sid)
        if session_id is None:
            LOGGER.warning("Dropping status %s for unknown call %s", event.status, event.call_sid)
            return False

        status = parse_call_status(event.status)
        if status is None:
            LOGGER.warning("Dropping unrecognised status %r for call %s", event.status, event.call_sid)
            return False

        LOGGER.info("Call status update: %s is now %s", session_id, event.status)
        return await self._set_status(session_id, status)

    async def apply_transcription(self, event: TranscriptionEvent) -> bool:
        if not event.final:
            LOGGER.debug("Ignoring interim transcription for call %s", event.call_sid)
            return False
        if not event.text:
            return False

        session_id = self._registry.resolve(event.call_sid) or self._registry.resolve(event.auxiliary_id)
        if session_id is None:
            LOGGER.warning(
                "Dropping transcription for unknown call %s (aux=%s)", event.call_sid, event.auxiliary_id
            )
            return False

        try:
            await self._registry.append_transcript(session_id, event.text, event.timestamp)
        except SessionInactiveError:
            LOGGER.warning("Dropping transcription for ended call %s", session_id)
            return False
        except SessionNotFoundError:
            LOGGER.warning("Call %s was evicted before its transcription arrived", session_id)
            return False

        LOGGER.info("Transcription for call %s (%d chars)", session_id, len(event.text))
        return True

    async def apply_conference(self, event: ConferenceEvent) -> bool:
        session_id = (
            self._registry.resolve(event.room)
            or self._registry.resolve(event.conference_sid)
            or self._registry.resolve(event.call_sid)
        )
        if session_id is None:
            LOGGER.warning("Dropping conference event %s for unknown room %s", event.event, event.room)
            return False

        status = _CONFERENCE_STATUS.get(event.event)
        if status is None:
            LOGGER.debug("Conference event %s for call %s needs no action", event.event, session_id)
            return False
        return await self._set_status(session_id, status)

    async def _set_status(self, session_id: str, status: CallStatus) -> bool:
        try:
            return await self._registry.set_status(session_id, status)
        except SessionNotFoundError:
            LOGGER.warning("Call %s was evicted before status %s arrived", session_id, status.value)
            return False
