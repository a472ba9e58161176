"""Twilio callbacks.

This module provides:
- Status, transcription and conference webhooks, which always answer 200 so
  Twilio never retries them.
- The speak-message TwiML document fetched by conference announcements.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, Response

from api.dependencies import get_ingest
from calls.ingest import (
    WebhookIngest,
    parse_conference_event,
    parse_status_event,
    parse_transcription_event,
)
from config.settings import get_settings
from integrations.twiml import select_voice, twiml_say

LOGGER = logging.getLogger(__name__)

router = APIRouter(tags=["twilio"])


def _ack() -> Response:
    return Response(content="OK", media_type="text/plain")


def _twiml_response(xml: str) -> Response:
    # Twilio expects application/xml
    return Response(content=xml, media_type="application/xml")


@router.post("/webhook/call-status")
async def call_status_webhook(
    request: Request,
    ingest: WebhookIngest = Depends(get_ingest),
) -> Response:
    try:
        event = parse_status_event(await request.form())
        if event is None:
            LOGGER.warning("Status webhook without CallSid/CallStatus")
        else:
            await ingest.apply_status(event)
    except Exception:
        # Still acknowledge so Twilio does not retry.
        LOGGER.exception("Status webhook handling failed")
    return _ack()


@router.post("/webhook/recording-transcription")
async def transcription_webhook(
    request: Request,
    ingest: WebhookIngest = Depends(get_ingest),
) -> Response:
    try:
        event = parse_transcription_event(await request.form())
        if event is not None:
            await ingest.apply_transcription(event)
    except Exception:
        LOGGER.exception("Transcription webhook handling failed")
    return _ack()


@router.post("/webhook/conference-status")
async def conference_status_webhook(
    request: Request,
    ingest: WebhookIngest = Depends(get_ingest),
) -> Response:
    try:
        event = parse_conference_event(await request.form())
        if event is not None:
            await ingest.apply_conference(event)
    except Exception:
        LOGGER.exception("Conference webhook handling failed")
    return _ack()


@router.api_route("/twiml/speak-message", methods=["GET", "POST"])
async def speak_message_twiml(request: Request) -> Response:
    settings = get_settings()
    params = dict(request.query_params)
    if request.method == "POST":
        form = await request.form()
        params.update({key: str(value) for key, value in form.items()})

    message = (params.get("message") or "").strip()
    voice = select_voice(params.get("voice"), default=settings.say_voice)
    if not message:
        return _twiml_response("<?xml version=\"1.0\" encoding=\"UTF-8\"?><Response />")
    return _twiml_response(twiml_say(text=message, voice=voice, language=settings.say_language))
