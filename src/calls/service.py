"""Client-facing call commands: start, speak, end, and status polling."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from calls.errors import (
    CallInitiationFailedError,
    InvalidTextError,
    ProviderError,
    ProviderNotConfiguredError,
    SessionInactiveError,
)
from calls.phone import normalize_destination
from calls.registry import (
    CallStatus,
    OutboundMessage,
    SessionRegistry,
    SessionSnapshot,
    TranscriptEntry,
    parse_call_status,
    utcnow,
)
from calls.strategies import CallStrategy
from config.settings import Settings
from integrations.twiml import select_voice

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class StartCallResult:
    session_id: str
    auxiliary_id: str | None
    destination: str
    status: CallStatus


@dataclass(frozen=True)
class StatusView:
    session: SessionSnapshot
    transcript: tuple[TranscriptEntry, ...]
    outbound: tuple[OutboundMessage, ...]
    next_cursor: int


class CallService:
    """Runs client commands against the registry and the configured call strategy.

    ``strategy`` is None when Twilio is not configured; read-only operations
    still work in that case.
    """

    def __init__(
        self,
        registry: SessionRegistry,
        strategy: CallStrategy | None,
        settings: Settings,
    ) -> None:
        self._registry = registry
        self._strategy = strategy
        self._settings = settings

    def _require_strategy(self) -> CallStrategy:
        if self._strategy is None:
            raise ProviderNotConfiguredError()
        return self._strategy

    async def start_call(self, raw_destination: str) -> StartCallResult:
        destination = normalize_destination(raw_destination, country_code=self._settings.default_country_code)
        strategy = self._require_strategy()

        LOGGER.info("Initiating call to %s", destination)
        try:
            started = await strategy.start(destination)
        except ProviderError as exc:
            raise CallInitiationFailedError(exc.detail, code=exc.code) from exc

        session = await self._registry.create(started.call_sid, destination, started.auxiliary_id)
        status = parse_call_status(started.status) or CallStatus.INITIATED
        if status is not CallStatus.INITIATED:
            await self._registry.set_status(session.id, status)

        LOGGER.info("Call %s initiated to %s", session.id, destination)
        return StartCallResult(
            session_id=session.id,
            auxiliary_id=session.auxiliary_id,
            destination=destination,
            status=status,
        )

    async def speak_text(self, session_id: str, text: str, voice: str | None = None) -> None:
        message = (text or "").strip()
        if not message:
            raise InvalidTextError()

        session = await self._registry.get(session_id)
        if not session.active:
            raise SessionInactiveError(f"Call {session_id} has ended")

        strategy = self._require_strategy()
        chosen_voice = select_voice(voice, default=self._settings.say_voice)
        sent_at = utcnow()

        LOGGER.info("Sending message to call %s (%d chars)", session_id, len(message))
        await strategy.speak(session, message, chosen_voice)
        await self._registry.append_outbound(session_id, message, sent_at, voice=chosen_voice)

    async def end_call(self, session_id: str) -> bool:
        """End a call. Returns False when it had already been ended."""

        session = await self._registry.get(session_id)
        # Only the request that flips the session tears down the call.
        if not await self._registry.deactivate(session_id):
            LOGGER.info("Call %s already ended", session_id)
            return False

        LOGGER.info("Ending call %s", session_id)
        if self._strategy is not None:
            await self._strategy.end(session)
        return True

    async def get_status(self, session_id: str, *, since: int = 0) -> StatusView:
        session = await self._registry.get(session_id)
        cursor = max(0, since)
        return StatusView(
            session=session,
            transcript=session.transcript[cursor:],
            outbound=session.outbound,
            next_cursor=len(session.transcript),
        )

    async def list_sessions(self) -> list[SessionSnapshot]:
        return await self._registry.list()
