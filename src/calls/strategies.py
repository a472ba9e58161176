"""Ways of delivering typed text into a live call.

Both strategies satisfy the same contract: the far end hears the text, and
their speech is transcribed back through the transcription webhook. A
deployment runs exactly one of them, chosen by ``CALL_STRATEGY``.
"""

from __future__ import annotations

import logging
import secrets
from abc import ABC, abstractmethod
from dataclasses import dataclass
from urllib.parse import urlencode

from calls.errors import ProviderError
from calls.registry import SessionSnapshot
from config.settings import Settings
from integrations.twilio_client import TelephonyGateway
from integrations.twiml import (
    twiml_join_conference,
    twiml_listen,
    twiml_say_and_hangup,
    twiml_say_and_listen,
)

LOGGER = logging.getLogger(__name__)

TRANSCRIPTION_WEBHOOK = "/webhook/recording-transcription"
CONFERENCE_WEBHOOK = "/webhook/conference-status"
SPEAK_MESSAGE_TWIML = "/twiml/speak-message"


@dataclass(frozen=True)
class StartedCall:
    call_sid: str
    auxiliary_id: str | None
    status: str


class CallStrategy(ABC):
    name: str

    def __init__(self, gateway: TelephonyGateway, settings: Settings) -> None:
        self._gateway = gateway
        self._settings = settings

    @abstractmethod
    async def start(self, destination: str) -> StartedCall:
        """Place the call. Provider errors propagate."""

    @abstractmethod
    async def speak(self, session: SessionSnapshot, text: str, voice: str) -> None:
        """Make the far end hear ``text``. Provider errors propagate."""

    @abstractmethod
    async def end(self, session: SessionSnapshot) -> None:
        """Best-effort teardown; never raises for calls that are already gone."""


class RedirectStrategy(CallStrategy):
    """Speaks by replacing the live call's TwiML with a ``<Say>`` document."""

    name = "redirect"

    async def start(self, destination: str) -> StartedCall:
        twiml = twiml_listen(
            transcription_url=self._gateway.callback_url(TRANSCRIPTION_WEBHOOK),
            language=self._settings.transcription_language,
            pause_seconds=self._settings.listen_pause_seconds,
        )
        placed = await self._gateway.place_call(to=destination, twiml=twiml)
        return StartedCall(call_sid=placed.call_sid, auxiliary_id=None, status=placed.status)

    async def speak(self, session: SessionSnapshot, text: str, voice: str) -> None:
        twiml = twiml_say_and_listen(
            text=text,
            voice=voice,
            language=self._settings.say_language,
            pause_seconds=self._settings.listen_pause_seconds,
        )
        await self._gateway.update_call(session.id, twiml=twiml)

    async def end(self, session: SessionSnapshot) -> None:
        twiml = twiml_say_and_hangup(
            text=self._settings.goodbye_message,
            voice=self._settings.say_voice,
            language=self._settings.say_language,
        )
        try:
            await self._gateway.update_call(session.id, twiml=twiml)
        except ProviderError as exc:
            LOGGER.info("Call %s may have already ended: %s", session.id, exc.detail)


class ConferenceStrategy(CallStrategy):
    """Bridges the callee into a conference room and announces text into it.

    The room's friendly name is the session's auxiliary id, so conference
    webhooks can be routed back to the call.
    """

    name = "conference"

    async def start(self, destination: str) -> StartedCall:
        room = f"tty-{secrets.token_hex(8)}"
        twiml = twiml_join_conference(
            room=room,
            status_callback_url=self._gateway.callback_url(CONFERENCE_WEBHOOK),
            transcription_url=self._gateway.callback_url(TRANSCRIPTION_WEBHOOK),
            language=self._settings.transcription_language,
        )
        placed = await self._gateway.place_call(to=destination, twiml=twiml)
        return StartedCall(call_sid=placed.call_sid, auxiliary_id=room, status=placed.status)

    async def speak(self, session: SessionSnapshot, text: str, voice: str) -> None:
        room = session.auxiliary_id or ""
        conference_sid = await self._gateway.find_conference(room)
        if conference_sid is None:
            raise ProviderError(f"Conference {room} is not in progress")

        query = urlencode({"message": text, "voice": voice})
        announce_url = f"{self._gateway.callback_url(SPEAK_MESSAGE_TWIML)}?{query}"
        await self._gateway.announce_to_conference(conference_sid, announce_url=announce_url)

    async def end(self, session: SessionSnapshot) -> None:
        try:
            await self._gateway.hangup_call(session.id)
        except ProviderError as exc:
            LOGGER.info("Call %s may have already ended: %s", session.id, exc.detail)

        if not session.auxiliary_id:
            return
        try:
            conference_sid = await self._gateway.find_conference(session.auxiliary_id)
            if conference_sid is not None:
                await self._gateway.end_conference(conference_sid)
        except ProviderError as exc:
            LOGGER.info("Conference %s may have already ended: %s", session.auxiliary_id, exc.detail)


_STRATEGIES: dict[str, type[CallStrategy]] = {
    RedirectStrategy.name: RedirectStrategy,
    ConferenceStrategy.name: ConferenceStrategy,
}


def build_call_strategy(gateway: TelephonyGateway, settings: Settings) -> CallStrategy:
    """Instantiate the configured strategy."""

    try:
        strategy_cls = _STRATEGIES[settings.call_strategy]
    except KeyError:
        raise ValueError(f"Unsupported call_strategy: {settings.call_strategy}") from None
    return strategy_cls(gateway, settings)
