"""Telephony provider access.

:class:`TelephonyGateway` is the capability the call strategies consume;
:class:`TwilioGateway` implements it on top of the Twilio SDK's async client.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from twilio.base.exceptions import TwilioRestException

from calls.errors import ProviderError, ProviderNotConfiguredError
from config.settings import Settings, get_settings

LOGGER = logging.getLogger(__name__)

STATUS_CALLBACK_EVENTS = ["initiated", "ringing", "answered", "completed"]


@dataclass(frozen=True)
class TwilioConfig:
    account_sid: str
    auth_token: str
    from_number: str
    public_base_url: str

    def url(self, path: str) -> str:
        return f"{self.public_base_url}/{path.lstrip('/')}"


@dataclass(frozen=True)
class PlacedCall:
    call_sid: str
    status: str


def get_twilio_config(settings: Settings | None = None) -> TwilioConfig:
    settings = settings or get_settings()
    if not settings.twilio_account_sid or not settings.twilio_auth_token:
        raise ProviderNotConfiguredError("Twilio credentials are not configured")
    if not settings.twilio_from_number:
        raise ProviderNotConfiguredError("Twilio from-number is not configured")
    if not settings.public_base_url:
        raise ProviderNotConfiguredError("PUBLIC_BASE_URL is required for Twilio callbacks")

    return TwilioConfig(
        account_sid=settings.twilio_account_sid,
        auth_token=settings.twilio_auth_token,
        from_number=settings.twilio_from_number,
        public_base_url=settings.public_base_url.rstrip("/"),
    )


class TelephonyGateway(ABC):
    """Operations this service needs from the telephony provider."""

    @abstractmethod
    def callback_url(self, path: str) -> str:
        """Absolute URL the provider should call back on."""

    @abstractmethod
    async def place_call(self, *, to: str, twiml: str) -> PlacedCall:
        """Dial ``to`` and run ``twiml`` once answered."""

    @abstractmethod
    async def update_call(self, call_sid: str, *, twiml: str) -> None:
        """Replace the instructions of a live call."""

    @abstractmethod
    async def hangup_call(self, call_sid: str) -> None:
        """Terminate a call."""

    @abstractmethod
    async def find_conference(self, room: str) -> str | None:
        """Return the SID of the in-progress conference named ``room``."""

    @abstractmethod
    async def announce_to_conference(self, conference_sid: str, *, announce_url: str) -> None:
        """Play the TwiML served at ``announce_url`` to every participant."""

    @abstractmethod
    async def end_conference(self, conference_sid: str) -> None:
        """Close a conference and disconnect its participants."""

    async def aclose(self) -> None:
        return None


def _provider_error(exc: TwilioRestException) -> ProviderError:
    return ProviderError(exc.msg or str(exc), code=exc.code)


class TwilioGateway(TelephonyGateway):
    def __init__(self, client: Any, cfg: TwilioConfig) -> None:
        self._client = client
        self._cfg = cfg

    def callback_url(self, path: str) -> str:
        return self._cfg.url(path)

    async def place_call(self, *, to: str, twiml: str) -> PlacedCall:
        try:
            call = await self._client.calls.create_async(
                to=to,
                from_=self._cfg.from_number,
                twiml=twiml,
                status_callback=self.callback_url("/webhook/call-status"),
                status_callback_event=STATUS_CALLBACK_EVENTS,
                status_callback_method="POST",
            )
        except TwilioRestException as exc:
            LOGGER.error("Twilio rejected call to %s: %s (code=%s)", to, exc.msg, exc.code)
            raise _provider_error(exc) from exc
        return PlacedCall(call_sid=str(call.sid), status=str(call.status or "queued"))

    async def update_call(self, call_sid: str, *, twiml: str) -> None:
        try:
            await self._client.calls(call_sid).update_async(twiml=twiml)
        except TwilioRestException as exc:
            raise _provider_error(exc) from exc

    async def hangup_call(self, call_sid: str) -> None:
        try:
            await self._client.calls(call_sid).update_async(status="completed")
        except TwilioRestException as exc:
            raise _provider_error(exc) from exc

    async def find_conference(self, room: str) -> str | None:
        try:
            conferences = await self._client.conferences.list_async(
                friendly_name=room, status="in-progress", limit=1
            )
        except TwilioRestException as exc:
            raise _provider_error(exc) from exc
        if not conferences:
            return None
        return str(conferences[0].sid)

    async def announce_to_conference(self, conference_sid: str, *, announce_url: str) -> None:
        try:
            await self._client.conferences(conference_sid).update_async(
                announce_url=announce_url, announce_method="GET"
            )
        except TwilioRestException as exc:
            raise _provider_error(exc) from exc

    async def end_conference(self, conference_sid: str) -> None:
        try:
            await self._client.conferences(conference_sid).update_async(status="completed")
        except TwilioRestException as exc:
            raise _provider_error(exc) from exc

    async def aclose(self) -> None:
        http_client = getattr(self._client, "http_client", None)
        close = getattr(http_client, "close", None)
        if close is not None:
            await close()


def build_twilio_gateway(settings: Settings | None = None) -> TwilioGateway:
    from twilio.http.async_http_client import AsyncTwilioHttpClient
    from twilio.rest import Client

    cfg = get_twilio_config(settings)
    client = Client(cfg.account_sid, cfg.auth_token, http_client=AsyncTwilioHttpClient())
    return TwilioGateway(client, cfg)
