from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = REPO_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from calls.errors import ProviderError  # noqa: E402
from integrations.twilio_client import PlacedCall, TelephonyGateway  # noqa: E402


class FakeGateway(TelephonyGateway):
    """Records every provider request instead of talking to Twilio."""

    def __init__(self) -> None:
        self.placed: list[dict] = []
        self.updates: list[tuple[str, str]] = []
        self.hangups: list[str] = []
        self.announcements: list[tuple[str, str]] = []
        self.ended_conferences: list[str] = []
        self.conferences: dict[str, str] = {}
        self.place_error: ProviderError | None = None
        self.update_error: ProviderError | None = None
        self._counter = 0

    def callback_url(self, path: str) -> str:
        return f"https://relay.example.com/{path.lstrip('/')}"

    async def place_call(self, *, to: str, twiml: str) -> PlacedCall:
        if self.place_error is not None:
            raise self.place_error
        self._counter += 1
        call_sid = f"CA{self._counter:032d}"
        self.placed.append({"to": to, "twiml": twiml, "call_sid": call_sid})
        return PlacedCall(call_sid=call_sid, status="queued")

    async def update_call(self, call_sid: str, *, twiml: str) -> None:
        if self.update_error is not None:
            raise self.update_error
        self.updates.append((call_sid, twiml))

    async def hangup_call(self, call_sid: str) -> None:
        self.hangups.append(call_sid)

    async def find_conference(self, room: str) -> str | None:
        return self.conferences.get(room)

    async def announce_to_conference(self, conference_sid: str, *, announce_url: str) -> None:
        self.announcements.append((conference_sid, announce_url))

    async def end_conference(self, conference_sid: str) -> None:
        self.ended_conferences.append(conference_sid)


@pytest.fixture()
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture(scope="session")
def app():
    # Twilio credentials stay unset; tests inject FakeGateway instead.
    for name in ("TWILIO_ACCOUNT_SID", "TWILIO_AUTH_TOKEN", "TWILIO_FROM_NUMBER", "PUBLIC_BASE_URL"):
        os.environ.pop(name, None)
    os.environ["CALL_STRATEGY"] = "redirect"
    os.environ["EVICTION_INTERVAL_SECONDS"] = "3600"

    import importlib

    from config.settings import get_settings

    get_settings.cache_clear()
    sys.modules.pop("main", None)
    main = importlib.import_module("main")
    return main.app


@pytest.fixture()
def client(app, gateway):
    import api.dependencies as deps

    app.dependency_overrides[deps.get_gateway] = lambda: gateway

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
