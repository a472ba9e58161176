from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from calls.registry import CallStatus, SessionRegistry
from config.settings import Settings


def test_defaults():
    settings = Settings(_env_file=None, call_strategy="redirect")
    assert settings.default_country_code == "1"
    assert settings.say_voice == "alice"
    assert settings.session_retention_seconds == 900
    assert settings.initiated_timeout_seconds == 600
    assert settings.twilio_configured is False


def test_country_code_is_normalized_and_validated():
    assert Settings(_env_file=None, default_country_code="+44").default_country_code == "44"
    with pytest.raises(ValidationError):
        Settings(_env_file=None, default_country_code="uk")


def test_unknown_call_strategy_is_rejected():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, call_strategy="websocket")


def test_background_eviction_drops_ended_sessions(app):
    import main

    settings = Settings(_env_file=None, session_retention_seconds=0, eviction_interval_seconds=0.01)

    async def scenario():
        registry = SessionRegistry()
        await registry.create("CA1", "+15551234567")
        await registry.create("CA2", "+15557654321")
        await registry.set_status("CA1", CallStatus.COMPLETED)

        task = asyncio.create_task(main.evict_ended_sessions(registry, settings))
        await asyncio.sleep(0.1)
        task.cancel()
        return registry

    registry = asyncio.run(scenario())
    assert registry.resolve("CA1") is None
    assert registry.resolve("CA2") == "CA2"


def test_background_eviction_drops_calls_stuck_at_initiated(app):
    import main

    settings = Settings(
        _env_file=None,
        initiated_timeout_seconds=1,
        eviction_interval_seconds=0.01,
    )

    async def scenario():
        registry = SessionRegistry()
        long_ago = datetime.now(timezone.utc) - timedelta(minutes=5)
        await registry.create("CA-stuck", "+15551234567", started_at=long_ago)
        await registry.create("CA-answered", "+15557654321", started_at=long_ago)
        await registry.set_status("CA-answered", CallStatus.ANSWERED)

        task = asyncio.create_task(main.evict_ended_sessions(registry, settings))
        await asyncio.sleep(0.1)
        task.cancel()
        return registry

    registry = asyncio.run(scenario())
    assert registry.resolve("CA-stuck") is None
    assert registry.resolve("CA-answered") == "CA-answered"
