"""Shared FastAPI dependencies.

The registry and gateway live on ``app.state`` (created in the lifespan) and are
handed to the service and ingest objects per request. Separated to avoid
circular imports between route modules.
"""

from __future__ import annotations

import logging

from fastapi import Depends, Request

from calls.errors import ProviderNotConfiguredError
from calls.ingest import WebhookIngest
from calls.registry import SessionRegistry
from calls.service import CallService
from calls.strategies import build_call_strategy
from config.settings import Settings, get_settings
from integrations.twilio_client import TelephonyGateway, build_twilio_gateway

LOGGER = logging.getLogger(__name__)


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.registry


def get_gateway(request: Request) -> TelephonyGateway | None:
    """Return the Twilio gateway, building it on first use; None when unconfigured."""

    state = request.app.state
    gateway = getattr(state, "gateway", None)
    if gateway is not None or getattr(state, "gateway_unavailable", False):
        return gateway
    try:
        gateway = build_twilio_gateway(get_settings())
    except ProviderNotConfiguredError as exc:
        LOGGER.warning("Telephony unavailable: %s", exc.detail)
        state.gateway_unavailable = True
        return None
    request.app.state.gateway = gateway
    return gateway


def get_call_service(
    registry: SessionRegistry = Depends(get_registry),
    gateway: TelephonyGateway | None = Depends(get_gateway),
    settings: Settings = Depends(get_settings),
) -> CallService:
    strategy = build_call_strategy(gateway, settings) if gateway is not None else None
    return CallService(registry, strategy, settings)


def get_read_service(
    registry: SessionRegistry = Depends(get_registry),
    settings: Settings = Depends(get_settings),
) -> CallService:
    """Service for status reads; never touches the telephony provider."""

    return CallService(registry, None, settings)


def get_ingest(registry: SessionRegistry = Depends(get_registry)) -> WebhookIngest:
    return WebhookIngest(registry)
