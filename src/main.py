"""Entry point for the TTY phone relay service."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from api.routes import router as api_router
from api.schemas import ErrorResponse
from api.webhooks import router as webhook_router
from calls.errors import ProviderError, TelephonyError
from calls.registry import SessionRegistry
from config.settings import Settings, get_settings

LOGGER = logging.getLogger(__name__)


async def evict_ended_sessions(registry: SessionRegistry, settings: Settings) -> None:
    """Periodically drop sessions that ended longer ago than the retention window."""

    retention = timedelta(seconds=settings.session_retention_seconds)
    stale_after = timedelta(seconds=settings.initiated_timeout_seconds)
    while True:
        await asyncio.sleep(settings.eviction_interval_seconds)
        try:
            await registry.evict_expired(retention, stale_after=stale_after)
        except Exception:
            LOGGER.exception("Session eviction failed; retrying next interval")


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.registry = SessionRegistry()
    app.state.gateway = None
    app.state.gateway_unavailable = False
    sweeper = asyncio.create_task(evict_ended_sessions(app.state.registry, get_settings()))
    try:
        yield
    finally:
        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper
        if app.state.gateway is not None:
            await app.state.gateway.aclose()


settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

app = FastAPI(
    title="TTY Phone Relay",
    description="Speaks typed text into phone calls and transcribes the replies.",
    lifespan=lifespan,
)
app.include_router(api_router, prefix="/api")
app.include_router(webhook_router)


@app.exception_handler(TelephonyError)
async def telephony_error_handler(request: Request, exc: TelephonyError) -> JSONResponse:
    if exc.status_code >= 500:
        LOGGER.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    body = ErrorResponse(error=exc.detail, code=exc.code if isinstance(exc, ProviderError) else None)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump(by_alias=True, exclude_none=True))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    messages = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'] if part != 'body')}: {error['msg']}"
        for error in exc.errors()
    )
    return JSONResponse(status_code=422, content=ErrorResponse(error=messages).model_dump(exclude_none=True))


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())
