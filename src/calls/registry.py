"""In-memory registry of call sessions."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum

from calls.errors import DuplicateSessionError, SessionInactiveError, SessionNotFoundError

LOGGER = logging.getLogger(__name__)


class CallStatus(str, Enum):
    INITIATED = "initiated"
    RINGING = "ringing"
    ANSWERED = "answered"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELED = "canceled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({CallStatus.COMPLETED, CallStatus.FAILED, CallStatus.CANCELED})

# Progress order for non-terminal statuses; provider callbacks may arrive out of order.
_PROGRESS = {CallStatus.INITIATED: 0, CallStatus.RINGING: 1, CallStatus.ANSWERED: 2}

_PROVIDER_STATUS_MAP = {
    "queued": CallStatus.INITIATED,
    "initiated": CallStatus.INITIATED,
    "ringing": CallStatus.RINGING,
    "in-progress": CallStatus.ANSWERED,
    "answered": CallStatus.ANSWERED,
    "completed": CallStatus.COMPLETED,
    "busy": CallStatus.FAILED,
    "no-answer": CallStatus.FAILED,
    "failed": CallStatus.FAILED,
    "canceled": CallStatus.CANCELED,
}


def parse_call_status(value: str | None) -> CallStatus | None:
    """Map a provider call status string onto :class:`CallStatus`."""

    return _PROVIDER_STATUS_MAP.get((value or "").strip().lower())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class TranscriptEntry:
    text: str
    timestamp: datetime


@dataclass(frozen=True)
class OutboundMessage:
    text: str
    timestamp: datetime
    voice: str | None = None


@dataclass(frozen=True)
class SessionSnapshot:
    """Read-only copy of a session handed out to callers."""

    id: str
    destination: str
    auxiliary_id: str | None
    status: CallStatus
    active: bool
    started_at: datetime
    ended_at: datetime | None
    transcript: tuple[TranscriptEntry, ...]
    outbound: tuple[OutboundMessage, ...]


@dataclass
class CallSession:
    id: str
    destination: str
    auxiliary_id: str | None = None
    status: CallStatus = CallStatus.INITIATED
    active: bool = True
    started_at: datetime = field(default_factory=utcnow)
    ended_at: datetime | None = None
    transcript: list[TranscriptEntry] = field(default_factory=list)
    outbound: list[OutboundMessage] = field(default_factory=list)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            id=self.id,
            destination=self.destination,
            auxiliary_id=self.auxiliary_id,
            status=self.status,
            active=self.active,
            started_at=self.started_at,
            ended_at=self.ended_at,
            transcript=tuple(self.transcript),
            outbound=tuple(self.outbound),
        )

    def mark_inactive(self, when: datetime) -> None:
        self.active = False
        if self.ended_at is None:
            self.ended_at = when


class SessionRegistry:
    """Single-process store of call sessions, keyed by call SID.

    Sessions can also be found by their auxiliary id (conference name), which is
    how conference-level webhooks are routed. Mutations of one session are
    serialized by that session's lock; different sessions never wait on each other.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, CallSession] = {}
        self._by_auxiliary: dict[str, str] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    async def create(
        self,
        session_id: str,
        destination: str,
        auxiliary_id: str | None = None,
        *,
        started_at: datetime | None = None,
    ) -> SessionSnapshot:
        if session_id in self._sessions:
            raise DuplicateSessionError(f"Call {session_id} is already registered")
        if auxiliary_id and auxiliary_id in self._by_auxiliary:
            raise DuplicateSessionError(f"Auxiliary id {auxiliary_id} is already registered")

        session = CallSession(
            id=session_id,
            destination=destination,
            auxiliary_id=auxiliary_id,
            started_at=started_at or utcnow(),
        )
        self._sessions[session_id] = session
        if auxiliary_id:
            self._by_auxiliary[auxiliary_id] = session_id
        LOGGER.info("Registered call %s to %s (aux=%s)", session_id, destination, auxiliary_id)
        return session.snapshot()

    async def get(self, session_id: str) -> SessionSnapshot:
        session = self._require(session_id)
        async with session.lock:
            return session.snapshot()

    def resolve(self, key: str | None) -> str | None:
        """Return the session id for either a call SID or an auxiliary id."""

        if not key:
            return None
        if key in self._sessions:
            return key
        return self._by_auxiliary.get(key)

    async def append_transcript(self, session_id: str, text: str, timestamp: datetime | None = None) -> None:
        async with self._locked(session_id) as session:
            self._ensure_active(session)
            session.transcript.append(TranscriptEntry(text=text, timestamp=timestamp or utcnow()))

    async def append_outbound(
        self,
        session_id: str,
        text: str,
        timestamp: datetime | None = None,
        *,
        voice: str | None = None,
    ) -> None:
        async with self._locked(session_id) as session:
            self._ensure_active(session)
            session.outbound.append(OutboundMessage(text=text, timestamp=timestamp or utcnow(), voice=voice))

    async def set_status(self, session_id: str, status: CallStatus) -> bool:
        """Apply a status transition. Returns False when the update was a no-op.

        Terminal statuses are sticky: repeating one, or sending anything after
        one, changes nothing. A session ended locally still records the first
        terminal status the provider reports.
        """

        async with self._locked(session_id) as session:
            if session.status.is_terminal:
                return False

            if status.is_terminal:
                session.status = status
                session.mark_inactive(utcnow())
                LOGGER.info("Call %s reached terminal status %s", session_id, status.value)
                return True

            if not session.active:
                return False
            if _PROGRESS[status] <= _PROGRESS[session.status]:
                return False
            session.status = status
            return True

    async def deactivate(self, session_id: str) -> bool:
        """Mark a session inactive locally. Returns False if it already was."""

        async with self._locked(session_id) as session:
            if not session.active:
                return False
            session.mark_inactive(utcnow())
            return True

    async def list(self) -> list[SessionSnapshot]:
        return [session.snapshot() for session in list(self._sessions.values())]

    async def evict_expired(
        self,
        retention: timedelta,
        *,
        stale_after: timedelta | None = None,
        now: datetime | None = None,
    ) -> int:
        """Drop sessions that ended longer than ``retention`` ago.

        With ``stale_after``, also drop sessions still ``initiated`` that long
        after they started; their status callbacks were lost.
        """

        now = now or utcnow()
        cutoff = now - retention
        stale_cutoff = now - stale_after if stale_after is not None else None
        expired = [
            session
            for session in list(self._sessions.values())
            if (not session.active and session.ended_at is not None and session.ended_at <= cutoff)
            or (
                stale_cutoff is not None
                and session.active
                and session.status is CallStatus.INITIATED
                and session.started_at <= stale_cutoff
            )
        ]
        for session in expired:
            async with session.lock:
                self._sessions.pop(session.id, None)
                if session.auxiliary_id and self._by_auxiliary.get(session.auxiliary_id) == session.id:
                    del self._by_auxiliary[session.auxiliary_id]
        if expired:
            LOGGER.info("Evicted %d stale or ended call(s)", len(expired))
        return len(expired)

    def _require(self, session_id: str) -> CallSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(f"Call {session_id} not found")
        return session

    @asynccontextmanager
    async def _locked(self, session_id: str) -> AsyncIterator[CallSession]:
        session = self._require(session_id)
        async with session.lock:
            yield session

    @staticmethod
    def _ensure_active(session: CallSession) -> None:
        if not session.active:
            raise SessionInactiveError(f"Call {session.id} has ended")
