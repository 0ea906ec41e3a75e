"""Append-only access log writer. Never update or delete - immutable audit trail.

Recording is best-effort: a failed write is logged and dropped, and never changes the
validation outcome that triggered it.
"""
from __future__ import annotations

import logging
from typing import Callable

from fastapi import BackgroundTasks
from sqlalchemy.orm import Session

from securelinks.models.access_log import DenialReason
from securelinks.services.link_store import AccessLogEntry, LinkStore, SqlAlchemyLinkStore

log = logging.getLogger("uvicorn.error")

# Column limits (match model)
_IP_LEN = 64
_USER_AGENT_LEN = 500
_REFERER_LEN = 2048


def build_entry(
    link_id: str | None,
    access_granted: bool,
    denial_reason: DenialReason | None = None,
    *,
    ip_address: str | None = None,
    user_agent: str | None = None,
    referer: str | None = None,
    session_id: str | None = None,
    session_duration_seconds: int | None = None,
) -> AccessLogEntry:
    """Entry with strings truncated to column limits; denial_reason only on denials,
    session fields only on grants."""
    ip = (ip_address[:_IP_LEN] if ip_address else None) or None
    ua = (str(user_agent)[:_USER_AGENT_LEN] if user_agent else None) or None
    ref = (str(referer)[:_REFERER_LEN] if referer else None) or None
    if access_granted:
        denial_reason = None
    else:
        denial_reason = denial_reason or DenialReason.error
        session_id = session_duration_seconds = None
    return AccessLogEntry(
        link_id=link_id or None,
        access_granted=access_granted,
        denial_reason=denial_reason,
        ip_address=ip,
        user_agent=ua,
        referer=ref,
        session_id=session_id or None,
        session_duration_seconds=session_duration_seconds,
    )


class AccessLogger:
    """Writes each access attempt through the link store, synchronously."""

    def __init__(self, store: LinkStore) -> None:
        self.store = store

    def record(
        self,
        link_id: str | None,
        access_granted: bool,
        denial_reason: DenialReason | None = None,
        *,
        ip_address: str | None = None,
        user_agent: str | None = None,
        referer: str | None = None,
        session_id: str | None = None,
        session_duration_seconds: int | None = None,
    ) -> None:
        entry = build_entry(
            link_id,
            access_granted,
            denial_reason,
            ip_address=ip_address,
            user_agent=user_agent,
            referer=referer,
            session_id=session_id,
            session_duration_seconds=session_duration_seconds,
        )
        try:
            self.store.add_access_log(entry)
        except Exception:
            log.exception("Failed to log access attempt link_id=%s granted=%s", entry.link_id, entry.access_granted)


def write_access_log(session_factory: Callable[[], Session], entry: AccessLogEntry) -> None:
    """Background task body: own session, failures logged and dropped."""
    try:
        db = session_factory()
    except Exception:
        log.exception("Failed to open session for access log link_id=%s", entry.link_id)
        return
    try:
        SqlAlchemyLinkStore(db).add_access_log(entry)
    except Exception:
        log.exception("Failed to log access attempt link_id=%s granted=%s", entry.link_id, entry.access_granted)
    finally:
        db.close()


class BackgroundAccessLogger:
    """Defers each write to a FastAPI background task so the response does not wait on it."""

    def __init__(self, background_tasks: BackgroundTasks, session_factory: Callable[[], Session]) -> None:
        self.background_tasks = background_tasks
        self.session_factory = session_factory

    def record(
        self,
        link_id: str | None,
        access_granted: bool,
        denial_reason: DenialReason | None = None,
        *,
        ip_address: str | None = None,
        user_agent: str | None = None,
        referer: str | None = None,
        session_id: str | None = None,
        session_duration_seconds: int | None = None,
    ) -> None:
        entry = build_entry(
            link_id,
            access_granted,
            denial_reason,
            ip_address=ip_address,
            user_agent=user_agent,
            referer=referer,
            session_id=session_id,
            session_duration_seconds=session_duration_seconds,
        )
        try:
            self.background_tasks.add_task(write_access_log, self.session_factory, entry)
        except Exception:
            log.exception("Failed to schedule access log link_id=%s", entry.link_id)
