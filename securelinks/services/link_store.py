"""Record-store contract for secure links and its implementations.

The services only ever talk to a ``LinkStore``:

  create_link        insert a new link (TokenCollision on duplicate token)
  get_by_token       exact token lookup
  consume            conditional increment; terminalizes the link when it cannot be used
  set_status         one-way status flip, guarded on status == active
  add_access_log     append one access log row
  list_for_resource  links issued for a case or property

``SqlAlchemyLinkStore`` is the production store. ``InMemoryLinkStore`` serialises every
operation under one lock and is used by tests.

The usage cap is enforced inside ``consume`` by a single conditional UPDATE:

  UPDATE secure_links SET use_count = use_count + 1, ...
  WHERE id = :id AND status = 'active' AND expires_at > :now
    AND (max_uses IS NULL OR use_count < max_uses)

Zero rows affected means the use was not granted; the row is then re-read to report
(and persist) why.
"""
from __future__ import annotations

import copy
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.sql import func

from securelinks.models.access_log import DenialReason, LinkAccessLog
from securelinks.models.secure_link import FINGERPRINT_HISTORY_LIMIT, LinkStatus, SecureLink
from securelinks.services.clock import ensure_aware
from securelinks.services.errors import StoreError, TokenCollision


@dataclass
class AccessLogEntry:
    link_id: str | None
    access_granted: bool
    denial_reason: DenialReason | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    referer: str | None = None
    session_id: str | None = None
    session_duration_seconds: int | None = None


class LinkStore(Protocol):
    def create_link(self, link: SecureLink) -> SecureLink: ...

    def get_by_token(self, token: str) -> SecureLink | None: ...

    def consume(
        self,
        link_id: str,
        *,
        now: datetime,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> DenialReason | None:
        """Grant one use. Returns None when granted, else the reason it was refused."""
        ...

    def set_status(
        self,
        link_id: str,
        status: LinkStatus,
        *,
        now: datetime | None = None,
        revoked_by: str | None = None,
        reason: str | None = None,
    ) -> bool:
        """Move an active link to ``status``. False when the link was not active."""
        ...

    def add_access_log(self, entry: AccessLogEntry) -> None: ...

    def list_for_resource(
        self,
        *,
        case_id: str | None = None,
        property_id: str | None = None,
        include_inactive: bool = False,
    ) -> list[SecureLink]: ...


def merge_fingerprint(existing: list | None, value: str | None) -> list:
    """Append value if new; keep the most recent FINGERPRINT_HISTORY_LIMIT distinct values."""
    items = list(existing or [])
    if value and value not in items:
        items.append(value)
    return items[-FINGERPRINT_HISTORY_LIMIT:]


def refusal_reason(link: SecureLink, now: datetime) -> DenialReason | None:
    """Why this link cannot be used right now, or None if it can."""
    if link.status != LinkStatus.active.value:
        try:
            return DenialReason(link.status)
        except ValueError:
            return DenialReason.invalid
    if now >= ensure_aware(link.expires_at):
        return DenialReason.expired
    if link.max_uses is not None and (link.use_count or 0) >= link.max_uses:
        return DenialReason.exhausted
    return None


_TERMINAL_FOR_REASON = {
    DenialReason.expired: LinkStatus.expired,
    DenialReason.exhausted: LinkStatus.exhausted,
}


class SqlAlchemyLinkStore:
    """LinkStore backed by the relational database through one request-scoped Session."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def create_link(self, link: SecureLink) -> SecureLink:
        self.db.add(link)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            msg = str(getattr(e, "orig", None) or e).lower()
            if "token" in msg and ("unique" in msg or "duplicate" in msg):
                raise TokenCollision("Token collision occurred. Please retry.") from e
            raise StoreError(str(e)) from e
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreError(str(e)) from e
        self.db.refresh(link)
        return link

    def get_by_token(self, token: str) -> SecureLink | None:
        try:
            return self.db.execute(
                select(SecureLink).where(SecureLink.token == token)
            ).scalar_one_or_none()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreError(str(e)) from e

    def consume(
        self,
        link_id: str,
        *,
        now: datetime,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> DenialReason | None:
        try:
            result = self.db.execute(
                update(SecureLink)
                .where(
                    SecureLink.id == link_id,
                    SecureLink.status == LinkStatus.active.value,
                    SecureLink.expires_at > now,
                    or_(SecureLink.max_uses.is_(None), SecureLink.use_count < SecureLink.max_uses),
                )
                .values(
                    use_count=SecureLink.use_count + 1,
                    first_accessed_at=func.coalesce(SecureLink.first_accessed_at, now),
                    last_accessed_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 1:
                # Row stays locked by the UPDATE until commit, so this read-modify-write is safe
                link = self.db.get(SecureLink, link_id, populate_existing=True)
                link.ip_addresses = merge_fingerprint(link.ip_addresses, ip_address)
                link.user_agents = merge_fingerprint(link.user_agents, user_agent)
                self.db.commit()
                return None

            link = self.db.get(SecureLink, link_id, populate_existing=True)
            if link is None:
                self.db.rollback()
                return DenialReason.invalid
            reason = refusal_reason(link, now)
            if reason is None:
                # Row changed between our UPDATE and re-read; treat as the cap being hit
                self.db.rollback()
                return DenialReason.exhausted
            terminal = _TERMINAL_FOR_REASON.get(reason)
            if terminal is not None:
                self._flip(link_id, terminal)
            self.db.commit()
            return reason
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreError(str(e)) from e

    def _flip(self, link_id: str, status: LinkStatus, **values) -> int:
        result = self.db.execute(
            update(SecureLink)
            .where(SecureLink.id == link_id, SecureLink.status == LinkStatus.active.value)
            .values(status=status.value, **values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def set_status(
        self,
        link_id: str,
        status: LinkStatus,
        *,
        now: datetime | None = None,
        revoked_by: str | None = None,
        reason: str | None = None,
    ) -> bool:
        values = {}
        if status == LinkStatus.revoked:
            values = {"revoked_at": now, "revoked_by": revoked_by, "revoked_reason": reason}
        try:
            changed = self._flip(link_id, status, **values)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreError(str(e)) from e
        return changed == 1

    def add_access_log(self, entry: AccessLogEntry) -> None:
        row = LinkAccessLog(
            link_id=entry.link_id,
            ip_address=entry.ip_address,
            user_agent=entry.user_agent,
            referer=entry.referer,
            access_granted=entry.access_granted,
            denial_reason=entry.denial_reason.value if entry.denial_reason else None,
            session_id=entry.session_id,
            session_duration_seconds=entry.session_duration_seconds,
        )
        self.db.add(row)
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreError(str(e)) from e

    def list_for_resource(
        self,
        *,
        case_id: str | None = None,
        property_id: str | None = None,
        include_inactive: bool = False,
    ) -> list[SecureLink]:
        if not case_id and not property_id:
            return []
        q = select(SecureLink)
        if case_id:
            q = q.where(SecureLink.case_id == case_id)
        if property_id:
            q = q.where(SecureLink.property_id == property_id)
        if not include_inactive:
            q = q.where(SecureLink.status == LinkStatus.active.value)
        q = q.order_by(SecureLink.created_at.desc())
        try:
            return list(self.db.execute(q).scalars().all())
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreError(str(e)) from e


class InMemoryLinkStore:
    """Simple in-memory link store for testing. Every operation holds one lock."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._links: dict[str, SecureLink] = {}
        self._by_token: dict[str, str] = {}
        self.access_log: list[AccessLogEntry] = []

    def create_link(self, link: SecureLink) -> SecureLink:
        with self._lock:
            if link.token in self._by_token:
                raise TokenCollision("Token collision occurred. Please retry.")
            self._links[link.id] = link
            self._by_token[link.token] = link.id
            return link

    def get_by_token(self, token: str) -> SecureLink | None:
        with self._lock:
            link_id = self._by_token.get(token)
            return self._links.get(link_id) if link_id else None

    def get(self, link_id: str) -> SecureLink | None:
        with self._lock:
            return self._links.get(link_id)

    def consume(
        self,
        link_id: str,
        *,
        now: datetime,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> DenialReason | None:
        with self._lock:
            link = self._links.get(link_id)
            if link is None:
                return DenialReason.invalid
            reason = refusal_reason(link, now)
            if reason is not None:
                terminal = _TERMINAL_FOR_REASON.get(reason)
                if terminal is not None and link.status == LinkStatus.active.value:
                    link.status = terminal.value
                return reason
            link.use_count = (link.use_count or 0) + 1
            link.first_accessed_at = link.first_accessed_at or now
            link.last_accessed_at = now
            link.ip_addresses = merge_fingerprint(link.ip_addresses, ip_address)
            link.user_agents = merge_fingerprint(link.user_agents, user_agent)
            return None

    def set_status(
        self,
        link_id: str,
        status: LinkStatus,
        *,
        now: datetime | None = None,
        revoked_by: str | None = None,
        reason: str | None = None,
    ) -> bool:
        with self._lock:
            link = self._links.get(link_id)
            if link is None or link.status != LinkStatus.active.value:
                return False
            link.status = status.value
            if status == LinkStatus.revoked:
                link.revoked_at = now
                link.revoked_by = revoked_by
                link.revoked_reason = reason
            return True

    def add_access_log(self, entry: AccessLogEntry) -> None:
        with self._lock:
            self.access_log.append(copy.copy(entry))

    def list_for_resource(
        self,
        *,
        case_id: str | None = None,
        property_id: str | None = None,
        include_inactive: bool = False,
    ) -> list[SecureLink]:
        if not case_id and not property_id:
            return []
        with self._lock:
            result = []
            for link in self._links.values():
                if case_id and link.case_id != case_id:
                    continue
                if property_id and link.property_id != property_id:
                    continue
                if not include_inactive and link.status != LinkStatus.active.value:
                    continue
                result.append(link)
        return sorted(result, key=lambda l: ensure_aware(l.created_at), reverse=True)
