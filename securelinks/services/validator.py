"""Token validation: the secure link access state machine.

Checks run in a fixed order on every call:

  1. lookup       unknown token                  -> invalid (logged without a link id)
  2. status gate  link already revoked/expired/exhausted -> that status, no mutation
  3. expiry       now >= expires_at              -> flip to expired, deny
  4. exhaustion   use_count >= max_uses          -> flip to exhausted, deny
  5. acceptance   conditional increment in the store; refused increments are denied with
                  the reason the store reports

Every attempt is recorded through the audit logger. Store failures deny with ``error``
(fail closed); audit failures never change the outcome.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from securelinks.models.access_log import DenialReason
from securelinks.models.secure_link import LinkStatus
from securelinks.services.clock import Clock, utcnow
from securelinks.services.link_store import LinkStore, refusal_reason

log = logging.getLogger("uvicorn.error")


@dataclass(frozen=True)
class ClientMetadata:
    ip_address: str | None = None
    user_agent: str | None = None
    referer: str | None = None


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    link_id: str | None = None
    case_id: str | None = None
    property_id: str | None = None
    access_type: str | None = None
    scope: str | None = None
    denial_reason: DenialReason | None = None

    @classmethod
    def denied(cls, reason: DenialReason, link_id: str | None = None) -> "ValidationResult":
        return cls(is_valid=False, link_id=link_id, denial_reason=reason)


class AuditRecorder(Protocol):
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
    ) -> None: ...


_STATUS_FOR_REASON = {
    DenialReason.expired: LinkStatus.expired,
    DenialReason.exhausted: LinkStatus.exhausted,
}


class Validator:
    def __init__(self, store: LinkStore, audit: AuditRecorder, clock: Clock = utcnow) -> None:
        self.store = store
        self.audit = audit
        self.clock = clock

    def validate(
        self,
        token: str,
        client: ClientMetadata | None = None,
        *,
        session_id: str | None = None,
        session_ttl_seconds: int | None = None,
    ) -> ValidationResult:
        """Run the checks and record the attempt. ``session_id`` names the session the caller
        will mint on success; it is written to the access log row of a granted attempt."""
        client = client or ClientMetadata()
        link_id = None
        try:
            token = (token or "").strip()
            link = self.store.get_by_token(token) if token else None
            if link is None:
                result = ValidationResult.denied(DenialReason.invalid)
            else:
                link_id = link.id
                result = self._check_and_consume(link, client)
        except Exception:
            log.exception("Token validation failed; denying access")
            result = ValidationResult.denied(DenialReason.error, link_id)
        self._audit(result, client, session_id, session_ttl_seconds)
        return result

    def _check_and_consume(self, link, client: ClientMetadata) -> ValidationResult:
        link_id = link.id
        now = self.clock()

        # Steps 2-4 on the snapshot we just read
        reason = refusal_reason(link, now)
        if reason is not None:
            status = _STATUS_FOR_REASON.get(reason)
            if status is not None and link.status == LinkStatus.active.value:
                # Idempotent; a concurrent flip of the same link is harmless
                self.store.set_status(link_id, status, now=now)
            return ValidationResult.denied(reason, link_id)

        # Snapshot fields before the store commits and refreshes the row
        granted = ValidationResult(
            is_valid=True,
            link_id=link_id,
            case_id=link.case_id,
            property_id=link.property_id,
            access_type=link.access_type,
            scope=link.scope,
        )

        # Step 5: the only place a use is granted
        reason = self.store.consume(
            link_id,
            now=now,
            ip_address=client.ip_address,
            user_agent=client.user_agent,
        )
        if reason is not None:
            return ValidationResult.denied(reason, link_id)
        return granted

    def _audit(
        self,
        result: ValidationResult,
        client: ClientMetadata,
        session_id: str | None = None,
        session_ttl_seconds: int | None = None,
    ) -> None:
        if not result.is_valid:
            session_id = session_ttl_seconds = None
        try:
            self.audit.record(
                result.link_id,
                result.is_valid,
                result.denial_reason,
                ip_address=client.ip_address,
                user_agent=client.user_agent,
                referer=client.referer,
                session_id=session_id,
                session_duration_seconds=session_ttl_seconds,
            )
        except Exception:
            log.exception("Access log write failed for link_id=%s", result.link_id)
