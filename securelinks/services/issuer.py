"""Secure link issuance: single links, batches for QR printing, and per-resource listing."""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from securelinks.config import Settings, get_settings
from securelinks.models.secure_link import AccessType, LinkScope, LinkStatus, SecureLink
from securelinks.services.clock import Clock, ensure_aware, utcnow
from securelinks.services.errors import InvalidCase, LinkServiceError, TokenCollision
from securelinks.services.link_store import LinkStore
from securelinks.services.token_codec import build_link_url, build_qr_url, generate_token, hash_token

log = logging.getLogger("uvicorn.error")


@dataclass
class IssuedLink:
    link: SecureLink
    token: str
    url: str
    qr_url: str
    expires_at: datetime

    @property
    def link_id(self) -> str:
        return self.link.id


@dataclass
class LinkTarget:
    case_id: str | None = None
    property_id: str | None = None


@dataclass
class BatchFailure:
    target: LinkTarget
    error: LinkServiceError


@dataclass
class BatchIssueResult:
    succeeded: list[IssuedLink] = field(default_factory=list)
    failed: list[BatchFailure] = field(default_factory=list)


def link_urls(token: str, settings: Settings | None = None) -> tuple[str, str]:
    """(shareable URL, QR image URL) for a token."""
    settings = settings or get_settings()
    url = build_link_url(token, settings.app_base_url)
    qr_url = build_qr_url(url, settings.qr_service_url, size=settings.qr_size, fmt=settings.qr_format)
    return url, qr_url


def _check_preconditions(
    case_id: str | None,
    property_id: str | None,
    created_by: str | None,
    expires_in_days: int,
    max_uses: int | None,
) -> None:
    if not (case_id or "").strip() and not (property_id or "").strip():
        raise InvalidCase("case_id or property_id is required")
    if not (created_by or "").strip():
        raise InvalidCase("created_by is required")
    if expires_in_days is None or expires_in_days < 1:
        raise InvalidCase("expires_in_days must be at least 1")
    if max_uses is not None and max_uses < 1:
        raise InvalidCase("max_uses must be a positive integer or None")


def issue_link(
    store: LinkStore,
    *,
    created_by: str,
    case_id: str | None = None,
    property_id: str | None = None,
    access_type: AccessType = AccessType.buyer,
    scope: LinkScope = LinkScope.full,
    expires_in_days: int | None = None,
    max_uses: int | None = None,
    clock: Clock = utcnow,
    settings: Settings | None = None,
) -> IssuedLink:
    """Create an active link for a case and/or property.

    Raises InvalidCase when a precondition fails, TokenCollision if the token is still
    taken after one retry, StoreError for any other persistence failure.
    """
    settings = settings or get_settings()
    if expires_in_days is None:
        expires_in_days = settings.default_link_expiry_days
    _check_preconditions(case_id, property_id, created_by, expires_in_days, max_uses)
    try:
        access_type = AccessType(access_type)
        scope = LinkScope(scope)
    except ValueError as e:
        raise InvalidCase(str(e)) from e

    # One retry on token collision, then give up
    attempts = 2
    for attempt in range(1, attempts + 1):
        now = clock()
        token = generate_token()
        link = SecureLink(
            id=str(uuid.uuid4()),
            token=token,
            token_hash=hash_token(token),
            case_id=(case_id or "").strip() or None,
            property_id=(property_id or "").strip() or None,
            access_type=access_type.value,
            scope=scope.value,
            expires_at=now + timedelta(days=expires_in_days),
            max_uses=max_uses,
            use_count=0,
            status=LinkStatus.active.value,
            created_by=created_by.strip(),
            created_at=now,
            qr_generated_at=now,
            qr_format=settings.qr_format,
        )
        try:
            saved = store.create_link(link)
            break
        except TokenCollision:
            if attempt == attempts:
                raise
            log.warning("Secure link token collision; retrying with a fresh token")

    url, qr_url = link_urls(token, settings)
    log.info(
        "Secure link issued id=%s case=%s property=%s access_type=%s expires_in=%dd max_uses=%s",
        saved.id,
        saved.case_id,
        saved.property_id,
        saved.access_type,
        expires_in_days,
        max_uses,
    )
    return IssuedLink(link=saved, token=token, url=url, qr_url=qr_url, expires_at=ensure_aware(saved.expires_at))


def issue_batch(
    store: LinkStore,
    targets: list[LinkTarget],
    *,
    created_by: str,
    **options,
) -> BatchIssueResult:
    """Issue one link per target. A failing target is reported and the rest continue."""
    result = BatchIssueResult()
    for target in targets:
        try:
            issued = issue_link(
                store,
                created_by=created_by,
                case_id=target.case_id,
                property_id=target.property_id,
                **options,
            )
        except LinkServiceError as e:
            log.warning("Batch issuance failed case=%s property=%s: %s", target.case_id, target.property_id, e)
            result.failed.append(BatchFailure(target=target, error=e))
            continue
        result.succeeded.append(issued)
    return result


def list_links_for_resource(
    store: LinkStore,
    *,
    case_id: str | None = None,
    property_id: str | None = None,
    include_inactive: bool = False,
) -> list[SecureLink]:
    """Links issued for a case or property, newest first. Active only unless asked."""
    return store.list_for_resource(
        case_id=case_id,
        property_id=property_id,
        include_inactive=include_inactive,
    )
