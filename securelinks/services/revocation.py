"""Administrative revocation of secure links."""
import logging

from securelinks.models.secure_link import LinkStatus
from securelinks.services.clock import Clock, utcnow
from securelinks.services.errors import InvalidCase
from securelinks.services.link_store import LinkStore

log = logging.getLogger("uvicorn.error")


def revoke_link(
    store: LinkStore,
    link_id: str,
    revoked_by: str,
    reason: str | None = None,
    *,
    clock: Clock = utcnow,
) -> bool:
    """Revoke an active link. Returns False (no-op) when the link is unknown or already
    expired, exhausted or revoked; its existing status and timestamps are kept.
    StoreError propagates to the caller."""
    if not (link_id or "").strip():
        raise InvalidCase("link_id is required")
    if not (revoked_by or "").strip():
        raise InvalidCase("revoked_by is required")
    changed = store.set_status(
        link_id,
        LinkStatus.revoked,
        now=clock(),
        revoked_by=revoked_by.strip(),
        reason=(reason or "").strip() or None,
    )
    if changed:
        log.info("Secure link revoked id=%s by=%s reason=%s", link_id, revoked_by, reason)
    else:
        log.info("Secure link revoke skipped id=%s (unknown or not active)", link_id)
    return changed
