"""Mark active links past their expiry as expired (daily job).

Validation already expires links lazily on first use after expiry; this sweep keeps
listings and dashboards accurate for links nobody opens again.
"""
import logging
from datetime import datetime

from sqlalchemy import update
from sqlalchemy.orm import Session

from securelinks.database import SessionLocal
from securelinks.models.secure_link import LinkStatus, SecureLink
from securelinks.services.clock import utcnow

log = logging.getLogger("uvicorn.error")


def expire_stale_links(db: Session, now: datetime | None = None) -> int:
    """Flip every active link with expires_at <= now to expired. Returns rows changed."""
    now = now or utcnow()
    result = db.execute(
        update(SecureLink)
        .where(SecureLink.status == LinkStatus.active.value, SecureLink.expires_at <= now)
        .values(status=LinkStatus.expired.value)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount or 0


def run_link_expiry_job() -> None:
    db: Session = SessionLocal()
    try:
        expired = expire_stale_links(db)
        if expired:
            log.info("Link expiry: marked %d active link(s) as expired.", expired)
    except Exception:
        db.rollback()
        log.exception("Link expiry job failed")
    finally:
        db.close()
