"""Append-only access log: one row per validation attempt, granted or denied.
No updates or deletes - every record is permanent."""
import enum
import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.sql import func
from securelinks.database import Base


class DenialReason(str, enum.Enum):
    invalid = "invalid"  # token not found
    expired = "expired"
    revoked = "revoked"
    exhausted = "exhausted"  # max uses reached
    error = "error"  # store failure; access is denied


class LinkAccessLog(Base):
    __tablename__ = "link_access_log"
    __table_args__ = (
        Index("ix_link_access_log_link", "link_id", "accessed_at"),
        Index("ix_link_access_log_ip", "ip_address", "accessed_at"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # NULL only for tokens that matched no link
    link_id = Column(String(36), ForeignKey("secure_links.id"), nullable=True)

    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(500), nullable=True)
    referer = Column(Text, nullable=True)

    access_granted = Column(Boolean, nullable=False)
    denial_reason = Column(String(20), nullable=True)

    # Session minted by the same granted request, if any
    session_id = Column(String(36), nullable=True, index=True)
    session_duration_seconds = Column(Integer, nullable=True)

    # UTC only - server_default
    accessed_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
