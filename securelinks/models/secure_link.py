"""Secure link: a tokenized, time- and use-bounded capability for one case or property."""
import enum
import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, Index, Integer, JSON, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from securelinks.database import Base


class AccessType(str, enum.Enum):
    buyer = "buyer"
    agent = "agent"
    developer = "developer"
    admin = "admin"


class LinkScope(str, enum.Enum):
    full = "full"
    view_only = "view_only"
    documents_only = "documents_only"


class LinkStatus(str, enum.Enum):
    active = "active"
    expired = "expired"
    revoked = "revoked"
    exhausted = "exhausted"


# Fingerprint history kept per link (most recent distinct values)
FINGERPRINT_HISTORY_LIMIT = 50

_JSONList = JSON().with_variant(JSONB, "postgresql")


def _new_id() -> str:
    return str(uuid.uuid4())


class SecureLink(Base):
    __tablename__ = "secure_links"
    __table_args__ = (
        CheckConstraint(
            "status IN ('active', 'expired', 'revoked', 'exhausted')",
            name="ck_secure_links_status",
        ),
        CheckConstraint(
            "access_type IN ('buyer', 'agent', 'developer', 'admin')",
            name="ck_secure_links_access_type",
        ),
        CheckConstraint("case_id IS NOT NULL OR property_id IS NOT NULL", name="ck_secure_links_target"),
        CheckConstraint("max_uses IS NULL OR max_uses > 0", name="ck_secure_links_max_uses"),
        Index("ix_secure_links_case_status", "case_id", "status"),
        Index("ix_secure_links_property_status", "property_id", "status"),
        Index("ix_secure_links_created_by", "created_by", "created_at"),
    )

    id = Column(String(36), primary_key=True, default=_new_id)

    # secrets.token_hex(32); lookup is by exact token match
    token = Column(String(64), unique=True, nullable=False, index=True)
    # SHA-256 of token; stored only, never read by validation
    token_hash = Column(String(128), nullable=True)

    case_id = Column(String(64), nullable=True)
    property_id = Column(String(64), nullable=True)

    access_type = Column(String(20), nullable=False, default=AccessType.buyer.value)
    scope = Column(String(50), nullable=False, default=LinkScope.full.value)

    # Fixed at issuance; status reflects their consequences
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    max_uses = Column(Integer, nullable=True)  # NULL = unlimited
    use_count = Column(Integer, nullable=False, default=0)

    created_by = Column(String(64), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    first_accessed_at = Column(DateTime(timezone=True), nullable=True)
    last_accessed_at = Column(DateTime(timezone=True), nullable=True)

    status = Column(String(20), nullable=False, default=LinkStatus.active.value, index=True)
    revoked_at = Column(DateTime(timezone=True), nullable=True)
    revoked_by = Column(String(64), nullable=True)
    revoked_reason = Column(Text, nullable=True)

    # Informational client history (deduplicated), not a security control
    ip_addresses = Column(_JSONList, nullable=True)
    user_agents = Column(_JSONList, nullable=True)

    qr_generated_at = Column(DateTime(timezone=True), nullable=True)
    qr_format = Column(String(20), nullable=True, default="png")

    @property
    def is_active(self) -> bool:
        return self.status == LinkStatus.active.value
