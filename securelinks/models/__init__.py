"""
All SQLAlchemy models. Schema is the source of truth for new DBs.
Base.metadata.create_all() creates every table; no migration scripts needed for fresh installs.
"""
from securelinks.models.secure_link import SecureLink, AccessType, LinkScope, LinkStatus
from securelinks.models.access_log import LinkAccessLog, DenialReason

__all__ = [
    "SecureLink",
    "AccessType",
    "LinkScope",
    "LinkStatus",
    "LinkAccessLog",
    "DenialReason",
]
