"""Typed errors for issuance and revocation. Validation never raises these to its caller."""


class LinkServiceError(Exception):
    """Base class for secure link service failures."""

    code = "LINK_ERROR"


class InvalidCase(LinkServiceError):
    """Issuance or revocation precondition failed (no target, missing principal, bad limits)."""

    code = "INVALID_CASE"


class StoreError(LinkServiceError):
    """The record store rejected or failed an operation."""

    code = "DB_ERROR"


class TokenCollision(StoreError):
    """Generated token hit the uniqueness constraint. Retry with a fresh token."""

    code = "TOKEN_COLLISION"


class Unauthorized(LinkServiceError):
    """Caller is not allowed to perform the operation. Reserved; no current flow raises it."""

    code = "UNAUTHORIZED"
