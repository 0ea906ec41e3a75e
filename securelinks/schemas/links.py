"""Secure link request/response schemas."""
from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from securelinks.models.access_log import DenialReason
from securelinks.models.secure_link import AccessType, LinkScope


def _strip_or_none(v: str | None) -> str | None:
    if v is None:
        return None
    return v.strip() or None


class GenerateLinkRequest(BaseModel):
    case_id: str | None = Field(None, alias="caseId")
    property_id: str | None = Field(None, alias="propertyId")
    created_by: str | None = Field(None, alias="createdBy")
    access_type: AccessType = Field(AccessType.buyer, alias="accessType")
    scope: LinkScope = LinkScope.full
    # Limits are range-checked by the issuer so bad values come back as 400
    expires_in_days: int | None = Field(None, le=365, alias="expiresInDays")
    max_uses: int | None = Field(None, alias="maxUses")

    model_config = {"populate_by_name": True}

    @field_validator("case_id", "property_id", "created_by", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        return _strip_or_none(v) if isinstance(v, str) else v


class LinkTargetIn(BaseModel):
    case_id: str | None = Field(None, alias="caseId")
    property_id: str | None = Field(None, alias="propertyId")

    model_config = {"populate_by_name": True}


class BatchGenerateRequest(BaseModel):
    targets: list[LinkTargetIn] = Field(..., min_length=1, max_length=500)
    created_by: str | None = Field(None, alias="createdBy")
    access_type: AccessType = Field(AccessType.buyer, alias="accessType")
    scope: LinkScope = LinkScope.full
    expires_in_days: int | None = Field(None, ge=1, le=365, alias="expiresInDays")
    max_uses: int | None = Field(None, ge=1, alias="maxUses")

    model_config = {"populate_by_name": True}

    @field_validator("created_by", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        return _strip_or_none(v) if isinstance(v, str) else v


class GeneratedLinkResponse(BaseModel):
    link_id: str = Field(..., serialization_alias="linkId")
    token: str
    url: str
    qr_url: str = Field(..., serialization_alias="qrUrl")
    expires_at: datetime = Field(..., serialization_alias="expiresAt")


class BatchFailureResponse(BaseModel):
    case_id: str | None = Field(None, serialization_alias="caseId")
    property_id: str | None = Field(None, serialization_alias="propertyId")
    code: str
    message: str


class BatchGenerateResponse(BaseModel):
    success: list[GeneratedLinkResponse]
    failed: list[BatchFailureResponse]


class LinkSummary(BaseModel):
    id: str
    url: str
    access_type: str = Field(..., serialization_alias="accessType")
    scope: str
    status: str
    expires_at: datetime = Field(..., serialization_alias="expiresAt")
    use_count: int = Field(..., serialization_alias="useCount")
    max_uses: int | None = Field(None, serialization_alias="maxUses")
    created_at: datetime | None = Field(None, serialization_alias="createdAt")


class RevokeLinkRequest(BaseModel):
    link_id: str = Field(..., alias="linkId", min_length=1)
    revoked_by: str = Field(..., alias="revokedBy", min_length=1)
    reason: str | None = None

    model_config = {"populate_by_name": True}


class ValidateTokenRequest(BaseModel):
    create_session: bool = Field(False, alias="createSession")
    checkpoint: str | None = None

    model_config = {"populate_by_name": True}


class SessionInfo(BaseModel):
    case_id: str | None = Field(None, serialization_alias="caseId")
    property_id: str | None = Field(None, serialization_alias="propertyId")
    access_type: str | None = Field(None, serialization_alias="accessType")
    scope: str | None = None
    link_id: str | None = Field(None, serialization_alias="linkId")
    session_id: str | None = Field(None, serialization_alias="sessionId")
    expires_at: datetime = Field(..., serialization_alias="expiresAt")


class ValidationResponse(BaseModel):
    valid: bool = True
    session: SessionInfo
    checkpoint: str | None = None


class DenialResponse(BaseModel):
    valid: bool = False
    reason: DenialReason
    message: str
    message_en: str = Field(..., serialization_alias="messageEN")
    checkpoint: str | None = None


class LinkExpiredResponse(BaseModel):
    reason: DenialReason
    title: str
    message: str
    action: str
