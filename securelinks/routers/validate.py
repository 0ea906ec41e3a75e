"""Token validation API and the link session it creates.

GET/POST /api/auth/validate/{token} validate programmatically (fetch/AJAX). For the
redirect flow used by shared URLs and QR codes see routers/portal.py.
"""
import uuid
from datetime import timedelta

from fastapi import APIRouter, Body, Depends, Query, Response
from fastapi.responses import JSONResponse

from securelinks.config import get_settings
from securelinks.dependencies import get_client_metadata, get_validator, require_link_session
from securelinks.models.access_log import DenialReason
from securelinks.schemas.links import DenialResponse, SessionInfo, ValidateTokenRequest, ValidationResponse
from securelinks.services.clock import utcnow
from securelinks.services.denial_messages import get_denial_message
from securelinks.services.session import (
    SessionData,
    clear_session_cookie,
    issue_session,
    set_session_cookie,
)
from securelinks.services.validator import ClientMetadata, ValidationResult, Validator

router = APIRouter(prefix="/api/auth", tags=["validate"])


def denial_response(reason: DenialReason, checkpoint: str | None = None) -> JSONResponse:
    body = DenialResponse(
        reason=reason,
        message=get_denial_message(reason, "ms").message,
        message_en=get_denial_message(reason, "en").message,
        checkpoint=checkpoint,
    )
    # Store failures are ours, not the caller's
    status_code = 503 if reason == DenialReason.error else 401
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json", by_alias=True))


def _validate(validator: Validator, token: str, client: ClientMetadata, create_session: bool):
    """Validate, naming the session up front so the access log row can reference it."""
    if not create_session:
        return validator.validate(token, client), None
    session_id = str(uuid.uuid4())
    result = validator.validate(
        token,
        client,
        session_id=session_id,
        session_ttl_seconds=get_settings().session_ttl_seconds,
    )
    return result, session_id


def _respond(
    result: ValidationResult,
    response: Response,
    session_id: str | None = None,
    checkpoint: str | None = None,
):
    if not result.is_valid:
        return denial_response(result.denial_reason or DenialReason.invalid, checkpoint)

    settings = get_settings()
    now = utcnow()
    if session_id:
        credential = issue_session(
            result.case_id,
            result.link_id,
            result.access_type,
            property_id=result.property_id,
            scope=result.scope,
            session_id=session_id,
            now=now,
            settings=settings,
        )
        set_session_cookie(response, credential, settings)

    return ValidationResponse(
        session=SessionInfo(
            case_id=result.case_id,
            property_id=result.property_id,
            access_type=result.access_type,
            scope=result.scope,
            link_id=result.link_id,
            session_id=session_id,
            expires_at=now + timedelta(seconds=settings.session_ttl_seconds),
        ),
        checkpoint=checkpoint,
    )


@router.get("/validate/{token}", response_model=ValidationResponse)
def validate_token_get(
    token: str,
    response: Response,
    create_session: bool = Query(False, alias="createSession"),
    client: ClientMetadata = Depends(get_client_metadata),
    validator: Validator = Depends(get_validator),
):
    result, session_id = _validate(validator, token, client, create_session)
    return _respond(result, response, session_id)


@router.post("/validate/{token}", response_model=ValidationResponse)
def validate_token_post(
    token: str,
    response: Response,
    data: ValidateTokenRequest | None = Body(None),
    client: ClientMetadata = Depends(get_client_metadata),
    validator: Validator = Depends(get_validator),
):
    data = data or ValidateTokenRequest()
    result, session_id = _validate(validator, token, client, data.create_session)
    return _respond(result, response, session_id, data.checkpoint)


@router.get("/session", response_model=SessionInfo)
def current_session(session: SessionData = Depends(require_link_session)):
    settings = get_settings()
    return SessionInfo(
        case_id=session.case_id,
        property_id=session.property_id,
        access_type=session.access_type,
        scope=session.scope,
        link_id=session.link_id,
        session_id=session.session_id,
        expires_at=session.expires_at(settings.session_ttl_seconds),
    )


@router.delete("/session")
def logout(response: Response):
    clear_session_cookie(response)
    return {"success": True}
