"""Shared-link entry point: /q/{token} validates, sets the session cookie and redirects
to the portal for the link's access type. Denials go to /link-expired?reason=..."""
import uuid
from urllib.parse import quote

from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse

from securelinks.config import get_settings
from securelinks.dependencies import get_client_metadata, get_validator
from securelinks.models.access_log import DenialReason
from securelinks.models.secure_link import AccessType
from securelinks.schemas.links import LinkExpiredResponse
from securelinks.services.denial_messages import DEFAULT_LANG, get_denial_message, parse_reason
from securelinks.services.session import issue_session, set_session_cookie
from securelinks.services.validator import ClientMetadata, Validator

router = APIRouter(tags=["portal"])


def portal_target(access_type: str | None, case_id: str | None, property_id: str | None = None) -> str:
    case = quote(case_id or "", safe="")
    if access_type == AccessType.agent.value:
        return f"/agent/case/{case}"
    if access_type == AccessType.developer.value:
        if property_id:
            return f"/developer/property/{quote(property_id, safe='')}"
        return f"/developer/cases/{case}"
    if access_type == AccessType.admin.value:
        return "/admin"
    return f"/buyer?case={case}"


@router.get("/q/{token}")
def open_link(
    token: str,
    client: ClientMetadata = Depends(get_client_metadata),
    validator: Validator = Depends(get_validator),
):
    settings = get_settings()
    session_id = str(uuid.uuid4())
    result = validator.validate(
        token,
        client,
        session_id=session_id,
        session_ttl_seconds=settings.session_ttl_seconds,
    )
    if not result.is_valid:
        reason = (result.denial_reason or DenialReason.invalid).value
        return RedirectResponse(url=f"/link-expired?reason={reason}", status_code=303)

    credential = issue_session(
        result.case_id,
        result.link_id,
        result.access_type,
        property_id=result.property_id,
        scope=result.scope,
        session_id=session_id,
        settings=settings,
    )
    response = RedirectResponse(
        url=portal_target(result.access_type, result.case_id, result.property_id),
        status_code=303,
    )
    set_session_cookie(response, credential, settings)
    return response


@router.get("/link-expired", response_model=LinkExpiredResponse)
def link_expired(reason: str | None = Query(None), lang: str = Query(DEFAULT_LANG)):
    denial = parse_reason(reason)
    msg = get_denial_message(denial, lang)
    return LinkExpiredResponse(reason=denial, title=msg.title, message=msg.message, action=msg.action)
