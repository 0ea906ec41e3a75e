"""Secure link administration: generate (single/batch), list for a resource, revoke."""
from fastapi import APIRouter, Body, Depends, HTTPException, Query

from securelinks.dependencies import get_link_store
from securelinks.schemas.links import (
    BatchFailureResponse,
    BatchGenerateRequest,
    BatchGenerateResponse,
    GeneratedLinkResponse,
    GenerateLinkRequest,
    LinkSummary,
    RevokeLinkRequest,
)
from securelinks.services.clock import ensure_aware
from securelinks.services.errors import InvalidCase, StoreError
from securelinks.services.issuer import (
    IssuedLink,
    LinkTarget,
    issue_batch,
    issue_link,
    link_urls,
    list_links_for_resource,
)
from securelinks.services.link_store import LinkStore
from securelinks.services.revocation import revoke_link

router = APIRouter(prefix="/api/auth/generate-link", tags=["links"])


def _issued_to_response(issued: IssuedLink) -> GeneratedLinkResponse:
    return GeneratedLinkResponse(
        link_id=issued.link_id,
        token=issued.token,
        url=issued.url,
        qr_url=issued.qr_url,
        expires_at=issued.expires_at,
    )


@router.post("", response_model=GeneratedLinkResponse)
def generate_link(data: GenerateLinkRequest, store: LinkStore = Depends(get_link_store)):
    try:
        issued = issue_link(
            store,
            created_by=data.created_by,
            case_id=data.case_id,
            property_id=data.property_id,
            access_type=data.access_type,
            scope=data.scope,
            expires_in_days=data.expires_in_days,
            max_uses=data.max_uses,
        )
    except InvalidCase as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StoreError as e:
        # TokenCollision included: caller may retry
        raise HTTPException(status_code=503, detail={"code": e.code, "message": "Could not create link. Please retry."})
    return _issued_to_response(issued)


@router.post("/batch", response_model=BatchGenerateResponse)
def generate_links_batch(data: BatchGenerateRequest, store: LinkStore = Depends(get_link_store)):
    if not data.created_by:
        raise HTTPException(status_code=400, detail="created_by is required")
    targets = [LinkTarget(case_id=t.case_id, property_id=t.property_id) for t in data.targets]
    result = issue_batch(
        store,
        targets,
        created_by=data.created_by,
        access_type=data.access_type,
        scope=data.scope,
        expires_in_days=data.expires_in_days,
        max_uses=data.max_uses,
    )
    return BatchGenerateResponse(
        success=[_issued_to_response(i) for i in result.succeeded],
        failed=[
            BatchFailureResponse(
                case_id=f.target.case_id,
                property_id=f.target.property_id,
                code=f.error.code,
                message=str(f.error),
            )
            for f in result.failed
        ],
    )


@router.get("", response_model=list[LinkSummary])
def list_links(
    case_id: str | None = Query(None, alias="caseId"),
    property_id: str | None = Query(None, alias="propertyId"),
    include_inactive: bool = Query(False, alias="includeInactive"),
    store: LinkStore = Depends(get_link_store),
):
    if not case_id and not property_id:
        raise HTTPException(status_code=400, detail="caseId or propertyId query parameter is required")
    try:
        links = list_links_for_resource(
            store,
            case_id=case_id,
            property_id=property_id,
            include_inactive=include_inactive,
        )
    except StoreError:
        raise HTTPException(status_code=503, detail="Could not load links. Please retry.")
    return [
        LinkSummary(
            id=link.id,
            url=link_urls(link.token)[0],
            access_type=link.access_type,
            scope=link.scope,
            status=link.status,
            expires_at=ensure_aware(link.expires_at),
            use_count=link.use_count or 0,
            max_uses=link.max_uses,
            created_at=ensure_aware(link.created_at),
        )
        for link in links
    ]


@router.delete("")
def revoke(data: RevokeLinkRequest = Body(...), store: LinkStore = Depends(get_link_store)):
    try:
        revoked = revoke_link(store, data.link_id, data.revoked_by, data.reason)
    except InvalidCase as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StoreError:
        raise HTTPException(status_code=503, detail="Could not revoke link. Please retry.")
    if not revoked:
        raise HTTPException(
            status_code=404,
            detail="Failed to revoke link. It may not exist or is no longer active.",
        )
    return {"success": True, "message": "Link revoked successfully"}
