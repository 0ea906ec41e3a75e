"""Shared dependencies: link store, client metadata, current link session."""
from fastapi import BackgroundTasks, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from securelinks.config import get_settings
from securelinks.database import SessionLocal, get_db
from securelinks.services.access_log import BackgroundAccessLogger
from securelinks.services.link_store import LinkStore, SqlAlchemyLinkStore
from securelinks.services.session import SessionData, get_session
from securelinks.services.validator import ClientMetadata, Validator


def get_link_store(db: Session = Depends(get_db)) -> LinkStore:
    return SqlAlchemyLinkStore(db)


def get_session_factory():
    """Session factory for work that outlives the request (background audit writes)."""
    return SessionLocal


def get_validator(
    background_tasks: BackgroundTasks,
    store: LinkStore = Depends(get_link_store),
    session_factory=Depends(get_session_factory),
) -> Validator:
    return Validator(store, BackgroundAccessLogger(background_tasks, session_factory))


def get_client_metadata(request: Request) -> ClientMetadata:
    """First x-forwarded-for hop, else x-real-ip, else the socket peer."""
    forwarded = (request.headers.get("x-forwarded-for") or "").split(",")[0].strip()
    ip = forwarded or (request.headers.get("x-real-ip") or "").strip()
    if not ip and request.client:
        ip = request.client.host
    ua = (request.headers.get("user-agent") or "").strip() or None
    referer = (request.headers.get("referer") or "").strip() or None
    return ClientMetadata(ip_address=ip or None, user_agent=ua, referer=referer)


def get_current_link_session(request: Request) -> SessionData | None:
    settings = get_settings()
    return get_session(request.cookies.get(settings.session_cookie_name), settings=settings)


def require_link_session(session: SessionData | None = Depends(get_current_link_session)) -> SessionData:
    if session is None:
        raise HTTPException(status_code=401, detail="No active link session")
    return session
