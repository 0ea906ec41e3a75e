"""Short-lived link sessions (signed JWT) and the cookie adapter that carries them.

issue_session/get_session are pure: credentials go in and out as strings. Only
set_session_cookie/clear_session_cookie touch the HTTP response.
"""
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt
from fastapi import Response

from securelinks.config import Settings, get_settings
from securelinks.services.clock import utcnow


@dataclass(frozen=True)
class SessionData:
    case_id: str | None
    link_id: str
    access_type: str
    created_at: datetime
    property_id: str | None = None
    scope: str | None = None
    session_id: str | None = None

    def expires_at(self, ttl_seconds: int) -> datetime:
        return self.created_at + timedelta(seconds=ttl_seconds)


def issue_session(
    case_id: str | None,
    link_id: str,
    access_type: str,
    *,
    property_id: str | None = None,
    scope: str | None = None,
    session_id: str | None = None,
    now: datetime | None = None,
    settings: Settings | None = None,
) -> str:
    """Signed credential for a validated link. Call only after a valid ValidationResult."""
    settings = settings or get_settings()
    now = now or utcnow()
    created_ms = int(now.timestamp() * 1000)
    payload = {
        "sub": link_id,
        "case_id": case_id,
        "link_id": link_id,
        "access_type": access_type,
        "property_id": property_id,
        "scope": scope,
        "session_id": session_id or str(uuid.uuid4()),
        "created_at": created_ms,
        "iat": int(now.timestamp()),
        "exp": int(now.timestamp()) + settings.session_ttl_seconds,
    }
    raw = jwt.encode(payload, settings.session_secret_key, algorithm=settings.session_algorithm)
    return raw if isinstance(raw, str) else raw.decode("utf-8")


def get_session(
    credential: str | None,
    *,
    now: datetime | None = None,
    settings: Settings | None = None,
) -> SessionData | None:
    """Decode and age-check a credential. None when missing, malformed, forged, or past TTL."""
    if not credential or not isinstance(credential, str):
        return None
    settings = settings or get_settings()
    now = now or utcnow()
    try:
        # Age is checked against created_at below with the caller's clock
        payload = jwt.decode(
            credential.strip(),
            settings.session_secret_key,
            algorithms=[settings.session_algorithm],
            options={"verify_exp": False, "verify_iat": False},
        )
        created_at = datetime.fromtimestamp(int(payload["created_at"]) / 1000, tz=timezone.utc)
        link_id = str(payload["link_id"])
        access_type = str(payload["access_type"])
    except (jwt.PyJWTError, KeyError, TypeError, ValueError, OverflowError, OSError):
        return None
    age = (now - created_at).total_seconds()
    if age > settings.session_ttl_seconds or age < -60:
        return None
    return SessionData(
        case_id=payload.get("case_id"),
        link_id=link_id,
        access_type=access_type,
        created_at=created_at,
        property_id=payload.get("property_id"),
        scope=payload.get("scope"),
        session_id=payload.get("session_id"),
    )


def has_access_to_case(session: SessionData | None, case_id: str) -> bool:
    return session is not None and bool(case_id) and session.case_id == case_id


def set_session_cookie(response: Response, credential: str, settings: Settings | None = None) -> None:
    settings = settings or get_settings()
    response.set_cookie(
        key=settings.session_cookie_name,
        value=credential,
        max_age=settings.session_ttl_seconds,
        path="/",
        httponly=True,
        secure=not settings.is_development,
        samesite="lax",
    )


def clear_session_cookie(response: Response, settings: Settings | None = None) -> None:
    """Remove the session cookie. Safe to call when no cookie is set."""
    settings = settings or get_settings()
    response.delete_cookie(
        key=settings.session_cookie_name,
        path="/",
        httponly=True,
        secure=not settings.is_development,
        samesite="lax",
    )
