"""Tests for link session credentials and the cookie adapter."""
from datetime import timedelta

import jwt
import pytest
from fastapi import Response

from securelinks.config import Settings
from securelinks.services.session import (
    SessionData,
    clear_session_cookie,
    get_session,
    has_access_to_case,
    issue_session,
    set_session_cookie,
)


def _issue(clock, settings, **kwargs):
    kwargs.setdefault("property_id", "prop-3")
    kwargs.setdefault("scope", "view_only")
    kwargs.setdefault("session_id", "sess-1")
    return issue_session("case-1", "link-1", "buyer", now=clock(), settings=settings, **kwargs)


class TestIssueSession:
    def test_signed_hs256_payload(self, clock, settings):
        credential = _issue(clock, settings)
        payload = jwt.decode(
            credential,
            settings.session_secret_key,
            algorithms=["HS256"],
            options={"verify_exp": False, "verify_iat": False},
        )
        assert payload["case_id"] == "case-1"
        assert payload["link_id"] == "link-1"
        assert payload["access_type"] == "buyer"
        assert payload["property_id"] == "prop-3"
        assert payload["scope"] == "view_only"
        assert payload["session_id"] == "sess-1"
        assert payload["created_at"] == int(clock.now.timestamp() * 1000)
        assert payload["exp"] - payload["iat"] == 86400


class TestGetSession:
    def test_round_trip(self, clock, settings):
        credential = _issue(clock, settings)
        session = get_session(credential, now=clock(), settings=settings)
        assert session == SessionData(
            case_id="case-1",
            link_id="link-1",
            access_type="buyer",
            created_at=clock.now,
            property_id="prop-3",
            scope="view_only",
            session_id="sess-1",
        )
        assert session.expires_at(settings.session_ttl_seconds) == clock.now + timedelta(days=1)

    def test_valid_until_ttl(self, clock, settings):
        credential = _issue(clock, settings)
        assert get_session(credential, now=clock.now + timedelta(seconds=86400), settings=settings) is not None

    def test_older_than_ttl(self, clock, settings):
        credential = _issue(clock, settings)
        assert get_session(credential, now=clock.now + timedelta(seconds=86401), settings=settings) is None

    def test_wrong_secret(self, clock, settings):
        credential = _issue(clock, settings)
        other = Settings(session_secret_key="another-secret", database_url="sqlite://")
        assert get_session(credential, now=clock(), settings=other) is None

    def test_tampered_payload(self, clock, settings):
        header, payload, signature = _issue(clock, settings).split(".")
        forged = ".".join([header, payload[:-2] + ("AA" if payload[-2:] != "AA" else "BB"), signature])
        assert get_session(forged, now=clock(), settings=settings) is None

    def test_missing_claims(self, clock, settings):
        credential = jwt.encode({"case_id": "case-1"}, settings.session_secret_key, algorithm="HS256")
        assert get_session(credential, now=clock(), settings=settings) is None

    def test_unsigned_token_rejected(self, clock, settings):
        credential = jwt.encode(
            {"case_id": "c", "link_id": "l", "access_type": "buyer", "created_at": 0},
            None,
            algorithm="none",
        )
        assert get_session(credential, now=clock(), settings=settings) is None

    def test_session_id_is_generated_when_not_given(self, clock, settings):
        first = get_session(_issue(clock, settings, session_id=None), now=clock(), settings=settings)
        second = get_session(_issue(clock, settings, session_id=None), now=clock(), settings=settings)
        assert first.session_id and second.session_id
        assert first.session_id != second.session_id

    @pytest.mark.parametrize("created_at", [10**20, -(10**20)])
    def test_out_of_range_issue_time(self, clock, settings, created_at):
        credential = jwt.encode(
            {"case_id": "c", "link_id": "l", "access_type": "buyer", "created_at": created_at},
            settings.session_secret_key,
            algorithm="HS256",
        )
        assert get_session(credential, now=clock(), settings=settings) is None

    @pytest.mark.parametrize("credential", [None, "", "not-a-jwt", "a.b.c", 12345])
    def test_malformed(self, clock, settings, credential):
        assert get_session(credential, now=clock(), settings=settings) is None


class TestHasAccessToCase:
    def test_matching_case(self, clock, settings):
        session = get_session(_issue(clock, settings), now=clock(), settings=settings)
        assert has_access_to_case(session, "case-1")
        assert not has_access_to_case(session, "case-2")
        assert not has_access_to_case(session, "")

    def test_no_session(self):
        assert not has_access_to_case(None, "case-1")


class TestSessionCookie:
    def test_development_cookie(self, settings):
        response = Response()
        set_session_cookie(response, "cred", settings)
        cookie = response.headers["set-cookie"]
        assert cookie.startswith("link_session=cred")
        assert "HttpOnly" in cookie
        assert "Max-Age=86400" in cookie
        assert "Path=/" in cookie
        assert "samesite=lax" in cookie.lower()
        assert "Secure" not in cookie

    def test_production_cookie_is_secure(self):
        prod = Settings(app_env="production", session_secret_key="s", database_url="sqlite://")
        response = Response()
        set_session_cookie(response, "cred", prod)
        assert "Secure" in response.headers["set-cookie"]

    def test_clear_cookie(self, settings):
        response = Response()
        clear_session_cookie(response, settings)
        cookie = response.headers["set-cookie"]
        assert cookie.startswith("link_session=")
        assert "Max-Age=0" in cookie
