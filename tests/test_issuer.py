"""Tests for link issuance: preconditions, persisted fields, collision retry, batches, listing."""
from datetime import timedelta

import pytest

from securelinks.models.secure_link import AccessType, LinkScope, LinkStatus, SecureLink
from securelinks.services import issuer as issuer_module
from securelinks.services.clock import ensure_aware
from securelinks.services.errors import InvalidCase, StoreError, TokenCollision
from securelinks.services.issuer import (
    LinkTarget,
    issue_batch,
    issue_link,
    list_links_for_resource,
)
from securelinks.services.link_store import InMemoryLinkStore
from securelinks.services.token_codec import extract_token, hash_token


class CollidingStore(InMemoryLinkStore):
    """Raises TokenCollision for the first ``collisions`` inserts."""

    def __init__(self, collisions: int):
        super().__init__()
        self.collisions = collisions
        self.attempts = 0

    def create_link(self, link: SecureLink) -> SecureLink:
        self.attempts += 1
        if self.attempts <= self.collisions:
            raise TokenCollision("Token collision occurred. Please retry.")
        return super().create_link(link)


class FailingStore(InMemoryLinkStore):
    def create_link(self, link: SecureLink) -> SecureLink:
        raise StoreError("database unavailable")


class TestIssueLink:
    def test_persists_active_link(self, sql_store, clock, settings):
        issued = issue_link(
            sql_store,
            created_by="dev-42",
            case_id="case-1",
            access_type=AccessType.agent,
            scope=LinkScope.view_only,
            expires_in_days=3,
            max_uses=5,
            clock=clock,
            settings=settings,
        )
        link = sql_store.get_by_token(issued.token)
        assert link is not None
        assert link.id == issued.link_id
        assert link.status == LinkStatus.active.value
        assert link.use_count == 0
        assert link.max_uses == 5
        assert link.case_id == "case-1"
        assert link.property_id is None
        assert link.access_type == "agent"
        assert link.scope == "view_only"
        assert link.created_by == "dev-42"
        assert link.token_hash == hash_token(issued.token)
        assert ensure_aware(link.expires_at) == clock.now + timedelta(days=3)
        assert ensure_aware(link.created_at) == clock.now
        assert link.qr_format == "png"

    def test_urls(self, memory_store, clock, settings):
        issued = issue_link(memory_store, created_by="dev-42", case_id="c1", clock=clock, settings=settings)
        assert issued.url == f"https://snang.my/q/{issued.token}"
        assert extract_token(issued.url) == issued.token
        assert issued.qr_url.startswith(settings.qr_service_url)
        assert "size=300x300" in issued.qr_url

    def test_defaults(self, memory_store, clock, settings):
        issued = issue_link(memory_store, created_by="dev-42", property_id="p-9", clock=clock, settings=settings)
        assert issued.link.access_type == "buyer"
        assert issued.link.scope == "full"
        assert issued.link.max_uses is None
        assert issued.expires_at == clock.now + timedelta(days=7)

    def test_default_expiry_comes_from_settings(self, memory_store, clock, settings):
        short = settings.model_copy(update={"default_link_expiry_days": 2})
        issued = issue_link(memory_store, created_by="dev-42", case_id="c1", clock=clock, settings=short)
        assert issued.expires_at == clock.now + timedelta(days=2)

    def test_accepts_enum_values_as_strings(self, memory_store, clock, settings):
        issued = issue_link(
            memory_store,
            created_by="dev-42",
            case_id="c1",
            access_type="developer",
            scope="documents_only",
            clock=clock,
            settings=settings,
        )
        assert issued.link.access_type == "developer"
        assert issued.link.scope == "documents_only"

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"created_by": "dev-42"},
            {"created_by": "dev-42", "case_id": "  ", "property_id": ""},
            {"created_by": "", "case_id": "c1"},
            {"created_by": "dev-42", "case_id": "c1", "expires_in_days": 0},
            {"created_by": "dev-42", "case_id": "c1", "max_uses": 0},
            {"created_by": "dev-42", "case_id": "c1", "access_type": "landlord"},
            {"created_by": "dev-42", "case_id": "c1", "scope": "everything"},
        ],
    )
    def test_invalid_preconditions(self, memory_store, clock, settings, kwargs):
        with pytest.raises(InvalidCase):
            issue_link(memory_store, clock=clock, settings=settings, **kwargs)
        assert memory_store.list_for_resource(case_id="c1", include_inactive=True) == []

    def test_retries_once_on_collision(self, clock, settings):
        store = CollidingStore(collisions=1)
        issued = issue_link(store, created_by="dev-42", case_id="c1", clock=clock, settings=settings)
        assert store.attempts == 2
        assert store.get_by_token(issued.token) is not None

    def test_second_collision_propagates(self, clock, settings):
        store = CollidingStore(collisions=2)
        with pytest.raises(TokenCollision):
            issue_link(store, created_by="dev-42", case_id="c1", clock=clock, settings=settings)
        assert store.attempts == 2

    def test_duplicate_token_in_database_is_a_collision(self, sql_store, clock, settings, monkeypatch):
        tokens = iter(["a" * 64, "a" * 64, "b" * 64])
        monkeypatch.setattr(issuer_module, "generate_token", lambda: next(tokens))

        first = issue_link(sql_store, created_by="dev-42", case_id="c1", clock=clock, settings=settings)
        second = issue_link(sql_store, created_by="dev-42", case_id="c1", clock=clock, settings=settings)

        assert first.token == "a" * 64
        assert second.token == "b" * 64
        assert len(sql_store.list_for_resource(case_id="c1")) == 2

    def test_store_error_propagates(self, clock, settings):
        with pytest.raises(StoreError):
            issue_link(FailingStore(), created_by="dev-42", case_id="c1", clock=clock, settings=settings)


class TestIssueBatch:
    def test_one_link_per_target(self, memory_store, clock, settings):
        targets = [LinkTarget(case_id=f"case-{i}") for i in range(3)]
        result = issue_batch(memory_store, targets, created_by="dev-42", max_uses=2, clock=clock, settings=settings)
        assert len(result.succeeded) == 3
        assert result.failed == []
        assert {i.link.case_id for i in result.succeeded} == {"case-0", "case-1", "case-2"}
        assert all(i.link.max_uses == 2 for i in result.succeeded)
        assert len({i.token for i in result.succeeded}) == 3

    def test_failed_target_does_not_stop_the_rest(self, memory_store, clock, settings):
        targets = [LinkTarget(case_id="case-1"), LinkTarget(), LinkTarget(property_id="p-1")]
        result = issue_batch(memory_store, targets, created_by="dev-42", clock=clock, settings=settings)
        assert len(result.succeeded) == 2
        assert len(result.failed) == 1
        assert result.failed[0].target == LinkTarget()
        assert isinstance(result.failed[0].error, InvalidCase)


class TestListLinksForResource:
    def test_newest_first_and_active_only(self, sql_store, clock, settings):
        older = issue_link(sql_store, created_by="dev-42", case_id="c1", clock=clock, settings=settings)
        clock.advance(minutes=5)
        newer = issue_link(sql_store, created_by="dev-42", case_id="c1", clock=clock, settings=settings)
        issue_link(sql_store, created_by="dev-42", case_id="c2", clock=clock, settings=settings)
        sql_store.set_status(older.link_id, LinkStatus.revoked, now=clock(), revoked_by="admin")

        active = list_links_for_resource(sql_store, case_id="c1")
        assert [l.id for l in active] == [newer.link_id]

        everything = list_links_for_resource(sql_store, case_id="c1", include_inactive=True)
        assert [l.id for l in everything] == [newer.link_id, older.link_id]

    def test_requires_a_resource(self, memory_store):
        assert list_links_for_resource(memory_store) == []
