"""Pytest configuration for securelinks tests."""
import os
import tempfile
from datetime import datetime, timedelta, timezone

# Settings and the module-level engine read the environment at import time
_TMP = tempfile.mkdtemp(prefix="securelinks-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP, 'app.db')}"
os.environ["APP_ENV"] = "development"
os.environ["SESSION_SECRET_KEY"] = "test-session-secret"
os.environ["APP_BASE_URL"] = "https://snang.my"
os.environ["LINK_EXPIRY_CRON_ENABLED"] = "false"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from securelinks.config import Settings
from securelinks.database import Base, get_db, make_engine
from securelinks.dependencies import get_session_factory
from securelinks.main import app
from securelinks.services.access_log import AccessLogger
from securelinks.services.link_store import InMemoryLinkStore, SqlAlchemyLinkStore
from securelinks.services.validator import Validator


class FakeClock:
    """Deterministic UTC clock; call it like utcnow()."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    return Settings(
        app_env="development",
        session_secret_key="test-session-secret",
        app_base_url="https://snang.my/",
        database_url="sqlite://",
    )


@pytest.fixture
def engine(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path / 'links.db'}", 5.0)
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def sql_store(db):
    return SqlAlchemyLinkStore(db)


@pytest.fixture
def memory_store():
    return InMemoryLinkStore()


@pytest.fixture
def sql_validator(sql_store, clock):
    return Validator(sql_store, AccessLogger(sql_store), clock)


@pytest.fixture
def memory_validator(memory_store, clock):
    return Validator(memory_store, AccessLogger(memory_store), clock)


@pytest.fixture
def client(session_factory):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    yield TestClient(app)
    app.dependency_overrides.clear()
