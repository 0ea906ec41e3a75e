"""
Database connection and session.

Schema source of truth: securelinks.models. On startup, Base.metadata.create_all(bind=engine)
creates the secure_links and link_access_log tables. scripts/migrate_secure_links.py does
the same for an existing database without starting the app.

Every connection carries a bounded timeout (store_timeout_seconds) so a stuck store call
fails instead of hanging the request.
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from securelinks.config import get_settings


def _connect_args(url: str, timeout_seconds: float) -> dict:
    if url.startswith("sqlite"):
        # sqlite: seconds to wait on a locked database; allow use from TestClient threads
        return {"timeout": timeout_seconds, "check_same_thread": False}
    if url.startswith("postgresql"):
        ms = int(timeout_seconds * 1000)
        return {
            "connect_timeout": max(1, int(timeout_seconds)),
            "options": f"-c statement_timeout={ms} -c lock_timeout={ms}",
        }
    return {}


def make_engine(url: str, timeout_seconds: float):
    return create_engine(
        url,
        pool_pre_ping=True,
        connect_args=_connect_args(url, timeout_seconds),
    )


settings = get_settings()
engine = make_engine(settings.database_url, settings.store_timeout_seconds)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
