"""Secure Links – FastAPI application."""
# Load .env before any app code that might read config
from dotenv import load_dotenv
from pathlib import Path
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from securelinks.config import get_settings
from securelinks.database import Base, engine
# Import models so Base.metadata has all tables before create_all (schema source of truth)
from securelinks.models import SecureLink, LinkAccessLog  # noqa: F401
from securelinks.routers import links, portal, validate

settings = get_settings()
app = FastAPI(title=settings.app_name, debug=settings.debug)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.app_base_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(links.router)
app.include_router(validate.router)
app.include_router(portal.router)

_scheduler = None


@app.on_event("startup")
def startup():
    global _scheduler
    log = logging.getLogger("uvicorn.error")
    print(f"[Links] Shareable links use base={settings.app_base_url} env={settings.app_env}")
    if settings.session_secret_key == "session-secret-change-me" and not settings.is_development:
        log.warning("SESSION_SECRET_KEY is the default value; set it in .env before serving real links.")
    try:
        Base.metadata.create_all(bind=engine)
    except Exception as e:
        log.warning("Database startup failed (tables skipped). Check DATABASE_URL and network. Error: %s", e)

    if settings.link_expiry_cron_enabled:
        try:
            from apscheduler.schedulers.background import BackgroundScheduler
            from securelinks.services.link_expiry import run_link_expiry_job

            _scheduler = BackgroundScheduler()
            _scheduler.add_job(run_link_expiry_job, "cron", hour=0, minute=0)
            _scheduler.start()
        except Exception as e:
            log.warning("Link expiry scheduler not started: %s", e)


@app.on_event("shutdown")
def shutdown():
    if _scheduler is not None:
        _scheduler.shutdown(wait=False)


@app.get("/")
def root():
    return {"app": settings.app_name, "status": "ok"}


@app.get("/health")
def health():
    return {"status": "healthy"}
