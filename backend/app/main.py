import logging
import threading
import time
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from app.routes import assignments, auth, users
from app.database import bootstrap
from app.database.session import engine, SessionLocal
from app.models import Assignment, AssignmentNumber, User  # noqa: F401
from app.core.config import (
    ADMIN_EMAIL,
    ADMIN_PASSWORD,
    ADMIN_NAME,
    ADMIN_ROLE,
    APP_VERSION,
    CORS_ORIGINS,
    CORS_ORIGIN_REGEX,
    DB_BOOTSTRAP_MODE,
    parse_cors_origins,
)

logger = logging.getLogger("uvicorn.error")
app = FastAPI(title="DP Numbers API", version=APP_VERSION)
started_at = time.monotonic()

cors_origins = parse_cors_origins(CORS_ORIGINS)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_origin_regex=CORS_ORIGIN_REGEX,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"]
)


@app.middleware("http")
async def ensure_utf8_json_charset(request: Request, call_next):
    response = await call_next(request)
    content_type = str(response.headers.get("content-type", ""))
    if content_type.startswith("application/json") and "charset=" not in content_type.lower():
        response.headers["content-type"] = "application/json; charset=utf-8"
    return response


def seed_admin_user() -> None:
    with SessionLocal() as db:
        bootstrap.ensure_admin_user(db, ADMIN_EMAIL, ADMIN_PASSWORD, ADMIN_NAME, ADMIN_ROLE)


def run_db_bootstrap() -> None:
    steps = [
        ("create_tables", lambda: bootstrap.create_tables(engine)),
        ("ensure_assignment_number_unique_index", lambda: bootstrap.ensure_assignment_number_unique_index(engine)),
        ("seed_admin_user", seed_admin_user),
    ]
    for step_name, step_fn in steps:
        try:
            step_fn()
        except Exception:  # pragma: no cover - startup hardening
            logger.exception("Database bootstrap failed (step: %s)", step_name)


_bootstrap_lock = threading.Lock()
_bootstrap_started = False


def trigger_db_bootstrap() -> None:
    global _bootstrap_started
    with _bootstrap_lock:
        if _bootstrap_started:
            return
        _bootstrap_started = True

    mode = str(DB_BOOTSTRAP_MODE or "background").strip().lower()
    if mode == "off":
        logger.info("DB bootstrap disabled (DB_BOOTSTRAP_MODE=off).")
        return
    if mode == "sync":
        logger.info("Running DB bootstrap synchronously.")
        run_db_bootstrap()
        return

    logger.info("Running DB bootstrap in background.")
    threading.Thread(target=run_db_bootstrap, daemon=True, name="db-bootstrap").start()


app.include_router(assignments.router)
app.include_router(auth.router)
app.include_router(users.router)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@app.get("/")
def root():
    return {
        "message": "DP Numbers API is running",
        "version": APP_VERSION,
        "timestamp": _now_iso(),
    }


@app.get("/health")
def healthcheck():
    return {
        "status": "ok",
        "uptime": round(time.monotonic() - started_at, 3),
        "timestamp": _now_iso(),
    }


@app.get("/health/db")
def healthcheck_db():
    with engine.connect() as connection:
        connection.execute(text("SELECT 1"))
    return {"status": "ok"}


@app.on_event("startup")
def startup_event():
    trigger_db_bootstrap()
