import logging
import os
import threading

from fastapi import FastAPI, Request
from fastapi.staticfiles import StaticFiles
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from recyclehub.routes import auth, users, dropping_points, daily_prices, pickup_orders, uploads
from recyclehub.database.base import Base
from recyclehub.database.session import engine, SessionLocal
from recyclehub.models import daily_price, dropping_point, pickup_order, user  # noqa: F401
from recyclehub.core.config import (
    ADMIN_EMAIL,
    ADMIN_PASSWORD,
    ADMIN_NAME,
    CORS_ORIGINS,
    CORS_ORIGIN_REGEX,
    parse_cors_origins,
)
from recyclehub.core.permissions import parse_roles, serialize_roles
from recyclehub.core.security import get_password_hash
from recyclehub.models.user import User

logger = logging.getLogger("uvicorn.error")
app = FastAPI(title="Recycle Hub")

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

app.mount("/uploads", StaticFiles(directory=str(uploads.get_uploads_base_dir())), name="uploads")


def ensure_admin_user():
    if not ADMIN_EMAIL or not ADMIN_PASSWORD:
        return
    db = SessionLocal()
    try:
        email = ADMIN_EMAIL.strip().lower()
        existing = db.query(User).filter(User.email == email).first()
        if existing:
            updated = False
            if ADMIN_NAME and existing.name != ADMIN_NAME:
                existing.name = ADMIN_NAME
                updated = True
            roles = parse_roles(existing.roles)
            if "admin" not in roles:
                existing.roles = serialize_roles(roles + ["admin"])
                updated = True
            if updated:
                db.commit()
            return
        admin = User(
            name=ADMIN_NAME,
            email=email,
            password=get_password_hash(ADMIN_PASSWORD),
            roles=serialize_roles(["admin"])
        )
        db.add(admin)
        db.commit()
    finally:
        db.close()


def run_db_bootstrap() -> None:
    steps = [
        ("create_all", lambda: Base.metadata.create_all(bind=engine)),
        ("ensure_admin_user", ensure_admin_user),
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

    mode = str(os.getenv("DB_BOOTSTRAP_MODE", "background") or "background").strip().lower()
    if mode == "off":
        logger.info("DB bootstrap disabled (DB_BOOTSTRAP_MODE=off).")
        return
    if mode == "sync":
        logger.info("Running DB bootstrap synchronously.")
        run_db_bootstrap()
        return

    logger.info("Running DB bootstrap in the background.")
    threading.Thread(target=run_db_bootstrap, daemon=True, name="db-bootstrap").start()


app.include_router(auth.router)
app.include_router(users.router)
app.include_router(dropping_points.router)
app.include_router(daily_prices.router)
app.include_router(pickup_orders.router)
app.include_router(uploads.router)

@app.get("/")
def root():
    return {"message": "Recycle Hub API is running"}


@app.get("/health")
def healthcheck():
    return {"status": "ok"}


@app.get("/health/db")
def healthcheck_db():
    with engine.connect() as connection:
        connection.execute(text("SELECT 1"))
    return {"status": "ok"}


@app.on_event("startup")
def startup_event():
    trigger_db_bootstrap()
