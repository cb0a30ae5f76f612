import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from swaadgharka.core.config import CORS_ORIGINS, DATABASE_URL, IS_PROD
from swaadgharka.core.database import Base, SessionLocal, engine
from swaadgharka.core.errors import AppError
from swaadgharka.core.logging_setup import configure_logging
from swaadgharka.core.request_context import get_request_id, get_route, get_user_id
from swaadgharka.core.startup_checks import (
    ensure_migrations_applied,
    validate_database_environment,
    validate_security_settings,
)
from swaadgharka.middleware.observability import ObservabilityMiddleware
from swaadgharka.middleware.rate_limit import ClientRateLimitMiddleware
import swaadgharka.models  # noqa: F401  models must be imported before create_all

from swaadgharka.routers.admin_audit import router as admin_audit_router
from swaadgharka.routers.auth import router as auth_router
from swaadgharka.routers.internal_metrics import router as internal_metrics_router
from swaadgharka.routers.menu import router as menu_router
from swaadgharka.routers.orders import router as orders_router
from swaadgharka.routers.payments import router as payments_router
from swaadgharka.routers.users import router as users_router
from swaadgharka.services.admin_bootstrap import upsert_admin_user

configure_logging()

logger = logging.getLogger(__name__)
BOOTSTRAP_PREFIX = "[ADMIN_BOOTSTRAP]"
DEFAULT_ADMIN_EMAIL = "admin@swaadgharka.in"
DEFAULT_ADMIN_NAME = "Admin"
REPO_ROOT = Path(__file__).resolve().parents[1]
ALEMBIC_CONFIG_PATH = Path(
    os.getenv("ALEMBIC_CONFIG", str(REPO_ROOT / "alembic.ini"))
)

_HTTP_ERROR_CODES = {
    401: "unauthenticated",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
}


@asynccontextmanager
async def lifespan(_: FastAPI):
    _startup_tasks()
    yield


app = FastAPI(
    title="SwaadGharKa API",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(ClientRateLimitMiddleware)
app.add_middleware(ObservabilityMiddleware)


# =========================
# Error envelope
# =========================
def _error_context(request: Request) -> dict:
    # The user is resolved in a threadpool dependency, so the contextvar may not be visible here
    user = getattr(request.state, "user", None)
    return {
        "request_id": get_request_id(),
        "user_id": str(user.id) if user is not None else get_user_id(),
        "route": get_route() or f"{request.method} {request.url.path}",
        "actor_role": getattr(user, "role", None),
    }


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("%s: %s", exc.code, exc.message, extra=_error_context(request))
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=exc.headers)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "message": str(exc.detail),
            "code": _HTTP_ERROR_CODES.get(exc.status_code, "http_error"),
        },
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = [
        {
            "field": ".".join(str(part) for part in error.get("loc", ())[1:]) or None,
            "message": error.get("msg"),
        }
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "message": "Validation failed",
            "code": "validation_failed",
            "errors": errors,
        },
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error", extra=_error_context(request))
    content = {
        "success": False,
        "message": "Internal server error",
        "code": "internal_error",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if not IS_PROD:
        content["trace"] = f"{type(exc).__name__}: {exc}"
    return JSONResponse(status_code=500, content=content)


# =========================
# Startup
# =========================
def _bootstrap_initial_admin() -> None:
    dev_admin_password = os.getenv("DEV_ADMIN_PASSWORD", "").strip()
    if not dev_admin_password:
        logger.info("%s skipped: configure DEV_ADMIN_PASSWORD.", BOOTSTRAP_PREFIX)
        return

    dev_admin_email = os.getenv("DEV_ADMIN_EMAIL", DEFAULT_ADMIN_EMAIL).strip() or DEFAULT_ADMIN_EMAIL
    dev_admin_name = os.getenv("DEV_ADMIN_NAME", DEFAULT_ADMIN_NAME).strip() or DEFAULT_ADMIN_NAME

    db = SessionLocal()
    try:
        admin, created = upsert_admin_user(
            db,
            email=dev_admin_email,
            name=dev_admin_name,
            password=dev_admin_password,
        )
        logger.info(
            "%s %s id=%s email=%s",
            BOOTSTRAP_PREFIX,
            "created" if created else "updated",
            admin.id,
            admin.email,
        )
    except Exception:
        logger.exception("%s ERROR bootstrap failed", BOOTSTRAP_PREFIX)
        raise
    finally:
        db.close()


def _startup_tasks() -> None:
    try:
        validate_database_environment()
        validate_security_settings()
        if DATABASE_URL.startswith("sqlite"):
            Base.metadata.create_all(bind=engine)
        ensure_migrations_applied(engine=engine, alembic_config_path=ALEMBIC_CONFIG_PATH)
        _bootstrap_initial_admin()
    except Exception:
        logger.exception("[STARTUP] ERROR startup failed")
        raise


# Routers
app.include_router(auth_router)
app.include_router(menu_router)
app.include_router(orders_router)
app.include_router(payments_router)
app.include_router(users_router)
app.include_router(admin_audit_router)
app.include_router(internal_metrics_router)


@app.get("/")
def root():
    return {"status": "ok"}


@app.get("/health")
def health():
    return {"status": "healthy"}
