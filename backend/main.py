import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import settings
from database import init_db, close_db
from routers import (
    auth_router,
    member_router,
    orders_router,
    resources_router,
    school_router,
    user_router,
)
from schemas import KNOWN_ERROR_TYPE
from utils.errors import KnownHTTPException
from utils.logging_utils import setup_logging, get_logger
from utils.audit import audit

setup_logging(level=settings.LOG_LEVEL)
logger = get_logger(__name__)


async def bootstrap_staff() -> None:
    """Create the first union staff account from env vars if it does not exist."""
    if not (settings.LOCAL_STAFF_USERNAME and settings.LOCAL_STAFF_PASSWORD):
        return

    from sqlalchemy import select as sa_select
    from database import AsyncSessionLocal
    from models import StaffPermission, UnionStaff, User
    from utils.hashing import hash_password

    async with AsyncSessionLocal() as db:
        result = await db.execute(
            sa_select(UnionStaff).where(
                UnionStaff.username == settings.LOCAL_STAFF_USERNAME
            )
        )
        if result.scalar_one_or_none():
            return

        email = settings.LOCAL_STAFF_EMAIL or f"{settings.LOCAL_STAFF_USERNAME}@localhost"
        user = User(primary_email=email, is_active=True)
        db.add(user)
        await db.flush()
        db.add(
            UnionStaff(
                user_id=user.id,
                username=settings.LOCAL_STAFF_USERNAME,
                password_hash=hash_password(settings.LOCAL_STAFF_PASSWORD),
                permissions=[p.value for p in StaffPermission],
            )
        )
        await db.commit()
        logger.info(f"Bootstrap staff user '{settings.LOCAL_STAFF_USERNAME}' created")


async def bootstrap_system_configuration() -> None:
    """Record the configured service status and contract end date."""
    from database import AsyncSessionLocal
    from services.system_config import sync_configuration_from_settings

    async with AsyncSessionLocal() as db:
        await sync_configuration_from_settings(db)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle startup and shutdown events."""
    logger.info("=" * 60)
    logger.info("MEMBERSHIP BACKEND STARTING UP")
    logger.info(
        f"App: {settings.APP_NAME} v{settings.APP_VERSION} "
        f"({settings.CURRENT_ENVIRONMENT})"
    )

    start = time.perf_counter()
    await init_db()
    logger.info(
        f"Database initialized in {(time.perf_counter() - start) * 1000:.1f}ms"
    )

    from services.health import run_health_checks
    health = await run_health_checks()
    for check in health.checks:
        status_icon = "+" if check.status == "ok" else "!"
        detail = ""
        if check.message:
            detail += f" ({check.message})"
        if check.response_time_ms is not None:
            detail += f" [{check.response_time_ms:.1f}ms]"
        logger.info(f"  {status_icon} {check.name}: {check.status}{detail}")
    if health.status != "healthy":
        logger.warning(f"STARTUP HEALTH: {health.status.upper()} - some checks failed")

    await bootstrap_staff()
    await bootstrap_system_configuration()

    logger.info("STARTUP COMPLETE - Ready to accept requests")
    logger.info("=" * 60)

    yield

    logger.info("MEMBERSHIP BACKEND SHUTTING DOWN")
    await close_db()
    logger.info("Shutdown complete")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    lifespan=lifespan,
)


# ── Error handlers ────────────────────────────────────────────────────

def _known_error_response(
    status_code: int, code: str, detail: str, details: dict | None = None
) -> JSONResponse:
    content = {"code": code, "detail": detail}
    if settings.DEBUG and details:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


@app.exception_handler(KnownHTTPException)
async def known_http_exception_handler(request: Request, exc: KnownHTTPException):
    """Coded errors caused by the requester."""
    logger.debug(
        f"Known error {exc.code.value} on {request.method} {request.url.path}: "
        f"{exc.debug_message or '-'} {exc.details or ''}",
        extra={"request_id": audit.get_request_id()},
    )
    response = _known_error_response(
        exc.status_code, exc.code.value, exc.detail, exc.details
    )
    if exc.headers:
        response.headers.update(exc.headers)
    return response


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
):
    """
    Return per-field validation errors.

    Validators that map to a known error code (nickname, e-invoice barcode)
    take precedence and produce a coded 422 instead.
    """
    errors = []
    for error in exc.errors():
        if error.get("type") == KNOWN_ERROR_TYPE:
            code = error.get("ctx", {}).get("code")
            return _known_error_response(
                status.HTTP_422_UNPROCESSABLE_ENTITY, code, code, {"message": error.get("msg")}
            )

        loc_parts = [str(x) for x in error.get("loc", [])]
        if loc_parts and loc_parts[0] in ("body", "query", "path"):
            loc_parts = loc_parts[1:]
        field = ".".join(loc_parts) if loc_parts else "unknown"

        msg = error.get("msg", "Validation error")
        # Pydantic wraps custom ValueError messages in "Value error, ..."
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, "):]

        errors.append({
            "field": field,
            "message": msg,
            "type": error.get("type", "unknown"),
        })

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "detail": "Validation failed",
            "errors": errors,
        },
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(
        f"Unhandled error on {request.method} {request.url.path}",
        exc_info=exc,
        extra={"request_id": audit.get_request_id()},
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal Server Error"},
    )


# ── Request ID + request logging middleware ───────────────────────────

@app.middleware("http")
async def request_lifecycle(request: Request, call_next):
    """Assign a request ID, log timing, and add the ID to response headers."""
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    audit.set_request_id(request_id)

    start_time = time.perf_counter()
    logger.debug(f"→ {request.method} {request.url.path}")

    response = await call_next(request)

    duration_ms = (time.perf_counter() - start_time) * 1000
    status_indicator = "+" if response.status_code < 400 else "!"
    logger.info(
        f"{status_indicator} {request.method} {request.url.path}",
        extra={
            "status_code": response.status_code,
            "duration_ms": duration_ms,
            "request_id": request_id[:8],
        },
    )

    response.headers["X-Request-ID"] = request_id
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=settings.CORS_ALLOW_METHODS,
    allow_headers=settings.CORS_ALLOW_HEADERS,
)

app.include_router(auth_router)
app.include_router(member_router)
app.include_router(school_router)
app.include_router(resources_router)
app.include_router(user_router)
app.include_router(orders_router)


@app.get("/health", tags=["health"])
async def health_check():
    """Health check endpoint with component status breakdown."""
    from services.health import run_health_checks
    health = await run_health_checks()
    status_code = 200 if health.status in ("healthy", "degraded") else 503
    return JSONResponse(content=health.model_dump(), status_code=status_code)


@app.get("/api/v1/status", tags=["health"])
async def service_status():
    """Operational status announced to the frontends."""
    return {"status": settings.SERVICE_STATUS}


@app.get("/api/info", tags=["info"])
async def get_app_info():
    """Get application version and changelog."""
    from pathlib import Path

    changelog_path = Path(__file__).parent / "CHANGELOG.md"
    try:
        changelog = changelog_path.read_text()
    except FileNotFoundError:
        changelog = "Changelog not available."

    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "changelog": changelog,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
