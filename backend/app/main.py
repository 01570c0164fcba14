import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import IntegrityError
from app.api.routes import router
from app.config import settings
from app.errors import AppError
from app.rate_limit import limiter
from app.schemas.error import ErrorResponse

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

APP_VERSION = "0.1.0"

app = FastAPI(
    title="Gestión Guías",
    description="Port-call, service-window and guide shift administration.",
    version=APP_VERSION,
)

# CORS: origins from settings (supports comma-separated env var)
cors_origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.include_router(router, prefix="/api/v1")


# ── Structured error handlers ─────────────────────────────────────────────────

def _error(status_code: int, detail: str, code: str, details=None) -> JSONResponse:
    body = ErrorResponse(detail=detail, code=code, details=details)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("AppError on %s %s: %s", request.method, request.url.path, exc.message)
    return _error(exc.status_code, exc.message, exc.code, exc.details)


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    return _error(422, str(exc), "VALIDATION_ERROR")


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning("IntegrityError on %s %s: %s", request.method, request.url.path, exc.orig or exc)
    return _error(409, "Conflict with existing data", "CONFLICT")


@app.exception_handler(Exception)
async def general_error_handler(request: Request, exc: Exception):
    logger.error("Unhandled exception on %s %s:\n%s", request.method, request.url.path, traceback.format_exc())
    return _error(500, "An unexpected error occurred.", "INTERNAL_SERVER_ERROR")


@app.get("/health")
def health() -> dict:
    return {"status": "ok", "version": APP_VERSION}
