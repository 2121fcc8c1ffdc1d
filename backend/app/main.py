import logging
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware

from app.api.routes.auth import router as auth_router
from app.api.routes.notes import download_router, router as notes_router
from app.api.routes.otp import router as otp_router
from app.api.routes.profile import router as profile_router
from app.core.config import settings
from app.core.errors import AppError, UpstreamFailure
from app.core.logging import configure_logging
from app.core.responses import api_response
from app.db.init_db import init_db
from app.services.thumbnails import PUBLIC_PREFIX, is_serverless_env

configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


app = FastAPI(title="PDF Notes", version="0.1.0")

# Signed cookie session; cross-site deployments need Secure + SameSite=None
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.SESSION_SECRET,
    session_cookie=settings.SESSION_COOKIE,
    max_age=settings.SESSION_MAX_AGE,
    same_site="none" if settings.COOKIE_CROSS_SITE else "lax",
    https_only=settings.COOKIE_CROSS_SITE,
)

app.include_router(otp_router)
app.include_router(auth_router)
app.include_router(notes_router)
app.include_router(download_router)
app.include_router(profile_router)

app.mount(
    PUBLIC_PREFIX,
    StaticFiles(directory=settings.THUMBNAILS_DIR, check_dir=False),
    name="thumbnails",
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if isinstance(exc, UpstreamFailure):
        logger.error("%s %s failed upstream: %s", request.method, request.url.path, exc.message)
    return api_response(data=exc.data, message=exc.message, status_code=exc.status_code)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return api_response(message=str(exc.detail), status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(p) for p in first.get("loc", ())[1:])
    message = f"{field}: {first.get('msg')}" if field else first.get("msg", "Invalid input")
    return api_response(message=message, status_code=400)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return api_response(message="Internal server error", status_code=500)


@app.on_event("startup")
def _startup() -> None:
    init_db()
    if settings.LOCAL_THUMBNAILS and not is_serverless_env():
        Path(settings.THUMBNAILS_DIR).mkdir(parents=True, exist_ok=True)
    logger.info("%s started (env=%s)", settings.app_name, settings.app_env)


@app.get("/health")
def health():
    return {"status": "ok"}
