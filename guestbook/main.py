import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from guestbook.cache import cache
from guestbook.config import settings
from guestbook.database import engine, get_db, init_models, ping
from guestbook.exceptions import GuestbookError, StoreUnavailable
from guestbook.middleware import AccessLogMiddleware
from guestbook.routers import comments, visitors
from guestbook.schemas import HealthResponse
from guestbook.sessions import get_session_issuer

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Request-body fields whose absence has a dedicated error code.
_MISSING_FIELD_CODES = {
    "email": "MissingEmail",
    "name": "MissingName",
    "message": "MissingMessage",
}

# The one required field of each JSON body, for requests sent with no body.
_REQUIRED_BODY_FIELDS = {
    "/api/visitor/login": "email",
    "/api/visitor/profile": "name",
    "/api/comments": "message",
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup. A missing SECRET_KEY raises here, before any request is served.
    get_session_issuer()
    await init_models()
    try:
        await cache.connect()
    except Exception as exc:
        logger.warning("Redis unavailable, continuing without cache: %s", exc)
    logger.info(
        "Guestbook API started (env=%s, auto_approve_comments=%s)",
        settings.APP_ENV, settings.AUTO_APPROVE_COMMENTS,
    )
    yield
    # Shutdown
    await cache.disconnect()
    await engine.dispose()


app = FastAPI(
    title="Guestbook API",
    description="Visitor login, comments and comment moderation",
    version="1.0.0",
    lifespan=lifespan,
)

# Middleware
app.add_middleware(AccessLogMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(visitors.router)
app.include_router(comments.router)


# ---------------------------------------------------------------------------
# Error handlers
# ---------------------------------------------------------------------------

def _error(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"code": code, "message": message})


@app.exception_handler(GuestbookError)
async def guestbook_error_handler(request: Request, exc: GuestbookError):
    return _error(exc.status_code, exc.code, exc.message)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    loc = first.get("loc", ())
    if tuple(loc) == ("body",):
        field = _REQUIRED_BODY_FIELDS.get(request.url.path)
    else:
        field = loc[-1] if len(loc) > 1 and loc[0] == "body" else None
    if field in _MISSING_FIELD_CODES and first.get("type") in ("missing", "string_too_short"):
        return _error(400, _MISSING_FIELD_CODES[field], f"{field.capitalize()} is required")
    return _error(400, "ValidationError", first.get("msg", "Invalid request"))


@app.exception_handler(SQLAlchemyError)
async def store_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Database error on %s %s", request.method, request.url.path)
    err = StoreUnavailable()
    return _error(err.status_code, err.code, err.message)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error(500, "ServerError", "Server error")


@app.get("/api/health", response_model=HealthResponse)
async def health(db: AsyncSession = Depends(get_db)):
    connected = await ping(db)
    return HealthResponse(
        status="OK",
        database="Connected" if connected else "Disconnected",
        timestamp=datetime.now(timezone.utc),
        cache={"connected": cache.connected, **cache.stats},
    )
