"""
Showcase Guard

FastAPI application entry point for the authorization, collaboration,
audit and request-safety layer of the project showcase platform.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from showcase.api.middleware.rate_limit import RateLimitMiddleware
from showcase.api.middleware.request_id import RequestIdMiddleware
from showcase.api.v1 import router as api_v1_router
from showcase.config import get_settings
from showcase.database import close_db, init_db
from showcase.kernel.errors import ErrorKind, GuardError, RateLimited
from showcase.logging_config import configure_logging, get_logger
from showcase.schemas.common import HealthResponse

settings = get_settings()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan handler.

    Runs startup and shutdown tasks.
    """
    configure_logging(
        log_level=settings.log_level,
        environment=settings.environment,
        debug=settings.debug,
    )

    logger.info("Starting %s v%s", settings.project_name, settings.version)
    await init_db()
    logger.info("Database initialized")

    yield

    logger.info("Shutting down...")
    await close_db()
    logger.info("Database connections closed")


app = FastAPI(
    title=settings.project_name,
    description="""
    Showcase Guard

    Authorization and request-safety layer for the project showcase platform.

    ## Features

    - **Permissions**: static role -> permission table (visitor, creator, admin, super_admin)
    - **Collaboration**: invite / accept / reject / remove, with derived edit access
    - **Audit Trail**: append-only log of significant actions, admin-searchable
    - **Request Safety**: per-route rate limits and idempotency keys on mutations
    """,
    version=settings.version,
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)


# add_middleware stacks innermost-first, so the last added is outermost.
# CORS is outermost so 429s from the rate limiter also carry CORS headers.
_cors_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

app.add_middleware(RateLimitMiddleware)
app.add_middleware(RequestIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_headers(request: Request) -> dict:
    headers = {}
    req_id = getattr(request.state, "request_id", None)
    if req_id:
        headers["X-Request-ID"] = req_id
    return headers


@app.exception_handler(GuardError)
async def guard_error_handler(request: Request, exc: GuardError):
    """Render guard-layer errors in the standard error envelope."""
    headers = _error_headers(request)
    if isinstance(exc, RateLimited):
        headers["Retry-After"] = str(exc.retry_after)
        headers["X-RateLimit-Limit"] = str(exc.limit)
        headers["X-RateLimit-Remaining"] = "0"
        headers["X-RateLimit-Reset"] = str(exc.reset_at)
    if exc.http_status == status.HTTP_401_UNAUTHORIZED:
        headers["WWW-Authenticate"] = "Bearer"
    return JSONResponse(status_code=exc.http_status, content=exc.to_response(), headers=headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
):
    """Handle request validation errors."""
    errors = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"])
        errors.append({
            "field": field,
            "message": error["msg"],
            "type": error["type"],
        })
    content = {
        "error": {
            "kind": ErrorKind.VALIDATION_ERROR.value,
            "code": "invalid_request",
            "message": "Validation error",
            "details": {"errors": errors},
        }
    }
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=content,
        headers=_error_headers(request),
    )


@app.exception_handler(Exception)
async def general_exception_handler(
    request: Request,
    exc: Exception,
):
    """Handle unexpected exceptions."""
    logger.exception("Unhandled exception: %s", exc)
    req_id = getattr(request.state, "request_id", None)
    if settings.debug:
        content = {
            "detail": str(exc),
            "type": type(exc).__name__,
            "request_id": req_id,
        }
    else:
        content = {"detail": "Internal server error", "request_id": req_id}
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=content,
        headers=_error_headers(request),
    )


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Check application health."""
    return HealthResponse(status="ok", version=settings.version)


app.include_router(
    api_v1_router,
    prefix=settings.api_v1_prefix,
)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "showcase.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
