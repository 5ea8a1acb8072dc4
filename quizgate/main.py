"""
QuizGate - quiz attempt lifecycle and integrity monitoring.

FastAPI application entry point.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from quizgate.api.deps import AttemptStoreDep, get_registry
from quizgate.api.middleware.request_id import RequestIdMiddleware
from quizgate.api.v1 import router as api_v1_router
from quizgate.config import get_settings
from quizgate.database import close_db, init_db
from quizgate.logging_config import configure_logging, get_logger
from quizgate.orchestration.errors import (
    FetchFailure,
    InvalidSubmission,
    NotAvailable,
    QuizSessionError,
    SubmissionFailure,
    UnknownQuiz,
)
from quizgate.schemas.common import ErrorResponse, HealthResponse, NotAvailableResponse

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
    get_registry().close_all()
    await close_db()
    logger.info("Database connections closed")


app = FastAPI(
    title=settings.project_name,
    description="""
    QuizGate

    Quiz attempt lifecycle with integrity monitoring.

    ## Features

    - **Progression**: per-level completion and 24h lockouts from attempt history
    - **Quiz Sessions**: checking, loading, active, submitted and review states
    - **Integrity Monitor**: tab switch, focus loss, unload and shortcut detection
    - **Attempt Store**: append-only attempts with server-side scoring
    """,
    version=settings.version,
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)


# add_middleware stacks innermost-first: CORS is added last so it wraps every response
_cors_origins = list(settings.cors_origins)

app.add_middleware(RequestIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _cors_headers(request: Request) -> dict:
    """CORS headers for error responses (500s often bypass CORS middleware)."""
    origin = request.headers.get("origin") or ""
    allow_origin = origin if origin in _cors_origins else _cors_origins[0]
    headers = {
        "Access-Control-Allow-Origin": allow_origin,
        "Access-Control-Allow-Credentials": "true",
        "Access-Control-Allow-Methods": "*",
        "Access-Control-Allow-Headers": "*",
    }
    req_id = getattr(request.state, "request_id", None)
    if req_id:
        headers["X-Request-ID"] = req_id
    return headers


def _error(request: Request, status_code: int, content: dict) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(content),
        headers=_cors_headers(request),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    content = {"detail": exc.detail}
    req_id = getattr(request.state, "request_id", None)
    if req_id and exc.status_code >= 500:
        content["request_id"] = req_id
    return _error(request, exc.status_code, content)


@app.exception_handler(NotAvailable)
async def not_available_handler(request: Request, exc: NotAvailable):
    """Refused entry: redirect target and explanation, not a crash."""
    body = NotAvailableResponse(
        detail=exc.message,
        reason=exc.reason,
        next_step=exc.next_step,
        unlock_at=exc.unlock_at,
    )
    return _error(request, status.HTTP_409_CONFLICT, body.model_dump())


# Most specific first; NotAvailable has its own handler
_DOMAIN_ERRORS = (
    (UnknownQuiz, status.HTTP_404_NOT_FOUND, "unknown_quiz"),
    (InvalidSubmission, status.HTTP_422_UNPROCESSABLE_ENTITY, "invalid_submission"),
    (FetchFailure, status.HTTP_502_BAD_GATEWAY, "fetch_failed"),
    (SubmissionFailure, status.HTTP_503_SERVICE_UNAVAILABLE, "submission_failed"),
)


@app.exception_handler(QuizSessionError)
async def quiz_session_error_handler(request: Request, exc: QuizSessionError):
    """Domain failures from the session controller and the attempt store."""
    for error_type, status_code, code in _DOMAIN_ERRORS:
        if isinstance(exc, error_type):
            break
    else:
        status_code, code = status.HTTP_409_CONFLICT, "session_error"
    body = ErrorResponse(detail=str(exc), code=code)
    return _error(request, status_code, body.model_dump(exclude_none=True))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    content = {"detail": "Validation error", "errors": errors}
    req_id = getattr(request.state, "request_id", None)
    if req_id:
        content["request_id"] = req_id
    return _error(request, status.HTTP_422_UNPROCESSABLE_ENTITY, content)


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception("Unhandled exception: %s", exc)
    req_id = getattr(request.state, "request_id", None)
    if settings.debug:
        content = {"detail": str(exc), "type": type(exc).__name__, "request_id": req_id}
    else:
        content = {"detail": "Internal server error", "request_id": req_id}
    return _error(request, status.HTTP_500_INTERNAL_SERVER_ERROR, content)


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check(store: AttemptStoreDep):
    """Liveness plus a database probe and the number of live quiz sessions."""
    database_ok = await store.ping()
    return HealthResponse(
        status="ok" if database_ok else "degraded",
        version=settings.version,
        database="connected" if database_ok else "unavailable",
        active_sessions=len(get_registry()),
    )


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "name": settings.project_name,
        "version": settings.version,
        "docs": "/docs" if settings.debug else "disabled",
        "api": {
            "v1": settings.api_v1_prefix,
        },
    }


app.include_router(
    api_v1_router,
    prefix=settings.api_v1_prefix,
)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "quizgate.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
