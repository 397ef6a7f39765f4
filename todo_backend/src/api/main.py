from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .errors import TodoApiError
from .repositories import Repository, get_repository
from .routers import todos as todos_router
from .settings import Settings, get_settings
from .utils import error_envelope, redact_uri

logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "health", "description": "Service health and diagnostic endpoints."},
    {"name": "todos", "description": "CRUD operations for Todo items stored in MongoDB."},
]

CORS_METHODS = ["GET", "POST", "PUT", "DELETE", "OPTIONS"]
CORS_HEADERS = ["Content-Type", "Authorization", "Accept"]


# PUBLIC_INTERFACE
async def connect_store(repository: Repository) -> bool:
    """
    Connect the repository off the event loop and log the outcome.

    Failures are logged, never raised: the HTTP server keeps serving and
    requests surface store errors until the database becomes reachable.
    """
    try:
        info = await asyncio.to_thread(repository.connect)
    except Exception as exc:
        logger.error("MongoDB connection failed: %s", exc)
        logger.warning("Server is running but MongoDB is not connected. Check that MongoDB is reachable.")
        return False
    logger.info("Store ready: %s", ", ".join(f"{k}={v}" for k, v in info.items()))
    return True


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Schedule the store connection without blocking startup, close it on shutdown.
    """
    repository: Repository = app.state.repository
    connect_task = asyncio.create_task(connect_store(repository))
    try:
        yield
    finally:
        if not connect_task.done():
            connect_task.cancel()
        repository.close()


def _validation_message(exc: RequestValidationError) -> str:
    problems = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part != "body"]
        field = ".".join(loc) or "body"
        problems.append(f"{field}: {err.get('msg', 'invalid value')}")
    return "Invalid request: " + "; ".join(problems) if problems else "Invalid request."


def _install_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(TodoApiError)
    async def todo_api_error_handler(request: Request, exc: TodoApiError) -> JSONResponse:
        """Render domain errors through the error envelope."""
        return JSONResponse(status_code=exc.status_code, content=error_envelope(exc.message, exc.error))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """
        Malformed JSON and wrongly-typed fields are client errors: 400 with a
        readable field-level message.
        """
        return JSONResponse(status_code=400, content=error_envelope(_validation_message(exc)))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        """Unknown routes and unsupported methods keep the envelope shape."""
        return JSONResponse(
            status_code=exc.status_code,
            content=error_envelope(str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        """Anything unhandled still answers with a JSON 500 envelope."""
        logger.exception("Unexpected error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content=error_envelope("An unexpected error occurred.", str(exc)),
        )


# PUBLIC_INTERFACE
def create_app(repository: Optional[Repository] = None, settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        repository: Store used by the todo routes. Built from settings when omitted.
        settings: Configuration; read from the environment when omitted.
    """
    settings = settings or get_settings()
    if repository is None:
        repository = get_repository(settings)

    app = FastAPI(
        title="Todo Backend",
        description="Backend API service for managing todos stored in MongoDB.",
        version="1.0.0",
        openapi_tags=openapi_tags,
        lifespan=lifespan,
    )
    app.state.repository = repository
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins or ["*"],
        allow_credentials=False,
        allow_methods=CORS_METHODS,
        allow_headers=CORS_HEADERS,
    )
    _install_exception_handlers(app)

    # PUBLIC_INTERFACE
    @app.get("/", summary="Health Check", tags=["health"])
    def health_check():
        """
        Liveness endpoint.

        Returns:
            A JSON object with a status message and the configured backend.
        """
        return {"message": "Todo Backend API is running!", "backend": settings.persistence_backend}

    # PUBLIC_INTERFACE
    @app.get("/ip", summary="Caller IP", tags=["health"])
    def caller_ip(request: Request):
        """
        Report the caller's apparent address, useful when allow-listing a hosted database.
        """
        forwarded = request.headers.get("x-forwarded-for", "")
        first_hop = forwarded.split(",")[0].strip() if forwarded else None
        peer = request.client.host if request.client else None
        return {"success": True, "message": "Caller address resolved.", "ip": first_hop or peer}

    app.include_router(todos_router.router, prefix=settings.api_prefix)
    return app


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _log_startup(settings: Settings) -> None:
    logger.info("Persistence backend: %s", settings.persistence_backend)
    if settings.persistence_backend != "mongo":
        return
    if not settings.mongo_url_configured:
        logger.warning("MONGO_URL is not set; using the default %s", settings.mongo_url)
        logger.warning("Check that a .env file exists in the working directory.")
    else:
        logger.info("MONGO_URL loaded: %s", redact_uri(settings.mongo_url))


_settings = get_settings()
configure_logging(_settings)
_log_startup(_settings)

app = create_app(settings=_settings)


# PUBLIC_INTERFACE
def run() -> None:
    """Start the HTTP server on HOST:PORT."""
    logger.info("Server starting on http://%s:%s", _settings.host, _settings.port)
    uvicorn.run(
        app,
        host=_settings.host,
        port=_settings.port,
        log_level=getattr(logging, _settings.log_level, logging.INFO),
    )
