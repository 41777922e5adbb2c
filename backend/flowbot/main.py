import os
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .core.config import AssistantSettings, load_environment
from .core.errors import AssistantError, ConfigurationError
from .core.logging import configure_logging, get_logger, get_trace_id
from .core.middleware import RequestContextMiddleware
from .core.tracing import (
    configure_tracing,
    get_trace_id_from_context,
    instrument_fastapi,
    record_exception,
    shutdown_tracing,
)
from .routes import assistant, health, metrics
from .services.assistant.orchestration import AssistantOrchestrator, build_orchestrator

# Use JSON output in production (containerized), console output in development
log_level = os.getenv("LOG_LEVEL", "INFO")
json_output = os.getenv("LOG_JSON", "true").lower() == "true"
configure_logging(log_level=log_level, json_output=json_output)

logger = get_logger(__name__)

configure_tracing()


def _error_response(status_code: int, error: str, message: str) -> JSONResponse:
    response = JSONResponse(status_code=status_code, content={"error": error, "message": message})
    trace_id = get_trace_id() or get_trace_id_from_context()
    if trace_id:
        response.headers["X-Trace-ID"] = trace_id
    return response


async def assistant_error_handler(request: Request, exc: AssistantError):
    """Configuration (500) and validation (400) failures as {error, message}."""
    status_code = 500 if isinstance(exc, ConfigurationError) else 400
    logger.warning(
        "assistant_error",
        status_code=status_code,
        error=exc.error_code,
        detail=exc.message,
        path=request.url.path,
    )
    return _error_response(status_code, exc.error_code, exc.message)


async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies (e.g. missing userId) use the same error shape as empty requests."""
    problems = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()) if p != 'body')}: {err.get('msg')}"
        for err in exc.errors()
    )
    logger.warning("request_validation_failed", path=request.url.path, detail=problems)
    return _error_response(400, "validation_error", problems or "Invalid request body")


async def http_exception_handler(request: Request, exc: HTTPException):
    logger.warning(
        "http_exception",
        status_code=exc.status_code,
        detail=exc.detail,
        path=request.url.path,
        method=request.method,
    )
    trace_id = get_trace_id() or get_trace_id_from_context()
    response = JSONResponse(
        status_code=exc.status_code,
        content={
            "detail": exc.detail,
            "status_code": exc.status_code,
            "trace_id": trace_id,
        },
    )
    if trace_id:
        response.headers["X-Trace-ID"] = trace_id
    return response


async def general_exception_handler(request: Request, exc: Exception):
    record_exception(exc)
    logger.error(
        "unhandled_exception",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
        method=request.method,
        exc_info=True,
    )
    return _error_response(500, "internal_error", "Internal server error")


def create_app(
    settings: Optional[AssistantSettings] = None,
    orchestrator: Optional[AssistantOrchestrator] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Settings are read from the environment only when neither settings nor an
    orchestrator is passed in.
    """
    if orchestrator is None:
        if settings is None:
            load_environment()
            settings = AssistantSettings.from_env()
        orchestrator = build_orchestrator(settings)

    app = FastAPI(
        title="FlowBot Assistant API",
        description="Chat assistant orchestration: classify, generate, persist",
        version="1.0.0",
    )
    app.state.orchestrator = orchestrator

    # CORS for the chat UI; restrict in production
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestContextMiddleware)
    instrument_fastapi(app)

    app.add_exception_handler(AssistantError, assistant_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    app.include_router(assistant.router, prefix="/assistant", tags=["Assistant"])
    app.include_router(health.router, prefix="/health", tags=["Health"])
    app.include_router(metrics.router, prefix="/metrics", tags=["Metrics"])

    @app.on_event("shutdown")
    async def shutdown_event():
        logger.info("app_shutdown_started")
        shutdown_tracing()
        logger.info("app_shutdown_completed")

    logger.info(
        "app_created",
        llm_configured=orchestrator.settings.llm_configured,
        store_available=orchestrator.store is not None,
    )
    return app


app = create_app()
