"""
Health check endpoints.
"""
from fastapi import APIRouter, Request

from flowbot.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


@router.get("/")
async def health_check():
    """
    Basic health check endpoint.
    """
    return {
        "status": "ok",
        "message": "API is running"
    }


@router.get("/assistant")
async def assistant_health(request: Request):
    """
    Which assistant collaborators are configured.

    Returns:
        - llm_configured: generation credentials present (required)
        - storage_available: uploaded files can be read
        - store_available: conversations can be persisted
        - file_content_max_chars / generated_content_min_chars: active bounds
    """
    orchestrator = request.app.state.orchestrator
    settings = orchestrator.settings
    llm_configured = settings.llm_configured
    storage_available = orchestrator.file_loader.storage is not None
    store_available = orchestrator.store is not None

    if not llm_configured:
        status = "unavailable"
        message = "LLM API key not configured"
    elif not (storage_available and store_available):
        status = "degraded"
        message = "Supabase not configured; files cannot be read and conversations are not saved"
    else:
        status = "ok"
        message = "Assistant is ready"

    return {
        "status": status,
        "llm_configured": llm_configured,
        "storage_available": storage_available,
        "store_available": store_available,
        "file_content_max_chars": settings.file_content_max_chars,
        "generated_content_min_chars": settings.generated_content_min_chars,
        "message": message,
    }
