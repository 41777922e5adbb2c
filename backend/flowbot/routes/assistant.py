"""
Assistant chat endpoints.

POST /assistant                      -> ResponseEnvelope
GET  /assistant/history/{user_id}    -> ConversationHistory
"""
import asyncio

from fastapi import APIRouter, Depends, HTTPException, Path, Query, Request

from flowbot.core.logging import get_logger, set_user_id
from flowbot.services.assistant.orchestration import AssistantOrchestrator
from flowbot.services.assistant.schema import (
    AssistantRequest,
    ConversationHistory,
    ErrorResponse,
    ResponseEnvelope,
)

logger = get_logger(__name__)

router = APIRouter()


def get_orchestrator(request: Request) -> AssistantOrchestrator:
    """Orchestrator built by the application factory."""
    return request.app.state.orchestrator


@router.post(
    "",
    response_model=ResponseEnvelope,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def chat(
    body: AssistantRequest,
    orchestrator: AssistantOrchestrator = Depends(get_orchestrator),
):
    """
    Answer one chat message, optionally about an uploaded file.

    Generation and storage failures still return 200 with a best-effort
    answer; only an empty request (400) or missing service credentials (500)
    produce an error body.
    """
    set_user_id(body.owner_id)
    return await orchestrator.handle(body)


@router.get("/history/{user_id}", response_model=ConversationHistory)
async def history(
    user_id: str = Path(..., description="Owner of the conversation"),
    limit: int = Query(100, ge=1, le=500, description="Maximum number of turns"),
    orchestrator: AssistantOrchestrator = Depends(get_orchestrator),
):
    """Conversation turns for a user, oldest first."""
    set_user_id(user_id)
    store = orchestrator.store
    if store is None:
        logger.warning("history_store_unavailable", user_id=user_id)
        raise HTTPException(status_code=503, detail="Conversation store not configured")

    try:
        turns = await asyncio.wait_for(
            asyncio.to_thread(store.list_conversations, user_id, limit),
            timeout=orchestrator.settings.database_timeout_seconds,
        )
    except Exception as e:
        logger.error(
            "history_load_failed",
            user_id=user_id,
            error=str(e),
            error_type=type(e).__name__,
            exc_info=True,
        )
        raise HTTPException(status_code=500, detail="Failed to load conversation history")

    logger.info("history_loaded", user_id=user_id, turns=len(turns))
    return ConversationHistory(user_id=user_id, turns=turns)
