"""
Best-effort persistence of assistant exchanges.

Every request that reaches this layer appends one row to ai_conversations.
Substantial or reusable output additionally appends one row to
generated_content. The two writes are independent: they run concurrently, each
failure is logged and counted, and neither can change the response already
computed for the caller.
"""
import asyncio
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Protocol

from supabase import Client

from flowbot.core.errors import PersistenceError
from flowbot.core.logging import get_logger
from flowbot.core.metrics import record_persistence_timeout, record_persistence_write
from flowbot.services.assistant.composer import ComposedResponse
from flowbot.services.assistant.schema import (
    AssistantRequest,
    ContentType,
    ConversationTurn,
    GeneratedContentRecord,
    MetadataType,
)

logger = get_logger(__name__)

TITLE_MAX_CHARS = 60


class ConversationStore(Protocol):
    def insert_conversation(self, turn: ConversationTurn) -> None:
        ...

    def insert_generated_content(self, record: GeneratedContentRecord) -> None:
        ...

    def list_conversations(self, owner_id: str, limit: int = 100) -> List[ConversationTurn]:
        ...


class SupabaseConversationStore:
    """ConversationStore over two append-only Supabase tables."""

    def __init__(
        self,
        client: Client,
        conversations_table: str = "ai_conversations",
        generated_content_table: str = "generated_content",
    ):
        self.client = client
        self.conversations_table = conversations_table
        self.generated_content_table = generated_content_table

    def _insert(self, table: str, row: Dict[str, Any]) -> None:
        response = self.client.table(table).insert(row).execute()
        if not response.data:
            raise PersistenceError(table, f"Insert into {table} returned no rows")

    def insert_conversation(self, turn: ConversationTurn) -> None:
        self._insert(self.conversations_table, turn.to_row())

    def insert_generated_content(self, record: GeneratedContentRecord) -> None:
        self._insert(self.generated_content_table, record.to_row())

    def list_conversations(self, owner_id: str, limit: int = 100) -> List[ConversationTurn]:
        response = (
            self.client.table(self.conversations_table)
            .select("*")
            .eq("user_id", owner_id)
            .order("created_at")
            .limit(limit)
            .execute()
        )
        return [ConversationTurn.from_row(row) for row in response.data or []]


@dataclass
class PersistenceResult:
    conversation_saved: bool
    generated_content_saved: Optional[bool]  # None when no record was due


def build_title(request: AssistantRequest, composed: ComposedResponse, content_type: ContentType) -> str:
    source = (request.message or "").strip()
    if not source and composed.file_processed and request.file_ref:
        source = f"Analysis of {request.file_ref.rstrip('/').split('/')[-1]}"
    source = source or "Assistant response"
    if len(source) > TITLE_MAX_CHARS:
        source = source[: TITLE_MAX_CHARS - 3].rstrip() + "..."
    if content_type == ContentType.IMAGE:
        return f"Generated image: {source}"
    return source


class ConversationPersistence:
    """Writes ConversationTurn and, when warranted, GeneratedContentRecord."""

    def __init__(
        self,
        store: Optional[ConversationStore],
        generated_content_min_chars: int = 500,
        timeout_seconds: float = 10.0,
        conversations_table: str = "ai_conversations",
        generated_content_table: str = "generated_content",
    ):
        self.store = store
        self.conversations_table = conversations_table
        self.generated_content_table = generated_content_table
        self.generated_content_min_chars = generated_content_min_chars
        self.timeout_seconds = timeout_seconds

    def build_turn(self, request: AssistantRequest, composed: ComposedResponse) -> ConversationTurn:
        return ConversationTurn(
            owner_id=request.owner_id,
            user_message=request.message or "",
            assistant_response=composed.text,
            message_type=composed.outcome.route,
            metadata=composed.metadata.model_dump(mode="json"),
        )

    def should_store_generated_content(self, composed: ComposedResponse) -> bool:
        """
        True when the answer is worth keeping as an artifact.

        Degraded answers are never stored. Otherwise any of: an image was
        produced, the answer is long, a file was processed, or the answer
        was tagged data_processing.
        """
        if composed.outcome.degraded:
            return False
        return (
            composed.outcome.image_url is not None
            or len(composed.text) > self.generated_content_min_chars
            or composed.file_processed
            or composed.metadata.type == MetadataType.DATA_PROCESSING.value
        )

    def build_generated_content(
        self, request: AssistantRequest, composed: ComposedResponse
    ) -> GeneratedContentRecord:
        outcome = composed.outcome
        if outcome.image_url is not None:
            content_type = ContentType.IMAGE
            payload = {"image_url": outcome.image_url, **outcome.details}
        else:
            content_type = ContentType.DOCUMENT
            payload = {"text": composed.text, "metadata_type": composed.metadata.type}
        return GeneratedContentRecord(
            owner_id=request.owner_id,
            content_type=content_type,
            title=build_title(request, composed, content_type),
            payload=payload,
            prompt=request.message or outcome.prompt,
        )

    async def _write(self, table: str, write: Callable[[], None]) -> bool:
        """
        Run one insert off the event loop, bounded by timeout_seconds.

        A timed-out insert keeps running in its worker thread and may still
        commit, so timeouts are logged and counted apart from failures.
        """
        try:
            await asyncio.wait_for(asyncio.to_thread(write), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            record_persistence_timeout(table)
            logger.warning(
                "persistence_write_timed_out",
                table=table,
                timeout_seconds=self.timeout_seconds,
            )
            return False
        except Exception as exc:
            error = exc if isinstance(exc, PersistenceError) else PersistenceError(
                table, f"Write to {table} failed: {exc}", cause=exc
            )
            record_persistence_write(table, success=False)
            logger.error(
                "persistence_write_failed",
                table=table,
                error=error.message,
                error_type=type(exc).__name__,
            )
            return False
        record_persistence_write(table, success=True)
        return True

    async def persist(self, request: AssistantRequest, composed: ComposedResponse) -> PersistenceResult:
        if self.store is None:
            logger.warning("persistence_skipped", reason="conversation store not configured")
            return PersistenceResult(conversation_saved=False, generated_content_saved=None)

        store = self.store
        turn = self.build_turn(request, composed)
        writes = [self._write(self.conversations_table, lambda: store.insert_conversation(turn))]

        record = None
        if self.should_store_generated_content(composed):
            record = self.build_generated_content(request, composed)
            writes.append(
                self._write(self.generated_content_table, lambda: store.insert_generated_content(record))
            )

        results = await asyncio.gather(*writes)
        result = PersistenceResult(
            conversation_saved=results[0],
            generated_content_saved=results[1] if record is not None else None,
        )
        logger.info(
            "persistence_completed",
            conversation_id=turn.id,
            conversation_saved=result.conversation_saved,
            generated_content_id=record.id if record else None,
            generated_content_saved=result.generated_content_saved,
        )
        return result
