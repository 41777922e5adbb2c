"""
Assistant request orchestration.

Turns one inbound chat message (optionally with an uploaded-file reference)
into a classified, generated and persisted assistant response:

    intake -> file load -> classify -> generate -> compose -> persist -> envelope

Only configuration and validation failures abort a request. Every later stage
degrades instead: a missing file adds a note, a failing generation service
yields a canned answer, a failing write is logged and ignored.
"""
from typing import Optional

from flowbot.core.config import AssistantSettings
from flowbot.core.database import get_supabase_client
from flowbot.core.errors import InvalidRequestError
from flowbot.core.logging import get_logger, set_user_id
from flowbot.core.metrics import record_assistant_rejected, record_assistant_response
from flowbot.core.tracing import pipeline_span
from flowbot.services.assistant.composer import compose_response
from flowbot.services.assistant.file_loader import (
    FileContentLoader,
    ObjectStorage,
    SupabaseObjectStorage,
)
from flowbot.services.assistant.generation import (
    GenerationOrchestrator,
    ImageStrategy,
    TextStrategy,
)
from flowbot.services.assistant.intent import IntentClassifier
from flowbot.services.assistant.llm_client import (
    ImageGenerationService,
    OpenAIClient,
    TextCompletionService,
)
from flowbot.services.assistant.persistence import (
    ConversationPersistence,
    ConversationStore,
    SupabaseConversationStore,
)
from flowbot.services.assistant.schema import AssistantRequest, ResponseEnvelope

logger = get_logger(__name__)


def validate_request(request: AssistantRequest) -> None:
    """Reject requests with neither a message nor a file reference."""
    if not request.has_message and not request.has_file:
        raise InvalidRequestError("No message or file provided")


class AssistantOrchestrator:
    """Runs the assistant pipeline for one request at a time."""

    def __init__(
        self,
        settings: AssistantSettings,
        text_service: TextCompletionService,
        image_service: ImageGenerationService,
        storage: Optional[ObjectStorage] = None,
        store: Optional[ConversationStore] = None,
        classifier: Optional[IntentClassifier] = None,
    ):
        self.settings = settings
        self.store = store
        self.classifier = classifier or IntentClassifier()
        self.file_loader = FileContentLoader(
            storage,
            max_chars=settings.file_content_max_chars,
            timeout_seconds=settings.storage_timeout_seconds,
        )
        self.generator = GenerationOrchestrator(
            ImageStrategy(image_service, size=settings.image_size, quality=settings.image_quality),
            TextStrategy(
                text_service,
                max_tokens=settings.text_max_tokens,
                temperature=settings.text_temperature,
            ),
        )
        self.persistence = ConversationPersistence(
            store,
            generated_content_min_chars=settings.generated_content_min_chars,
            timeout_seconds=settings.database_timeout_seconds,
            conversations_table=settings.conversations_table,
            generated_content_table=settings.generated_content_table,
        )

    async def handle(self, request: AssistantRequest) -> ResponseEnvelope:
        """
        Produce the response envelope for one request.

        Raises:
            ConfigurationError: generation credentials are missing
            InvalidRequestError: neither message nor file reference given
        """
        try:
            self.settings.require_llm()
            validate_request(request)
        except Exception as exc:
            record_assistant_rejected(getattr(exc, "error_code", type(exc).__name__))
            logger.warning(
                "assistant_request_rejected",
                owner_id=request.owner_id,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            raise

        set_user_id(request.owner_id)
        logger.info(
            "assistant_request_started",
            owner_id=request.owner_id,
            has_message=request.has_message,
            file_ref=request.file_ref,
        )

        with pipeline_span("file_load", file_ref=request.file_ref):
            loaded_file = await self.file_loader.load(request.file_ref)

        with pipeline_span("classify") as span:
            route = self.classifier.classify(request.message, loaded_file.has_content)
            data_fired = self.classifier.data_predicate_fired(request.message, loaded_file.has_content)
            span.set_attribute("assistant.route", route.value)

        with pipeline_span("generate", route=route.value):
            outcome = await self.generator.generate(route, request.message, loaded_file)

        composed = compose_response(outcome, loaded_file, data_fired)
        envelope = ResponseEnvelope(response=composed.text, metadata=composed.metadata)

        with pipeline_span("persist"):
            await self.persistence.persist(request, composed)

        record_assistant_response(route.value, composed.metadata.type)
        logger.info(
            "assistant_request_completed",
            owner_id=request.owner_id,
            route=route.value,
            metadata_type=composed.metadata.type,
            degraded=outcome.degraded,
            file_loaded=loaded_file.load_succeeded if loaded_file.requested else None,
            response_chars=len(envelope.response),
        )
        return envelope


def build_orchestrator(settings: AssistantSettings) -> AssistantOrchestrator:
    """Wire the production collaborators (OpenAI-compatible API, Supabase)."""
    llm_client = OpenAIClient.from_settings(settings)
    client = get_supabase_client(settings)
    storage = SupabaseObjectStorage(client, settings.storage_bucket) if client else None
    store = (
        SupabaseConversationStore(
            client,
            conversations_table=settings.conversations_table,
            generated_content_table=settings.generated_content_table,
        )
        if client
        else None
    )
    return AssistantOrchestrator(
        settings=settings,
        text_service=llm_client,
        image_service=llm_client,
        storage=storage,
        store=store,
    )
