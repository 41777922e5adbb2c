"""
Pydantic models for the assistant pipeline.

Inbound:  AssistantRequest  {message?, fileUrl?, userId}
Outbound: ResponseEnvelope  {response, metadata, timestamp}
Stored:   ConversationTurn, GeneratedContentRecord (append-only rows)

AssistantMetadata is a closed tagged union discriminated on "type"; each
variant carries only the fields that make sense for it.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field

from flowbot.core.logging import generate_id


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Route(str, Enum):
    """Generation strategy selected by the intent classifier."""

    IMAGE = "image"
    DATA = "data"
    GENERAL = "general"


class MetadataType(str, Enum):
    IMAGE_GENERATION = "image_generation"
    FILE_ANALYSIS = "file_analysis"
    DATA_PROCESSING = "data_processing"
    WORKFLOW_AUTOMATION = "workflow_automation"
    GENERAL_ASSISTANCE = "general_assistance"


class ContentType(str, Enum):
    IMAGE = "image"
    DOCUMENT = "document"


# ============================================================================
# REQUEST
# ============================================================================

class AssistantRequest(BaseModel):
    """One inbound chat message, optionally referencing an uploaded file."""

    model_config = ConfigDict(populate_by_name=True)

    message: Optional[str] = Field(None, description="User chat message")
    file_ref: Optional[str] = Field(
        None,
        alias="fileUrl",
        description="Object storage path of an uploaded file, e.g. owner1/report.csv",
    )
    owner_id: str = Field(..., alias="userId", description="Requesting user")

    @property
    def has_message(self) -> bool:
        return bool(self.message and self.message.strip())

    @property
    def has_file(self) -> bool:
        return bool(self.file_ref and self.file_ref.strip())


class LoadedFile(BaseModel):
    """Text content of the referenced file, bounded in length. Never persisted."""

    raw_text: str = ""
    source_ref: Optional[str] = None
    load_succeeded: bool = True
    truncated: bool = False

    @property
    def file_name(self) -> Optional[str]:
        if not self.source_ref:
            return None
        return self.source_ref.rstrip("/").split("/")[-1]

    @property
    def requested(self) -> bool:
        return self.source_ref is not None

    @property
    def has_content(self) -> bool:
        return self.load_succeeded and bool(self.raw_text.strip())


# ============================================================================
# METADATA (closed tagged union)
# ============================================================================

class ImageGenerationMetadata(BaseModel):
    type: Literal["image_generation"] = "image_generation"
    image_url: Optional[str] = None
    prompt: str
    generated: bool = True


class FileAnalysisMetadata(BaseModel):
    type: Literal["file_analysis"] = "file_analysis"
    file_processed: bool = True
    file_name: Optional[str] = None
    truncated: bool = False
    degraded: bool = False


class DataProcessingMetadata(BaseModel):
    type: Literal["data_processing"] = "data_processing"
    file_processed: bool = False
    degraded: bool = False


class WorkflowAutomationMetadata(BaseModel):
    type: Literal["workflow_automation"] = "workflow_automation"
    degraded: bool = False


class GeneralAssistanceMetadata(BaseModel):
    type: Literal["general_assistance"] = "general_assistance"
    degraded: bool = False


AssistantMetadata = Annotated[
    Union[
        ImageGenerationMetadata,
        FileAnalysisMetadata,
        DataProcessingMetadata,
        WorkflowAutomationMetadata,
        GeneralAssistanceMetadata,
    ],
    Field(discriminator="type"),
]


# ============================================================================
# RESPONSE
# ============================================================================

class ResponseEnvelope(BaseModel):
    """The only object returned to the caller."""

    response: str
    metadata: AssistantMetadata
    timestamp: datetime = Field(default_factory=utcnow)


class ErrorResponse(BaseModel):
    """Body returned for configuration and validation failures."""

    error: str
    message: str


# ============================================================================
# PERSISTED ROWS
# ============================================================================

def route_from_stored(value: Any) -> Route:
    """
    Route for a stored message_type.

    Rows written by the chat UI carry values such as "chat"; anything that is
    not a known route reads back as general.
    """
    try:
        return Route(value)
    except ValueError:
        return Route.GENERAL


class ConversationTurn(BaseModel):
    """One user/assistant exchange; written once, never updated."""

    id: str = Field(default_factory=generate_id)
    owner_id: str
    user_message: str
    assistant_response: str
    message_type: Route
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)

    def to_row(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.owner_id,
            "message": self.user_message,
            "response": self.assistant_response,
            "message_type": self.message_type.value,
            "metadata": self.metadata,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "ConversationTurn":
        return cls(
            id=str(row["id"]),
            owner_id=row["user_id"],
            user_message=row.get("message") or "",
            assistant_response=row.get("response") or "",
            message_type=route_from_stored(row.get("message_type")),
            metadata=row.get("metadata") or {},
            created_at=row["created_at"],
        )


class GeneratedContentRecord(BaseModel):
    """Reusable artifact (image or substantial document) produced for an owner."""

    id: str = Field(default_factory=generate_id)
    owner_id: str
    content_type: ContentType
    title: str
    payload: Dict[str, Any]
    prompt: str
    created_at: datetime = Field(default_factory=utcnow)

    def to_row(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.owner_id,
            "content_type": self.content_type.value,
            "title": self.title,
            "content": self.payload,
            "prompt": self.prompt,
            "created_at": self.created_at.isoformat(),
        }


class ConversationHistory(BaseModel):
    user_id: str
    turns: list[ConversationTurn]

    @computed_field
    @property
    def count(self) -> int:
        return len(self.turns)
