"""
Error taxonomy for the assistant pipeline.

Only ConfigurationError and InvalidRequestError are fatal and reach the HTTP
caller. The others are raised and caught inside the pipeline so that it can
continue in degraded mode.
"""
from typing import Optional


class AssistantError(Exception):
    """Base class for all assistant pipeline errors."""

    error_code = "assistant_error"

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause


class ConfigurationError(AssistantError):
    """A required collaborator has no credentials configured."""

    error_code = "configuration_error"


class InvalidRequestError(AssistantError):
    """The request carries neither a message nor a file reference."""

    error_code = "validation_error"


class FileLoadError(AssistantError):
    """The referenced blob could not be fetched or decoded."""

    error_code = "file_load_error"

    def __init__(self, source_ref: str, message: str, cause: Optional[BaseException] = None):
        super().__init__(message, cause)
        self.source_ref = source_ref


class GenerationServiceError(AssistantError):
    """An external generation service failed."""

    error_code = "generation_service_error"
    service = "generation"


class ImageGenerationError(GenerationServiceError):
    service = "image"


class TextGenerationError(GenerationServiceError):
    service = "text"


class PersistenceError(AssistantError):
    """A write to the conversation store failed."""

    error_code = "persistence_error"

    def __init__(self, table: str, message: str, cause: Optional[BaseException] = None):
        super().__init__(message, cause)
        self.table = table
