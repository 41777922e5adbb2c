"""
Response composer.

Prefixes a file-status line to text answers and tags the response with one
variant of the closed AssistantMetadata union.
"""
import re
from dataclasses import dataclass

from flowbot.services.assistant.generation import GenerationOutcome
from flowbot.services.assistant.schema import (
    AssistantMetadata,
    DataProcessingMetadata,
    FileAnalysisMetadata,
    GeneralAssistanceMetadata,
    ImageGenerationMetadata,
    LoadedFile,
    Route,
    WorkflowAutomationMetadata,
)

FILE_LOAD_FAILED_NOTE = "File uploaded but could not be analyzed."
FILE_EMPTY_NOTE = "File received, but it contained no readable text."

_WORKFLOW_PATTERN = re.compile(r"\b(?:workflows?|automat(?:e|ed|es|ing|ion))\b", re.IGNORECASE)


def mentions_workflow(text: str) -> bool:
    return bool(_WORKFLOW_PATTERN.search(text))


def file_note(loaded_file: LoadedFile) -> str:
    """One-line file status for a text answer, or "" when no file was sent."""
    if not loaded_file.requested:
        return ""
    if not loaded_file.load_succeeded:
        return FILE_LOAD_FAILED_NOTE
    if not loaded_file.has_content:
        return FILE_EMPTY_NOTE
    return f"File analyzed: {loaded_file.file_name}"


@dataclass
class ComposedResponse:
    text: str
    metadata: AssistantMetadata
    outcome: GenerationOutcome
    file_processed: bool


def compose_response(
    outcome: GenerationOutcome,
    loaded_file: LoadedFile,
    data_predicate_fired: bool,
) -> ComposedResponse:
    """
    Merge the file note with the generated text and pick the metadata tag.

    Tag selection on the text route, first match wins: file processed ->
    file_analysis; data rule fired -> data_processing; answer talks about
    workflows or automation -> workflow_automation; else general_assistance.
    The image route is always image_generation.
    """
    file_processed = loaded_file.has_content

    if outcome.route == Route.IMAGE:
        metadata = ImageGenerationMetadata(
            image_url=outcome.image_url,
            prompt=outcome.prompt,
            generated=not outcome.degraded,
        )
        return ComposedResponse(
            text=outcome.text,
            metadata=metadata,
            outcome=outcome,
            file_processed=file_processed,
        )

    note = file_note(loaded_file)
    text = f"{note}\n\n{outcome.text}" if note else outcome.text

    if file_processed:
        metadata = FileAnalysisMetadata(
            file_name=loaded_file.file_name,
            truncated=loaded_file.truncated,
            degraded=outcome.degraded,
        )
    elif data_predicate_fired:
        metadata = DataProcessingMetadata(degraded=outcome.degraded)
    elif not outcome.degraded and mentions_workflow(outcome.text):
        metadata = WorkflowAutomationMetadata()
    else:
        metadata = GeneralAssistanceMetadata(degraded=outcome.degraded)

    return ComposedResponse(
        text=text,
        metadata=metadata,
        outcome=outcome,
        file_processed=file_processed,
    )
