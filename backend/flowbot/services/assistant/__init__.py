"""
Assistant orchestration services package.

One inbound chat message (optionally with an uploaded file) becomes a
classified, generated and persisted assistant response. Collaborators (object
storage, conversation store, text and image generation) are injected so the
pipeline runs against in-memory fakes in tests.
"""
from .orchestration import AssistantOrchestrator, build_orchestrator, validate_request

__all__ = ["AssistantOrchestrator", "build_orchestrator", "validate_request"]
