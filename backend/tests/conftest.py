"""
Shared fixtures: settings and an orchestrator wired to in-memory fakes.
"""
import pytest

from fakes import FakeImageService, FakeStorage, FakeStore, FakeTextService
from flowbot.core.config import AssistantSettings
from flowbot.services.assistant.orchestration import AssistantOrchestrator


@pytest.fixture
def settings():
    return AssistantSettings(
        llm_api_key="test-key",
        file_content_max_chars=100,
        generated_content_min_chars=500,
        storage_timeout_seconds=1.0,
        database_timeout_seconds=1.0,
    )


@pytest.fixture
def text_service():
    return FakeTextService()


@pytest.fixture
def image_service():
    return FakeImageService()


@pytest.fixture
def storage():
    return FakeStorage({
        "owner1/report.csv": b"region,revenue\n" + b"north,100\n" * 50,
        "owner1/notes.txt": b"Meeting notes: ship v2 on Friday.",
        "owner1/empty.txt": b"   ",
    })


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def make_orchestrator(settings, text_service, image_service, storage, store):
    """Build an orchestrator; keyword arguments replace individual fakes."""

    def _make(**overrides) -> AssistantOrchestrator:
        parts = {
            "settings": settings,
            "text_service": text_service,
            "image_service": image_service,
            "storage": storage,
            "store": store,
        }
        parts.update(overrides)
        return AssistantOrchestrator(**parts)

    return _make
