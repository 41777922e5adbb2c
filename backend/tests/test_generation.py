"""
Unit tests for the image and text generation strategies.

Both strategies must turn any service failure into a degraded outcome.
"""
import httpx
import pytest

from fakes import FakeImageService, FakeTextService
from flowbot.core.errors import ImageGenerationError
from flowbot.services.assistant.generation import (
    DEFAULT_FILE_PROMPT,
    IMAGE_FALLBACK_RESPONSE,
    SYSTEM_PROMPT,
    TEXT_FALLBACK_RESPONSE,
    GenerationOrchestrator,
    ImageStrategy,
    TextStrategy,
    build_user_prompt,
)
from flowbot.services.assistant.schema import LoadedFile, Route


@pytest.mark.asyncio
async def test_image_strategy_uses_message_as_prompt():
    service = FakeImageService(url="https://images.example/logo.png")
    strategy = ImageStrategy(service)

    outcome = await strategy.run("Create a logo for my bakery")

    assert service.calls == [
        {"prompt": "Create a logo for my bakery", "size": "1024x1024", "quality": "standard", "count": 1}
    ]
    assert outcome.image_url == "https://images.example/logo.png"
    assert not outcome.degraded
    assert "Create a logo for my bakery" in outcome.text


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [
        httpx.ConnectError("connection refused"),
        ImageGenerationError("quota exceeded"),
        RuntimeError("unexpected"),
    ],
)
async def test_image_strategy_degrades_on_any_failure(error):
    strategy = ImageStrategy(FakeImageService(error=error))

    outcome = await strategy.run("draw a cat")

    assert outcome.degraded
    assert outcome.image_url is None
    assert outcome.text == IMAGE_FALLBACK_RESPONSE
    assert outcome.route == Route.IMAGE


@pytest.mark.asyncio
async def test_text_strategy_sends_system_and_user_prompt():
    service = FakeTextService(reply="Sure, here you go.")
    strategy = TextStrategy(service, max_tokens=2000, temperature=0.7)

    outcome = await strategy.run(Route.GENERAL, "Write a thank-you note", LoadedFile())

    call = service.calls[0]
    assert call["system_prompt"] == SYSTEM_PROMPT
    assert call["user_prompt"] == "Write a thank-you note"
    assert call["max_tokens"] == 2000
    assert call["temperature"] == pytest.approx(0.7)
    assert outcome.text == "Sure, here you go."
    assert not outcome.degraded


@pytest.mark.asyncio
async def test_text_strategy_degrades_to_capability_summary():
    strategy = TextStrategy(FakeTextService(error=httpx.ReadTimeout("timed out")))

    outcome = await strategy.run(Route.DATA, "sort data", LoadedFile())

    assert outcome.degraded
    assert outcome.text == TEXT_FALLBACK_RESPONSE
    assert outcome.route == Route.DATA


@pytest.mark.asyncio
async def test_text_strategy_treats_blank_reply_as_failure():
    strategy = TextStrategy(FakeTextService(reply="   "))

    outcome = await strategy.run(Route.GENERAL, "hello", LoadedFile())

    assert outcome.degraded


def test_system_prompt_lists_seven_capabilities():
    for capability in (
        "Document generation",
        "Image generation",
        "File analysis",
        "Spreadsheet creation",
        "Data sorting",
        "Workflow automation",
        "Text understanding",
    ):
        assert capability in SYSTEM_PROMPT


def test_user_prompt_appends_file_text():
    loaded = LoadedFile(raw_text="a,b\n1,2", source_ref="owner1/report.csv")

    prompt = build_user_prompt("Summarize this", loaded)

    assert prompt == "Summarize this\n\nFile content to analyze:\na,b\n1,2"


def test_user_prompt_defaults_when_message_blank():
    loaded = LoadedFile(raw_text="a,b", source_ref="owner1/report.csv")

    assert build_user_prompt("", loaded).startswith(DEFAULT_FILE_PROMPT)
    assert build_user_prompt(None, LoadedFile()) == DEFAULT_FILE_PROMPT


def test_user_prompt_skips_failed_file():
    loaded = LoadedFile(source_ref="owner1/missing.csv", load_succeeded=False)

    assert build_user_prompt("hello", loaded) == "hello"


@pytest.mark.asyncio
async def test_orchestrator_dispatches_by_route():
    text = FakeTextService()
    image = FakeImageService()
    orchestrator = GenerationOrchestrator(ImageStrategy(image), TextStrategy(text))

    await orchestrator.generate(Route.IMAGE, "draw a dog", LoadedFile())
    await orchestrator.generate(Route.DATA, "make a table", LoadedFile())
    await orchestrator.generate(Route.GENERAL, "hi", LoadedFile())

    assert len(image.calls) == 1
    assert len(text.calls) == 2
