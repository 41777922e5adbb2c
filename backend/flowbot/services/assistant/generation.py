"""
Generation strategies.

Two mutually exclusive strategies, selected by route:
- ImageStrategy: one square image from the raw message
- TextStrategy: chat completion over the message plus any loaded file text

Neither strategy raises. A failing service yields a degraded outcome whose
text is a fixed apology or capability summary.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from flowbot.core.errors import ImageGenerationError, TextGenerationError
from flowbot.core.logging import get_logger
from flowbot.core.metrics import record_degraded
from flowbot.services.assistant.llm_client import (
    ImageGenerationService,
    TextCompletionService,
)
from flowbot.services.assistant.schema import LoadedFile, Route

logger = get_logger(__name__)

SYSTEM_PROMPT = """You are FlowBot, an AI assistant for small-business work. You can help with:

1. Document generation: draft documents in any format (reports, letters, PDF/DOCX/TXT-ready text)
2. Image generation: describe what you need and ask for an image, picture or logo
3. File analysis: read uploaded files and pull out the information that matters
4. Spreadsheet creation: produce structured, tabular data ready for a spreadsheet
5. Data sorting: organize and sort data found in documents or text
6. Workflow automation: outline and automate repeatable business processes
7. Text understanding: read, summarize and explain any text

Give helpful, accurate and complete answers. When producing content, be thorough and professional."""

CAPABILITY_SUMMARY = (
    "document generation, image creation, file analysis, spreadsheet creation, "
    "data sorting, workflow automation, or text understanding"
)

TEXT_FALLBACK_RESPONSE = (
    "I'm sorry, I couldn't generate a full answer right now because the text service is "
    f"unavailable. Please try again in a moment. I can help you with {CAPABILITY_SUMMARY}."
)

IMAGE_FALLBACK_RESPONSE = (
    "I'm sorry, I couldn't create that image right now because the image service is "
    "unavailable. Please try again in a moment, or rephrase your description. "
    f"Meanwhile I can still help you with {CAPABILITY_SUMMARY}."
)

DEFAULT_FILE_PROMPT = "Please analyze the uploaded file."


def build_user_prompt(message: Optional[str], loaded_file: LoadedFile) -> str:
    prompt = message if message and message.strip() else DEFAULT_FILE_PROMPT
    if loaded_file.has_content:
        prompt += f"\n\nFile content to analyze:\n{loaded_file.raw_text}"
    return prompt


@dataclass
class GenerationOutcome:
    """Result of running one strategy."""

    route: Route
    text: str
    degraded: bool = False
    image_url: Optional[str] = None
    prompt: str = ""
    details: Dict[str, Any] = field(default_factory=dict)


class ImageStrategy:
    """Generates a single image from the user's message."""

    def __init__(
        self,
        service: ImageGenerationService,
        size: str = "1024x1024",
        quality: str = "standard",
    ):
        self.service = service
        self.size = size
        self.quality = quality

    async def run(self, prompt: str) -> GenerationOutcome:
        try:
            image_url = await self.service.generate(prompt, size=self.size, quality=self.quality, count=1)
            if not image_url:
                raise ImageGenerationError("No image was generated")
        except Exception as exc:
            record_degraded("image_generation")
            logger.warning(
                "image_generation_degraded",
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return GenerationOutcome(
                route=Route.IMAGE,
                text=IMAGE_FALLBACK_RESPONSE,
                degraded=True,
                prompt=prompt,
                details={"error_type": type(exc).__name__},
            )

        logger.info("image_generated", size=self.size, quality=self.quality)
        return GenerationOutcome(
            route=Route.IMAGE,
            text=f'I\'ve generated an image based on your request: "{prompt}". The image is displayed above.',
            image_url=image_url,
            prompt=prompt,
            details={"size": self.size, "quality": self.quality},
        )


class TextStrategy:
    """Answers with the text-completion service, file text appended to the prompt."""

    def __init__(
        self,
        service: TextCompletionService,
        max_tokens: int = 2000,
        temperature: float = 0.7,
        system_prompt: str = SYSTEM_PROMPT,
    ):
        self.service = service
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.system_prompt = system_prompt

    async def run(self, route: Route, message: Optional[str], loaded_file: LoadedFile) -> GenerationOutcome:
        user_prompt = build_user_prompt(message, loaded_file)
        try:
            text = await self.service.complete(
                self.system_prompt,
                user_prompt,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
            if not text or not text.strip():
                raise TextGenerationError("No response generated")
        except Exception as exc:
            record_degraded("text_generation")
            logger.warning(
                "text_generation_degraded",
                route=route.value,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return GenerationOutcome(
                route=route,
                text=TEXT_FALLBACK_RESPONSE,
                degraded=True,
                prompt=user_prompt,
                details={"error_type": type(exc).__name__},
            )

        logger.info("text_generated", route=route.value, response_chars=len(text))
        return GenerationOutcome(route=route, text=text, prompt=user_prompt)


class GenerationOrchestrator:
    """Dispatches a classified request to the image or text strategy."""

    def __init__(self, image_strategy: ImageStrategy, text_strategy: TextStrategy):
        self.image_strategy = image_strategy
        self.text_strategy = text_strategy

    async def generate(self, route: Route, message: Optional[str], loaded_file: LoadedFile) -> GenerationOutcome:
        if route == Route.IMAGE:
            return await self.image_strategy.run(message or "")
        return await self.text_strategy.run(route, message, loaded_file)
