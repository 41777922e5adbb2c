"""
HTTP client for the text-completion and image-generation services.

Talks to an OpenAI-compatible API with httpx (no provider SDK):
- POST {api_base}/chat/completions   -> text completion
- POST {api_base}/images/generations -> image generation

Every call is bounded by an explicit timeout and is never retried. Failures
are raised as TextGenerationError / ImageGenerationError; the generation
strategies decide how to degrade.
"""
import time
from typing import Any, Dict, Optional, Protocol

import httpx

from flowbot.core.config import AssistantSettings
from flowbot.core.errors import (
    GenerationServiceError,
    ImageGenerationError,
    TextGenerationError,
)
from flowbot.core.logging import get_logger
from flowbot.core.metrics import (
    record_generation_error,
    record_generation_request,
    record_llm_tokens,
)

logger = get_logger(__name__)


class TextCompletionService(Protocol):
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int,
        temperature: float,
    ) -> str:
        ...


class ImageGenerationService(Protocol):
    async def generate(
        self,
        prompt: str,
        size: str,
        quality: str,
        count: int = 1,
    ) -> str:
        """Return a locator (URL) for the first generated image."""
        ...


class OpenAIClient:
    """Async client implementing both generation service protocols."""

    def __init__(
        self,
        api_base: str,
        api_key: Optional[str],
        text_model: str = "gpt-4o-mini",
        image_model: str = "dall-e-3",
        text_timeout_seconds: float = 30.0,
        image_timeout_seconds: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_base = api_base.rstrip("/")
        self.api_key = api_key
        self.text_model = text_model
        self.image_model = image_model
        self.text_timeout_seconds = text_timeout_seconds
        self.image_timeout_seconds = image_timeout_seconds
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: AssistantSettings) -> "OpenAIClient":
        return cls(
            api_base=settings.llm_api_base,
            api_key=settings.llm_api_key,
            text_model=settings.text_model,
            image_model=settings.image_model,
            text_timeout_seconds=settings.text_timeout_seconds,
            image_timeout_seconds=settings.image_timeout_seconds,
        )

    async def _post(
        self,
        service: str,
        model: str,
        path: str,
        payload: Dict[str, Any],
        timeout_seconds: float,
        error_cls: type[GenerationServiceError],
    ) -> Dict[str, Any]:
        """POST a JSON payload and return the decoded body, mapping failures to error_cls."""
        if not self.api_key:
            record_generation_error(service, "missing_api_key")
            raise error_cls("LLM API key not configured")

        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }
        start = time.time()
        try:
            async with httpx.AsyncClient(timeout=timeout_seconds, transport=self._transport) as client:
                response = await client.post(f"{self.api_base}{path}", headers=headers, json=payload)
                response.raise_for_status()
                data = response.json()
        except httpx.TimeoutException as exc:
            record_generation_error(service, "timeout")
            logger.warning("generation_timeout", service=service, error=str(exc))
            raise error_cls(f"{service} generation timed out", cause=exc) from exc
        except httpx.HTTPStatusError as exc:
            record_generation_error(service, f"http_{exc.response.status_code}")
            logger.warning(
                "generation_http_error",
                service=service,
                status_code=exc.response.status_code,
                error=_provider_error_message(exc.response),
            )
            raise error_cls(
                f"{service} generation failed: {_provider_error_message(exc.response)}", cause=exc
            ) from exc
        except httpx.HTTPError as exc:
            record_generation_error(service, "transport_error")
            logger.warning(
                "generation_transport_error",
                service=service,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            raise error_cls(f"{service} generation failed: {exc}", cause=exc) from exc
        except ValueError as exc:
            record_generation_error(service, "invalid_json")
            logger.warning("generation_invalid_json", service=service, error=str(exc))
            raise error_cls(f"{service} generation returned invalid JSON", cause=exc) from exc
        finally:
            record_generation_request(service, model, time.time() - start)

        if isinstance(data, dict) and data.get("error"):
            record_generation_error(service, "provider_error")
            message = data["error"].get("message") if isinstance(data["error"], dict) else str(data["error"])
            raise error_cls(f"{service} generation failed: {message}")
        return data

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int = 2000,
        temperature: float = 0.7,
    ) -> str:
        payload = {
            "model": self.text_model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        data = await self._post(
            "text",
            self.text_model,
            "/chat/completions",
            payload,
            self.text_timeout_seconds,
            TextGenerationError,
        )

        usage = data.get("usage") or {}
        record_llm_tokens(
            self.text_model,
            int(usage.get("prompt_tokens") or 0),
            int(usage.get("completion_tokens") or 0),
        )

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            record_generation_error("text", "empty_response")
            raise TextGenerationError("No response generated", cause=exc) from exc
        if not content or not content.strip():
            record_generation_error("text", "empty_response")
            raise TextGenerationError("No response generated")
        return content

    async def generate(
        self,
        prompt: str,
        size: str = "1024x1024",
        quality: str = "standard",
        count: int = 1,
    ) -> str:
        payload = {
            "model": self.image_model,
            "prompt": prompt,
            "n": count,
            "size": size,
            "quality": quality,
        }
        data = await self._post(
            "image",
            self.image_model,
            "/images/generations",
            payload,
            self.image_timeout_seconds,
            ImageGenerationError,
        )

        images = data.get("data") or []
        url = images[0].get("url") if images and isinstance(images[0], dict) else None
        if not url:
            record_generation_error("image", "empty_response")
            raise ImageGenerationError("No image was generated")
        return url


def _provider_error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return error["message"]
    return response.text[:200]
