"""
Application configuration.

Settings are read once, explicitly, by AssistantSettings.from_env() when the
application is built, and then passed to the services that need them. Nothing
below the application factory reads os.environ directly.

Environment variables (a .env file in the repository root is honoured):
- LLM_API_BASE: OpenAI-compatible API base URL (default: https://api.openai.com/v1)
- LLM_API_KEY / OPENAI_API_KEY: bearer token for text and image generation (required)
- LLM_TEXT_MODEL: chat completion model (default: gpt-4o-mini)
- LLM_IMAGE_MODEL: image generation model (default: dall-e-3)
- LLM_TIMEOUT_SECONDS / IMAGE_TIMEOUT_SECONDS: per-call timeouts
- SUPABASE_URL, SUPABASE_SERVICE_KEY (or SUPABASE_SERVICE_ROLE_KEY / SUPABASE_KEY)
- STORAGE_BUCKET: bucket holding uploaded files (default: user-files)
- STORAGE_TIMEOUT_SECONDS / DATABASE_TIMEOUT_SECONDS
- FILE_CONTENT_MAX_CHARS: file text bound fed to the prompt (default: 4000)
- GENERATED_CONTENT_MIN_CHARS: response length that counts as generated content (default: 500)
- TEXT_MAX_TOKENS / TEXT_TEMPERATURE: text completion parameters
"""
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from flowbot.core.errors import ConfigurationError
from flowbot.core.logging import get_logger

logger = get_logger(__name__)

# backend/flowbot/core/config.py -> repository root
ENV_PATH = Path(__file__).parent.parent.parent.parent / ".env"


def load_environment(env_path: Path = ENV_PATH) -> bool:
    """Load the .env file into os.environ if it exists."""
    if env_path.exists():
        load_dotenv(env_path)
        logger.info("env_loaded", env_path=str(env_path))
        return True
    logger.debug("env_file_not_found", expected_path=str(env_path))
    return False


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, "") or default)


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, "") or default)


class AssistantSettings(BaseModel):
    """Configuration injected into the assistant orchestrator and its collaborators."""

    llm_api_base: str = "https://api.openai.com/v1"
    llm_api_key: Optional[str] = None
    text_model: str = "gpt-4o-mini"
    image_model: str = "dall-e-3"
    text_timeout_seconds: float = Field(30.0, gt=0)
    image_timeout_seconds: float = Field(60.0, gt=0)
    text_max_tokens: int = Field(2000, gt=0)
    text_temperature: float = Field(0.7, ge=0.0, le=2.0)
    image_size: str = "1024x1024"
    image_quality: str = "standard"

    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    storage_bucket: str = "user-files"
    storage_timeout_seconds: float = Field(10.0, gt=0)
    database_timeout_seconds: float = Field(10.0, gt=0)
    conversations_table: str = "ai_conversations"
    generated_content_table: str = "generated_content"

    file_content_max_chars: int = Field(4000, gt=0)
    generated_content_min_chars: int = Field(500, ge=0)

    @classmethod
    def from_env(cls) -> "AssistantSettings":
        return cls(
            llm_api_base=os.getenv("LLM_API_BASE", "https://api.openai.com/v1"),
            llm_api_key=os.getenv("LLM_API_KEY") or os.getenv("OPENAI_API_KEY"),
            text_model=os.getenv("LLM_TEXT_MODEL", "gpt-4o-mini"),
            image_model=os.getenv("LLM_IMAGE_MODEL", "dall-e-3"),
            text_timeout_seconds=_env_float("LLM_TIMEOUT_SECONDS", 30.0),
            image_timeout_seconds=_env_float("IMAGE_TIMEOUT_SECONDS", 60.0),
            text_max_tokens=_env_int("TEXT_MAX_TOKENS", 2000),
            text_temperature=_env_float("TEXT_TEMPERATURE", 0.7),
            supabase_url=os.getenv("SUPABASE_URL"),
            supabase_key=(
                os.getenv("SUPABASE_SERVICE_KEY")
                or os.getenv("SUPABASE_SERVICE_ROLE_KEY")
                or os.getenv("SUPABASE_KEY")
            ),
            storage_bucket=os.getenv("STORAGE_BUCKET", "user-files"),
            storage_timeout_seconds=_env_float("STORAGE_TIMEOUT_SECONDS", 10.0),
            database_timeout_seconds=_env_float("DATABASE_TIMEOUT_SECONDS", 10.0),
            file_content_max_chars=_env_int("FILE_CONTENT_MAX_CHARS", 4000),
            generated_content_min_chars=_env_int("GENERATED_CONTENT_MIN_CHARS", 500),
        )

    @property
    def llm_configured(self) -> bool:
        return bool(self.llm_api_key)

    @property
    def supabase_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)

    def require_llm(self) -> None:
        """Raise ConfigurationError when the generation services cannot be called."""
        if not self.llm_configured:
            raise ConfigurationError("LLM API key not configured (set LLM_API_KEY)")
