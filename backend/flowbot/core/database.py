"""
Supabase client factory.

The same client serves the two append-only tables (ai_conversations,
generated_content) and the storage bucket holding uploaded files.
"""
from typing import Optional

from supabase import Client, ClientOptions, create_client

from flowbot.core.config import AssistantSettings
from flowbot.core.logging import get_logger

logger = get_logger(__name__)


def get_supabase_client(settings: AssistantSettings) -> Optional[Client]:
    """
    Create a Supabase client from settings.

    Returns None when credentials are missing or invalid; callers treat that as
    "storage unavailable" and degrade instead of failing the request.
    """
    if not settings.supabase_configured:
        logger.warning(
            "supabase_credentials_missing",
            message="Check SUPABASE_URL and SUPABASE_SERVICE_KEY in .env",
        )
        return None

    if not settings.supabase_url.startswith("http"):
        logger.error(
            "supabase_url_invalid",
            url=settings.supabase_url,
            message="Should start with http:// or https://",
        )
        return None

    try:
        options = ClientOptions(
            postgrest_client_timeout=settings.database_timeout_seconds,
            storage_client_timeout=int(settings.storage_timeout_seconds),
        )
        client = create_client(settings.supabase_url, settings.supabase_key, options=options)
        logger.info("supabase_client_created", url_prefix=settings.supabase_url[:30])
        return client
    except Exception as e:
        logger.error(
            "supabase_client_creation_failed",
            error=str(e),
            error_type=type(e).__name__,
            exc_info=True,
        )
        return None
