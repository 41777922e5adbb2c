"""
Core application modules.
Contains configuration, errors, logging, metrics, tracing and the Supabase client.
"""
from .config import AssistantSettings
from .database import get_supabase_client

__all__ = ["AssistantSettings", "get_supabase_client"]
