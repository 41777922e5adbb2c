"""
Verify that the Supabase project the assistant points at is usable.

Checks, in order:
1. SUPABASE_URL / SUPABASE_SERVICE_KEY are set
2. A client can be created
3. The ai_conversations and generated_content tables are readable
4. The uploaded-files bucket is listable

Usage:
    python scripts/check_supabase.py
"""
import sys
from pathlib import Path

# Add backend directory to path to import flowbot modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from flowbot.core.config import AssistantSettings, load_environment
from flowbot.core.database import get_supabase_client


def check_connection() -> bool:
    load_environment()
    settings = AssistantSettings.from_env()

    print("Step 1: Checking environment variables...")
    if not settings.supabase_configured:
        print("[X] SUPABASE_URL and SUPABASE_SERVICE_KEY must both be set")
        return False
    key = settings.supabase_key
    key_preview = f"{key[:8]}...{key[-8:]}" if len(key) > 16 else "***"
    print(f"[OK] SUPABASE_URL: {settings.supabase_url}")
    print(f"[OK] SUPABASE_SERVICE_KEY: {key_preview}")

    print("Step 2: Creating Supabase client...")
    client = get_supabase_client(settings)
    if not client:
        print("[X] Failed to create Supabase client")
        return False
    print("[OK] Client created")

    ok = True
    print("Step 3: Checking tables...")
    for table in (settings.conversations_table, settings.generated_content_table):
        try:
            result = client.table(table).select("id").limit(1).execute()
            print(f"[OK] {table}: readable ({len(result.data)} sample row(s))")
        except Exception as e:
            print(f"[X] {table}: {e}")
            ok = False

    print("Step 4: Checking storage bucket...")
    try:
        client.storage.from_(settings.storage_bucket).list()
        print(f"[OK] bucket {settings.storage_bucket!r} is listable")
    except Exception as e:
        print(f"[X] bucket {settings.storage_bucket!r}: {e}")
        ok = False

    return ok


if __name__ == "__main__":
    sys.exit(0 if check_connection() else 1)
