"""Supabase connection shared by the db modules."""

from functools import lru_cache

from supabase import Client, create_client

from capa_tracker.core.config import get_settings


@lru_cache(maxsize=1)
def get_supabase() -> Client:
    """
    Return the process-wide Supabase client, creating it on first use.

    Uses the service role key: row-level security is bypassed and permission
    checks happen in the API layer.

    Raises:
        RuntimeError: If the settings are incomplete or the client cannot be built
    """
    try:
        settings = get_settings()
        url, key = settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY
        return create_client(url, key)
    except Exception as e:
        raise RuntimeError(f"Supabase client unavailable: {e}") from e
