"""
Shared Supabase client for the relational product store.

Only the indexer (vector id write-back) and result hydration talk to
Supabase, so one cached client per process is enough.
"""

from functools import lru_cache
from typing import Optional

from supabase import Client, create_client

from config.settings import get_settings


class SupabaseClientError(Exception):
    """Supabase credentials are missing or the client could not be built."""


@lru_cache(maxsize=1)
def get_supabase_client() -> Client:
    """
    Build the Supabase client on first call and return the cached one after.

    Raises:
        SupabaseClientError: SUPABASE_URL / SUPABASE_SERVICE_KEY unset, or create_client failed
    """
    settings = get_settings()
    if not settings.supabase_url or not settings.supabase_service_key:
        raise SupabaseClientError("SUPABASE_URL and SUPABASE_SERVICE_KEY are required")
    try:
        return create_client(settings.supabase_url, settings.supabase_service_key)
    except Exception as e:
        raise SupabaseClientError(f"Failed to create Supabase client: {e}") from e


def get_supabase_client_optional() -> Optional[Client]:
    """None when Supabase is not configured; vector ids are then not written back."""
    try:
        return get_supabase_client()
    except SupabaseClientError:
        return None
