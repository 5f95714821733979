"""
Database connections: Supabase client setup.
"""

from functools import lru_cache
from supabase import create_client, Client
from supabase.client import ClientOptions

from app.config import get_settings


@lru_cache
def get_supabase_admin_client() -> Client:
    """Get the Supabase admin client (service_role key, bypasses RLS).

    Ingestion and retrieval both go through this client, as the embeddings
    table is not exposed to anonymous users.
    """
    settings = get_settings()
    if not settings.SUPABASE_URL or not settings.SUPABASE_SERVICE_KEY:
        raise ValueError(
            "Supabase admin client is not configured. "
            "Set SUPABASE_URL and SUPABASE_SERVICE_KEY."
        )
    options = ClientOptions(postgrest_client_timeout=settings.SUPABASE_TIMEOUT_SECONDS)
    return create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_KEY, options=options)
