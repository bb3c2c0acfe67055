"""
Skill Portal Core - Supabase Client.

Provides configured Supabase clients for database and auth operations.
"""

from functools import lru_cache

from supabase import Client, ClientOptions, create_client

from skillportal.config import get_settings


@lru_cache
def get_supabase_client() -> Client:
    """
    Get configured Supabase client.

    Uses service role key for server-side operations.
    Cached to reuse the same client instance.
    """
    settings = get_settings()
    return create_client(
        supabase_url=settings.supabase.url,
        supabase_key=settings.supabase.service_role_key,
        options=ClientOptions(postgrest_client_timeout=settings.supabase.timeout_seconds),
    )


def create_auth_client() -> Client:
    """
    Create a fresh anon-key client for password checks.

    Not cached: signing in stores a session on the client, and that session
    must never leak into the shared service-role client.
    """
    settings = get_settings()
    return create_client(
        supabase_url=settings.supabase.url,
        supabase_key=settings.supabase.anon_key,
    )
