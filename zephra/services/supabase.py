"""Supabase admin client for server-side operations."""

from functools import lru_cache

from supabase import Client, create_client

from zephra.config.settings import settings


@lru_cache(maxsize=1)
def get_supabase_admin_client() -> Client:
    """
    Get Supabase client with service role key.

    Used for writes that must bypass row level security, such as the
    security audit log. Never expose this client to the frontend.
    """
    if not settings.supabase_url or not settings.supabase_service_role_key:
        raise ValueError(
            "SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY not configured. "
            "Set them in .env to persist security audit events."
        )

    return create_client(
        settings.supabase_url,
        settings.supabase_service_role_key,
    )
