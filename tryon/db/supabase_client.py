"""Supabase client construction.

Clients are created by whoever wires the process together and passed into
the stores; nothing here keeps a module-level client.
"""

from supabase import AsyncClient, acreate_client

from tryon.config import Settings


async def create_service_client(settings: Settings) -> AsyncClient:
    """Async client using the service role key (bypasses row level security)."""
    if not settings.supabase_url or not settings.supabase_service_role_key:
        raise RuntimeError(
            "SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set"
        )
    return await acreate_client(
        settings.supabase_url,
        settings.supabase_service_role_key,
    )


async def create_anon_client(settings: Settings) -> AsyncClient:
    """Async client using the public anon key, for validating user tokens."""
    if not settings.supabase_url or not settings.supabase_anon_key:
        raise RuntimeError("SUPABASE_URL and SUPABASE_ANON_KEY must be set")
    return await acreate_client(settings.supabase_url, settings.supabase_anon_key)
