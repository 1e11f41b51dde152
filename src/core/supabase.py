"""Supabase client singleton for the durable checkout store backend."""

from functools import lru_cache
from typing import Any

from supabase import Client, create_client

from src.core.config import get_settings


@lru_cache
def get_supabase_client() -> Client:
    """Get cached Supabase client singleton for checkout persistence.

    Uses the secret key for backend operations, which bypasses RLS at the
    PostgREST level. Checkout sessions are only ever touched server-side.

    Returns:
        Client: Supabase client instance.

    Raises:
        ValueError: If Supabase is not configured.
    """
    settings = get_settings()
    if not settings.supabase_url or not settings.supabase_secret_key:
        raise ValueError(
            "Supabase is not configured. Set SUPABASE_URL and SUPABASE_SECRET_KEY "
            "to use the supabase checkout store backend."
        )
    return create_client(
        settings.supabase_url,
        settings.supabase_secret_key,
    )


async def check_database_connection() -> dict[str, Any]:
    """Check if the checkout table is reachable.

    Returns:
        dict: Connection status with 'healthy' boolean and optional 'error' message.
    """
    try:
        client = get_supabase_client()
        table = get_settings().supabase_checkout_table
        client.table(table).select("id").limit(1).execute()
        return {"healthy": True}
    except Exception as e:
        return {"healthy": False, "error": str(e)}
