"""Supabase client construction for datastore and auth operations."""

from typing import Any

from supabase import Client, create_client
from supabase.lib.client_options import SyncClientOptions
from supabase_auth import SyncMemoryStorage

from src.core.config import Settings


def _client_options(settings: Settings) -> SyncClientOptions:
    return SyncClientOptions(
        storage=SyncMemoryStorage(),
        auto_refresh_token=False,
        persist_session=False,
        postgrest_client_timeout=settings.outbound_timeout_seconds,
    )


def create_admin_client(settings: Settings) -> Client:
    """Create the Supabase client used for datastore operations.

    Uses the service-role key, which bypasses RLS at the PostgREST level.
    Only use it for server-side operations whose authorization has already
    been verified.

    Args:
        settings: Application settings.

    Returns:
        Client: Supabase client instance.
    """
    return create_client(
        settings.supabase_url,
        settings.supabase_service_role_key,
        options=_client_options(settings),
    )


def create_auth_client(settings: Settings) -> Client:
    """Create the Supabase client used to verify bearer tokens.

    Uses the anonymous key and isolated in-memory session storage so token
    checks never touch the datastore client's Authorization header.

    Args:
        settings: Application settings.

    Returns:
        Client: Supabase client instance.
    """
    return create_client(
        settings.supabase_url,
        settings.supabase_anon_key,
        options=_client_options(settings),
    )


async def check_database_connection(client: Client) -> dict[str, Any]:
    """Check if database connection is healthy.

    Performs a simple query to verify database connectivity.

    Args:
        client: Supabase datastore client.

    Returns:
        dict: Connection status with 'healthy' boolean and optional 'error' message.
    """
    try:
        client.table("profiles").select("id").limit(1).execute()
        return {"healthy": True}
    except Exception as e:
        return {"healthy": False, "error": type(e).__name__}
