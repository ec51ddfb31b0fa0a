"""External client container built once at application startup."""

from dataclasses import dataclass
from types import ModuleType

from supabase import Client

from src.core.config import Settings
from src.core.stripe import configure_stripe
from src.core.supabase import create_admin_client, create_auth_client


@dataclass(frozen=True)
class Clients:
    """Stateless external clients shared by every request.

    Attributes:
        settings: Application settings.
        supabase: Service-role client for datastore reads and writes.
        supabase_auth: Anon-key client for bearer token verification.
        stripe: Configured Stripe SDK module.
    """

    settings: Settings
    supabase: Client
    supabase_auth: Client
    stripe: ModuleType


def build_clients(settings: Settings) -> Clients:
    """Construct all external clients from settings."""
    return Clients(
        settings=settings,
        supabase=create_admin_client(settings),
        supabase_auth=create_auth_client(settings),
        stripe=configure_stripe(settings),
    )
