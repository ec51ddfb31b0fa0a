"""Profile model type definitions for database operations."""

from datetime import datetime
from typing import Any, TypedDict


class Profile(TypedDict):
    """Profile table row representation.

    The primary key is the Supabase auth user id, so there is exactly one
    profile per authenticated user.
    """

    id: str
    email: str | None
    full_name: str | None
    shipping_address: dict[str, Any] | None
    created_at: datetime
    updated_at: datetime


class ProfileCreate(TypedDict, total=False):
    """Data required to create a new profile.

    Only id is required; other fields are optional.
    """

    id: str
    email: str | None
    full_name: str | None
    updated_at: str
