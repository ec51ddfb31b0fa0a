"""Profile business logic service."""

import logging
from datetime import datetime, timezone

from supabase import Client

from src.api.middleware.error_handler import ProfileProvisioningError
from src.core.redaction import mask_email, mask_identifier
from src.models.profile import Profile, ProfileCreate
from src.services.upstream import is_unique_violation, translate_supabase_error

logger = logging.getLogger(__name__)


class ProfileService:
    """Service for managing user profiles."""

    def __init__(self, client: Client) -> None:
        """Initialize profile service with the Supabase datastore client."""
        self.client = client

    async def get_profile(self, user_id: str) -> Profile | None:
        """Get a profile by auth user ID.

        Args:
            user_id: The auth user ID (profile primary key).

        Returns:
            dict | None: The profile data or None if not found.
        """
        try:
            response = (
                self.client.table("profiles")
                .select("*")
                .eq("id", user_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise translate_supabase_error(e, "load profile") from e

        return response.data[0] if response and response.data else None

    async def get_or_create_profile(
        self,
        user_id: str,
        email: str | None = None,
        full_name: str | None = None,
    ) -> Profile:
        """Get existing profile or create a new one.

        Safe to call concurrently for the same user: if another request
        created the row first, the insert's unique violation is absorbed and
        the existing row is returned.

        Args:
            user_id: The auth user ID.
            email: User's email address.
            full_name: Optional name from the auth provider's user metadata.

        Returns:
            dict: The profile data.

        Raises:
            ProfileProvisioningError: If the profile cannot be created.
        """
        profile = await self.get_profile(user_id)
        if profile:
            return profile

        logger.info(
            "Creating profile for user %s (%s)",
            mask_identifier(user_id),
            mask_email(email),
        )

        profile_data: ProfileCreate = {
            "id": user_id,
            "email": email,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        if full_name:
            profile_data["full_name"] = full_name

        try:
            response = self.client.table("profiles").insert(profile_data).execute()
        except Exception as e:
            if is_unique_violation(e):
                logger.info("Profile for %s created concurrently; re-reading", mask_identifier(user_id))
                profile = await self.get_profile(user_id)
                if profile:
                    return profile
            logger.error("Profile creation failed for %s: %s", mask_identifier(user_id), type(e).__name__)
            raise ProfileProvisioningError() from e

        if not response.data:
            raise ProfileProvisioningError()

        return response.data[0]
