"""Bearer token verification and profile resolution."""

import logging
from typing import Any

import httpx
from supabase import Client
from supabase_auth.errors import AuthApiError, AuthRetryableError
from supabase_auth.errors import AuthError as SupabaseAuthError

from src.api.middleware.auth import AuthError, AuthErrorCode, decode_jwt
from src.api.middleware.error_handler import UnauthenticatedError
from src.core.config import Settings
from src.core.redaction import mask_identifier
from src.schemas.auth import AuthenticatedUser, UserContext
from src.services.profile_service import ProfileService
from src.services.upstream import translate_supabase_error

logger = logging.getLogger(__name__)


def extract_bearer_token(authorization: str | None) -> str:
    """Pull the token out of an ``Authorization: Bearer <token>`` header.

    Raises:
        UnauthenticatedError: If the header is missing or malformed.
    """
    if not authorization:
        raise UnauthenticatedError("Authorization header required")

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise UnauthenticatedError("Invalid authorization header format. Expected: Bearer <token>")

    return parts[1]


class IdentityService:
    """Resolves a bearer credential to a verified user and their profile."""

    def __init__(
        self,
        auth_client: Client,
        profile_service: ProfileService,
        settings: Settings,
    ) -> None:
        """Initialize the identity service.

        Args:
            auth_client: Supabase client built with the anon key.
            profile_service: Profile lookup/provisioning service.
            settings: Application settings.
        """
        self.auth_client = auth_client
        self.profile_service = profile_service
        self.settings = settings

    async def verify_token(self, token: str) -> UserContext:
        """Verify a Supabase access token.

        Tokens are verified locally when a signing key or JWT secret is
        configured, and by Supabase Auth otherwise.

        Raises:
            UnauthenticatedError: If verification fails.
        """
        if self.settings.verifies_tokens_locally:
            try:
                return decode_jwt(token, self.settings).to_user_context()
            except AuthError as e:
                logger.warning("Token rejected: %s", e.code.value)
                if e.code == AuthErrorCode.TOKEN_EXPIRED:
                    raise UnauthenticatedError("Token has expired") from e
                raise UnauthenticatedError("Invalid authentication token") from e

        return await self._verify_with_provider(token)

    async def _verify_with_provider(self, token: str) -> UserContext:
        try:
            response = self.auth_client.auth.get_user(token)
        except AuthRetryableError as e:
            raise translate_supabase_error(e, "verify token") from e
        except AuthApiError as e:
            # 5xx from GoTrue is an outage, not a verdict on the token
            if e.status >= 500:
                raise translate_supabase_error(e, "verify token") from e
            logger.warning("Supabase Auth rejected token: %s (status=%s)", type(e).__name__, e.status)
            raise UnauthenticatedError("Invalid authentication token") from e
        except SupabaseAuthError as e:
            logger.warning("Supabase Auth rejected token: %s", type(e).__name__)
            raise UnauthenticatedError("Invalid authentication token") from e
        except httpx.HTTPError as e:
            raise translate_supabase_error(e, "verify token") from e

        user = response.user if response else None
        if not user:
            raise UnauthenticatedError("Invalid authentication token")

        return UserContext(
            user_id=str(user.id),
            email=user.email,
            role=getattr(user, "role", None),
            user_metadata=user.user_metadata or {},
        )

    async def resolve(self, authorization: str | None) -> AuthenticatedUser:
        """Resolve an Authorization header to a user with a provisioned profile.

        Args:
            authorization: Raw Authorization header value.

        Returns:
            AuthenticatedUser: Verified identity and profile row.

        Raises:
            UnauthenticatedError: Missing/malformed header or failed verification.
            ProfileProvisioningError: Profile could not be created.
        """
        token = extract_bearer_token(authorization)
        user = await self.verify_token(token)

        metadata: dict[str, Any] = user.user_metadata
        full_name = metadata.get("full_name") or metadata.get("name")
        profile = await self.profile_service.get_or_create_profile(
            user.user_id,
            email=user.email,
            full_name=full_name,
        )

        logger.debug("Resolved user %s", mask_identifier(user.user_id))
        return AuthenticatedUser(id=user.user_id, email=user.email, profile=profile)
