"""Authentication schemas for bearer tokens and user context."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class UserContext(BaseModel):
    """Verified identity of the caller.

    Populated either from a locally verified JWT or from Supabase Auth.
    """

    model_config = ConfigDict(from_attributes=True)

    user_id: str = Field(description="Auth subject id (Supabase user UUID)")
    email: str | None = Field(default=None, description="User's email address if available")
    role: str | None = Field(default=None, description="User's role (e.g., 'authenticated')")
    user_metadata: dict[str, Any] = Field(default_factory=dict, description="Provider user metadata")


class TokenPayload(BaseModel):
    """JWT token payload structure for Supabase tokens.

    Represents the claims contained in a Supabase-issued JWT.
    Used for validation and extraction of user information.
    """

    model_config = ConfigDict(from_attributes=True)

    sub: str = Field(description="Subject - the user's UUID")
    email: str | None = Field(default=None, description="User's email address")
    role: str | None = Field(default=None, description="User's role")
    exp: int = Field(description="Expiration timestamp (Unix epoch)")
    iat: int = Field(description="Issued at timestamp (Unix epoch)")
    aud: str | list[str] | None = Field(default=None, description="Audience - intended recipient")
    iss: str | None = Field(default=None, description="Issuer - token issuer URL")
    user_metadata: dict[str, Any] = Field(default_factory=dict, description="Custom user metadata claim")

    def to_user_context(self) -> UserContext:
        """Convert token payload to UserContext.

        Returns:
            UserContext: User context derived from token claims.
        """
        return UserContext(
            user_id=self.sub,
            email=self.email,
            role=self.role,
            user_metadata=self.user_metadata,
        )


class AuthenticatedUser(BaseModel):
    """Verified caller together with their local profile row."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(description="Auth subject id")
    email: str | None = Field(default=None, description="User's email address")
    profile: dict[str, Any] = Field(description="Profile row from the profiles table")
