"""JWT verification utilities for Supabase-issued access tokens."""

import json
from enum import Enum
from typing import Any

import jwt
from jwt import PyJWK

from src.core.config import Settings
from src.schemas.auth import TokenPayload

SUPABASE_AUDIENCE = "authenticated"


class AuthErrorCode(str, Enum):
    """Authentication error codes."""

    UNAUTHORIZED = "UNAUTHORIZED"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    INVALID_TOKEN = "INVALID_TOKEN"
    INVALID_SIGNATURE = "INVALID_SIGNATURE"


class AuthError(Exception):
    """Authentication error with specific error code.

    Raised when JWT validation fails for any reason.
    The error code indicates the specific failure reason.
    """

    def __init__(self, message: str, code: AuthErrorCode) -> None:
        """Initialize authentication error.

        Args:
            message: Human-readable error description.
            code: Specific error code for programmatic handling.
        """
        self.message = message
        self.code = code
        super().__init__(message)


def get_verification_key(settings: Settings) -> tuple[Any, list[str]]:
    """Resolve the key and algorithms used to verify access tokens.

    A signing key JWK (asymmetric, current Supabase projects) takes precedence
    over the legacy shared HS256 secret.

    Args:
        settings: Application settings.

    Returns:
        tuple: (key, allowed algorithms).

    Raises:
        AuthError: If no key is configured or the JWK cannot be parsed.
    """
    if settings.supabase_signing_key_jwk:
        try:
            jwk_data = json.loads(settings.supabase_signing_key_jwk)
            jwk = PyJWK.from_dict(jwk_data)
        except (json.JSONDecodeError, jwt.PyJWKError, jwt.InvalidKeyError) as e:
            raise AuthError(
                f"Invalid signing key JWK format: {type(e).__name__}",
                AuthErrorCode.INVALID_TOKEN,
            ) from e
        return jwk.key, [jwk_data.get("alg", "ES256")]

    if settings.supabase_jwt_secret:
        return settings.supabase_jwt_secret, ["HS256"]

    raise AuthError("Signing key not configured", AuthErrorCode.INVALID_TOKEN)


def decode_jwt(token: str, settings: Settings) -> TokenPayload:
    """Decode and validate a JWT token.

    Validates the token signature, expiration, audience and structure.
    Never falls back to reading unverified claims.

    Args:
        token: The JWT token string to decode.
        settings: Application settings holding the verification key.

    Returns:
        TokenPayload: Validated token payload.

    Raises:
        AuthError: If token is invalid, expired, or has wrong signature.
    """
    key, algorithms = get_verification_key(settings)

    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            key,
            algorithms=algorithms,
            audience=SUPABASE_AUDIENCE,
            options={
                "verify_signature": True,
                "verify_exp": True,
                "verify_iat": True,
                "verify_aud": True,
                "require": ["exp", "iat", "sub"],
            },
        )

        return TokenPayload(
            sub=payload["sub"],
            email=payload.get("email"),
            role=payload.get("role"),
            exp=payload["exp"],
            iat=payload["iat"],
            aud=payload.get("aud"),
            iss=payload.get("iss"),
            user_metadata=payload.get("user_metadata") or {},
        )

    except jwt.ExpiredSignatureError as e:
        raise AuthError(
            "Token has expired",
            AuthErrorCode.TOKEN_EXPIRED,
        ) from e

    except jwt.InvalidSignatureError as e:
        raise AuthError(
            "Invalid token signature",
            AuthErrorCode.INVALID_SIGNATURE,
        ) from e

    except jwt.MissingRequiredClaimError as e:
        raise AuthError(
            f"Token missing required claim: {e.claim}",
            AuthErrorCode.INVALID_TOKEN,
        ) from e

    except jwt.InvalidAudienceError as e:
        raise AuthError(
            "Token audience is not accepted",
            AuthErrorCode.INVALID_TOKEN,
        ) from e

    except jwt.DecodeError as e:
        raise AuthError(
            "Invalid token format",
            AuthErrorCode.INVALID_TOKEN,
        ) from e

    except jwt.InvalidTokenError as e:
        raise AuthError(
            f"Token validation failed: {type(e).__name__}",
            AuthErrorCode.INVALID_TOKEN,
        ) from e
