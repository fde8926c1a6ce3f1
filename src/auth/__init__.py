"""Authentication package."""

from src.auth.authenticator import (
    UNAUTHORIZED_MESSAGE,
    AuthenticationError,
    SupabaseJWTAuthenticator,
    bearer_token,
)

__all__ = [
    "UNAUTHORIZED_MESSAGE",
    "AuthenticationError",
    "SupabaseJWTAuthenticator",
    "bearer_token",
]
