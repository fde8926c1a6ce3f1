"""
Session token verification.

Sessions are issued by the hosted auth provider (Supabase) as HS256 JWTs.
This module only verifies them and turns the claims into an
AuthenticatedUser; sign-in, refresh and sign-out happen elsewhere.
"""

from typing import Optional

from jose import JWTError, jwt

from src.config import AuthSettings, get_settings
from src.models.finance import AuthenticatedUser

UNAUTHORIZED_MESSAGE = "Não autorizado"


class AuthenticationError(Exception):
    """No valid session."""

    status_code = 401

    def __init__(self, reason: str = "invalid token"):
        super().__init__(reason)
        self.reason = reason
        self.message = UNAUTHORIZED_MESSAGE


def bearer_token(authorization: Optional[str]) -> str:
    """
    Extract the token of an `Authorization: Bearer <token>` header.

    Raises:
        AuthenticationError: If the header is missing or not a bearer token
    """
    if not authorization:
        raise AuthenticationError("missing authorization header")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationError("malformed authorization header")
    return token.strip()


class SupabaseJWTAuthenticator:
    """Verifies Supabase session tokens."""

    def __init__(self, settings: Optional[AuthSettings] = None):
        self._settings = settings or get_settings().auth

    def verify(self, token: str) -> AuthenticatedUser:
        """
        Verify signature, expiry and audience, and read the user identity.

        Raises:
            AuthenticationError: If the token is invalid or has no subject
        """
        try:
            payload = jwt.decode(
                token,
                self._settings.jwt_secret,
                algorithms=[self._settings.jwt_algorithm],
                audience=self._settings.jwt_audience,
            )
        except JWTError as e:
            raise AuthenticationError(str(e))

        user_id = payload.get("sub")
        if not user_id:
            raise AuthenticationError("token has no subject")
        return AuthenticatedUser(id=str(user_id), email=payload.get("email") or "")

    def authenticate(self, authorization: Optional[str]) -> AuthenticatedUser:
        """Verify the `Authorization` header of a request."""
        return self.verify(bearer_token(authorization))
