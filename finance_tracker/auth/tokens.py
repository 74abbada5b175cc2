"""
Access token issuing and verification.

Tokens are HS256 JWTs in the shape managed auth providers hand out:
'sub' is the user id, 'aud' is the configured audience, 'exp' bounds the
lifetime. Anything else about the caller is out of scope here.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from finance_tracker.auth.context import AuthContext
from finance_tracker.config import AuthSettings, get_settings
from finance_tracker.errors import UnauthorizedError


def bearer_token_from_header(authorization: Optional[str]) -> Optional[str]:
    """Extract the token from an 'Authorization: Bearer <token>' header value."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def create_access_token(
    user_id: str,
    settings: Optional[AuthSettings] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Issue a signed access token for ``user_id``."""
    settings = settings or get_settings().auth
    now = datetime.now(timezone.utc)
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.access_token_ttl_minutes)
    payload = {
        "sub": user_id,
        "aud": settings.audience,
        "iat": now,
        "exp": now + expires_delta,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


class TokenVerifier:
    """Turns a bearer token into an AuthContext, or refuses."""

    def __init__(self, settings: Optional[AuthSettings] = None):
        self._settings = settings or get_settings().auth

    def verify(self, token: Optional[str]) -> AuthContext:
        """
        Verify ``token`` and return the caller's context.

        Raises:
            UnauthorizedError: missing, malformed, expired, wrongly signed
                or wrong-audience token, or a token without a subject
        """
        if not token:
            raise UnauthorizedError("No bearer token supplied")

        try:
            payload = jwt.decode(
                token,
                self._settings.jwt_secret,
                algorithms=[self._settings.jwt_algorithm],
                audience=self._settings.audience,
            )
        except jwt.ExpiredSignatureError:
            raise UnauthorizedError("Access token has expired")
        except jwt.PyJWTError as e:
            raise UnauthorizedError(f"Invalid access token: {e}")

        user_id = payload.get("sub")
        if not user_id:
            raise UnauthorizedError("Access token has no subject")

        return AuthContext(user_id=str(user_id), access_token=token)

    def verify_header(self, authorization: Optional[str]) -> AuthContext:
        return self.verify(bearer_token_from_header(authorization))
