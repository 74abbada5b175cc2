"""Authentication package."""

from finance_tracker.auth.context import AuthContext
from finance_tracker.auth.tokens import (
    TokenVerifier,
    bearer_token_from_header,
    create_access_token,
)

__all__ = [
    "AuthContext",
    "TokenVerifier",
    "bearer_token_from_header",
    "create_access_token",
]
