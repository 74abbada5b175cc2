"""
Authenticated caller context.

DESIGN DECISION: The caller's identity is an explicit value passed into
every worker and record store call. Nothing reads it from a global or a
request-local; a function that touches user data says so in its signature.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class AuthContext(BaseModel):
    """Identity of the caller on whose behalf an operation runs."""

    model_config = ConfigDict(frozen=True)

    user_id: str = Field(
        ...,
        min_length=1,
        description="Stable user identifier (the token's 'sub' claim)"
    )
    access_token: Optional[str] = Field(
        default=None,
        repr=False,
        description="Bearer token, forwarded when calling a remote worker"
    )

    def authorization_header(self) -> dict[str, str]:
        if not self.access_token:
            return {}
        return {"Authorization": f"Bearer {self.access_token}"}
