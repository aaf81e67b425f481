"""
Pydantic schemas for authentication module.
"""

from pydantic import BaseModel, Field


class AuthenticatedUser(BaseModel):
    """Identity resolved from a bearer token. Never persisted on its own."""

    id: str = Field(..., description="Stable user identifier from the auth provider")
    email: str | None = Field(None, description="User email, when the provider returns it")
