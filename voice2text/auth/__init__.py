"""
Auth module - Bearer token verification against Supabase.
"""

from voice2text.auth.schemas import AuthenticatedUser
from voice2text.auth.verifier import (
    IdentityVerifier,
    JWTIdentityVerifier,
    SupabaseIdentityVerifier,
    get_identity_verifier,
    parse_bearer_token,
)

__all__ = [
    "AuthenticatedUser",
    "IdentityVerifier",
    "JWTIdentityVerifier",
    "SupabaseIdentityVerifier",
    "get_identity_verifier",
    "parse_bearer_token",
]
