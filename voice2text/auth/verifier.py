"""
Identity verification for bearer tokens.

Two backends are available:
- SupabaseIdentityVerifier asks the Supabase auth API who owns the token.
- JWTIdentityVerifier decodes Supabase-issued HS256 tokens locally
  when the project JWT secret is configured.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

import httpx
from jose import JWTError, jwt

from voice2text.auth.schemas import AuthenticatedUser
from voice2text.config import get_settings
from voice2text.core.exceptions import AuthenticationError, InvalidTokenError

logger = logging.getLogger(__name__)

MISSING_HEADER_MESSAGE = "Missing Authorization header (Bearer <token> required)."
MALFORMED_HEADER_MESSAGE = "Malformed Authorization header."
INVALID_TOKEN_MESSAGE = "Invalid or expired auth token."


def parse_bearer_token(authorization: Optional[str]) -> str:
    """
    Extract the token from an ``Authorization: Bearer <token>`` header.

    Raises:
        AuthenticationError: If the header is missing or cannot be parsed
    """
    if not authorization or not authorization.strip():
        raise AuthenticationError(MISSING_HEADER_MESSAGE)

    scheme, _, token = authorization.strip().partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token or " " in token:
        raise AuthenticationError(MALFORMED_HEADER_MESSAGE)

    return token


class IdentityVerifier(ABC):
    """Resolves bearer tokens to user identities."""

    @abstractmethod
    async def resolve(self, token: str) -> Optional[AuthenticatedUser]:
        """
        Resolve a token to the user it belongs to.

        Returns:
            AuthenticatedUser, or None if the token is invalid or expired
        """

    async def close(self) -> None:
        """Release any held connections."""

    async def authenticate(self, authorization: Optional[str]) -> AuthenticatedUser:
        """
        Run the full bearer gate on a raw header value.

        A verifier that raises is treated the same as one that reports
        the token invalid.

        Raises:
            AuthenticationError: On a missing, malformed or rejected token
        """
        token = parse_bearer_token(authorization)

        try:
            user = await self.resolve(token)
        except Exception as e:
            logger.error(f"[IdentityVerifier] Token verification raised: {e}")
            user = None

        if user is None:
            raise InvalidTokenError(INVALID_TOKEN_MESSAGE)
        return user


class SupabaseIdentityVerifier(IdentityVerifier):
    """Verifies tokens against the Supabase auth API."""

    def __init__(
            self,
            supabase_url: str,
            service_role_key: str,
            http_client: httpx.AsyncClient | None = None,
    ):
        self.user_url = f"{supabase_url.rstrip('/')}/auth/v1/user"
        self.service_role_key = service_role_key
        self._client = http_client

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy initialization of the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=10.0)
        return self._client

    async def resolve(self, token: str) -> Optional[AuthenticatedUser]:
        try:
            response = await self.client.get(
                self.user_url,
                headers={
                    "apikey": self.service_role_key,
                    "Authorization": f"Bearer {token}",
                },
            )
        except httpx.RequestError as e:
            logger.error(f"[SupabaseVerifier] Request error: {e}")
            return None

        if response.status_code != 200:
            logger.warning(
                f"[SupabaseVerifier] Token rejected with status {response.status_code}"
            )
            return None

        data = response.json()
        user_id = data.get("id") if isinstance(data, dict) else None
        if not user_id:
            logger.warning("[SupabaseVerifier] No user returned for token")
            return None

        return AuthenticatedUser(id=str(user_id), email=data.get("email"))

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()


class JWTIdentityVerifier(IdentityVerifier):
    """Decodes Supabase access tokens locally with the project JWT secret."""

    def __init__(self, secret: str, audience: str = "authenticated", algorithm: str = "HS256"):
        self.secret = secret
        self.audience = audience
        self.algorithm = algorithm

    async def resolve(self, token: str) -> Optional[AuthenticatedUser]:
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                audience=self.audience,
            )
        except JWTError as e:
            logger.warning(f"[JWTVerifier] Token verification failed: {e}")
            return None

        user_id = payload.get("sub")
        if not user_id:
            return None

        return AuthenticatedUser(id=str(user_id), email=payload.get("email"))


# Singleton instance for dependency injection
_identity_verifier: IdentityVerifier | None = None


def get_identity_verifier() -> IdentityVerifier:
    """Dependency provider for the configured IdentityVerifier."""
    global _identity_verifier
    if _identity_verifier is None:
        settings = get_settings()
        if settings.supabase_jwt_secret:
            _identity_verifier = JWTIdentityVerifier(
                settings.supabase_jwt_secret,
                audience=settings.supabase_jwt_audience,
            )
        else:
            _identity_verifier = SupabaseIdentityVerifier(
                settings.supabase_url,
                settings.supabase_service_role_key,
            )
    return _identity_verifier


async def close_identity_verifier() -> None:
    """Close the shared verifier on shutdown."""
    global _identity_verifier
    if _identity_verifier is not None:
        await _identity_verifier.close()
        _identity_verifier = None
