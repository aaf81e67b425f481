"""
Authentication dependencies for FastAPI.
Provides the current user from the Authorization header.
"""

import logging
from typing import Annotated, Optional

from fastapi import Depends, Header

from voice2text.auth.schemas import AuthenticatedUser
from voice2text.auth.verifier import IdentityVerifier, get_identity_verifier

logger = logging.getLogger(__name__)


async def get_current_user(
        authorization: Annotated[Optional[str], Header()] = None,
        verifier: IdentityVerifier = Depends(get_identity_verifier),
) -> AuthenticatedUser:
    """
    Dependency to get the current authenticated user.

    Raises:
        AuthenticationError: If the header is missing, malformed or rejected.
            Mapped to a 401 response by the application exception handler.
    """
    user = await verifier.authenticate(authorization)
    logger.debug(f"[Auth] Authenticated user: {user.id}")
    return user


# Type alias for cleaner dependency injection
CurrentUser = Annotated[AuthenticatedUser, Depends(get_current_user)]
