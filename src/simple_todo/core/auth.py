"""
Bearer token authentication dependencies.
"""

from dataclasses import dataclass
from typing import Optional

import structlog
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..models.auth import User
from .auth_service import AuthService
from .exceptions import AuthenticationError

logger = structlog.get_logger(__name__)
security = HTTPBearer(auto_error=False)


@dataclass
class AuthenticatedUser:
    """The user behind a request together with the token that proved it."""
    user: User
    access_token: str


def get_auth_service(request: Request) -> AuthService:
    """Dependency returning the auth service created in the app lifespan."""
    service: Optional[AuthService] = getattr(request.app.state, "auth_service", None)
    if service is None:
        raise RuntimeError("Auth service not initialized")
    return service


async def authenticate_request(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    auth_service: AuthService = Depends(get_auth_service),
) -> AuthenticatedUser:
    """
    Authenticate the Authorization bearer token.

    Missing or non-Bearer headers are MISSING_TOKEN; implausibly short
    tokens are INVALID_TOKEN; the rest are validated with the provider.
    """
    if not credentials or credentials.scheme.lower() != "bearer" or not credentials.credentials:
        raise AuthenticationError("Authorization token required", code="MISSING_TOKEN")

    token = credentials.credentials.strip()
    min_length = request.app.state.settings.security.min_token_length

    if len(token) < min_length:
        logger.warning("Authentication failed: malformed token", token_length=len(token))
        raise AuthenticationError("Invalid authorization token", code="INVALID_TOKEN")

    user = await auth_service.validate_session(token)

    logger.debug("Token authenticated successfully", user_id=user.id, token=token[:8] + "...")
    return AuthenticatedUser(user=user, access_token=token)
