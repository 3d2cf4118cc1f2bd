"""
Authentication API endpoints.

Routes under /auth: health, register, login, recover, reset, logout, profile.
"""

from datetime import datetime, timezone
from typing import Any, Dict

import structlog
from fastapi import APIRouter, Depends, Request

from ..core.auth import AuthenticatedUser, authenticate_request, get_auth_service
from ..core.auth_service import AuthService
from ..core.exceptions import TodoApiException, ValidationError
from ..core.rate_limit import rate_limit
from ..core.security import get_client_info, sanitized_body
from ..core.validation import (
    validate_login_request,
    validate_password_recovery_request,
    validate_password_reset_request,
    validate_registration_request,
)
from ..models.auth import (
    AuthHealthResponse,
    AuthResultResponse,
    ErrorResponse,
    MessageResponse,
    ProfileData,
    ProfileResponse,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/auth")

RECOVERY_MESSAGE = "If the email exists, a password recovery link has been sent"


@router.get(
    "/health",
    response_model=AuthHealthResponse,
    summary="Auth service health",
)
async def auth_health(request: Request) -> AuthHealthResponse:
    """Report that the authentication service is running."""
    return AuthHealthResponse(
        message="Authentication service is healthy",
        timestamp=datetime.now(timezone.utc),
        environment=request.app.state.settings.environment,
    )


@router.post(
    "/register",
    response_model=AuthResultResponse,
    status_code=201,
    dependencies=[Depends(rate_limit("auth"))],
    responses={
        400: {"model": ErrorResponse, "description": "Invalid request"},
        409: {"model": ErrorResponse, "description": "User already registered"},
        429: {"model": ErrorResponse, "description": "Rate limit exceeded"},
    },
    summary="Register a new user",
)
async def register(
    request: Request,
    payload: Dict[str, Any] = Depends(sanitized_body),
    auth_service: AuthService = Depends(get_auth_service),
) -> AuthResultResponse:
    """
    Register a new account.

    Email, password strength and name are validated before the request
    reaches the provider.
    """
    validation = validate_registration_request(payload)
    if not validation.is_valid:
        raise ValidationError(validation.errors)

    ip_address, user_agent = get_client_info(request)
    auth_response = await auth_service.register(validation.data, ip_address, user_agent)

    return AuthResultResponse(message="User registered successfully", data=auth_response)


@router.post(
    "/login",
    response_model=AuthResultResponse,
    dependencies=[Depends(rate_limit("login"))],
    responses={
        400: {"model": ErrorResponse, "description": "Invalid request"},
        401: {"model": ErrorResponse, "description": "Invalid credentials"},
        429: {"model": ErrorResponse, "description": "Rate limit exceeded"},
    },
    summary="Log in",
)
async def login(
    request: Request,
    payload: Dict[str, Any] = Depends(sanitized_body),
    auth_service: AuthService = Depends(get_auth_service),
) -> AuthResultResponse:
    """Authenticate with email and password and receive a session."""
    validation = validate_login_request(payload)
    if not validation.is_valid:
        raise ValidationError(validation.errors)

    ip_address, user_agent = get_client_info(request)
    auth_response = await auth_service.login(validation.data, ip_address, user_agent)

    return AuthResultResponse(message="Login successful", data=auth_response)


@router.post(
    "/recover",
    response_model=MessageResponse,
    dependencies=[Depends(rate_limit("auth"))],
    responses={
        400: {"model": ErrorResponse, "description": "Invalid request"},
        429: {"model": ErrorResponse, "description": "Rate limit exceeded"},
    },
    summary="Start password recovery",
)
async def recover(
    request: Request,
    payload: Dict[str, Any] = Depends(sanitized_body),
    auth_service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    """
    Send a password recovery email.

    The response is identical whether or not the account exists, and
    whether or not the provider call succeeded.
    """
    validation = validate_password_recovery_request(payload)
    if not validation.is_valid:
        raise ValidationError(validation.errors)

    ip_address, user_agent = get_client_info(request)
    try:
        await auth_service.initiate_password_recovery(validation.data, ip_address, user_agent)
    except TodoApiException as e:
        logger.warning("Password recovery failed", code=e.code, error=e.message)

    return MessageResponse(message=RECOVERY_MESSAGE)


@router.post(
    "/reset",
    response_model=MessageResponse,
    dependencies=[Depends(rate_limit("auth"))],
    responses={
        400: {"model": ErrorResponse, "description": "Invalid request or token"},
        429: {"model": ErrorResponse, "description": "Rate limit exceeded"},
    },
    summary="Complete password reset",
)
async def reset(
    request: Request,
    payload: Dict[str, Any] = Depends(sanitized_body),
    auth_service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    """Set a new password with the recovery token from the emailed link."""
    validation = validate_password_reset_request(payload)
    if not validation.is_valid:
        raise ValidationError(validation.errors)

    ip_address, user_agent = get_client_info(request)
    await auth_service.reset_password(validation.data, ip_address, user_agent)

    return MessageResponse(message="Password reset successful")


@router.post(
    "/logout",
    response_model=MessageResponse,
    responses={401: {"model": ErrorResponse, "description": "Unauthorized"}},
    summary="Log out",
)
async def logout(
    request: Request,
    current: AuthenticatedUser = Depends(authenticate_request),
    auth_service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    """Invalidate the caller's session."""
    ip_address, user_agent = get_client_info(request)
    await auth_service.logout(current.user, current.access_token, ip_address, user_agent)

    return MessageResponse(message="Logout successful")


@router.get(
    "/profile",
    response_model=ProfileResponse,
    responses={401: {"model": ErrorResponse, "description": "Unauthorized"}},
    summary="Current user profile",
)
async def profile(current: AuthenticatedUser = Depends(authenticate_request)) -> ProfileResponse:
    return ProfileResponse(
        message="Profile retrieved successfully",
        data=ProfileData(user=current.user),
    )
