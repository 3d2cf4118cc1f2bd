"""
Authentication service.

Forwards validated requests to the hosted provider, shapes its user and
session objects into API responses, and records audit entries.
"""

from typing import Optional

import structlog

from ..config import Settings
from ..models.auth import (
    AuthResponse,
    LoginRequest,
    PasswordRecoveryRequest,
    PasswordResetRequest,
    RegisterRequest,
    SessionTokens,
    User,
)
from .audit import AuditService
from .exceptions import (
    ApiError,
    AuthenticationError,
    ConflictError,
    InvalidCredentialsError,
    ProviderError,
    TodoApiException,
)
from .metrics import MetricsCollector
from .provider import MOCK_USER_EMAIL, MOCK_USER_ID, AuthProvider, ProviderSession, ProviderUser

logger = structlog.get_logger(__name__)

ALREADY_REGISTERED_CODES = {"user_already_exists", "email_exists"}


def _is_already_registered(error: ProviderError) -> bool:
    if error.provider_code in ALREADY_REGISTERED_CODES:
        return True
    return "already registered" in error.message.lower()


def build_user(user: ProviderUser, fallback_email: str = "", name: Optional[str] = None) -> User:
    """
    Shape a provider user for the API.

    The display name falls back to the metadata name, then the email's
    local part, then "User".
    """
    email = user.email or fallback_email
    metadata = user.user_metadata or {}
    display_name = name or metadata.get("name") or (email.split("@")[0] if email else "") or "User"

    return User(
        id=user.id,
        email=email,
        name=display_name,
        avatar=metadata.get("avatar"),
        created_at=user.created_at,
        updated_at=user.updated_at or user.created_at,
    )


def build_session(session: ProviderSession) -> SessionTokens:
    return SessionTokens(
        access_token=session.access_token,
        refresh_token=session.refresh_token or "",
        expires_at=session.expires_at or 0,
    )


class AuthService:
    """Registration, login, password recovery/reset, logout and session checks."""

    def __init__(
        self,
        provider: AuthProvider,
        audit: AuditService,
        settings: Settings,
        metrics: Optional[MetricsCollector] = None,
    ) -> None:
        self.provider = provider
        self.audit = audit
        self.settings = settings
        self.metrics = metrics

    def _record(self, operation: str, outcome: str) -> None:
        if self.metrics:
            self.metrics.record_auth_operation(operation, outcome)

    async def register(
        self,
        data: RegisterRequest,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> AuthResponse:
        """
        Create an account with the provider.

        Raises ConflictError for an existing account and ApiError
        (REGISTRATION_FAILED / REGISTRATION_ERROR) otherwise.
        """
        try:
            result = await self.provider.sign_up(data.email, data.password, {"name": data.name})

            if result.user is None or result.session is None:
                raise ApiError(
                    "Registration failed: No user data returned",
                    "REGISTRATION_FAILED",
                )

            user = build_user(result.user, fallback_email=data.email, name=data.name)
            await self.audit.log_user_registration(user.id, user.email, ip_address, user_agent)

            self._record("register", "success")
            logger.info("User registered", user_id=user.id)
            return AuthResponse(user=user, session=build_session(result.session))

        except ProviderError as e:
            self._record("register", "failure")
            if _is_already_registered(e):
                raise ConflictError(f"Registration failed: {e.message}") from e
            raise ApiError(f"Registration failed: {e.message}", "REGISTRATION_FAILED") from e
        except TodoApiException:
            self._record("register", "failure")
            raise
        except Exception as e:
            self._record("register", "error")
            logger.error("Registration error", error=str(e), error_type=type(e).__name__, exc_info=True)
            raise ApiError("Registration failed", "REGISTRATION_ERROR", status_code=500) from e

    async def login(
        self,
        data: LoginRequest,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> AuthResponse:
        """Authenticate an email/password pair; any rejection is INVALID_CREDENTIALS."""
        try:
            try:
                result = await self.provider.sign_in_with_password(data.email, data.password)
            except ProviderError:
                result = None

            if result is None or result.user is None or result.session is None:
                await self.audit.log_user_login("unknown", data.email, False, ip_address, user_agent)
                raise InvalidCredentialsError()

            user = build_user(result.user, fallback_email=data.email)
            await self.audit.log_user_login(user.id, user.email, True, ip_address, user_agent)

            self._record("login", "success")
            logger.info("User logged in", user_id=user.id)
            return AuthResponse(user=user, session=build_session(result.session))

        except TodoApiException:
            self._record("login", "failure")
            raise
        except Exception as e:
            self._record("login", "error")
            logger.error("Login error", error=str(e), error_type=type(e).__name__, exc_info=True)
            raise ApiError("Login failed", "LOGIN_ERROR", status_code=500) from e

    async def initiate_password_recovery(
        self,
        data: PasswordRecoveryRequest,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        """Ask the provider to email a recovery link."""
        try:
            await self.provider.reset_password_for_email(
                data.email, redirect_to=self.settings.password_reset_redirect
            )
            await self.audit.log_password_recovery_initiated(data.email, ip_address, user_agent)
            self._record("recover", "success")

        except ProviderError as e:
            self._record("recover", "failure")
            raise ApiError(f"Password recovery failed: {e.message}", "RECOVERY_FAILED") from e
        except Exception as e:
            self._record("recover", "error")
            logger.error("Password recovery error", error=str(e), error_type=type(e).__name__, exc_info=True)
            raise ApiError("Password recovery failed", "RECOVERY_ERROR", status_code=500) from e

    async def reset_password(
        self,
        data: PasswordResetRequest,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        """
        Set a new password using the recovery token from the emailed link.

        With the mock provider the reset always succeeds for the mock user.
        """
        if self.provider.is_mock:
            logger.info("Development mode: mocking password reset")
            await self.audit.log_password_reset(
                MOCK_USER_ID, MOCK_USER_EMAIL, True, ip_address, user_agent
            )
            self._record("reset", "success")
            return

        try:
            user = await self.provider.update_password(data.token, data.password)
            await self.audit.log_password_reset(user.id, user.email, True, ip_address, user_agent)
            self._record("reset", "success")

        except ProviderError as e:
            await self.audit.log_password_reset(None, None, False, ip_address, user_agent)
            self._record("reset", "failure")
            raise ApiError(f"Password reset failed: {e.message}", "RESET_FAILED") from e
        except Exception as e:
            self._record("reset", "error")
            logger.error("Password reset error", error=str(e), error_type=type(e).__name__, exc_info=True)
            raise ApiError("Password reset failed", "RESET_ERROR", status_code=500) from e

    async def logout(
        self,
        user: User,
        access_token: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        """Revoke the session at the provider (best effort) and audit it."""
        try:
            await self.provider.sign_out(access_token)
        except ProviderError as e:
            logger.warning("Provider sign-out failed", user_id=user.id, error=e.message)

        await self.audit.log_user_logout(user.id, ip_address, user_agent)
        self._record("logout", "success")
        logger.info("User logged out", user_id=user.id)

    async def validate_session(self, access_token: str) -> User:
        """Resolve the user owning access_token or raise INVALID_SESSION."""
        try:
            provider_user = await self.provider.get_user(access_token)
        except ProviderError as e:
            raise AuthenticationError("Invalid session", code="INVALID_SESSION") from e
        except Exception as e:
            logger.error("Session validation error", error=str(e), error_type=type(e).__name__, exc_info=True)
            raise ApiError("Session validation failed", "SESSION_ERROR", status_code=500) from e

        return build_user(provider_user)
