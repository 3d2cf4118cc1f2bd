"""
Hosted auth/database provider adapters.

AuthProvider is the narrow surface the auth and audit services need.
SupabaseAuthProvider talks to a Supabase project through supabase-py's
async client; MockAuthProvider stands in during development and tests.
"""

import itertools
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Dict, List, Optional, TypeVar

import structlog
from supabase import AsyncClient, AuthError, acreate_client
from supabase.lib.client_options import AsyncClientOptions

from ..config import Settings
from .exceptions import ConfigurationError, ProviderError
from .metrics import MetricsCollector

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass
class ProviderUser:
    """User record as held by the provider."""
    id: str
    email: Optional[str]
    user_metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: Optional[datetime] = None


@dataclass
class ProviderSession:
    """Session tokens issued by the provider."""
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[int] = None


@dataclass
class ProviderAuthResult:
    user: Optional[ProviderUser]
    session: Optional[ProviderSession]


class AuthProvider:
    """Operations the API delegates to the hosted provider."""

    name = "provider"

    async def start(self) -> None:
        """Open connections; called from the app lifespan."""

    async def close(self) -> None:
        """Release connections; called from the app lifespan."""

    @property
    def is_mock(self) -> bool:
        return False

    async def sign_up(self, email: str, password: str, metadata: Dict[str, Any]) -> ProviderAuthResult:
        raise NotImplementedError

    async def sign_in_with_password(self, email: str, password: str) -> ProviderAuthResult:
        raise NotImplementedError

    async def reset_password_for_email(self, email: str, redirect_to: str) -> None:
        raise NotImplementedError

    async def get_user(self, access_token: str) -> ProviderUser:
        raise NotImplementedError

    async def update_password(self, access_token: str, password: str) -> ProviderUser:
        raise NotImplementedError

    async def sign_out(self, access_token: str) -> None:
        raise NotImplementedError

    async def insert(self, table: str, rows: List[Dict[str, Any]]) -> None:
        raise NotImplementedError


def _to_user(user: Any) -> ProviderUser:
    return ProviderUser(
        id=user.id,
        email=user.email,
        user_metadata=dict(user.user_metadata or {}),
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


def _to_session(session: Any) -> ProviderSession:
    return ProviderSession(
        access_token=session.access_token,
        refresh_token=session.refresh_token,
        expires_at=session.expires_at,
    )


class SupabaseAuthProvider(AuthProvider):
    """
    Supabase-backed provider.

    Holds two clients: end-user flows (sign up, sign in, recovery) run on
    one, while admin and table calls run on the other so they keep the
    service-role credentials after a user signs in.
    """

    name = "supabase"

    def __init__(self, settings: Settings, metrics: Optional[MetricsCollector] = None) -> None:
        if not settings.supabase.url or not settings.supabase.service_key:
            raise ConfigurationError(
                "Missing required Supabase configuration: "
                "SUPABASE_URL and SUPABASE_SERVICE_KEY must be set"
            )
        self.settings = settings
        self.metrics = metrics
        self._auth_client: Optional[AsyncClient] = None
        self._service_client: Optional[AsyncClient] = None

        logger.info("Supabase provider initialized", url=settings.supabase.url)

    async def start(self) -> None:
        options = AsyncClientOptions(auto_refresh_token=False, persist_session=False)
        self._auth_client = await acreate_client(
            self.settings.supabase.url, self.settings.supabase.service_key, options=options
        )
        self._service_client = await acreate_client(
            self.settings.supabase.url, self.settings.supabase.service_key, options=options
        )
        logger.info("Supabase provider started")

    async def close(self) -> None:
        self._auth_client = None
        self._service_client = None
        logger.info("Supabase provider stopped")

    @property
    def auth_client(self) -> AsyncClient:
        if self._auth_client is None:
            raise ProviderError("Supabase provider not started")
        return self._auth_client

    @property
    def service_client(self) -> AsyncClient:
        if self._service_client is None:
            raise ProviderError("Supabase provider not started")
        return self._service_client

    async def _call(self, operation: str, awaitable: Awaitable[T]) -> T:
        """Await a provider call, translating auth errors and recording metrics."""
        start = time.perf_counter()
        outcome = "success"
        try:
            return await awaitable
        except AuthError as e:
            outcome = "error"
            logger.warning(
                "Provider call failed",
                operation=operation,
                error=e.message,
                provider_status=getattr(e, "status", None),
                provider_code=getattr(e, "code", None),
            )
            raise ProviderError(
                e.message,
                provider_status=getattr(e, "status", None),
                provider_code=getattr(e, "code", None),
            ) from e
        except Exception:
            outcome = "exception"
            raise
        finally:
            if self.metrics:
                self.metrics.record_provider_call(operation, outcome, time.perf_counter() - start)

    async def sign_up(self, email: str, password: str, metadata: Dict[str, Any]) -> ProviderAuthResult:
        response = await self._call(
            "sign_up",
            self.auth_client.auth.sign_up({
                "email": email,
                "password": password,
                "options": {"data": metadata},
            }),
        )
        return ProviderAuthResult(
            user=_to_user(response.user) if response.user else None,
            session=_to_session(response.session) if response.session else None,
        )

    async def sign_in_with_password(self, email: str, password: str) -> ProviderAuthResult:
        response = await self._call(
            "sign_in",
            self.auth_client.auth.sign_in_with_password({"email": email, "password": password}),
        )
        return ProviderAuthResult(
            user=_to_user(response.user) if response.user else None,
            session=_to_session(response.session) if response.session else None,
        )

    async def reset_password_for_email(self, email: str, redirect_to: str) -> None:
        await self._call(
            "reset_password_for_email",
            self.auth_client.auth.reset_password_for_email(email, {"redirect_to": redirect_to}),
        )

    async def get_user(self, access_token: str) -> ProviderUser:
        response = await self._call("get_user", self.service_client.auth.get_user(access_token))
        if response is None or response.user is None:
            raise ProviderError("Invalid session", provider_status=401)
        return _to_user(response.user)

    async def update_password(self, access_token: str, password: str) -> ProviderUser:
        """Set a new password for the user owning a recovery access token."""
        user = await self.get_user(access_token)
        response = await self._call(
            "update_password",
            self.service_client.auth.admin.update_user_by_id(user.id, {"password": password}),
        )
        return _to_user(response.user)

    async def sign_out(self, access_token: str) -> None:
        await self._call("sign_out", self.service_client.auth.admin.sign_out(access_token))

    async def insert(self, table: str, rows: List[Dict[str, Any]]) -> None:
        start = time.perf_counter()
        outcome = "success"
        try:
            await self.service_client.table(table).insert(rows).execute()
        except Exception as e:
            outcome = "error"
            raise ProviderError(f"Insert into {table} failed: {e}") from e
        finally:
            if self.metrics:
                self.metrics.record_provider_call("insert", outcome, time.perf_counter() - start)


MOCK_USER_ID = "mock-user-id"
MOCK_USER_EMAIL = "dev@example.com"
MOCK_USER_NAME = "Dev User"
MOCK_FAILING_EMAIL = "fail@test.com"
MOCK_SESSION_SECONDS = 3600


class MockAuthProvider(AuthProvider):
    """
    In-process provider for development.

    Sign-up issues fresh mock users, sign-in succeeds for every address
    except fail@test.com, and any bearer token resolves to the dev user.
    """

    name = "mock"

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self.registered: Dict[str, ProviderUser] = {}
        self.inserted: Dict[str, List[Dict[str, Any]]] = {}
        self.recovery_emails: List[str] = []
        self.signed_out: List[str] = []
        self.password_updates: List[str] = []
        logger.info("Development mode: using mocked auth provider")

    @property
    def is_mock(self) -> bool:
        return True

    def _session(self) -> ProviderSession:
        stamp = int(time.time() * 1000)
        return ProviderSession(
            access_token=f"mock-access-token-{stamp}",
            refresh_token=f"mock-refresh-token-{stamp}",
            expires_at=int(time.time()) + MOCK_SESSION_SECONDS,
        )

    async def sign_up(self, email: str, password: str, metadata: Dict[str, Any]) -> ProviderAuthResult:
        logger.info("Development mode: mocking user registration", email=email)
        if email in self.registered:
            raise ProviderError("User already registered", provider_status=422, provider_code="user_already_exists")

        now = datetime.now(timezone.utc)
        user = ProviderUser(
            id=f"mock-user-{next(self._ids)}",
            email=email,
            user_metadata=dict(metadata),
            created_at=now,
            updated_at=now,
        )
        self.registered[email] = user
        return ProviderAuthResult(user=user, session=self._session())

    async def sign_in_with_password(self, email: str, password: str) -> ProviderAuthResult:
        logger.info("Development mode: mocking user login", email=email)
        if email == MOCK_FAILING_EMAIL:
            raise ProviderError("Invalid login credentials", provider_status=400, provider_code="invalid_credentials")

        user = self.registered.get(email)
        if user is None:
            now = datetime.now(timezone.utc)
            user = ProviderUser(id=f"mock-user-{email}", email=email, created_at=now, updated_at=now)
        return ProviderAuthResult(user=user, session=self._session())

    async def reset_password_for_email(self, email: str, redirect_to: str) -> None:
        logger.info("Development mode: mocking password recovery", email=email, redirect_to=redirect_to)
        self.recovery_emails.append(email)

    async def get_user(self, access_token: str) -> ProviderUser:
        now = datetime.now(timezone.utc)
        return ProviderUser(
            id=MOCK_USER_ID,
            email=MOCK_USER_EMAIL,
            user_metadata={"name": MOCK_USER_NAME},
            created_at=now,
            updated_at=now,
        )

    async def update_password(self, access_token: str, password: str) -> ProviderUser:
        logger.info("Development mode: mocking password reset")
        self.password_updates.append(access_token)
        return await self.get_user(access_token)

    async def sign_out(self, access_token: str) -> None:
        self.signed_out.append(access_token)

    async def insert(self, table: str, rows: List[Dict[str, Any]]) -> None:
        self.inserted.setdefault(table, []).extend(rows)


def create_provider(settings: Settings, metrics: Optional[MetricsCollector] = None) -> AuthProvider:
    """Select the provider for the configured mode."""
    if settings.use_mock_provider:
        return MockAuthProvider()
    return SupabaseAuthProvider(settings, metrics=metrics)
