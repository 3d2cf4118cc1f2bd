"""
Pydantic data models package.

Contains all data validation models for:
- Auth requests, users, sessions and response envelopes
- Audit log entries
"""

from .audit import AuditAction, AuditLogEntry
from .auth import (
    AuthHealthResponse,
    AuthResponse,
    AuthResultResponse,
    ErrorResponse,
    LoginRequest,
    MessageResponse,
    PasswordRecoveryRequest,
    PasswordResetRequest,
    ProfileData,
    ProfileResponse,
    RegisterRequest,
    SessionTokens,
    User,
)

__all__ = [
    # Auth models
    "AuthHealthResponse",
    "AuthResponse",
    "AuthResultResponse",
    "ErrorResponse",
    "LoginRequest",
    "MessageResponse",
    "PasswordRecoveryRequest",
    "PasswordResetRequest",
    "ProfileData",
    "ProfileResponse",
    "RegisterRequest",
    "SessionTokens",
    "User",

    # Audit models
    "AuditAction",
    "AuditLogEntry",
]
