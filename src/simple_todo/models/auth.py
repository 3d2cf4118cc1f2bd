"""
Authentication data models.

- Request payloads after validation and sanitization
- User and session shapes returned to the front end (camelCase on the wire)
- Response envelopes for every /auth endpoint
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serialized with camelCase field names."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class RegisterRequest(BaseModel):
    """Sanitized registration payload."""

    email: str
    password: str
    name: str


class LoginRequest(BaseModel):
    """Sanitized login payload."""

    email: str
    password: str


class PasswordRecoveryRequest(BaseModel):
    """Sanitized password recovery payload."""

    email: str


class PasswordResetRequest(BaseModel):
    """Sanitized password reset payload."""

    token: str
    password: str


class User(CamelModel):
    """User profile as exposed by the API."""

    id: str = Field(description="Provider user identifier")
    email: str = Field(description="User email address")
    name: str = Field(description="Display name")
    avatar: Optional[str] = Field(default=None, description="Avatar URL")
    created_at: datetime = Field(description="Account creation time")
    updated_at: datetime = Field(description="Last account update")


class SessionTokens(CamelModel):
    """Session issued by the provider."""

    access_token: str = Field(description="Bearer access token")
    refresh_token: str = Field(default="", description="Refresh token")
    expires_at: int = Field(default=0, description="Expiry as a Unix timestamp")


class AuthResponse(CamelModel):
    """User plus session returned by register and login."""

    user: User
    session: SessionTokens


class AuthResultResponse(BaseModel):
    """Envelope for register and login."""

    message: str
    data: AuthResponse


class MessageResponse(BaseModel):
    """Envelope carrying only a message."""

    message: str


class ProfileData(BaseModel):
    user: User


class ProfileResponse(BaseModel):
    """Envelope for the profile endpoint."""

    message: str
    data: ProfileData


class AuthHealthResponse(BaseModel):
    message: str
    timestamp: datetime
    environment: str


class ErrorResponse(BaseModel):
    """
    Standard error response model.
    """

    message: str = Field(description="Human-readable error message")
    code: str = Field(description="Error code")
    details: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Additional error details",
    )
