"""
Input validation and sanitization for auth requests.

Every validator returns a ValidationResult collecting all failures so the
caller can report them together; request validators also return the
sanitized payload on success.
"""

import html
import re
from dataclasses import dataclass, field
from typing import Any, Generic, List, Optional, TypeVar

from email_validator import EmailNotValidError, validate_email as check_email_syntax

from ..models.auth import (
    LoginRequest,
    PasswordRecoveryRequest,
    PasswordResetRequest,
    RegisterRequest,
)

T = TypeVar("T")

MAX_EMAIL_LENGTH = 254
MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_LENGTH = 128
MIN_NAME_LENGTH = 2
MAX_NAME_LENGTH = 100
MIN_RESET_TOKEN_LENGTH = 10

SPECIAL_CHARACTERS = re.compile(r"[!@#$%^&*()_+\-=\[\]{};':\"\\|,.<>/?]")
NAME_PATTERN = re.compile(r"^[a-zA-Z\s\-']+$")
WHITESPACE_RUN = re.compile(r"\s+")

GMAIL_DOMAINS = {"gmail.com", "googlemail.com"}
PLUS_SUBADDRESS_DOMAINS = {
    "outlook.com", "hotmail.com", "live.com",
    "icloud.com", "me.com", "mac.com",
}
YAHOO_DOMAINS = {"yahoo.com", "yahoo.co.uk", "ymail.com", "rocketmail.com"}


@dataclass
class ValidationResult(Generic[T]):
    """Outcome of validating one field or one request."""

    is_valid: bool
    errors: List[str] = field(default_factory=list)
    data: Optional[T] = None


def _result(errors: List[str]) -> ValidationResult[Any]:
    return ValidationResult(is_valid=not errors, errors=errors)


def normalize_email(email: str) -> str:
    """
    Canonicalize an email address.

    Lowercases the address and strips provider-specific aliasing:
    dots and +tags for Gmail, +tags for Outlook and iCloud, -tags for Yahoo.
    Returns an empty string when the input has no usable '@'.
    """
    email = email.strip()
    if "@" not in email:
        return ""

    local, domain = email.rsplit("@", 1)
    local = local.lower()
    domain = domain.lower()
    if not local or not domain:
        return ""

    if domain in GMAIL_DOMAINS:
        local = local.split("+", 1)[0].replace(".", "")
        domain = "gmail.com"
    elif domain in PLUS_SUBADDRESS_DOMAINS:
        local = local.split("+", 1)[0]
    elif domain in YAHOO_DOMAINS:
        local = local.split("-", 1)[0]

    if not local:
        return ""
    return f"{local}@{domain}"


def sanitize_string(value: Any) -> str:
    """Trim and HTML-escape a string; non-strings become empty."""
    if not isinstance(value, str):
        return ""
    escaped = html.escape(value.strip(), quote=True)
    return escaped.replace("/", "&#x2F;").replace("\\", "&#x5C;").replace("`", "&#96;")


def validate_email(email: Any) -> ValidationResult[str]:
    """Validate and normalize an email address."""
    if not email or not isinstance(email, str):
        return _result(["Email is required"])

    errors = []
    normalized = normalize_email(email)

    try:
        check_email_syntax(normalized, check_deliverability=False)
    except EmailNotValidError:
        errors.append("Invalid email format")

    if len(normalized) > MAX_EMAIL_LENGTH:
        errors.append("Email address too long")

    result = _result(errors)
    if result.is_valid:
        result.data = normalized
    return result


def validate_password(password: Any) -> ValidationResult[str]:
    """Check password strength requirements."""
    if not password or not isinstance(password, str):
        return _result(["Password is required"])

    errors = []
    if len(password) < MIN_PASSWORD_LENGTH:
        errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    if len(password) > MAX_PASSWORD_LENGTH:
        errors.append("Password too long")
    if not re.search(r"[A-Z]", password):
        errors.append("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", password):
        errors.append("Password must contain at least one lowercase letter")
    if not re.search(r"\d", password):
        errors.append("Password must contain at least one number")
    if not SPECIAL_CHARACTERS.search(password):
        errors.append("Password must contain at least one special character")

    return _result(errors)


def validate_name(name: Any) -> ValidationResult[str]:
    """Validate a display name after collapsing whitespace."""
    if not name or not isinstance(name, str):
        return _result(["Name is required"])

    errors = []
    collapsed = WHITESPACE_RUN.sub(" ", name.strip())

    if len(collapsed) < MIN_NAME_LENGTH:
        errors.append(f"Name must be at least {MIN_NAME_LENGTH} characters long")
    if len(collapsed) > MAX_NAME_LENGTH:
        errors.append(f"Name too long (max {MAX_NAME_LENGTH} characters)")
    if not NAME_PATTERN.match(collapsed):
        errors.append("Name can only contain letters, spaces, hyphens, and apostrophes")

    result = _result(errors)
    if result.is_valid:
        result.data = collapsed
    return result


def validate_reset_token(token: Any) -> ValidationResult[str]:
    if not token or not isinstance(token, str):
        return _result(["Reset token is required"])
    if len(token.strip()) < MIN_RESET_TOKEN_LENGTH:
        return _result(["Invalid reset token"])
    return ValidationResult(is_valid=True, data=token.strip())


def _field(data: Any, name: str) -> Any:
    return data.get(name) if isinstance(data, dict) else None


def validate_registration_request(data: Any) -> ValidationResult[RegisterRequest]:
    """Validate a registration payload (email, password, name)."""
    email = validate_email(_field(data, "email"))
    password = validate_password(_field(data, "password"))
    name = validate_name(_field(data, "name"))

    errors = email.errors + password.errors + name.errors
    if errors:
        return _result(errors)

    return ValidationResult(
        is_valid=True,
        data=RegisterRequest(
            email=email.data,
            # Passwords are passed through untouched
            password=data["password"],
            name=sanitize_string(name.data),
        ),
    )


def validate_login_request(data: Any) -> ValidationResult[LoginRequest]:
    """Validate a login payload; password strength is not checked here."""
    email = validate_email(_field(data, "email"))

    errors = list(email.errors)
    password = _field(data, "password")
    if not password or not isinstance(password, str):
        errors.append("Password is required")

    if errors:
        return _result(errors)

    return ValidationResult(
        is_valid=True,
        data=LoginRequest(email=email.data, password=password),
    )


def validate_password_recovery_request(data: Any) -> ValidationResult[PasswordRecoveryRequest]:
    """Validate a password recovery payload."""
    email = validate_email(_field(data, "email"))
    if not email.is_valid:
        return _result(email.errors)

    return ValidationResult(
        is_valid=True,
        data=PasswordRecoveryRequest(email=email.data),
    )


def validate_password_reset_request(data: Any) -> ValidationResult[PasswordResetRequest]:
    """Validate a password reset payload (recovery token plus new password)."""
    token = validate_reset_token(_field(data, "token"))
    password = validate_password(_field(data, "password"))

    errors = token.errors + password.errors
    if errors:
        return _result(errors)

    return ValidationResult(
        is_valid=True,
        data=PasswordResetRequest(
            token=sanitize_string(token.data),
            password=data["password"],
        ),
    )
