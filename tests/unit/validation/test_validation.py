"""
Tests for request validation.

Covers field validators, email normalization and the request validators
used by the auth endpoints.
"""

import pytest

from src.simple_todo.core.validation import (
    normalize_email,
    sanitize_string,
    validate_email,
    validate_login_request,
    validate_name,
    validate_password,
    validate_password_recovery_request,
    validate_password_reset_request,
    validate_registration_request,
)


class TestEmailValidation:
    """Test email validation and normalization."""

    def test_valid_email_is_normalized(self) -> None:
        """Valid addresses come back lowercased and trimmed."""
        result = validate_email("  Jane.Doe@Example.COM ")
        assert result.is_valid
        assert result.errors == []
        assert result.data == "jane.doe@example.com"

    @pytest.mark.parametrize("value", [None, "", 42])
    def test_missing_email(self, value: object) -> None:
        result = validate_email(value)
        assert not result.is_valid
        assert result.errors == ["Email is required"]

    @pytest.mark.parametrize("value", ["not-an-email", "missing@", "@example.com", "a b@example.com"])
    def test_invalid_email_format(self, value: str) -> None:
        result = validate_email(value)
        assert not result.is_valid
        assert "Invalid email format" in result.errors

    def test_email_too_long(self) -> None:
        """Addresses over 254 characters are rejected."""
        long_email = ("a" * 60 + ".") * 4 + "b" * 10 + "@example.com"
        result = validate_email(long_email)
        assert not result.is_valid
        assert "Email address too long" in result.errors

    def test_gmail_normalization(self) -> None:
        """Gmail ignores dots and +tags, and googlemail.com is an alias."""
        assert normalize_email("J.Doe+news@gmail.com") == "jdoe@gmail.com"
        assert normalize_email("j.doe@googlemail.com") == "jdoe@gmail.com"

    def test_plus_subaddress_normalization(self) -> None:
        assert normalize_email("jane+work@outlook.com") == "jane@outlook.com"
        assert normalize_email("jane+work@icloud.com") == "jane@icloud.com"
        # Dots are significant outside Gmail
        assert normalize_email("jane.doe+work@hotmail.com") == "jane.doe@hotmail.com"

    def test_yahoo_normalization(self) -> None:
        assert normalize_email("jane-shopping@yahoo.com") == "jane@yahoo.com"

    def test_other_domains_keep_tags(self) -> None:
        assert normalize_email("jane+tag@example.com") == "jane+tag@example.com"

    def test_unusable_address_normalizes_to_empty(self) -> None:
        assert normalize_email("no-at-sign") == ""
        assert normalize_email("+tag@gmail.com") == ""


class TestPasswordValidation:
    """Test password strength rules."""

    def test_strong_password(self) -> None:
        result = validate_password("Str0ng!Pass")
        assert result.is_valid
        assert result.errors == []

    def test_missing_password(self) -> None:
        assert validate_password("").errors == ["Password is required"]
        assert validate_password(None).errors == ["Password is required"]

    def test_each_rule_reports_its_own_error(self) -> None:
        """All failing rules are reported together."""
        result = validate_password("abc")
        assert not result.is_valid
        assert result.errors == [
            "Password must be at least 8 characters long",
            "Password must contain at least one uppercase letter",
            "Password must contain at least one number",
            "Password must contain at least one special character",
        ]

    def test_missing_lowercase(self) -> None:
        result = validate_password("STR0NG!PASS")
        assert result.errors == ["Password must contain at least one lowercase letter"]

    def test_password_too_long(self) -> None:
        result = validate_password("Aa1!" * 33)
        assert "Password too long" in result.errors


class TestNameValidation:
    """Test display name rules."""

    def test_whitespace_is_collapsed(self) -> None:
        result = validate_name("  Mary   Ann  O'Neil-Smith ")
        assert result.is_valid
        assert result.data == "Mary Ann O'Neil-Smith"

    def test_missing_name(self) -> None:
        assert validate_name("").errors == ["Name is required"]

    def test_name_too_short(self) -> None:
        assert validate_name("J").errors == ["Name must be at least 2 characters long"]

    def test_name_too_long(self) -> None:
        assert "Name too long (max 100 characters)" in validate_name("a" * 101).errors

    def test_disallowed_characters(self) -> None:
        result = validate_name("<script>")
        assert "Name can only contain letters, spaces, hyphens, and apostrophes" in result.errors


class TestRequestValidation:
    """Test the per-endpoint request validators."""

    def test_registration_request(self) -> None:
        result = validate_registration_request({
            "email": "Jane@Example.com",
            "password": "Str0ng!Pass",
            "name": "Jane  Doe",
        })
        assert result.is_valid
        assert result.data.email == "jane@example.com"
        assert result.data.password == "Str0ng!Pass"
        assert result.data.name == "Jane Doe"

    def test_registration_name_is_html_escaped(self) -> None:
        result = validate_registration_request({
            "email": "jane@example.com",
            "password": "Str0ng!Pass",
            "name": "Jane O'Doe",
        })
        assert result.is_valid
        assert result.data.name == "Jane O&#x27;Doe"

    def test_registration_collects_all_errors(self) -> None:
        result = validate_registration_request({"email": "bad", "password": "weak"})
        assert not result.is_valid
        assert "Invalid email format" in result.errors
        assert "Password must be at least 8 characters long" in result.errors
        assert "Name is required" in result.errors
        assert result.data is None

    def test_registration_non_object_body(self) -> None:
        result = validate_registration_request(["not", "an", "object"])
        assert not result.is_valid
        assert "Email is required" in result.errors

    def test_login_request_skips_strength_rules(self) -> None:
        """Login only checks that a password is present."""
        result = validate_login_request({"email": "jane@example.com", "password": "weak"})
        assert result.is_valid
        assert result.data.password == "weak"

    def test_login_request_requires_password(self) -> None:
        result = validate_login_request({"email": "jane@example.com"})
        assert result.errors == ["Password is required"]

    def test_password_recovery_request(self) -> None:
        result = validate_password_recovery_request({"email": "JANE@example.com"})
        assert result.is_valid
        assert result.data.email == "jane@example.com"

        assert validate_password_recovery_request({}).errors == ["Email is required"]

    def test_password_reset_request(self) -> None:
        result = validate_password_reset_request({"token": "recovery-token-123", "password": "N3w!Passw0rd"})
        assert result.is_valid
        assert result.data.token == "recovery-token-123"
        assert result.data.password == "N3w!Passw0rd"

    def test_password_reset_short_token(self) -> None:
        result = validate_password_reset_request({"token": "short", "password": "N3w!Passw0rd"})
        assert result.errors == ["Invalid reset token"]

    def test_password_reset_missing_fields(self) -> None:
        result = validate_password_reset_request({})
        assert result.errors == ["Reset token is required", "Password is required"]


class TestSanitizeString:
    """Test trimming and HTML escaping."""

    def test_trim_and_escape(self) -> None:
        assert sanitize_string("  <b>hi</b> ") == "&lt;b&gt;hi&lt;&#x2F;b&gt;"

    def test_slash_backslash_and_backtick_escaped(self) -> None:
        assert sanitize_string("a/b\\c`d") == "a&#x2F;b&#x5C;c&#96;d"

    def test_quotes_escaped(self) -> None:
        assert sanitize_string("O'Brien \"Jr\"") == "O&#x27;Brien &quot;Jr&quot;"

    def test_non_string_becomes_empty(self) -> None:
        assert sanitize_string(None) == ""
        assert sanitize_string(12) == ""
