"""
Configuration management.

Uses Pydantic Settings for environment variable handling and validation,
with an optional config.yaml providing defaults that env vars override.
"""

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def load_config_file(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Load configuration from YAML file."""
    if config_path is None:
        possible_paths = [
            "config.yaml",
            "../../config.yaml",
            "../../../config.yaml",
        ]

        for path in possible_paths:
            if os.path.exists(path):
                config_path = path
                break
        else:
            return {}

    if os.path.exists(config_path):
        with open(config_path, "r") as f:
            return yaml.safe_load(f) or {}
    return {}


class SupabaseSettings(BaseSettings):
    """Hosted auth/database provider configuration."""

    url: str = Field(default="", description="Supabase project URL")
    service_key: str = Field(default="", description="Supabase service role key")
    mock: Optional[bool] = Field(
        default=None,
        description="Use the in-process mock provider (defaults to development mode)",
    )
    health_timeout_seconds: int = Field(default=5, description="Provider health check timeout")
    audit_table: str = Field(default="audit_logs", description="Table receiving audit rows")

    model_config = SettingsConfigDict(env_prefix="SUPABASE_")


class SecuritySettings(BaseSettings):
    """Request-level security configuration."""

    rate_limit_enabled: Optional[bool] = Field(
        default=None, description="Enable rate limiting (defaults to production only)"
    )
    enforce_https: Optional[bool] = Field(
        default=None, description="Redirect plain HTTP to HTTPS (defaults to production only)"
    )
    trust_proxy: bool = Field(default=True, description="Honour X-Forwarded-* headers")

    auth_window_seconds: int = Field(default=900, description="Window for register/recover/reset")
    auth_max_requests: int = Field(default=10, description="Requests per auth window")
    login_window_seconds: int = Field(default=900, description="Window for login attempts")
    login_max_requests: int = Field(default=5, description="Login attempts per window")

    cors_origins: Optional[List[str]] = Field(default=None, description="Allowed CORS origins")
    cors_max_age: int = Field(default=86400, description="CORS preflight cache (seconds)")
    min_token_length: int = Field(default=10, description="Shortest bearer token accepted")

    @field_validator("cors_origins", mode="before")
    def parse_cors_origins(cls, v: Any) -> Optional[List[str]]:
        """Accept a JSON list or a comma-separated string."""
        if isinstance(v, str):
            v = v.strip()
            if not v:
                return None
            if v.startswith("["):
                try:
                    parsed = json.loads(v)
                except json.JSONDecodeError as e:
                    raise ValueError(f"Invalid CORS origin list: {e}") from e
                return [str(origin) for origin in parsed]
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    model_config = SettingsConfigDict(env_prefix="SIMPLE_TODO_SECURITY_")


class AuditSettings(BaseSettings):
    """Audit logging configuration."""

    sink: Optional[str] = Field(
        default=None,
        description="console, file or provider (defaults to console in development)",
    )
    file_path: Path = Field(default=Path("./audit.log"), description="Audit file for the file sink")

    @field_validator("sink")
    def validate_sink(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.lower()
        if v not in {"console", "file", "provider"}:
            raise ValueError(f"Unknown audit sink '{v}'")
        return v

    model_config = SettingsConfigDict(env_prefix="SIMPLE_TODO_AUDIT_")


class MaskingSettings(BaseSettings):
    """Redaction of sensitive values in log output."""

    baseline_keys: List[str] = Field(
        default=[
            "password",
            "token",
            "access_token",
            "refresh_token",
            "authorization",
            "secret",
            "service_key",
            "api_key",
        ],
        description="Keys whose values are always masked in logs",
    )
    partial_rules: Dict[str, Dict[str, Any]] = Field(
        default={"authorization": {"keep_prefix": 7}, "email": {"mask_email": True}},
        description="Partial masking rules for specific keys",
    )

    model_config = SettingsConfigDict(env_prefix="SIMPLE_TODO_MASKING_")


class Settings(BaseSettings):
    """Main application settings."""

    environment: str = Field(default="development", description="development, test or production")
    host: str = Field(default="localhost", description="Server host")
    port: int = Field(default=3000, description="Server port")
    debug: bool = Field(default=False, description="Debug mode")
    log_level: str = Field(default="INFO", description="Log level")
    json_logs: Optional[bool] = Field(default=None, description="Render logs as JSON")
    frontend_url: str = Field(default="http://localhost:4200", description="Front end base URL")
    api_prefix: str = Field(default="", description="Prefix mounted before /auth")
    version: str = Field(default="1.0.0", description="Service version")

    supabase: SupabaseSettings = Field(default_factory=SupabaseSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    audit: AuditSettings = Field(default_factory=AuditSettings)
    masking: MaskingSettings = Field(default_factory=MaskingSettings)

    model_config = SettingsConfigDict(env_prefix="SIMPLE_TODO_", case_sensitive=False)

    @property
    def is_development(self) -> bool:
        return self.environment.lower() != "production"

    @property
    def use_mock_provider(self) -> bool:
        if self.supabase.mock is None:
            return self.is_development
        return self.supabase.mock

    @property
    def rate_limit_enabled(self) -> bool:
        if self.security.rate_limit_enabled is None:
            return not self.is_development
        return self.security.rate_limit_enabled

    @property
    def enforce_https(self) -> bool:
        if self.security.enforce_https is None:
            return not self.is_development
        return self.security.enforce_https

    @property
    def render_json_logs(self) -> bool:
        if self.json_logs is None:
            return not self.is_development
        return self.json_logs

    @property
    def audit_sink(self) -> str:
        if self.audit.sink is None:
            return "console" if self.is_development else "provider"
        return self.audit.sink

    @property
    def allowed_origins(self) -> List[str]:
        if self.security.cors_origins:
            return self.security.cors_origins
        if self.is_development:
            return ["http://localhost:4200", "http://localhost:3000"]
        return [self.frontend_url]

    @property
    def password_reset_redirect(self) -> str:
        return f"{self.frontend_url.rstrip('/')}/auth/reset-password"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance with config file and env support."""
    config_data = load_config_file()

    # Config file provides defaults, env vars override
    if config_data:
        _set_env_from_config(config_data)

    return Settings()


def _set_env_from_config(config_data: Dict[str, Any]) -> None:
    """Set environment variables from config file if not already set."""
    mappings = {
        ("server", "environment"): "SIMPLE_TODO_ENVIRONMENT",
        ("server", "host"): "SIMPLE_TODO_HOST",
        ("server", "port"): "SIMPLE_TODO_PORT",
        ("server", "debug"): "SIMPLE_TODO_DEBUG",
        ("server", "log_level"): "SIMPLE_TODO_LOG_LEVEL",
        ("server", "json_logs"): "SIMPLE_TODO_JSON_LOGS",
        ("server", "frontend_url"): "SIMPLE_TODO_FRONTEND_URL",
        ("server", "api_prefix"): "SIMPLE_TODO_API_PREFIX",
        ("supabase", "url"): "SUPABASE_URL",
        ("supabase", "service_key"): "SUPABASE_SERVICE_KEY",
        ("supabase", "mock"): "SUPABASE_MOCK",
        ("supabase", "audit_table"): "SUPABASE_AUDIT_TABLE",
        ("security", "rate_limit_enabled"): "SIMPLE_TODO_SECURITY_RATE_LIMIT_ENABLED",
        ("security", "enforce_https"): "SIMPLE_TODO_SECURITY_ENFORCE_HTTPS",
        ("security", "trust_proxy"): "SIMPLE_TODO_SECURITY_TRUST_PROXY",
        ("security", "auth_window_seconds"): "SIMPLE_TODO_SECURITY_AUTH_WINDOW_SECONDS",
        ("security", "auth_max_requests"): "SIMPLE_TODO_SECURITY_AUTH_MAX_REQUESTS",
        ("security", "login_window_seconds"): "SIMPLE_TODO_SECURITY_LOGIN_WINDOW_SECONDS",
        ("security", "login_max_requests"): "SIMPLE_TODO_SECURITY_LOGIN_MAX_REQUESTS",
        ("audit", "sink"): "SIMPLE_TODO_AUDIT_SINK",
        ("audit", "file_path"): "SIMPLE_TODO_AUDIT_FILE_PATH",
    }

    for (section, key), env_var in mappings.items():
        if env_var not in os.environ:
            value = (config_data.get(section) or {}).get(key)
            if value is not None:
                if isinstance(value, bool):
                    value = str(value).lower()
                os.environ[env_var] = str(value)

    # Lists and dicts travel as JSON strings
    json_mappings = {
        ("security", "cors_origins"): "SIMPLE_TODO_SECURITY_CORS_ORIGINS",
        ("masking", "baseline_keys"): "SIMPLE_TODO_MASKING_BASELINE_KEYS",
        ("masking", "partial_rules"): "SIMPLE_TODO_MASKING_PARTIAL_RULES",
    }

    for (section, key), env_var in json_mappings.items():
        if env_var not in os.environ:
            value = (config_data.get(section) or {}).get(key)
            if value:
                os.environ[env_var] = json.dumps(value)


def reload_settings() -> Settings:
    """Reload settings (clears cache)."""
    get_settings.cache_clear()
    return get_settings()
