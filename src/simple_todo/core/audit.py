"""
Audit logging for security-relevant actions.

Entries go to one sink: the console (structlog), a JSON-lines file, or the
provider's audit table. Audit logging is best-effort: a failed write is
logged and counted, never raised into the request that triggered it.
"""

import json
from pathlib import Path
from typing import Any, Dict, Optional

import aiofiles
import structlog

from ..config import Settings
from ..models.audit import AuditAction, AuditLogEntry
from .metrics import MetricsCollector
from .provider import AuthProvider

logger = structlog.get_logger(__name__)
audit_logger = structlog.get_logger("audit")


class AuditService:
    """Creates and stores audit log entries."""

    def __init__(
        self,
        settings: Settings,
        provider: Optional[AuthProvider] = None,
        metrics: Optional[MetricsCollector] = None,
    ) -> None:
        self.settings = settings
        self.provider = provider
        self.metrics = metrics
        self.sink = settings.audit_sink
        self.file_path: Path = settings.audit.file_path
        self.table = settings.supabase.audit_table

        logger.info("Audit service initialized", sink=self.sink)

    async def create_audit_log(
        self,
        action: AuditAction,
        user_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        """Record one audit entry; failures are swallowed."""
        try:
            entry = AuditLogEntry(
                action=action,
                user_id=user_id,
                details=details or {},
                ip_address=ip_address,
                user_agent=user_agent,
            )

            if self.sink == "file":
                await self._write_file(entry)
            elif self.sink == "provider":
                await self._write_provider(entry)
            else:
                self._write_console(entry)

            if self.metrics:
                self.metrics.record_audit_event(entry.action, self.sink)

        except Exception as e:
            logger.error(
                "Audit logging error",
                action=getattr(action, "value", action),
                sink=self.sink,
                error=str(e),
                error_type=type(e).__name__,
            )
            if self.metrics:
                self.metrics.record_audit_failure(self.sink)

    def _write_console(self, entry: AuditLogEntry) -> None:
        audit_logger.info("AUDIT LOG", **entry.model_dump(mode="json"))

    async def _write_file(self, entry: AuditLogEntry) -> None:
        self.file_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(self.file_path, "a", encoding="utf-8") as f:
            await f.write(json.dumps(entry.model_dump(mode="json")) + "\n")

    async def _write_provider(self, entry: AuditLogEntry) -> None:
        if self.provider is None:
            raise RuntimeError("No provider configured for the audit table sink")
        await self.provider.insert(self.table, [entry.to_row()])

    async def log_user_registration(
        self,
        user_id: str,
        email: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        await self.create_audit_log(
            AuditAction.USER_REGISTER,
            user_id,
            {"email": email, "success": True},
            ip_address,
            user_agent,
        )

    async def log_user_login(
        self,
        user_id: str,
        email: str,
        success: bool,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        await self.create_audit_log(
            AuditAction.USER_LOGIN,
            user_id,
            {"email": email, "success": success},
            ip_address,
            user_agent,
        )

    async def log_user_logout(
        self,
        user_id: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        await self.create_audit_log(
            AuditAction.USER_LOGOUT,
            user_id,
            {"success": True},
            ip_address,
            user_agent,
        )

    async def log_password_recovery_initiated(
        self,
        email: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        # No user id is known before the reset link is used
        await self.create_audit_log(
            AuditAction.PASSWORD_RECOVERY_INITIATED,
            None,
            {"email": email},
            ip_address,
            user_agent,
        )

    async def log_password_reset(
        self,
        user_id: Optional[str],
        email: Optional[str],
        success: bool,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        action = AuditAction.PASSWORD_RESET_COMPLETED if success else AuditAction.PASSWORD_RESET_FAILED
        await self.create_audit_log(
            action,
            user_id,
            {"email": email, "success": success},
            ip_address,
            user_agent,
        )
