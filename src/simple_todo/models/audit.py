"""
Audit log data models.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class AuditAction(str, Enum):
    """Security-relevant actions recorded in the audit log."""

    USER_REGISTER = "USER_REGISTER"
    USER_LOGIN = "USER_LOGIN"
    USER_LOGOUT = "USER_LOGOUT"
    PASSWORD_RECOVERY_INITIATED = "PASSWORD_RECOVERY_INITIATED"
    PASSWORD_RESET_COMPLETED = "PASSWORD_RESET_COMPLETED"
    PASSWORD_RESET_FAILED = "PASSWORD_RESET_FAILED"


class AuditLogEntry(BaseModel):
    """
    A single audit record.

    Field names match the columns of the provider's audit table.
    """

    action: AuditAction
    user_id: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(use_enum_values=True)

    def to_row(self) -> Dict[str, Any]:
        """Row for insertion into the provider table."""
        row = self.model_dump(mode="json")
        row["updated_at"] = row["created_at"]
        return row
