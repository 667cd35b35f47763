"""
InviteGate audit log models.

Pydantic models for the audit trail of invite and privilege changes.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class AuditAction(str, Enum):
    """Audited actions."""

    # Invite code actions
    INVITE_ISSUED = "invite.issued"
    INVITE_REDEEMED = "invite.redeemed"
    INVITE_REDEEM_FAILED = "invite.redeem_failed"
    INVITE_RELEASED = "invite.released"
    INVITE_REVOKED = "invite.revoked"

    # Account actions
    ACCOUNT_CREATED = "account.created"

    # Role actions
    ROLE_PROMOTED = "role.promoted"
    ROLE_DEMOTED = "role.demoted"
    ROLE_CHANGE_REJECTED = "role.change_rejected"

    # Authorization gate
    ACCESS_DENIED = "access.denied"


class ResourceType(str, Enum):
    """Resource types that can be audited."""

    INVITE_CODE = "invite_code"
    ACCOUNT = "account"


class AuditLogEntry(BaseModel):
    """
    Audit log entry model - represents a single audit event.

    Stored in the audit_log table.
    """

    id: UUID
    actor_id: Optional[UUID] = None

    # What happened
    action: str
    resource_type: Optional[str] = None
    resource_id: Optional[UUID] = None

    # Details (old/new values, failure reasons)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    # Timestamp
    created_at: datetime

    model_config = {
        "from_attributes": True,
        "json_schema_extra": {
            "example": {
                "id": "123e4567-e89b-12d3-a456-426614174000",
                "actor_id": "789e0123-e89b-12d3-a456-426614174000",
                "action": "role.demoted",
                "resource_type": "account",
                "resource_id": "012e3456-e89b-12d3-a456-426614174000",
                "metadata": {"field": "is_admin", "old": True, "new": False},
                "created_at": "2024-01-01T00:00:00Z",
            }
        },
    }


class AuditContext(BaseModel):
    """
    Context for audit logging - captures request context.

    Passed down from the HTTP layer to include request metadata.
    """

    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    request_id: Optional[str] = None
    extra: Dict[str, Any] = Field(default_factory=dict)
