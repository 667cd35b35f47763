"""
Audit logging for InviteGate.

Records issue, redemption, revocation, role changes and denied access in the
audit_log table.
"""

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional
from uuid import UUID

import httpx
from postgrest.exceptions import APIError

from ..utils.supabase import execute
from .models import AuditAction, AuditContext, AuditLogEntry, ResourceType

if TYPE_CHECKING:
    from ..client import InviteGate

logger = logging.getLogger(__name__)

TABLE = "audit_log"


class AuditLogger:
    """
    Manages audit logging operations.

    Writing an entry never fails the operation being audited: a storage
    error is reported through Python logging and ``log`` returns None.

    Example:
        ```python
        await gate.audit.log(
            action=AuditAction.ROLE_DEMOTED,
            actor_id=admin.id,
            resource_type=ResourceType.ACCOUNT,
            resource_id=target.id,
            metadata={"field": "is_admin", "old": True, "new": False},
        )

        entries = await gate.audit.list_by_resource(ResourceType.ACCOUNT, target.id)
        ```
    """

    def __init__(self, gate: "InviteGate") -> None:
        """
        Initialize AuditLogger.

        Args:
            gate: Main InviteGate client instance
        """
        self.gate = gate
        self.client = gate.client
        self._enabled = gate.config.enable_audit_log

    def disable(self) -> None:
        """Disable audit logging (useful for bulk operations)."""
        self._enabled = False

    def enable(self) -> None:
        """Enable audit logging."""
        self._enabled = True

    @property
    def is_enabled(self) -> bool:
        """Check if audit logging is enabled."""
        return self._enabled

    async def log(
        self,
        action: AuditAction | str,
        actor_id: Optional[UUID] = None,
        resource_type: Optional[ResourceType | str] = None,
        resource_id: Optional[UUID] = None,
        metadata: Optional[Dict[str, Any]] = None,
        context: Optional[AuditContext] = None,
    ) -> Optional[AuditLogEntry]:
        """
        Log an audit event.

        Args:
            action: The action being performed
            actor_id: Account performing the action (None for anonymous signup)
            resource_type: Type of resource being acted on
            resource_id: ID of the resource being acted on
            metadata: Additional details about the action
            context: Request context (ip, user agent, etc.)

        Returns:
            AuditLogEntry, or None when disabled or the write failed
        """
        if not self._enabled:
            return None

        ip_address = None
        user_agent = None
        if context:
            ip_address = context.ip_address
            user_agent = context.user_agent
            if context.extra:
                metadata = {**(metadata or {}), **context.extra}

        entry_data = {
            "action": action.value if isinstance(action, AuditAction) else action,
            "actor_id": str(actor_id) if actor_id else None,
            "resource_type": (
                resource_type.value
                if isinstance(resource_type, ResourceType)
                else resource_type
            ),
            "resource_id": str(resource_id) if resource_id else None,
            "metadata": metadata or {},
            "ip_address": ip_address,
            "user_agent": user_agent,
            "created_at": self.gate.clock().isoformat(),
        }

        try:
            result = await self.client.table(TABLE).insert(entry_data).execute()
        except (APIError, httpx.HTTPError):
            logger.exception("Failed to write audit entry %s", entry_data["action"])
            return None

        return AuditLogEntry(**result.data[0])

    async def list_by_resource(
        self,
        resource_type: ResourceType | str,
        resource_id: UUID,
        action: Optional[AuditAction | str] = None,
        since: Optional[datetime] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[AuditLogEntry]:
        """
        List audit entries for a specific resource, newest first.

        Args:
            resource_type: Type of resource
            resource_id: Resource UUID
            action: Filter by action type
            since: Only entries after this time
            limit: Maximum entries to return
            offset: Entries to skip

        Returns:
            List of AuditLogEntry instances
        """
        type_value = (
            resource_type.value
            if isinstance(resource_type, ResourceType)
            else resource_type
        )

        query = self.client.table(TABLE).select("*").eq(
            "resource_type", type_value
        ).eq("resource_id", str(resource_id))

        if action:
            action_value = action.value if isinstance(action, AuditAction) else action
            query = query.eq("action", action_value)

        if since:
            query = query.gte("created_at", since.isoformat())

        result = await execute(
            query.order("created_at", desc=True).limit(limit).offset(offset)
        )

        return [AuditLogEntry(**entry) for entry in result.data]

    async def list_by_actor(
        self,
        actor_id: UUID,
        action: Optional[AuditAction | str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[AuditLogEntry]:
        """
        List audit entries for actions an account performed, newest first.

        Args:
            actor_id: Account UUID
            action: Filter by action type
            limit: Maximum entries to return
            offset: Entries to skip

        Returns:
            List of AuditLogEntry instances
        """
        query = self.client.table(TABLE).select("*").eq("actor_id", str(actor_id))

        if action:
            action_value = action.value if isinstance(action, AuditAction) else action
            query = query.eq("action", action_value)

        result = await execute(
            query.order("created_at", desc=True).limit(limit).offset(offset)
        )

        return [AuditLogEntry(**entry) for entry in result.data]
