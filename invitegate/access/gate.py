"""
Authorization gate for InviteGate.

The single place where a caller's privilege is decided. Every admin-only
operation asks the gate immediately before acting, and the gate reads the
caller's user_accounts row each time; nothing is cached, so a promotion or
demotion takes effect on the very next call.
"""

import logging
from typing import TYPE_CHECKING, Optional
from uuid import UUID

from ..audit.models import AuditAction, AuditContext, ResourceType
from ..auth.models import RoleStatus
from ..errors import AuthError, ForbiddenError
from ..utils.supabase import execute

if TYPE_CHECKING:
    from ..client import InviteGate

logger = logging.getLogger(__name__)


class AccessGate:
    """
    Resolves and enforces admin privilege.

    Example:
        ```python
        role = await gate.access.current_user_role(access_token)
        if role.is_admin:
            ...

        # Inside an admin-only operation
        await gate.access.require_admin(actor_id, "invite.issue")
        ```
    """

    def __init__(self, gate: "InviteGate") -> None:
        """
        Initialize AccessGate.

        Args:
            gate: Main InviteGate client instance
        """
        self.gate = gate
        self.client = gate.client

    async def resolve(self, user_id: UUID) -> RoleStatus:
        """
        Read the current privilege of an account.

        Args:
            user_id: Account UUID

        Returns:
            RoleStatus read from user_accounts

        Raises:
            AuthError: No such account
        """
        result = await execute(
            self.client.table("user_accounts")
            .select("id, is_admin, is_protected")
            .eq("id", str(user_id))
        )

        if not result.data:
            raise AuthError()

        row = result.data[0]
        return RoleStatus(
            user_id=row["id"],
            is_admin=bool(row["is_admin"]),
            is_protected=bool(row["is_protected"]),
        )

    async def require_admin(
        self,
        actor_id: UUID,
        action: str,
        target_id: Optional[UUID] = None,
        target_type: ResourceType = ResourceType.ACCOUNT,
        context: Optional[AuditContext] = None,
    ) -> RoleStatus:
        """
        Ensure ``actor_id`` is an admin right now.

        Args:
            actor_id: Account attempting the operation
            action: Name of the guarded operation, for the log
            target_id: Resource the operation targets, for the log
            target_type: Kind of resource ``target_id`` refers to
            context: Request context for the audit entry

        Returns:
            The actor's RoleStatus

        Raises:
            ForbiddenError: Actor is unknown or not an admin
        """
        try:
            status = await self.resolve(actor_id)
        except AuthError:
            status = None

        if status and status.is_admin:
            return status

        logger.warning(
            "Denied %s to %s (target=%s)", action, actor_id, target_id
        )
        await self.gate.audit.log(
            AuditAction.ACCESS_DENIED,
            actor_id=actor_id,
            resource_type=target_type if target_id else None,
            resource_id=target_id,
            metadata={"operation": action, "known_actor": status is not None},
            context=context,
        )
        raise ForbiddenError()

    async def current_user_role(self, token: str) -> RoleStatus:
        """
        Verify a token and resolve the caller's current role.

        Args:
            token: Access token from the identity provider

        Returns:
            RoleStatus of the caller

        Raises:
            AuthError: Token invalid or no matching account
        """
        identity = await self.gate.sessions.verify(token)
        return await self.resolve(identity.user_id)
