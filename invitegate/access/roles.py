"""
Role management for InviteGate.

Promotes and demotes admins. Demotion is guarded: a protected account can
never lose admin status, and the last admin can never be demoted. The
protected check is part of the conditional update itself. The last-admin
check runs in the user_accounts trigger, inside the write's transaction and
serialized against other demotions; the admin count read beforehand only
answers early.
"""

import logging
from typing import TYPE_CHECKING, List, Optional
from uuid import UUID

from postgrest.exceptions import APIError

from ..audit.models import AuditAction, AuditContext, ResourceType
from ..auth.models import UserAccount
from ..errors import ConflictError, NotFoundError
from ..utils.supabase import execute

if TYPE_CHECKING:
    from ..client import InviteGate

logger = logging.getLogger(__name__)

TABLE = "user_accounts"

# SQLSTATE raised by the user_accounts trigger when a demotion would leave no admin
LAST_ADMIN_VIOLATION = "IG001"


class RoleManager:
    """
    Manager for admin privilege changes.

    Example:
        ```python
        await gate.roles.promote(actor_id=admin.id, user_id=member.id)
        await gate.roles.demote(actor_id=admin.id, user_id=member.id)

        admins = await gate.roles.list_admins(actor_id=admin.id)
        ```
    """

    def __init__(self, gate: "InviteGate") -> None:
        """
        Initialize RoleManager.

        Args:
            gate: InviteGate client instance
        """
        self.gate = gate
        self.client = gate.client

    async def _get_target(self, user_id: UUID) -> UserAccount:
        target = await self.gate.accounts.get(user_id)
        if not target:
            raise NotFoundError(f"Account {user_id} not found")
        return target

    async def promote(
        self,
        actor_id: UUID,
        user_id: UUID,
        context: Optional[AuditContext] = None,
    ) -> UserAccount:
        """
        Grant admin status.

        Args:
            actor_id: Admin performing the change
            user_id: Account to promote
            context: Request context for the audit entry

        Returns:
            The target account after the change

        Raises:
            ForbiddenError: Actor is not an admin
            NotFoundError: Target does not exist
        """
        await self.gate.access.require_admin(
            actor_id, "role.promote", target_id=user_id, context=context
        )
        target = await self._get_target(user_id)

        if target.is_admin:
            return target

        result = await execute(
            self.client.table(TABLE)
            .update({"is_admin": True})
            .eq("id", str(user_id))
            .eq("is_admin", False)
        )

        if not result.data:
            # Someone else promoted it in the meantime
            return await self._get_target(user_id)

        updated = UserAccount(**result.data[0])
        await self._record_change(
            AuditAction.ROLE_PROMOTED, actor_id, updated, old=False, context=context
        )
        return updated

    async def demote(
        self,
        actor_id: UUID,
        user_id: UUID,
        context: Optional[AuditContext] = None,
    ) -> UserAccount:
        """
        Revoke admin status.

        A protected target is rejected before the caller's privilege is
        looked at, so the answer is ConflictError for every caller. Any other
        target, existing or not, gets ForbiddenError for a non-admin caller.

        Args:
            actor_id: Admin performing the change
            user_id: Account to demote
            context: Request context for the audit entry

        Returns:
            The target account after the change

        Raises:
            ConflictError: Target is protected, or is the last admin
            ForbiddenError: Actor is not an admin
            NotFoundError: Target does not exist
        """
        target = await self.gate.accounts.get(user_id)
        if target and target.is_protected:
            await self._reject(actor_id, target, "protected", context)

        await self.gate.access.require_admin(
            actor_id, "role.demote", target_id=user_id, context=context
        )

        # Re-read after the privilege check; this is the state we act on
        target = await self._get_target(user_id)
        if not target.is_admin:
            return target

        if await self.gate.accounts.count(admins_only=True) <= 1:
            await self._reject(actor_id, target, "last_admin", context)

        try:
            result = await execute(
                self.client.table(TABLE)
                .update({"is_admin": False})
                .eq("id", str(user_id))
                .eq("is_admin", True)
                .eq("is_protected", False)
            )
        except APIError as e:
            if getattr(e, "code", None) != LAST_ADMIN_VIOLATION:
                raise
            await self._reject(actor_id, target, "last_admin", context)

        if not result.data:
            await self._reject(actor_id, target, "concurrent_change", context)

        updated = UserAccount(**result.data[0])
        await self._record_change(
            AuditAction.ROLE_DEMOTED, actor_id, updated, old=True, context=context
        )
        return updated

    async def list_admins(self, actor_id: UUID) -> List[UserAccount]:
        """
        List all admin accounts.

        Raises:
            ForbiddenError: Actor is not an admin
        """
        await self.gate.access.require_admin(actor_id, "role.list_admins")
        return await self.gate.accounts.list(limit=500, admins_only=True)

    async def _record_change(
        self,
        action: AuditAction,
        actor_id: UUID,
        target: UserAccount,
        old: bool,
        context: Optional[AuditContext],
    ) -> None:
        logger.info(
            "%s: %s changed is_admin of %s from %s to %s",
            action.value,
            actor_id,
            target.id,
            old,
            target.is_admin,
        )
        await self.gate.audit.log(
            action,
            actor_id=actor_id,
            resource_type=ResourceType.ACCOUNT,
            resource_id=target.id,
            metadata={"field": "is_admin", "old": old, "new": target.is_admin},
            context=context,
        )

    async def _reject(
        self,
        actor_id: UUID,
        target: UserAccount,
        reason: str,
        context: Optional[AuditContext],
    ) -> None:
        logger.warning(
            "Rejected demotion of %s by %s: %s", target.id, actor_id, reason
        )
        await self.gate.audit.log(
            AuditAction.ROLE_CHANGE_REJECTED,
            actor_id=actor_id,
            resource_type=ResourceType.ACCOUNT,
            resource_id=target.id,
            metadata={"operation": "role.demote", "reason": reason},
            context=context,
        )
        if reason == "protected":
            raise ConflictError("Protected accounts cannot lose admin status")
        if reason == "last_admin":
            raise ConflictError("Cannot demote the last admin")
        raise ConflictError("Account changed concurrently, please retry")
