"""
Invite code management for InviteGate.

Issues, revokes, lists and summarizes invite codes. Every operation here is
admin-only and asks the authorization gate before acting, except
issue_bootstrap, which only works on an empty database.
"""

import logging
from datetime import timedelta
from typing import TYPE_CHECKING, Dict, List, Optional
from uuid import UUID

from postgrest.exceptions import APIError
from pydantic import ValidationError as PydanticValidationError

from ..audit.models import AuditAction, AuditContext, ResourceType
from ..errors import ConflictError, NotFoundError, ValidationError
from ..utils.supabase import execute, is_unique_violation
from .codes import generate_code, normalize_email
from .models import (
    CodeFilter,
    InviteCode,
    InviteCodeStats,
    IssueCodeRequest,
)

if TYPE_CHECKING:
    from ..client import InviteGate

logger = logging.getLogger(__name__)

TABLE = "invite_codes"

# Partial unique index allowing one active bootstrap code
BOOTSTRAP_INDEX = "idx_invite_codes_single_bootstrap"


class InviteCodeManager:
    """
    Manages invite code operations.

    The issue flow:
    1. Ask the authorization gate whether the caller is an admin
    2. Validate email, max_uses and ttl
    3. Generate a code and insert it; on a unique violation try a fresh code
    4. Record the issue in the audit log and hand the code back once

    Example:
        ```python
        invite = await gate.codes.issue(
            actor_id=admin.id,
            email="friend@example.com",
            max_uses=1,
            ttl=timedelta(days=14),
        )
        print(f"Send this code: {invite.code}")
        ```
    """

    def __init__(self, gate: "InviteGate") -> None:
        """
        Initialize InviteCodeManager.

        Args:
            gate: Main InviteGate client instance
        """
        self.gate = gate
        self.client = gate.client

    def _build_request(
        self,
        email: str,
        max_uses: int,
        ttl: Optional[timedelta],
        notes: Optional[str],
    ) -> IssueCodeRequest:
        if ttl is None:
            ttl = timedelta(days=self.gate.config.default_code_ttl_days)
        try:
            return IssueCodeRequest(
                email=email.strip() if isinstance(email, str) else email,
                max_uses=max_uses,
                ttl=ttl,
                notes=notes,
            )
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic(e) from e

    async def _insert(
        self,
        request: IssueCodeRequest,
        created_by: Optional[UUID],
        is_bootstrap: bool = False,
    ) -> InviteCode:
        """Insert a fresh code, retrying with a new one on collision."""
        attempts = self.gate.config.code_generation_attempts

        for attempt in range(1, attempts + 1):
            now = self.gate.clock()
            row = {
                "code": generate_code(self.gate.config.code_length),
                "intended_email": normalize_email(str(request.email)),
                "created_by": str(created_by) if created_by else None,
                "created_at": now.isoformat(),
                "expires_at": (now + request.ttl).isoformat(),
                "max_uses": request.max_uses,
                "current_uses": 0,
                "is_active": True,
                "is_bootstrap": is_bootstrap,
                "notes": request.notes,
            }
            try:
                result = await execute(self.client.table(TABLE).insert(row))
            except APIError as e:
                if not is_unique_violation(e):
                    raise
                if is_bootstrap and BOOTSTRAP_INDEX in (e.message or ""):
                    raise ConflictError("A bootstrap code is already outstanding") from e
                logger.info("Invite code collision, attempt %d/%d", attempt, attempts)
                continue
            return InviteCode(**result.data[0])

        raise ConflictError("Could not generate a unique invite code")

    async def issue(
        self,
        actor_id: UUID,
        email: str,
        max_uses: int = 1,
        ttl: Optional[timedelta] = None,
        notes: Optional[str] = None,
        context: Optional[AuditContext] = None,
    ) -> InviteCode:
        """
        Issue an invite code bound to one email address.

        Args:
            actor_id: Admin issuing the code
            email: Recipient; only this address can redeem the code
            max_uses: Number of redemptions allowed (>= 1)
            ttl: Lifetime (> 0), defaults to config.default_code_ttl_days
            notes: Free-text note for admins
            context: Request context for the audit entry

        Returns:
            The new InviteCode; ``.code`` holds the plaintext to hand out

        Raises:
            ForbiddenError: Actor is not an admin
            ValidationError: Malformed email, max_uses or ttl
        """
        await self.gate.access.require_admin(actor_id, "invite.issue", context=context)
        request = self._build_request(email, max_uses, ttl, notes)

        invite = await self._insert(request, created_by=actor_id)

        logger.info("Issued invite %s for %s", invite.id, invite.intended_email)
        await self.gate.audit.log(
            AuditAction.INVITE_ISSUED,
            actor_id=actor_id,
            resource_type=ResourceType.INVITE_CODE,
            resource_id=invite.id,
            metadata={
                "intended_email": invite.intended_email,
                "max_uses": invite.max_uses,
                "expires_at": invite.expires_at.isoformat(),
            },
            context=context,
        )
        return invite

    async def issue_batch(
        self,
        actor_id: UUID,
        emails: List[str],
        max_uses: int = 1,
        ttl: Optional[timedelta] = None,
        notes: Optional[str] = None,
    ) -> List[InviteCode]:
        """
        Issue one code per email address.

        All addresses are validated before any code is created.

        Raises:
            ForbiddenError: Actor is not an admin
            ValidationError: Any address is malformed
        """
        await self.gate.access.require_admin(actor_id, "invite.issue_batch")
        for email in emails:
            self._build_request(email, max_uses, ttl, notes)

        return [
            await self.issue(actor_id, email, max_uses=max_uses, ttl=ttl, notes=notes)
            for email in emails
        ]

    async def issue_bootstrap(
        self,
        email: str,
        ttl: Optional[timedelta] = None,
    ) -> InviteCode:
        """
        Issue the code that creates the first, protected admin.

        Only allowed while no account exists, and only one bootstrap code can
        be outstanding. An expired, unredeemed one is retired first. Redeeming
        the code provisions an account with is_admin and is_protected set.

        Args:
            email: Address of the future protected admin
            ttl: Lifetime, defaults to config.default_code_ttl_days

        Returns:
            The bootstrap InviteCode

        Raises:
            ConflictError: Accounts already exist, or a bootstrap code is
                still outstanding
            ValidationError: Malformed email or ttl
        """
        request = self._build_request(email, 1, ttl, "bootstrap")

        if await self.gate.accounts.count() > 0:
            raise ConflictError("Bootstrap is only possible on an empty database")

        await self._retire_expired_bootstrap()

        invite = await self._insert(request, created_by=None, is_bootstrap=True)
        logger.info("Issued bootstrap invite %s for %s", invite.id, invite.intended_email)
        await self.gate.audit.log(
            AuditAction.INVITE_ISSUED,
            resource_type=ResourceType.INVITE_CODE,
            resource_id=invite.id,
            metadata={"intended_email": invite.intended_email, "bootstrap": True},
        )
        return invite

    async def _retire_expired_bootstrap(self) -> None:
        result = await execute(
            self.client.table(TABLE)
            .select("*")
            .eq("is_bootstrap", True)
            .eq("is_active", True)
        )
        now = self.gate.clock()
        for row in result.data:
            outstanding = InviteCode(**row)
            if outstanding.expires_at > now:
                raise ConflictError("A bootstrap code is already outstanding")
            await execute(
                self.client.table(TABLE)
                .update({"is_active": False})
                .eq("id", str(outstanding.id))
            )
            logger.info("Retired expired bootstrap invite %s", outstanding.id)

    async def get(self, actor_id: UUID, code_id: UUID) -> InviteCode:
        """
        Get an invite code by ID.

        Raises:
            ForbiddenError: Actor is not an admin
            NotFoundError: No such code
        """
        await self.gate.access.require_admin(
            actor_id, "invite.get", target_id=code_id,
            target_type=ResourceType.INVITE_CODE,
        )
        invite = await self._fetch(code_id)
        if not invite:
            raise NotFoundError(f"Invite code {code_id} not found")
        return invite

    async def _fetch(self, code_id: UUID) -> Optional[InviteCode]:
        result = await execute(
            self.client.table(TABLE).select("*").eq("id", str(code_id))
        )
        if not result.data:
            return None
        return InviteCode(**result.data[0])

    async def revoke(
        self,
        actor_id: UUID,
        code_id: UUID,
        context: Optional[AuditContext] = None,
    ) -> None:
        """
        Revoke an invite code. Takes effect for the very next redemption.

        Revoking an already revoked code is a no-op.

        Raises:
            ForbiddenError: Actor is not an admin
            NotFoundError: No such code
        """
        await self.gate.access.require_admin(
            actor_id, "invite.revoke", target_id=code_id,
            target_type=ResourceType.INVITE_CODE, context=context,
        )

        result = await execute(
            self.client.table(TABLE)
            .update({"is_active": False})
            .eq("id", str(code_id))
            .eq("is_active", True)
        )

        if not result.data:
            if not await self._fetch(code_id):
                raise NotFoundError(f"Invite code {code_id} not found")
            return

        logger.info("Revoked invite %s", code_id)
        await self.gate.audit.log(
            AuditAction.INVITE_REVOKED,
            actor_id=actor_id,
            resource_type=ResourceType.INVITE_CODE,
            resource_id=code_id,
            context=context,
        )

    async def list(
        self,
        actor_id: UUID,
        filter: Optional[CodeFilter] = None,
    ) -> List[InviteCode]:
        """
        List invite codes, newest first.

        Status is derived, so a status filter is applied after fetching and
        paging counts matching codes only.

        Args:
            actor_id: Admin asking
            filter: Status, issuer, recipient and paging options

        Returns:
            List of InviteCode instances

        Raises:
            ForbiddenError: Actor is not an admin
        """
        await self.gate.access.require_admin(actor_id, "invite.list")
        filter = filter or CodeFilter()

        query = self.client.table(TABLE).select("*")
        if filter.created_by:
            query = query.eq("created_by", str(filter.created_by))
        if filter.intended_email:
            query = query.eq("intended_email", filter.intended_email)

        if filter.status is None:
            result = await execute(
                query.order("created_at", desc=True)
                .limit(filter.limit)
                .offset(filter.offset)
            )
            return [InviteCode(**row) for row in result.data]

        result = await execute(query.order("created_at", desc=True))
        now = self.gate.clock()
        matching = [
            invite
            for invite in (InviteCode(**row) for row in result.data)
            if invite.status(now) is filter.status
        ]
        return matching[filter.offset:filter.offset + filter.limit]

    async def stats(self, actor_id: UUID) -> InviteCodeStats:
        """
        Count invite codes by derived status.

        Raises:
            ForbiddenError: Actor is not an admin
        """
        await self.gate.access.require_admin(actor_id, "invite.stats")

        result = await execute(self.client.table(TABLE).select("*"))
        now = self.gate.clock()
        counts: Dict[str, int] = {"total": len(result.data)}
        for row in result.data:
            status = InviteCode(**row).status(now)
            counts[status.value] = counts.get(status.value, 0) + 1
        return InviteCodeStats(**counts)
