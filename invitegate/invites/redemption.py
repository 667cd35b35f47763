"""
Invite code redemption for InviteGate.

Redeeming a code and creating the account happen as one unit:

1. Read the code row and check it (active, unexpired, uses left, email)
2. Claim one use with a compare-and-swap update: the row is only written if
   ``current_uses`` still has the value read in step 1 and every check still
   holds, so concurrent callers cannot push it past ``max_uses``
3. Provision the account with the code's intended email
4. If provisioning fails, give the use back (compensating decrement)

Every failure the candidate can cause surfaces as the same InviteError. The
precise reason goes to the internal log and the audit trail only.
"""

import logging
from typing import TYPE_CHECKING, Optional

from postgrest.exceptions import APIError
from supabase_auth.errors import AuthError as SupabaseAuthError

from ..audit.models import AuditAction, AuditContext, ResourceType
from ..auth.models import SignupCredentials, UserAccount
from ..errors import ConflictError, InviteError, TransientError
from ..utils.supabase import execute
from .codes import canonicalize_code, normalize_email
from .models import InviteCode

if TYPE_CHECKING:
    from ..client import InviteGate

logger = logging.getLogger(__name__)

TABLE = "invite_codes"


class RedemptionService:
    """
    Validates and consumes invite codes during signup.

    Example:
        ```python
        account = await gate.signup.redeem_and_create_account(
            code="k7qh-2mxp-9tra-wc4e",
            email="Friend@Example.com",
            credentials=SignupCredentials(password="correct horse"),
        )
        assert account.email == "friend@example.com"
        ```
    """

    def __init__(self, gate: "InviteGate") -> None:
        """
        Initialize RedemptionService.

        Args:
            gate: Main InviteGate client instance
        """
        self.gate = gate
        self.client = gate.client

    async def _lookup(self, code: str, email: str) -> Optional[InviteCode]:
        """Find the code row; None if the input is malformed or unknown."""
        try:
            canonical = canonicalize_code(code)
        except ValueError:
            return None
        if not isinstance(email, str) or not email.strip():
            return None

        result = await execute(
            self.client.table(TABLE).select("*").eq("code", canonical)
        )
        if not result.data:
            return None
        return InviteCode(**result.data[0])

    async def check(self, code: str, email: str) -> bool:
        """
        Tell whether ``email`` could redeem ``code`` right now.

        Nothing is consumed. Meant for pre-flight checks on the signup form; a
        later redemption can still lose a race.
        """
        invite = await self._lookup(code, email)
        if not invite:
            return False
        return invite.rejection_reason(email, self.gate.clock()) is None

    async def redeem_and_create_account(
        self,
        code: str,
        email: str,
        credentials: SignupCredentials,
        context: Optional[AuditContext] = None,
    ) -> UserAccount:
        """
        Consume one use of an invite code and create the account.

        Args:
            code: Code as typed by the candidate (case and dashes ignored)
            email: Email as typed by the candidate; must match the code's
            credentials: Password and optional display name
            context: Request context for the audit entry

        Returns:
            The new UserAccount, whose email is the code's intended email

        Raises:
            InviteError: The code cannot be redeemed with this email, for any
                reason. The reason is never disclosed.
            TransientError: Storage failed; if the claim step was in flight
                its outcome is unknown and it is not retried
        """
        invite = await self._lookup(code, email)
        if not invite:
            await self._fail(None, "not_found", context)

        now = self.gate.clock()
        reason = invite.rejection_reason(email, now)
        if reason:
            await self._fail(invite, reason, context)

        claimed = await self._claim(invite, normalize_email(email), now)
        if not claimed:
            await self._fail(invite, "lost_race", context)

        try:
            account = await self.gate.accounts.provision(claimed, credentials)
        except (APIError, SupabaseAuthError, ConflictError, TransientError) as e:
            logger.warning("Provisioning for invite %s failed: %s", invite.id, e)
            await self._release(claimed)
            if isinstance(e, TransientError):
                raise
            await self._fail(invite, "provisioning_failed", context)

        if claimed.current_uses == 1:
            await self._mark_first_use(claimed, account)

        logger.info("Invite %s redeemed by account %s", invite.id, account.id)
        await self.gate.audit.log(
            AuditAction.INVITE_REDEEMED,
            actor_id=account.id,
            resource_type=ResourceType.INVITE_CODE,
            resource_id=invite.id,
            metadata={"uses": claimed.current_uses, "max_uses": claimed.max_uses},
            context=context,
        )
        await self.gate.audit.log(
            AuditAction.ACCOUNT_CREATED,
            actor_id=account.id,
            resource_type=ResourceType.ACCOUNT,
            resource_id=account.id,
            metadata={"invite_code_id": str(invite.id), "is_admin": account.is_admin},
            context=context,
        )
        return account

    async def _claim(
        self,
        invite: InviteCode,
        email: str,
        now,
    ) -> Optional[InviteCode]:
        """
        Atomically take one use of ``invite``.

        Returns the updated row, or None when another caller changed the row
        first or it stopped being redeemable.
        """
        observed = invite.current_uses
        result = await execute(
            self.client.table(TABLE)
            .update({"current_uses": observed + 1})
            .eq("id", str(invite.id))
            .eq("current_uses", observed)
            .gt("max_uses", observed)
            .eq("is_active", True)
            .eq("intended_email", email)
            .gt("expires_at", now.isoformat())
        )
        if not result.data:
            return None
        return InviteCode(**result.data[0])

    async def _release(self, claimed: InviteCode) -> None:
        """
        Give back one use after failed provisioning.

        Other redemptions may move the counter in between, so re-read and
        compare-and-swap until one decrement lands.
        """
        expected = claimed.current_uses
        for _ in range(self.gate.config.release_attempts):
            try:
                result = await execute(
                    self.client.table(TABLE)
                    .update({"current_uses": expected - 1})
                    .eq("id", str(claimed.id))
                    .eq("current_uses", expected)
                )
                if result.data:
                    logger.info("Released one use of invite %s", claimed.id)
                    await self.gate.audit.log(
                        AuditAction.INVITE_RELEASED,
                        resource_type=ResourceType.INVITE_CODE,
                        resource_id=claimed.id,
                    )
                    return

                current = await execute(
                    self.client.table(TABLE)
                    .select("current_uses")
                    .eq("id", str(claimed.id))
                )
            except (APIError, TransientError):
                logger.exception("Releasing invite %s failed", claimed.id)
                return

            if not current.data or current.data[0]["current_uses"] <= 0:
                return
            expected = current.data[0]["current_uses"]

        logger.error(
            "Gave up releasing invite %s after %d attempts",
            claimed.id,
            self.gate.config.release_attempts,
        )

    async def _mark_first_use(self, claimed: InviteCode, account: UserAccount) -> None:
        """Record the first redeemer; informational only."""
        try:
            await execute(
                self.client.table(TABLE)
                .update({
                    "used_by": str(account.id),
                    "used_at": self.gate.clock().isoformat(),
                })
                .eq("id", str(claimed.id))
                .is_("used_by", "null")
            )
        except (APIError, TransientError):
            logger.exception("Could not record first use of invite %s", claimed.id)

    async def _fail(
        self,
        invite: Optional[InviteCode],
        reason: str,
        context: Optional[AuditContext],
    ) -> None:
        """Log the real reason internally, then raise the generic error."""
        logger.info(
            "Invite redemption rejected (%s) for invite %s",
            reason,
            invite.id if invite else None,
        )
        await self.gate.audit.log(
            AuditAction.INVITE_REDEEM_FAILED,
            resource_type=ResourceType.INVITE_CODE if invite else None,
            resource_id=invite.id if invite else None,
            metadata={"reason": reason},
            context=context,
        )
        raise InviteError()
