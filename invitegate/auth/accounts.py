"""
Account provisioning for InviteGate.

Creates the user_accounts row and the matching Supabase auth user for a
redeemed invite code, and reads accounts back.

Wraps: supabase_auth._async.gotrue_admin_api.AsyncGoTrueAdminAPI
"""

import logging
from typing import TYPE_CHECKING, List, Optional
from uuid import UUID

import httpx
from supabase_auth.errors import AuthError as SupabaseAuthError
from supabase_auth.types import AdminUserAttributes

from ..errors import ConflictError, TransientError
from ..invites.codes import normalize_email
from ..utils.supabase import execute
from .models import SignupCredentials, UserAccount

if TYPE_CHECKING:
    from ..client import InviteGate
    from ..invites.models import InviteCode

logger = logging.getLogger(__name__)

TABLE = "user_accounts"

# GoTrue error codes for an address that already has an auth user
EMAIL_TAKEN_CODES = ("email_exists", "user_already_exists")
AUTH_USERS_PAGE_SIZE = 100


class AccountProvisioner:
    """
    Manages user account creation and lookup.

    The provisioning flow:
    1. Refuse a bootstrap code once any account exists
    2. Create the Supabase auth user with the code's intended email,
       replacing a leftover auth user that no account links to
    3. Insert the user_accounts row linked by auth_user_id
    4. If step 3 fails, delete the auth user again and re-raise

    Provisioning is only ever invoked by the redemption service after an
    invite code has been consumed.
    """

    def __init__(self, gate: "InviteGate") -> None:
        """
        Initialize AccountProvisioner.

        Args:
            gate: Main InviteGate client instance
        """
        self.gate = gate
        self.client = gate.client

    async def provision(
        self,
        invite: "InviteCode",
        credentials: SignupCredentials,
    ) -> UserAccount:
        """
        Create the account for a consumed invite code.

        Wraps: supabase_auth._async.gotrue_admin_api.AsyncGoTrueAdminAPI.create_user

        An earlier attempt may have created the auth user and then lost the
        response. When the identity provider reports the email as taken but
        no account is linked to that user, the leftover user is removed and
        created again with the current credentials.

        Args:
            invite: The invite code whose use was just claimed
            credentials: Password and optional display name from the signup form

        Returns:
            The new UserAccount (admin and protected only for the bootstrap code)

        Raises:
            APIError: The account row was rejected (e.g. email already registered)
            ConflictError: A bootstrap code was redeemed after accounts exist
            supabase_auth.errors.AuthError: The identity provider refused the user
            TransientError: Storage or the identity provider failed in transit
        """
        if invite.is_bootstrap and await self.count() > 0:
            raise ConflictError("Bootstrap codes only work on an empty database")

        auth_attributes: AdminUserAttributes = {
            "email": invite.intended_email,
            "password": credentials.password.get_secret_value(),
            # Possession of a code bound to this address stands in for
            # email verification
            "email_confirm": True,
        }
        if credentials.display_name:
            auth_attributes["user_metadata"] = {
                "display_name": credentials.display_name,
            }

        try:
            auth_user = await self._create_auth_user(auth_attributes)
        except SupabaseAuthError as e:
            if getattr(e, "code", None) not in EMAIL_TAKEN_CODES:
                raise
            if not await self._reclaim_orphaned_auth_user(invite.intended_email):
                raise
            auth_user = await self._create_auth_user(auth_attributes)

        account_data = {
            "email": invite.intended_email,
            "display_name": credentials.display_name,
            "is_admin": invite.is_bootstrap,
            "is_protected": invite.is_bootstrap,
            "auth_user_id": str(auth_user.id),
        }

        try:
            result = await execute(self.client.table(TABLE).insert(account_data))
        except Exception:
            await self._discard_auth_user(auth_user.id)
            raise

        account = UserAccount(**result.data[0])
        logger.info(
            "Provisioned account %s (admin=%s, protected=%s)",
            account.id,
            account.is_admin,
            account.is_protected,
        )
        return account

    async def _create_auth_user(self, attributes: AdminUserAttributes):
        try:
            response = await self.client.auth.admin.create_user(attributes)
        except httpx.HTTPError as e:
            raise TransientError() from e
        return response.user

    async def _find_auth_user(self, email: str):
        """Page through the identity provider's users looking for ``email``."""
        page = 1
        while True:
            try:
                users = await self.client.auth.admin.list_users(
                    page=page, per_page=AUTH_USERS_PAGE_SIZE
                )
            except httpx.HTTPError as e:
                raise TransientError() from e
            for user in users:
                if normalize_email(user.email or "") == email:
                    return user
            if len(users) < AUTH_USERS_PAGE_SIZE:
                return None
            page += 1

    async def _reclaim_orphaned_auth_user(self, email: str) -> bool:
        """
        Remove the auth user for ``email`` if no account references it.

        Returns:
            True if a leftover auth user was removed
        """
        if await self.get_by_email(email):
            return False
        auth_user = await self._find_auth_user(email)
        if auth_user is None or await self.get_by_auth_user_id(auth_user.id):
            return False

        logger.warning(
            "Removing auth user %s left behind by an interrupted signup", auth_user.id
        )
        try:
            await self.client.auth.admin.delete_user(str(auth_user.id))
        except httpx.HTTPError as e:
            raise TransientError() from e
        return True

    async def _discard_auth_user(self, auth_user_id: str) -> None:
        """Remove an auth user whose account row could not be written."""
        try:
            await self.client.auth.admin.delete_user(str(auth_user_id))
        except (SupabaseAuthError, httpx.HTTPError):
            logger.exception(
                "Could not remove orphaned auth user %s", auth_user_id
            )

    async def get(self, user_id: UUID) -> Optional[UserAccount]:
        """
        Get an account by its id.

        Args:
            user_id: Account UUID

        Returns:
            UserAccount instance or None if not found
        """
        result = await execute(
            self.client.table(TABLE).select("*").eq("id", str(user_id))
        )

        if not result.data:
            return None

        return UserAccount(**result.data[0])

    async def get_by_email(self, email: str) -> Optional[UserAccount]:
        """Get an account by (normalized) email."""
        result = await execute(
            self.client.table(TABLE).select("*").eq("email", normalize_email(email))
        )

        if not result.data:
            return None

        return UserAccount(**result.data[0])

    async def get_by_auth_user_id(self, auth_user_id: UUID) -> Optional[UserAccount]:
        """Get the account linked to an identity-provider user."""
        result = await execute(
            self.client.table(TABLE).select("*").eq("auth_user_id", str(auth_user_id))
        )

        if not result.data:
            return None

        return UserAccount(**result.data[0])

    async def list(
        self,
        limit: int = 50,
        offset: int = 0,
        admins_only: bool = False,
    ) -> List[UserAccount]:
        """
        List accounts, newest first.

        Args:
            limit: Maximum number of accounts to return
            offset: Number of accounts to skip
            admins_only: Only return accounts with is_admin set

        Returns:
            List of UserAccount instances
        """
        query = self.client.table(TABLE).select("*")

        if admins_only:
            query = query.eq("is_admin", True)

        result = await execute(
            query.order("created_at", desc=True).limit(limit).offset(offset)
        )

        return [UserAccount(**row) for row in result.data]

    async def count(self, admins_only: bool = False) -> int:
        """
        Count accounts.

        Args:
            admins_only: Only count accounts with is_admin set

        Returns:
            Number of matching accounts
        """
        query = self.client.table(TABLE).select("id", count="exact")

        if admins_only:
            query = query.eq("is_admin", True)

        result = await execute(query)
        return result.count or 0
