"""
Identity verification for InviteGate.

Resolves a bearer token to the calling account. Token issuance and refresh
belong to the identity provider and are not handled here.

Wraps: supabase_auth._async.gotrue_client.AsyncGoTrueClient.get_user
"""

import logging
from typing import TYPE_CHECKING

import httpx
from supabase_auth.errors import AuthError as SupabaseAuthError

from ..errors import AuthError, TransientError
from .models import Identity

if TYPE_CHECKING:
    from ..client import InviteGate

logger = logging.getLogger(__name__)


class SessionManager:
    """Verifies access tokens against Supabase Auth."""

    def __init__(self, gate: "InviteGate") -> None:
        """
        Initialize SessionManager.

        Args:
            gate: Main InviteGate client instance
        """
        self.gate = gate
        self.client = gate.client

    async def verify(self, token: str) -> Identity:
        """
        Verify an access token and map it to an account.

        Args:
            token: JWT access token (with or without a "Bearer " prefix)

        Returns:
            Identity with the account id and its authoritative email

        Raises:
            AuthError: Token is invalid, expired, or has no account
            TransientError: The identity provider could not be reached

        Example:
            ```python
            identity = await gate.sessions.verify(access_token)
            print(identity.user_id, identity.email)
            ```
        """
        if not token:
            raise AuthError()
        if token.startswith("Bearer "):
            token = token[7:]

        try:
            response = await self.client.auth.get_user(token)
        except SupabaseAuthError as e:
            logger.info("Token rejected by identity provider: %s", e)
            raise AuthError() from e
        except httpx.HTTPError as e:
            raise TransientError() from e

        if not response or not response.user:
            raise AuthError()

        account = await self.gate.accounts.get_by_auth_user_id(response.user.id)
        if not account:
            logger.info("Verified auth user %s has no account", response.user.id)
            raise AuthError()

        return Identity(user_id=account.id, email=account.email)
