"""
Main InviteGate client.

This is the primary interface users interact with.
"""

from typing import Optional

from .access import AccessGate, RoleManager
from .audit import AuditLogger
from .auth import AccountProvisioner, SessionManager
from .config import InviteGateConfig, load_config
from .invites import InviteCodeManager, RedemptionService
from .utils.clock import Clock, utcnow
from .utils.supabase import GateSupabaseClient


class InviteGate:
    """
    Main InviteGate client for invite-gated signup and admin roles.

    Example:
        ```python
        from invitegate import InviteGate

        # Initialize from environment variables
        gate = await InviteGate.create()

        # Or with explicit config
        gate = await InviteGate.create(
            supabase_url="https://xxx.supabase.co",
            supabase_key="your-service-key"
        )

        invite = await gate.codes.issue(actor_id=admin.id, email="friend@example.com")
        account = await gate.signup.redeem_and_create_account(
            invite.code, "friend@example.com", SignupCredentials(password="...")
        )
        ```
    """

    def __init__(
        self,
        config: InviteGateConfig,
        client: GateSupabaseClient,
        clock: Clock = utcnow,
    ) -> None:
        """
        Initialize InviteGate client.

        Args:
            config: InviteGate configuration
            client: Supabase client wrapper
            clock: Returns the current UTC time; replaceable in tests

        Note:
            Use InviteGate.create() instead of direct instantiation.
        """
        self.config = config
        self.client = client
        self.clock = clock

        self.audit = AuditLogger(self)

        # Accounts and identity
        self.accounts = AccountProvisioner(self)
        self.sessions = SessionManager(self)

        # Privilege
        self.access = AccessGate(self)
        self.roles = RoleManager(self)

        # Invite codes
        self.codes = InviteCodeManager(self)
        self.signup = RedemptionService(self)

    @classmethod
    async def create(
        cls,
        supabase_url: Optional[str] = None,
        supabase_key: Optional[str] = None,
        **kwargs,
    ) -> "InviteGate":
        """
        Create and initialize an InviteGate client.

        Args:
            supabase_url: Supabase project URL (optional, loads from env)
            supabase_key: Supabase service role key (optional, loads from env)
            **kwargs: Additional configuration options

        Returns:
            Initialized InviteGate client

        Raises:
            ValidationError: If required configuration is missing or invalid

        Example:
            ```python
            # Load from environment (.env file or INVITEGATE_* env vars)
            gate = await InviteGate.create()

            # Explicit configuration
            gate = await InviteGate.create(
                supabase_url="https://xxx.supabase.co",
                supabase_key="your-service-key",
                default_code_ttl_days=14,
            )
            ```
        """
        config_kwargs = kwargs.copy()
        if supabase_url:
            config_kwargs["supabase_url"] = supabase_url
        if supabase_key:
            config_kwargs["supabase_key"] = supabase_key

        config = load_config(**config_kwargs)
        client = await GateSupabaseClient.create(config)

        return cls(config=config, client=client)

    async def close(self) -> None:
        """
        Close the InviteGate client and cleanup resources.

        Example:
            ```python
            gate = await InviteGate.create()
            try:
                ...
            finally:
                await gate.close()
            ```
        """
        await self.client.close()

    async def __aenter__(self) -> "InviteGate":
        """Context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        await self.close()
