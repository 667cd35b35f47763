"""
Supabase client wrapper for InviteGate.

Provides a thin wrapper around the Supabase AsyncClient configured with the
service role key, plus the request helper every manager uses to run a
PostgREST query.

Source references:
- supabase._async.client.AsyncClient: supabase/_async/client.py
- postgrest.exceptions.APIError: postgrest/exceptions.py
"""

import logging
from typing import Any

import httpx
from postgrest.exceptions import APIError
from supabase import AsyncClient, acreate_client
from supabase.lib.client_options import AsyncClientOptions
from supabase_auth import AsyncMemoryStorage

from ..config import InviteGateConfig
from ..errors import TransientError

logger = logging.getLogger(__name__)

# Postgres SQLSTATE for unique_violation
UNIQUE_VIOLATION = "23505"


class GateSupabaseClient:
    """
    Wrapper around Supabase AsyncClient with InviteGate-specific configuration.

    This class provides:
    1. Configured client with service role key (bypasses RLS, server-side only)
    2. Access to the auth admin API (identity provider)
    3. Access to the invite_codes, user_accounts and audit_log tables

    Example:
        ```python
        config = InviteGateConfig()
        client = await GateSupabaseClient.create(config)

        result = await client.table("invite_codes").select("*").execute()
        ```
    """

    def __init__(self, config: InviteGateConfig, client: AsyncClient) -> None:
        """
        Initialize the client wrapper.

        Args:
            config: InviteGate configuration
            client: Initialized Supabase AsyncClient

        Note:
            Use GateSupabaseClient.create() instead of direct instantiation.
        """
        self.config = config
        self._client = client

    @classmethod
    async def create(cls, config: InviteGateConfig) -> "GateSupabaseClient":
        """
        Create and initialize a GateSupabaseClient.

        Args:
            config: InviteGate configuration with Supabase credentials

        Returns:
            Initialized GateSupabaseClient
        """
        options = AsyncClientOptions(
            schema=config.db_schema,
            storage=AsyncMemoryStorage(),
            auto_refresh_token=False,
            persist_session=False,
        )

        client = await acreate_client(
            supabase_url=config.supabase_url,
            supabase_key=config.supabase_key,
            options=options,
        )

        return cls(config=config, client=client)

    @property
    def auth(self):
        """
        Access Supabase Auth client.

        Provides access to:
        - auth.admin: Admin API (create_user, delete_user)
        - auth.get_user: Token verification
        """
        return self._client.auth

    def table(self, table_name: str):
        """
        Create a query builder for a specific table.

        Args:
            table_name: Name of the table (e.g., "invite_codes")

        Returns:
            AsyncRequestBuilder for chaining queries
        """
        return self._client.table(table_name)

    async def close(self) -> None:
        """Close the client and cleanup resources."""
        # supabase-py keeps no open connections between requests
        pass


async def execute(query: Any) -> Any:
    """
    Run a PostgREST query, translating transport failures.

    Database errors (``APIError``) propagate unchanged so callers can inspect
    the SQLSTATE. Network and timeout errors become ``TransientError``; whether
    the request was applied is unknown, so callers must not retry blindly.

    Args:
        query: A PostgREST request builder

    Returns:
        The APIResponse (``.data`` and ``.count``)

    Raises:
        APIError: The database rejected the request
        TransientError: The request failed in transit
    """
    try:
        return await query.execute()
    except httpx.HTTPError as e:
        logger.warning("Supabase request failed in transit: %s", e)
        raise TransientError() from e


def is_unique_violation(error: APIError) -> bool:
    """Check whether a PostgREST error is a unique constraint violation."""
    return getattr(error, "code", None) == UNIQUE_VIOLATION
