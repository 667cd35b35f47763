"""
Tests for invitegate.utils module.
"""

from datetime import timezone
from unittest.mock import AsyncMock, Mock, patch

import httpx
import pytest
from postgrest.exceptions import APIError

from invitegate.errors import TransientError
from invitegate.utils.clock import utcnow
from invitegate.utils.supabase import GateSupabaseClient, execute, is_unique_violation


class TestGateSupabaseClient:
    """Tests for GateSupabaseClient class."""

    async def test_create_client(self, gate_config):
        with patch(
            "invitegate.utils.supabase.acreate_client", new_callable=AsyncMock
        ) as mock_create:
            mock_client = Mock()
            mock_create.return_value = mock_client

            client = await GateSupabaseClient.create(gate_config)

            assert client.config == gate_config
            assert client._client is mock_client
            kwargs = mock_create.call_args.kwargs
            assert kwargs["supabase_url"] == gate_config.supabase_url
            assert kwargs["supabase_key"] == gate_config.supabase_key
            assert kwargs["options"].schema == "public"

    def test_table_and_auth_delegate(self, gate_config, mock_supabase_client):
        client = GateSupabaseClient(config=gate_config, client=mock_supabase_client)

        client.table("invite_codes")

        mock_supabase_client.table.assert_called_once_with("invite_codes")
        assert client.auth is mock_supabase_client.auth

    async def test_close_client(self, gate_config, mock_supabase_client):
        client = GateSupabaseClient(config=gate_config, client=mock_supabase_client)
        await client.close()


class TestExecute:
    """Tests for the execute() request helper."""

    async def test_returns_response(self):
        query = Mock()
        query.execute = AsyncMock(return_value=Mock(data=[{"id": 1}]))

        result = await execute(query)

        assert result.data == [{"id": 1}]

    async def test_transport_error_becomes_transient(self):
        query = Mock()
        query.execute = AsyncMock(side_effect=httpx.ReadTimeout("timed out"))

        with pytest.raises(TransientError):
            await execute(query)

    async def test_api_error_propagates(self):
        query = Mock()
        query.execute = AsyncMock(
            side_effect=APIError({"message": "dup", "code": "23505"})
        )

        with pytest.raises(APIError) as exc_info:
            await execute(query)
        assert is_unique_violation(exc_info.value)

    def test_other_codes_are_not_unique_violations(self):
        assert not is_unique_violation(APIError({"message": "check", "code": "23514"}))


def test_utcnow_is_aware():
    assert utcnow().tzinfo is timezone.utc
