"""
Pytest configuration and fixtures for InviteGate tests.

Provides an in-memory Supabase stand-in, a settable clock and helpers that
create accounts the way production does (by redeeming invite codes).
"""

from typing import Optional
from unittest.mock import AsyncMock, Mock
from uuid import uuid4

import pytest

from invitegate.auth.models import SignupCredentials, UserAccount
from invitegate.client import InviteGate
from invitegate.config import InviteGateConfig
from invitegate.utils.supabase import GateSupabaseClient

from .fakes import FakeClock, FakeDatabase, FakeSupabase

PASSWORD = "correct horse battery"


@pytest.fixture
def gate_config():
    """Create a test InviteGateConfig."""
    return InviteGateConfig(
        supabase_url="https://test.supabase.co",
        supabase_key="test-service-key-12345678901234567890",
        db_schema="public",
        debug=True,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_supabase(clock):
    """In-memory Supabase client (tables + auth)."""
    return FakeSupabase(FakeDatabase(clock=clock))


@pytest.fixture
def db(fake_supabase):
    return fake_supabase.db


@pytest.fixture
def gate(gate_config, fake_supabase, clock):
    """InviteGate wired to the in-memory Supabase stand-in."""
    client = GateSupabaseClient(config=gate_config, client=fake_supabase)
    return InviteGate(config=gate_config, client=client, clock=clock)


@pytest.fixture
def mock_supabase_client():
    """
    Mock Supabase client for tests that only care about the calls made.

    Every query builder method returns the builder itself; execute returns
    an empty result unless configured.
    """
    client = AsyncMock()
    client.auth = AsyncMock()
    client.auth.admin = AsyncMock()

    query_builders = {}

    def table_mock(table_name: str):
        if table_name not in query_builders:
            query_builder = Mock()
            for method in (
                "select", "insert", "update", "delete", "eq", "neq", "is_",
                "gt", "gte", "lt", "lte", "order", "limit", "offset",
            ):
                setattr(query_builder, method, Mock(return_value=query_builder))
            query_builder.execute = AsyncMock(return_value=Mock(data=[], count=0))
            query_builders[table_name] = query_builder
        return query_builders[table_name]

    client.table = Mock(side_effect=table_mock)
    client._query_builders = query_builders
    return client


@pytest.fixture
def mock_gate(gate_config, mock_supabase_client, clock):
    """InviteGate over a Mock Supabase client."""
    client = GateSupabaseClient(config=gate_config, client=mock_supabase_client)
    return InviteGate(config=gate_config, client=client, clock=clock)


async def create_account(
    gate: InviteGate,
    email: str,
    issuer: Optional[UserAccount] = None,
    display_name: Optional[str] = None,
) -> UserAccount:
    """
    Create an account through the real signup path.

    Without an issuer the database must be empty: the account becomes the
    protected bootstrap admin.
    """
    if issuer is None:
        invite = await gate.codes.issue_bootstrap(email)
    else:
        invite = await gate.codes.issue(issuer.id, email)
    return await gate.signup.redeem_and_create_account(
        invite.code,
        email,
        SignupCredentials(password=PASSWORD, display_name=display_name),
    )


@pytest.fixture
async def owner(gate):
    """Protected bootstrap admin."""
    return await create_account(gate, "owner@example.com", display_name="Owner")


@pytest.fixture
async def member(gate, owner):
    """Regular (non-admin) account invited by the owner."""
    return await create_account(gate, "member@example.com", issuer=owner)


@pytest.fixture
def random_id():
    return uuid4()
