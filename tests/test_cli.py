"""
Tests for the invitegate command-line interface.

Commands run their own event loop, so these tests are synchronous and set up
state with asyncio.run.
"""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest
from typer.testing import CliRunner

from invitegate.cli.main import app
from invitegate.client import InviteGate

from .conftest import create_account

runner = CliRunner()


@pytest.fixture
def cli_gate(gate):
    """Make every command use the in-memory gate."""
    with patch.object(InviteGate, "create", AsyncMock(return_value=gate)), patch(
        "invitegate.cli.common.configure_logging"
    ):
        yield gate


@pytest.fixture
def accounts(cli_gate):
    owner = asyncio.run(create_account(cli_gate, "owner@example.com"))
    member = asyncio.run(create_account(cli_gate, "member@example.com", issuer=owner))
    return owner, member


def invite_rows(db, email):
    return [r for r in db.rows("invite_codes") if r["intended_email"] == email]


class TestBootstrapCommand:
    def test_bootstrap(self, cli_gate, db):
        result = runner.invoke(app, ["bootstrap", "Owner@Example.com"])

        assert result.exit_code == 0
        row = invite_rows(db, "owner@example.com")[0]
        assert row["is_bootstrap"] is True
        assert row["code"] in result.stdout

    def test_bootstrap_twice_fails(self, cli_gate, accounts):
        result = runner.invoke(app, ["bootstrap", "second@example.com"])

        assert result.exit_code == 1
        assert "Error" in result.stdout


class TestCodesCommands:
    def test_issue_several(self, cli_gate, accounts, db):
        owner, _ = accounts

        result = runner.invoke(
            app,
            ["codes", "issue", "a@example.com", "b@example.com", "--as", str(owner.id), "-m", "3"],
        )

        assert result.exit_code == 0
        assert "shown only once" in result.stdout
        assert invite_rows(db, "a@example.com")[0]["max_uses"] == 3
        assert len(invite_rows(db, "b@example.com")) == 1

    def test_issue_as_member_fails(self, cli_gate, accounts, db):
        _, member = accounts

        result = runner.invoke(app, ["codes", "issue", "a@example.com", "--as", str(member.id)])

        assert result.exit_code == 1
        assert "Admin privileges required" in result.stdout
        assert invite_rows(db, "a@example.com") == []

    def test_issue_invalid_email(self, cli_gate, accounts):
        owner, _ = accounts

        result = runner.invoke(app, ["codes", "issue", "broken", "--as", str(owner.id)])

        assert result.exit_code == 1
        assert "email" in result.stdout

    def test_list_never_shows_codes(self, cli_gate, accounts, db):
        owner, _ = accounts
        invite = asyncio.run(cli_gate.codes.issue(owner.id, "a@example.com"))

        result = runner.invoke(app, ["codes", "list", "--as", str(owner.id)])

        assert result.exit_code == 0
        assert invite.code not in result.stdout

    def test_list_empty(self, cli_gate, accounts):
        owner, _ = accounts

        result = runner.invoke(
            app, ["codes", "list", "--as", str(owner.id), "--status", "revoked"]
        )

        assert result.exit_code == 0
        assert "No invite codes found" in result.stdout

    def test_revoke(self, cli_gate, accounts, db):
        owner, _ = accounts
        invite = asyncio.run(cli_gate.codes.issue(owner.id, "a@example.com"))

        result = runner.invoke(app, ["codes", "revoke", str(invite.id), "--as", str(owner.id)])

        assert result.exit_code == 0
        assert invite_rows(db, "a@example.com")[0]["is_active"] is False

    def test_stats(self, cli_gate, accounts):
        owner, _ = accounts

        result = runner.invoke(app, ["codes", "stats", "--as", str(owner.id)])

        assert result.exit_code == 0
        assert "used_up" in result.stdout


class TestRolesCommands:
    def test_promote_and_show(self, cli_gate, accounts):
        owner, member = accounts

        promoted = runner.invoke(app, ["roles", "promote", str(member.id), "--as", str(owner.id)])
        shown = runner.invoke(app, ["roles", "show", str(member.id)])

        assert promoted.exit_code == 0
        assert "member@example.com is an admin" in promoted.stdout
        assert "admin" in shown.stdout

    def test_demote_protected_fails(self, cli_gate, accounts):
        owner, _ = accounts

        result = runner.invoke(app, ["roles", "demote", str(owner.id), "--as", str(owner.id)])

        assert result.exit_code == 1
        assert "Error" in result.stdout

    def test_admins(self, cli_gate, accounts):
        owner, _ = accounts

        result = runner.invoke(app, ["roles", "admins", "--as", str(owner.id)])

        assert result.exit_code == 0
        assert "owner@example.com" in result.stdout


class TestMigrateCommands:
    def test_sql_all_needs_no_database(self):
        result = runner.invoke(app, ["migrate", "sql", "--all"])

        assert result.exit_code == 0
        assert "CREATE TABLE IF NOT EXISTS invite_codes" in result.stdout

    def test_status(self, cli_gate, db):
        db.tables["invitegate_migrations"].append({"version": "001"})

        result = runner.invoke(app, ["migrate", "status"])

        assert result.exit_code == 0
        assert "invite_gate_schema" in result.stdout
        assert "pending" not in result.stdout


class TestConfiguration:
    def test_missing_configuration(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("INVITEGATE_SUPABASE_URL", raising=False)
        monkeypatch.delenv("INVITEGATE_SUPABASE_KEY", raising=False)

        result = runner.invoke(app, ["roles", "admins", "--as", "00000000-0000-0000-0000-000000000000"])

        assert result.exit_code == 1
        assert "INVITEGATE_SUPABASE_URL" in result.stdout
