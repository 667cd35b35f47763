"""
Tests for invitegate.invites.redemption module.
"""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock

import httpx
import pytest
from postgrest.exceptions import APIError
from supabase_auth.errors import AuthError as SupabaseAuthError

from invitegate.auth.models import SignupCredentials
from invitegate.errors import InviteError, TransientError
from invitegate.invites.models import InviteCode, InviteStatus

from .conftest import PASSWORD


def credentials(display_name=None):
    return SignupCredentials(password=PASSWORD, display_name=display_name)


def stored(db, invite):
    return next(r for r in db.rows("invite_codes") if r["id"] == str(invite.id))


def actions(db, action):
    return [r for r in db.rows("audit_log") if r["action"] == action]


class TestRedeem:
    """Tests for RedemptionService.redeem_and_create_account."""

    async def test_invite_and_redeem(self, gate, owner, db, clock):
        invite = await gate.codes.issue(owner.id, "friend@example.com")

        account = await gate.signup.redeem_and_create_account(
            invite.code.lower().replace("-", " "),
            "Friend@Example.com",
            credentials("Friend"),
        )

        assert account.email == "friend@example.com"
        assert account.display_name == "Friend"
        assert account.is_admin is False
        assert account.is_protected is False

        row = stored(db, invite)
        assert row["current_uses"] == 1
        assert row["used_by"] == str(account.id)
        assert InviteCode(**row).status(clock()) is InviteStatus.USED_UP

        with pytest.raises(InviteError):
            await gate.signup.redeem_and_create_account(
                invite.code, "friend@example.com", credentials()
            )

    async def test_auth_user_created_for_intended_email(self, gate, owner, fake_supabase):
        invite = await gate.codes.issue(owner.id, "friend@example.com")

        account = await gate.signup.redeem_and_create_account(
            invite.code, "FRIEND@example.com", credentials("Friend")
        )

        auth_user = fake_supabase.auth.admin.users[str(account.auth_user_id)]
        assert auth_user["email"] == "friend@example.com"
        assert auth_user["email_confirmed"] is True
        assert auth_user["password"] == PASSWORD
        assert auth_user["user_metadata"] == {"display_name": "Friend"}

    async def test_wrong_email_rejected(self, gate, owner, db):
        invite = await gate.codes.issue(owner.id, "friend@example.com")

        with pytest.raises(InviteError):
            await gate.signup.redeem_and_create_account(
                invite.code, "stranger@example.com", credentials()
            )

        assert stored(db, invite)["current_uses"] == 0
        assert all(r["email"] != "stranger@example.com" for r in db.rows("user_accounts"))
        failed = actions(db, "invite.redeem_failed")
        assert failed[-1]["metadata"] == {"reason": "email_mismatch"}

    async def test_expired_rejected(self, gate, owner, clock):
        invite = await gate.codes.issue(owner.id, "friend@example.com", ttl=timedelta(hours=1))
        clock.advance(timedelta(hours=1))

        with pytest.raises(InviteError):
            await gate.signup.redeem_and_create_account(
                invite.code, "friend@example.com", credentials()
            )

    async def test_revoked_rejected(self, gate, owner):
        invite = await gate.codes.issue(owner.id, "friend@example.com")
        await gate.codes.revoke(owner.id, invite.id)

        with pytest.raises(InviteError):
            await gate.signup.redeem_and_create_account(
                invite.code, "friend@example.com", credentials()
            )

    @pytest.mark.parametrize("code", ["", "nonsense", "ABCD-EFGH-JKMN-PQRS", None])
    async def test_unknown_or_malformed_code(self, gate, owner, code):
        with pytest.raises(InviteError):
            await gate.signup.redeem_and_create_account(code, "friend@example.com", credentials())

    async def test_code_survives_code_length_change(self, gate, owner):
        invite = await gate.codes.issue(owner.id, "friend@example.com")
        gate.config.code_length = 20

        account = await gate.signup.redeem_and_create_account(
            invite.code.lower(), "friend@example.com", credentials()
        )

        assert account.email == "friend@example.com"
        assert len((await gate.codes.issue(owner.id, "next@example.com")).code) == 24

    async def test_failures_are_indistinguishable(self, gate, owner, clock):
        expired = await gate.codes.issue(owner.id, "a@example.com", ttl=timedelta(minutes=5))
        revoked = await gate.codes.issue(owner.id, "b@example.com")
        await gate.codes.revoke(owner.id, revoked.id)
        wrong = await gate.codes.issue(owner.id, "c@example.com")
        clock.advance(timedelta(minutes=10))

        messages = set()
        for code, email in [
            (expired.code, "a@example.com"),
            (revoked.code, "b@example.com"),
            (wrong.code, "someone@example.com"),
            ("ZZZZ-ZZZZ-ZZZZ-ZZZZ", "d@example.com"),
        ]:
            with pytest.raises(InviteError) as exc_info:
                await gate.signup.redeem_and_create_account(code, email, credentials())
            messages.add(str(exc_info.value))

        assert messages == {"Invalid or expired invite code"}

    async def test_multi_use_code(self, gate, owner, db, fake_supabase):
        invite = await gate.codes.issue(owner.id, "team@example.com", max_uses=2)

        first = await gate.signup.redeem_and_create_account(
            invite.code, "team@example.com", credentials()
        )

        # Email is unique, so the second use cannot create another account
        with pytest.raises(InviteError):
            await gate.signup.redeem_and_create_account(
                invite.code, "team@example.com", credentials()
            )

        row = stored(db, invite)
        assert row["current_uses"] == 1
        assert row["used_by"] == str(first.id)

    async def test_bootstrap_code_creates_protected_admin(self, gate, db):
        invite = await gate.codes.issue_bootstrap("owner@example.com")

        account = await gate.signup.redeem_and_create_account(
            invite.code, "owner@example.com", credentials()
        )

        assert account.is_admin is True
        assert account.is_protected is True

    async def test_bootstrap_code_refused_once_accounts_exist(self, gate, owner, db, fake_supabase, clock):
        # A bootstrap code left over from before the first account existed
        for row in db.tables["invite_codes"]:
            row["is_active"] = False
        stray = db.insert("invite_codes", {
            "code": "ABCD-EFGH-JKMN-PQRS",
            "intended_email": "intruder@example.com",
            "expires_at": (clock.now + timedelta(days=1)).isoformat(),
            "is_bootstrap": True,
        })[0]

        with pytest.raises(InviteError):
            await gate.signup.redeem_and_create_account(
                stray["code"], "intruder@example.com", credentials()
            )

        assert [r["email"] for r in db.rows("user_accounts")] == ["owner@example.com"]
        assert all(u["email"] != "intruder@example.com" for u in fake_supabase.auth.admin.users.values())
        assert next(r for r in db.rows("invite_codes") if r["id"] == stray["id"])["current_uses"] == 0

    async def test_storage_refuses_second_protected_account(self, gate, owner, db, fake_supabase, clock):
        for row in db.tables["invite_codes"]:
            row["is_active"] = False
        stray = db.insert("invite_codes", {
            "code": "ABCD-EFGH-JKMN-PQRS",
            "intended_email": "intruder@example.com",
            "expires_at": (clock.now + timedelta(days=1)).isoformat(),
            "is_bootstrap": True,
        })[0]
        # Make the early check think the database is still empty
        gate.accounts.count = AsyncMock(return_value=0)

        with pytest.raises(InviteError):
            await gate.signup.redeem_and_create_account(
                stray["code"], "intruder@example.com", credentials()
            )

        protected = [r["email"] for r in db.rows("user_accounts") if r["is_protected"]]
        assert protected == ["owner@example.com"]
        assert all(u["email"] != "intruder@example.com" for u in fake_supabase.auth.admin.users.values())
        assert actions(db, "invite.redeem_failed")[-1]["metadata"] == {"reason": "provisioning_failed"}

    async def test_success_is_audited(self, gate, owner, db):
        invite = await gate.codes.issue(owner.id, "friend@example.com")

        account = await gate.signup.redeem_and_create_account(
            invite.code, "friend@example.com", credentials()
        )

        redeemed = [r for r in actions(db, "invite.redeemed") if r["resource_id"] == str(invite.id)]
        assert redeemed[0]["actor_id"] == str(account.id)
        created = actions(db, "account.created")
        assert created[-1]["resource_id"] == str(account.id)


class TestConcurrency:
    @pytest.mark.parametrize("attempts", [2, 10, 25])
    async def test_single_use_code_yields_one_account(self, gate, owner, db, attempts):
        invite = await gate.codes.issue(owner.id, "friend@example.com")

        results = await asyncio.gather(
            *[
                gate.signup.redeem_and_create_account(
                    invite.code, "friend@example.com", credentials()
                )
                for _ in range(attempts)
            ],
            return_exceptions=True,
        )

        successes = [r for r in results if not isinstance(r, Exception)]
        failures = [r for r in results if isinstance(r, Exception)]
        assert len(successes) == 1
        assert all(isinstance(f, InviteError) for f in failures)
        assert stored(db, invite)["current_uses"] == 1
        assert [r["email"] for r in db.rows("user_accounts")].count("friend@example.com") == 1

    async def test_counter_never_exceeds_max_uses(self, gate, owner, db):
        invites = [
            await gate.codes.issue(owner.id, f"user{i}@example.com", max_uses=1)
            for i in range(5)
        ]

        await asyncio.gather(
            *[
                gate.signup.redeem_and_create_account(
                    invite.code, invite.intended_email, credentials()
                )
                for invite in invites
                for _ in range(4)
            ],
            return_exceptions=True,
        )

        for invite in invites:
            row = stored(db, invite)
            assert 0 <= row["current_uses"] <= row["max_uses"]
        assert len(db.rows("user_accounts")) == 1 + len(invites)


class TestCompensation:
    async def test_identity_provider_refusal_releases_code(self, gate, owner, db, fake_supabase):
        invite = await gate.codes.issue(owner.id, "friend@example.com")
        fake_supabase.auth.admin.fail_with = SupabaseAuthError("signups disabled", "signup_disabled")

        with pytest.raises(InviteError):
            await gate.signup.redeem_and_create_account(
                invite.code, "friend@example.com", credentials()
            )

        assert stored(db, invite)["current_uses"] == 0
        assert len(actions(db, "invite.released")) == 1

        account = await gate.signup.redeem_and_create_account(
            invite.code, "friend@example.com", credentials()
        )
        assert account.email == "friend@example.com"

    async def test_account_insert_failure_cleans_up(self, gate, owner, db, fake_supabase):
        invite = await gate.codes.issue(owner.id, "friend@example.com")
        auth_users_before = dict(fake_supabase.auth.admin.users)
        db.fail_next("user_accounts", "insert", APIError({"message": "boom", "code": "XX000"}))

        with pytest.raises(InviteError):
            await gate.signup.redeem_and_create_account(
                invite.code, "friend@example.com", credentials()
            )

        assert stored(db, invite)["current_uses"] == 0
        assert fake_supabase.auth.admin.users == auth_users_before

    async def test_transient_provisioning_failure_releases_and_propagates(
        self, gate, owner, db, fake_supabase
    ):
        invite = await gate.codes.issue(owner.id, "friend@example.com")
        fake_supabase.auth.admin.fail_with = httpx.ConnectError("unreachable")

        with pytest.raises(TransientError):
            await gate.signup.redeem_and_create_account(
                invite.code, "friend@example.com", credentials()
            )

        assert stored(db, invite)["current_uses"] == 0

    async def test_lost_create_user_response_can_be_retried(self, gate, owner, db, fake_supabase):
        invite = await gate.codes.issue(owner.id, "friend@example.com")
        admin = fake_supabase.auth.admin
        admin.fail_with = httpx.ReadTimeout("timed out")
        admin.fail_applied = True

        with pytest.raises(TransientError):
            await gate.signup.redeem_and_create_account(
                invite.code, "friend@example.com", credentials()
            )

        # The auth user exists but no account links to it
        assert stored(db, invite)["current_uses"] == 0
        assert [u["email"] for u in admin.users.values()].count("friend@example.com") == 1

        account = await gate.signup.redeem_and_create_account(
            invite.code, "friend@example.com", credentials()
        )

        friend_users = [u for u in admin.users.values() if u["email"] == "friend@example.com"]
        assert len(friend_users) == 1
        assert str(account.auth_user_id) == friend_users[0]["id"]
        assert stored(db, invite)["current_uses"] == 1

    async def test_auth_user_of_existing_account_is_kept(self, gate, owner, db, fake_supabase):
        invite = await gate.codes.issue(owner.id, "team@example.com", max_uses=2)
        first = await gate.signup.redeem_and_create_account(
            invite.code, "team@example.com", credentials()
        )

        with pytest.raises(InviteError):
            await gate.signup.redeem_and_create_account(
                invite.code, "team@example.com", credentials()
            )

        assert str(first.auth_user_id) in fake_supabase.auth.admin.users
        token = fake_supabase.auth.issue_token("team@example.com")
        assert (await gate.access.current_user_role(token)).user_id == first.id

    async def test_ambiguous_claim_is_not_retried(self, gate, owner, db):
        invite = await gate.codes.issue(owner.id, "friend@example.com")
        db.fail_next("invite_codes", "update", httpx.ReadTimeout("timed out"), applied=True)

        with pytest.raises(TransientError):
            await gate.signup.redeem_and_create_account(
                invite.code, "friend@example.com", credentials()
            )

        # The claim landed but nothing else ran
        assert stored(db, invite)["current_uses"] == 1
        assert all(r["email"] != "friend@example.com" for r in db.rows("user_accounts"))

    async def test_release_follows_concurrent_changes(self, gate, owner, db):
        invite = await gate.codes.issue(owner.id, "team@example.com", max_uses=3)
        claimed = invite.model_copy(update={"current_uses": 1})
        db.tables["invite_codes"][-1]["current_uses"] = 2

        await gate.signup._release(claimed)

        assert stored(db, invite)["current_uses"] == 1

    async def test_release_gives_up_after_configured_attempts(self, gate, owner, db):
        invite = await gate.codes.issue(owner.id, "team@example.com", max_uses=3)
        claimed = invite.model_copy(update={"current_uses": 1})
        db.tables["invite_codes"][-1]["current_uses"] = 2
        gate.config.release_attempts = 1

        await gate.signup._release(claimed)

        assert stored(db, invite)["current_uses"] == 2
        assert actions(db, "invite.released") == []

    async def test_release_stops_on_storage_error(self, gate, owner, db):
        invite = await gate.codes.issue(owner.id, "team@example.com", max_uses=3)
        db.tables["invite_codes"][-1]["current_uses"] = 1
        claimed = invite.model_copy(update={"current_uses": 1})
        db.fail_next("invite_codes", "update", APIError({"message": "x", "code": "40001"}))

        await gate.signup._release(claimed)

        assert stored(db, invite)["current_uses"] == 1


class TestCheck:
    async def test_check_does_not_consume(self, gate, owner, db):
        invite = await gate.codes.issue(owner.id, "friend@example.com")

        assert await gate.signup.check(invite.code, "FRIEND@example.com") is True
        assert await gate.signup.check(invite.code, "other@example.com") is False
        assert await gate.signup.check("garbage", "friend@example.com") is False
        assert stored(db, invite)["current_uses"] == 0
