"""
Basic InviteGate usage example.

This example walks through the lifecycle of an invite-only project:
- Bootstrapping the first (protected) admin
- Issuing and redeeming invite codes
- Promoting and demoting admins

Apply the schema first:
    invitegate migrate sql | psql "$DATABASE_URL"

Run with:
    python examples/basic_usage.py
"""

import asyncio

from invitegate import ConflictError, InviteError, InviteGate, SignupCredentials


async def main():
    # Create InviteGate client (loads config from .env)
    gate = await InviteGate.create()

    try:
        # =================================================================
        # 1. Bootstrap the first admin
        # =================================================================
        print("Bootstrapping...")

        bootstrap = await gate.codes.issue_bootstrap("owner@example.com")
        owner = await gate.signup.redeem_and_create_account(
            bootstrap.code,
            "owner@example.com",
            SignupCredentials(password="owner-password-123", display_name="Owner"),
        )
        print(f"  Owner: {owner.email} (admin={owner.is_admin}, protected={owner.is_protected})")

        # =================================================================
        # 2. Issue invite codes
        # =================================================================
        print("\nIssuing invite codes...")

        invite = await gate.codes.issue(owner.id, "friend@example.com")
        print(f"  Code for {invite.intended_email}: {invite.code}")

        # =================================================================
        # 3. Redeem
        # =================================================================
        print("\nRedeeming...")

        # Codes are case- and separator-insensitive
        friend = await gate.signup.redeem_and_create_account(
            invite.code.lower(),
            "Friend@Example.com",
            SignupCredentials(password="friend-password-123"),
        )
        print(f"  Created account: {friend.email}")

        try:
            await gate.signup.redeem_and_create_account(
                invite.code,
                "friend@example.com",
                SignupCredentials(password="friend-password-123"),
            )
        except InviteError as e:
            print(f"  Second redemption refused: {e}")

        # =================================================================
        # 4. Roles
        # =================================================================
        print("\nManaging roles...")

        await gate.roles.promote(owner.id, friend.id)
        role = await gate.access.resolve(friend.id)
        print(f"  {friend.email} is admin: {role.is_admin}")

        try:
            await gate.roles.demote(friend.id, owner.id)
        except ConflictError as e:
            print(f"  Demoting the owner refused: {e}")

        await gate.roles.demote(owner.id, friend.id)
        print(f"  {friend.email} demoted")

        # =================================================================
        # 5. Stats and audit trail
        # =================================================================
        print("\nStats...")

        stats = await gate.codes.stats(owner.id)
        print(f"  Codes: {stats.total} total, {stats.active} active, {stats.used_up} used up")

        entries = await gate.audit.list_by_actor(owner.id)
        for entry in entries:
            print(f"  {entry.created_at:%H:%M:%S} {entry.action}")

        print("\nDone!")

    finally:
        await gate.close()


if __name__ == "__main__":
    asyncio.run(main())
