"""
InviteGate - invite-gated signup and admin roles on Supabase.

Accounts can only be created by redeeming an invite code that an admin
issued for one specific email address. Admins can promote and demote other
accounts; protected accounts and the last admin can never be demoted.

Example:
    ```python
    from invitegate import InviteGate, SignupCredentials

    gate = await InviteGate.create()

    # Very first account, on an empty database
    bootstrap = await gate.codes.issue_bootstrap("owner@example.com")
    owner = await gate.signup.redeem_and_create_account(
        bootstrap.code, "owner@example.com", SignupCredentials(password="...")
    )

    # Invite a friend
    invite = await gate.codes.issue(actor_id=owner.id, email="friend@example.com")
    friend = await gate.signup.redeem_and_create_account(
        invite.code, "friend@example.com", SignupCredentials(password="...")
    )

    # Roles
    await gate.roles.promote(actor_id=owner.id, user_id=friend.id)
    role = await gate.access.current_user_role(access_token)
    ```
"""

from .access import AccessGate, RoleManager
from .audit import AuditAction, AuditContext, AuditLogEntry, AuditLogger, ResourceType
from .auth import Identity, RoleStatus, SignupCredentials, UserAccount
from .client import InviteGate
from .config import InviteGateConfig, load_config
from .errors import (
    AuthError,
    ConflictError,
    ForbiddenError,
    InviteError,
    InviteGateError,
    NotFoundError,
    TransientError,
    ValidationError,
)
from .invites import (
    CodeFilter,
    InviteCode,
    InviteCodeManager,
    InviteCodeStats,
    InviteStatus,
    RedemptionService,
)

__version__ = "0.1.0"

__all__ = [
    # Main client
    "InviteGate",
    "InviteGateConfig",
    "load_config",
    # Invite codes
    "InviteCodeManager",
    "RedemptionService",
    "InviteCode",
    "InviteStatus",
    "InviteCodeStats",
    "CodeFilter",
    # Accounts and roles
    "UserAccount",
    "SignupCredentials",
    "Identity",
    "RoleStatus",
    "AccessGate",
    "RoleManager",
    # Audit logging
    "AuditLogger",
    "AuditLogEntry",
    "AuditAction",
    "AuditContext",
    "ResourceType",
    # Errors
    "InviteGateError",
    "ValidationError",
    "InviteError",
    "ForbiddenError",
    "ConflictError",
    "NotFoundError",
    "AuthError",
    "TransientError",
]
