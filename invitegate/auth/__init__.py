"""
InviteGate authentication module.

Handles account provisioning and identity verification.
"""

from .accounts import AccountProvisioner
from .models import Identity, RoleStatus, SignupCredentials, UserAccount
from .sessions import SessionManager

__all__ = [
    "AccountProvisioner",
    "SessionManager",
    "UserAccount",
    "Identity",
    "RoleStatus",
    "SignupCredentials",
]
