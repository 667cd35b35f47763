"""
InviteGate invites module.

Issues, redeems, revokes and summarizes email-bound invite codes.
"""

from .codes import canonicalize_code, generate_code, mask_code, normalize_email
from .manager import InviteCodeManager
from .models import CodeFilter, InviteCode, InviteCodeStats, InviteStatus
from .redemption import RedemptionService

__all__ = [
    "InviteCodeManager",
    "RedemptionService",
    "InviteCode",
    "InviteStatus",
    "InviteCodeStats",
    "CodeFilter",
    "canonicalize_code",
    "generate_code",
    "mask_code",
    "normalize_email",
]
