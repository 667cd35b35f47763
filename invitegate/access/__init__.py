"""
InviteGate access module.

Authorization gate and admin role management.
"""

from .gate import AccessGate
from .roles import RoleManager

__all__ = [
    "AccessGate",
    "RoleManager",
]
