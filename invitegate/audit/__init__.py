"""
InviteGate audit logging module.

Provides the audit trail for invite codes and privilege changes.
"""

from .logger import AuditLogger
from .models import (
    AuditAction,
    AuditContext,
    AuditLogEntry,
    ResourceType,
)

__all__ = [
    "AuditLogger",
    "AuditLogEntry",
    "AuditAction",
    "AuditContext",
    "ResourceType",
]
