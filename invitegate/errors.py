"""
InviteGate exception hierarchy.

Admin-facing calls raise precise errors (ValidationError carries field-level
detail). The unauthenticated signup path only ever raises the generic
InviteError, so callers cannot tell a missing code from an expired, used-up,
revoked or wrong-email one.
"""

from typing import Any, Dict, List, Optional


class InviteGateError(Exception):
    """Base exception for all InviteGate errors."""

    default_message = "InviteGate error"

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(InviteGateError):
    """
    Malformed input on an admin-facing call.

    Attributes:
        errors: One dict per failing field with ``field`` and ``message`` keys
    """

    default_message = "Invalid input"

    def __init__(
        self,
        message: Optional[str] = None,
        errors: Optional[List[Dict[str, Any]]] = None,
    ) -> None:
        super().__init__(message)
        self.errors = errors or []

    @classmethod
    def from_pydantic(cls, exc: Any) -> "ValidationError":
        """Build from a pydantic ValidationError, keeping per-field messages."""
        errors = [
            {
                "field": ".".join(str(part) for part in error.get("loc", ())),
                "message": error.get("msg", ""),
            }
            for error in exc.errors()
        ]
        fields = ", ".join(e["field"] for e in errors if e["field"])
        message = f"Invalid input: {fields}" if fields else cls.default_message
        return cls(message, errors=errors)


class InviteError(InviteGateError):
    """
    Generic redemption failure.

    Raised uniformly for unknown, expired, used-up and revoked codes, for
    email mismatches and for lost races. The message never varies.
    """

    default_message = "Invalid or expired invite code"

    def __init__(self) -> None:
        super().__init__(self.default_message)


class ForbiddenError(InviteGateError):
    """Caller lacks the privilege required for the operation."""

    default_message = "Admin privileges required"


class ConflictError(InviteGateError):
    """Operation would violate a role or bootstrap invariant."""

    default_message = "Operation conflicts with current state"


class NotFoundError(InviteGateError):
    """Referenced invite code or account does not exist (admin-facing only)."""

    default_message = "Not found"


class AuthError(InviteGateError):
    """Token could not be verified or does not map to an account."""

    default_message = "Invalid or expired token"


class TransientError(InviteGateError):
    """
    Storage or network failure mid-operation.

    Safe to report for a caller-initiated retry. The server never retries on
    its own when the outcome of an atomic step is ambiguous.
    """

    default_message = "Temporary failure, please try again"
