"""
Invite code models.

Pydantic models for invite codes stored in the invite_codes table.
"""

from datetime import datetime, timedelta
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator

from .codes import mask_code, normalize_email


class InviteStatus(str, Enum):
    """Derived status of an invite code. Everything but ACTIVE is terminal."""

    ACTIVE = "active"
    EXPIRED = "expired"
    USED_UP = "used_up"
    REVOKED = "revoked"


class InviteCode(BaseModel):
    """
    Invite code model - one invitation bound to one recipient email.

    The code text is excluded from repr() and from model_dump() so it does
    not leak into logs or listings; read ``.code`` once after issuing and
    use ``masked_code`` everywhere else.
    """

    id: UUID
    code: str = Field(..., repr=False, exclude=True)
    intended_email: str

    # Who issued it (None for the bootstrap code)
    created_by: Optional[UUID] = None

    # Limits
    expires_at: datetime
    max_uses: int = 1
    current_uses: int = 0
    is_active: bool = True

    # Redeeming the bootstrap code yields the protected admin
    is_bootstrap: bool = False

    # First redemption
    used_by: Optional[UUID] = None
    used_at: Optional[datetime] = None

    notes: Optional[str] = None
    created_at: datetime

    model_config = {
        "from_attributes": True,
        "json_schema_extra": {
            "example": {
                "id": "123e4567-e89b-12d3-a456-426614174000",
                "intended_email": "friend@example.com",
                "created_by": "012e3456-e89b-12d3-a456-426614174000",
                "expires_at": "2024-01-31T00:00:00Z",
                "max_uses": 1,
                "current_uses": 0,
                "is_active": True,
                "is_bootstrap": False,
                "created_at": "2024-01-01T00:00:00Z",
            }
        },
    }

    @property
    def masked_code(self) -> str:
        return mask_code(self.code)

    def status(self, now: datetime) -> InviteStatus:
        """
        Derive the status at ``now``.

        Precedence when several apply: REVOKED, USED_UP, EXPIRED.
        """
        if not self.is_active:
            return InviteStatus.REVOKED
        if self.current_uses >= self.max_uses:
            return InviteStatus.USED_UP
        if now >= self.expires_at:
            return InviteStatus.EXPIRED
        return InviteStatus.ACTIVE

    def rejection_reason(self, email: str, now: datetime) -> Optional[str]:
        """
        Return why ``email`` may not redeem this code at ``now``, or None.

        The reason is for internal logs only; callers see a generic error.
        """
        status = self.status(now)
        if status is not InviteStatus.ACTIVE:
            return status.value
        if normalize_email(email) != self.intended_email:
            return "email_mismatch"
        return None


class IssueCodeRequest(BaseModel):
    """Validated input for issuing a code."""

    email: EmailStr = Field(..., description="Recipient the code is bound to")
    max_uses: int = Field(default=1, ge=1, description="Redemptions allowed")
    ttl: timedelta = Field(..., description="Lifetime of the code")
    notes: Optional[str] = Field(None, max_length=500)

    @field_validator("ttl")
    @classmethod
    def validate_ttl(cls, v: timedelta) -> timedelta:
        if v <= timedelta(0):
            raise ValueError("ttl must be positive")
        return v


class CodeFilter(BaseModel):
    """Filter for listing invite codes."""

    status: Optional[InviteStatus] = None
    created_by: Optional[UUID] = None
    intended_email: Optional[str] = None
    limit: int = Field(default=50, ge=1, le=500)
    offset: int = Field(default=0, ge=0)

    @field_validator("intended_email")
    @classmethod
    def normalize_intended_email(cls, v: Optional[str]) -> Optional[str]:
        return normalize_email(v) if v else v


class InviteCodeStats(BaseModel):
    """Counts of invite codes by derived status."""

    total: int = 0
    active: int = 0
    expired: int = 0
    used_up: int = 0
    revoked: int = 0
