"""
InviteGate auth models.

Pydantic models for accounts, identities and signup credentials.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, SecretStr


class UserAccount(BaseModel):
    """
    User account model - represents a row in the user_accounts table.

    ``email`` always comes from the redeemed invite code, never from the
    signup form. ``is_protected`` is set once at bootstrap and never changes.
    """

    id: UUID
    email: str
    display_name: Optional[str] = None

    # Privilege
    is_admin: bool = False
    is_protected: bool = False

    # Link to the identity provider's user
    auth_user_id: Optional[UUID] = None

    created_at: datetime

    model_config = {
        "from_attributes": True,
        "json_schema_extra": {
            "example": {
                "id": "123e4567-e89b-12d3-a456-426614174000",
                "email": "friend@example.com",
                "display_name": "Friend",
                "is_admin": False,
                "is_protected": False,
                "auth_user_id": "456e7890-e89b-12d3-a456-426614174000",
                "created_at": "2024-01-01T00:00:00Z",
            }
        },
    }


class SignupCredentials(BaseModel):
    """What the candidate supplies besides code and email."""

    password: SecretStr = Field(..., min_length=8)
    display_name: Optional[str] = Field(None, max_length=100)


class Identity(BaseModel):
    """A verified caller, as reported by the identity provider."""

    user_id: UUID
    email: str


class RoleStatus(BaseModel):
    """Privilege of an account, freshly read from user_accounts."""

    user_id: UUID
    is_admin: bool = False
    is_protected: bool = False
