"""
InviteGate configuration management.

Loads configuration from environment variables or .env file.
"""

from typing import Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class InviteGateConfig(BaseSettings):
    """
    InviteGate configuration settings.

    Can be loaded from:
    1. Environment variables (INVITEGATE_SUPABASE_URL, INVITEGATE_SUPABASE_KEY, etc.)
    2. .env file in project root
    3. Direct instantiation with kwargs

    Example:
        ```python
        # From environment
        config = InviteGateConfig()

        # Direct instantiation
        config = InviteGateConfig(
            supabase_url="https://xxx.supabase.co",
            supabase_key="your-key",
            default_code_ttl_days=14,
        )
        ```
    """

    model_config = SettingsConfigDict(
        env_prefix="INVITEGATE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Supabase connection
    supabase_url: str = Field(
        ...,
        description="Supabase project URL (e.g., https://xxx.supabase.co)",
    )

    supabase_key: str = Field(
        ...,
        description="Supabase service role key (server-side only)",
    )

    # Database schema
    db_schema: str = Field(
        default="public",
        description="PostgreSQL schema where invitegate tables live",
        alias="schema",
    )

    # Invite codes
    default_code_ttl_days: int = Field(
        default=30,
        gt=0,
        description="Days until a newly issued invite code expires",
    )

    code_length: int = Field(
        default=16,
        ge=8,
        le=32,
        description="Number of symbols in an invite code (excluding dashes)",
    )

    code_generation_attempts: int = Field(
        default=5,
        ge=1,
        description="Retries when a generated code collides with an existing one",
    )

    release_attempts: int = Field(
        default=5,
        ge=1,
        description="Attempts to restore a consumed code after failed provisioning",
    )

    # Feature flags
    enable_audit_log: bool = Field(
        default=True,
        description="Record issue/redeem/revoke/role changes in audit_log",
    )

    # Debug
    debug: bool = Field(
        default=False,
        description="Enable debug logging",
    )

    @field_validator("supabase_url")
    @classmethod
    def validate_supabase_url(cls, v: str) -> str:
        """Ensure Supabase URL is valid."""
        if not v.startswith("https://"):
            raise ValueError("supabase_url must start with https://")
        return v.rstrip("/")

    @field_validator("supabase_key")
    @classmethod
    def validate_supabase_key(cls, v: str) -> str:
        """Ensure Supabase key is not empty."""
        if not v or len(v) < 10:
            raise ValueError("supabase_key appears invalid (too short)")
        return v

    @field_validator("code_length")
    @classmethod
    def validate_code_length(cls, v: int) -> int:
        """Codes are printed in groups of four."""
        if v % 4:
            raise ValueError("code_length must be a multiple of 4")
        return v


def load_config(**kwargs) -> InviteGateConfig:
    """
    Load InviteGate configuration.

    Priority order:
    1. Keyword arguments
    2. Environment variables (INVITEGATE_*)
    3. .env file

    Args:
        **kwargs: Override configuration values

    Returns:
        InviteGateConfig instance

    Raises:
        pydantic.ValidationError: If required fields are missing or invalid
    """
    return InviteGateConfig(**kwargs)
