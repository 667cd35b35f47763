"""
Canonical forms for invite codes and email addresses.

Codes and emails are normalized once, at the boundary, by these functions and
nowhere else. Stored codes are upper-case and dash-grouped; stored emails are
lower-case.
"""

import secrets
from typing import Optional

# No 0/O or 1/I: codes get read aloud and retyped
CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
CODE_GROUP_SIZE = 4
DEFAULT_CODE_LENGTH = 16


def normalize_email(raw: str) -> str:
    """Strip surrounding whitespace and lower-case an email address."""
    return raw.strip().lower()


def group_code(symbols: str, group_size: int = CODE_GROUP_SIZE) -> str:
    """Insert dashes between fixed-size groups: ABCDEFGH -> ABCD-EFGH."""
    return "-".join(
        symbols[i:i + group_size] for i in range(0, len(symbols), group_size)
    )


def generate_code(length: int = DEFAULT_CODE_LENGTH) -> str:
    """
    Generate a random invite code.

    Each symbol carries 5 bits, so the default 16-symbol code has 80 bits
    of entropy.

    Args:
        length: Number of symbols, a multiple of the group size

    Returns:
        Canonical code, e.g. ``"K7QH-2MXP-9TRA-WC4E"``
    """
    if length <= 0 or length % CODE_GROUP_SIZE:
        raise ValueError(f"code length must be a positive multiple of {CODE_GROUP_SIZE}")
    symbols = "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))
    return group_code(symbols)


def canonicalize_code(raw: str, length: Optional[int] = None) -> str:
    """
    Bring a user-typed code into its stored form.

    Case, surrounding whitespace, inner spaces and dash placement are ignored.
    Without ``length`` any positive multiple of the group size is accepted,
    so codes issued under an earlier length setting stay redeemable.

    Raises:
        ValueError: If the code has the wrong length or foreign symbols
    """
    if not isinstance(raw, str):
        raise ValueError("code must be a string")
    symbols = "".join(raw.split()).replace("-", "").upper()
    if length is None:
        if not symbols or len(symbols) % CODE_GROUP_SIZE:
            raise ValueError("code has the wrong length")
    elif len(symbols) != length:
        raise ValueError("code has the wrong length")
    if any(ch not in CODE_ALPHABET for ch in symbols):
        raise ValueError("code contains invalid characters")
    return group_code(symbols)


def mask_code(code: str) -> str:
    """Hide all but the first and last group: ABCD-****-****-WXYZ."""
    groups = code.split("-")
    if len(groups) < 3:
        return "*" * len(code)
    hidden = ["*" * len(g) for g in groups[1:-1]]
    return "-".join([groups[0], *hidden, groups[-1]])
