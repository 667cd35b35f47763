"""
InviteGate framework integrations.

Provides adapters and utilities for popular web frameworks.
"""

# FastAPI adapter is imported conditionally to avoid requiring fastapi
# as a hard dependency

__all__ = []

try:
    from .fastapi import InviteGateFastAPI, get_gate

    __all__.extend(["InviteGateFastAPI", "get_gate"])
except ImportError:
    pass
