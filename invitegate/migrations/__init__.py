"""
InviteGate schema migrations.

SQL files live in versions/ and are applied outside PostgREST.
"""

from .manager import Migration, MigrationManager, MigrationStatus

__all__ = ["Migration", "MigrationManager", "MigrationStatus"]
