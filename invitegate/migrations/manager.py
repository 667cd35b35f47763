"""
Migration manager for the InviteGate database schema.

Discovers the SQL migrations shipped in migrations/versions and reports which
of them the database has recorded in invitegate_migrations. PostgREST cannot
run DDL, so pending migrations are rendered as one SQL script to apply with
psql or the Supabase SQL editor; each script records its own version.
"""

import logging
from pathlib import Path
from typing import List, NamedTuple, Optional

from postgrest.exceptions import APIError

from ..utils.supabase import GateSupabaseClient, execute

logger = logging.getLogger(__name__)

TABLE = "invitegate_migrations"


class Migration:
    """Represents a single database migration."""

    def __init__(self, version: str, name: str, path: Path) -> None:
        """
        Initialize a migration.

        Args:
            version: Migration version (e.g., "001")
            name: Migration name (e.g., "invite_gate_schema")
            path: Path to the SQL file
        """
        self.version = version
        self.name = name
        self.path = path

    @classmethod
    def from_file(cls, path: Path) -> "Migration":
        """
        Create a Migration from a file path.

        Example:
            >>> Migration.from_file(Path("001_invite_gate_schema.sql"))
            Migration(version=001, name=invite_gate_schema)
        """
        parts = path.stem.split("_", 1)

        if len(parts) != 2 or not parts[0].isdigit():
            raise ValueError(
                f"Invalid migration filename: {path.name}. Expected format: 001_name.sql"
            )

        version, name = parts
        return cls(version=version, name=name, path=path)

    def read_sql(self) -> str:
        """Read the SQL content of the migration."""
        return self.path.read_text()

    def __repr__(self) -> str:
        return f"Migration(version={self.version}, name={self.name})"


class MigrationStatus(NamedTuple):
    migration: Migration
    applied: bool


class MigrationManager:
    """
    Tracks database migrations for InviteGate.

    Example:
        ```python
        manager = MigrationManager(gate.client)
        for entry in await manager.status():
            print(entry.migration.version, entry.applied)

        print(await manager.render_pending())
        ```
    """

    def __init__(
        self,
        client: Optional[GateSupabaseClient],
        migrations_dir: Optional[Path] = None,
    ) -> None:
        """
        Initialize the migration manager.

        Args:
            client: InviteGate Supabase client (None to only read SQL files)
            migrations_dir: Directory holding NNN_name.sql files
        """
        self.client = client
        self.migrations_dir = migrations_dir or Path(__file__).parent / "versions"

    def discover_migrations(self) -> List[Migration]:
        """
        Discover all migration files in the versions directory.

        Returns:
            List of Migration objects, sorted by version
        """
        if not self.migrations_dir.exists():
            return []

        migrations = []
        for path in self.migrations_dir.glob("*.sql"):
            try:
                migrations.append(Migration.from_file(path))
            except ValueError as e:
                logger.warning("Skipping invalid migration file: %s", e)

        migrations.sort(key=lambda m: m.version)
        return migrations

    async def get_applied_migrations(self) -> List[str]:
        """
        Get the versions recorded in invitegate_migrations.

        A missing tracking table means nothing has been applied yet.
        """
        try:
            result = await execute(self.client.table(TABLE).select("version"))
        except APIError as e:
            logger.debug("Migration table not readable (%s), assuming none applied", e)
            return []
        return [row["version"] for row in result.data]

    async def status(self) -> List[MigrationStatus]:
        """
        Report every known migration and whether it is applied.

        Example:
            >>> [(s.migration.version, s.applied) for s in await manager.status()]
            [('001', True)]
        """
        applied = set(await self.get_applied_migrations())
        return [
            MigrationStatus(migration, migration.version in applied)
            for migration in self.discover_migrations()
        ]

    async def pending(self, target: Optional[str] = None) -> List[Migration]:
        """
        Migrations not yet applied, up to ``target`` if given.

        Args:
            target: Highest version to include (default: latest)
        """
        pending = [s.migration for s in await self.status() if not s.applied]
        if target:
            pending = [m for m in pending if m.version <= target]
        return pending

    def render(self, migrations: List[Migration]) -> str:
        """Concatenate migrations into one SQL script."""
        return "\n".join(
            f"-- {migration.version}_{migration.name}\n{migration.read_sql()}"
            for migration in migrations
        )

    async def render_pending(self, target: Optional[str] = None) -> str:
        """
        SQL script applying every pending migration in order.

        Returns an empty string when the database is up to date.
        """
        pending = await self.pending(target)
        if pending:
            logger.info("%d pending migration(s)", len(pending))
        return self.render(pending)
