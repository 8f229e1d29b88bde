"""
Versioned schema migrations for the SQLite document cache.
"""
from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone

from .observability import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class SqliteMigration:
    version: int
    name: str
    statements: tuple[str, ...] = ()


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def _ensure_migration_table(conn: sqlite3.Connection):
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS schema_migrations (
            component TEXT NOT NULL,
            version INTEGER NOT NULL,
            name TEXT NOT NULL,
            applied_at TEXT NOT NULL,
            PRIMARY KEY(component, version)
        )
        """
    )


def schema_version(conn: sqlite3.Connection, component: str) -> int:
    """Highest applied migration version for component, 0 when none."""
    _ensure_migration_table(conn)
    row = conn.execute(
        "SELECT MAX(version) FROM schema_migrations WHERE component = ?",
        (component,),
    ).fetchone()
    return int(row[0] or 0) if row else 0


def apply_sqlite_migrations(
    conn: sqlite3.Connection,
    *,
    component: str,
    migrations: list[SqliteMigration],
) -> list[int]:
    """Applies pending migrations in version order and returns the versions applied."""
    _ensure_migration_table(conn)
    applied = {
        int(row[0])
        for row in conn.execute(
            "SELECT version FROM schema_migrations WHERE component = ?",
            (component,),
        ).fetchall()
    }

    newly_applied: list[int] = []
    for migration in sorted(migrations, key=lambda m: int(m.version)):
        if int(migration.version) in applied:
            continue

        for statement in migration.statements:
            sql = str(statement or "").strip()
            if sql:
                conn.execute(sql)

        conn.execute(
            """
            INSERT INTO schema_migrations (component, version, name, applied_at)
            VALUES (?, ?, ?, ?)
            """,
            (component, int(migration.version), migration.name, _utcnow_iso()),
        )
        newly_applied.append(int(migration.version))
        logger.info(
            "db_migration_applied",
            component=component,
            version=int(migration.version),
            name=migration.name,
        )
    return newly_applied
