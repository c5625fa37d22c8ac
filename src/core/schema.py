"""
Database schema definition for the keyed record store.

All engine state is stored as opaque values addressed by stable keys, so the
schema is a single table plus the triggers that protect ledger history.
"""

import sqlite3
from typing import List

LEDGER_KEY_PREFIX = "ledger/"


def create_schema(conn: sqlite3.Connection) -> None:
    """
    Create all database tables with proper constraints and indexes.

    Args:
        conn: SQLite database connection.
    """
    create_kv_records_table(conn)

    # Create triggers for data integrity
    create_ledger_append_only_trigger(conn)


def create_kv_records_table(conn: sqlite3.Connection) -> None:
    """Create the kv_records table."""
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS kv_records (
            key TEXT PRIMARY KEY,
            value BLOB NOT NULL,
            created_at_utc TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
            updated_at_utc TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
        )
    """
    )

    # Recently changed records (backups, audits)
    conn.execute(
        """
        CREATE INDEX IF NOT EXISTS idx_kv_records_updated
        ON kv_records(updated_at_utc)
    """
    )


def create_ledger_append_only_trigger(conn: sqlite3.Connection) -> None:
    """Ledger records may grow but are never deleted."""
    conn.execute(
        f"""
        CREATE TRIGGER IF NOT EXISTS prevent_ledger_delete
        BEFORE DELETE ON kv_records
        WHEN OLD.key LIKE '{LEDGER_KEY_PREFIX}%'
        BEGIN
            SELECT RAISE(ABORT, 'Ledger records are append-only and cannot be deleted');
        END
    """
    )
    conn.execute(
        f"""
        CREATE TRIGGER IF NOT EXISTS prevent_ledger_shrink
        BEFORE UPDATE OF value ON kv_records
        WHEN OLD.key LIKE '{LEDGER_KEY_PREFIX}%'
            AND length(NEW.value) < length(OLD.value)
        BEGIN
            SELECT RAISE(ABORT, 'Ledger records are append-only and cannot shrink');
        END
    """
    )


def get_all_table_names(conn: sqlite3.Connection) -> List[str]:
    """
    Get all table names in the database.

    Args:
        conn: SQLite database connection.

    Returns:
        List of table names.
    """
    cursor = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%'"
    )
    return [row[0] for row in cursor.fetchall()]
