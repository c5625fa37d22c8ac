"""
Database initialization and connection management for the keyed record store.

This module handles:
- Creating the data directory if it doesn't exist
- Setting up SQLite with WAL mode and foreign keys
- Providing database connection utilities
"""

import sqlite3
import threading
from pathlib import Path
from typing import Optional

from src.core.config import Config
from src.utils.logging_config import get_logger


logger = get_logger(__name__)

_SCHEMA_LOCK = threading.Lock()
_SCHEMA_INITIALIZED = False


def ensure_data_directory(db_path: Optional[str] = None) -> None:
    """Create the data directory if it doesn't exist."""
    if db_path is None:
        db_path = Config.DB_PATH
    if db_path == ":memory:":
        return

    data_dir = Path(db_path).parent
    if not data_dir.exists():
        data_dir.mkdir(parents=True, exist_ok=True)
        logger.info("data_directory_created", path=str(data_dir))


def get_db_connection(db_path: Optional[str] = None) -> sqlite3.Connection:
    """
    Get a database connection with proper configuration.

    Args:
        db_path: Path to the SQLite database file. If None, uses Config.DB_PATH.

    Returns:
        Configured SQLite connection with WAL mode and foreign keys enabled.
    """
    if db_path is None:
        db_path = Config.DB_PATH

    ensure_data_directory(db_path)

    # isolation_level=None leaves BEGIN/COMMIT to transactional()
    conn = sqlite3.connect(db_path, check_same_thread=False, isolation_level=None)
    conn.row_factory = sqlite3.Row

    conn.execute("PRAGMA foreign_keys = ON")
    conn.execute("PRAGMA journal_mode = WAL")
    conn.execute("PRAGMA synchronous = NORMAL")
    conn.execute("PRAGMA temp_store = MEMORY")

    global _SCHEMA_INITIALIZED
    if db_path == ":memory:":
        # Every in-memory connection is a fresh database
        from src.core.schema import create_schema

        create_schema(conn)
        return conn

    if not _SCHEMA_INITIALIZED:
        with _SCHEMA_LOCK:
            if not _SCHEMA_INITIALIZED:
                # Local import avoids circular dependency during module load
                from src.core.schema import create_schema

                create_schema(conn)
                _SCHEMA_INITIALIZED = True

    return conn


def initialize_database(db_path: Optional[str] = None) -> sqlite3.Connection:
    """
    Initialize the database with schema.

    Args:
        db_path: Path to the SQLite database file. If None, uses Config.DB_PATH.

    Returns:
        Database connection with initialized schema.
    """
    conn = get_db_connection(db_path)

    from src.core.schema import create_schema

    create_schema(conn)
    return conn


def close_connection(conn: sqlite3.Connection) -> None:
    """
    Close the database connection properly.

    Args:
        conn: Database connection to close.
    """
    if conn:
        conn.close()


def backup_database(backup_path: str, db_path: Optional[str] = None) -> None:
    """
    Create a backup of the database.

    Args:
        backup_path: Path where the backup will be saved.
        db_path: Source database. If None, uses Config.DB_PATH.
    """
    source = sqlite3.connect(db_path or Config.DB_PATH)
    backup = sqlite3.connect(backup_path)

    try:
        source.backup(backup)
        logger.info("database_backed_up", backup_path=backup_path)
    finally:
        source.close()
        backup.close()
