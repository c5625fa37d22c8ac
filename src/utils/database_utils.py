"""
Transaction helpers for the keyed record store.

Connections are opened in autocommit mode, so every write goes through
``transactional`` which issues BEGIN/COMMIT itself and rolls back on error.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from typing import Iterator, Optional

from src.utils.logging_config import get_logger


logger = get_logger(__name__)


class TransactionError(Exception):
    """Raised when a database transaction fails."""

    pass


@contextmanager
def transactional(
    conn: sqlite3.Connection, immediate: bool = False, label: Optional[str] = None
) -> Iterator[sqlite3.Connection]:
    """
    Run the block inside one transaction.

    Args:
        conn: Connection opened with ``isolation_level=None``.
        immediate: Take the write lock at BEGIN. Read-compare-write blocks
            need it so no other connection writes between the read and the
            write.
        label: Operation name included in the rollback log.

    Raises:
        TransactionError: If anything inside the block fails; the
            transaction is rolled back first.
    """
    try:
        conn.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
    except sqlite3.Error as exc:
        logger.error("transaction_begin_failed", label=label, error=str(exc))
        raise TransactionError("Could not start database transaction") from exc

    try:
        yield conn
    except Exception as exc:
        logger.error("transaction_rollback", label=label, error=str(exc))
        conn.rollback()
        raise TransactionError("Database transaction failed") from exc
    else:
        conn.commit()
