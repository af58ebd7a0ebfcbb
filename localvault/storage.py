"""
SQLite connection helpers.

Every store operation opens its own connection, does its work and closes
it again. Writes go through transaction(): commit on success, rollback on
any exception. sqlite3 errors leave this module already classified.
Only schema.initialize() creates the database file; opening a missing
file here is a StorageError.
"""

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Union

from .config import VaultConfig
from .errors import DuplicateError, NotFoundError, StorageError, VaultError

logger = logging.getLogger(__name__)

BUSY_TIMEOUT_MS = 5000


def connect(db_path: Union[str, Path], create: bool = True) -> sqlite3.Connection:
    """
    Open a connection with crash-safety and integrity PRAGMAs.

    Args:
        db_path: Database file
        create: If False, a missing file is an error instead of a new empty database
    """
    if create:
        conn = sqlite3.connect(str(db_path))
    else:
        uri = Path(db_path).resolve().as_uri() + "?mode=rw"
        conn = sqlite3.connect(uri, uri=True)
    try:
        conn.row_factory = sqlite3.Row
        conn.execute(f"PRAGMA busy_timeout={BUSY_TIMEOUT_MS}")
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=FULL")
        conn.execute("PRAGMA foreign_keys=ON")
        conn.execute("PRAGMA secure_delete=ON")
    except sqlite3.Error:
        conn.close()
        raise
    return conn


def classify(error: sqlite3.Error, action: str) -> VaultError:
    """Map a sqlite3 error to the package's error taxonomy."""
    message = str(error)
    if isinstance(error, sqlite3.IntegrityError):
        if "UNIQUE" in message:
            return DuplicateError(f"{action}: record already exists")
        if "FOREIGN KEY" in message:
            return NotFoundError(f"{action}: referenced record does not exist")
    return StorageError(f"{action}: {message}")


def _open(config: VaultConfig, action: str) -> sqlite3.Connection:
    try:
        return connect(config.db_path, create=False)
    except sqlite3.Error as e:
        logger.error("Cannot open %s: %s", config.db_path, e)
        raise StorageError(f"{action}: cannot open database {config.db_path}: {e}") from e


@contextmanager
def reading(config: VaultConfig, action: str = "read") -> Iterator[sqlite3.Connection]:
    """Connection for read-only work; no explicit transaction."""
    conn = _open(config, action)
    try:
        yield conn
    except sqlite3.Error as e:
        logger.error("%s failed: %s", action, e)
        raise classify(e, action) from e
    finally:
        conn.close()


@contextmanager
def transaction(config: VaultConfig, action: str = "write") -> Iterator[sqlite3.Connection]:
    """
    Atomic unit of work.

    Usage:
        with transaction(config, "add user") as conn:
            conn.execute(...)
            conn.execute(...)
    """
    conn = _open(config, action)
    try:
        conn.execute("BEGIN IMMEDIATE")
        yield conn
        conn.commit()
    except sqlite3.Error as e:
        _rollback(conn, action)
        logger.error("%s failed, rolled back: %s", action, e)
        raise classify(e, action) from e
    except BaseException:
        _rollback(conn, action)
        raise
    finally:
        conn.close()


def _rollback(conn: sqlite3.Connection, action: str) -> None:
    if not conn.in_transaction:
        return
    try:
        conn.rollback()
    except sqlite3.Error as e:
        # The error that triggered the rollback is the one re-raised
        logger.error("Rollback of %s failed: %s", action, e)
