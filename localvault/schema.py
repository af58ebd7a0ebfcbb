"""
LocalVault - Schema Manager

Creates the database on first run, brings the tables up to date, and
seeds the default administrator. Safe to call on every start-up: tables
are created only if missing and existing accounts are never touched.

Database structure:
- users: login accounts (salted scrypt digest, role)
- stored_secrets: per-user website credentials (envelope-encrypted)
"""

import logging
import time

from . import crypto
from .config import VaultConfig
from .errors import StorageError
from .keyfile import ensure_master_key
from .storage import reading, transaction

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

SCHEMA = (
    # Login accounts
    """CREATE TABLE IF NOT EXISTS users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        username TEXT NOT NULL UNIQUE,
        password_hash BLOB NOT NULL,      -- scrypt(password, password_salt)
        password_salt BLOB NOT NULL,      -- 16 bytes random
        kdf_params TEXT NOT NULL,         -- JSON: {"N": 32768, "r": 8, "p": 1}
        role TEXT NOT NULL DEFAULT 'basic' CHECK (role IN ('basic', 'admin')),
        created_at INTEGER NOT NULL
    )""",
    # Website credentials (metadata plaintext, password envelope-encrypted)
    """CREATE TABLE IF NOT EXISTS stored_secrets (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        entry_uid TEXT NOT NULL UNIQUE,   -- bound into the AEAD associated data
        website TEXT NOT NULL,
        secret_username TEXT NOT NULL,
        key_nonce BLOB NOT NULL,
        key_wrapped BLOB NOT NULL,
        content_nonce BLOB NOT NULL,
        content_ciphertext BLOB NOT NULL,
        created_at INTEGER NOT NULL
    )""",
    "CREATE INDEX IF NOT EXISTS idx_stored_secrets_user_id ON stored_secrets(user_id)",
)


def initialize(config: VaultConfig) -> bool:
    """
    Create or repair the schema and seed the default admin.

    1. Creates the database file (and its directory) if absent
    2. Creates missing tables and indexes; never drops anything
    3. Inserts the admin account only if that username does not exist
    4. Creates the master key file if absent (unless the config carries a key)

    Returns:
        True if the admin account was created by this call

    Raises:
        StorageError: any database or file-system fault
    """
    db_path = config.db_path
    try:
        db_path.parent.mkdir(parents=True, exist_ok=True)
        db_path.touch(exist_ok=True)
    except OSError as e:
        raise StorageError(f"Cannot create database file {db_path}: {e}") from e

    if config.master_key is None:
        ensure_master_key(config.resolved_key_path)

    with transaction(config, "initialize schema") as conn:
        for statement in SCHEMA:
            conn.execute(statement)
        conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")

        exists = conn.execute(
            "SELECT 1 FROM users WHERE username = ?", (config.admin_username,)
        ).fetchone()
        if exists:
            seeded = False
        else:
            salt = crypto.new_salt()
            conn.execute(
                """INSERT INTO users (username, password_hash, password_salt, kdf_params, role, created_at)
                   VALUES (?, ?, ?, ?, 'admin', ?)""",
                (config.admin_username,
                 crypto.hash_password(config.admin_password, salt, config.kdf),
                 salt, config.kdf.to_json(), int(time.time()))
            )
            seeded = True

    if seeded:
        logger.info("Seeded default administrator '%s' in %s", config.admin_username, db_path)
    logger.debug("Schema version %d ready at %s", SCHEMA_VERSION, db_path)
    return seeded


def schema_version(config: VaultConfig) -> int:
    """Version recorded by the last initialize() (0 for a fresh file)."""
    with reading(config, "read schema version") as conn:
        return conn.execute("PRAGMA user_version").fetchone()[0]
