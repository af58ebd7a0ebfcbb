"""
LocalVault - Local Credential Vault

Authenticates a small set of named users and keeps each user's website
logins encrypted in a local SQLite file.

Key Features:
- Salted scrypt password digests, never plaintext
- AES-256-GCM envelope encryption with a fresh nonce per secret
- Associated data binds every ciphertext to its owner and row
- Every write is a single transaction, rolled back on failure

Components:
- crypto.py: All cryptographic operations
- keyfile.py: Installation master key file
- schema.py: Database creation and admin seeding
- users.py: Accounts and login checks (CredentialStore)
- vault.py: Encrypted website credentials (VaultStore)

Usage:
    config = VaultConfig(db_path="UserDatabase.db")
    initialize(config)
    users = CredentialStore(config)
    vault = VaultStore(config)
"""

import logging

from .config import ScryptParams, VaultConfig
from .errors import (
    CryptoError,
    DuplicateError,
    NotFoundError,
    ProtectedAccountError,
    StorageError,
    ValidationError,
    VaultError,
)
from .schema import initialize
from .users import CredentialStore, Role, User
from .vault import SecretRecord, VaultStore

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"

__all__ = [
    "CredentialStore",
    "CryptoError",
    "DuplicateError",
    "NotFoundError",
    "ProtectedAccountError",
    "Role",
    "ScryptParams",
    "SecretRecord",
    "StorageError",
    "User",
    "ValidationError",
    "VaultConfig",
    "VaultError",
    "VaultStore",
    "initialize",
]
