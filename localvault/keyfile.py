"""
Installation master key storage.

The key lives in its own file next to the database (owner read/write
only), so a copy of the database alone does not decrypt the vault.
"""

import base64
import binascii
import logging
import os
from pathlib import Path

from . import crypto
from .config import VaultConfig
from .errors import CryptoError, StorageError

logger = logging.getLogger(__name__)


def ensure_master_key(path: Path) -> bool:
    """
    Create the key file if it does not exist yet.

    Never overwrites an existing key: losing it would make every stored
    secret undecryptable.

    Returns:
        True if a new key was written
    """
    path = Path(path)
    if path.exists():
        return False

    key = crypto.create_master_key()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        # O_EXCL: fail instead of clobbering a key created concurrently
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
    except FileExistsError:
        if path.exists():
            return False
        # A path component that is not a directory
        raise StorageError(f"Cannot create master key file {path}: parent is not a directory") from None
    except OSError as e:
        raise StorageError(f"Cannot create master key file {path}: {e}") from e

    try:
        with os.fdopen(fd, "wb") as f:
            f.write(base64.b64encode(key) + b"\n")
    except OSError as e:
        # Never leave a truncated key behind
        path.unlink(missing_ok=True)
        raise StorageError(f"Cannot write master key file {path}: {e}") from e

    logger.info("Created master key %s (fingerprint %s)", path, crypto.fingerprint(key))
    return True


def read_master_key(path: Path) -> bytes:
    """Read and decode a key file written by ensure_master_key()."""
    path = Path(path)
    try:
        raw = path.read_bytes()
    except FileNotFoundError:
        raise CryptoError(f"Master key file not found: {path}") from None
    except OSError as e:
        raise CryptoError(f"Cannot read master key file {path}: {e}") from e

    try:
        key = base64.b64decode(raw.strip(), validate=True)
    except binascii.Error as e:
        raise CryptoError(f"Master key file {path} is not valid base64") from e

    if len(key) != crypto.KEY_SIZE:
        raise CryptoError(f"Master key file {path} holds {len(key)} bytes, expected {crypto.KEY_SIZE}")
    return key


def load_master_key(config: VaultConfig) -> bytes:
    """Key from the config if given, otherwise from the key file."""
    if config.master_key is not None:
        if len(config.master_key) != crypto.KEY_SIZE:
            raise CryptoError(f"Configured master key must be {crypto.KEY_SIZE} bytes")
        return config.master_key
    return read_master_key(config.resolved_key_path)
