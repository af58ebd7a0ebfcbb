"""
LocalVault - Vault Store

Per-user website credentials. The website and login name are stored in
plaintext for listing; the password is envelope-encrypted (see crypto.py)
and only decrypted on request, never cached.

Every call takes the owner's users.id explicitly. Reads and deletes only
ever touch rows belonging to that owner.
"""

import logging
import time
import uuid
from typing import List, NamedTuple

from . import crypto
from .config import VaultConfig
from .errors import NotFoundError, ValidationError
from .keyfile import load_master_key
from .storage import reading, transaction

logger = logging.getLogger(__name__)

_SECRET_COLUMNS = """id, user_id, entry_uid, website, secret_username,
                     key_nonce, key_wrapped, content_nonce, content_ciphertext"""


class SecretRecord(NamedTuple):
    id: int
    website: str
    secret_username: str
    password: str


class VaultStore:
    """
    Encrypted website credentials.

    Usage:
        vault = VaultStore(config)
        secret_id = vault.add_secret(user_id, "https://example.com", "alice", "P@ss1")
        for record in vault.list_secrets(user_id):
            print(record.website, record.password)
        vault.delete_secret(secret_id, user_id)
    """

    def __init__(self, config: VaultConfig):
        self.config = config
        self._content_key = None

    @property
    def content_key(self) -> bytes:
        """Derived on first use, then kept for the life of the store."""
        if self._content_key is None:
            self._content_key = crypto.derive_content_key(load_master_key(self.config))
        return self._content_key

    def add_secret(
        self,
        owner_user_id: int,
        website: str,
        secret_username: str,
        password: str
    ) -> int:
        """
        Encrypt and store one credential.

        Returns:
            id of the new row

        Raises:
            ValidationError: empty website, login name or password
            NotFoundError: owner_user_id is not an existing user
            CryptoError: master key missing or invalid
            StorageError: insert failed (rolled back)
        """
        if not website or not secret_username or not password:
            raise ValidationError("Website, username and password are required")

        entry_uid = str(uuid.uuid4())
        sealed = crypto.encrypt_secret(
            self.content_key, password, owner_user_id, entry_uid, website, secret_username
        )

        with transaction(self.config, f"add secret for user {owner_user_id}") as conn:
            cursor = conn.execute(
                """INSERT INTO stored_secrets (user_id, entry_uid, website, secret_username,
                                              key_nonce, key_wrapped, content_nonce, content_ciphertext,
                                              created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (owner_user_id, entry_uid, website, secret_username,
                 sealed.key_nonce, sealed.key_wrapped, sealed.content_nonce, sealed.content_ciphertext,
                 int(time.time()))
            )
            secret_id = cursor.lastrowid

        logger.debug("Stored secret %d for user %d", secret_id, owner_user_id)
        return secret_id

    def list_secrets(self, owner_user_id: int) -> List[SecretRecord]:
        """
        All credentials of one user, decrypted, oldest first.

        A row that fails to decrypt fails the whole call (CryptoError);
        nothing is skipped silently.
        """
        with reading(self.config, f"list secrets for user {owner_user_id}") as conn:
            rows = conn.execute(
                f"SELECT {_SECRET_COLUMNS} FROM stored_secrets WHERE user_id = ? ORDER BY id",
                (owner_user_id,)
            ).fetchall()
        return [self._open(row) for row in rows]

    def get_secret(self, secret_id: int, owner_user_id: int) -> SecretRecord:
        """One decrypted credential; NotFoundError unless owned by owner_user_id."""
        with reading(self.config, f"get secret {secret_id}") as conn:
            row = conn.execute(
                f"SELECT {_SECRET_COLUMNS} FROM stored_secrets WHERE id = ? AND user_id = ?",
                (secret_id, owner_user_id)
            ).fetchone()
        if not row:
            raise NotFoundError(f"Secret {secret_id} not found for user {owner_user_id}")
        return self._open(row)

    def delete_secret(self, secret_id: int, owner_user_id: int) -> bool:
        """
        Remove one credential owned by owner_user_id.

        Raises:
            NotFoundError: no such id, or it belongs to another user
        """
        with transaction(self.config, f"delete secret {secret_id}") as conn:
            cursor = conn.execute(
                "DELETE FROM stored_secrets WHERE id = ? AND user_id = ?",
                (secret_id, owner_user_id)
            )
            if cursor.rowcount == 0:
                logger.warning("User %d tried to delete secret %s it does not own or that does not exist",
                               owner_user_id, secret_id)
                raise NotFoundError(f"Secret {secret_id} not found for user {owner_user_id}")

        logger.debug("Deleted secret %d of user %d", secret_id, owner_user_id)
        return True

    # =========================================================================
    # INTERNAL HELPERS
    # =========================================================================

    def _open(self, row) -> SecretRecord:
        sealed = crypto.SealedSecret(
            row['key_nonce'], row['key_wrapped'], row['content_nonce'], row['content_ciphertext']
        )
        password = crypto.decrypt_secret(
            self.content_key, sealed, row['user_id'], row['entry_uid'],
            row['website'], row['secret_username']
        )
        return SecretRecord(row['id'], row['website'], row['secret_username'], password)
