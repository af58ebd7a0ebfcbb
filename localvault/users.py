"""
LocalVault - Credential Store

User accounts: create, authenticate, update, delete, list.

Passwords are never stored: each row holds a salted scrypt digest plus
the salt and scrypt parameters needed to recompute it at login.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

from . import crypto
from .config import ScryptParams, VaultConfig
from .errors import DuplicateError, NotFoundError, ProtectedAccountError, ValidationError
from .storage import reading, transaction

logger = logging.getLogger(__name__)


class Role(str, Enum):
    BASIC = "basic"
    ADMIN = "admin"


def normalize_role(role) -> Role:
    """Lower-case and trim a role name; empty means basic."""
    if isinstance(role, Role):
        return role
    value = (role or "").strip().lower()
    if not value:
        return Role.BASIC
    try:
        return Role(value)
    except ValueError:
        raise ValidationError(f"Unknown role '{role}' (expected basic or admin)") from None


@dataclass(frozen=True)
class User:
    id: int
    username: str
    role: Role
    created_at: int


def _clean(username: Optional[str]) -> str:
    return (username or "").strip()


class CredentialStore:
    """
    Account storage and login checks.

    Usage:
        users = CredentialStore(config)
        users.add_user("alice", "Secret123!")
        ok, role = users.validate_user("alice", "Secret123!")
    """

    def __init__(self, config: VaultConfig):
        self.config = config
        # Digest checked when the username is unknown, so a miss costs as much as a hit
        self._dummy_salt = crypto.new_salt()

    # =========================================================================
    # Lookups
    # =========================================================================

    def user_exists(self, username: str) -> bool:
        """Case-sensitive lookup. Empty input is False without touching the database."""
        username = _clean(username)
        if not username:
            return False
        with reading(self.config, "check user") as conn:
            row = conn.execute(
                "SELECT COUNT(*) FROM users WHERE username = ?", (username,)
            ).fetchone()
        return row[0] > 0

    def get_user(self, username: str) -> User:
        username = _clean(username)
        with reading(self.config, "get user") as conn:
            row = conn.execute(
                "SELECT id, username, role, created_at FROM users WHERE username = ?",
                (username,)
            ).fetchone()
        if not row:
            raise NotFoundError(f"User '{username}' not found")
        return User(row['id'], row['username'], Role(row['role']), row['created_at'])

    def get_user_id(self, username: str) -> int:
        """
        Resolve a username to users.id for use with VaultStore.

        Raises:
            NotFoundError: no such username
        """
        return self.get_user(username).id

    def list_users(self) -> List[Tuple[str, str]]:
        """All accounts as (username, role) pairs."""
        with reading(self.config, "list users") as conn:
            rows = conn.execute("SELECT username, role FROM users").fetchall()
        return [(row['username'], row['role']) for row in rows]

    # =========================================================================
    # Authentication
    # =========================================================================

    def validate_user(self, username: str, password: str) -> Tuple[bool, str]:
        """
        Check a login.

        Returns:
            (True, stored role) on a match, (False, "basic") otherwise
        """
        username = _clean(username)
        if not username or not password:
            return False, Role.BASIC.value

        with reading(self.config, "validate user") as conn:
            row = conn.execute(
                "SELECT password_hash, password_salt, kdf_params, role FROM users WHERE username = ?",
                (username,)
            ).fetchone()

        if not row:
            crypto.hash_password(password, self._dummy_salt, self.config.kdf)
            logger.warning("Login failed for unknown user '%s'", username)
            return False, Role.BASIC.value

        params = ScryptParams.from_json(row['kdf_params'])
        if crypto.verify_password(password, row['password_salt'], row['password_hash'], params):
            logger.info("User '%s' authenticated", username)
            return True, row['role']

        logger.warning("Login failed for user '%s': wrong password", username)
        return False, Role.BASIC.value

    # =========================================================================
    # Mutations
    # =========================================================================

    def add_user(self, username: str, password: str, role=Role.BASIC) -> int:
        """
        Create an account.

        Args:
            username: Trimmed before storing; must be non-empty
            password: Plaintext, hashed before storing; must be non-empty
            role: "basic" (default) or "admin", any case

        Returns:
            id of the new user

        Raises:
            ValidationError: empty username/password or unknown role
            DuplicateError: username already taken
            StorageError: insert failed (rolled back)
        """
        username = _clean(username)
        if not username or not password:
            raise ValidationError("Username and password cannot be empty")
        role = normalize_role(role)

        if self.user_exists(username):
            raise DuplicateError(f"Username '{username}' already exists")

        salt = crypto.new_salt()
        digest = crypto.hash_password(password, salt, self.config.kdf)

        with transaction(self.config, f"add user '{username}'") as conn:
            cursor = conn.execute(
                """INSERT INTO users (username, password_hash, password_salt, kdf_params, role, created_at)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (username, digest, salt, self.config.kdf.to_json(), role.value, int(time.time()))
            )
            user_id = cursor.lastrowid

        logger.info("Added user '%s' with role %s", username, role.value)
        return user_id

    def update_user(self, username: str, new_password: str, new_role) -> bool:
        """
        Replace an account's password and role.

        Returns:
            True if the account existed and was updated
        """
        username = _clean(username)
        if not username or not new_password:
            raise ValidationError("Username and new password cannot be empty")
        role = normalize_role(new_role)

        salt = crypto.new_salt()
        digest = crypto.hash_password(new_password, salt, self.config.kdf)

        with transaction(self.config, f"update user '{username}'") as conn:
            cursor = conn.execute(
                """UPDATE users SET password_hash = ?, password_salt = ?, kdf_params = ?, role = ?
                   WHERE username = ?""",
                (digest, salt, self.config.kdf.to_json(), role.value, username)
            )
            updated = cursor.rowcount > 0

        if updated:
            logger.info("Updated user '%s' (role %s)", username, role.value)
        return updated

    def delete_user(self, username: str) -> bool:
        """
        Delete an account and, through the foreign key, all its secrets.

        Returns:
            True if a row was deleted

        Raises:
            ProtectedAccountError: username is the seeded administrator
        """
        username = _clean(username)
        if username == self.config.admin_username:
            logger.warning("Refused to delete protected account '%s'", username)
            raise ProtectedAccountError(f"Cannot delete the '{username}' account")

        with transaction(self.config, f"delete user '{username}'") as conn:
            cursor = conn.execute("DELETE FROM users WHERE username = ?", (username,))
            deleted = cursor.rowcount > 0

        if deleted:
            logger.info("Deleted user '%s'", username)
        return deleted
