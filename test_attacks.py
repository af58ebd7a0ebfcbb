"""
LocalVault - Attack Tests

Run with: pytest test_attacks.py

What it shows (and why attacks fail):
1) Nothing secret is written to the database file in plaintext.
2) A wrong or missing master key cannot decrypt the vault.
3) Relabelling a row (website, login name) breaks AEAD associated data.
4) Moving a row to another user breaks AEAD associated data.
5) Ciphertext tampering is detected by AES-GCM.
6) Brute-forcing a login digest is per-user work (salted).
"""

import sqlite3
import sys

import pytest

from conftest import FAST_KDF
from localvault import CryptoError, VaultConfig, VaultStore, crypto
from localvault.storage import connect


def _raw(config: VaultConfig) -> sqlite3.Connection:
    """Direct database access, bypassing the stores (the attacker's view)."""
    return connect(config.db_path)


def _file_bytes(config: VaultConfig) -> bytes:
    data = config.db_path.read_bytes()
    wal = config.db_path.with_name(config.db_path.name + "-wal")
    if wal.exists():
        data += wal.read_bytes()
    return data


def test_no_plaintext_at_rest(users, vault, initialized):
    users.add_user("alice", "LoginPassw0rd!")
    alice_id = users.get_user_id("alice")
    vault.add_secret(alice_id, "https://example.com", "alice@example.com", "VerySecretSitePassword")

    data = _file_bytes(initialized)
    assert b"LoginPassw0rd!" not in data
    assert b"VerySecretSitePassword" not in data


def test_wrong_master_key(initialized, vault, alice_id):
    secret_id = vault.add_secret(alice_id, "https://example.com", "alice", "P@ss1")

    attacker = VaultStore(VaultConfig(
        db_path=initialized.db_path, kdf=FAST_KDF, master_key=crypto.create_master_key()
    ))
    with pytest.raises(CryptoError):
        attacker.get_secret(secret_id, alice_id)
    with pytest.raises(CryptoError):
        attacker.list_secrets(alice_id)


def test_missing_key_file(initialized, vault, alice_id):
    """A copy of the database without its key file is useless."""
    vault.add_secret(alice_id, "https://example.com", "alice", "P@ss1")
    initialized.resolved_key_path.unlink()

    with pytest.raises(CryptoError):
        VaultStore(initialized).list_secrets(alice_id)


@pytest.mark.parametrize("column,value", [
    ("website", "https://evil.com"),
    ("secret_username", "mallory"),
])
def test_relabelled_row_fails(initialized, vault, alice_id, column, value):
    secret_id = vault.add_secret(alice_id, "https://example.com", "alice", "P@ss1")

    conn = _raw(initialized)
    conn.execute(f"UPDATE stored_secrets SET {column} = ? WHERE id = ?", (value, secret_id))
    conn.commit()
    conn.close()

    with pytest.raises(CryptoError):
        vault.get_secret(secret_id, alice_id)


def test_row_moved_to_other_user_fails(initialized, users, vault, alice_id):
    mallory_id = users.add_user("mallory", "pw")
    secret_id = vault.add_secret(alice_id, "https://example.com", "alice", "P@ss1")

    conn = _raw(initialized)
    conn.execute("UPDATE stored_secrets SET user_id = ? WHERE id = ?", (mallory_id, secret_id))
    conn.commit()
    conn.close()

    with pytest.raises(CryptoError):
        vault.list_secrets(mallory_id)


def test_ciphertext_tampering_detected(initialized, vault, alice_id):
    secret_id = vault.add_secret(alice_id, "https://example.com", "alice", "P@ss1")

    conn = _raw(initialized)
    row = conn.execute(
        "SELECT content_ciphertext FROM stored_secrets WHERE id = ?", (secret_id,)
    ).fetchone()
    tampered = bytearray(row["content_ciphertext"])
    tampered[0] ^= 1
    conn.execute(
        "UPDATE stored_secrets SET content_ciphertext = ? WHERE id = ?", (bytes(tampered), secret_id)
    )
    conn.commit()
    conn.close()

    with pytest.raises(CryptoError):
        vault.get_secret(secret_id, alice_id)


def test_truncated_ciphertext_fails_whole_listing(initialized, vault, alice_id):
    """One broken row fails the listing instead of being skipped."""
    vault.add_secret(alice_id, "https://ok.example", "alice", "fine")
    bad_id = vault.add_secret(alice_id, "https://bad.example", "alice", "broken")

    conn = _raw(initialized)
    conn.execute("UPDATE stored_secrets SET content_ciphertext = x'0102' WHERE id = ?", (bad_id,))
    conn.commit()
    conn.close()

    with pytest.raises(CryptoError):
        vault.list_secrets(alice_id)


def test_same_password_different_digests(initialized, users):
    """Salting: identical passwords do not produce identical digests."""
    users.add_user("alice", "Summer2024")
    users.add_user("bob", "Summer2024")

    conn = _raw(initialized)
    digests = [row["password_hash"] for row in conn.execute(
        "SELECT password_hash FROM users WHERE username IN ('alice', 'bob')"
    )]
    conn.close()

    assert len(digests) == 2
    assert digests[0] != digests[1]


if __name__ == "__main__":
    sys.exit(pytest.main([__file__, "-v"]))
