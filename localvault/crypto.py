"""
LocalVault - Cryptography Module

All cryptographic operations live here. Pure functions: no file or
database access, no logging of key material.

Security Architecture:
    1. Login password + per-user salt -> scrypt -> stored digest
    2. Installation master key -> HKDF -> content key
    3. Each stored secret gets a unique random entry key -> AES-256-GCM
    4. Entry keys are wrapped (encrypted) with the content key

Why this layout:
    - scrypt is slow and memory-hard, and the salt defeats precomputed tables
    - AES-256-GCM is authenticated: tampering is detected, not decrypted
    - A fresh nonce per encryption, never a fixed IV
    - Associated data binds each ciphertext to its owner and row
"""

import hashlib
import hmac
import json
import os
import secrets
import string
from dataclasses import dataclass
from typing import Dict, Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from .config import ScryptParams
from .errors import CryptoError


# =============================================================================
# Configuration
# =============================================================================

KEY_SIZE = 32            # 256-bit keys
NONCE_SIZE = 12          # 96-bit nonce for AES-GCM
SALT_SIZE = 16
DIGEST_SIZE = 32

AEAD_ALGO = "aes256gcm"
CONTENT_KEY_INFO = b"localvault-content-v1"

PASSWORD_SYMBOLS = "!@#$%^&*()_+-="


# =============================================================================
# Password Hashing
# =============================================================================

def new_salt() -> bytes:
    """Random salt for one user record (stored beside the digest, not secret)."""
    return os.urandom(SALT_SIZE)


def hash_password(password: str, salt: bytes, params: Optional[ScryptParams] = None) -> bytes:
    """
    Derive a fixed-length digest from a login password using scrypt.

    Deterministic for the same (password, salt, params), so the digest can
    be recomputed at login and compared. Not reversible.

    Args:
        password: Plaintext password
        salt: Per-user random salt from new_salt()
        params: scrypt cost parameters (defaults to ScryptParams())

    Returns:
        32-byte digest
    """
    params = params or ScryptParams()
    kdf = Scrypt(salt=salt, length=DIGEST_SIZE, n=params.n, r=params.r, p=params.p)
    return kdf.derive(password.encode('utf-8'))


def verify_password(
    password: str,
    salt: bytes,
    expected: bytes,
    params: Optional[ScryptParams] = None
) -> bool:
    """Recompute the digest and compare it in constant time."""
    return constant_compare(hash_password(password, salt, params), expected)


# =============================================================================
# Key Derivation
# =============================================================================

def create_master_key() -> bytes:
    """Random installation key (32 bytes)."""
    return os.urandom(KEY_SIZE)


def derive_content_key(master_key: bytes) -> bytes:
    """
    Derive the key that wraps entry keys from the installation master key.

    HKDF with a fixed info label gives domain separation: the master key
    itself never encrypts anything directly.
    """
    if not isinstance(master_key, bytes) or len(master_key) != KEY_SIZE:
        raise CryptoError(f"Master key must be {KEY_SIZE} bytes")
    h = HKDF(
        algorithm=hashes.SHA256(),
        length=KEY_SIZE,
        salt=None,
        info=CONTENT_KEY_INFO,
    )
    return h.derive(master_key)


# =============================================================================
# Canonical Associated Data
# =============================================================================

def canonical_ad(ad: dict) -> bytes:
    """
    Convert associated data to canonical JSON bytes.

    Same dict always produces the same bytes: sorted keys, compact
    separators, UTF-8 without escaping.
    """
    json_str = json.dumps(ad, separators=(",", ":"), sort_keys=True, ensure_ascii=False)
    return json_str.encode('utf-8')


# =============================================================================
# Encryption (AES-256-GCM)
# =============================================================================

def encrypt(key: bytes, plaintext: bytes, associated_data: dict):
    """
    Encrypt data with AES-256-GCM.

    Returns:
        (nonce, ciphertext) tuple; ciphertext includes the 16-byte tag
    """
    nonce = os.urandom(NONCE_SIZE)
    aesgcm = AESGCM(key)
    ciphertext = aesgcm.encrypt(nonce, plaintext, canonical_ad(associated_data))
    return nonce, ciphertext


def decrypt(key: bytes, nonce: bytes, ciphertext: bytes, associated_data: dict) -> bytes:
    """
    Decrypt AES-256-GCM ciphertext.

    Raises:
        CryptoError: tampered data, wrong key, wrong associated data, or
            values that are not well-formed (bad nonce, truncated input)
    """
    try:
        aesgcm = AESGCM(key)
        return aesgcm.decrypt(nonce, ciphertext, canonical_ad(associated_data))
    except InvalidTag:
        raise CryptoError("Authentication failed: ciphertext or context was modified") from None
    except (ValueError, TypeError) as e:
        raise CryptoError(f"Malformed ciphertext: {e}") from e


# =============================================================================
# Secret Encryption (envelope)
# =============================================================================

@dataclass(frozen=True)
class SealedSecret:
    """Everything stored for one encrypted secret."""
    key_nonce: bytes
    key_wrapped: bytes
    content_nonce: bytes
    content_ciphertext: bytes


def create_entry_key() -> bytes:
    """Random key for one stored secret."""
    return os.urandom(KEY_SIZE)


def _entry_ad(ctx: str, owner_id: int, entry_uid: str) -> Dict:
    return {
        "ctx": ctx,
        "owner_id": owner_id,
        "entry_uid": entry_uid,
        "aead": AEAD_ALGO,
    }


def wrap_entry_key(content_key: bytes, entry_key: bytes, owner_id: int, entry_uid: str):
    """Encrypt an entry key under the content key. Returns (nonce, wrapped_key)."""
    return encrypt(content_key, entry_key, _entry_ad("ke_wrap", owner_id, entry_uid))


def unwrap_entry_key(
    content_key: bytes,
    nonce: bytes,
    wrapped_key: bytes,
    owner_id: int,
    entry_uid: str
) -> bytes:
    """Decrypt an entry key. AD must match the wrap exactly."""
    return decrypt(content_key, nonce, wrapped_key, _entry_ad("ke_wrap", owner_id, entry_uid))


def encrypt_secret(
    content_key: bytes,
    plaintext: str,
    owner_id: int,
    entry_uid: str,
    website: str,
    secret_username: str
) -> SealedSecret:
    """
    Encrypt one website password with envelope encryption.

    The website and login name are stored in plaintext so they can be
    listed, but they are authenticated through the associated data: if
    someone edits them (or the owner id) in the database, decryption
    fails instead of showing a password under the wrong label.

    Args:
        content_key: From derive_content_key()
        plaintext: The password to protect
        owner_id: users.id of the owner
        entry_uid: Random per-row identifier
        website: Label/URL stored with the secret
        secret_username: Login name stored with the secret

    Returns:
        SealedSecret with both nonces and ciphertexts
    """
    entry_key = create_entry_key()

    ad = _entry_ad("secret", owner_id, entry_uid)
    ad["website"] = website
    ad["secret_username"] = secret_username
    content_nonce, content_ct = encrypt(entry_key, plaintext.encode('utf-8'), ad)

    key_nonce, key_wrapped = wrap_entry_key(content_key, entry_key, owner_id, entry_uid)
    return SealedSecret(key_nonce, key_wrapped, content_nonce, content_ct)


def decrypt_secret(
    content_key: bytes,
    sealed: SealedSecret,
    owner_id: int,
    entry_uid: str,
    website: str,
    secret_username: str
) -> str:
    """
    Reverse encrypt_secret(). All context values must match exactly.

    Raises:
        CryptoError: wrong key, tampering, relabelled row, malformed data
    """
    entry_key = unwrap_entry_key(
        content_key, sealed.key_nonce, sealed.key_wrapped, owner_id, entry_uid
    )

    ad = _entry_ad("secret", owner_id, entry_uid)
    ad["website"] = website
    ad["secret_username"] = secret_username
    plaintext = decrypt(entry_key, sealed.content_nonce, sealed.content_ciphertext, ad)

    try:
        return plaintext.decode('utf-8')
    except UnicodeDecodeError as e:
        raise CryptoError(f"Decrypted secret is not valid UTF-8: {e}") from e


# =============================================================================
# Password Generation
# =============================================================================

def generate_password(length: int = 20, use_symbols: bool = True) -> str:
    """
    Generate a strong random password.

    Character sets: A-Z, a-z, 0-9 and optionally !@#$%^&*()_+-=
    At least one character from every enabled set is included.
    """
    classes = [string.ascii_uppercase, string.ascii_lowercase, string.digits]
    if use_symbols:
        classes.append(PASSWORD_SYMBOLS)
    if length < len(classes):
        raise ValueError(f"Password length must be at least {len(classes)}")

    # secrets uses os.urandom()
    rng = secrets.SystemRandom()
    chars = ''.join(classes)
    password = [rng.choice(c) for c in classes]
    password += [rng.choice(chars) for _ in range(length - len(classes))]
    rng.shuffle(password)
    return ''.join(password)


# =============================================================================
# Helpers
# =============================================================================

def constant_compare(a: bytes, b: bytes) -> bool:
    """
    Compare two byte strings in constant time.

    a == b returns on the first mismatch, which leaks how many bytes
    matched through timing.
    """
    return hmac.compare_digest(a, b)


def fingerprint(key: bytes) -> str:
    """Short non-reversible identifier for a key, safe to log."""
    return hashlib.sha256(key).hexdigest()[:12]
