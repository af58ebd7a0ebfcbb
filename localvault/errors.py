"""
LocalVault - Error Types

Every failure leaves the package as one of these classes, so callers can
render an actionable message without parsing strings.

    VaultError
    ├── ValidationError        empty/missing required input (also ValueError)
    │   └── ProtectedAccountError   policy refused (e.g. deleting "admin")
    ├── DuplicateError         uniqueness violation
    ├── NotFoundError          unknown username / secret id (also LookupError)
    ├── CryptoError            bad key, tampered or malformed ciphertext
    └── StorageError           any other SQLite / I/O fault
"""


class VaultError(Exception):
    """Base class for all LocalVault errors."""


class ValidationError(VaultError, ValueError):
    """A required input is empty, missing or out of range."""


class ProtectedAccountError(ValidationError):
    """The operation is not allowed on a protected account."""


class DuplicateError(VaultError):
    """A record with the same unique key already exists."""


class NotFoundError(VaultError, LookupError):
    """The requested user or secret does not exist."""


class CryptoError(VaultError):
    """Encryption, decryption or key loading failed."""


class StorageError(VaultError):
    """The underlying database failed."""
