"""
Configuration for LocalVault.

A VaultConfig is passed explicitly to every component; nothing reads a
global connection string, so each test can point at its own database.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .errors import StorageError


DEFAULT_DB_PATH = Path("UserDatabase.db")

DEFAULT_ADMIN_USERNAME = "admin"
DEFAULT_ADMIN_PASSWORD = "admin123"


@dataclass(frozen=True)
class ScryptParams:
    """
    scrypt cost parameters.

    n = CPU/memory cost (power of 2), r = block size, p = parallelization.
    Memory use is roughly 128 * n * r bytes (2**15 * 8 -> 32 MB).
    """
    n: int = 2**15
    r: int = 8
    p: int = 1

    def to_json(self) -> str:
        return json.dumps({"N": self.n, "r": self.r, "p": self.p}, sort_keys=True)

    @classmethod
    def from_json(cls, raw: str) -> "ScryptParams":
        """Parse a stored kdf_params value; a corrupt value is a StorageError."""
        try:
            data = json.loads(raw)
            params = cls(n=int(data["N"]), r=int(data["r"]), p=int(data["p"]))
            if params.n < 2 or params.n & (params.n - 1) or params.r < 1 or params.p < 1:
                raise ValueError("N must be a power of 2 above 1, r and p positive")
            return params
        except (ValueError, KeyError, TypeError) as e:
            raise StorageError(f"Corrupt scrypt parameters {raw!r}: {e}") from e


@dataclass
class VaultConfig:
    """Storage and key settings shared by the schema manager and both stores."""

    db_path: Path = DEFAULT_DB_PATH
    key_path: Optional[Path] = None
    # Raw 32-byte key; when set the key file is never touched
    master_key: Optional[bytes] = field(default=None, repr=False)
    kdf: ScryptParams = field(default_factory=ScryptParams)
    admin_username: str = DEFAULT_ADMIN_USERNAME
    admin_password: str = field(default=DEFAULT_ADMIN_PASSWORD, repr=False)

    def __post_init__(self):
        self.db_path = Path(self.db_path)
        if self.key_path is not None:
            self.key_path = Path(self.key_path)

    @property
    def resolved_key_path(self) -> Path:
        """Key file location; defaults to the database path with a .key suffix."""
        return self.key_path or self.db_path.with_suffix(".key")
