"""
Shared pytest fixtures.

Every test gets its own database and key file under tmp_path, and cheap
scrypt parameters so account tests stay fast.
"""

import pytest

from localvault import CredentialStore, ScryptParams, VaultConfig, VaultStore, initialize

# Far below production cost; only for tests
FAST_KDF = ScryptParams(n=2**4, r=8, p=1)


@pytest.fixture
def config(tmp_path):
    return VaultConfig(db_path=tmp_path / "UserDatabase.db", kdf=FAST_KDF)


@pytest.fixture
def initialized(config):
    initialize(config)
    return config


@pytest.fixture
def users(initialized):
    return CredentialStore(initialized)


@pytest.fixture
def vault(initialized):
    return VaultStore(initialized)


@pytest.fixture
def alice_id(users):
    users.add_user("alice", "Secret123!", "basic")
    return users.get_user_id("alice")
