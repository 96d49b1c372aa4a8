"""Pytest fixtures and utilities for tele-cli tests."""

import json
import tempfile
from pathlib import Path

import pytest

# Add src to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from tele_cli import crypto
from tele_cli.store import JsonStore
from tele_cli.vault import Vault

MASTER_PASSWORD = "hunter2"


@pytest.fixture(autouse=True)
def fast_kdf(monkeypatch):
    """Lower the Argon2 memory cost so the suite does not spend 64 MiB per derivation."""
    monkeypatch.setattr(crypto, "ARGON_MEMORY", 1024)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the caller's TELE_* variables out of the tests."""
    for var in ("TELE_HOME", "TELE_PASSWORD", "TELE_SSHPASS", "TELE_DEBUG"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def temp_vault_dir():
    """Create a temporary directory for vault files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "tele"


@pytest.fixture
def store(temp_vault_dir):
    return JsonStore(temp_vault_dir)


@pytest.fixture
def vault(store):
    return Vault(store)


@pytest.fixture
def test_vault(vault):
    """Create an initialized vault with test destinations."""
    vault.initialize(MASTER_PASSWORD)

    entries = [
        ("box1", "10.0.0.5", "22", "root", "secretpw"),
        ("web", "web.example.com", "2222", "deploy", "d3pl0y!"),
        ("db", "db.internal", "22", "postgres", "pg-pass"),
    ]
    for name, host, port, user, password in entries:
        vault.add_destination(MASTER_PASSWORD, name, host, port, user, password)

    return {
        "vault": vault,
        "path": vault.store.root,
        "password": MASTER_PASSWORD,
        "entries": {e[0]: e for e in entries},
    }


def read_record(vault_dir, name):
    """Load a destination's raw JSON document."""
    return json.loads((Path(vault_dir) / "destinations" / f"{name}.json").read_text())


def write_record(vault_dir, name, doc):
    """Overwrite a destination's raw JSON document."""
    (Path(vault_dir) / "destinations" / f"{name}.json").write_text(json.dumps(doc))
