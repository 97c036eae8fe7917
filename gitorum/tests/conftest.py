"""Shared fixtures for Gitorum tests."""

import subprocess
from typing import Dict, List, Optional

import pytest

from gitorum.crypto import generate_identity
from gitorum.models import ForumMeta
from gitorum.repo import Repo


class MemoryKeyStore:
    """In-memory stand-in for a key directory."""

    def __init__(self, keys: Optional[Dict[str, str]] = None):
        self.keys = dict(keys or {})

    def get(self, username: str) -> Optional[str]:
        return self.keys.get(username)

    def put(self, username: str, public_key_b64: str) -> None:
        self.keys[username] = public_key_b64

    def remove(self, username: str) -> None:
        del self.keys[username]

    def usernames(self) -> List[str]:
        return sorted(self.keys)


@pytest.fixture
def alice():
    return generate_identity("alice")


@pytest.fixture
def bob():
    return generate_identity("bob")


@pytest.fixture
def key_store(alice):
    """Key store that trusts alice only."""
    return MemoryKeyStore({"alice": alice.public_key})


@pytest.fixture
def make_store():
    return MemoryKeyStore


@pytest.fixture
def forum_repo(tmp_path, alice):
    """A freshly initialized forum with alice as admin."""
    meta = ForumMeta(name="Test Forum", description="for tests", admin_pubkey=alice.public_key)
    return Repo.init(tmp_path / "forum", meta, alice)


@pytest.fixture
def bare_remote(tmp_path):
    """An empty bare repository whose HEAD points at main."""
    path = tmp_path / "remote.git"
    subprocess.run(["git", "init", "-q", "--bare", str(path)], check=True)
    subprocess.run(
        ["git", "symbolic-ref", "HEAD", "refs/heads/main"],
        cwd=path, check=True,
    )
    return path
