"""Tests for cryptographic operations."""

import base64
import os
import stat

import pytest
from gitorum.crypto import (
    canonical_form,
    default_identity_path,
    generate_identity,
    identity_from_b64,
    load_identity,
    load_or_create_identity,
    public_key_from_b64,
    read_public_key_file,
    save_identity,
    sign_data,
    signature_error,
    verify_signature,
)


def test_identity_generation():
    """Test Ed25519 identity generation."""
    identity = generate_identity("alice")
    assert identity.username == "alice"
    assert len(base64.b64decode(identity.public_key)) == 32
    assert len(base64.b64decode(identity.private_key)) == 64
    assert identity.fingerprint == identity.public_key[:8]


def test_sign_and_verify():
    """Test signing and verification of raw data."""
    identity = generate_identity("alice")
    data = b"Hello, Gitorum!"

    # Sign data
    signature = sign_data(data, identity.signing_key)
    assert len(signature) > 0

    # Verify with correct key, as VerifyKey or base64 string
    assert verify_signature(data, signature, identity.verify_key)
    assert verify_signature(data, signature, identity.public_key)

    # Verify fails with wrong key
    other = generate_identity("bob")
    assert not verify_signature(data, signature, other.public_key)

    # Verify fails with tampered data
    assert not verify_signature(b"Tampered data", signature, identity.public_key)


def test_verification_never_raises():
    """Malformed signatures and keys produce a reason, not an exception."""
    identity = generate_identity("alice")
    data = b"payload"
    signature = sign_data(data, identity.signing_key)

    assert signature_error(data, "not base64!!", identity.public_key).startswith("decode signature")
    assert signature_error(data, signature, "c2hvcnQ=") is not None
    assert signature_error(data, signature, "%%%") is not None
    assert signature_error(data, base64.b64encode(b"x" * 10).decode(), identity.public_key)
    assert signature_error(data, signature, identity.public_key) is None


def test_canonical_form():
    """Canonical form sorts keys, drops the signature and appends the body."""
    fields = {
        "timestamp": "2026-02-17T10:00:00Z",
        "author": "alice",
        "signature": "ignored",
        "pubkey": "ABCDEFGH",
        "parent": "",
    }
    expected = (
        "author=alice\n"
        "parent=\n"
        "pubkey=ABCDEFGH\n"
        "timestamp=2026-02-17T10:00:00Z\n"
        "\n"
        "Hello world"
    ).encode('utf-8')
    assert canonical_form(fields, "Hello world") == expected


def test_canonical_form_deterministic():
    """Insertion order and the signature value do not change the canonical form."""
    a = {"author": "alice", "pubkey": "k", "timestamp": "t", "parent": "p", "signature": "one"}
    b = {"signature": "two", "parent": "p", "timestamp": "t", "pubkey": "k", "author": "alice"}
    assert canonical_form(a, "body") == canonical_form(b, "body")


def test_public_key_from_b64_validates_length():
    """Only 32-byte keys are accepted."""
    identity = generate_identity("alice")
    assert bytes(public_key_from_b64(identity.public_key)) == bytes(identity.verify_key)

    with pytest.raises(ValueError):
        public_key_from_b64(base64.b64encode(b"x" * 31).decode())
    with pytest.raises(ValueError):
        public_key_from_b64("not base64!!")


def test_identity_from_b64_rejects_mismatch():
    """The private key's public half must match the public key."""
    alice = generate_identity("alice")
    bob = generate_identity("bob")

    restored = identity_from_b64("alice", alice.public_key, alice.private_key)
    assert restored.public_key == alice.public_key

    with pytest.raises(ValueError):
        identity_from_b64("alice", bob.public_key, alice.private_key)
    with pytest.raises(ValueError):
        identity_from_b64("alice", alice.public_key, alice.public_key)


def test_save_and_load_identity(tmp_path):
    """Identities survive a save/load round trip with private permissions."""
    identity = generate_identity("alice")
    path = tmp_path / "config" / "gitorum" / "identity.toml"

    save_identity(identity, path)
    assert stat.S_IMODE(os.stat(path).st_mode) == 0o600

    loaded = load_identity(path)
    assert loaded.username == "alice"
    assert loaded.public_key == identity.public_key
    assert loaded.private_key == identity.private_key

    # A loaded identity signs interchangeably with the original
    signature = sign_data(b"data", loaded.signing_key)
    assert verify_signature(b"data", signature, identity.public_key)


def test_load_identity_rejects_bad_files(tmp_path):
    """Malformed or incomplete identity files raise ValueError."""
    path = tmp_path / "identity.toml"

    path.write_text("username = [", encoding='utf-8')
    with pytest.raises(ValueError):
        load_identity(path)

    path.write_text('username = "alice"\n', encoding='utf-8')
    with pytest.raises(ValueError):
        load_identity(path)


def test_load_or_create_identity(tmp_path):
    """The first call creates the identity, later calls load it."""
    path = tmp_path / "identity.toml"

    first, created = load_or_create_identity(path, "alice")
    assert created
    assert path.exists()

    second, created = load_or_create_identity(path, "someone-else")
    assert not created
    assert second.username == "alice"
    assert second.public_key == first.public_key


def test_default_identity_path(monkeypatch, tmp_path):
    """XDG_CONFIG_HOME takes precedence over the home directory."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
    assert default_identity_path() == tmp_path / "gitorum" / "identity.toml"

    monkeypatch.delenv("XDG_CONFIG_HOME")
    assert default_identity_path().parts[-3:] == (".config", "gitorum", "identity.toml")


def test_read_public_key_file(tmp_path):
    """Comment lines are skipped and a missing file yields None."""
    identity = generate_identity("alice")
    path = tmp_path / "alice.pub"
    path.write_text(f"# alice\n{identity.public_key}\n", encoding='utf-8')

    assert read_public_key_file(path) == identity.public_key
    assert read_public_key_file(tmp_path / "missing.pub") is None
