"""Ed25519 identity generation and persistence."""

import base64
import binascii
import logging
import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple, Union

import nacl.signing

from ..tomlio import dumps_toml


logger = logging.getLogger(__name__)

PUBLIC_KEY_SIZE = 32
PRIVATE_KEY_SIZE = 64  # seed + public key
FINGERPRINT_LENGTH = 8


@dataclass(frozen=True)
class Identity:
    """A forum user's Ed25519 keypair."""
    username: str
    signing_key: nacl.signing.SigningKey

    @property
    def verify_key(self) -> nacl.signing.VerifyKey:
        return self.signing_key.verify_key

    @property
    def public_key(self) -> str:
        """Get base64-encoded public key."""
        return base64.b64encode(bytes(self.verify_key)).decode('utf-8')

    @property
    def private_key(self) -> str:
        """Get base64-encoded 64-byte private key (seed followed by public key)."""
        raw = bytes(self.signing_key) + bytes(self.verify_key)
        return base64.b64encode(raw).decode('utf-8')

    @property
    def fingerprint(self) -> str:
        """Short display identifier: the first characters of the public key."""
        return self.public_key[:FINGERPRINT_LENGTH]


def generate_identity(username: str) -> Identity:
    """
    Generate a new Ed25519 identity.

    Args:
        username: Name the identity posts under

    Returns:
        Identity: Fresh keypair bound to username
    """
    return Identity(username=username, signing_key=nacl.signing.SigningKey.generate())


def _decode_b64(value: str, what: str) -> bytes:
    try:
        return base64.b64decode(value.strip(), validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"decode {what}: {e}") from e


def public_key_from_b64(public_key_b64: str) -> nacl.signing.VerifyKey:
    """
    Create VerifyKey from base64-encoded public key.

    Args:
        public_key_b64: Base64-encoded public key

    Returns:
        VerifyKey: Ed25519 public key

    Raises:
        ValueError: If the key is not valid base64 or not 32 bytes long
    """
    key_bytes = _decode_b64(public_key_b64, "public key")
    if len(key_bytes) != PUBLIC_KEY_SIZE:
        raise ValueError(
            f"public key: expected {PUBLIC_KEY_SIZE} bytes, got {len(key_bytes)}"
        )
    return nacl.signing.VerifyKey(key_bytes)


def identity_from_b64(username: str, public_key_b64: str, private_key_b64: str) -> Identity:
    """
    Rebuild an identity from its base64-encoded key material.

    The private key must be the 64-byte seed+public form and its public half
    must match public_key_b64.
    """
    priv = _decode_b64(private_key_b64, "private key")
    if len(priv) != PRIVATE_KEY_SIZE:
        raise ValueError(f"private key: expected {PRIVATE_KEY_SIZE} bytes, got {len(priv)}")
    signing_key = nacl.signing.SigningKey(priv[:32])
    verify_key = public_key_from_b64(public_key_b64)
    if bytes(signing_key.verify_key) != bytes(verify_key) or priv[32:] != bytes(verify_key):
        raise ValueError("private key does not match public key")
    return Identity(username=username, signing_key=signing_key)


def default_identity_path() -> Path:
    """Return the identity file location, respecting XDG_CONFIG_HOME."""
    base = os.environ.get("XDG_CONFIG_HOME")
    if base:
        return Path(base) / "gitorum" / "identity.toml"
    try:
        return Path.home() / ".config" / "gitorum" / "identity.toml"
    except RuntimeError:
        return Path(".") / "gitorum" / "identity.toml"


def save_identity(identity: Identity, path: Union[str, Path]) -> Path:
    """
    Save an identity to a TOML file.

    Parent directories are created with mode 0700 and the file itself is
    written with mode 0600 since it holds the private key.

    Args:
        identity: Identity to save
        path: Destination file

    Returns:
        Path of the written file
    """
    path = Path(path)
    path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)

    content = dumps_toml({
        "username": identity.username,
        "public_key": identity.public_key,
        "private_key": identity.private_key,
    })
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, 'w', encoding='utf-8') as f:
        f.write(content)
    # Restrict permissions even if the file already existed
    path.chmod(0o600)

    logger.debug(f"Saved identity for {identity.username} to {path}")
    return path


def load_identity(path: Union[str, Path]) -> Identity:
    """
    Load an identity from a TOML file.

    Args:
        path: Path to identity file

    Returns:
        Identity: The stored keypair

    Raises:
        OSError: If the file cannot be read
        ValueError: If the file is malformed or the keys are inconsistent
    """
    path = Path(path)
    try:
        data = tomllib.loads(path.read_text(encoding='utf-8'))
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"load identity {path}: {e}") from e

    fields = {}
    for name in ("username", "public_key", "private_key"):
        value = data.get(name)
        if not isinstance(value, str) or not value:
            raise ValueError(f"load identity {path}: missing or invalid '{name}'")
        fields[name] = value

    return identity_from_b64(fields["username"], fields["public_key"], fields["private_key"])


def load_or_create_identity(
    path: Union[str, Path],
    username: str
) -> Tuple[Identity, bool]:
    """
    Load the identity at path, generating and saving one if it is absent.

    Returns:
        Tuple of (identity, created)
    """
    path = Path(path)
    if path.exists():
        return load_identity(path), False

    identity = generate_identity(username)
    save_identity(identity, path)
    logger.info(f"Generated new identity for {username} ({identity.fingerprint})")
    return identity, True


def read_public_key_file(path: Union[str, Path]) -> Optional[str]:
    """
    Read a base64 public key file, returning None if it does not exist.

    Lines starting with '#' are ignored.
    """
    try:
        with open(path, 'r', encoding='utf-8') as f:
            lines = f.readlines()
    except FileNotFoundError:
        return None
    key_lines = [line.strip() for line in lines if not line.startswith('#')]
    return ''.join(key_lines)
