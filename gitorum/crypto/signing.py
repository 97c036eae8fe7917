"""Canonical form construction, signing and verification."""

import base64
import binascii
from typing import Mapping, Optional, Union

import nacl.exceptions
import nacl.signing

from .keys import public_key_from_b64


SIGNATURE_FIELD = "signature"


def canonical_form(fields: Mapping[str, str], body: str) -> bytes:
    """
    Build the byte sequence that is signed for a post.

    Every field except "signature" is written as a "key=value" line, keys
    sorted by their UTF-8 bytes, followed by one blank line and the body
    verbatim:

        author=alice
        parent=
        pubkey=ABCDEFGH
        timestamp=2026-02-17T10:00:00Z

        Hello world

    Args:
        fields: Front-matter fields (a "signature" entry is ignored)
        body: Raw post body

    Returns:
        UTF-8 encoded canonical form
    """
    keys = sorted(
        (k for k in fields if k != SIGNATURE_FIELD),
        key=lambda k: k.encode('utf-8')
    )
    lines = [f"{k}={fields[k]}\n" for k in keys]
    return (''.join(lines) + "\n" + body).encode('utf-8')


def sign_data(data: bytes, private_key: nacl.signing.SigningKey) -> str:
    """
    Sign data with Ed25519 private key.

    Args:
        data: Data to sign
        private_key: Ed25519 private key

    Returns:
        Base64-encoded signature
    """
    signed = private_key.sign(data)
    # Extract just the signature (first 64 bytes of the signed message)
    signature = signed.signature
    return base64.b64encode(signature).decode('utf-8')


def signature_error(
    data: bytes,
    signature_b64: str,
    public_key: Union[nacl.signing.VerifyKey, str]
) -> Optional[str]:
    """
    Check an Ed25519 signature and describe why it fails.

    Never raises for malformed keys or signatures.

    Returns:
        None if the signature is valid, otherwise a human-readable reason
    """
    if isinstance(public_key, str):
        try:
            public_key = public_key_from_b64(public_key)
        except ValueError as e:
            return str(e)

    try:
        signature_bytes = base64.b64decode(signature_b64, validate=True)
    except (binascii.Error, ValueError) as e:
        return f"decode signature: {e}"

    try:
        public_key.verify(data, signature_bytes)
    except (nacl.exceptions.BadSignatureError, ValueError, TypeError):
        return "signature verification failed"
    return None


def verify_signature(
    data: bytes,
    signature_b64: str,
    public_key: Union[nacl.signing.VerifyKey, str]
) -> bool:
    """
    Verify Ed25519 signature.

    Args:
        data: Original data that was signed
        signature_b64: Base64-encoded signature
        public_key: Ed25519 public key (VerifyKey or base64 string)

    Returns:
        True if signature is valid, False otherwise
    """
    return signature_error(data, signature_b64, public_key) is None
