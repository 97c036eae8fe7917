"""Cryptographic operations for Gitorum."""

from .keys import (
    Identity,
    generate_identity,
    identity_from_b64,
    save_identity,
    load_identity,
    load_or_create_identity,
    default_identity_path,
    public_key_from_b64,
    read_public_key_file,
)
from .signing import canonical_form, sign_data, verify_signature, signature_error

__all__ = [
    "Identity",
    "generate_identity",
    "identity_from_b64",
    "save_identity",
    "load_identity",
    "load_or_create_identity",
    "default_identity_path",
    "public_key_from_b64",
    "read_public_key_file",
    "canonical_form",
    "sign_data",
    "verify_signature",
    "signature_error",
]
