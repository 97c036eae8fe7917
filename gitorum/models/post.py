"""Post data models."""

from datetime import datetime
from enum import Enum
from typing import Dict, Optional
from pydantic import BaseModel, Field


class SigStatus(str, Enum):
    """Signature validation state of a post."""
    VALID = "valid"  # present and verified
    INVALID = "invalid"  # present but verification failed, or unparseable file
    MISSING = "missing"  # no public key on file for the author
    ORPHANED = "orphaned"  # signed correctly but parent hash matches no file


class Post(BaseModel):
    """
    A signed forum post.

    The signed fields are author, pubkey_fingerprint, timestamp_raw, parent
    and body. filename, sig_status and sig_error are read-time metadata and
    never part of the signature.
    """
    author: str = Field(default="", description="Username of the author")
    pubkey_fingerprint: str = Field(
        default="",
        description="First characters of the author's base64 public key"
    )
    timestamp: Optional[datetime] = Field(None, description="Parsed UTC post time")
    timestamp_raw: str = Field(
        default="",
        description="Timestamp exactly as written in the file (RFC3339)"
    )
    parent: str = Field(
        default="",
        description="sha256 hex of the parent file's bytes, empty for thread roots"
    )
    signature: str = Field(default="", description="Base64-encoded Ed25519 signature")
    body: str = Field(default="", description="Raw markdown body")
    filename: str = Field(default="", description="File name inside the thread directory")
    sig_status: SigStatus = Field(default=SigStatus.VALID, description="Verification result")
    sig_error: str = Field(default="", description="Reason when sig_status is not valid")

    def signed_fields(self) -> Dict[str, str]:
        """Front-matter fields covered by the signature, keyed as on disk."""
        return {
            "author": self.author,
            "pubkey": self.pubkey_fingerprint,
            "timestamp": self.timestamp_raw,
            "parent": self.parent,
        }

    @property
    def is_root(self) -> bool:
        return not self.parent

    @property
    def is_placeholder(self) -> bool:
        """True for stand-ins created when a file could not be parsed."""
        return self.timestamp is None
