"""Post file format, signing and verification."""

import hashlib
import logging
import re
import time
import tomllib
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, ValidationError

from ..crypto import Identity, canonical_form, sign_data, signature_error
from ..models import Post, SigStatus
from ..tomlio import dumps_toml
from .keystore import PublicKeyStore


logger = logging.getLogger(__name__)

FENCE = "+++"
ROOT_FILENAME = "0000_root.md"
POST_SUFFIX = ".md"
TOMBSTONE_SUFFIX = ".tomb"
TOMBSTONE_BODY = "deleted"

REPLY_FILENAME_RE = re.compile(r"^([0-9]{13})_([0-9a-f]{8})\.md$")

_RFC3339_RE = re.compile(
    r"^\d{4}-\d{2}-\d{2}[Tt]\d{2}:\d{2}:\d{2}(\.\d+)?([Zz]|[+-]\d{2}:\d{2})$",
    re.ASCII,
)
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class PostParseError(ValueError):
    """A post file could not be parsed."""

    def __init__(self, filename: str, reason: str):
        super().__init__(f"parse {filename}: {reason}")
        self.filename = filename
        self.reason = reason


class _FrontMatter(BaseModel):
    """Raw front-matter fields as decoded from the TOML block."""
    model_config = ConfigDict(extra="ignore", strict=True)

    author: str = ""
    pubkey: str = ""
    timestamp: str = ""
    parent: str = ""
    signature: str = ""


def parse_timestamp(value: str) -> datetime:
    """
    Parse an RFC3339 timestamp into an aware UTC datetime.

    Raises:
        ValueError: If value is not RFC3339
    """
    if not _RFC3339_RE.match(value):
        raise ValueError(f"not an RFC3339 timestamp: {value!r}")
    normalized = value.upper().replace("Z", "+00:00")
    fraction = re.search(r"\.(\d+)", normalized)
    if fraction and len(fraction.group(1)) > 6:
        normalized = normalized.replace(fraction.group(0), "." + fraction.group(1)[:6], 1)
    return datetime.fromisoformat(normalized).astimezone(timezone.utc)


def format_timestamp(ts: datetime) -> str:
    return ts.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _split_front_matter(filename: str, text: str) -> Tuple[str, str]:
    lines = text.split("\n")
    if lines[0] != FENCE:
        raise PostParseError(filename, f"file does not begin with front matter fence '{FENCE}'")

    close_at = None
    for i in range(1, len(lines)):
        if lines[i] == FENCE:
            close_at = i
            break
    if close_at is None:
        raise PostParseError(filename, f"front matter closing '{FENCE}' not found")

    # Exactly one blank separator line and one trailing newline are dropped
    body_lines = lines[close_at + 1:]
    if body_lines and body_lines[0] == "":
        body_lines = body_lines[1:]
    body = "\n".join(body_lines)
    if body.endswith("\n"):
        body = body[:-1]

    return "\n".join(lines[1:close_at]), body


def parse_post(filename: str, content: bytes) -> Post:
    """
    Parse a post file with TOML front matter fenced by '+++'.

    sig_status is left at VALID; call verify_post_signature to check it.

    Args:
        filename: File name, stored on the post and used in error messages
        content: Raw file bytes

    Returns:
        Parsed post

    Raises:
        PostParseError: If the fences, the metadata block or the timestamp
            are malformed
    """
    try:
        text = content.decode('utf-8')
    except UnicodeDecodeError as e:
        raise PostParseError(filename, f"not valid UTF-8: {e}") from e

    block, body = _split_front_matter(filename, text)

    try:
        fm = _FrontMatter.model_validate(tomllib.loads(block))
    except tomllib.TOMLDecodeError as e:
        raise PostParseError(filename, f"decode TOML front matter: {e}") from e
    except ValidationError as e:
        raise PostParseError(filename, f"invalid front matter fields: {e}") from e

    try:
        ts = parse_timestamp(fm.timestamp)
    except ValueError as e:
        raise PostParseError(filename, f"parse timestamp: {e}") from e

    return Post(
        author=fm.author,
        pubkey_fingerprint=fm.pubkey,
        timestamp=ts,
        timestamp_raw=fm.timestamp,
        parent=fm.parent,
        signature=fm.signature,
        body=body,
        filename=filename,
    )


def format_post(post: Post) -> bytes:
    """
    Serialize a post to its on-disk representation:

        +++
        author    = "..."
        pubkey    = "..."
        timestamp = "..."
        parent    = "..."
        signature = "..."
        +++

        <body>

    The file always ends with one newline after the body, which parse_post
    strips again so the body round-trips exactly.
    """
    front = dumps_toml({
        "author": post.author,
        "pubkey": post.pubkey_fingerprint,
        "timestamp": post.timestamp_raw,
        "parent": post.parent,
        "signature": post.signature,
    }, align=True)
    return f"{FENCE}\n{front}{FENCE}\n\n{post.body}\n".encode('utf-8')


def post_hash(content: bytes) -> str:
    """Hex SHA-256 of a post file's bytes; the parent value of a direct reply."""
    return hashlib.sha256(content).hexdigest()


def sign_post(identity: Identity, parent: str, body: str) -> Post:
    """
    Create a new post signed by identity.

    Args:
        identity: Author's identity
        parent: post_hash of the parent file, or "" for a thread root
        body: Markdown body

    Returns:
        A post with sig_status VALID; the caller assigns filename
    """
    ts = datetime.now(timezone.utc).replace(microsecond=0)
    post = Post(
        author=identity.username,
        pubkey_fingerprint=identity.fingerprint,
        timestamp=ts,
        timestamp_raw=format_timestamp(ts),
        parent=parent,
        body=body,
        sig_status=SigStatus.VALID,
    )
    post.signature = sign_data(canonical_form(post.signed_fields(), body), identity.signing_key)
    return post


def sign_tombstone(identity: Identity, target_content: bytes) -> Post:
    """Sign a tombstone whose parent is the hash of the suppressed file."""
    return sign_post(identity, post_hash(target_content), TOMBSTONE_BODY)


def verify_post_signature(post: Post, key_store: PublicKeyStore) -> Tuple[SigStatus, str]:
    """
    Verify a post against its author's key and record the result on the post.

    Never raises: a missing key yields MISSING, an unreadable key or a bad
    signature yields INVALID.

    Returns:
        Tuple of (status, error_detail)
    """
    try:
        pubkey_b64 = key_store.get(post.author)
    except (OSError, ValueError) as e:
        status, error = SigStatus.INVALID, f"read key for author {post.author!r}: {e}"
    else:
        if pubkey_b64 is None:
            status, error = SigStatus.MISSING, f"no public key for author {post.author!r}"
        else:
            canonical = canonical_form(post.signed_fields(), post.body)
            reason = signature_error(canonical, post.signature, pubkey_b64)
            if reason is None:
                status, error = SigStatus.VALID, ""
            else:
                status, error = SigStatus.INVALID, reason

    post.sig_status = status
    post.sig_error = error
    return status, error


def new_reply_filename(body: str, now: Optional[datetime] = None) -> str:
    """
    Generate the filename for a new reply: {unix_millis}_{sha256(body)[:8]}.md

    Args:
        body: Reply body
        now: Time to embed (defaults to the current time)
    """
    if now is None:
        millis = time.time_ns() // 1_000_000
    else:
        millis = (now.astimezone(timezone.utc) - _EPOCH) // timedelta(milliseconds=1)
    digest = hashlib.sha256(body.encode('utf-8')).hexdigest()[:8]
    return f"{millis:013d}_{digest}{POST_SUFFIX}"


def filename_time(name: str) -> Optional[datetime]:
    """Extract the UTC time embedded in a reply filename, if any."""
    match = REPLY_FILENAME_RE.match(name)
    if match is None:
        return None
    return _EPOCH + timedelta(milliseconds=int(match.group(1)))


def is_reply_filename(name: str) -> bool:
    return REPLY_FILENAME_RE.match(name) is not None


def tombstone_filename(name: str) -> str:
    """Name of the tombstone that suppresses the post called name."""
    return name + TOMBSTONE_SUFFIX
