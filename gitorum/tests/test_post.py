"""Tests for the post file format, signing and verification."""

from datetime import datetime, timezone

import pytest
from gitorum.crypto import generate_identity
from gitorum.forum import (
    PostParseError,
    format_post,
    new_reply_filename,
    parse_post,
    post_hash,
    sign_post,
    sign_tombstone,
    tombstone_filename,
    verify_post_signature,
)
from gitorum.forum.post import filename_time, is_reply_filename, parse_timestamp
from gitorum.models import SigStatus


def test_format_layout(alice):
    """Front matter is aligned TOML between +++ fences, then a blank line and the body."""
    post = sign_post(alice, "", "Hello world")
    text = format_post(post).decode('utf-8')
    lines = text.split("\n")

    assert lines[0] == "+++"
    assert lines[1] == 'author    = "alice"'
    assert lines[2] == f'pubkey    = "{alice.fingerprint}"'
    assert lines[3].startswith('timestamp = "')
    assert lines[4] == 'parent    = ""'
    assert lines[5].startswith('signature = "')
    assert lines[6] == "+++"
    assert lines[7] == ""
    assert text.endswith("Hello world\n")


@pytest.mark.parametrize("body", [
    "Hello world",
    "",
    "line one\nline two",
    "trailing newline\n",
    "\nleading blank line",
    "+++\nfence-like line in body",
    'quotes " and \\ backslashes',
    "unicode: héllo wörld ✓",
])
def test_round_trip(alice, body):
    """format then parse reproduces every field and the body byte-exactly."""
    post = sign_post(alice, "abc123", body)
    post.filename = "1700000000000_deadbeef.md"
    parsed = parse_post(post.filename, format_post(post))

    assert parsed.author == post.author
    assert parsed.pubkey_fingerprint == post.pubkey_fingerprint
    assert parsed.timestamp_raw == post.timestamp_raw
    assert parsed.timestamp == post.timestamp
    assert parsed.parent == post.parent
    assert parsed.signature == post.signature
    assert parsed.body == body

    # Re-formatting the parsed post gives the same bytes
    assert format_post(parsed) == format_post(post)


def test_signature_validity(alice, key_store):
    """A freshly signed post verifies; tampering with any signed field breaks it."""
    post = sign_post(alice, "", "Hello world")
    parsed = parse_post("0000_root.md", format_post(post))
    assert verify_post_signature(parsed, key_store) == (SigStatus.VALID, "")

    for field, value in (
        ("body", "Hello world!"),
        ("author", "mallory"),
        ("parent", "0" * 64),
        ("timestamp_raw", "2000-01-01T00:00:00Z"),
    ):
        tampered = parsed.model_copy(update={field: value})
        if field == "author":
            key_store.put("mallory", alice.public_key)
        status, error = verify_post_signature(tampered, key_store)
        assert status == SigStatus.INVALID, field
        assert error


def test_missing_key(alice, make_store):
    """An author without a key on file is MISSING, not INVALID."""
    post = sign_post(alice, "", "Hello")
    status, error = verify_post_signature(post, make_store())
    assert status == SigStatus.MISSING
    assert "alice" in error
    assert post.sig_status == SigStatus.MISSING


def test_wrong_key(alice, make_store):
    """A key that does not match the signer marks the post INVALID."""
    post = sign_post(alice, "", "Hello")
    store = make_store({"alice": generate_identity("alice").public_key})
    status, _ = verify_post_signature(post, store)
    assert status == SigStatus.INVALID


def test_unreadable_key(alice):
    """A key store that errors yields INVALID instead of raising."""

    class BrokenStore:
        def get(self, username):
            raise OSError("permission denied")

    post = sign_post(alice, "", "Hello")
    status, error = verify_post_signature(post, BrokenStore())
    assert status == SigStatus.INVALID
    assert "permission denied" in error


@pytest.mark.parametrize("content, reason", [
    (b"author = \"alice\"\n", "front matter fence"),
    (b"+++\nauthor = \"alice\"\n", "closing"),
    (b"+++\nauthor = \n+++\n\nbody\n", "TOML"),
    (b"+++\nauthor = 42\ntimestamp = \"2026-02-17T10:00:00Z\"\n+++\n\nbody\n", "front matter fields"),
    (b"+++\nauthor = \"alice\"\ntimestamp = \"yesterday\"\n+++\n\nbody\n", "timestamp"),
    (b"+++\nauthor = \"alice\"\n+++\n\nbody\n", "timestamp"),
])
def test_parse_errors(content, reason):
    """Malformed files raise PostParseError naming the file."""
    with pytest.raises(PostParseError) as exc_info:
        parse_post("broken.md", content)
    assert exc_info.value.filename == "broken.md"
    assert reason in str(exc_info.value)


def test_parse_accepts_rfc3339_variants():
    """Fractional seconds and offsets are normalized to UTC."""
    assert parse_timestamp("2026-02-17T10:00:00Z") == datetime(2026, 2, 17, 10, tzinfo=timezone.utc)
    assert parse_timestamp("2026-02-17T12:00:00+02:00") == datetime(2026, 2, 17, 10, tzinfo=timezone.utc)
    assert parse_timestamp("2026-02-17T10:00:00.123456789Z").microsecond == 123456


def test_post_hash():
    """post_hash is the hex sha-256 of the raw bytes."""
    assert post_hash(b"") == "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
    assert len(post_hash(b"anything")) == 64


def test_new_reply_filename():
    """Reply names embed 13-digit millis and the body hash prefix."""
    now = datetime(2026, 2, 17, 10, 0, 0, 123000, tzinfo=timezone.utc)
    name = new_reply_filename("Hello", now=now)

    millis = int(now.replace(microsecond=0).timestamp()) * 1000 + 123
    assert name == f"{millis:013d}_{post_hash(b'Hello')[:8]}.md"
    assert is_reply_filename(name)
    assert filename_time(name) == now

    # Same instant and body give the same name; a different body does not
    assert new_reply_filename("Hello", now=now) == name
    assert new_reply_filename("Hello!", now=now) != name

    assert not is_reply_filename("0000_root.md")
    assert filename_time("notes.md") is None


def test_filename_time_rejects_odd_prefixes():
    """Only a 13-digit ASCII millisecond prefix yields a time."""
    assert filename_time("²_x.md") is None
    assert filename_time("12345678901234567890_abcdef01.md") is None
    assert filename_time("١٧٠٠٠٠٠٠٠٠٠٠٠_abcdef01.md") is None
    assert filename_time("1700000000000_abcdef01.md") == datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)


def test_tombstone(alice):
    """A tombstone is a signed post whose parent is the target's hash."""
    target = format_post(sign_post(alice, "", "spam"))
    tomb = sign_tombstone(alice, target)

    assert tomb.parent == post_hash(target)
    assert tomb.body
    assert tombstone_filename("1700000000000_deadbeef.md") == "1700000000000_deadbeef.md.tomb"
