"""Tests for data models."""

import tomllib

import pytest
from pydantic import ValidationError
from gitorum.models import ForumMeta, ForumStatus, Post, SigStatus, Thread
from gitorum.tomlio import dumps_toml, toml_string


def test_forum_meta_creation():
    """Test forum metadata model creation and defaults."""
    meta = ForumMeta(name="Gitorum Dev")
    assert meta.name == "Gitorum Dev"
    assert meta.description == ""
    assert meta.admin_pubkey == ""
    assert meta.auto_approve_keys is False

    with pytest.raises(ValidationError):
        ForumMeta(description="no name")


def test_forum_meta_is_admin():
    """Admin checks compare full keys, never fingerprints."""
    meta = ForumMeta(name="f", admin_pubkey="ABCDEFGHIJKLMNOP")
    assert meta.is_admin("ABCDEFGHIJKLMNOP")
    assert not meta.is_admin("ABCDEFGH")
    assert not meta.is_admin("")

    # A forum without an admin key has no admin
    assert not ForumMeta(name="f").is_admin("")


def test_post_defaults():
    """A bare post is an undated placeholder with a VALID default status."""
    post = Post(filename="x.md")
    assert post.is_placeholder
    assert post.is_root
    assert post.sig_status == SigStatus.VALID
    assert Post(parent="abc").is_root is False


def test_signed_fields():
    """Signed fields use the on-disk key names and exclude read-time metadata."""
    post = Post(
        author="alice",
        pubkey_fingerprint="ABCDEFGH",
        timestamp_raw="2026-02-17T10:00:00Z",
        parent="",
        signature="sig",
        filename="0000_root.md",
        sig_status=SigStatus.INVALID,
    )
    assert post.signed_fields() == {
        "author": "alice",
        "pubkey": "ABCDEFGH",
        "timestamp": "2026-02-17T10:00:00Z",
        "parent": "",
    }


def test_thread_defaults():
    """Threads may have no root and no posts."""
    thread = Thread(category="general", slug="hello")
    assert thread.root is None
    assert thread.posts == []


def test_forum_status_defaults():
    """An unconfigured node reports an uninitialized, synced forum."""
    status = ForumStatus()
    assert not status.initialized
    assert status.forum_name == "Gitorum"
    assert status.synced
    assert status.last_sync_at is None


def test_toml_writer_round_trip():
    """Written TOML is readable by tomllib, including escapes."""
    data = {
        "name": 'Quote " backslash \\ tab \t newline \n',
        "description": "unicode ✓ and DEL \x7f",
        "auto_approve_keys": True,
    }
    assert tomllib.loads(dumps_toml(data)) == data
    assert toml_string("plain") == '"plain"'


def test_toml_writer_alignment():
    """Aligned output pads keys so the equals signs line up."""
    text = dumps_toml({"a": "1", "long_key": "2"}, align=True)
    assert text == 'a        = "1"\nlong_key = "2"\n'
