"""Thread assembly from a thread directory."""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Union

from ..models import Post, SigStatus, Thread, ThreadScan
from .keystore import PublicKeyStore
from .post import (
    POST_SUFFIX,
    ROOT_FILENAME,
    PostParseError,
    filename_time,
    format_timestamp,
    parse_post,
    post_hash,
    tombstone_filename,
    verify_post_signature,
)


logger = logging.getLogger(__name__)

_UNDATED = datetime.min.replace(tzinfo=timezone.utc)


def _visible_post_files(thread_dir: Path) -> List[Path]:
    """Non-tombstoned .md files of a thread, in filename order."""
    visible = []
    for path in sorted(thread_dir.iterdir(), key=lambda p: p.name):
        if not path.is_file() or not path.name.endswith(POST_SUFFIX):
            continue
        if (thread_dir / tombstone_filename(path.name)).exists():
            continue
        visible.append(path)
    return visible


def _sort_key(post: Post):
    # Root always first; everything else by timestamp, placeholders earliest
    return (post.filename != ROOT_FILENAME, post.timestamp or _UNDATED)


def load_thread(
    category: str,
    slug: str,
    thread_dir: Union[str, Path],
    key_store: PublicKeyStore,
    verify_parents: bool = False
) -> Thread:
    """
    Load every visible post of a thread, verifying each signature.

    A file that fails to parse is kept as an INVALID placeholder carrying
    the parse error so the rest of the thread still renders.

    Args:
        category: Category slug
        slug: Thread slug
        thread_dir: Thread directory
        key_store: Trusted public keys
        verify_parents: Mark validly signed replies whose parent hash
            matches no file in the thread as ORPHANED

    Returns:
        Thread with posts root first, then ascending by timestamp

    Raises:
        FileNotFoundError: If the thread directory does not exist
    """
    thread_dir = Path(thread_dir)
    if not thread_dir.is_dir():
        raise FileNotFoundError(f"thread directory not found: {thread_dir}")

    posts: List[Post] = []
    hashes = set()
    for path in _visible_post_files(thread_dir):
        content = path.read_bytes()
        hashes.add(post_hash(content))
        try:
            post = parse_post(path.name, content)
        except PostParseError as e:
            logger.warning(f"Malformed post in {category}/{slug}: {e}")
            post = Post(filename=path.name, sig_status=SigStatus.INVALID, sig_error=str(e))
        else:
            verify_post_signature(post, key_store)
        posts.append(post)

    if verify_parents:
        _mark_orphans(posts, thread_dir, hashes)

    posts.sort(key=_sort_key)

    thread = Thread(category=category, slug=slug, posts=posts)
    if posts and posts[0].filename == ROOT_FILENAME:
        thread.root = posts[0]
    return thread


def _mark_orphans(posts: List[Post], thread_dir: Path, hashes: set) -> None:
    # Tombstoned files are still valid parents
    for path in thread_dir.iterdir():
        if path.is_file() and path.name.endswith(POST_SUFFIX):
            hashes.add(post_hash(path.read_bytes()))

    for post in posts:
        if post.parent and post.sig_status == SigStatus.VALID and post.parent not in hashes:
            post.sig_status = SigStatus.ORPHANED
            post.sig_error = f"parent {post.parent[:12]} does not match any post in this thread"


def scan_thread(slug: str, thread_dir: Union[str, Path], key_store: PublicKeyStore) -> ThreadScan:
    """
    Summarize a thread cheaply for list views.

    Only the root post is parsed and verified; replies are counted from
    their filenames, and the newest millisecond prefix among them becomes
    last_reply_at.

    Raises:
        FileNotFoundError: If the root post is missing
        PostParseError: If the root post cannot be parsed
    """
    thread_dir = Path(thread_dir)
    root = parse_post(ROOT_FILENAME, (thread_dir / ROOT_FILENAME).read_bytes())
    verify_post_signature(root, key_store)

    reply_count = 0
    newest_reply = None
    for path in _visible_post_files(thread_dir):
        if path.name == ROOT_FILENAME:
            continue
        reply_count += 1
        reply_time = filename_time(path.name)
        if reply_time is not None and (newest_reply is None or reply_time > newest_reply):
            newest_reply = reply_time

    return ThreadScan(
        slug=slug,
        root=root,
        reply_count=reply_count,
        last_reply_at=format_timestamp(newest_reply) if newest_reply else root.timestamp_raw,
    )
