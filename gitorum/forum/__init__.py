"""Post files, thread and category assembly."""

from .keystore import PublicKeyStore, PublicKeyDirectory, validate_username
from .post import (
    ROOT_FILENAME,
    PostParseError,
    parse_post,
    format_post,
    post_hash,
    sign_post,
    sign_tombstone,
    verify_post_signature,
    new_reply_filename,
    tombstone_filename,
)
from .thread import load_thread, scan_thread
from .category import CATEGORY_META_FILENAME, CategoryError, load_category, list_categories
from .tree import ForumTree

__all__ = [
    "PublicKeyStore",
    "PublicKeyDirectory",
    "validate_username",
    "ROOT_FILENAME",
    "PostParseError",
    "parse_post",
    "format_post",
    "post_hash",
    "sign_post",
    "sign_tombstone",
    "verify_post_signature",
    "new_reply_filename",
    "tombstone_filename",
    "load_thread",
    "scan_thread",
    "CATEGORY_META_FILENAME",
    "CategoryError",
    "load_category",
    "list_categories",
    "ForumTree",
]
