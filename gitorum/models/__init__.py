"""Data models and schemas for Gitorum."""

from .post import Post, SigStatus
from .forum import (
    ForumMeta,
    CategoryMeta,
    Category,
    Thread,
    ThreadScan,
    JoinRequest,
    ForumStatus,
)

__all__ = [
    "Post",
    "SigStatus",
    "ForumMeta",
    "CategoryMeta",
    "Category",
    "Thread",
    "ThreadScan",
    "JoinRequest",
    "ForumStatus",
]
