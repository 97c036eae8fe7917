"""Forum structure models: metadata, categories, threads and membership."""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field

from .post import Post


class ForumMeta(BaseModel):
    """
    Forum metadata stored in GITORUM.toml at the repository root.

    Whoever holds the private key matching admin_pubkey is the admin.
    """
    name: str = Field(..., description="Forum display name")
    description: str = Field(default="", description="Forum description")
    admin_pubkey: str = Field(default="", description="Admin's full base64 public key")
    auto_approve_keys: bool = Field(
        default=False,
        description="Approve join requests automatically during admin sync"
    )

    def is_admin(self, public_key_b64: str) -> bool:
        """Check full-key equality with the admin key (never fingerprints)."""
        return bool(self.admin_pubkey) and public_key_b64 == self.admin_pubkey


class CategoryMeta(BaseModel):
    """Per-category metadata stored in <category>/META.toml."""
    name: str = Field(default="", description="Category display name")
    description: str = Field(default="", description="Category description")


class Category(BaseModel):
    """A forum category and the slugs of its valid threads."""
    slug: str = Field(..., description="Directory name of the category")
    name: str = Field(default="", description="Category display name")
    description: str = Field(default="", description="Category description")
    thread_slugs: List[str] = Field(
        default_factory=list,
        description="Sorted slugs of subdirectories holding a root post"
    )


class Thread(BaseModel):
    """All posts of a thread, root first then by timestamp."""
    category: str = Field(..., description="Category slug")
    slug: str = Field(..., description="Thread slug")
    root: Optional[Post] = Field(None, description="Root post; None when it is missing")
    posts: List[Post] = Field(default_factory=list, description="Ordered posts")


class ThreadScan(BaseModel):
    """Lightweight thread summary for list views; only the root is verified."""
    slug: str = Field(..., description="Thread slug")
    root: Post = Field(..., description="Parsed and verified root post")
    reply_count: int = Field(default=0, description="Number of visible replies")
    last_reply_at: str = Field(
        default="",
        description="RFC3339 time of the newest reply, or of the root"
    )


class JoinRequest(BaseModel):
    """A pending membership request awaiting admin approval."""
    username: str = Field(..., description="Requested username")
    public_key: str = Field(..., description="Applicant's base64 public key")


class ForumStatus(BaseModel):
    """Snapshot of a forum node's state."""
    initialized: bool = Field(default=False, description="A repository is open")
    forum_name: str = Field(default="Gitorum", description="Forum display name")
    username: str = Field(default="", description="Local identity's username")
    pubkey: str = Field(default="", description="Local identity's public key")
    is_admin: bool = Field(default=False, description="Local identity is the admin")
    synced: bool = Field(default=True, description="Local HEAD matches the remote")
    remote_url: str = Field(default="", description="URL of the origin remote")
    last_sync_at: Optional[datetime] = Field(None, description="Time of last successful pull")
