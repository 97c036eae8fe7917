"""Git-backed persistence and synchronization."""

from .git import Git, GitError, GIT_TIMEOUT
from .membership import (
    JoinRequestError,
    pending_join_requests,
    submit_join_request,
    approve_join_request,
    reject_join_request,
)
from .repo import Repo, META_FILENAME, REMOTE_NAME, DEFAULT_BRANCH, validate_slug

__all__ = [
    "Git",
    "GitError",
    "GIT_TIMEOUT",
    "JoinRequestError",
    "pending_join_requests",
    "submit_join_request",
    "approve_join_request",
    "reject_join_request",
    "Repo",
    "META_FILENAME",
    "REMOTE_NAME",
    "DEFAULT_BRANCH",
    "validate_slug",
]
