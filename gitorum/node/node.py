"""Forum node: the process-level owner of identity, repository and sync state."""

import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Tuple, Union

from ..crypto import Identity, generate_identity, save_identity, default_identity_path
from ..forum import (
    CATEGORY_META_FILENAME,
    ROOT_FILENAME,
    format_post,
    new_reply_filename,
    post_hash,
    sign_post,
    validate_username,
)
from ..models import (
    Category,
    ForumMeta,
    ForumStatus,
    JoinRequest,
    Post,
    Thread,
    ThreadScan,
)
from ..repo import REMOTE_NAME, GitError, JoinRequestError, Repo, validate_slug


logger = logging.getLogger(__name__)


class ForumNode:
    """
    Gitorum forum node.

    Holds the local identity, the repository handle and the time of the last
    successful sync. These three are shared between concurrent readers and
    the setup/sync operations, so they are only touched under one lock.
    Repository operations themselves are blocking and run one at a time per
    process.
    """

    def __init__(
        self,
        repo_path: Union[str, Path],
        identity: Optional[Identity] = None,
        repo: Optional[Repo] = None,
        identity_path: Optional[Union[str, Path]] = None
    ):
        """
        Initialize a forum node.

        Args:
            repo_path: Working tree the forum lives in (may not exist yet)
            identity: Local identity, if one is already loaded
            repo: Open repository, or None if the forum is not set up yet
            identity_path: Where setup() saves a generated identity
        """
        self.repo_path = Path(repo_path)
        self.identity_path = Path(identity_path) if identity_path else default_identity_path()

        self._lock = threading.Lock()
        self._identity = identity
        self._repo = repo
        self._last_sync_at: Optional[datetime] = None

    @classmethod
    def open(cls, repo_path: Union[str, Path], identity: Optional[Identity] = None, **kwargs) -> "ForumNode":
        """Create a node, opening the repository at repo_path if one exists."""
        try:
            repo = Repo.open(repo_path)
        except FileNotFoundError:
            logger.info(f"No forum repository at {repo_path}; waiting for setup")
            repo = None
        return cls(repo_path, identity=identity, repo=repo, **kwargs)

    # Shared state

    def _snapshot(self) -> Tuple[Optional[Identity], Optional[Repo], Optional[datetime]]:
        with self._lock:
            return self._identity, self._repo, self._last_sync_at

    @property
    def identity(self) -> Optional[Identity]:
        return self._snapshot()[0]

    @property
    def repo(self) -> Optional[Repo]:
        return self._snapshot()[1]

    @property
    def last_sync_at(self) -> Optional[datetime]:
        return self._snapshot()[2]

    def _require_repo(self) -> Repo:
        repo = self.repo
        if repo is None:
            raise RuntimeError("forum not initialized")
        return repo

    def _require_writer(self) -> Tuple[Identity, Repo]:
        identity, repo, _ = self._snapshot()
        if identity is None:
            raise RuntimeError("no identity configured")
        if repo is None:
            raise RuntimeError("forum not initialized")
        return identity, repo

    def require_admin(self) -> Tuple[Identity, Repo]:
        """
        Ensure the local identity is the forum admin.

        Returns:
            Tuple of (identity, repo)

        Raises:
            RuntimeError: If there is no identity or no repository
            PermissionError: If the identity's full public key is not the admin key
        """
        identity, repo = self._require_writer()
        meta = repo.read_meta()
        if not meta.is_admin(identity.public_key):
            raise PermissionError("admin access required")
        return identity, repo

    # Status, setup and sync

    def status(self) -> ForumStatus:
        """Report identity, admin role and synchronization state."""
        identity, repo, last_sync_at = self._snapshot()
        status = ForumStatus(last_sync_at=last_sync_at)

        if identity is not None:
            status.username = identity.username
            status.pubkey = identity.public_key

        if repo is not None:
            status.initialized = True
            try:
                meta = repo.read_meta()
            except (OSError, ValueError) as e:
                logger.warning(f"Unable to read forum metadata: {e}")
            else:
                status.forum_name = meta.name
                if identity is not None:
                    status.is_admin = meta.is_admin(identity.public_key)
            status.synced, status.remote_url = repo.is_synced()

        return status

    def setup(
        self,
        username: str,
        forum_name: str,
        description: str = "",
        remote_url: Optional[str] = None
    ) -> Repo:
        """
        Create the forum with the local identity as admin.

        An existing identity is reused; otherwise one is generated for
        username and saved to identity_path. Pushing to remote_url is best
        effort.

        Raises:
            ValueError: If username or forum_name is empty, or a username
                cannot name a key file
            FileExistsError: If the forum is already initialized
        """
        if not username:
            raise ValueError("username is required")
        if not forum_name:
            raise ValueError("forum_name is required")
        validate_username(username)

        with self._lock:
            if self._repo is not None:
                raise FileExistsError("forum is already initialized")

            identity = self._identity
            if identity is not None:
                validate_username(identity.username)
            else:
                identity = generate_identity(username)
                save_identity(identity, self.identity_path)

            meta = ForumMeta(name=forum_name, description=description, admin_pubkey=identity.public_key)
            repo = Repo.init(self.repo_path, meta, identity)

            if remote_url:
                try:
                    repo.add_remote(REMOTE_NAME, remote_url)
                    repo.push()
                except GitError as e:
                    logger.warning(f"Setup: unable to publish to {remote_url}: {e}")

            self._identity = identity
            self._repo = repo

        logger.info(f"Forum '{forum_name}' set up by @{identity.username}")
        return repo

    def sync(self) -> List[JoinRequest]:
        """
        Pull from the remote, auto-approve join requests, then push.

        Join requests are approved automatically only when the forum has
        auto_approve_keys set and the local identity is the admin. A failed
        pull is raised; approval and push failures are only logged so the
        already-loaded local content stays available.

        Returns:
            Join requests approved during this sync

        Raises:
            GitError: If pulling fails
        """
        identity, repo, _ = self._snapshot()
        if repo is None:
            raise RuntimeError("forum not initialized")
        repo.pull()

        with self._lock:
            self._last_sync_at = datetime.now(timezone.utc)

        approved = []
        if identity is not None:
            approved = self._auto_approve(identity, repo)

        self._push(repo, "sync")
        return approved

    def _auto_approve(self, identity: Identity, repo: Repo) -> List[JoinRequest]:
        try:
            meta = repo.read_meta()
            if not (meta.auto_approve_keys and meta.is_admin(identity.public_key)):
                return []
            pending = repo.join_requests()
        except (OSError, ValueError) as e:
            logger.warning(f"Sync: unable to check join requests: {e}")
            return []

        approved = []
        for request in pending:
            try:
                approved.append(repo.approve_join_request(identity, request.username))
            except (JoinRequestError, GitError, OSError) as e:
                logger.warning(f"Sync: auto-approve @{request.username} failed: {e}")
            else:
                logger.info(f"Sync: auto-approved join request from @{request.username}")
        return approved

    def _push(self, repo: Repo, context: str) -> None:
        try:
            repo.push()
        except GitError as e:
            logger.warning(f"{context}: push failed: {e}")

    def configure(
        self,
        name: Optional[str] = None,
        description: Optional[str] = None,
        auto_approve_keys: Optional[bool] = None,
        remote_url: Optional[str] = None
    ) -> ForumMeta:
        """
        Update forum metadata and/or the origin remote (admin only).

        Only the arguments that are not None are changed.
        """
        identity, repo = self.require_admin()
        meta = repo.read_meta()
        updates = {
            key: value for key, value in (
                ("name", name),
                ("description", description),
                ("auto_approve_keys", auto_approve_keys),
            ) if value is not None
        }
        if updates:
            meta = meta.model_copy(update=updates)
            repo.update_meta(identity, meta)
            self._push(repo, "configure")
        if remote_url:
            repo.add_remote(REMOTE_NAME, remote_url)
        return meta

    # Reading

    def categories(self) -> List[Category]:
        repo = self.repo
        return repo.tree.categories() if repo else []

    def thread_scans(self, category: str) -> List[ThreadScan]:
        repo = self.repo
        return repo.tree.thread_scans(category) if repo else []

    def thread(self, category: str, slug: str) -> Thread:
        return self._require_repo().tree.thread(category, slug)

    # Writing

    def create_category(self, slug: str, name: str, description: str = "") -> None:
        """Create a category (admin only)."""
        if not name:
            raise ValueError("name is required")
        validate_slug(slug)
        identity, repo = self.require_admin()
        if (repo.path / slug / CATEGORY_META_FILENAME).exists():
            raise FileExistsError(f"category slug already exists: {slug}")
        repo.create_category(identity, slug, name, description)
        self._push(repo, "create_category")

    def new_thread(self, category: str, slug: str, body: str) -> Post:
        """Start a thread with a signed root post."""
        if not body:
            raise ValueError("body is required")
        validate_slug(slug)
        identity, repo = self._require_writer()
        if not (repo.path / category / CATEGORY_META_FILENAME).is_file():
            raise FileNotFoundError(f"category not found: {category}")
        if (repo.path / category / slug).exists():
            raise FileExistsError(f"thread slug already exists: {slug}")

        post = sign_post(identity, "", body)
        post.filename = ROOT_FILENAME
        repo.commit_post(identity, f"{category}/{slug}/{post.filename}", format_post(post))
        self._push(repo, "new_thread")
        return post

    def reply(self, category: str, thread: str, body: str) -> Post:
        """Reply to a thread; the parent is the hash of its root file."""
        if not body:
            raise ValueError("body is required")
        identity, repo = self._require_writer()
        root_path = repo.path / category / thread / ROOT_FILENAME
        try:
            root_content = root_path.read_bytes()
        except FileNotFoundError as e:
            raise FileNotFoundError(f"thread not found: {category}/{thread}") from e

        post = sign_post(identity, post_hash(root_content), body)
        post.filename = new_reply_filename(post.body)
        repo.commit_post(identity, f"{category}/{thread}/{post.filename}", format_post(post))
        self._push(repo, "reply")
        return post

    def delete_post(self, category: str, thread: str, filename: str) -> str:
        """Tombstone a post (admin only); returns the tombstone's relative path."""
        identity, repo = self.require_admin()
        rel_tomb = repo.tombstone_post(identity, category, thread, filename)
        self._push(repo, "delete_post")
        return rel_tomb

    # Membership

    def add_public_key(self, username: str, public_key_b64: str) -> None:
        """Trust a key directly, without a join request (admin only)."""
        if not username or not public_key_b64:
            raise ValueError("username and pubkey are required")
        identity, repo = self.require_admin()
        repo.write_public_key(identity, username, public_key_b64)
        self._push(repo, "add_public_key")

    def request_membership(self) -> JoinRequest:
        """Submit the local identity's join request and publish it."""
        identity, repo = self._require_writer()
        request = repo.submit_join_request(identity)
        self._push(repo, "request_membership")
        return request

    def join_requests(self) -> List[JoinRequest]:
        """Pending join requests (admin only)."""
        _, repo = self.require_admin()
        return repo.join_requests()

    def approve_request(self, username: str) -> JoinRequest:
        """Approve a pending join request (admin only)."""
        if not username:
            raise ValueError("username is required")
        identity, repo = self.require_admin()
        request = repo.approve_join_request(identity, username)
        self._push(repo, "approve_request")
        return request

    def reject_request(self, username: str) -> JoinRequest:
        """Reject a pending join request (admin only)."""
        if not username:
            raise ValueError("username is required")
        identity, repo = self.require_admin()
        request = repo.reject_join_request(identity, username)
        self._push(repo, "reject_request")
        return request
