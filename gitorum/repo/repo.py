"""Forum repository: every mutation is one git commit."""

import logging
import re
import tomllib
from pathlib import Path
from typing import List, Mapping, Optional, Sequence, Tuple, Union

from pydantic import ValidationError

from ..crypto import Identity
from ..forum import (
    CATEGORY_META_FILENAME,
    ForumTree,
    PublicKeyDirectory,
    format_post,
    list_categories,
    sign_tombstone,
    tombstone_filename,
    validate_username,
)
from ..forum.keystore import KEY_SUFFIX
from ..forum.tree import KEYS_DIR
from ..models import ForumMeta, JoinRequest
from ..tomlio import dumps_toml
from .git import Git, GitError, author_env
from .membership import (
    approve_join_request,
    pending_join_requests,
    reject_join_request,
    submit_join_request,
)


logger = logging.getLogger(__name__)

META_FILENAME = "GITORUM.toml"
REQUESTS_DIR = "requests"
REMOTE_NAME = "origin"
DEFAULT_BRANCH = "main"

SLUG_RE = re.compile(r"^[a-z0-9][a-z0-9-]*$")


def validate_slug(slug: str) -> str:
    """Slugs are lowercase letters, digits and hyphens."""
    if not SLUG_RE.match(slug or ""):
        raise ValueError(f"invalid slug {slug!r}: use lowercase letters, digits, and hyphens")
    return slug


class Repo:
    """
    A forum working tree managed by git.

    The repository only decides what to write and commit; merging,
    fast-forwarding and transport are left to git itself. A failed write or
    commit raises and is never retried here.
    """

    def __init__(self, path: Union[str, Path], git: Optional[Git] = None):
        self.path = Path(path).resolve()
        self.git = git or Git(self.path)
        self.keys = PublicKeyDirectory(self.path / KEYS_DIR)
        self.requests = PublicKeyDirectory(self.path / REQUESTS_DIR)

    # Construction

    @classmethod
    def init(cls, path: Union[str, Path], meta: ForumMeta, identity: Identity) -> "Repo":
        """
        Create a new forum repository.

        Writes GITORUM.toml and the founding admin's key and records both in
        a single initial commit.

        Raises:
            FileExistsError: If path already holds a git repository
            GitError: If git fails
        """
        path = Path(path)
        if (path / ".git").exists():
            raise FileExistsError(f"repository already exists at {path}")
        path.mkdir(parents=True, exist_ok=True)

        repo = cls(path)
        repo.git.run("init", "-q")
        repo.git.run("symbolic-ref", "HEAD", f"refs/heads/{DEFAULT_BRANCH}")

        repo._write_meta(meta)
        repo.keys.put(identity.username, identity.public_key)
        repo._commit_paths(
            identity,
            "init: initialize forum repository",
            [META_FILENAME, repo._key_rel_path(KEYS_DIR, identity.username)],
        )
        logger.info(f"Initialized forum '{meta.name}' at {repo.path}")
        return repo

    @classmethod
    def open(cls, path: Union[str, Path]) -> "Repo":
        """
        Open an existing forum repository.

        Raises:
            FileNotFoundError: If path is not the root of a git working tree
        """
        path = Path(path)
        if not (path / ".git").exists():
            raise FileNotFoundError(f"no git repository at {path}")
        return cls(path)

    @classmethod
    def clone(cls, url: str, path: Union[str, Path]) -> "Repo":
        """Clone a remote forum repository into path."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        Git(path.parent).run("clone", "-q", "--origin", REMOTE_NAME, url, str(path.resolve()))
        repo = cls(path)
        if not (repo.path / META_FILENAME).is_file():
            logger.warning(f"{META_FILENAME} not found in {repo.path}; this may not be a Gitorum forum")
        return repo

    # Reading

    @property
    def tree(self) -> ForumTree:
        """Reader over the current working tree."""
        return ForumTree(self.path)

    def read_meta(self) -> ForumMeta:
        """
        Read forum metadata from GITORUM.toml.

        Raises:
            OSError: If the file cannot be read
            ValueError: If it is malformed
        """
        try:
            data = tomllib.loads((self.path / META_FILENAME).read_text(encoding='utf-8'))
            return ForumMeta.model_validate(data)
        except (tomllib.TOMLDecodeError, ValidationError) as e:
            raise ValueError(f"read {META_FILENAME}: {e}") from e

    def categories(self) -> List[str]:
        """Slugs of all category directories, sorted."""
        return list_categories(self.path)

    def join_requests(self) -> List[JoinRequest]:
        """Pending join requests, excluding users that already have a key."""
        return pending_join_requests(self.requests, self.keys)

    # Mutations

    def commit_files(
        self,
        identity: Identity,
        message: str,
        changes: Mapping[str, Optional[bytes]]
    ) -> None:
        """
        Write and delete files, then record exactly those paths in one commit.

        If the paths end up unchanged no commit is made.

        Args:
            identity: Author and committer of the commit
            message: Commit message
            changes: Relative path to new content, or None to delete the file

        Raises:
            OSError: If a file cannot be written or deleted
            GitError: If staging or committing fails
        """
        for rel_path, content in changes.items():
            abs_path = self._resolve(rel_path)
            if content is None:
                abs_path.unlink()
            else:
                abs_path.parent.mkdir(parents=True, exist_ok=True)
                abs_path.write_bytes(content)
        self._commit_paths(identity, message, list(changes))

    def commit_post(self, identity: Identity, rel_path: str, content: bytes) -> None:
        """Write a single post file and commit it."""
        self.commit_files(identity, f"post: add {rel_path}", {rel_path: content})

    def write_public_key(self, identity: Identity, username: str, public_key_b64: str) -> None:
        """Add or replace a trusted key in keys/ and commit it."""
        self.keys.put(username, public_key_b64)
        self._commit_paths(
            identity,
            f"keys: add public key for {username}",
            [self._key_rel_path(KEYS_DIR, username)],
        )

    def create_category(self, identity: Identity, slug: str, name: str, description: str = "") -> None:
        """Create <slug>/META.toml and commit it."""
        validate_slug(slug)
        content = dumps_toml({"name": name, "description": description})
        self.commit_files(
            identity,
            f"category: add {slug}",
            {f"{slug}/{CATEGORY_META_FILENAME}": content.encode('utf-8')},
        )

    def update_meta(self, identity: Identity, meta: ForumMeta) -> None:
        """Rewrite GITORUM.toml and commit it."""
        self._write_meta(meta)
        self._commit_paths(identity, "config: update forum metadata", [META_FILENAME])

    def tombstone_post(self, identity: Identity, category: str, thread: str, filename: str) -> str:
        """
        Suppress a post by committing a signed tombstone next to it.

        Returns:
            Relative path of the tombstone

        Raises:
            FileNotFoundError: If the post does not exist
        """
        rel_post = f"{category}/{thread}/{filename}"
        content = self._resolve(rel_post).read_bytes()
        tomb = sign_tombstone(identity, content)
        tomb.filename = tombstone_filename(filename)
        rel_tomb = f"{category}/{thread}/{tomb.filename}"
        self.commit_files(identity, f"delete: tombstone {rel_post}", {rel_tomb: format_post(tomb)})
        return rel_tomb

    # Membership

    def submit_join_request(self, identity: Identity) -> JoinRequest:
        """
        Commit requests/<username>.pub for identity.

        Raises:
            JoinRequestError: If already pending or already approved
        """
        request = submit_join_request(
            self.requests,
            self.keys,
            JoinRequest(username=identity.username, public_key=identity.public_key),
        )
        self._commit_paths(
            identity,
            f"request: join request from {identity.username}",
            [self._key_rel_path(REQUESTS_DIR, identity.username)],
        )
        return request

    def approve_join_request(self, admin: Identity, username: str) -> JoinRequest:
        """
        Move requests/<username>.pub to keys/<username>.pub in one commit.

        Raises:
            JoinRequestError: If no request is pending or the user is already approved
        """
        request = approve_join_request(self.requests, self.keys, username)
        self._commit_paths(
            admin,
            f"keys: approve join request from {username}",
            [
                self._key_rel_path(KEYS_DIR, username),
                self._key_rel_path(REQUESTS_DIR, username),
            ],
        )
        return request

    def reject_join_request(self, admin: Identity, username: str) -> JoinRequest:
        """Delete requests/<username>.pub in one commit; no key is written."""
        request = reject_join_request(self.requests, self.keys, username)
        self._commit_paths(
            admin,
            f"request: reject join request from {username}",
            [self._key_rel_path(REQUESTS_DIR, username)],
        )
        return request

    # Remotes and synchronization

    def add_remote(self, name: str, url: str) -> None:
        """Add a named remote, replacing any existing remote of that name."""
        if self._remote_url(name) is not None:
            self.git.run("remote", "remove", name)
        self.git.run("remote", "add", name, url)

    def current_branch(self) -> str:
        return self.git.output("symbolic-ref", "--short", "HEAD")

    def head(self) -> str:
        return self.git.output("rev-parse", "HEAD")

    def is_synced(self) -> Tuple[bool, str]:
        """
        Compare local state with the origin remote.

        Returns:
            Tuple of (synced, remote_url). Without a remote there is nothing
            to sync and (True, "") is returned. A dirty working tree or a
            missing remote tracking ref counts as not synced.
        """
        remote_url = self._remote_url(REMOTE_NAME)
        if remote_url is None:
            return True, ""

        try:
            if self.git.output("status", "--porcelain"):
                return False, remote_url
            head = self.head()
            remote_ref = self._tracking_ref(self.current_branch())
        except GitError as e:
            logger.debug(f"Sync status unavailable: {e}")
            return False, remote_url
        return remote_ref is not None and head == remote_ref, remote_url

    def pull(self) -> None:
        """
        Fetch from origin and merge the remote branch into the current one.

        A repository without a remote, a remote that does not have the branch
        yet, and an already up-to-date branch all count as success. A
        conflicting merge is aborted and raised.

        Raises:
            GitError: If fetching or merging fails or times out
        """
        if self._remote_url(REMOTE_NAME) is None:
            return

        branch = self.current_branch()
        self.git.run("fetch", "-q", REMOTE_NAME)
        remote_ref = self._tracking_ref(branch)
        if remote_ref is None:
            logger.debug(f"Remote has no branch {branch} yet; nothing to pull")
            return

        result = self.git.run(
            "merge", "--no-edit", "-q", f"refs/remotes/{REMOTE_NAME}/{branch}",
            check=False, env=author_env(None),
        )
        if result.returncode != 0:
            self.git.run("merge", "--abort", check=False)
            message = (result.stderr or result.stdout).strip() or "merge failed"
            raise GitError(("merge", f"{REMOTE_NAME}/{branch}"), message, result.returncode)
        logger.info(f"Pulled {REMOTE_NAME}/{branch}")

    def push(self) -> None:
        """
        Push the current branch to origin.

        No remote or nothing to push counts as success.

        Raises:
            GitError: If the push is rejected, fails or times out
        """
        if self._remote_url(REMOTE_NAME) is None:
            return
        branch = self.current_branch()
        # Pushing through the named remote also updates its tracking ref
        self.git.run("push", "-q", REMOTE_NAME, f"{branch}:{branch}")
        logger.info(f"Pushed {branch} to {REMOTE_NAME}")

    # Internal helpers

    def _resolve(self, rel_path: str) -> Path:
        """Absolute path of rel_path, refusing anything outside the working tree."""
        abs_path = (self.path / rel_path).resolve()
        if abs_path == self.path or self.path not in abs_path.parents:
            raise ValueError(f"path escapes repository: {rel_path}")
        if ".git" in abs_path.relative_to(self.path).parts:
            raise ValueError(f"refusing to write inside .git: {rel_path}")
        return abs_path

    def _key_rel_path(self, directory: str, username: str) -> str:
        return f"{directory}/{validate_username(username)}{KEY_SUFFIX}"

    def _write_meta(self, meta: ForumMeta) -> None:
        content = dumps_toml(meta.model_dump(mode='json'))
        (self.path / META_FILENAME).write_text(content, encoding='utf-8')

    def _commit_paths(self, identity: Identity, message: str, rel_paths: Sequence[str]) -> None:
        for rel_path in rel_paths:
            self._resolve(rel_path)
        self.git.run("add", "-A", "--", *rel_paths)
        # Rewriting identical content stages nothing; that is not a failure
        staged = self.git.run("diff", "--cached", "--quiet", "--", *rel_paths, check=False)
        if staged.returncode == 0:
            logger.debug(f"Nothing to commit for '{message}'")
            return
        self.git.run(
            "commit", "-q", "-m", message, "--", *rel_paths,
            env=author_env(identity),
        )
        logger.debug(f"Committed '{message}' as {identity.username}")

    def _remote_url(self, name: str) -> Optional[str]:
        result = self.git.run("remote", "get-url", name, check=False)
        if result.returncode != 0:
            return None
        return result.stdout.strip()

    def _tracking_ref(self, branch: str) -> Optional[str]:
        result = self.git.run(
            "rev-parse", "--verify", "-q", f"refs/remotes/{REMOTE_NAME}/{branch}",
            check=False,
        )
        if result.returncode != 0:
            return None
        return result.stdout.strip()
