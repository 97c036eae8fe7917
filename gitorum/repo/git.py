"""Thin wrapper around the git executable."""

import logging
import os
import subprocess
from pathlib import Path
from typing import Dict, Optional, Sequence, Union

from ..crypto import Identity


logger = logging.getLogger(__name__)

GIT_TIMEOUT = 30  # seconds, for network and commit operations
EMAIL_DOMAIN = "gitorum.local"
DEFAULT_COMMITTER = "gitorum"

# Options applied to every invocation so user-level git configuration
# (signing, pagers, quoting) cannot change behaviour.
_BASE_OPTIONS = (
    "-c", "commit.gpgsign=false",
    "-c", "core.quotepath=off",
    "-c", "core.pager=cat",
)


class GitError(RuntimeError):
    """A git command failed, timed out or could not be started."""

    def __init__(self, command: Sequence[str], message: str, returncode: Optional[int] = None):
        self.command = list(command)
        self.returncode = returncode
        super().__init__(f"git {' '.join(command)}: {message}")


def author_env(identity: Optional[Identity]) -> Dict[str, str]:
    """Environment that makes identity both author and committer."""
    name = identity.username if identity else DEFAULT_COMMITTER
    email = f"{name}@{EMAIL_DOMAIN}"
    return {
        "GIT_AUTHOR_NAME": name,
        "GIT_AUTHOR_EMAIL": email,
        "GIT_COMMITTER_NAME": name,
        "GIT_COMMITTER_EMAIL": email,
    }


class Git:
    """
    Runs git commands inside one working tree.

    Every call blocks until git exits or the timeout expires.
    """

    def __init__(self, path: Union[str, Path], timeout: float = GIT_TIMEOUT):
        self.path = Path(path)
        self.timeout = timeout

    def run(
        self,
        *args: str,
        check: bool = True,
        env: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None
    ) -> subprocess.CompletedProcess:
        """
        Run a git subcommand.

        Args:
            *args: git arguments, e.g. ("commit", "-m", "msg")
            check: Raise GitError on a non-zero exit status
            env: Extra environment variables
            timeout: Override the default timeout

        Returns:
            Completed process with text stdout/stderr

        Raises:
            GitError: On failure (when check is set), timeout, or if git is missing
        """
        full_env = dict(os.environ)
        full_env["GIT_TERMINAL_PROMPT"] = "0"
        full_env["LC_ALL"] = "C"
        if env:
            full_env.update(env)

        logger.debug(f"git {' '.join(args)} (in {self.path})")
        try:
            result = subprocess.run(
                ("git", *_BASE_OPTIONS, *args),
                cwd=self.path,
                env=full_env,
                capture_output=True,
                text=True,
                timeout=timeout or self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise GitError(args, f"timed out after {e.timeout} seconds") from e
        except OSError as e:
            raise GitError(args, f"unable to invoke git: {e}") from e

        if check and result.returncode != 0:
            message = (result.stderr or result.stdout).strip() or "failed"
            raise GitError(args, message, result.returncode)
        return result

    def output(self, *args: str, **kwargs) -> str:
        """Run a git subcommand and return its stripped stdout."""
        return self.run(*args, **kwargs).stdout.strip()
