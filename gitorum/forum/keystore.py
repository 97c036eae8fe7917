"""Public key stores: one base64 key per username."""

import logging
import re
from pathlib import Path
from typing import List, Optional, Protocol, Union

from ..crypto import read_public_key_file


logger = logging.getLogger(__name__)

KEY_SUFFIX = ".pub"

USERNAME_RE = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_.-]*$")


def validate_username(username: str) -> str:
    """Reject usernames that cannot safely name a key file."""
    if not USERNAME_RE.match(username or ""):
        raise ValueError(f"invalid username: {username!r}")
    return username


class PublicKeyStore(Protocol):
    """Username to public key mapping used for verification and membership."""

    def get(self, username: str) -> Optional[str]:
        """Return the base64 public key for username, or None."""
        ...

    def put(self, username: str, public_key_b64: str) -> None:
        ...

    def remove(self, username: str) -> None:
        ...

    def usernames(self) -> List[str]:
        ...


class PublicKeyDirectory:
    """
    A directory of <username>.pub files.

    Used for both the trusted key store (keys/) and pending join requests
    (requests/). Only touches the working tree; committing is the caller's
    job.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def key_path(self, username: str) -> Path:
        return self.path / f"{validate_username(username)}{KEY_SUFFIX}"

    def get(self, username: str) -> Optional[str]:
        if not USERNAME_RE.match(username or ""):
            return None
        key = read_public_key_file(self.key_path(username))
        return key or None

    def put(self, username: str, public_key_b64: str) -> None:
        self.path.mkdir(parents=True, exist_ok=True)
        self.key_path(username).write_text(public_key_b64.strip() + "\n", encoding='utf-8')

    def remove(self, username: str) -> None:
        self.key_path(username).unlink()

    def usernames(self) -> List[str]:
        if not self.path.is_dir():
            return []
        return sorted(
            p.name[:-len(KEY_SUFFIX)]
            for p in self.path.iterdir()
            if p.is_file() and p.name.endswith(KEY_SUFFIX)
        )

    def __contains__(self, username: str) -> bool:
        return self.get(username) is not None
