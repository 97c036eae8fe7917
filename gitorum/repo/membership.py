"""Join-request state machine: none -> pending -> approved | rejected.

The transitions are plain functions over two stores, the pending request
store and the trusted key store, so they can run against key directories in
a working tree or against in-memory stand-ins.
"""

import logging
from typing import List

from ..crypto import public_key_from_b64
from ..forum.keystore import PublicKeyStore, validate_username
from ..models import JoinRequest


logger = logging.getLogger(__name__)


class JoinRequestError(ValueError):
    """A join-request transition would violate membership policy."""


def pending_join_requests(requests: PublicKeyStore, keys: PublicKeyStore) -> List[JoinRequest]:
    """
    List pending requests, skipping any username that already has an
    approved key (a stale request file never makes a member pending again).
    """
    pending = []
    for username in requests.usernames():
        if keys.get(username) is not None:
            logger.debug(f"Ignoring stale join request for approved user {username}")
            continue
        public_key = requests.get(username)
        if public_key is None:
            continue
        pending.append(JoinRequest(username=username, public_key=public_key))
    return pending


def submit_join_request(
    requests: PublicKeyStore,
    keys: PublicKeyStore,
    request: JoinRequest
) -> JoinRequest:
    """
    Record a pending request.

    Raises:
        JoinRequestError: If the user is already approved or already pending
        ValueError: If the username or public key is malformed
    """
    validate_username(request.username)
    public_key_from_b64(request.public_key)

    if keys.get(request.username) is not None:
        raise JoinRequestError(f"@{request.username} is already approved")
    if requests.get(request.username) is not None:
        raise JoinRequestError(f"a join request for @{request.username} is already pending")

    requests.put(request.username, request.public_key)
    logger.info(f"Join request submitted for @{request.username}")
    return request


def approve_join_request(
    requests: PublicKeyStore,
    keys: PublicKeyStore,
    username: str
) -> JoinRequest:
    """
    Move a pending public key into the trusted key store.

    On success the key is present and the request is gone.

    Raises:
        JoinRequestError: If no request is pending or the user already has a key
    """
    public_key = requests.get(username)
    if public_key is None:
        raise JoinRequestError(f"no pending join request for @{username}")
    if keys.get(username) is not None:
        raise JoinRequestError(f"@{username} is already approved")

    keys.put(username, public_key)
    requests.remove(username)
    logger.info(f"Approved join request from @{username}")
    return JoinRequest(username=username, public_key=public_key)


def reject_join_request(
    requests: PublicKeyStore,
    keys: PublicKeyStore,
    username: str
) -> JoinRequest:
    """
    Drop a pending request without writing any key.

    Raises:
        JoinRequestError: If no request is pending
    """
    public_key = requests.get(username)
    if public_key is None:
        raise JoinRequestError(f"no pending join request for @{username}")

    requests.remove(username)
    logger.info(f"Rejected join request from @{username}")
    return JoinRequest(username=username, public_key=public_key)
