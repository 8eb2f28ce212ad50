"""Per-conversation mutual exclusion for assistant turns.

One turn at a time may append to a conversation, so the history window a
turn sends to the provider is exactly what was stored when it ran.
"""

import logging
import uuid
from contextlib import contextmanager
from typing import Iterator

from redis.exceptions import WatchError

from ..errors import ConflictError
from ..settings import settings
from .redis_client import get_sync_redis

logger = logging.getLogger("fitpantry.locks")


def _lock_key(conversation_id: str) -> str:
    return f"fitpantry:turn-lock:{conversation_id}"


def acquire(conversation_id: str, ttl_sec: int | None = None) -> str | None:
    """Take the lock with SET NX EX. Returns the owner token, or None if held."""
    r = get_sync_redis()
    token = uuid.uuid4().hex
    ok = r.set(
        _lock_key(conversation_id), token,
        ex=ttl_sec or settings.turn_lock_ttl_seconds, nx=True,
    )
    return token if ok else None


def release(conversation_id: str, token: str) -> None:
    """Delete the lock only if we still own it (it may have expired and been retaken)."""
    r = get_sync_redis()
    key = _lock_key(conversation_id)
    with r.pipeline() as pipe:
        try:
            pipe.watch(key)
            if pipe.get(key) == token:
                pipe.multi()
                pipe.delete(key)
                pipe.execute()
            else:
                pipe.unwatch()
        except WatchError:
            logger.warning("Turn lock for %s changed during release", conversation_id)


@contextmanager
def turn_lock(conversation_id: str) -> Iterator[None]:
    token = acquire(conversation_id)
    if token is None:
        raise ConflictError(
            "A reply is still being generated for this conversation. Please wait.",
            conversationId=conversation_id,
        )
    try:
        yield
    finally:
        release(conversation_id, token)
