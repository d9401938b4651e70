import secrets
import time
from typing import Optional
import redis.asyncio as aioredis
from leadhub.core.config import settings

SESSION_PREFIX = "session:"
SESSION_TTL = settings.SESSION_TIMEOUT_MINUTES * 60


async def create_session(
    r: aioredis.Redis,
    user_id: int,
    role: str,
    email: str,
) -> str:
    """Create a session hash and return its id"""
    session_id = secrets.token_hex(32)
    key = f"{SESSION_PREFIX}{session_id}"
    now = str(int(time.time()))
    await r.hset(key, mapping={
        "user_id": str(user_id),
        "role": role,
        "email": email,
        "created_at": now,
        "last_accessed": now,
    })
    await r.expire(key, SESSION_TTL)
    return session_id


async def get_session(r: aioredis.Redis, session_id: str) -> Optional[dict]:
    """Read a session; every access resets the idle timeout"""
    if not session_id:
        return None
    key = f"{SESSION_PREFIX}{session_id}"
    data = await r.hgetall(key)
    if not data:
        return None
    await r.expire(key, SESSION_TTL)
    await r.hset(key, "last_accessed", str(int(time.time())))
    return data


async def destroy_session(r: aioredis.Redis, session_id: str) -> None:
    if session_id:
        await r.delete(f"{SESSION_PREFIX}{session_id}")


async def invalidate_user_sessions(
    r: aioredis.Redis,
    user_id: int,
    exclude_session_id: Optional[str] = None,
) -> int:
    """
    Drop every session belonging to a user.

    Used after a password change, a status change to inactive and account
    deletion. Returns the number of sessions removed.
    """
    deleted_count = 0
    user_id_str = str(user_id)
    cursor = 0

    while True:
        cursor, keys = await r.scan(cursor, match=f"{SESSION_PREFIX}*", count=100)
        for key in keys:
            session_id = key.replace(SESSION_PREFIX, "", 1)
            if exclude_session_id and session_id == exclude_session_id:
                continue
            if await r.hget(key, "user_id") == user_id_str:
                await r.delete(key)
                deleted_count += 1
        if cursor == 0:
            break

    return deleted_count
