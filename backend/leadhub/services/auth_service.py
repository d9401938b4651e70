"""Accounts, passwords and verification codes"""
import json
import secrets
import random
import string
import bcrypt
from datetime import datetime, timezone
from sqlalchemy.orm import Session
from typing import Optional
import redis.asyncio as aioredis

from leadhub.core.config import settings
from leadhub.core.permissions import normalize_permissions
from leadhub.models.user import User
from leadhub.services import ledger_service
from leadhub.services.ledger_service import DuplicateLedgerEntry
from leadhub.core.logging import get_logger

logger = get_logger(__name__)

VERIFY_CODE_TTL = 600  # 10 minutes
VERIFY_MAX_ATTEMPTS = 5
VERIFY_LOCK_TTL = 1800
VERIFY_CODE_PREFIX = "verify_code:"
VERIFY_LOCK_PREFIX = "verify_lock:"

RESET_TOKEN_PREFIX = "reset_token:"
RESET_TOKEN_TTL = 3600


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))


def create_user(
    db: Session,
    email: str,
    password: str,
    name: str,
    role: str = "user",
    status: str = "pending",
    verified: bool = False,
    permissions: Optional[list[str]] = None,
) -> User:
    user = User(
        email=email.lower().strip(),
        password_hash=hash_password(password),
        name=name,
        role=role,
        status=status,
        verified=verified,
        permissions=normalize_permissions(permissions) if role == "subadmin" else None,
        lead_coins=0,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"User created: id={user.id}, email={user.email}, role={role}")
    return user


def grant_signup_bonus(db: Session, user: User) -> Optional[int]:
    """One-time welcome coins for regular users; keyed so a second call is a no-op"""
    amount = settings.SIGNUP_BONUS_COINS
    if amount <= 0 or user.role != "user":
        return None
    reference = f"signup:{user.id}"
    if ledger_service.has_reference(db, reference):
        return None
    try:
        return ledger_service.credit(
            db, user.id, amount, ledger_service.TX_SIGNUP_BONUS, "Welcome bonus", reference=reference,
        )
    except DuplicateLedgerEntry:
        return None


def mark_verified(db: Session, user: User) -> User:
    """Email verified: activate the account and pay the signup bonus"""
    user.verified = True
    if user.status == "pending":
        user.status = "active"
    db.commit()
    grant_signup_bonus(db, user)
    db.refresh(user)
    return user


def record_login(db: Session, user: User) -> None:
    user.last_login_at = datetime.now(timezone.utc).replace(tzinfo=None)
    db.commit()


async def generate_verify_code(r: aioredis.Redis, user_id: int) -> Optional[str]:
    """Six-digit code stored in Redis; None while the user is locked out"""
    if await r.exists(f"{VERIFY_LOCK_PREFIX}{user_id}"):
        return None

    code = "".join(random.choices(string.digits, k=6))
    data = json.dumps({"code": code, "attempts": 0})
    await r.set(f"{VERIFY_CODE_PREFIX}{user_id}", data, ex=VERIFY_CODE_TTL)
    return code


async def verify_code(r: aioredis.Redis, user_id: int, input_code: str) -> tuple[bool, str]:
    lock_key = f"{VERIFY_LOCK_PREFIX}{user_id}"
    if await r.exists(lock_key):
        return False, "Verification is locked. Please try again later."

    key = f"{VERIFY_CODE_PREFIX}{user_id}"
    raw = await r.get(key)
    if not raw:
        return False, "The verification code has expired. Request a new one."

    data = json.loads(raw)
    if secrets.compare_digest(input_code, data["code"]):
        await r.delete(key)
        return True, "Verified"

    attempts = data["attempts"] + 1
    if attempts >= VERIFY_MAX_ATTEMPTS:
        await r.delete(key)
        await r.set(lock_key, "1", ex=VERIFY_LOCK_TTL)
        return False, "Too many attempts. Try again in 30 minutes."

    data["attempts"] = attempts
    ttl = await r.ttl(key)
    if ttl > 0:
        await r.set(key, json.dumps(data), ex=ttl)
    return False, f"Incorrect code. {VERIFY_MAX_ATTEMPTS - attempts} attempts left."


async def create_reset_token(r: aioredis.Redis, user_id: int) -> str:
    token = secrets.token_urlsafe(48)
    await r.set(f"{RESET_TOKEN_PREFIX}{token}", str(user_id), ex=RESET_TOKEN_TTL)
    return token


async def validate_reset_token(r: aioredis.Redis, token: str) -> Optional[int]:
    """Single use: the token is deleted once read"""
    key = f"{RESET_TOKEN_PREFIX}{token}"
    user_id = await r.get(key)
    if user_id is None:
        return None
    await r.delete(key)
    return int(user_id)


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == email.lower().strip()).first()


def get_user_by_id(db: Session, user_id: int) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()
