"""
Auth service — password hashing, access tokens and account creation.

Tokens are HS256 JWTs whose ``sub`` claim is the user id; ``role`` and
``name`` ride along so clients can render the session without a
round-trip, but authorization always re-reads the user row.
"""
import logging
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from blog_api.config import settings
from blog_api.models import User
from blog_api.schemas import MAX_PASSWORD_BYTES, SignupRequest, TokenData

logger = logging.getLogger(__name__)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    secret = plain_password.encode("utf-8")
    # No stored hash can match a secret bcrypt refuses to hash.
    if len(secret) > MAX_PASSWORD_BYTES:
        return False
    return bcrypt.checkpw(secret, hashed_password.encode("utf-8"))


def get_password_hash(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def create_access_token(user: User, expires_delta: timedelta | None = None) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.JWT_EXPIRE_MINUTES)
    )
    payload = {
        "sub": str(user.id),
        "role": user.role,
        "name": user.username,
        "exp": expire,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> TokenData | None:
    """Return the token's claims, or None for an expired/forged/malformed token."""
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.PyJWTError as exc:
        logger.debug("Rejected access token: %s", exc)
        return None
    sub = payload.get("sub")
    if sub is None or not str(sub).isdigit():
        return None
    return TokenData(
        user_id=int(sub),
        role=payload.get("role", "reader"),
        name=payload.get("name", ""),
    )


# Pre-computed hash so a login for an unknown email costs one bcrypt check,
# same as a wrong password.
_DUMMY_HASH = get_password_hash("dummy-timing-equalization")


async def authenticate_user(db: AsyncSession, email: str, password: str) -> User | None:
    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    if user is None:
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user


async def get_user_by_id(db: AsyncSession, user_id: int) -> User | None:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def create_user(db: AsyncSession, data: SignupRequest, role: str = "reader") -> User:
    """
    Create an account.  Username/email uniqueness is enforced by the
    database; the router translates ``IntegrityError`` into 409.
    """
    user = User(
        username=data.username,
        email=data.email,
        password_hash=get_password_hash(data.password),
        role=role,
    )
    db.add(user)
    await db.flush()
    await db.refresh(user)
    logger.info("Created %s account %r (id=%s)", role, user.username, user.id)
    return user
