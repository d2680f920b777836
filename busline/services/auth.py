import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import select as sa_select
from sqlalchemy.ext.asyncio import AsyncSession

from busline.config import settings
from busline.models.models import User
from busline.redis_client import redis_client


pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

REFRESH_KEY_TPL = "refresh:{jti}"
LOGIN_ATTEMPTS_KEY_TPL = "rl:login:{identifier}"


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def create_access_token(user_id: int, role: str) -> str:
    expire = _now() + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    payload = {"sub": str(user_id), "role": role, "type": "access", "exp": int(expire.timestamp())}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


async def create_refresh_token(user_id: int) -> Tuple[str, str]:
    # jti used for rotation and revocation
    jti = uuid.uuid4().hex
    expire = _now() + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
    payload = {"sub": str(user_id), "type": "refresh", "jti": jti, "exp": int(expire.timestamp())}
    token = jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)
    await redis_client.set(REFRESH_KEY_TPL.format(jti=jti), str(user_id), ex=int((expire - _now()).total_seconds()))
    return token, jti


def verify_access_token(token: str) -> int:
    payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    if payload.get("type") != "access":
        raise JWTError("Invalid token type")
    return int(payload.get("sub"))


async def verify_refresh_token(token: str) -> Tuple[int, str]:
    payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    if payload.get("type") != "refresh":
        raise JWTError("Invalid token type")
    user_id = int(payload.get("sub"))
    jti = payload.get("jti")
    val = await redis_client.get(REFRESH_KEY_TPL.format(jti=jti))
    if not val or int(val) != user_id:
        raise JWTError("Refresh token revoked or not found")
    return user_id, jti


async def rotate_refresh_token(old_jti: str, user_id: int) -> Tuple[str, str]:
    await redis_client.delete(REFRESH_KEY_TPL.format(jti=old_jti))
    return await create_refresh_token(user_id)


async def revoke_refresh_token(jti: str):
    await redis_client.delete(REFRESH_KEY_TPL.format(jti=jti))


async def login_blocked(identifier: str) -> bool:
    attempts = await redis_client.get(LOGIN_ATTEMPTS_KEY_TPL.format(identifier=identifier))
    return bool(attempts) and int(attempts) >= settings.LOGIN_RATE_LIMIT_ATTEMPTS


async def record_failed_login(identifier: str):
    key = LOGIN_ATTEMPTS_KEY_TPL.format(identifier=identifier)
    await redis_client.incr(key)
    await redis_client.expire(key, settings.LOGIN_RATE_LIMIT_WINDOW_SECONDS)


async def clear_failed_logins(identifier: str):
    await redis_client.delete(LOGIN_ATTEMPTS_KEY_TPL.format(identifier=identifier))


async def authenticate(db: AsyncSession, email: str, password: str) -> Optional[User]:
    async with db.begin():
        res = await db.execute(sa_select(User).where(User.email == email.lower()))
        user = res.scalars().first()
    if not user or not user.is_active or not verify_password(password, user.hashed_password):
        return None
    return user
