import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt

from common.core.config import settings
from common.core.errors import AuthenticationError
from common.db.base import UserStore
from common.db.stores import get_user_store
from common.models.schemas import User

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.jwt_algorithm)


def create_user_token(user: User) -> str:
    return create_access_token({"sub": user.id, "username": user.username})


def decode_access_token(token: str) -> str:
    """Return the user id carried in ``sub``."""
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        raise AuthenticationError("Invalid or expired token")
    user_id = payload.get("sub")
    if not user_id:
        raise AuthenticationError("Invalid or expired token")
    return user_id


async def current_user(token: str, users: UserStore) -> User:
    user = await users.get(decode_access_token(token))
    if user is None or not user.is_active:
        logger.warning("Token presented for a missing or deactivated user")
        raise AuthenticationError("Invalid or expired token")
    return user


async def require_auth(
    token: Optional[str] = Depends(oauth2_scheme),
    users: UserStore = Depends(get_user_store),
) -> User:
    if not token:
        raise AuthenticationError("Authentication required")
    return await current_user(token, users)


async def optional_auth(
    token: Optional[str] = Depends(oauth2_scheme),
    users: UserStore = Depends(get_user_store),
) -> Optional[User]:
    if not token:
        return None
    return await current_user(token, users)
