"""
Authentication helpers: password hashing, JWT issuing/verification and the
FastAPI dependencies that resolve the calling user.
"""
import logging
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from hive.database.config.config import settings
from hive.database.core.session import get_db
from hive.database.daos import UserDao
from hive.database.entities import User

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def check_password(password: str, password_hash: str) -> bool:
    return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """
    Issue a signed JWT.

    Args:
        data: Claims to embed. Hive puts the user id in ``sub``.
        expires_delta: Lifetime of the token, defaults to
            ``ACCESS_TOKEN_EXPIRE_MINUTES``.

    Returns:
        str: The encoded token.
    """
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    """Decode a JWT, letting PyJWT's ``InvalidTokenError`` family propagate."""
    return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])


def verify_token(token: str) -> str | None:
    """
    Validate a JWT and extract the user id.

    Returns:
        str | None: The ``sub`` claim, or None if the token is invalid or
        expired.
    """
    try:
        return decode_token(token).get("sub")
    except jwt.InvalidTokenError:
        return None


def load_user(db: Session, user_id: str | None) -> User | None:
    """Fetch a user, retrying once if the database connection was lost."""
    if not user_id:
        return None
    try:
        return UserDao(db).get_by_id(user_id)
    except DBAPIError as e:
        if not e.connection_invalidated:
            raise
        logger.warning("Database connection lost during auth lookup, retrying once")
        db.rollback()
        return UserDao(db).get_by_id(user_id)


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=401, detail="Access token required")

    try:
        payload = decode_token(credentials.credentials)
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=403, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=403, detail="Invalid token")

    user = load_user(db, payload.get("sub"))
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid token")
    return user


def get_now() -> datetime:
    """Current UTC time; a dependency so tests can pin the clock."""
    return datetime.now(timezone.utc)
