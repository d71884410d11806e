import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from fastapi import Cookie, Depends, Header
from sqlalchemy.orm import Session

from monetra_svc.config import Settings, get_settings
from monetra_svc.errors import AuthenticationError
from monetra_svc.models.base import get_db
from monetra_svc.models.user import User

logger = logging.getLogger(__name__)

BCRYPT_ROUNDS = 12


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode('utf-8')


def check_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode('utf-8'), hashed.encode('utf-8'))
    except ValueError:
        return False


def create_access_token(user_id: str, settings: Settings) -> str:
    expire = datetime.now(timezone.utc) + timedelta(days=settings.jwt_expires_days)
    return jwt.encode({"id": user_id, "exp": expire}, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str, settings: Settings) -> str:
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token has expired. Please log in again!")
    except jwt.InvalidTokenError:
        raise AuthenticationError("Invalid token. Please log in again!")
    user_id = payload.get("id")
    if not user_id:
        raise AuthenticationError("Invalid token. Please log in again!")
    return user_id


def get_current_user(
    authorization: Optional[str] = Header(default=None),
    jwt_cookie: Optional[str] = Cookie(default=None, alias="jwt"),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> User:
    token = None
    if authorization and authorization.startswith("Bearer "):
        token = authorization.split(" ", 1)[1].strip()
    elif jwt_cookie:
        token = jwt_cookie

    if not token:
        raise AuthenticationError("You are not logged in! Please log in to get access.")

    user_id = decode_access_token(token, settings)
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        logger.warning(f"Token presented for missing user {user_id}")
        raise AuthenticationError("The user belonging to this token no longer exists.")
    return user
