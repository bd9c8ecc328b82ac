##########
# Imports
##########
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from motor.motor_asyncio import AsyncIOMotorDatabase

from blogsphere.config import (
    SECRET_KEY,
    ALGORITHM,
    ACCESS_TOKEN_EXPIRE_HOURS,
    ACCESS_TOKEN_COOKIE,
    ROLE_ADMIN,
)
from blogsphere.database import get_db

logger = logging.getLogger(__name__)

# HTTP Bearer token dependency
security = HTTPBearer(auto_error=False)


##########
# JWT Token
##########
def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    """Create JWT token with expiration"""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(hours=ACCESS_TOKEN_EXPIRE_HOURS))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def verify_token(token: str):
    """Verify JWT token, return payload or None if invalid"""
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        logger.debug("Rejected expired token")
        return None
    except jwt.PyJWTError:
        return None


def token_for_user(user: dict):
    return create_access_token({"user_id": user["user_id"], "role": user.get("role")})


##########
# Passwords
##########
def hash_password(password: str):
    """Hash password using bcrypt"""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed: str):
    """Verify password against hashed value"""
    if not hashed:
        return False
    return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))


##########
# Current User
##########
async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    """Return current user if token is valid, else None"""
    if not credentials:
        return None

    payload = verify_token(credentials.credentials)
    if not payload:
        return None

    return await db.users.find_one({"user_id": payload.get("user_id")})


async def get_current_user_required(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    """Return current user or raise 401 if not authenticated"""
    if not credentials:
        raise HTTPException(status_code=401, detail="Authentication required")

    user = await get_current_user(credentials, db)
    if not user:
        logger.warning("Rejected bearer token")
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return user


async def get_cookie_user(request: Request, db: AsyncIOMotorDatabase):
    """Current user from the session cookie set by the page routes, else None"""
    token = request.cookies.get(ACCESS_TOKEN_COOKIE)
    if not token:
        return None

    payload = verify_token(token)
    if not payload:
        return None

    return await db.users.find_one({"user_id": payload.get("user_id")})


def is_admin(user: Optional[dict]):
    return bool(user) and user.get("role") == ROLE_ADMIN


def require_admin(user: dict, detail: str = "Admin privileges required"):
    if not is_admin(user):
        raise HTTPException(status_code=403, detail=detail)
