"""
MysticRead AI — Authentication & Authorization
JWT token issuance, bcrypt password hashing, user registration/login.
"""

import os
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from database import get_db
from user_db import User

logger = logging.getLogger(__name__)

# ── Config ────────────────────────────────────────────────────────────────────
SECRET_KEY   = os.getenv("JWT_SECRET_KEY", "mysticread-dev-secret-change-in-prod")
ALGORITHM    = "HS256"
TOKEN_DAYS   = int(os.getenv("JWT_EXPIRE_DAYS", "7"))

pwd_context  = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=12)
security     = HTTPBearer(auto_error=False)


# ── Password helpers ──────────────────────────────────────────────────────────
def hash_password(plain: str) -> str:
    return pwd_context.hash(plain)

def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


# ── JWT helpers ───────────────────────────────────────────────────────────────
def create_access_token(user_id: str, email: str) -> str:
    expire = datetime.now(timezone.utc) + timedelta(days=TOKEN_DAYS)
    return jwt.encode(
        {"sub": str(user_id), "email": email, "exp": expire},
        SECRET_KEY, algorithm=ALGORITHM
    )

def _decode(token: str) -> dict:
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return {}


# ── FastAPI dependencies ──────────────────────────────────────────────────────
async def get_current_user(
    creds: Optional[HTTPAuthorizationCredentials] = Security(security),
    db: Session = Depends(get_db),
) -> Optional[User]:
    """Returns the authenticated User row, or None if no/invalid token."""
    if creds is None:
        return None
    payload = _decode(creds.credentials)
    uid = payload.get("sub")
    if not uid:
        return None
    return db.query(User).filter(User.id == uid, User.is_active == True).first()  # noqa: E712


async def require_auth(user: Optional[User] = Depends(get_current_user)) -> User:
    """Raises 401 if unauthenticated."""
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


# ── User CRUD ─────────────────────────────────────────────────────────────────
def create_user(db: Session, email: str, password: str, first_name: str, last_name: str) -> User:
    email = email.lower().strip()
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(status_code=400, detail="User already exists with this email")
    user = User(
        email=email,
        hashed_password=hash_password(password),
        first_name=first_name.strip(),
        last_name=last_name.strip(),
        credits=0,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"Registered user id={user.id}")
    return user


def authenticate_user(db: Session, email: str, password: str) -> User:
    user = db.query(User).filter(User.email == email.lower().strip()).first()
    if not user or not verify_password(password, user.hashed_password):
        raise HTTPException(status_code=401, detail="Invalid email or password")
    if not user.is_active:
        raise HTTPException(status_code=403, detail="Account is disabled")
    return user


def user_profile(user: User) -> dict:
    return {
        "id":              user.id,
        "email":           user.email,
        "firstName":       user.first_name,
        "lastName":        user.last_name,
        "credits":         user.credits,
        "aiChatMinutesUsed": round(user.ai_chat_minutes_used or 0.0, 2),
        "createdAt":       user.created_at.isoformat() if user.created_at else None,
    }
