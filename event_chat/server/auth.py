"""Authentication and authorization utilities and routes."""
from datetime import datetime, timedelta
from typing import Dict, Optional

import bcrypt
import secrets
from fastapi import APIRouter, Depends, Header, HTTPException, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from . import schemas
from .config import LOCK_MINUTES, MAX_FAILED_LOGINS, TOKEN_EXPIRY_MINUTES
from .database import get_db
from .logging_config import configure_logging
from .models import User
from ..shared.utils import is_password_strong

router = APIRouter(prefix="/api/auth", tags=["auth"])
logger = configure_logging()

# In-memory token store: token -> {"user_id": int, "expires": datetime}
TOKEN_STORE: Dict[str, Dict[str, datetime | int]] = {}

_TOKEN_ERRORS = {
    "missing_token": "Missing token",
    "unknown_token": "Invalid token",
    "expired_token": "Token expired",
}


class TokenError(Exception):
    """Raised when a bearer token is missing, unknown or expired."""


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


@router.post("/register", response_model=schemas.UserOut, status_code=status.HTTP_201_CREATED)
def register(payload: schemas.RegisterRequest, db: Session = Depends(get_db)):
    existing = (
        db.query(User).filter(or_(User.username == payload.username, User.email == payload.email)).first()
    )
    if existing:
        raise HTTPException(status_code=400, detail="Username or email already exists")
    if not is_password_strong(payload.password):
        raise HTTPException(status_code=400, detail="Password too weak or blacklisted")

    user = User(
        username=payload.username,
        email=payload.email,
        first_name=payload.first_name,
        last_name=payload.last_name,
        user_type=payload.user_type,
        password_hash=hash_password(payload.password),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("REGISTER_SUCCESS username=%s user_type=%s", user.username, user.user_type)
    return user


@router.post("/login", response_model=schemas.LoginResponse)
def login(payload: schemas.LoginRequest, db: Session = Depends(get_db)):
    user: Optional[User] = db.query(User).filter(User.username == payload.username).first()
    if not user:
        logger.info("LOGIN_FAIL username=%s reason=not_found", payload.username)
        raise HTTPException(status_code=401, detail="Invalid credentials")

    if user.lock_until and user.lock_until > datetime.utcnow():
        logger.warning("ACCOUNT_BLOCKED username=%s locked_until=%s", payload.username, user.lock_until)
        raise HTTPException(status_code=403, detail=f"Account locked until {user.lock_until}")

    if not bcrypt.checkpw(payload.password.encode(), user.password_hash.encode()):
        user.failed_login_attempts = (user.failed_login_attempts or 0) + 1
        if user.failed_login_attempts >= MAX_FAILED_LOGINS:
            user.lock_until = datetime.utcnow() + timedelta(minutes=LOCK_MINUTES)
            logger.warning("ACCOUNT_BLOCKED username=%s locked_until=%s", payload.username, user.lock_until)
        db.commit()
        logger.info("LOGIN_FAIL username=%s reason=bad_password", payload.username)
        raise HTTPException(status_code=401, detail="Invalid credentials")

    user.failed_login_attempts = 0
    user.lock_until = None
    db.commit()

    token = secrets.token_urlsafe(32)
    TOKEN_STORE[token] = {"user_id": user.id, "expires": datetime.utcnow() + timedelta(minutes=TOKEN_EXPIRY_MINUTES)}
    logger.info("LOGIN_SUCCESS username=%s user_id=%s", user.username, user.id)
    return schemas.LoginResponse(token=token, user=schemas.UserOut.model_validate(user))


def resolve_token(token: str | None) -> int:
    """Return the user id a token belongs to, or raise TokenError."""
    if not token:
        raise TokenError("missing_token")
    token_data = TOKEN_STORE.get(token)
    if not token_data:
        raise TokenError("unknown_token")
    if token_data["expires"] < datetime.utcnow():
        TOKEN_STORE.pop(token, None)
        raise TokenError("expired_token")
    return int(token_data["user_id"])


def _bearer_token(header: str | None) -> str | None:
    if not header or not header.startswith("Bearer "):
        return None
    return header.split(" ", 1)[1]


def get_current_user_id(authorization: str | None = Header(default=None)) -> int:
    """FastAPI dependency returning authenticated user's id."""
    try:
        return resolve_token(_bearer_token(authorization))
    except TokenError as exc:
        logger.warning("UNAUTHORIZED_ACCESS reason=%s", exc)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=_TOKEN_ERRORS[str(exc)]) from exc


@router.post("/logout")
def logout(authorization: str | None = Header(default=None), current_user_id: int = Depends(get_current_user_id)):
    TOKEN_STORE.pop(_bearer_token(authorization), None)
    logger.info("LOGOUT user_id=%s", current_user_id)
    return {"message": "Logged out"}


@router.get("/me", response_model=schemas.UserOut)
def me(db: Session = Depends(get_db), current_user_id: int = Depends(get_current_user_id)):
    user = db.query(User).filter(User.id == current_user_id).first()
    if not user:
        logger.warning("UNAUTHORIZED_ACCESS reason=user_not_found")
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user
