"""User listing and lookup routes."""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from . import schemas
from .auth import get_current_user_id
from .database import get_db
from .models import User

router = APIRouter(prefix="/api/users", tags=["users"])


def _like_pattern(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


@router.get("", response_model=List[schemas.UserOut])
def list_users(
    q: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    query = db.query(User).filter(User.id != current_user_id)
    needle = (q or "").strip()
    if needle:
        pattern = _like_pattern(needle)
        # same rule as display_name(): the full name only counts when both parts are set
        full_name = and_(
            User.first_name != "",
            User.last_name != "",
            (User.first_name + " " + User.last_name).ilike(pattern, escape="\\"),
        )
        query = query.filter(or_(User.username.ilike(pattern, escape="\\"), full_name))
    return query.order_by(User.username).all()


@router.get("/{user_id}", response_model=schemas.UserOut)
def get_user(user_id: int, db: Session = Depends(get_db), _: int = Depends(get_current_user_id)):
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user
