"""Chat API routes: contacts, threads and sending."""
from datetime import datetime
from typing import Dict, List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Session

from . import schemas
from .auth import get_current_user_id
from .database import get_db
from .logging_config import configure_logging
from .models import ChatMessage, User
from .realtime import manager
from ..shared.utils import display_name

router = APIRouter(prefix="/api/chat", tags=["chat"])
logger = configure_logging()


def _get_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


def _between(user_id: int, contact_id: int):
    return or_(
        and_(ChatMessage.sender_id == user_id, ChatMessage.receiver_id == contact_id),
        and_(ChatMessage.sender_id == contact_id, ChatMessage.receiver_id == user_id),
    )


@router.get("/contacts", response_model=List[schemas.ChatContactOut])
def get_contacts(db: Session = Depends(get_db), current_user_id: int = Depends(get_current_user_id)):
    involving_me = (
        db.query(ChatMessage)
        .filter(or_(ChatMessage.sender_id == current_user_id, ChatMessage.receiver_id == current_user_id))
        .order_by(ChatMessage.id.desc())
        .all()
    )

    last_messages: Dict[int, ChatMessage] = {}
    for msg in involving_me:
        contact_id = msg.receiver_id if msg.sender_id == current_user_id else msg.sender_id
        last_messages.setdefault(contact_id, msg)
    if not last_messages:
        return []

    unread_rows = (
        db.query(ChatMessage.sender_id, func.count(ChatMessage.id))
        .filter(ChatMessage.receiver_id == current_user_id, ChatMessage.read_at.is_(None))
        .group_by(ChatMessage.sender_id)
        .all()
    )
    unread = dict(unread_rows)
    users = {u.id: u for u in db.query(User).filter(User.id.in_(list(last_messages))).all()}

    contacts: List[schemas.ChatContactOut] = []
    # last_messages keeps insertion order, newest conversation first
    for contact_id, last in last_messages.items():
        user = users.get(contact_id)
        if user is None:
            continue
        contacts.append(
            schemas.ChatContactOut(
                id=user.id,
                username=user.username,
                first_name=user.first_name,
                last_name=user.last_name,
                name=display_name(user.first_name, user.last_name, user.username),
                user_type=user.user_type,
                last_message=schemas.ChatMessageOut.model_validate(last),
                unread_count=unread.get(contact_id, 0),
                is_online=manager.is_online(contact_id),
            )
        )
    return contacts


@router.get("/messages", response_model=List[schemas.ChatMessageOut])
def get_messages(
    contact_id: Optional[int] = Query(default=None, alias="contactId"),
    after_id: int = Query(default=0, alias="afterId", ge=0),
    db: Session = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    if contact_id is None:
        raise HTTPException(status_code=400, detail="Contact ID is required")
    _get_user(db, contact_id)

    messages = (
        db.query(ChatMessage)
        .filter(ChatMessage.id > after_id, _between(current_user_id, contact_id))
        .order_by(ChatMessage.id)
        .all()
    )
    results = [schemas.ChatMessageOut.model_validate(msg) for msg in messages]

    marked = (
        db.query(ChatMessage)
        .filter(
            ChatMessage.sender_id == contact_id,
            ChatMessage.receiver_id == current_user_id,
            ChatMessage.read_at.is_(None),
        )
        .update({ChatMessage.read_at: datetime.utcnow()}, synchronize_session="fetch")
    )
    if marked:
        db.commit()
        logger.info("MESSAGES_READ user_id=%s contact_id=%s count=%s", current_user_id, contact_id, marked)
    return results


@router.post("/messages", response_model=schemas.ChatMessageOut, status_code=status.HTTP_201_CREATED)
def send_message(
    payload: schemas.ChatMessageCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    if payload.receiver_id == current_user_id:
        raise HTTPException(status_code=400, detail="Cannot send a message to yourself")
    sender = _get_user(db, current_user_id)
    receiver = _get_user(db, payload.receiver_id)

    message = ChatMessage(
        sender_id=sender.id,
        receiver_id=receiver.id,
        message=payload.message,
        event_id=payload.event_id,
    )
    db.add(message)
    db.commit()
    db.refresh(message)
    logger.info(
        "MESSAGE_SENT sender_id=%s receiver_id=%s message_id=%s",
        sender.id,
        receiver.id,
        message.id,
    )

    out = schemas.ChatMessageOut.model_validate(message)
    background_tasks.add_task(manager.notify_new_message, out.model_dump(mode="json", by_alias=True))
    return out
