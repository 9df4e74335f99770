"""Pydantic schemas for request and response bodies.

The wire format is camelCase; attributes stay snake_case on the Python side.
"""
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .config import MAX_MESSAGE_LENGTH


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class RegisterRequest(CamelModel):
    username: str = Field(..., min_length=3, max_length=50)
    email: str = Field(..., pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    password: str
    user_type: Literal["organizer", "provider", "advertiser"]
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class LoginRequest(CamelModel):
    username: str
    password: str


class UserOut(CamelModel):
    id: int
    username: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: str
    user_type: str


class LoginResponse(CamelModel):
    token: str
    user: UserOut


class ChatMessageCreate(CamelModel):
    receiver_id: int
    message: str
    event_id: Optional[int] = None

    @field_validator("message")
    @classmethod
    def _strip_message(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Message must not be empty")
        if len(value) > MAX_MESSAGE_LENGTH:
            raise ValueError(f"Message exceeds {MAX_MESSAGE_LENGTH} characters")
        return value


class ChatMessageOut(CamelModel):
    id: int
    sender_id: int
    receiver_id: int
    message: str
    event_id: Optional[int] = None
    created_at: datetime
    read_at: Optional[datetime] = None


class ChatContactOut(CamelModel):
    id: int
    username: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    name: str
    user_type: str
    last_message: Optional[ChatMessageOut] = None
    unread_count: int = 0
    is_online: bool = False
