"""Shared data transfer object helpers.

Built from the camelCase dicts the REST API and socket frames carry.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from .utils import display_name, initials


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


@dataclass
class UserDTO:
    id: int
    username: str
    user_type: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None

    @property
    def name(self) -> str:
        return display_name(self.first_name, self.last_name, self.username)

    @classmethod
    def from_wire(cls, data: Dict[str, Any]) -> "UserDTO":
        return cls(
            id=data["id"],
            username=data["username"],
            user_type=data.get("userType", ""),
            first_name=data.get("firstName"),
            last_name=data.get("lastName"),
            email=data.get("email"),
        )


@dataclass
class ChatMessageDTO:
    id: int
    sender_id: int
    receiver_id: int
    message: str
    created_at: datetime
    event_id: Optional[int] = None
    read_at: Optional[datetime] = None

    def involves(self, user_id: int) -> bool:
        return user_id in (self.sender_id, self.receiver_id)

    @classmethod
    def from_wire(cls, data: Dict[str, Any]) -> "ChatMessageDTO":
        return cls(
            id=data["id"],
            sender_id=data["senderId"],
            receiver_id=data["receiverId"],
            message=data["message"],
            created_at=_parse_time(data["createdAt"]),
            event_id=data.get("eventId"),
            read_at=_parse_time(data.get("readAt")),
        )


@dataclass
class ChatContactDTO:
    id: int
    username: str
    user_type: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    last_message: Optional[ChatMessageDTO] = None
    unread_count: int = 0
    is_online: bool = False

    @property
    def name(self) -> str:
        return display_name(self.first_name, self.last_name, self.username)

    @property
    def initials(self) -> str:
        return initials(self.first_name, self.last_name, self.username)

    @classmethod
    def from_wire(cls, data: Dict[str, Any]) -> "ChatContactDTO":
        last = data.get("lastMessage")
        return cls(
            id=data["id"],
            username=data["username"],
            user_type=data.get("userType", ""),
            first_name=data.get("firstName"),
            last_name=data.get("lastName"),
            last_message=ChatMessageDTO.from_wire(last) if last else None,
            unread_count=data.get("unreadCount", 0),
            is_online=data.get("isOnline", False),
        )
