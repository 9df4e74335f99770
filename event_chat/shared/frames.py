"""WebSocket frame envelope shared by the server hub and the client channel."""
from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, ValidationError

AUTHENTICATE = "authenticate"
AUTHENTICATED = "authenticated"
NEW_MESSAGE = "new_message"
USER_ONLINE = "user_online"
USER_OFFLINE = "user_offline"
PING = "ping"
PONG = "pong"
ERROR = "error"


class FrameError(ValueError):
    """Raised when a frame cannot be decoded."""


class Frame(BaseModel):
    """JSON envelope: ``{type, data}`` or ``{type, message}`` for chat messages."""

    model_config = ConfigDict(extra="ignore")

    type: str
    data: Optional[Dict[str, Any]] = None
    message: Optional[Dict[str, Any]] = None
    token: Optional[str] = None


def make_frame(frame_type: str, data: Optional[Dict[str, Any]] = None, **kwargs: Any) -> Frame:
    return Frame(type=frame_type, data=data, **kwargs)


def encode_frame(frame: Frame) -> str:
    return frame.model_dump_json(exclude_none=True)


def decode_frame(text: str | bytes) -> Frame:
    try:
        return Frame.model_validate_json(text)
    except ValidationError as exc:
        raise FrameError(f"Malformed frame: {exc.errors()[0]['msg']}") from exc
