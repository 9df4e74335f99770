"""WebSocket hub: authentication handshake, presence and message fan-out."""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Set

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from .auth import TokenError, resolve_token
from .logging_config import configure_logging
from ..shared import frames
from ..shared.frames import Frame, FrameError, decode_frame, encode_frame, make_frame

router = APIRouter(tags=["realtime"])
logger = configure_logging()


class ConnectionManager:
    """Tracks open sockets per user; a user may hold several (tabs, devices)."""

    def __init__(self) -> None:
        self.active: Dict[int, List[WebSocket]] = {}

    def is_online(self, user_id: int) -> bool:
        return bool(self.active.get(user_id))

    def online_user_ids(self) -> Set[int]:
        return {user_id for user_id, sockets in self.active.items() if sockets}

    async def connect(self, user_id: int, websocket: WebSocket) -> bool:
        """Register a socket. Returns True when it is the user's first one."""
        sockets = self.active.setdefault(user_id, [])
        sockets.append(websocket)
        first = len(sockets) == 1
        logger.info("WS_CONNECT user_id=%s sockets=%s", user_id, len(sockets))
        return first

    async def disconnect(self, user_id: int, websocket: WebSocket) -> bool:
        """Drop a socket. Returns True when the user has no sockets left."""
        sockets = [ws for ws in self.active.get(user_id, []) if ws is not websocket]
        if sockets:
            self.active[user_id] = sockets
        else:
            self.active.pop(user_id, None)
        logger.info("WS_DISCONNECT user_id=%s sockets=%s", user_id, len(sockets))
        return not sockets

    async def send_personal(self, websocket: WebSocket, frame: Frame) -> None:
        await websocket.send_text(encode_frame(frame))

    async def send_to_users(self, user_ids: Iterable[int], frame: Frame) -> None:
        payload = encode_frame(frame)
        for user_id in set(user_ids):
            for websocket in list(self.active.get(user_id, [])):
                try:
                    await websocket.send_text(payload)
                except Exception as exc:  # noqa: BLE001
                    logger.warning("WS_SEND_FAIL user_id=%s type=%s error=%s", user_id, frame.type, exc)
                    await self.disconnect(user_id, websocket)

    async def broadcast(self, frame: Frame, exclude_user_id: int | None = None) -> None:
        targets = [user_id for user_id in self.online_user_ids() if user_id != exclude_user_id]
        await self.send_to_users(targets, frame)

    async def notify_new_message(self, message: Dict[str, Any]) -> None:
        frame = make_frame(frames.NEW_MESSAGE, message=message)
        await self.send_to_users([message["receiverId"], message["senderId"]], frame)
        logger.info("WS_FANOUT message_id=%s receiver_id=%s", message["id"], message["receiverId"])


manager = ConnectionManager()


async def _authenticate(websocket: WebSocket) -> int | None:
    try:
        hello = decode_frame(await websocket.receive_text())
    except FrameError as exc:
        logger.warning("WS_AUTH_FAIL reason=bad_frame error=%s", exc)
        hello = None
    if hello is None or hello.type != frames.AUTHENTICATE:
        await _reject(websocket, "First frame must be type='authenticate'")
        return None
    try:
        return resolve_token(hello.token)
    except TokenError as exc:
        logger.warning("WS_AUTH_FAIL reason=%s", exc)
        await _reject(websocket, "Invalid or expired token")
        return None


async def _reject(websocket: WebSocket, detail: str) -> None:
    await manager.send_personal(websocket, make_frame(frames.ERROR, {"detail": detail}))
    await websocket.close(code=status.WS_1008_POLICY_VIOLATION)


async def _handle_inbound(websocket: WebSocket, user_id: int, text: str) -> None:
    try:
        frame = decode_frame(text)
    except FrameError as exc:
        logger.warning("WS_BAD_FRAME user_id=%s error=%s", user_id, exc)
        await manager.send_personal(websocket, make_frame(frames.ERROR, {"detail": str(exc)}))
        return
    if frame.type == frames.PING:
        await manager.send_personal(websocket, make_frame(frames.PONG))
        return
    # Messages are sent over REST; the socket only carries notifications.
    logger.warning("WS_BAD_FRAME user_id=%s type=%s", user_id, frame.type)
    await manager.send_personal(websocket, make_frame(frames.ERROR, {"detail": f"Unsupported frame type '{frame.type}'"}))


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    await websocket.accept()
    try:
        user_id = await _authenticate(websocket)
    except WebSocketDisconnect:
        return
    if user_id is None:
        return

    first = await manager.connect(user_id, websocket)
    try:
        await manager.send_personal(websocket, make_frame(frames.AUTHENTICATED, {"userId": user_id}))
        if first:
            await manager.broadcast(make_frame(frames.USER_ONLINE, {"userId": user_id}), exclude_user_id=user_id)
        while True:
            text = await websocket.receive_text()
            await _handle_inbound(websocket, user_id, text)
    except WebSocketDisconnect:
        pass
    finally:
        if await manager.disconnect(user_id, websocket):
            await manager.broadcast(make_frame(frames.USER_OFFLINE, {"userId": user_id}))
