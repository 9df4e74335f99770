"""Socket channel: one authenticated WebSocket per session, with reconnects."""
from __future__ import annotations

import logging
import random
import threading
from typing import Callable, Optional

from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidURI
from websockets.sync.client import ClientConnection, connect

from ..shared import frames
from ..shared.frames import Frame, FrameError, decode_frame, encode_frame, make_frame

logger = logging.getLogger(__name__)

POLICY_VIOLATION = 1008


class AuthenticationRejected(RuntimeError):
    """The server refused the session token; retrying would not help."""


class SocketChannel:
    """Background WebSocket client dispatching decoded frames to ``on_frame``.

    The channel authenticates with the session token on every (re)connect.
    Dropped connections are retried with capped exponential backoff; the
    attempt counter resets once the server acknowledges authentication.
    ``on_frame`` runs on the channel thread.
    """

    def __init__(
        self,
        url: str,
        token_provider: Callable[[], Optional[str]],
        on_frame: Callable[[Frame], None],
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        jitter: float = 0.1,
        heartbeat_interval: float = 25.0,
        open_timeout: float = 10.0,
    ):
        self.url = url
        self.token_provider = token_provider
        self.on_frame = on_frame
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.jitter = jitter
        self.heartbeat_interval = heartbeat_interval
        self.open_timeout = open_timeout
        self.attempt = 0
        self._stop = threading.Event()
        self._connected = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._ws: Optional[ClientConnection] = None

    @property
    def connected(self) -> bool:
        return self._connected.is_set()

    def backoff_delay(self, attempt: int) -> float:
        delay = min(self.max_delay, self.base_delay * (2**attempt))
        if self.jitter:
            delay += random.uniform(0, delay * self.jitter)
        return delay

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="event-chat-socket", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        ws = self._ws
        if ws is not None:
            ws.close()
        if self._thread and self._thread is not threading.current_thread():
            self._thread.join(timeout)
        self._thread = None

    def wait_connected(self, timeout: Optional[float] = None) -> bool:
        return self._connected.wait(timeout)

    def send(self, frame: Frame) -> None:
        ws = self._ws
        if ws is None:
            raise RuntimeError("Socket channel is not connected")
        ws.send(encode_frame(frame))

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                self._session()
            except AuthenticationRejected as exc:
                logger.error("Socket authentication rejected: %s", exc)
                break
            except (OSError, TimeoutError, ConnectionClosed, InvalidHandshake, InvalidURI) as exc:
                logger.warning("Socket connection lost: %s", exc)
            except Exception:  # noqa: BLE001
                logger.exception("Socket channel error, reconnecting")
            finally:
                self._ws = None
                self._connected.clear()
            if self._stop.is_set():
                break
            delay = self.backoff_delay(self.attempt)
            self.attempt += 1
            logger.info("Reconnecting in %.1fs (attempt %d)", delay, self.attempt)
            self._stop.wait(delay)
        logger.info("Socket channel stopped")

    def _session(self) -> None:
        token = self.token_provider()
        if not token:
            raise AuthenticationRejected("no session token")
        with connect(self.url, open_timeout=self.open_timeout) as ws:
            self._ws = ws
            ws.send(encode_frame(make_frame(frames.AUTHENTICATE, token=token)))
            while not self._stop.is_set():
                try:
                    text = ws.recv(timeout=self.heartbeat_interval)
                except TimeoutError:
                    ws.send(encode_frame(make_frame(frames.PING)))
                    continue
                except ConnectionClosed as exc:
                    if self._stop.is_set():
                        return
                    if exc.rcvd is not None and exc.rcvd.code == POLICY_VIOLATION:
                        raise AuthenticationRejected(exc.rcvd.reason or "policy violation") from exc
                    raise
                self._dispatch(text)

    def _dispatch(self, text: str | bytes) -> None:
        try:
            frame = decode_frame(text)
        except FrameError as exc:
            logger.warning("Dropping undecodable frame: %s", exc)
            return
        if frame.type == frames.AUTHENTICATED:
            self.attempt = 0
            self._connected.set()
            logger.info("Socket authenticated as user %s", (frame.data or {}).get("userId"))
        elif frame.type == frames.ERROR:
            logger.warning("Server reported: %s", (frame.data or {}).get("detail"))
        try:
            self.on_frame(frame)
        except Exception:  # noqa: BLE001
            logger.exception("Frame handler failed for %s", frame.type)
