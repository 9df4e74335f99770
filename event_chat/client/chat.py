"""Chat controller: contact list, selected thread and composer."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from .api import APIClient
from .cache import CONTACTS_KEY, MESSAGES_ROOT, QueryCache, merge_messages, thread_key
from ..shared import frames
from ..shared.dto import ChatContactDTO, ChatMessageDTO
from ..shared.frames import Frame

logger = logging.getLogger(__name__)


class ChatController:
    """Keeps the contact and thread caches in step with the server."""

    def __init__(self, api: APIClient, cache: Optional[QueryCache] = None):
        self.api = api
        self.cache = cache or QueryCache()
        self.selected_contact_id: Optional[int] = None
        self._fetched_upto: Dict[int, int] = {}
        self.composer = Composer(self)

    def contacts(self, search: str = "") -> List[ChatContactDTO]:
        contacts = self.cache.get(
            CONTACTS_KEY, lambda: [ChatContactDTO.from_wire(c) for c in self.api.contacts()]
        )
        needle = search.strip().lower()
        if not needle:
            return list(contacts)
        return [c for c in contacts if needle in c.name.lower()]

    def unread_total(self) -> int:
        return sum(c.unread_count for c in self.contacts())

    @staticmethod
    def unread_badge(contact: ChatContactDTO) -> Optional[int]:
        """Badge value for a contact, None when nothing is unread."""
        return contact.unread_count if contact.unread_count > 0 else None

    def select_contact(self, contact_id: int) -> List[ChatMessageDTO]:
        """Open a thread. Always hits the server so it marks the thread read."""
        self.selected_contact_id = contact_id
        if self.cache.is_stale(thread_key(contact_id)):
            thread = self.thread()
        else:
            thread = self.refresh_thread(contact_id)
        # The server marked the thread read; refresh the badges.
        self.cache.invalidate(CONTACTS_KEY)
        return thread

    def thread(self, contact_id: Optional[int] = None) -> List[ChatMessageDTO]:
        contact_id = contact_id if contact_id is not None else self.selected_contact_id
        if contact_id is None:
            return []
        return self.cache.get(thread_key(contact_id), lambda: self._fetch_thread(contact_id))

    def refresh_thread(self, contact_id: int) -> List[ChatMessageDTO]:
        """Fetch messages newer than the last server fetch and merge them in."""
        newer = self._fetch_thread(contact_id, after_id=self._fetched_upto.get(contact_id, 0))
        key = thread_key(contact_id)
        if not self.cache.update(key, lambda thread: merge_messages(thread, newer)):
            self.cache.set(key, newer)
        return self.cache.peek(key)

    def _fetch_thread(self, contact_id: int, after_id: int = 0) -> List[ChatMessageDTO]:
        messages = [ChatMessageDTO.from_wire(m) for m in self.api.messages(contact_id, after_id=after_id)]
        if messages:
            # frames may skip ids, so track the server fetch separately
            self._fetched_upto[contact_id] = max(self._fetched_upto.get(contact_id, 0), messages[-1].id)
        return messages

    def apply_message(self, message: ChatMessageDTO, contact_id: int) -> bool:
        return self.cache.update(thread_key(contact_id), lambda thread: merge_messages(thread, [message]))

    def handle_frame(self, frame: Frame) -> None:
        if frame.type == frames.NEW_MESSAGE:
            self._on_new_message(frame.message)
            self.cache.invalidate(CONTACTS_KEY)
        elif frame.type in (frames.USER_ONLINE, frames.USER_OFFLINE):
            self.cache.invalidate(CONTACTS_KEY)

    def _on_new_message(self, payload: Optional[Dict[str, Any]]) -> None:
        if not payload:
            self.cache.invalidate((MESSAGES_ROOT,))
            return
        try:
            message = ChatMessageDTO.from_wire(payload)
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Unreadable new_message payload: %s", exc)
            self.cache.invalidate((MESSAGES_ROOT,))
            return
        for contact_id in (message.sender_id, message.receiver_id):
            self.apply_message(message, contact_id)

    def reset(self) -> None:
        self.cache.clear()
        self._fetched_upto.clear()
        self.selected_contact_id = None
        self.composer.text = ""


class Composer:
    """Draft state for the selected thread.

    The draft is cleared only after the server acknowledges the send.
    """

    def __init__(self, controller: ChatController):
        self.controller = controller
        self.text = ""
        self.pending = False

    @property
    def can_send(self) -> bool:
        return bool(self.text.strip()) and not self.pending and self.controller.selected_contact_id is not None

    def submit(self, event_id: Optional[int] = None) -> ChatMessageDTO:
        if self.pending:
            raise RuntimeError("A message is already being sent")
        body = self.text.strip()
        if not body:
            raise ValueError("Message must not be empty")
        contact_id = self.controller.selected_contact_id
        if contact_id is None:
            raise RuntimeError("No contact selected")

        self.pending = True
        try:
            raw = self.controller.api.send_message(contact_id, body, event_id=event_id)
        finally:
            self.pending = False

        message = ChatMessageDTO.from_wire(raw)
        self.text = ""
        self.controller.apply_message(message, contact_id)
        self.controller.cache.invalidate(CONTACTS_KEY)
        return message
