"""Console client for the event marketplace chat."""
import logging
import sys
from typing import Optional

from .api import APIClient, APIError
from .channel import SocketChannel
from .cache import thread_key
from .chat import ChatController
from .storage import clear_auth, get_server_url, get_token, get_user, store_auth, store_server_url
from ..shared import frames
from ..shared.dto import ChatMessageDTO, UserDTO
from ..shared.frames import Frame
from ..shared.utils import is_password_strong

USER_TYPES = ("organizer", "provider", "advertiser")


class ConsoleClient:
    """Interactive console client for chatting with other marketplace users."""

    def __init__(self, server_url: str):
        self.api = APIClient(server_url)
        self.controller = ChatController(self.api)
        self.current_user = get_user()
        self.channel: Optional[SocketChannel] = None

    def register(self) -> None:
        print("=== Register ===")
        username = input("Username: ").strip()
        email = input("Email: ").strip()
        password = input("Password (min 10 chars): ").strip()
        user_type = input(f"Account type {USER_TYPES}: ").strip().lower()
        first_name = input("First name (optional): ").strip() or None
        last_name = input("Last name (optional): ").strip() or None

        if not is_password_strong(password):
            print("Password too weak or blacklisted.")
            return
        if user_type not in USER_TYPES:
            print("Unknown account type.")
            return

        payload = {
            "username": username,
            "email": email,
            "password": password,
            "userType": user_type,
            "firstName": first_name,
            "lastName": last_name,
        }
        try:
            self.api.register(payload)
            print("Registration successful. You can now log in.")
        except APIError as exc:
            print(f"Registration failed: {exc.detail}")

    def login(self) -> bool:
        print("=== Login ===")
        username = input("Username: ").strip()
        password = input("Password: ").strip()
        try:
            response = self.api.login(username, password)
        except APIError as exc:
            print(f"Login failed: {exc.detail}")
            return False

        store_auth(response["token"], response["user"])
        self.current_user = response["user"]
        self.controller.reset()
        self._open_channel()
        print(f"Welcome, {self.current_user['username']}!")
        return True

    def _open_channel(self) -> None:
        self.channel = SocketChannel(self.api.socket_url(), get_token, self._on_frame)
        self.channel.start()

    def _on_frame(self, frame: Frame) -> None:
        self.controller.handle_frame(frame)
        if frame.type == frames.NEW_MESSAGE and frame.message:
            msg = ChatMessageDTO.from_wire(frame.message)
            if self.current_user and msg.sender_id != self.current_user["id"]:
                print(f"\n[new message from user {msg.sender_id}] {msg.message}")

    def list_contacts(self, search: str = "") -> None:
        try:
            contacts = self.controller.contacts(search)
        except APIError as exc:
            print(f"Could not fetch contacts: {exc.detail}")
            return
        print(f"Conversations ({len(contacts)})")
        for c in contacts:
            badge = self.controller.unread_badge(c)
            online = "*" if c.is_online else " "
            last = c.last_message.message if c.last_message else ""
            suffix = f" [{badge}]" if badge else ""
            print(f"{online} {c.id}: {c.name} ({c.user_type}){suffix} - {last[:40]}")

    def find_users(self) -> None:
        query = input("Search users: ").strip()
        try:
            users = self.api.list_users(query)
        except APIError as exc:
            print(f"Could not fetch users: {exc.detail}")
            return
        for u in map(UserDTO.from_wire, users):
            print(f"- {u.id}: {u.name} @{u.username} ({u.user_type})")

    def open_thread(self) -> None:
        raw = input("Contact id: ").strip()
        if not raw.isdigit():
            print("Invalid contact id.")
            return
        contact_id = int(raw)
        try:
            self.controller.select_contact(contact_id)
        except APIError as exc:
            print(f"Could not open conversation: {exc.detail}")
            return
        while True:
            self._print_thread()
            print("\nChat commands: [s]end, [r]efresh, [b]ack")
            cmd = input("> ").strip().lower()
            if cmd == "b":
                break
            if cmd == "r":
                self.controller.cache.invalidate(thread_key(contact_id))
            if cmd == "s":
                self.controller.composer.text = input("Message: ")
                self._send()

    def _print_thread(self) -> None:
        try:
            thread = self.controller.thread()
        except APIError as exc:
            print(f"Could not fetch messages: {exc.detail}")
            return
        for msg in thread:
            direction = "(you)" if self.current_user and msg.sender_id == self.current_user["id"] else msg.sender_id
            print(f"[{msg.created_at:%H:%M}] {direction}: {msg.message}")
        if not thread:
            print("No messages yet.")

    def _send(self) -> None:
        composer = self.controller.composer
        if not composer.can_send:
            print("Nothing to send.")
            return
        try:
            composer.submit()
        except APIError as exc:
            print(f"Failed to send message: {exc.detail}")

    def logout(self) -> None:
        if self.channel:
            self.channel.stop()
            self.channel = None
        try:
            self.api.logout()
        except APIError as exc:
            print(f"Server logout failed: {exc.detail}")
        clear_auth()
        self.controller.reset()
        self.current_user = None
        print("Logged out.")


def main():
    logging.basicConfig(level=logging.WARNING, format="%(asctime)s [%(levelname)s] %(name)s - %(message)s")
    print("Event Marketplace Chat")
    server_url = get_server_url() or input("Server URL (e.g. http://127.0.0.1:8000): ").strip()
    store_server_url(server_url)
    client = ConsoleClient(server_url)

    while True:
        print("\nMenu: [r]egister, [l]ogin, [q]uit")
        choice = input("> ").strip().lower()
        if choice == "q":
            sys.exit(0)
        if choice == "r":
            client.register()
        if choice == "l":
            if client.login():
                while get_token():
                    print("\nUser menu: [c]ontacts, [f]ind users, [s]earch contacts, [o]pen chat, [x] logout")
                    sub = input("> ").strip().lower()
                    if sub == "x":
                        client.logout()
                        break
                    if sub == "c":
                        client.list_contacts()
                    if sub == "s":
                        client.list_contacts(input("Search: "))
                    if sub == "f":
                        client.find_users()
                    if sub == "o":
                        client.open_thread()


if __name__ == "__main__":
    main()
