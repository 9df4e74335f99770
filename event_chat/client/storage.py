"""Local client storage for the session token, user and server URL."""
import json
import os
from pathlib import Path
from typing import Any, Dict, Optional


def _storage_file() -> Path:
    override = os.environ.get("EVENT_CHAT_CLIENT_STATE")
    if override:
        return Path(override)
    return Path.home() / ".event_chat_client.json"


def load_state() -> Dict[str, Any]:
    storage_file = _storage_file()
    if storage_file.exists():
        with storage_file.open("r", encoding="utf-8") as f:
            return json.load(f)
    return {}


def save_state(data: Dict[str, Any]) -> None:
    storage_file = _storage_file()
    storage_file.parent.mkdir(parents=True, exist_ok=True)
    with storage_file.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


def store_auth(token: str, user: Dict[str, Any]) -> None:
    state = load_state()
    state["token"] = token
    state["user"] = user
    save_state(state)


def clear_auth() -> None:
    state = load_state()
    for key in ["token", "user"]:
        state.pop(key, None)
    save_state(state)


def get_token() -> Optional[str]:
    return load_state().get("token")


def get_user() -> Optional[Dict[str, Any]]:
    return load_state().get("user")


def store_server_url(url: str) -> None:
    state = load_state()
    state["server_url"] = url
    save_state(state)


def get_server_url() -> Optional[str]:
    return load_state().get("server_url")
