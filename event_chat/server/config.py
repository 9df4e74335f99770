"""Server configuration values."""
import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent
DATABASE_URL = os.environ.get("EVENT_CHAT_DATABASE_URL", f"sqlite:///{BASE_DIR / 'event_chat.db'}")
LOG_FILE = Path(os.environ.get("EVENT_CHAT_LOG_FILE", BASE_DIR / "server.log"))
TOKEN_EXPIRY_MINUTES = int(os.environ.get("EVENT_CHAT_TOKEN_EXPIRY_MINUTES", 60 * 24))
MAX_MESSAGE_LENGTH = int(os.environ.get("EVENT_CHAT_MAX_MESSAGE_LENGTH", 5000))
MAX_FAILED_LOGINS = int(os.environ.get("EVENT_CHAT_MAX_FAILED_LOGINS", 5))
LOCK_MINUTES = int(os.environ.get("EVENT_CHAT_LOCK_MINUTES", 10))
