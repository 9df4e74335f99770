"""HTTP API client for the event marketplace chat server."""
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urlsplit, urlunsplit

import requests

from .storage import get_token


class APIError(RuntimeError):
    """Non-2xx response from the server."""

    def __init__(self, status_code: int, detail: str):
        super().__init__(f"{status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail


class APIClient:
    def __init__(self, base_url: str, token_provider: Callable[[], Optional[str]] = get_token, timeout: float = 10):
        self.base_url = base_url.rstrip("/")
        self.token_provider = token_provider
        self.timeout = timeout
        self.session = requests.Session()

    def _headers(self) -> Dict[str, str]:
        token = self.token_provider()
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            resp = self.session.request(
                method, f"{self.base_url}{path}", headers=self._headers(), timeout=self.timeout, **kwargs
            )
        except requests.RequestException as exc:
            # status 0: the request never got a response
            raise APIError(0, str(exc)) from exc
        if not resp.ok:
            try:
                detail = resp.json().get("detail", resp.reason)
            except ValueError:
                detail = resp.text or resp.reason
            raise APIError(resp.status_code, str(detail))
        return resp.json()

    def socket_url(self) -> str:
        parts = urlsplit(self.base_url)
        scheme = "wss" if parts.scheme == "https" else "ws"
        return urlunsplit((scheme, parts.netloc, "/ws", "", ""))

    def register(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", "/api/auth/register", json=payload)

    def login(self, username: str, password: str) -> Dict[str, Any]:
        return self._request("POST", "/api/auth/login", json={"username": username, "password": password})

    def logout(self) -> Dict[str, Any]:
        return self._request("POST", "/api/auth/logout")

    def me(self) -> Dict[str, Any]:
        return self._request("GET", "/api/auth/me")

    def list_users(self, query: Optional[str] = None) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {}
        if query:
            params["q"] = query
        return self._request("GET", "/api/users", params=params)

    def contacts(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/api/chat/contacts")

    def messages(self, contact_id: int, after_id: int = 0) -> List[Dict[str, Any]]:
        return self._request("GET", "/api/chat/messages", params={"contactId": contact_id, "afterId": after_id})

    def send_message(self, receiver_id: int, message: str, event_id: Optional[int] = None) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"receiverId": receiver_id, "message": message}
        if event_id is not None:
            payload["eventId"] = event_id
        return self._request("POST", "/api/chat/messages", json=payload)
