"""HTTP client for the FitPantry API.

Thin wrapper over ``httpx.Client``: bearer auth, JSON in and out, and one
exception type for every non-2xx response. Pass ``http=`` to reuse an
existing client (a FastAPI ``TestClient`` works, since it is an httpx
client).
"""

import logging
from typing import Any, Optional

import httpx

from .events import Observable

logger = logging.getLogger("fitpantry.client")

DEFAULT_BASE_URL = "http://localhost:8000"
DEFAULT_TIMEOUT = 90.0  # a turn waits on the completion provider


class ApiError(Exception):
    def __init__(self, status_code: int, message: str, payload: Optional[dict] = None):
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message
        self.payload = payload or {}

    @property
    def conversation_id(self) -> Optional[str]:
        return self.payload.get("conversationId")


class FitPantryClient:
    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        token: Optional[str] = None,
        http: Optional[httpx.Client] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.http = http or httpx.Client(base_url=base_url, timeout=timeout)
        self.token = token
        # Published after every successful pantry mutation.
        self.pantry_changed: Observable[dict] = Observable()

    def close(self) -> None:
        self.http.close()

    def _headers(self) -> dict[str, str]:
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}

    def _request(self, method: str, path: str, json: Any = None) -> Any:
        response = self.http.request(method, path, json=json, headers=self._headers())
        if response.status_code >= 400:
            try:
                payload = response.json()
            except ValueError:
                payload = {}
            if not isinstance(payload, dict):
                payload = {}
            message = payload.get("message") or payload.get("detail") or response.reason_phrase
            if not isinstance(message, str):
                message = str(message)
            logger.warning(f"{method} {path} -> {response.status_code}: {message}")
            raise ApiError(response.status_code, message, payload)
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    # --- Auth ---

    def register(self, email: str, password: str, confirm_password: str) -> dict:
        return self._request("POST", "/api/auth/register", {
            "email": email,
            "password": password,
            "confirmPassword": confirm_password,
        })

    def login(self, email: str, password: str) -> dict:
        data = self._request("POST", "/api/auth/login", {"email": email, "password": password})
        self.token = data["token"]
        return data["user"]

    def logout(self) -> None:
        if self.token:
            self._request("POST", "/api/auth/logout")
        self.token = None

    def me(self) -> dict:
        return self._request("GET", "/api/auth/me")

    # --- Pantry ---

    def list_pantry(self) -> list[dict]:
        return self._request("GET", "/api/pantry/")

    def pantry_stats(self) -> dict:
        return self._request("GET", "/api/pantry/stats")

    def add_pantry_item(self, item_name: str, category: str, notes: Optional[str] = None) -> dict:
        item = self._request("POST", "/api/pantry/", {
            "itemName": item_name, "category": category, "notes": notes,
        })
        self.pantry_changed.publish({"action": "added", "item": item})
        return item

    def update_pantry_item(
        self, item_id: str, item_name: str, category: str, notes: Optional[str] = None
    ) -> dict:
        item = self._request("PUT", f"/api/pantry/{item_id}", {
            "itemName": item_name, "category": category, "notes": notes,
        })
        self.pantry_changed.publish({"action": "updated", "item": item})
        return item

    def delete_pantry_item(self, item_id: str) -> None:
        self._request("DELETE", f"/api/pantry/{item_id}")
        self.pantry_changed.publish({"action": "deleted", "id": item_id})

    # --- Profile ---

    def get_profile(self) -> dict:
        return self._request("GET", "/api/profile")

    def update_profile(self, **fields: Any) -> dict:
        """Keyword names are the wire names, e.g. ``healthGoal=...``."""
        return self._request("PUT", "/api/profile", fields)

    def delete_api_key(self) -> dict:
        return self._request("DELETE", "/api/profile/api-key")

    # --- Chat ---

    def list_conversations(self) -> list[dict]:
        return self._request("GET", "/api/chat/conversations")["conversations"]

    def list_messages(self, conversation_id: str) -> list[dict]:
        return self._request("GET", f"/api/chat/conversations/{conversation_id}/messages")["messages"]

    def send_turn(self, message: str, conversation_id: Optional[str] = None) -> dict:
        body: dict[str, Any] = {"message": message}
        if conversation_id:
            body["conversationId"] = conversation_id
        return self._request("POST", "/api/chat", body)

    def delete_conversation(self, conversation_id: str) -> dict:
        return self._request("DELETE", f"/api/chat/conversations/{conversation_id}")
