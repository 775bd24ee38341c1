"""Thin HTTP client for the care API."""
import logging
import os
from typing import Any, Optional

import httpx

from client.session import Session, SessionStore

logger = logging.getLogger(__name__)

HEALTHOPS_API_URL = os.getenv("HEALTHOPS_API_URL", "http://localhost:8080")


class ApiError(Exception):
    """A failed call. `message` is what the user should see."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class CareApiClient:
    """
    Wraps an httpx.Client with bearer auth and {"error": ...} handling.

    Pass `http` to reuse an existing client (a FastAPI TestClient works,
    since it is an httpx.Client).
    """

    def __init__(
        self,
        base_url: str = HEALTHOPS_API_URL,
        store: Optional[SessionStore] = None,
        http: Optional[httpx.Client] = None,
    ):
        self.store = store or SessionStore()
        self.http = http or httpx.Client(base_url=base_url, timeout=10.0)
        self.session: Optional[Session] = self.store.load()

    def close(self):
        self.http.close()

    def _headers(self) -> dict:
        if self.session is None:
            return {}
        return {"Authorization": f"Bearer {self.session.token}"}

    def request(self, method: str, path: str, json: Any = None, params: Optional[dict] = None) -> dict:
        try:
            response = self.http.request(method, path, json=json, params=params, headers=self._headers())
        except httpx.TransportError as e:
            logger.warning(f"{method} {path} failed: {e}")
            raise ApiError("Network error")

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.is_error:
            message = body.get("error") if isinstance(body, dict) else None
            raise ApiError(message or f"Request failed with status {response.status_code}", response.status_code)
        return body

    def get(self, path: str, **params) -> dict:
        return self.request("GET", path, params=params or None)

    def post(self, path: str, json: Any = None) -> dict:
        return self.request("POST", path, json=json)

    def put(self, path: str, json: Any = None) -> dict:
        return self.request("PUT", path, json=json)

    def delete(self, path: str) -> dict:
        return self.request("DELETE", path)

    # Session

    def login(self, email: str, password: str) -> Session:
        body = self.post("/api/auth/login", {"email": email, "password": password})
        user = body["user"]
        self.session = Session(token=body["token"], role=user["role"], name=user["full_name"], user_id=user["id"])
        self.store.save(self.session)
        return self.session

    def logout(self):
        self.session = None
        self.store.clear()

    # Ambulance requests

    def list_requests(self, unread_only: bool = False) -> list:
        params = {"unread_only": "true"} if unread_only else {}
        return self.get("/api/ambulance", **params)["requests"]

    def create_request(self, **fields) -> int:
        return self.post("/api/ambulance", fields)["requestId"]

    def claim_request(self, request_id: int) -> dict:
        return self.post(f"/api/ambulance/{request_id}/assign")

    def update_status(self, request_id: int, status: str, notes: Optional[str] = None) -> dict:
        return self.put(f"/api/ambulance/{request_id}/status", {"status": status, "notes": notes})

    def forward_to_hospital(self, request_id: int, hospital_user_id: int) -> dict:
        return self.post(f"/api/ambulance/{request_id}/forward-to-hospital", {"hospital_user_id": hospital_user_id})

    def forwarded_requests(self) -> list:
        return self.get("/api/ambulance/hospital/forwarded-requests")["requests"]

    def respond_to_request(
        self, request_id: int, response: str, notes: str, ambulance_id: Optional[int] = None
    ) -> dict:
        return self.post(
            f"/api/ambulance/{request_id}/hospital-response",
            {"response": response, "notes": notes, "ambulance_id": ambulance_id},
        )

    # Hospital fleet

    def available_ambulances(self) -> list:
        return self.get("/api/hospital/ambulances/available")["ambulances"]

    def park_ambulance(self, ambulance_id: int) -> dict:
        return self.post(f"/api/hospital/ambulances/{ambulance_id}/park")

    # Notifications

    def notifications(self) -> dict:
        return self.get("/api/notifications")

    def mark_notification_read(self, notification_id: int) -> dict:
        return self.post(f"/api/notifications/{notification_id}/read")

    def mark_all_notifications_read(self) -> dict:
        return self.post("/api/notifications/mark-all-read")
