"""List filtering, action availability and forms for the request dashboards."""
from typing import Iterable, List, Optional

from client.api import CareApiClient

ALL = "all"

# Status actions a staff member gets on a request they hold
STATUS_ACTIONS = {
    "assigned": ["mark_on_the_way"],
    "on_the_way": ["mark_completed"],
}


class FormError(Exception):
    """Rejected before any request is sent."""


def _enabled(value: Optional[str]) -> bool:
    return bool(value) and value != ALL


def matches_search(request: dict, search: str) -> bool:
    term = search.lower()
    for field in ("patient_name", "emergency_type", "pickup_address"):
        if term in str(request.get(field) or "").lower():
            return True
    return term in str(request.get("id", ""))


def filter_requests(
    requests: Iterable[dict],
    search: Optional[str] = None,
    status: Optional[str] = ALL,
    priority: Optional[str] = ALL,
) -> List[dict]:
    """Requests matching every enabled filter."""
    result = []
    for request in requests:
        if _enabled(search) and not matches_search(request, search):
            continue
        if _enabled(status) and request.get("status") != status:
            continue
        if _enabled(priority) and request.get("priority") != priority:
            continue
        result.append(request)
    return result


def request_actions(request: dict, staff_id: int) -> List[str]:
    if request.get("status") == "pending" and request.get("assigned_staff_id") is None:
        return ["assign_to_me"]
    if request.get("assigned_staff_id") != staff_id:
        return []
    return list(STATUS_ACTIONS.get(request.get("status"), []))


def request_stats(requests: Iterable[dict]) -> dict:
    stats = {"total": 0, "pending": 0, "assigned": 0, "on_the_way": 0, "completed": 0, "critical": 0}
    for request in requests:
        stats["total"] += 1
        if request.get("status") in stats:
            stats[request["status"]] += 1
        if request.get("priority") == "critical":
            stats["critical"] += 1
    return stats


class HospitalResponseForm:
    """Accept/reject dialog for a forwarded request."""

    def __init__(self, api: CareApiClient, request_id: int):
        self.api = api
        self.request_id = request_id
        self.response: Optional[str] = None
        self.notes = ""
        self.ambulance_id: Optional[int] = None

    def validate(self):
        if self.response not in ("accepted", "rejected"):
            raise FormError("Please choose to accept or reject the request")
        if self.response == "accepted" and self.ambulance_id is None:
            raise FormError("Please select an ambulance to accept this request")
        if self.response == "rejected" and not self.notes.strip():
            raise FormError("Please provide a reason for rejecting this request")

    def submit(self) -> dict:
        self.validate()
        return self.api.respond_to_request(
            self.request_id,
            self.response,
            self.notes,
            self.ambulance_id if self.response == "accepted" else None,
        )
