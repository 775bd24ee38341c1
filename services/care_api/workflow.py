"""
Ambulance request workflow - guards for every lifecycle transition.

Request side:
  pending -> assigned (staff claim) -> on_the_way -> completed
  pending -> cancelled

Hospital side, independent of the request status:
  hospital_response: pending -> accepted (ambulance bound) | rejected (notes)

Ambulance side:
  available -> assigned (bound to a request) -> available (parked)

The functions here only inspect rows and raise WorkflowError; the routers
perform the writes so each transition stays a single transaction.
"""

from typing import Iterable, Optional

from shared.models import AmbulanceRequest, HospitalAmbulance, as_utc
from shared.types import AmbulanceStatus, HospitalResponse, Priority, RequestStatus

STATUS_TRANSITIONS = {
    RequestStatus.PENDING: {RequestStatus.ASSIGNED, RequestStatus.CANCELLED},
    RequestStatus.ASSIGNED: {RequestStatus.ON_THE_WAY},
    RequestStatus.ON_THE_WAY: {RequestStatus.COMPLETED},
    RequestStatus.COMPLETED: set(),
    RequestStatus.CANCELLED: set(),
}

TERMINAL_STATUSES = {RequestStatus.COMPLETED, RequestStatus.CANCELLED}

PRIORITY_RANK = {
    Priority.CRITICAL.value: 1,
    Priority.HIGH.value: 2,
    Priority.NORMAL.value: 3,
    Priority.LOW.value: 4,
}

# Ambulance statuses a hospital may set by hand; "assigned" only comes from binding.
MANUAL_AMBULANCE_STATUSES = {
    AmbulanceStatus.AVAILABLE,
    AmbulanceStatus.PARKED,
    AmbulanceStatus.MAINTENANCE,
}


class WorkflowError(Exception):
    """A transition was refused. Rendered as {"error": message}."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def parse_status(value: str) -> RequestStatus:
    try:
        return RequestStatus(value)
    except ValueError:
        raise WorkflowError("Invalid status provided")


def is_terminal(request: AmbulanceRequest) -> bool:
    return request.status in {s.value for s in TERMINAL_STATUSES}


def can_transition(current: str, target: RequestStatus) -> bool:
    return target in STATUS_TRANSITIONS.get(RequestStatus(current), set())


def check_claim(request: Optional[AmbulanceRequest]) -> AmbulanceRequest:
    """Staff "assign to me": pending and nobody on it yet."""
    if request is None:
        raise WorkflowError("Ambulance request not found", 404)
    if request.status != RequestStatus.PENDING.value:
        raise WorkflowError("Request is not in pending status")
    if request.assigned_staff_id is not None:
        raise WorkflowError("Request is already assigned to another staff member")
    return request


def check_status_update(
    request: Optional[AmbulanceRequest],
    target: RequestStatus,
    actor_id: int,
    actor_is_admin: bool,
) -> AmbulanceRequest:
    if request is None:
        raise WorkflowError("Ambulance request not found", 404)
    if target == RequestStatus.ASSIGNED:
        raise WorkflowError("Use the assign action to claim a request")
    if not actor_is_admin and request.assigned_staff_id != actor_id:
        raise WorkflowError("You can only update requests assigned to you", 403)
    if not can_transition(request.status, target):
        raise WorkflowError(
            f"Cannot change status from {request.status} to {target.value}"
        )
    return request


def check_forward(request: Optional[AmbulanceRequest]) -> AmbulanceRequest:
    if request is None:
        raise WorkflowError("Ambulance request not found", 404)
    if is_terminal(request):
        raise WorkflowError(f"Cannot forward a {request.status} request")
    if request.hospital_response == HospitalResponse.PENDING.value:
        raise WorkflowError("Request is already awaiting a hospital response")
    return request


def check_hospital_response(
    request: Optional[AmbulanceRequest],
    hospital_user_id: int,
    response: str,
    notes: Optional[str],
    ambulance: Optional[HospitalAmbulance],
    ambulance_id: Optional[int],
) -> HospitalResponse:
    """Validate a hospital's accept/reject and return the parsed decision."""
    if response not in (HospitalResponse.ACCEPTED.value, HospitalResponse.REJECTED.value):
        raise WorkflowError("Response must be accepted or rejected")
    if request is None or request.forwarded_to_hospital_id != hospital_user_id:
        raise WorkflowError("Request not found or not forwarded to your hospital", 404)
    if is_terminal(request):
        raise WorkflowError(f"Cannot respond to a {request.status} request")
    if request.hospital_response != HospitalResponse.PENDING.value:
        raise WorkflowError("Request has already been answered")

    decision = HospitalResponse(response)
    if decision == HospitalResponse.REJECTED:
        if not (notes or "").strip():
            raise WorkflowError("Notes are required when rejecting a request")
        return decision

    if ambulance_id is None:
        raise WorkflowError("Please select an ambulance to accept this request")
    check_bindable_ambulance(ambulance, hospital_user_id)
    return decision


def check_bindable_ambulance(
    ambulance: Optional[HospitalAmbulance], hospital_user_id: int
) -> HospitalAmbulance:
    if ambulance is None:
        raise WorkflowError("Ambulance not found", 404)
    if ambulance.hospital_user_id != hospital_user_id:
        raise WorkflowError("You can only assign your own ambulances", 403)
    if ambulance.status != AmbulanceStatus.AVAILABLE.value:
        raise WorkflowError(f"Ambulance is not available (status: {ambulance.status})")
    return ambulance


def check_binding_request(
    request: Optional[AmbulanceRequest], hospital_user_id: int
) -> AmbulanceRequest:
    """Request side of a direct ambulance binding."""
    if request is None or request.forwarded_to_hospital_id != hospital_user_id:
        raise WorkflowError("This request is not forwarded to your hospital", 403)
    if request.hospital_response not in (
        HospitalResponse.PENDING.value,
        HospitalResponse.ACCEPTED.value,
    ):
        raise WorkflowError("Cannot assign an ambulance to a rejected request")
    if is_terminal(request):
        raise WorkflowError(f"Cannot assign an ambulance to a {request.status} request")
    if request.assigned_ambulance_id is not None:
        raise WorkflowError("Request already has an ambulance assigned")
    return request


def check_park(
    ambulance: Optional[HospitalAmbulance],
    hospital_user_id: int,
    linked_request: Optional[AmbulanceRequest],
) -> HospitalAmbulance:
    if ambulance is None or ambulance.hospital_user_id != hospital_user_id:
        raise WorkflowError("You can only park your own ambulances", 403)
    if linked_request is not None and linked_request.status == RequestStatus.ON_THE_WAY.value:
        raise WorkflowError("Cannot park an ambulance while its request is on the way")
    return ambulance


def check_manual_ambulance_status(
    ambulance: HospitalAmbulance, target: AmbulanceStatus
) -> None:
    if target not in MANUAL_AMBULANCE_STATUSES:
        raise WorkflowError("Ambulances are assigned by binding them to a request")
    if ambulance.status == AmbulanceStatus.ASSIGNED.value:
        raise WorkflowError("Park the ambulance before changing its status")


def priority_rank(priority: Optional[str]) -> int:
    return PRIORITY_RANK.get(priority or "", PRIORITY_RANK[Priority.NORMAL.value])


def sort_by_priority(requests: Iterable[dict]) -> list[dict]:
    """Most urgent first, newest first within a priority."""
    by_newest = sorted(requests, key=lambda r: as_utc(r["created_at"]), reverse=True)
    return sorted(by_newest, key=lambda r: priority_rank(r.get("priority")))
