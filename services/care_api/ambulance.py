"""Ambulance request routes: intake, staff workflow and hospital forwarding."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import update
from sqlmodel import Session, select

from services.care_api import geocoding
from services.care_api.notifier import Notifier, get_notifier
from services.care_api.security import get_current_user, require_role
from services.care_api.workflow import (
    TERMINAL_STATUSES,
    WorkflowError,
    check_claim,
    check_forward,
    check_hospital_response,
    check_status_update,
    parse_status,
    sort_by_priority,
)
from shared.db import get_session
from shared.models import AmbulanceRequest, HospitalAmbulance, User, utcnow
from shared.types import (
    AdminType,
    AmbulanceRequestBody,
    AmbulanceStatus,
    ForwardBody,
    HospitalResponse,
    HospitalResponseBody,
    RequestEditBody,
    RequestStatus,
    Role,
    StatusUpdateBody,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ambulance", tags=["ambulance"])

STATUS_MESSAGES = {
    RequestStatus.ON_THE_WAY: "Your ambulance is on the way.",
    RequestStatus.COMPLETED: "Your ambulance request has been completed.",
    RequestStatus.CANCELLED: "Your ambulance request has been cancelled.",
}


def serialize_request(
    request: AmbulanceRequest,
    patient_name: Optional[str] = None,
    ambulance: Optional[HospitalAmbulance] = None,
) -> dict:
    data = request.model_dump()
    data["patient_name"] = patient_name
    if ambulance is not None:
        data["ambulance"] = {
            "id": ambulance.id,
            "registration_number": ambulance.registration_number,
            "ambulance_type": ambulance.ambulance_type,
            "driver_name": ambulance.driver_name,
            "driver_phone": ambulance.driver_phone,
            "status": ambulance.status,
        }
    return data


def is_state_admin(user: User) -> bool:
    return user.role == Role.ADMIN.value and user.admin_type == AdminType.STATE.value


def _with_patient():
    return select(AmbulanceRequest, User.full_name).join(
        User, User.id == AmbulanceRequest.customer_user_id
    )


@router.post("", status_code=201)
def create_request(
    body: AmbulanceRequestBody,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
):
    require_role(user, (Role.CUSTOMER.value,), "Only customers can request an ambulance")
    if not all([body.pickup_address, body.destination_address, body.emergency_type, body.contact_number]):
        raise HTTPException(
            status_code=400,
            detail="Pickup address, destination address, emergency type, and contact number are required",
        )

    state, district = geocoding.locate(body.pickup_address)

    request = AmbulanceRequest(
        customer_user_id=user.id,
        pickup_address=body.pickup_address,
        destination_address=body.destination_address,
        emergency_type=body.emergency_type,
        customer_condition=body.customer_condition,
        contact_number=body.contact_number,
        priority=body.priority.value,
        customer_state=state,
        customer_district=district,
    )
    session.add(request)
    session.flush()

    notifier.notify_admins(
        state,
        "New Ambulance Request",
        f"{user.full_name} requested an ambulance ({body.emergency_type}) from {body.pickup_address}",
        related_id=request.id,
    )
    session.commit()
    notifier.publish()

    logger.info(f"Ambulance request {request.id} created by customer {user.id} (state={state})")
    return {"message": "Ambulance request submitted successfully", "requestId": request.id}


@router.get("")
def list_requests(
    unread_only: bool = False,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    require_role(user, (Role.STAFF.value, Role.ADMIN.value), "Only staff and admin can view all requests")

    query = _with_patient()
    if unread_only:
        query = query.where(AmbulanceRequest.is_read == False)  # noqa: E712
    if is_state_admin(user):
        query = query.where(AmbulanceRequest.customer_state == user.state)

    requests = sort_by_priority(
        serialize_request(request, patient_name) for request, patient_name in session.exec(query).all()
    )
    return {"requests": requests, "total": len(requests)}


@router.get("/customer")
def list_customer_requests(
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    require_role(user, (Role.CUSTOMER.value,), "Only customers can view their requests")
    rows = session.exec(
        select(AmbulanceRequest)
        .where(AmbulanceRequest.customer_user_id == user.id)
        .order_by(AmbulanceRequest.created_at.desc())
    ).all()
    requests = [serialize_request(r, user.full_name) for r in rows]
    return {"requests": requests, "total": len(requests)}


@router.get("/hospital/forwarded-requests")
def list_forwarded_requests(
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    require_role(user, (Role.HOSPITAL.value,), "Only hospitals can view forwarded requests")
    rows = session.exec(
        select(AmbulanceRequest, User.full_name, HospitalAmbulance)
        .join(User, User.id == AmbulanceRequest.customer_user_id)
        .join(
            HospitalAmbulance,
            HospitalAmbulance.id == AmbulanceRequest.assigned_ambulance_id,
            isouter=True,
        )
        .where(AmbulanceRequest.forwarded_to_hospital_id == user.id)
    ).all()
    requests = sort_by_priority(
        serialize_request(request, patient_name, ambulance) for request, patient_name, ambulance in rows
    )
    return {"requests": requests, "total": len(requests)}


@router.put("/requests/{request_id}")
def edit_request(
    request_id: int,
    body: RequestEditBody,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    require_role(user, (Role.STAFF.value, Role.ADMIN.value), "Only staff and admin can edit requests")
    request = session.get(AmbulanceRequest, request_id)
    if request is None:
        raise HTTPException(status_code=404, detail="Ambulance request not found")
    if body.notes is None and body.priority is None:
        raise HTTPException(status_code=400, detail="No fields to update")

    if body.notes is not None:
        request.notes = body.notes
    if body.priority is not None:
        request.priority = body.priority.value
    request.updated_at = utcnow()
    session.add(request)
    session.commit()
    session.refresh(request)

    logger.info(f"Ambulance request {request_id} edited by {user.role} {user.id}")
    return {"message": "Request updated successfully", "request": serialize_request(request)}


@router.get("/{request_id}")
def get_request(
    request_id: int,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    row = session.exec(_with_patient().where(AmbulanceRequest.id == request_id)).first()
    if row is None:
        raise HTTPException(status_code=404, detail="Ambulance request not found")
    request, patient_name = row

    allowed = (
        user.role in (Role.STAFF.value, Role.ADMIN.value)
        or request.customer_user_id == user.id
        or (user.role == Role.HOSPITAL.value and request.forwarded_to_hospital_id == user.id)
    )
    if not allowed:
        raise HTTPException(status_code=403, detail="You do not have access to this request")

    ambulance = session.get(HospitalAmbulance, request.assigned_ambulance_id) if request.assigned_ambulance_id else None
    return {"request": serialize_request(request, patient_name, ambulance)}


@router.post("/{request_id}/assign")
def claim_request(
    request_id: int,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
):
    """Staff "assign to me"."""
    require_role(user, (Role.STAFF.value,), "Only staff can assign requests")
    request = check_claim(session.get(AmbulanceRequest, request_id))

    result = session.exec(
        update(AmbulanceRequest)
        .where(
            AmbulanceRequest.id == request_id,
            AmbulanceRequest.status == RequestStatus.PENDING.value,
            AmbulanceRequest.assigned_staff_id.is_(None),
        )
        .values(
            status=RequestStatus.ASSIGNED.value,
            assigned_staff_id=user.id,
            updated_at=utcnow(),
        )
    )
    if result.rowcount == 0:
        session.rollback()
        logger.info(f"Claim of request {request_id} by staff {user.id} lost the race")
        raise WorkflowError("Request is already assigned to another staff member")

    notifier.notify(
        request.customer_user_id,
        "Ambulance Assigned",
        f"{user.full_name} has been assigned to your ambulance request.",
        related_id=request_id,
    )
    session.commit()
    notifier.publish()

    logger.info(f"Ambulance request {request_id} claimed by staff {user.id}")
    return {"message": "Request assigned successfully"}


@router.put("/{request_id}/status")
def update_status(
    request_id: int,
    body: StatusUpdateBody,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
):
    require_role(user, (Role.STAFF.value, Role.ADMIN.value), "Only staff and admin can update request status")
    target = parse_status(body.status)
    request = check_status_update(
        session.get(AmbulanceRequest, request_id),
        target,
        user.id,
        user.role == Role.ADMIN.value,
    )
    previous = request.status

    values = {"status": target.value, "updated_at": utcnow()}
    if body.notes is not None:
        values["notes"] = body.notes
    if target in TERMINAL_STATUSES and request.hospital_response == HospitalResponse.PENDING.value:
        # A closed request no longer awaits a hospital
        values["hospital_response"] = None
    result = session.exec(
        update(AmbulanceRequest)
        .where(AmbulanceRequest.id == request_id, AmbulanceRequest.status == previous)
        .values(**values)
    )
    if result.rowcount == 0:
        session.rollback()
        raise WorkflowError("Request status changed, please refresh and try again", 409)

    notifier.notify(
        request.customer_user_id,
        "Ambulance Status Updated",
        STATUS_MESSAGES.get(target, f"Your request is now {target.value}."),
        related_id=request_id,
    )
    session.commit()
    notifier.publish()

    logger.info(f"Ambulance request {request_id}: {previous} -> {target.value} by {user.role} {user.id}")
    return {"message": "Status updated successfully", "status": target.value}


@router.post("/{request_id}/forward-to-hospital")
def forward_to_hospital(
    request_id: int,
    body: ForwardBody,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
):
    require_role(user, (Role.ADMIN.value,), "Only admins can forward requests to hospitals")
    if body.hospital_user_id is None:
        raise HTTPException(status_code=400, detail="Hospital is required")

    hospital_user = session.get(User, body.hospital_user_id)
    if hospital_user is None or hospital_user.role != Role.HOSPITAL.value:
        raise HTTPException(status_code=404, detail="Hospital not found")

    request = check_forward(session.get(AmbulanceRequest, request_id))
    if is_state_admin(user) and request.customer_state != user.state:
        raise HTTPException(status_code=403, detail="You can only forward requests from your state")

    request.forwarded_to_hospital_id = hospital_user.id
    request.hospital_response = HospitalResponse.PENDING.value
    request.hospital_response_notes = None
    request.hospital_response_date = None
    request.is_read = False
    request.updated_at = utcnow()
    session.add(request)

    notifier.notify(
        hospital_user.id,
        "New Forwarded Request",
        f"An ambulance request ({request.emergency_type}) from {request.pickup_address} was forwarded to you.",
        related_id=request_id,
    )
    notifier.notify(
        request.customer_user_id,
        "Request Forwarded",
        f"Your ambulance request was forwarded to {hospital_user.full_name}.",
        related_id=request_id,
    )
    session.commit()
    notifier.publish()

    logger.info(f"Ambulance request {request_id} forwarded to hospital {hospital_user.id} by admin {user.id}")
    return {"message": "Request forwarded to hospital successfully"}


@router.post("/{request_id}/mark-read")
def mark_request_read(
    request_id: int,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    require_role(user, (Role.ADMIN.value, Role.HOSPITAL.value), "Only admins and hospitals can mark requests read")
    request = session.get(AmbulanceRequest, request_id)
    if request is None or (
        user.role == Role.HOSPITAL.value and request.forwarded_to_hospital_id != user.id
    ):
        raise HTTPException(status_code=404, detail="Ambulance request not found")

    request.is_read = True
    session.add(request)
    session.commit()
    return {"message": "Request marked as read"}


@router.post("/{request_id}/hospital-response")
def hospital_response(
    request_id: int,
    body: HospitalResponseBody,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
):
    """Hospital accepts (binding one of its ambulances) or rejects a forwarded request."""
    require_role(user, (Role.HOSPITAL.value,), "Only hospitals can respond to forwarded requests")
    request = session.get(AmbulanceRequest, request_id)
    ambulance = session.get(HospitalAmbulance, body.ambulance_id) if body.ambulance_id is not None else None
    decision = check_hospital_response(
        request, user.id, body.response, body.notes, ambulance, body.ambulance_id
    )
    now = utcnow()

    if decision == HospitalResponse.ACCEPTED:
        bound = session.exec(
            update(HospitalAmbulance)
            .where(
                HospitalAmbulance.id == ambulance.id,
                HospitalAmbulance.hospital_user_id == user.id,
                HospitalAmbulance.status == AmbulanceStatus.AVAILABLE.value,
            )
            .values(
                status=AmbulanceStatus.ASSIGNED.value,
                assigned_request_id=request_id,
                updated_at=now,
            )
        )
        if bound.rowcount == 0:
            session.rollback()
            raise WorkflowError("Ambulance is no longer available")

    answered = session.exec(
        update(AmbulanceRequest)
        .where(
            AmbulanceRequest.id == request_id,
            AmbulanceRequest.forwarded_to_hospital_id == user.id,
            AmbulanceRequest.hospital_response == HospitalResponse.PENDING.value,
            AmbulanceRequest.status.not_in([s.value for s in TERMINAL_STATUSES]),
        )
        .values(
            hospital_response=decision.value,
            hospital_response_notes=body.notes,
            hospital_response_date=now,
            assigned_ambulance_id=ambulance.id if decision == HospitalResponse.ACCEPTED else None,
            updated_at=now,
        )
    )
    if answered.rowcount == 0:
        session.rollback()
        raise WorkflowError("Request has already been answered")

    hospital_name = user.full_name
    if decision == HospitalResponse.ACCEPTED:
        customer_message = (
            f"{hospital_name} accepted your request. Ambulance {ambulance.registration_number} is assigned."
        )
    else:
        customer_message = f"{hospital_name} could not take your request: {body.notes}"
    notifier.notify(
        request.customer_user_id,
        f"Request {decision.value.capitalize()} by Hospital",
        customer_message,
        related_id=request_id,
    )
    notifier.notify_admins(
        request.customer_state,
        f"Hospital {decision.value.capitalize()} Request",
        f"{hospital_name} {decision.value} ambulance request #{request_id}.",
        related_id=request_id,
    )
    session.commit()
    notifier.publish()

    logger.info(f"Hospital {user.id} {decision.value} ambulance request {request_id}")
    return {"message": f"Request {decision.value} successfully", "hospital_response": decision.value}
