"""Hospital profile and ambulance fleet routes."""
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import update
from sqlmodel import Session, select

from services.care_api.notifier import Notifier, get_notifier
from services.care_api.security import get_current_user, require_role
from services.care_api.workflow import (
    WorkflowError,
    check_bindable_ambulance,
    check_binding_request,
    check_manual_ambulance_status,
    check_park,
)
from shared.db import get_session
from shared.models import AmbulanceRequest, Hospital, HospitalAmbulance, User, utcnow
from shared.types import (
    AmbulanceBody,
    AmbulanceStatus,
    AmbulanceUpdateBody,
    HospitalResponse,
    Role,
    UpdateHospitalBody,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/hospital", tags=["hospital"])

HOSPITAL_ONLY = (Role.HOSPITAL.value,)


def get_hospital(session: Session, user: User) -> Hospital:
    require_role(user, HOSPITAL_ONLY, "Only hospitals can access this resource")
    hospital = session.exec(select(Hospital).where(Hospital.user_id == user.id)).first()
    if hospital is None:
        raise HTTPException(status_code=404, detail="Hospital profile not found")
    return hospital


def get_own_ambulance(session: Session, user: User, ambulance_id: int) -> HospitalAmbulance:
    ambulance = session.get(HospitalAmbulance, ambulance_id)
    if ambulance is None:
        raise HTTPException(status_code=404, detail="Ambulance not found")
    if ambulance.hospital_user_id != user.id:
        raise HTTPException(status_code=403, detail="You can only manage your own ambulances")
    return ambulance


def serialize_ambulance(ambulance: HospitalAmbulance, request: AmbulanceRequest | None = None) -> dict:
    data = ambulance.model_dump()
    if request is not None:
        data["request"] = {
            "id": request.id,
            "status": request.status,
            "pickup_address": request.pickup_address,
            "destination_address": request.destination_address,
            "emergency_type": request.emergency_type,
            "priority": request.priority,
        }
    return data


@router.get("/profile")
def get_profile(
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return {"hospital": get_hospital(session, user).model_dump()}


@router.put("/update")
def update_profile(
    body: UpdateHospitalBody,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    hospital = get_hospital(session, user)
    changes = body.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        raise HTTPException(status_code=400, detail="No fields to update")

    for field, value in changes.items():
        setattr(hospital, field, value)
    hospital.updated_at = utcnow()
    session.add(hospital)
    session.commit()
    session.refresh(hospital)

    logger.info(f"Hospital {hospital.id} profile updated ({', '.join(changes)})")
    return {"message": "Hospital profile updated successfully", "hospital": hospital.model_dump()}


@router.get("/ambulances")
def list_ambulances(
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    require_role(user, HOSPITAL_ONLY, "Only hospitals can view ambulances")
    rows = session.exec(
        select(HospitalAmbulance, AmbulanceRequest)
        .join(
            AmbulanceRequest,
            AmbulanceRequest.id == HospitalAmbulance.assigned_request_id,
            isouter=True,
        )
        .where(HospitalAmbulance.hospital_user_id == user.id)
        .order_by(HospitalAmbulance.registration_number)
    ).all()
    ambulances = [serialize_ambulance(ambulance, request) for ambulance, request in rows]
    return {"ambulances": ambulances, "total": len(ambulances)}


@router.get("/ambulances/available")
def list_available_ambulances(
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    require_role(user, HOSPITAL_ONLY, "Only hospitals can view ambulances")
    rows = session.exec(
        select(HospitalAmbulance)
        .where(
            HospitalAmbulance.hospital_user_id == user.id,
            HospitalAmbulance.status == AmbulanceStatus.AVAILABLE.value,
        )
        .order_by(HospitalAmbulance.registration_number)
    ).all()
    ambulances = [a.model_dump() for a in rows]
    return {"ambulances": ambulances, "total": len(ambulances)}


@router.post("/ambulances", status_code=201)
def create_ambulance(
    body: AmbulanceBody,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    hospital = get_hospital(session, user)
    if not body.registration_number or body.ambulance_type is None:
        raise HTTPException(status_code=400, detail="Registration number and ambulance type are required")

    taken = session.exec(
        select(HospitalAmbulance).where(HospitalAmbulance.registration_number == body.registration_number)
    ).first()
    if taken is not None:
        raise HTTPException(status_code=400, detail="An ambulance with this registration number already exists")

    fields = body.model_dump(exclude_none=True)
    fields["ambulance_type"] = body.ambulance_type.value
    ambulance = HospitalAmbulance(hospital_user_id=user.id, **fields)
    session.add(ambulance)

    hospital.number_of_ambulances += 1
    hospital.updated_at = utcnow()
    session.add(hospital)
    session.commit()
    session.refresh(ambulance)

    logger.info(f"Ambulance {ambulance.id} ({ambulance.registration_number}) added by hospital {user.id}")
    return {"message": "Ambulance added successfully", "ambulance": ambulance.model_dump()}


@router.put("/ambulances/{ambulance_id}")
def update_ambulance(
    ambulance_id: int,
    body: AmbulanceUpdateBody,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    require_role(user, HOSPITAL_ONLY, "Only hospitals can update ambulances")
    ambulance = get_own_ambulance(session, user, ambulance_id)

    changes = body.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        raise HTTPException(status_code=400, detail="No fields to update")

    if body.status is not None:
        check_manual_ambulance_status(ambulance, body.status)
        changes["status"] = body.status.value
    if body.ambulance_type is not None:
        changes["ambulance_type"] = body.ambulance_type.value
    if body.registration_number and body.registration_number != ambulance.registration_number:
        taken = session.exec(
            select(HospitalAmbulance).where(HospitalAmbulance.registration_number == body.registration_number)
        ).first()
        if taken is not None:
            raise HTTPException(status_code=400, detail="An ambulance with this registration number already exists")

    for field, value in changes.items():
        setattr(ambulance, field, value)
    ambulance.updated_at = utcnow()
    session.add(ambulance)
    session.commit()
    session.refresh(ambulance)

    return {"message": "Ambulance updated successfully", "ambulance": ambulance.model_dump()}


@router.delete("/ambulances/{ambulance_id}")
def delete_ambulance(
    ambulance_id: int,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    hospital = get_hospital(session, user)
    ambulance = get_own_ambulance(session, user, ambulance_id)
    if ambulance.status == AmbulanceStatus.ASSIGNED.value:
        raise WorkflowError("Cannot delete an ambulance that is assigned to a request")

    session.delete(ambulance)
    hospital.number_of_ambulances = max(0, hospital.number_of_ambulances - 1)
    hospital.updated_at = utcnow()
    session.add(hospital)
    session.commit()

    logger.info(f"Ambulance {ambulance_id} deleted by hospital {user.id}")
    return {"message": "Ambulance deleted successfully"}


@router.post("/ambulances/{ambulance_id}/park")
def park_ambulance(
    ambulance_id: int,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """Return an ambulance to service and unlink it from its request."""
    require_role(user, HOSPITAL_ONLY, "Only hospitals can park ambulances")
    ambulance = session.get(HospitalAmbulance, ambulance_id)
    linked = None
    if ambulance is not None and ambulance.assigned_request_id is not None:
        linked = session.get(AmbulanceRequest, ambulance.assigned_request_id)
    check_park(ambulance, user.id, linked)

    now = utcnow()
    if linked is not None and linked.assigned_ambulance_id == ambulance.id:
        linked.assigned_ambulance_id = None
        linked.updated_at = now
        session.add(linked)

    ambulance.status = AmbulanceStatus.AVAILABLE.value
    ambulance.assigned_request_id = None
    ambulance.updated_at = now
    session.add(ambulance)
    session.commit()

    logger.info(f"Ambulance {ambulance_id} parked by hospital {user.id}")
    return {"message": "Ambulance parked successfully"}


@router.post("/ambulances/{ambulance_id}/assign/{request_id}")
def assign_ambulance(
    ambulance_id: int,
    request_id: int,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
):
    """Bind an available ambulance to a request forwarded to this hospital."""
    require_role(user, HOSPITAL_ONLY, "Only hospitals can assign ambulances")
    ambulance = check_bindable_ambulance(session.get(HospitalAmbulance, ambulance_id), user.id)
    request = check_binding_request(session.get(AmbulanceRequest, request_id), user.id)
    was_pending = request.hospital_response == HospitalResponse.PENDING.value
    now = utcnow()

    bound = session.exec(
        update(HospitalAmbulance)
        .where(
            HospitalAmbulance.id == ambulance_id,
            HospitalAmbulance.status == AmbulanceStatus.AVAILABLE.value,
        )
        .values(status=AmbulanceStatus.ASSIGNED.value, assigned_request_id=request_id, updated_at=now)
    )
    if bound.rowcount == 0:
        session.rollback()
        raise WorkflowError("Ambulance is no longer available")

    values = {"assigned_ambulance_id": ambulance_id, "updated_at": now}
    if was_pending:
        values.update(hospital_response=HospitalResponse.ACCEPTED.value, hospital_response_date=now)
    linked = session.exec(
        update(AmbulanceRequest)
        .where(AmbulanceRequest.id == request_id, AmbulanceRequest.assigned_ambulance_id.is_(None))
        .values(**values)
    )
    if linked.rowcount == 0:
        session.rollback()
        raise WorkflowError("Request already has an ambulance assigned")

    notifier.notify(
        request.customer_user_id,
        "Ambulance Assigned",
        f"{user.full_name} assigned ambulance {ambulance.registration_number} to your request.",
        related_id=request_id,
    )
    session.commit()
    notifier.publish()

    logger.info(f"Ambulance {ambulance_id} bound to request {request_id} by hospital {user.id}")
    return {"message": "Ambulance assigned successfully"}
