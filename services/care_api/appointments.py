"""Doctor appointment booking."""
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import aliased
from sqlmodel import Session, or_, select

from services.care_api.security import get_current_user, require_role
from shared.db import get_session
from shared.models import Appointment, Doctor, User, utcnow
from shared.types import AppointmentBody, AppointmentUpdateBody, Role

logger = logging.getLogger(__name__)

router = APIRouter(tags=["appointments"])

CustomerUser = aliased(User)
DoctorUser = aliased(User)


def _with_names():
    return (
        select(Appointment, CustomerUser.full_name, DoctorUser.full_name)
        .join(CustomerUser, CustomerUser.id == Appointment.customer_user_id)
        .join(DoctorUser, DoctorUser.id == Appointment.doctor_user_id, isouter=True)
    )


def serialize_appointment(appointment: Appointment, customer_name, doctor_name) -> dict:
    data = appointment.model_dump()
    data["customer_name"] = customer_name
    data["doctor_name"] = doctor_name
    return data


@router.post("/api/appointments", status_code=201)
def create_appointment(
    body: AppointmentBody,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    require_role(user, (Role.CUSTOMER.value,), "Only customers can book appointments")
    if not all([body.appointment_date, body.appointment_time, body.reason]):
        raise HTTPException(
            status_code=400,
            detail="Missing required fields: appointment_date, appointment_time, reason",
        )

    if body.doctor_user_id is not None:
        doctor = session.get(User, body.doctor_user_id)
        if doctor is None or doctor.role != Role.DOCTOR.value:
            raise HTTPException(status_code=400, detail="Invalid doctor selected")

    appointment = Appointment(
        customer_user_id=user.id,
        doctor_user_id=body.doctor_user_id,
        appointment_date=body.appointment_date,
        appointment_time=body.appointment_time,
        reason=body.reason,
        symptoms=body.symptoms,
    )
    session.add(appointment)
    session.commit()
    session.refresh(appointment)

    logger.info(f"Appointment {appointment.id} booked by customer {user.id}")
    return {"message": "Appointment booked successfully", "appointmentId": appointment.id}


@router.get("/api/appointments")
def list_appointments(
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    require_role(user, (Role.DOCTOR.value, Role.ADMIN.value), "Only doctors and admin can view appointments")
    query = _with_names()
    if user.role == Role.DOCTOR.value:
        query = query.where(
            or_(Appointment.doctor_user_id == user.id, Appointment.doctor_user_id.is_(None))
        )
    rows = session.exec(
        query.order_by(Appointment.appointment_date.desc(), Appointment.appointment_time.desc())
    ).all()
    appointments = [serialize_appointment(*row) for row in rows]
    return {"appointments": appointments, "total": len(appointments)}


@router.get("/api/appointments/my-appointments")
def list_my_appointments(
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    require_role(user, (Role.CUSTOMER.value,), "Only customers can view their own appointments")
    rows = session.exec(
        _with_names()
        .where(Appointment.customer_user_id == user.id)
        .order_by(Appointment.appointment_date.desc(), Appointment.appointment_time.desc())
    ).all()
    appointments = [serialize_appointment(*row) for row in rows]
    return {"appointments": appointments, "total": len(appointments)}


@router.put("/api/appointments/{appointment_id}")
def update_appointment(
    appointment_id: int,
    body: AppointmentUpdateBody,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    require_role(user, (Role.DOCTOR.value, Role.ADMIN.value), "Only doctors and admin can update appointments")
    appointment = session.get(Appointment, appointment_id)
    if appointment is None:
        raise HTTPException(status_code=404, detail="Appointment not found")

    if (
        user.role == Role.DOCTOR.value
        and appointment.doctor_user_id is not None
        and appointment.doctor_user_id != user.id
    ):
        raise HTTPException(status_code=403, detail="You can only update your own appointments")

    if body.status is not None:
        appointment.status = body.status.value
    if body.doctor_user_id is not None:
        appointment.doctor_user_id = body.doctor_user_id
    if body.notes is not None:
        appointment.notes = body.notes
    appointment.updated_at = utcnow()
    session.add(appointment)
    session.commit()

    logger.info(f"Appointment {appointment_id} updated by {user.role} {user.id} (status={appointment.status})")
    return {"message": "Appointment updated successfully"}


@router.get("/api/doctors/available")
def list_available_doctors(session: Session = Depends(get_session)):
    rows = session.exec(
        select(User, Doctor)
        .join(Doctor, Doctor.user_id == User.id)
        .where(User.role == Role.DOCTOR.value, User.status == "active")
        .order_by(User.full_name)
    ).all()
    doctors = [
        {
            "id": user.id,
            "full_name": user.full_name,
            "phone": user.phone,
            "specialization": doctor.specialization,
            "experience_years": doctor.experience_years,
            "consultation_fee": doctor.consultation_fee,
            "available_days": doctor.available_days,
        }
        for user, doctor in rows
    ]
    return {"doctors": doctors, "total": len(doctors)}
