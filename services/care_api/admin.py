"""Admin routes: admin accounts, signup approvals, user management and hospital onboarding."""
import logging
import os

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import delete
from sqlalchemy.engine import Engine
from sqlmodel import Session, or_, select

from services.care_api.security import (
    MIN_PASSWORD_LENGTH,
    get_current_user,
    hash_password,
    is_system_admin,
    public_user,
    require_role,
    unique_username,
)
from shared.db import get_session
from shared.models import (
    AmbulanceRequest,
    Appointment,
    Customer,
    Doctor,
    FeedbackComplaint,
    Hospital,
    HospitalAmbulance,
    Notification,
    PasswordReset,
    PendingRegistration,
    User,
    utcnow,
)
from shared.regions import parse_state_district
from shared.types import (
    AdminType,
    CreateAdminBody,
    CreateHospitalBody,
    PromoteAdminBody,
    RejectRegistrationBody,
    Role,
    SetPasswordBody,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["admin"])

ADMIN_ONLY = (Role.ADMIN.value,)
MANAGED_ROLES = (Role.CUSTOMER.value, Role.DOCTOR.value, Role.STAFF.value, Role.HOSPITAL.value)
ADMIN_ACCESS_REQUIRED = "Unauthorized. Admin access required."


def initialize_admin(engine: Engine) -> None:
    """Seed the system admin from ADMIN_EMAIL / ADMIN_PASSWORD if both are set."""
    admin_email = os.getenv("ADMIN_EMAIL", "")
    admin_password = os.getenv("ADMIN_PASSWORD", "")
    if not admin_email or not admin_password:
        logger.info("ADMIN_EMAIL or ADMIN_PASSWORD not set - skipping default admin creation")
        return

    with Session(engine) as session:
        existing = session.exec(select(User).where(User.email == admin_email)).first()
        if existing is not None:
            if existing.role == Role.ADMIN.value and existing.admin_type != AdminType.SYSTEM.value:
                existing.admin_type = AdminType.SYSTEM.value
                session.add(existing)
                session.commit()
                logger.info(f"Promoted admin {existing.id} to system admin")
            else:
                logger.info("Admin user already exists")
            return

        admin = User(
            username=unique_username(session, admin_email),
            email=admin_email,
            password_hash=hash_password(admin_password),
            role=Role.ADMIN.value,
            full_name="System Administrator",
            admin_type=AdminType.SYSTEM.value,
        )
        session.add(admin)
        session.commit()
        session.refresh(admin)
        # Password comes from the environment and is never logged
        logger.info(f"Default admin user created with ID: {admin.id}")


@router.post("/api/admin/create-admin", status_code=201)
def create_admin(
    body: CreateAdminBody,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    require_role(user, ADMIN_ONLY, "Only administrators can create admin users")

    if not all([body.full_name, body.email, body.password, body.confirmPassword]):
        raise HTTPException(
            status_code=400,
            detail="Name, Email, Password, and Confirm Password are required",
        )
    is_state = body.admin_type == AdminType.STATE
    if is_state and (not body.state or not body.district):
        raise HTTPException(status_code=400, detail="State and District are required for state admins")
    if len(body.password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(status_code=400, detail="Password must be at least 6 characters long")
    if body.password != body.confirmPassword:
        raise HTTPException(status_code=400, detail="Passwords do not match")
    if session.exec(select(User).where(User.email == body.email)).first():
        raise HTTPException(status_code=409, detail="Email already in use")

    admin = User(
        username=unique_username(session, body.email),
        email=body.email,
        password_hash=hash_password(body.password),
        role=Role.ADMIN.value,
        full_name=body.full_name,
        admin_type=body.admin_type.value,
        state=body.state if is_state else None,
        district=body.district if is_state else None,
    )
    session.add(admin)
    session.commit()
    session.refresh(admin)

    label = f"State Admin ({body.state}, {body.district})" if is_state else "System Admin"
    logger.info(f"New {label} created (ID: {admin.id}) by admin {user.id}")
    return {"message": f"{label} created successfully", "user": public_user(admin)}


@router.get("/api/admin/pending-registrations")
def list_pending_registrations(
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    require_role(user, ADMIN_ONLY, "Only admin can view pending registrations")
    rows = session.exec(
        select(PendingRegistration)
        .where(PendingRegistration.status == "pending")
        .order_by(PendingRegistration.created_at.desc())
    ).all()
    registrations = [r.model_dump(exclude={"password_hash"}) for r in rows]
    return {"registrations": registrations, "total": len(registrations)}


def _get_pending(session: Session, registration_id: int) -> PendingRegistration:
    pending = session.get(PendingRegistration, registration_id)
    if pending is None or pending.status != "pending":
        raise HTTPException(status_code=404, detail="Pending registration not found")
    return pending


@router.post("/api/admin/pending-registrations/{registration_id}/approve")
def approve_registration(
    registration_id: int,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    require_role(user, ADMIN_ONLY, "Only admin can approve registrations")
    pending = _get_pending(session, registration_id)

    if session.exec(select(User).where(User.email == pending.email)).first():
        raise HTTPException(status_code=409, detail="Email already in use")
    if session.exec(select(User).where(User.username == pending.username)).first():
        raise HTTPException(status_code=409, detail="Username already exists")

    account = User(
        username=pending.username,
        email=pending.email,
        password_hash=pending.password_hash,
        role=pending.role,
        full_name=pending.full_name,
        phone=pending.phone,
    )
    session.add(account)
    session.flush()

    if pending.role == Role.DOCTOR.value:
        session.add(Doctor(
            user_id=account.id,
            specialization=pending.specialization,
            license_number=pending.license_number,
            experience_years=pending.experience_years,
            consultation_fee=pending.consultation_fee,
            available_days=pending.available_days,
            available_time_start=pending.available_time_start,
            available_time_end=pending.available_time_end,
        ))

    pending.status = "approved"
    pending.approved_by = user.id
    pending.updated_at = utcnow()
    session.add(pending)
    session.commit()

    logger.info(f"Registration {registration_id} approved by admin {user.id} (user {account.id})")
    return {"message": "Registration approved successfully. User can now sign in.", "userId": account.id}


@router.post("/api/admin/pending-registrations/{registration_id}/reject")
def reject_registration(
    registration_id: int,
    body: RejectRegistrationBody,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    require_role(user, ADMIN_ONLY, "Only admin can reject registrations")
    if not (body.admin_notes or "").strip():
        raise HTTPException(status_code=400, detail="Admin notes are required for rejection")

    pending = _get_pending(session, registration_id)
    pending.status = "rejected"
    pending.admin_notes = body.admin_notes
    pending.approved_by = user.id
    pending.updated_at = utcnow()
    session.add(pending)
    session.commit()

    logger.info(f"Registration {registration_id} rejected by admin {user.id}")
    return {"message": "Registration rejected successfully."}


@router.post("/api/admin/hospitals/create", status_code=201)
def create_hospital(
    body: CreateHospitalBody,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    require_role(user, ADMIN_ONLY, "Only admins can create hospitals")

    if session.exec(select(User).where(User.email == body.email)).first():
        raise HTTPException(status_code=409, detail="Email already in use")

    parsed_state, parsed_district = parse_state_district(body.address)

    account = User(
        username=unique_username(session, body.email),
        email=body.email,
        password_hash=hash_password(body.password),
        role=Role.HOSPITAL.value,
        full_name=body.hospital_name,
        phone=body.phone_number,
    )
    session.add(account)
    session.flush()

    hospital = Hospital(
        user_id=account.id,
        hospital_name=body.hospital_name,
        address=body.address,
        phone_number=body.phone_number,
        hospital_type=body.hospital_type,
        license_number=body.license_number,
        number_of_beds=body.number_of_beds,
        departments=body.departments,
        state=body.state or parsed_state,
        district=body.district or parsed_district,
    )
    session.add(hospital)
    session.commit()
    session.refresh(hospital)

    logger.info(f"Hospital {hospital.id} created for user {account.id} (state={hospital.state})")
    return {
        "message": "Hospital created successfully",
        "hospital": hospital.model_dump(),
        "userId": account.id,
    }


@router.get("/api/admin/hospitals")
def list_hospitals(
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    require_role(user, ADMIN_ONLY, "Only admins can view hospitals")
    hospitals = [h.model_dump() for h in session.exec(select(Hospital).order_by(Hospital.hospital_name)).all()]
    return {"hospitals": hospitals, "total": len(hospitals)}


@router.get("/api/hospitals/by-state/{state}")
def hospitals_by_state(
    state: str,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    require_role(user, ADMIN_ONLY, "Only admins can view hospitals")
    rows = session.exec(
        select(Hospital)
        .where(Hospital.state == state, Hospital.status == "active")
        .order_by(Hospital.hospital_name)
    ).all()
    hospitals = [
        {
            "user_id": h.user_id,
            "name": h.hospital_name,
            "address": h.address,
            "state": h.state,
            "district": h.district,
            "number_of_ambulances": h.number_of_ambulances,
        }
        for h in rows
    ]
    return {"hospitals": hospitals, "total": len(hospitals)}


@router.get("/api/admin/users")
def list_users(
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    require_role(user, ADMIN_ONLY, ADMIN_ACCESS_REQUIRED)
    rows = session.exec(
        select(User).where(User.role != Role.ADMIN.value).order_by(User.created_at.desc())
    ).all()
    users = [public_user(u) for u in rows]
    return {"users": users, "total": len(users)}


@router.get("/api/admin/users/{user_role}")
def list_users_by_role(
    user_role: str,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    require_role(user, ADMIN_ONLY, ADMIN_ACCESS_REQUIRED)
    if user_role not in MANAGED_ROLES:
        raise HTTPException(status_code=400, detail="Invalid role specified")
    rows = session.exec(
        select(User).where(User.role == user_role).order_by(User.created_at.desc())
    ).all()
    users = [public_user(u) for u in rows]
    return {"users": users, "total": len(users), "role": user_role}


@router.get("/api/admin/admin-users")
def list_admin_users(
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    require_role(user, ADMIN_ONLY, ADMIN_ACCESS_REQUIRED)
    rows = session.exec(
        select(User).where(User.role == Role.ADMIN.value).order_by(User.created_at.desc())
    ).all()
    users = [public_user(u) for u in rows]
    return {"users": users, "total": len(users)}


@router.post("/api/admin/promote-to-system")
def promote_to_system(
    body: PromoteAdminBody,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    require_role(user, ADMIN_ONLY, ADMIN_ACCESS_REQUIRED)
    if not is_system_admin(user):
        raise HTTPException(
            status_code=403,
            detail="Only system administrators can promote other admins to system level.",
        )
    if not body.email:
        raise HTTPException(status_code=400, detail="Target email is required")

    target = session.exec(select(User).where(User.email == body.email)).first()
    if target is None:
        raise HTTPException(status_code=404, detail="Target user not found")
    if target.role != Role.ADMIN.value:
        raise HTTPException(status_code=400, detail="Target user is not an admin")

    target.admin_type = AdminType.SYSTEM.value
    target.updated_at = utcnow()
    session.add(target)
    session.commit()

    logger.info(f"Admin {target.id} promoted to system admin by {user.id}")
    return {"message": "User promoted to system admin successfully", "email": body.email}


def get_managed_user(session: Session, caller: User, user_id: int, action: str) -> User:
    """
    Load the target of an account action.

    Admin accounts may only be touched by system admins, and system admins
    themselves are off limits.
    """
    target = session.get(User, user_id)
    if target is None:
        raise HTTPException(status_code=404, detail="Target user not found")
    if target.role == Role.ADMIN.value:
        if not is_system_admin(caller):
            raise HTTPException(status_code=403, detail=f"Only system admins can {action} admin accounts")
        if is_system_admin(target):
            raise HTTPException(status_code=403, detail=f"Cannot {action} system administrator")
    return target


@router.post("/api/admin/users/{user_id}/set-password")
def set_user_password(
    user_id: int,
    body: SetPasswordBody,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    require_role(user, ADMIN_ONLY, ADMIN_ACCESS_REQUIRED)
    if not body.newPassword or not body.confirmPassword:
        raise HTTPException(status_code=400, detail="New password and confirm password are required")
    if body.newPassword != body.confirmPassword:
        raise HTTPException(status_code=400, detail="Passwords do not match")
    if len(body.newPassword) < MIN_PASSWORD_LENGTH:
        raise HTTPException(status_code=400, detail="Password must be at least 6 characters long")

    target = get_managed_user(session, user, user_id, "reset the password of")
    target.password_hash = hash_password(body.newPassword)
    target.updated_at = utcnow()
    session.add(target)
    session.commit()

    logger.info(f"Password of user {user_id} set by admin {user.id}")
    return {"message": "Password updated successfully", "userId": user_id}


def _set_account_status(session: Session, target: User, status: str) -> None:
    now = utcnow()
    target.status = status
    target.updated_at = now
    session.add(target)

    hospital = session.exec(select(Hospital).where(Hospital.user_id == target.id)).first()
    if hospital is not None:
        hospital.status = status
        hospital.updated_at = now
        session.add(hospital)
    session.commit()


@router.post("/api/admin/users/{user_id}/suspend")
def suspend_user(
    user_id: int,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    require_role(user, ADMIN_ONLY, ADMIN_ACCESS_REQUIRED)
    target = get_managed_user(session, user, user_id, "suspend")
    _set_account_status(session, target, "suspended")

    label = "Admin" if target.role == Role.ADMIN.value else "User"
    logger.info(f"{label} {user_id} suspended by admin {user.id}")
    return {"message": f"{label} suspended successfully", "userId": user_id, "action": "suspended"}


@router.post("/api/admin/users/{user_id}/reactivate")
def reactivate_user(
    user_id: int,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    require_role(user, ADMIN_ONLY, ADMIN_ACCESS_REQUIRED)
    target = get_managed_user(session, user, user_id, "reactivate")
    _set_account_status(session, target, "active")

    label = "Admin" if target.role == Role.ADMIN.value else "User"
    logger.info(f"{label} {user_id} reactivated by admin {user.id}")
    return {"message": f"{label} reactivated successfully", "userId": user_id, "action": "reactivated"}


@router.delete("/api/admin/users/{user_id}")
def delete_user(
    user_id: int,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    require_role(user, ADMIN_ONLY, ADMIN_ACCESS_REQUIRED)
    target = get_managed_user(session, user, user_id, "delete")

    history = (
        select(AmbulanceRequest.id).where(or_(
            AmbulanceRequest.customer_user_id == user_id,
            AmbulanceRequest.assigned_staff_id == user_id,
            AmbulanceRequest.forwarded_to_hospital_id == user_id,
        )),
        select(Appointment.id).where(or_(
            Appointment.customer_user_id == user_id,
            Appointment.doctor_user_id == user_id,
        )),
        select(FeedbackComplaint.id).where(FeedbackComplaint.customer_user_id == user_id),
        select(HospitalAmbulance.id).where(HospitalAmbulance.hospital_user_id == user_id),
    )
    if any(session.exec(query).first() is not None for query in history):
        raise HTTPException(
            status_code=409,
            detail="User has service history and cannot be deleted. Suspend the account instead.",
        )

    for table in (Notification, Customer, Doctor, Hospital):
        session.exec(delete(table).where(table.user_id == user_id))
    session.exec(delete(PasswordReset).where(PasswordReset.email == target.email))
    session.exec(delete(PendingRegistration).where(PendingRegistration.email == target.email))
    session.delete(target)
    session.commit()

    label = "Admin" if target.role == Role.ADMIN.value else "User"
    logger.info(f"{label} {user_id} deleted by admin {user.id}")
    return {"message": f"{label} deleted successfully", "userId": user_id, "action": "deleted"}
