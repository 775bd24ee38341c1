"""Authentication routes: signup, login, password reset and profile."""
import logging
import os
import re
import secrets
import smtplib
from datetime import timedelta

import redis
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlmodel import Session, select

from services.care_api import mailer
from services.care_api.security import (
    MIN_PASSWORD_LENGTH,
    create_access_token,
    get_current_user,
    hash_password,
    public_user,
    username_taken,
    verify_password,
)
from shared.db import get_session
from shared.models import Customer, PasswordReset, PendingRegistration, User, as_utc, utcnow
from shared.redis_client import get_redis, hit_rate_limit
from shared.types import (
    ChangePasswordBody,
    ForgotPasswordBody,
    LoginBody,
    RegisterBody,
    ResetPasswordBody,
    Role,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "")

RESET_TOKEN_TTL = timedelta(hours=1)
RESET_RATE_LIMIT = 5
RESET_RATE_WINDOW_SECONDS = 60 * 60

PHONE_RE = re.compile(r"^[0-9]{10}$")

GENERIC_RESET_MESSAGE = "If an account with that email exists, a reset link has been sent."


def is_admin_signup_allowed(email: str) -> bool:
    """Only the configured bootstrap admin email may self-register as admin."""
    return bool(ADMIN_EMAIL) and email == ADMIN_EMAIL


def get_user_by_email(session: Session, email: str) -> User | None:
    return session.exec(select(User).where(User.email == email)).first()


def login_payload(message: str, user: User) -> dict:
    return {
        "message": message,
        "token": create_access_token(user),
        "user": {
            "id": user.id,
            "username": user.username,
            "email": user.email,
            "role": user.role,
            "full_name": user.full_name,
            "phone": user.phone,
        },
    }


@router.post("/register", status_code=201)
def register(body: RegisterBody, session: Session = Depends(get_session)):
    """Register a customer directly, or queue a doctor/staff signup for approval."""
    if not all([body.username, body.email, body.password, body.role, body.full_name]):
        raise HTTPException(
            status_code=400,
            detail="Missing required fields: username, email, password, role, full_name",
        )

    if body.role not in (Role.CUSTOMER.value, Role.DOCTOR.value, Role.STAFF.value, Role.ADMIN.value):
        raise HTTPException(status_code=400, detail="Invalid role")

    if body.role == Role.ADMIN.value and not is_admin_signup_allowed(body.email):
        raise HTTPException(
            status_code=403,
            detail="Admin registration is restricted. Only the system administrator can have admin access.",
        )

    if body.phone and not PHONE_RE.match(body.phone):
        raise HTTPException(status_code=400, detail="Mobile number must be exactly 10 digits")

    if get_user_by_email(session, body.email) or session.exec(
        select(PendingRegistration).where(PendingRegistration.email == body.email)
    ).first():
        logger.info("Registration blocked - email already in use")
        raise HTTPException(status_code=409, detail="Mobile or Email already in use")

    if body.phone and session.exec(select(User).where(User.phone == body.phone)).first():
        logger.info("Registration blocked - phone already in use")
        raise HTTPException(status_code=409, detail="Mobile or Email already in use")

    if username_taken(session, body.username):
        raise HTTPException(status_code=409, detail="Username already exists")

    if body.role in (Role.DOCTOR.value, Role.STAFF.value):
        pending = PendingRegistration(
            username=body.username,
            email=body.email,
            password_hash=hash_password(body.password),
            role=body.role,
            full_name=body.full_name,
            phone=body.phone,
            specialization=body.specialization,
            license_number=body.license_number,
            experience_years=body.experience_years,
            consultation_fee=body.consultation_fee,
            available_days=body.available_days,
            available_time_start=body.available_time_start,
            available_time_end=body.available_time_end,
            department="General" if body.role == Role.STAFF.value else None,
            employee_id=f"EMP{secrets.randbelow(10**8):08d}" if body.role == Role.STAFF.value else None,
        )
        session.add(pending)
        session.commit()
        session.refresh(pending)
        logger.info(f"Pending {body.role} registration created with ID: {pending.id}")
        return {
            "message": (
                f"Registration request submitted successfully. Your {body.role} account "
                "will be activated after admin approval."
            ),
            "pendingId": pending.id,
            "requiresApproval": True,
            "role": body.role,
        }

    user = User(
        username=body.username,
        email=body.email,
        password_hash=hash_password(body.password),
        role=body.role,
        full_name=body.full_name,
        phone=body.phone,
        admin_type="system" if body.role == Role.ADMIN.value else None,
    )
    session.add(user)
    session.flush()

    if body.role == Role.CUSTOMER.value:
        session.add(Customer(
            user_id=user.id,
            date_of_birth=body.date_of_birth,
            gender=body.gender,
            blood_group=body.blood_group,
            address=body.address,
            signup_lat=body.signup_lat,
            signup_lng=body.signup_lng,
            emergency_contact=body.emergency_contact,
            allergies=body.allergies,
            medical_conditions=body.medical_conditions,
        ))

    session.commit()
    session.refresh(user)
    logger.info(f"{body.role} registered with ID: {user.id}")

    label = "Customer" if body.role == Role.CUSTOMER.value else "Admin"
    return login_payload(f"{label} registered successfully", user)


@router.post("/login")
def login(body: LoginBody, session: Session = Depends(get_session)):
    if not body.email or not body.password:
        raise HTTPException(status_code=400, detail="Email and password are required")

    user = get_user_by_email(session, body.email)
    if user is None:
        pending = session.exec(
            select(PendingRegistration).where(PendingRegistration.email == body.email)
        ).first()
        if pending is not None and pending.status == "pending":
            return JSONResponse(
                {
                    "error": "Your account is pending admin approval. Please wait for approval before signing in.",
                    "status": "pending_approval",
                },
                status_code=403,
            )
        if pending is not None and pending.status == "rejected":
            return JSONResponse(
                {"error": "Your registration request was rejected by admin.", "status": "rejected"},
                status_code=403,
            )
        raise HTTPException(status_code=401, detail="Invalid email or password")

    # Password first, so suspension status is not disclosed to guessers
    if not verify_password(body.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid email or password")

    if user.status == "suspended":
        return JSONResponse(
            {
                "error": "Your account has been suspended by the administrator. Please contact support for assistance.",
                "status": "suspended",
                "type": "account_suspended",
            },
            status_code=403,
        )

    logger.info(f"User {user.id} logged in as {user.role}")
    return login_payload("Login successful", user)


@router.post("/forgot-password")
def forgot_password(
    body: ForgotPasswordBody,
    request: Request,
    session: Session = Depends(get_session),
    redis_client: redis.Redis = Depends(get_redis),
):
    if not body.email:
        raise HTTPException(status_code=400, detail="Email is required")

    ip = request.client.host if request.client else ""
    limited_ip = hit_rate_limit(redis_client, f"reset:ip:{ip}", RESET_RATE_LIMIT, RESET_RATE_WINDOW_SECONDS)
    limited_email = hit_rate_limit(
        redis_client, f"reset:email:{body.email}", RESET_RATE_LIMIT, RESET_RATE_WINDOW_SECONDS
    )
    if limited_ip or limited_email:
        logger.warning(f"Rate limit reached for password reset ({mailer.mask_email(body.email)})")
        raise HTTPException(
            status_code=429,
            detail="Too many password reset requests. Please try again later.",
        )

    user = get_user_by_email(session, body.email)
    if user is None:
        return {"message": GENERIC_RESET_MESSAGE}

    if not mailer.smtp_configured():
        logger.error("SMTP not configured - cannot send password reset email")
        raise HTTPException(
            status_code=500,
            detail="Password reset not configured. Please contact the administrator to enable email sending (SMTP).",
        )

    token = secrets.token_hex(32)
    session.add(PasswordReset(email=body.email, token=token, expires_at=utcnow() + RESET_TOKEN_TTL))
    session.commit()

    try:
        mailer.send_reset_email(body.email, token)
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"Failed to send reset email to {mailer.mask_email(body.email)}: {e}")
        raise HTTPException(status_code=500, detail="Failed to send password reset email")

    return {"message": GENERIC_RESET_MESSAGE}


@router.post("/reset-password")
def reset_password(body: ResetPasswordBody, session: Session = Depends(get_session)):
    if not body.token or not body.newPassword:
        raise HTTPException(status_code=400, detail="Token and newPassword are required")

    if len(body.newPassword) < MIN_PASSWORD_LENGTH:
        raise HTTPException(status_code=400, detail="New password must be at least 6 characters long")

    reset = session.exec(select(PasswordReset).where(PasswordReset.token == body.token)).first()
    if reset is None:
        raise HTTPException(status_code=400, detail="Invalid or expired token")

    if as_utc(reset.expires_at) < utcnow():
        session.delete(reset)
        session.commit()
        raise HTTPException(status_code=400, detail="Invalid or expired token")

    user = get_user_by_email(session, reset.email)
    if user is None:
        raise HTTPException(status_code=500, detail="Failed to update password")

    user.password_hash = hash_password(body.newPassword)
    user.updated_at = utcnow()
    session.add(user)
    session.delete(reset)
    session.commit()

    logger.info(f"Password reset for user {user.id}")
    return {"message": "Password reset successful"}


@router.get("/profile")
def get_profile(user: User = Depends(get_current_user)):
    return {"user": public_user(user)}


@router.post("/change-password")
def change_password(
    body: ChangePasswordBody,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    if not body.currentPassword or not body.newPassword:
        raise HTTPException(status_code=400, detail="Current password and new password are required")

    if len(body.newPassword) < MIN_PASSWORD_LENGTH:
        raise HTTPException(status_code=400, detail="New password must be at least 6 characters long")

    if not verify_password(body.currentPassword, user.password_hash):
        raise HTTPException(status_code=401, detail="Current password is incorrect")

    user.password_hash = hash_password(body.newPassword)
    user.updated_at = utcnow()
    session.add(user)
    session.commit()

    return {"message": "Password changed successfully", "success": True}
