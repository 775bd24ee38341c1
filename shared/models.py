"""SQLModel tables for HealthOps."""
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime
from sqlmodel import SQLModel, Field

TIMESTAMP = DateTime(timezone=True)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """SQLite hands timestamps back without an offset; they are stored as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(index=True, unique=True)
    email: str = Field(index=True, unique=True)
    password_hash: str
    role: str
    full_name: str
    phone: Optional[str] = Field(default=None, index=True)
    status: str = "active"  # active, suspended
    admin_type: Optional[str] = None  # system, state
    state: Optional[str] = None
    district: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow, sa_type=TIMESTAMP)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=TIMESTAMP)


class Customer(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    date_of_birth: Optional[str] = None
    gender: Optional[str] = None
    blood_group: Optional[str] = None
    address: Optional[str] = None
    signup_lat: Optional[str] = None
    signup_lng: Optional[str] = None
    emergency_contact: Optional[str] = None
    allergies: Optional[str] = None
    medical_conditions: Optional[str] = None


class Doctor(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    specialization: Optional[str] = None
    license_number: Optional[str] = None
    experience_years: Optional[int] = None
    consultation_fee: Optional[float] = None
    available_days: Optional[str] = None
    available_time_start: Optional[str] = None
    available_time_end: Optional[str] = None


class PendingRegistration(SQLModel, table=True):
    """Doctor and staff signups awaiting admin approval."""
    __tablename__ = "pending_registration"

    id: Optional[int] = Field(default=None, primary_key=True)
    username: str
    email: str = Field(index=True, unique=True)
    password_hash: str
    role: str
    full_name: str
    phone: Optional[str] = None
    status: str = "pending"  # pending, approved, rejected
    admin_notes: Optional[str] = None
    approved_by: Optional[int] = None
    specialization: Optional[str] = None
    license_number: Optional[str] = None
    experience_years: Optional[int] = None
    consultation_fee: Optional[float] = None
    available_days: Optional[str] = None
    available_time_start: Optional[str] = None
    available_time_end: Optional[str] = None
    department: Optional[str] = None
    employee_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow, sa_type=TIMESTAMP)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=TIMESTAMP)


class PasswordReset(SQLModel, table=True):
    __tablename__ = "password_reset"

    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(index=True)
    token: str = Field(index=True, unique=True)
    expires_at: datetime = Field(sa_type=TIMESTAMP)
    created_at: datetime = Field(default_factory=utcnow, sa_type=TIMESTAMP)


class Hospital(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", unique=True)
    hospital_name: str
    address: str
    phone_number: Optional[str] = None
    hospital_type: Optional[str] = None
    license_number: Optional[str] = None
    number_of_ambulances: int = 0
    number_of_beds: int = 0
    departments: Optional[str] = None
    state: Optional[str] = Field(default=None, index=True)
    district: Optional[str] = None
    status: str = "active"
    created_at: datetime = Field(default_factory=utcnow, sa_type=TIMESTAMP)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=TIMESTAMP)


class AmbulanceRequest(SQLModel, table=True):
    __tablename__ = "ambulance_request"

    id: Optional[int] = Field(default=None, primary_key=True)
    customer_user_id: int = Field(foreign_key="user.id", index=True)
    pickup_address: str
    destination_address: str
    emergency_type: str
    customer_condition: Optional[str] = None
    contact_number: str
    status: str = "pending"
    priority: str = "normal"
    assigned_staff_id: Optional[int] = Field(default=None, foreign_key="user.id")
    assigned_ambulance_id: Optional[int] = None
    notes: Optional[str] = None
    is_read: bool = False
    forwarded_to_hospital_id: Optional[int] = Field(default=None, foreign_key="user.id")
    hospital_response: Optional[str] = None  # pending, accepted, rejected
    hospital_response_notes: Optional[str] = None
    hospital_response_date: Optional[datetime] = Field(default=None, sa_type=TIMESTAMP)
    customer_state: Optional[str] = Field(default=None, index=True)
    customer_district: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow, sa_type=TIMESTAMP)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=TIMESTAMP)


class HospitalAmbulance(SQLModel, table=True):
    __tablename__ = "hospital_ambulance"

    id: Optional[int] = Field(default=None, primary_key=True)
    hospital_user_id: int = Field(foreign_key="user.id", index=True)
    registration_number: str = Field(unique=True)
    ambulance_type: str
    model: Optional[str] = None
    manufacturer: Optional[str] = None
    registration_year: Optional[int] = None
    driver_name: Optional[str] = None
    driver_phone: Optional[str] = None
    driver_license_number: Optional[str] = None
    equipment: Optional[str] = None
    status: str = "available"
    current_location: Optional[str] = None
    assigned_request_id: Optional[int] = None
    created_at: datetime = Field(default_factory=utcnow, sa_type=TIMESTAMP)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=TIMESTAMP)


class Notification(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    type: str
    title: str
    message: str
    is_read: bool = False
    related_id: Optional[int] = None
    created_at: datetime = Field(default_factory=utcnow, sa_type=TIMESTAMP)


class Appointment(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    customer_user_id: int = Field(foreign_key="user.id", index=True)
    doctor_user_id: Optional[int] = Field(default=None, foreign_key="user.id")
    appointment_date: str
    appointment_time: str
    status: str = "pending"
    reason: Optional[str] = None
    symptoms: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow, sa_type=TIMESTAMP)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=TIMESTAMP)


class FeedbackComplaint(SQLModel, table=True):
    __tablename__ = "feedback_complaint"

    id: Optional[int] = Field(default=None, primary_key=True)
    customer_user_id: int = Field(foreign_key="user.id", index=True)
    type: str  # feedback, complaint
    subject: str
    description: str
    category: str = "other"
    priority: str = "normal"
    status: str = "pending"
    rating: Optional[int] = None
    admin_response: Optional[str] = None
    admin_user_id: Optional[int] = None
    resolved_at: Optional[datetime] = Field(default=None, sa_type=TIMESTAMP)
    created_at: datetime = Field(default_factory=utcnow, sa_type=TIMESTAMP)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=TIMESTAMP)
