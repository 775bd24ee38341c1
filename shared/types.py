"""Shared type definitions for HealthOps services."""
from typing import Optional
from enum import Enum
from pydantic import BaseModel, EmailStr, Field


class Role(str, Enum):
    """Account roles."""
    ADMIN = "admin"
    DOCTOR = "doctor"
    STAFF = "staff"
    CUSTOMER = "customer"
    HOSPITAL = "hospital"


class AdminType(str, Enum):
    SYSTEM = "system"
    STATE = "state"


class RequestStatus(str, Enum):
    """Ambulance service request lifecycle."""
    PENDING = "pending"
    ASSIGNED = "assigned"
    ON_THE_WAY = "on_the_way"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class HospitalResponse(str, Enum):
    """Decision a hospital records against a forwarded request."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class Priority(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"


class AmbulanceStatus(str, Enum):
    """Hospital fleet vehicle status."""
    AVAILABLE = "available"
    ASSIGNED = "assigned"
    PARKED = "parked"
    MAINTENANCE = "maintenance"


class AmbulanceType(str, Enum):
    BASIC = "Basic Life Support"
    ADVANCED = "Advanced Life Support"
    VENTILATOR = "Ventilator Support"


class AppointmentStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class FeedbackStatus(str, Enum):
    PENDING = "pending"
    IN_REVIEW = "in_review"
    RESOLVED = "resolved"
    CLOSED = "closed"


class RegisterBody(BaseModel):
    """Signup payload. Customer and doctor fields are optional extras."""
    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    role: Optional[str] = None
    full_name: Optional[str] = None
    phone: Optional[str] = None
    # customer
    date_of_birth: Optional[str] = None
    gender: Optional[str] = None
    blood_group: Optional[str] = None
    address: Optional[str] = None
    signup_lat: Optional[str] = None
    signup_lng: Optional[str] = None
    emergency_contact: Optional[str] = None
    allergies: Optional[str] = None
    medical_conditions: Optional[str] = None
    # doctor
    specialization: Optional[str] = None
    license_number: Optional[str] = None
    experience_years: Optional[int] = None
    consultation_fee: Optional[float] = None
    available_days: Optional[str] = None
    available_time_start: Optional[str] = None
    available_time_end: Optional[str] = None


class LoginBody(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class ForgotPasswordBody(BaseModel):
    email: Optional[str] = None


class ResetPasswordBody(BaseModel):
    token: Optional[str] = None
    newPassword: Optional[str] = None


class ChangePasswordBody(BaseModel):
    currentPassword: Optional[str] = None
    newPassword: Optional[str] = None


class CreateAdminBody(BaseModel):
    full_name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    confirmPassword: Optional[str] = None
    admin_type: AdminType = AdminType.STATE
    state: Optional[str] = None
    district: Optional[str] = None


class RejectRegistrationBody(BaseModel):
    admin_notes: Optional[str] = None


class PromoteAdminBody(BaseModel):
    email: Optional[str] = None


class SetPasswordBody(BaseModel):
    newPassword: Optional[str] = None
    confirmPassword: Optional[str] = None


class CreateHospitalBody(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)
    hospital_name: str
    address: str
    phone_number: Optional[str] = None
    hospital_type: Optional[str] = None
    license_number: Optional[str] = None
    number_of_beds: int = 0
    departments: Optional[str] = None
    state: Optional[str] = None
    district: Optional[str] = None


class UpdateHospitalBody(BaseModel):
    hospital_name: Optional[str] = None
    address: Optional[str] = None
    phone_number: Optional[str] = None
    hospital_type: Optional[str] = None
    number_of_beds: Optional[int] = None
    departments: Optional[str] = None
    state: Optional[str] = None
    district: Optional[str] = None


class AmbulanceRequestBody(BaseModel):
    """Customer submission for an ambulance."""
    pickup_address: Optional[str] = None
    destination_address: Optional[str] = None
    emergency_type: Optional[str] = None
    customer_condition: Optional[str] = None
    contact_number: Optional[str] = None
    priority: Priority = Priority.NORMAL


class StatusUpdateBody(BaseModel):
    status: str
    notes: Optional[str] = None


class RequestEditBody(BaseModel):
    notes: Optional[str] = None
    priority: Optional[Priority] = None


class ForwardBody(BaseModel):
    hospital_user_id: Optional[int] = None


class HospitalResponseBody(BaseModel):
    response: str
    notes: Optional[str] = None
    ambulance_id: Optional[int] = None  # required when accepting


class AmbulanceBody(BaseModel):
    registration_number: Optional[str] = None
    ambulance_type: Optional[AmbulanceType] = None
    model: Optional[str] = None
    manufacturer: Optional[str] = None
    registration_year: Optional[int] = None
    driver_name: Optional[str] = None
    driver_phone: Optional[str] = None
    driver_license_number: Optional[str] = None
    equipment: Optional[str] = None
    current_location: Optional[str] = None


class AmbulanceUpdateBody(AmbulanceBody):
    status: Optional[AmbulanceStatus] = None


class AppointmentBody(BaseModel):
    doctor_user_id: Optional[int] = None
    appointment_date: Optional[str] = None
    appointment_time: Optional[str] = None
    reason: Optional[str] = None
    symptoms: Optional[str] = None


class AppointmentUpdateBody(BaseModel):
    status: Optional[AppointmentStatus] = None
    doctor_user_id: Optional[int] = None
    notes: Optional[str] = None


class FeedbackBody(BaseModel):
    type: Optional[str] = None
    subject: Optional[str] = None
    description: Optional[str] = None
    category: str = "other"
    priority: str = "normal"
    rating: Optional[int] = None


class FeedbackStatusBody(BaseModel):
    status: str
    admin_response: Optional[str] = None
