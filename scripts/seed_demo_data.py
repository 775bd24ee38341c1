"""
Seed a demo dataset: a system admin, a state admin, one hospital with a small
fleet, a staff member and a customer with a pending ambulance request.

Usage:
    DATABASE_URL=postgresql+psycopg2://... python scripts/seed_demo_data.py

Run from the project root so the shared module is importable. Existing rows
(matched by email or registration number) are left untouched.
"""

import logging
import os
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from sqlmodel import Session, select

from services.care_api.security import hash_password
from shared.db import get_engine, init_db
from shared.models import AmbulanceRequest, Customer, Hospital, HospitalAmbulance, User
from shared.types import AdminType, AmbulanceType, Role

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
logger = logging.getLogger("seed_demo_data")

DEMO_PASSWORD = os.getenv("DEMO_PASSWORD", "demo1234")

USERS = [
    {"username": "sysadmin", "email": "admin@healthops.local", "role": Role.ADMIN.value,
     "full_name": "System Admin", "admin_type": AdminType.SYSTEM.value},
    {"username": "mh_admin", "email": "mh.admin@healthops.local", "role": Role.ADMIN.value,
     "full_name": "Maharashtra Admin", "admin_type": AdminType.STATE.value,
     "state": "Maharashtra", "district": "Pune"},
    {"username": "staff1", "email": "staff@healthops.local", "role": Role.STAFF.value,
     "full_name": "Ravi Kulkarni", "phone": "9000000001"},
    {"username": "patient1", "email": "patient@healthops.local", "role": Role.CUSTOMER.value,
     "full_name": "Asha Patil", "phone": "9000000002"},
    {"username": "sassoon", "email": "hospital@healthops.local", "role": Role.HOSPITAL.value,
     "full_name": "Sassoon General Hospital", "phone": "9000000003"},
]

AMBULANCES = [
    {"registration_number": "MH12AB1001", "ambulance_type": AmbulanceType.BASIC.value,
     "driver_name": "Sunil Jadhav", "driver_phone": "9000000101"},
    {"registration_number": "MH12AB1002", "ambulance_type": AmbulanceType.ADVANCED.value,
     "driver_name": "Imran Shaikh", "driver_phone": "9000000102"},
    {"registration_number": "MH12AB1003", "ambulance_type": AmbulanceType.VENTILATOR.value,
     "driver_name": "Deepak More", "driver_phone": "9000000103"},
]


def get_or_create_user(session, fields):
    user = session.exec(select(User).where(User.email == fields["email"])).first()
    if user:
        return user
    user = User(password_hash=hash_password(DEMO_PASSWORD), **fields)
    session.add(user)
    session.flush()
    logger.info(f"Created {user.role} {user.email} (id={user.id})")
    return user


def seed(engine):
    init_db(engine)
    with Session(engine) as session:
        users = {fields["username"]: get_or_create_user(session, fields) for fields in USERS}

        patient = users["patient1"]
        if not session.exec(select(Customer).where(Customer.user_id == patient.id)).first():
            session.add(Customer(user_id=patient.id, address="Shivajinagar, Pune, Maharashtra", blood_group="B+"))

        hospital_user = users["sassoon"]
        hospital = session.exec(select(Hospital).where(Hospital.user_id == hospital_user.id)).first()
        if hospital is None:
            hospital = Hospital(
                user_id=hospital_user.id,
                hospital_name=hospital_user.full_name,
                address="Station Road, Pune, Maharashtra 411001",
                number_of_beds=1300,
                state="Maharashtra",
                district="Pune",
            )
            session.add(hospital)

        for fields in AMBULANCES:
            exists = session.exec(
                select(HospitalAmbulance).where(HospitalAmbulance.registration_number == fields["registration_number"])
            ).first()
            if exists:
                continue
            session.add(HospitalAmbulance(hospital_user_id=hospital_user.id, **fields))
            hospital.number_of_ambulances += 1

        has_request = session.exec(
            select(AmbulanceRequest).where(AmbulanceRequest.customer_user_id == patient.id)
        ).first()
        if not has_request:
            session.add(AmbulanceRequest(
                customer_user_id=patient.id,
                pickup_address="FC Road, Pune, Maharashtra",
                destination_address=hospital.address,
                emergency_type="Chest pain",
                contact_number=patient.phone,
                priority="high",
                customer_state="Maharashtra",
                customer_district="Pune",
            ))

        session.commit()
    logger.info("Demo data ready. All demo accounts use the DEMO_PASSWORD password.")


if __name__ == "__main__":
    seed(get_engine())
