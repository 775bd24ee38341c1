import os

# Must be set before the app modules read them at import time
os.environ.setdefault("PASSWORD_HASH_ITERATIONS", "1000")
os.environ.setdefault("JWT_SECRET", "test-secret")

import fakeredis
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from services.care_api.main import app
from services.care_api.security import create_access_token, hash_password
from shared import db
from shared.db import get_session
from shared.models import Hospital, HospitalAmbulance, User
from shared.redis_client import get_redis

PASSWORD = "secret123"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    previous = db._engine
    db.set_engine(engine)
    yield engine
    db.set_engine(previous)
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def fake_redis():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def client(session, fake_redis):
    app.dependency_overrides[get_session] = lambda: session
    app.dependency_overrides[get_redis] = lambda: fake_redis
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(session):
    counter = {"n": 0}

    def _make_user(role, **fields):
        counter["n"] += 1
        n = counter["n"]
        user = User(
            username=fields.pop("username", f"{role}{n}"),
            email=fields.pop("email", f"{role}{n}@example.com"),
            password_hash=hash_password(fields.pop("password", PASSWORD)),
            role=role,
            full_name=fields.pop("full_name", f"{role.title()} {n}"),
            **fields,
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    return _make_user


def auth(user):
    return {"Authorization": f"Bearer {create_access_token(user)}"}


@pytest.fixture
def make_hospital(session, make_user):
    def _make_hospital(state="Maharashtra", **fields):
        user = make_user("hospital", **fields)
        session.add(Hospital(
            user_id=user.id,
            hospital_name=user.full_name,
            address=f"Main Road, Pune, {state}",
            state=state,
            district="Pune",
        ))
        session.commit()
        return user

    return _make_hospital


@pytest.fixture
def make_ambulance(session):
    def _make_ambulance(hospital_user, registration_number="MH12AB0001", **fields):
        ambulance = HospitalAmbulance(
            hospital_user_id=hospital_user.id,
            registration_number=registration_number,
            ambulance_type="Basic Life Support",
            **fields,
        )
        session.add(ambulance)
        session.commit()
        session.refresh(ambulance)
        return ambulance

    return _make_ambulance
