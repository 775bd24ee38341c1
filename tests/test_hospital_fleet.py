import pytest
from sqlmodel import select

from conftest import auth
from shared.models import AmbulanceRequest, Hospital, HospitalAmbulance


@pytest.fixture
def hospital_user(make_hospital):
    return make_hospital()


def hospital_row(session, user):
    return session.exec(select(Hospital).where(Hospital.user_id == user.id)).one()


@pytest.fixture
def forwarded_request(session, make_user, hospital_user):
    customer = make_user("customer")
    request = AmbulanceRequest(
        customer_user_id=customer.id,
        pickup_address="FC Road, Pune",
        destination_address="Station Road, Pune",
        emergency_type="Fracture",
        contact_number="9876543210",
        forwarded_to_hospital_id=hospital_user.id,
        hospital_response="pending",
    )
    session.add(request)
    session.commit()
    session.refresh(request)
    return request


def test_profile_and_update(client, session, hospital_user):
    profile = client.get("/api/hospital/profile", headers=auth(hospital_user)).json()["hospital"]
    assert profile["state"] == "Maharashtra"

    response = client.put("/api/hospital/update", headers=auth(hospital_user), json={"number_of_beds": 250})
    assert response.status_code == 200
    assert hospital_row(session, hospital_user).number_of_beds == 250
    assert client.put("/api/hospital/update", headers=auth(hospital_user), json={}).status_code == 400


def test_add_ambulance_counts_fleet(client, session, hospital_user):
    body = {"registration_number": "MH12XY9999", "ambulance_type": "Advanced Life Support", "driver_name": "Raj"}
    response = client.post("/api/hospital/ambulances", headers=auth(hospital_user), json=body)
    assert response.status_code == 201
    assert response.json()["ambulance"]["status"] == "available"
    assert hospital_row(session, hospital_user).number_of_ambulances == 1

    duplicate = client.post("/api/hospital/ambulances", headers=auth(hospital_user), json=body)
    assert duplicate.status_code == 400

    missing = client.post("/api/hospital/ambulances", headers=auth(hospital_user), json={"registration_number": "X"})
    assert missing.json() == {"error": "Registration number and ambulance type are required"}


def test_unknown_ambulance_type_is_rejected(client, hospital_user):
    response = client.post(
        "/api/hospital/ambulances", headers=auth(hospital_user),
        json={"registration_number": "MH1", "ambulance_type": "Hovercraft"},
    )
    assert response.status_code == 400


def test_update_ambulance(client, session, hospital_user, make_ambulance):
    ambulance = make_ambulance(hospital_user)
    url = f"/api/hospital/ambulances/{ambulance.id}"

    assert client.put(url, headers=auth(hospital_user), json={}).json() == {"error": "No fields to update"}

    response = client.put(url, headers=auth(hospital_user), json={"status": "maintenance", "driver_name": "Anil"})
    assert response.status_code == 200
    session.refresh(ambulance)
    assert (ambulance.status, ambulance.driver_name) == ("maintenance", "Anil")

    assert client.put(url, headers=auth(hospital_user), json={"status": "assigned"}).status_code == 400


def test_foreign_ambulance_is_forbidden(client, make_hospital, hospital_user, make_ambulance):
    other = make_hospital()
    ambulance = make_ambulance(other)
    headers = auth(hospital_user)

    assert client.put(f"/api/hospital/ambulances/{ambulance.id}", headers=headers, json={"model": "X"}).status_code == 403
    assert client.delete(f"/api/hospital/ambulances/{ambulance.id}", headers=headers).status_code == 403
    assert client.post(f"/api/hospital/ambulances/{ambulance.id}/park", headers=headers).status_code == 403


def test_delete_never_drops_count_below_zero(client, session, hospital_user, make_ambulance):
    ambulance = make_ambulance(hospital_user)
    assert hospital_row(session, hospital_user).number_of_ambulances == 0

    assert client.delete(f"/api/hospital/ambulances/{ambulance.id}", headers=auth(hospital_user)).status_code == 200
    assert hospital_row(session, hospital_user).number_of_ambulances == 0
    assert session.get(HospitalAmbulance, ambulance.id) is None


def test_assigned_ambulance_cannot_be_deleted(client, hospital_user, make_ambulance):
    ambulance = make_ambulance(hospital_user, status="assigned")
    response = client.delete(f"/api/hospital/ambulances/{ambulance.id}", headers=auth(hospital_user))
    assert response.status_code == 400


def test_assign_then_park(client, session, hospital_user, make_ambulance, forwarded_request):
    ambulance = make_ambulance(hospital_user)
    headers = auth(hospital_user)

    response = client.post(f"/api/hospital/ambulances/{ambulance.id}/assign/{forwarded_request.id}", headers=headers)
    assert response.status_code == 200
    session.refresh(ambulance)
    session.refresh(forwarded_request)
    assert ambulance.status == "assigned"
    assert forwarded_request.assigned_ambulance_id == ambulance.id
    assert forwarded_request.hospital_response == "accepted"

    listing = client.get("/api/hospital/ambulances", headers=headers).json()
    assert listing["ambulances"][0]["request"]["id"] == forwarded_request.id
    assert client.get("/api/hospital/ambulances/available", headers=headers).json()["total"] == 0

    assert client.post(f"/api/hospital/ambulances/{ambulance.id}/park", headers=headers).status_code == 200
    session.refresh(ambulance)
    session.refresh(forwarded_request)
    assert (ambulance.status, ambulance.assigned_request_id) == ("available", None)
    assert forwarded_request.assigned_ambulance_id is None


def test_second_ambulance_cannot_bind_same_request(client, hospital_user, make_ambulance, forwarded_request):
    first = make_ambulance(hospital_user, registration_number="A1")
    second = make_ambulance(hospital_user, registration_number="A2")
    headers = auth(hospital_user)

    assert client.post(f"/api/hospital/ambulances/{first.id}/assign/{forwarded_request.id}", headers=headers).status_code == 200
    response = client.post(f"/api/hospital/ambulances/{second.id}/assign/{forwarded_request.id}", headers=headers)
    assert response.json() == {"error": "Request already has an ambulance assigned"}


def test_assign_requires_forwarded_request(client, make_hospital, make_ambulance, forwarded_request):
    other = make_hospital()
    ambulance = make_ambulance(other)
    response = client.post(f"/api/hospital/ambulances/{ambulance.id}/assign/{forwarded_request.id}", headers=auth(other))
    assert response.status_code == 403


def test_park_refused_while_on_the_way(client, session, hospital_user, make_ambulance, forwarded_request):
    ambulance = make_ambulance(hospital_user, status="assigned", assigned_request_id=forwarded_request.id)
    forwarded_request.assigned_ambulance_id = ambulance.id
    forwarded_request.status = "on_the_way"
    session.add(forwarded_request)
    session.commit()

    response = client.post(f"/api/hospital/ambulances/{ambulance.id}/park", headers=auth(hospital_user))
    assert response.status_code == 400
    session.refresh(ambulance)
    assert ambulance.status == "assigned"


def test_fleet_routes_are_hospital_only(client, make_user):
    staff = make_user("staff")
    assert client.get("/api/hospital/ambulances", headers=auth(staff)).status_code == 403
    assert client.get("/api/hospital/profile", headers=auth(staff)).status_code == 403
