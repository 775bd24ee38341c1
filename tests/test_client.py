import json
import threading

import httpx
import pytest

from client.api import ApiError, CareApiClient
from client.notifications import NotificationBus, NotificationPanel, Poller
from client.session import Session, SessionStore
from client.views import FormError, HospitalResponseForm, filter_requests, request_actions, request_stats
from conftest import PASSWORD


REQUESTS = [
    {"id": 1, "status": "pending", "priority": "critical", "patient_name": "Asha Patil",
     "emergency_type": "Cardiac", "pickup_address": "FC Road, Pune"},
    {"id": 2, "status": "completed", "priority": "normal", "patient_name": "Ravi Kumar",
     "emergency_type": "Fracture", "pickup_address": "MG Road, Kochi"},
    {"id": 12, "status": "pending", "priority": "normal", "patient_name": "Meera Nair",
     "emergency_type": "Cardiac", "pickup_address": "Baner, Pune"},
]


def ids(rows):
    return [r["id"] for r in rows]


def test_filter_by_status():
    assert ids(filter_requests([{"id": 1, "status": "pending"}, {"id": 2, "status": "completed"}], status="pending")) == [1]


def test_filters_intersect():
    assert ids(filter_requests(REQUESTS, search="cardiac", status="pending", priority="normal")) == [12]
    assert ids(filter_requests(REQUESTS, search="pune", status="all", priority="all")) == [1, 12]
    assert ids(filter_requests(REQUESTS, search="", status="", priority="")) == [1, 2, 12]
    assert ids(filter_requests(REQUESTS, search="1")) == [1, 12]
    assert filter_requests(REQUESTS, search="kochi", status="pending") == []


def test_request_actions():
    pending = {"status": "pending", "assigned_staff_id": None}
    assert request_actions(pending, staff_id=7) == ["assign_to_me"]

    assigned = {"status": "assigned", "assigned_staff_id": 7}
    assert request_actions(assigned, staff_id=7) == ["mark_on_the_way"]
    assert request_actions(assigned, staff_id=8) == []

    assert request_actions({"status": "on_the_way", "assigned_staff_id": 7}, staff_id=7) == ["mark_completed"]
    assert request_actions({"status": "completed", "assigned_staff_id": 7}, staff_id=7) == []


def test_request_stats():
    stats = request_stats(REQUESTS)
    assert stats["pending"] == 2
    assert stats["completed"] == 1
    assert stats["critical"] == 1
    assert stats["total"] == 3


class Recorder:
    """httpx MockTransport handler that records calls and replays canned responses."""

    def __init__(self, routes=None):
        self.calls = []
        self.routes = routes or {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append((request.method, request.url.path, request.headers.get("authorization")))
        status, body = self.routes.get((request.method, request.url.path), (200, {}))
        return httpx.Response(status, json=body)


def make_api(tmp_path, recorder, token="tok"):
    store = SessionStore(str(tmp_path))
    if token:
        store.save(Session(token=token, role="hospital", name="City Hospital", user_id=3))
    http = httpx.Client(base_url="http://api.test", transport=httpx.MockTransport(recorder))
    return CareApiClient(store=store, http=http)


def test_api_attaches_bearer_and_maps_errors(tmp_path):
    recorder = Recorder({("POST", "/api/ambulance/5/assign"): (400, {"error": "Request is not in pending status"})})
    api = make_api(tmp_path, recorder)

    api.get("/api/ambulance")
    assert recorder.calls[0] == ("GET", "/api/ambulance", "Bearer tok")

    with pytest.raises(ApiError) as exc:
        api.claim_request(5)
    assert exc.value.message == "Request is not in pending status"
    assert exc.value.status_code == 400


def test_api_network_error(tmp_path):
    def boom(request):
        raise httpx.ConnectError("refused", request=request)

    store = SessionStore(str(tmp_path))
    api = CareApiClient(store=store, http=httpx.Client(base_url="http://api.test", transport=httpx.MockTransport(boom)))
    with pytest.raises(ApiError) as exc:
        api.notifications()
    assert exc.value.message == "Network error"


def test_accept_without_ambulance_makes_no_call(tmp_path):
    recorder = Recorder()
    form = HospitalResponseForm(make_api(tmp_path, recorder), request_id=9)
    form.response = "accepted"

    with pytest.raises(FormError):
        form.submit()
    assert recorder.calls == []

    form.ambulance_id = 4
    form.submit()
    method, path, _ = recorder.calls[0]
    assert (method, path) == ("POST", "/api/ambulance/9/hospital-response")


def test_reject_requires_notes(tmp_path):
    recorder = Recorder()
    form = HospitalResponseForm(make_api(tmp_path, recorder), request_id=9)
    form.response = "rejected"
    form.notes = "  "
    with pytest.raises(FormError):
        form.submit()
    assert recorder.calls == []


def test_session_store_round_trip(tmp_path):
    store = SessionStore(str(tmp_path))
    assert store.load() is None

    store.save(Session(token="abc", role="staff", name="Ravi"))
    assert store.load().role == "staff"

    store.clear()
    assert store.load() is None


def test_session_store_ignores_corrupt_file(tmp_path):
    store = SessionStore(str(tmp_path))
    store.path.write_text("{not json")
    assert store.load() is None


INBOX = {
    "notifications": [
        {"id": 1, "title": "a", "unread": True},
        {"id": 2, "title": "b", "unread": False},
    ],
    "total": 2,
    "unreadCount": 1,
}


def test_panel_mark_read_decrements_once(tmp_path):
    recorder = Recorder({("GET", "/api/notifications"): (200, INBOX)})
    bus = NotificationBus()
    counts = []
    bus.subscribe(counts.append)
    panel = NotificationPanel(make_api(tmp_path, recorder), bus)

    panel.refresh()
    assert panel.unread_count == 1

    panel.mark_read(1)
    assert panel.notifications[0]["unread"] is False
    assert panel.unread_count == 0

    # Already read: counter stays at zero
    panel.mark_read(1)
    panel.mark_read(2)
    assert panel.unread_count == 0
    assert counts == [1, 0]
    assert [c[1] for c in recorder.calls].count("/api/notifications/1/read") == 2


def test_panel_mark_all_read(tmp_path):
    recorder = Recorder({("GET", "/api/notifications"): (200, INBOX)})
    panel = NotificationPanel(make_api(tmp_path, recorder))
    panel.refresh()
    panel.mark_all_read()
    assert panel.unread_count == 0
    assert all(not n["unread"] for n in panel.notifications)


def test_bus_unsubscribe():
    bus = NotificationBus()
    seen = []
    unsubscribe = bus.subscribe(seen.append)
    bus.publish(3)
    unsubscribe()
    bus.publish(4)
    assert seen == [3]


def test_poller_runs_until_stopped():
    fired = threading.Event()
    calls = []

    def tick():
        calls.append(1)
        fired.set()

    poller = Poller(tick, interval=0.01)
    poller.start()
    assert fired.wait(2)
    poller.stop(timeout=2)
    count = len(calls)
    assert count >= 1
    fired.clear()
    assert not fired.wait(0.05)


def test_poller_survives_api_errors():
    fired = threading.Event()
    attempts = []

    def flaky():
        attempts.append(1)
        if len(attempts) == 1:
            raise ApiError("Network error")
        fired.set()

    poller = Poller(flaky, interval=0.01)
    poller.start()
    assert fired.wait(2)
    poller.stop(timeout=2)


def test_client_against_app(tmp_path, client, make_user):
    staff = make_user("staff")
    api = CareApiClient(store=SessionStore(str(tmp_path)), http=client)

    session = api.login(staff.email, PASSWORD)
    assert session.role == "staff"
    assert json.loads((tmp_path / "session.json").read_text())["token"] == session.token

    assert api.list_requests() == []
    with pytest.raises(ApiError) as exc:
        api.claim_request(404)
    assert exc.value.message == "Ambulance request not found"

    api.logout()
    assert SessionStore(str(tmp_path)).load() is None


def test_poller_survives_unexpected_errors(caplog):
    fired = threading.Event()
    attempts = []

    def malformed():
        attempts.append(1)
        if len(attempts) == 1:
            raise KeyError("notifications")
        fired.set()

    poller = Poller(malformed, interval=0.01)
    poller.start()
    assert fired.wait(2)
    poller.stop(timeout=2)
    assert "Error while polling" in caplog.text
