from datetime import datetime, timedelta, timezone

import fakeredis
import pytest
from sqlmodel import select

from conftest import auth
from services.care_api.notifier import Notifier, time_ago
from shared.models import Notification, utcnow


@pytest.mark.parametrize("delta,label", [
    (timedelta(seconds=30), "Just now"),
    (timedelta(minutes=1), "1 minute ago"),
    (timedelta(minutes=45), "45 minutes ago"),
    (timedelta(hours=1), "1 hour ago"),
    (timedelta(hours=5), "5 hours ago"),
    (timedelta(days=1), "1 day ago"),
    (timedelta(days=3), "3 days ago"),
])
def test_time_ago(delta, label):
    now = datetime(2024, 6, 1, 12, 0, 0)
    assert time_ago(now - delta, now) == label


def test_time_ago_accepts_stored_and_aware_timestamps():
    now = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)
    assert time_ago(datetime(2024, 6, 1, 10, 0, 0), now) == "2 hours ago"
    assert time_ago(utcnow() - timedelta(minutes=3)) == "3 minutes ago"


def seed(session, user, count, read=False):
    for i in range(count):
        session.add(Notification(user_id=user.id, type="ambulance", title=f"n{i}", message="m", is_read=read))
    session.commit()


def test_inbox_returns_latest_twenty_with_unread_count(client, session, make_user):
    user = make_user("customer")
    other = make_user("customer")
    seed(session, user, 22)
    seed(session, user, 3, read=True)
    seed(session, other, 2)

    body = client.get("/api/notifications", headers=auth(user)).json()
    assert body["total"] == 20
    assert body["unreadCount"] == 22
    first = body["notifications"][0]
    assert set(first) == {"id", "type", "title", "message", "time", "unread", "relatedId", "createdAt"}

    assert client.get("/api/notifications/customer", headers=auth(user)).json()["unreadCount"] == 22


def test_mark_read_is_owner_only(client, session, make_user):
    user = make_user("customer")
    other = make_user("customer")
    seed(session, user, 1)
    notification = session.exec(select(Notification).where(Notification.user_id == user.id)).one()

    assert client.post(f"/api/notifications/{notification.id}/read", headers=auth(other)).status_code == 404
    assert client.post(f"/api/notifications/{notification.id}/read", headers=auth(user)).status_code == 200
    assert client.get("/api/notifications", headers=auth(user)).json()["unreadCount"] == 0


def test_mark_all_read(client, session, make_user):
    user = make_user("staff")
    other = make_user("staff")
    seed(session, user, 4)
    seed(session, other, 2)

    response = client.post("/api/notifications/mark-all-read", headers=auth(user))
    assert response.json()["updated"] == 4
    assert client.get("/api/notifications", headers=auth(user)).json()["unreadCount"] == 0
    assert client.get("/api/notifications", headers=auth(other)).json()["unreadCount"] == 2


def test_redis_outage_does_not_fail_fan_out(session, make_user):
    user = make_user("customer")
    server = fakeredis.FakeServer()
    server.connected = False
    notifier = Notifier(session, fakeredis.FakeRedis(server=server, decode_responses=True))

    notifier.notify(user.id, "Hello", "World")
    session.commit()
    notifier.publish()

    assert len(session.exec(select(Notification).where(Notification.user_id == user.id)).all()) == 1


def test_notify_admins_targets_system_and_matching_state(session, make_user):
    system = make_user("admin", admin_type="system")
    legacy = make_user("admin")
    kerala = make_user("admin", admin_type="state", state="Kerala")
    goa = make_user("admin", admin_type="state", state="Goa")
    make_user("staff")

    notifier = Notifier(session, fakeredis.FakeRedis(decode_responses=True))
    assert notifier.notify_admins("Kerala", "t", "m") == 3
    session.commit()

    recipients = {n.user_id for n in session.exec(select(Notification)).all()}
    assert recipients == {system.id, legacy.id, kerala.id}
    assert goa.id not in recipients

    assert notifier.notify_admins(None, "t", "m") == 2
