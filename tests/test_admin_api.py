from datetime import timedelta

from models.device_switch import DeviceSwitchEvent
from models.login_attempt import LoginAttempt
from models.session import Session
from security.tokens import decode_access_token
from utils import clock
from conftest import PASSWORD, bearer, do_login


def _admin_headers(client, admin):
    token = do_login(client, email=admin.email, device="admin-box").get_json()["token"]
    return bearer(token)


def _lock_out(client):
    token = do_login(client, device="laptop").get_json()["token"]
    for _ in range(5):
        do_login(client, device="phone")
    return token


def test_admin_routes_need_admin(client, user, admin):
    assert client.get("/admin/sessions/stats").status_code == 401

    token = do_login(client, device="laptop").get_json()["token"]
    resp = client.get("/admin/sessions/stats", headers=bearer(token))
    assert resp.status_code == 403
    assert resp.get_json()["code"] == "ADMIN_REQUIRED"


def test_stats(client, user, admin):
    do_login(client, device="laptop")
    headers = _admin_headers(client, admin)
    stats = client.get("/admin/sessions/stats", headers=headers).get_json()["stats"]
    assert stats["active_sessions"] == 2
    assert stats["users_with_active_sessions"] == 2


def test_user_sessions(client, user, admin):
    do_login(client, device="laptop")
    clock.advance(timedelta(minutes=1))
    do_login(client, device="laptop")
    headers = _admin_headers(client, admin)

    body = client.get(f"/admin/sessions/user/{user.id}", headers=headers).get_json()
    assert len(body["sessions"]) == 2
    assert body["active_session_id"] == body["sessions"][0]["id"]
    assert client.get("/admin/sessions/user/9999", headers=headers).status_code == 404


def test_invalidate_session(client, user, admin):
    token = do_login(client, device="laptop").get_json()["token"]
    sid = decode_access_token(token).session_id
    headers = _admin_headers(client, admin)

    resp = client.post(f"/admin/sessions/invalidate/{sid}", headers=headers)
    assert resp.get_json()["invalidated"] is True
    assert client.get("/auth/me", headers=bearer(token)).get_json()["code"] == "SESSION_INVALIDATED"
    assert client.post("/admin/sessions/invalidate/missing", headers=headers).status_code == 404


def test_invalidate_user(client, user, admin):
    do_login(client, device="laptop")
    headers = _admin_headers(client, admin)
    resp = client.post(f"/admin/sessions/invalidate-user/{user.id}", headers=headers)
    assert resp.get_json()["invalidated_count"] == 1
    assert Session.query.filter_by(user_id=user.id, valid=True).count() == 0


def test_cooldown_status_and_clear(client, user, admin):
    _lock_out(client)
    headers = _admin_headers(client, admin)

    body = client.get(f"/admin/sessions/cooldown/{user.id}", headers=headers).get_json()
    assert body["in_cooldown"] is True
    assert body["remaining_minutes"] == 15
    assert body["attempt_count"] == 5

    resp = client.delete(f"/admin/sessions/cooldown/{user.id}", headers=headers)
    assert resp.get_json()["cleared"] is True
    assert LoginAttempt.query.filter_by(user_id=user.id).first() is None
    # cleared cooldown: the next attempt is an ordinary denial again
    assert do_login(client, device="phone").get_json()["attempt_count"] == 1


def test_device_switch_history_and_clear(client, user, admin):
    _lock_out(client)
    clock.advance(timedelta(minutes=16))
    do_login(client, device="tablet")
    headers = _admin_headers(client, admin)

    # one switch per denial that imposed a cooldown
    body = client.get(f"/admin/sessions/device-switches/{user.id}?limit=1", headers=headers).get_json()
    assert body["switch_count"] == 2
    assert [e["to_fingerprint"] for e in body["events"]] == ["tablet"]
    assert client.get(f"/admin/sessions/device-switches/{user.id}?limit=x",
                      headers=headers).status_code == 400

    resp = client.delete(f"/admin/sessions/device-switches/{user.id}", headers=headers)
    assert resp.get_json()["deleted_count"] == 2
    assert DeviceSwitchEvent.query.count() == 0


def test_cleanup(client, user, admin):
    do_login(client, device="laptop")
    clock.advance(timedelta(minutes=31))
    headers = _admin_headers(client, admin)

    body = client.post("/admin/sessions/cleanup", headers=headers).get_json()
    assert body["cleaned"]["stale_sessions"] == 1
    assert client.post("/admin/sessions/cleanup", headers=headers,
                       json={"inactive_minutes": 0}).status_code == 400


def test_create_and_approve_user(client, admin):
    headers = _admin_headers(client, admin)
    resp = client.post("/admin/users", headers=headers, json={
        "email": "nurse@example.com", "password": PASSWORD, "is_approved": False,
    })
    assert resp.status_code == 201
    new_id = resp.get_json()["user"]["id"]
    assert do_login(client, email="nurse@example.com").status_code == 403

    pending = client.get("/admin/users?pending=true", headers=headers).get_json()["users"]
    assert [u["id"] for u in pending] == [new_id]

    client.post(f"/admin/users/{new_id}/approve", headers=headers)
    assert do_login(client, email="nurse@example.com").status_code == 200


def test_revoke_user_invalidates_sessions(client, user, admin):
    token = do_login(client, device="laptop").get_json()["token"]
    headers = _admin_headers(client, admin)

    resp = client.post(f"/admin/users/{user.id}/revoke", headers=headers)
    assert resp.status_code == 200
    assert resp.get_json()["sessions_invalidated"] == 1
    assert client.get("/auth/me", headers=bearer(token)).status_code == 403
    assert client.post(f"/admin/users/{admin.id}/revoke", headers=headers).status_code == 400


def test_list_users_flags_active_sessions(client, user, admin):
    do_login(client, device="laptop")
    headers = _admin_headers(client, admin)
    users = {u["email"]: u for u in client.get("/admin/users", headers=headers).get_json()["users"]}
    assert users["ana@example.com"]["has_active_session"] is True
