from datetime import timedelta

from models import db
from models.device_switch import DeviceSwitchEvent, LoginBan
from models.login_attempt import LoginAttempt
from models.session import Session
from security import attempts, session as session_store
from security.tokens import decode_access_token
from utils import clock
from conftest import FIREFOX_UA, PASSWORD, bearer, do_login


def _valid_sessions(user_id):
    return Session.query.filter_by(user_id=user_id, valid=True).all()


def test_login_success_returns_token_and_profile(client, user):
    resp = do_login(client, device="laptop")
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["success"] is True
    assert body["user"] == {
        "id": user.id,
        "name": "Ana",
        "email": "ana@example.com",
        "is_admin": False,
        "is_approved": True,
    }

    claims = decode_access_token(body["token"])
    assert claims.user_id == user.id
    assert [s.id for s in _valid_sessions(user.id)] == [claims.session_id]


def test_email_is_normalized(client, user):
    resp = do_login(client, email="  ANA@Example.com ")
    assert resp.status_code == 200


def test_missing_credentials(client, user):
    resp = client.post("/auth/login", json={"email": "ana@example.com"})
    assert resp.status_code == 400
    assert resp.get_json()["code"] == "MISSING_CREDENTIALS"


def test_wrong_password_and_unknown_email_look_the_same(client, user):
    wrong = do_login(client, password="nope-nope-nope")
    unknown = do_login(client, email="ghost@example.com")

    assert wrong.status_code == unknown.status_code == 401
    assert wrong.get_json() == unknown.get_json()
    assert wrong.get_json()["code"] == "INVALID_CREDENTIALS"


def test_unapproved_user_cannot_log_in(client, make_user):
    make_user(email="new@example.com", is_approved=False)
    resp = do_login(client, email="new@example.com")
    assert resp.status_code == 403
    assert resp.get_json()["code"] == "ACCOUNT_NOT_APPROVED"


def test_other_device_is_denied_and_counted(client, user):
    first = do_login(client, device="laptop")
    resp = do_login(client, device="phone")

    assert resp.status_code == 429
    body = resp.get_json()
    assert body["code"] == "SESSION_ACTIVE_ELSEWHERE"
    assert body["already_logged_in"] is True
    assert body["attempt_count"] == 1
    assert body["attempts_remaining"] == 4
    assert body["cooldown_minutes"] == 0
    assert body["active_device"].startswith("Windows 10 - Chrome")

    assert LoginAttempt.query.filter_by(user_id=user.id).one().attempt_count == 1
    # the first session is untouched
    me = client.get("/auth/me", headers=bearer(first.get_json()["token"]))
    assert me.status_code == 200


def test_same_device_replaces_its_own_session(client, user):
    old_token = do_login(client, device="laptop").get_json()["token"]
    do_login(client, device="phone")

    resp = do_login(client, device="laptop")
    assert resp.status_code == 200
    assert len(_valid_sessions(user.id)) == 1
    assert LoginAttempt.query.filter_by(user_id=user.id).first() is None

    stale = client.get("/auth/me", headers=bearer(old_token))
    assert stale.status_code == 401
    assert stale.get_json()["logged_in_elsewhere"] is True


def test_fifth_denial_starts_cooldown(client, user):
    do_login(client, device="laptop")
    for expected in range(1, 5):
        body = do_login(client, device="phone").get_json()
        assert body["attempt_count"] == expected
        assert body["cooldown_minutes"] == 0

    fifth = do_login(client, device="phone").get_json()
    assert fifth["code"] == "SESSION_ACTIVE_ELSEWHERE"
    assert fifth["attempt_count"] == 5
    assert fifth["cooldown_minutes"] == 15

    blocked = do_login(client, device="phone")
    assert blocked.status_code == 429
    body = blocked.get_json()
    assert body["code"] == "COOLDOWN_ACTIVE"
    assert body["remaining_minutes"] == 15
    assert body["retry_after_seconds"] == 15 * 60

    # cooldown checks do not count as further denials
    assert LoginAttempt.query.filter_by(user_id=user.id).one().attempt_count == 5


def test_cooldown_blocks_correct_credentials_on_any_other_device(client, user):
    do_login(client, device="laptop")
    for _ in range(5):
        do_login(client, device="phone")

    resp = do_login(client, device="tablet")
    assert resp.get_json()["code"] == "COOLDOWN_ACTIVE"


def test_same_device_wins_during_cooldown(client, user):
    do_login(client, device="laptop")
    for _ in range(5):
        do_login(client, device="phone")

    resp = do_login(client, device="laptop")
    assert resp.status_code == 200
    assert LoginAttempt.query.filter_by(user_id=user.id).first() is None


def test_cooldown_expiry_then_next_denial_doubles(client, user):
    do_login(client, device="laptop")
    for _ in range(5):
        do_login(client, device="phone")

    clock.advance(timedelta(minutes=15, seconds=1))
    body = do_login(client, device="phone").get_json()
    assert body["code"] == "SESSION_ACTIVE_ELSEWHERE"
    assert body["attempt_count"] == 6
    assert body["cooldown_minutes"] == 30


def test_stale_session_allows_takeover(client, user):
    old_token = do_login(client, device="laptop").get_json()["token"]
    old_sid = decode_access_token(old_token).session_id
    do_login(client, device="phone")
    clock.advance(timedelta(hours=24, minutes=1))

    resp = do_login(client, device="phone")
    assert resp.status_code == 200
    assert LoginAttempt.query.filter_by(user_id=user.id).first() is None
    assert session_store.get_session(old_sid).valid is False


def test_session_just_under_stale_threshold_is_still_protected(client, user):
    do_login(client, device="laptop")
    clock.advance(timedelta(hours=23, minutes=59))
    assert do_login(client, device="phone").status_code == 429


def test_no_session_after_cleanup_lets_any_device_in(client, user):
    do_login(client, device="laptop")
    clock.advance(timedelta(minutes=31))
    assert session_store.cleanup_stale(30) == 1

    assert do_login(client, device="phone").status_code == 200


def test_admin_bypasses_device_check(client, admin):
    first = do_login(client, email="root@example.com", device="laptop").get_json()["token"]
    resp = do_login(client, email="root@example.com", device="phone")
    assert resp.status_code == 200
    assert len(_valid_sessions(admin.id)) == 1

    old = client.get("/auth/me", headers=bearer(first))
    assert old.get_json()["code"] == "SESSION_INVALIDATED"


def test_logout_invalidates_and_resets(client, user):
    token = do_login(client, device="laptop").get_json()["token"]
    do_login(client, device="phone")

    resp = client.post("/auth/logout", headers=bearer(token))
    assert resp.status_code == 200
    assert _valid_sessions(user.id) == []
    assert LoginAttempt.query.filter_by(user_id=user.id).first() is None

    sid = decode_access_token(token).session_id
    assert session_store.validate_session(sid, user.id).reason == session_store.SESSION_INVALIDATED
    assert do_login(client, device="phone").status_code == 200


def test_logout_of_superseded_session_leaves_new_owner_alone(client, user):
    old = do_login(client, device="laptop").get_json()["token"]
    new = do_login(client, device="laptop").get_json()["token"]

    resp = client.post("/auth/logout", headers=bearer(old))
    assert resp.status_code == 200
    assert client.get("/auth/me", headers=bearer(new)).status_code == 200


def test_login_rate_limit_per_ip(app, client, user):
    app.config["LOGIN_RATE_MAX_REQUESTS"] = 2
    assert do_login(client, password="wrong-password").status_code == 401
    assert do_login(client, password="wrong-password").status_code == 401

    resp = do_login(client)
    assert resp.status_code == 429
    body = resp.get_json()
    assert body["code"] == "RATE_LIMITED"
    assert body["retry_after_seconds"] == 15 * 60

    # other addresses have their own window
    assert do_login(client, ip="10.0.0.2").status_code == 200


def test_end_to_end_device_switch_scenario(client, user):
    x = {"ip": "1.1.1.1", "user_agent": "Chrome"}
    y = {"ip": "2.2.2.2", "user_agent": "Firefox"}

    s1 = do_login(client, **x)
    assert s1.status_code == 200
    s1_id = decode_access_token(s1.get_json()["token"]).session_id

    for n in range(1, 5):
        body = do_login(client, **y).get_json()
        assert body["code"] == "SESSION_ACTIVE_ELSEWHERE"
        assert body["attempt_count"] == n
    record = LoginAttempt.query.filter_by(user_id=user.id).one()
    assert record.attempt_count == 4
    assert record.cooldown_until is None

    fifth = do_login(client, **y).get_json()
    assert fifth["attempt_count"] == 5
    record = LoginAttempt.query.filter_by(user_id=user.id).one()
    assert record.cooldown_until == clock.now() + timedelta(minutes=15)

    clock.advance(timedelta(minutes=5))
    assert do_login(client, **y).get_json()["code"] == "COOLDOWN_ACTIVE"

    s2 = do_login(client, **x)
    assert s2.status_code == 200
    s2_id = decode_access_token(s2.get_json()["token"]).session_id
    assert s2_id != s1_id
    assert [s.id for s in _valid_sessions(user.id)] == [s2_id]
    assert LoginAttempt.query.filter_by(user_id=user.id).first() is None


def test_server_side_fingerprint_distinguishes_user_agents(client, user):
    do_login(client, ip="1.1.1.1")
    resp = do_login(client, ip="1.1.1.1", user_agent=FIREFOX_UA)
    assert resp.get_json()["code"] == "SESSION_ACTIVE_ELSEWHERE"


def test_register_creates_unapproved_user(client):
    resp = client.post("/auth/register", json={
        "email": "New@Example.com", "password": PASSWORD, "name": "New",
    })
    assert resp.status_code == 201
    assert resp.get_json()["user"]["is_approved"] is False

    dup = client.post("/auth/register", json={
        "email": "new@example.com", "password": PASSWORD, "name": "New",
    })
    assert dup.status_code == 409

    assert do_login(client, email="new@example.com").get_json()["code"] == "ACCOUNT_NOT_APPROVED"


def test_register_validates_input(client):
    resp = client.post("/auth/register", json={"email": "x@example.com", "password": "short", "name": "X"})
    assert resp.status_code == 400
    resp = client.post("/auth/register", json={"email": "nope", "password": PASSWORD, "name": "X"})
    assert resp.status_code == 400


def test_levels_policy_escalates_per_breach(app, client, user):
    app.config["COOLDOWN_POLICY"] = "levels"
    do_login(client, device="laptop")
    for _ in range(4):
        do_login(client, device="phone")

    first = do_login(client, device="phone").get_json()
    assert first["code"] == "SESSION_ACTIVE_ELSEWHERE"
    assert first["cooldown_minutes"] == 60
    assert attempts.get_ban(user.id).cooldown_level == 1

    clock.advance(timedelta(minutes=61))
    second = do_login(client, device="phone").get_json()
    assert second["cooldown_minutes"] == 360
    assert attempts.get_ban(user.id).cooldown_level == 2

    clock.advance(timedelta(minutes=361))
    assert do_login(client, device="phone").get_json()["cooldown_minutes"] == 360

    clock.advance(timedelta(minutes=361))
    fourth = do_login(client, device="phone").get_json()
    assert fourth["cooldown_minutes"] == 1440
    assert attempts.get_ban(user.id).cooldown_level == 3
    assert attempts.switch_count(user.id) == 4


def test_denials_below_threshold_are_not_switches(client, user):
    do_login(client, device="laptop")
    for _ in range(4):
        do_login(client, device="phone")
    assert DeviceSwitchEvent.query.count() == 0

    do_login(client, device="phone")
    assert DeviceSwitchEvent.query.count() == 1


def test_login_works_without_attempt_bookkeeping_tables(client, user):
    for model in (LoginBan, DeviceSwitchEvent, LoginAttempt):
        model.__table__.drop(db.engine)

    assert do_login(client, device="laptop").status_code == 200

    resp = do_login(client, device="phone")
    assert resp.status_code == 429
    body = resp.get_json()
    assert body["code"] == "SESSION_ACTIVE_ELSEWHERE"
    assert body["attempt_count"] == 0
    assert body["attempts_remaining"] == 5
    assert body["cooldown_minutes"] == 0

    # the active device keeps working
    assert do_login(client, device="laptop").status_code == 200


def test_session_status_without_attempt_table(client, user):
    token = do_login(client, device="laptop").get_json()["token"]
    LoginAttempt.__table__.drop(db.engine)

    resp = client.get("/auth/session-status", headers=bearer(token))
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["session_valid"] is True
    assert body["cooldown_minutes"] == 0
