import pytest
from fastapi.testclient import TestClient

from conftest import ADMIN_KEY
from geata_api.main import create_app
from geata_core.config import Settings

ADMIN = {"x-api-key": ADMIN_KEY}


@pytest.fixture
def client(storage):
    app = create_app(settings=Settings(), storage=storage)
    with TestClient(app) as c:
        yield c


def _register(client, email, password="pw-123456"):
    r = client.post("/api/auth/register", json={"name": email.split("@")[0], "email": email, "password": password})
    assert r.status_code == 201, r.text
    body = r.json()
    return body["user"]["id"], {"Authorization": f"Bearer {body['token']}"}


@pytest.fixture
def member(client):
    assert client.post("/api/devices", json={"id": "D", "name": "Front Gate"}, headers=ADMIN).status_code == 201
    user_id, headers = _register(client, "una@example.com")
    r = client.post("/api/devices/D/users", json={"userId": user_id}, headers=ADMIN)
    assert r.status_code == 201, r.text
    return user_id, headers


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}
    body = client.get("/api/health").json()
    assert body["database"] == "ok"
    assert body["pollSecretRequired"] is False


def test_admin_routes_need_api_key(client):
    assert client.get("/api/devices").status_code == 401
    assert client.get("/api/devices", headers={"x-api-key": "nope"}).status_code == 401
    assert client.get("/api/devices", headers=ADMIN).json() == []


def test_login_and_me(client):
    user_id, _ = _register(client, "ciara@example.com", "hunter22")
    bad = client.post("/auth/login", json={"email": "ciara@example.com", "password": "nope"})
    assert bad.status_code == 401
    ok = client.post("/auth/login", json={"email": "ciara@example.com", "password": "hunter22"})
    assert ok.status_code == 200
    token = ok.json()["access_token"]
    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.json()["id"] == user_id
    assert client.get("/api/auth/me", headers={"Authorization": "Bearer garbage"}).status_code == 401


def test_open_poll_complete_flow(client, member):
    user_id, headers = member
    assert client.get("/api/devices/D/can-open", headers=headers).json() == {"allowed": True, "reason": "ALWAYS"}

    r = client.post("/api/devices/D/open", json={"durationMs": 1500}, headers=headers)
    assert r.status_code == 201, r.text
    cmd = r.json()
    assert cmd["status"] == "queued" and cmd["type"] == "OPEN" and cmd["durationMs"] == 1500

    poll = client.post("/device/poll", json={"deviceId": "D", "lastResults": []})
    assert poll.json() == {"commands": [{"commandId": cmd["id"], "type": "OPEN", "durationMs": 1500}]}

    done = client.post("/device/poll", json={"deviceId": "D", "lastResults": [{"commandId": cmd["id"], "result": "OK"}]})
    assert done.json() == {"commands": []}

    events = client.get("/api/events", params={"deviceId": "D"}, headers=ADMIN).json()
    assert [e["eventType"] for e in events] == ["CMD_COMPLETED", "OPEN_REQUESTED"]
    assert events[0]["userId"] == user_id
    commands = client.get("/api/commands", params={"deviceId": "D"}, headers=ADMIN).json()
    assert commands[0]["status"] == "completed" and commands[0]["result"] == "OK"


def test_outsider_is_refused(client, member):
    _, headers = _register(client, "eve@example.com")
    r = client.post("/api/devices/D/aux1", headers=headers)
    assert r.status_code == 403
    assert r.json()["reason"] == "NOT_ASSIGNED"
    assert client.post("/device/poll", json={"deviceId": "D"}).json() == {"commands": []}
    events = client.get("/api/devices/D/events", headers=ADMIN).json()
    assert events[0]["eventType"] == "AUX1_DENIED_NOT_ASSIGNED"


def test_empty_schedule_blocks_member(client, member):
    user_id, headers = member
    r = client.post("/api/schedules", json={"name": "Never"}, headers=ADMIN)
    assert r.status_code == 201
    sid = r.json()["id"]
    r = client.put(f"/api/devices/D/users/{user_id}/schedule-assignment", json={"scheduleId": sid}, headers=ADMIN)
    assert r.json()["scheduleId"] == sid
    r = client.post("/api/devices/D/open", headers=headers)
    assert r.status_code == 403 and r.json()["reason"] == "SCHEDULE_DENIED"
    bad = client.put(f"/api/devices/D/users/{user_id}/schedule-assignment", json={"scheduleId": "abc"}, headers=ADMIN)
    assert bad.status_code == 400


def test_domain_errors_map_to_status_codes(client, member):
    _, headers = member
    assert client.post("/api/devices/NOPE/open", headers=headers).json() == {"error": "device not found"}
    assert client.post("/api/devices", json={"id": "D", "name": "Again"}, headers=ADMIN).status_code == 409
    assert client.post("/device/poll", json={"deviceId": "NOPE"}).status_code == 404
    r = client.post("/api/schedules", json={"name": "Bad", "slots": [{"start": "25:00", "end": "26:00"}]}, headers=ADMIN)
    assert r.status_code == 400
    assert client.delete("/api/devices/D/users/u_missing", headers=ADMIN).status_code == 404


def test_poll_tolerates_malformed_results(client, member):
    r = client.post("/device/poll", json={"deviceId": "D", "lastResults": "not-a-list"})
    assert r.status_code == 200 and r.json() == {"commands": []}


def test_admin_test_pulse_and_simulate(client, member):
    r = client.post("/api/devices/D/test/aux2", json={"durationMs": 250}, headers=ADMIN)
    assert r.status_code == 201 and r.json()["userId"] is None
    r = client.post("/api/devices/D/simulate", json={"eventType": "TAMPER_OPENED"}, headers=ADMIN)
    assert r.status_code == 201 and r.json()["details"] == "simulated"
    assert client.post("/api/devices/D/simulate", json={"eventType": "BOGUS"}, headers=ADMIN).status_code == 400


def test_notification_subscriptions(client, member):
    user_id, _ = member
    path = f"/api/devices/D/users/{user_id}/notifications"
    r = client.put(path, json={"eventTypes": ["GATE_FORCED_OPEN", "TAMPER_OPENED"]}, headers=ADMIN)
    assert r.json() == {"eventTypes": ["GATE_FORCED_OPEN", "TAMPER_OPENED"]}
    assert client.get(path, headers=ADMIN).json()["eventTypes"] == ["GATE_FORCED_OPEN", "TAMPER_OPENED"]
    assert client.put(path, json={"eventTypes": ["NOT_A_THING"]}, headers=ADMIN).status_code == 400


def test_can_open_inside_schedule_reports_always(client, member):
    user_id, headers = member
    r = client.post("/api/schedules", json={"name": "All week", "slots": [{"start": "00:00", "end": "23:59"}]},
                    headers=ADMIN)
    client.put(f"/api/devices/D/users/{user_id}/schedule-assignment", json={"scheduleId": r.json()["id"]},
               headers=ADMIN)
    assert client.get("/api/devices/D/can-open", headers=headers).json() == {"allowed": True, "reason": "ALWAYS"}


def test_user_update_conflict_is_409(client):
    a = client.post("/api/users", json={"email": "a@x.io"}, headers=ADMIN).json()
    client.post("/api/users", json={"email": "b@x.io"}, headers=ADMIN)
    r = client.put(f"/api/users/{a['id']}", json={"email": "b@x.io"}, headers=ADMIN)
    assert r.status_code == 409
    r = client.put(f"/api/users/{a['id']}", json={"email": ""}, headers=ADMIN)
    assert r.status_code == 400


def test_device_settings_round_trip(client, member):
    assert client.get("/api/devices/D/settings", headers=ADMIN).json() == {}
    r = client.put("/api/devices/D/settings", json={"relayMs": 900, "label": "North"}, headers=ADMIN)
    assert r.json() == {"relayMs": 900, "label": "North"}
    assert client.get("/api/devices/D/settings", headers=ADMIN).json() == {"relayMs": 900, "label": "North"}
    assert client.get("/api/devices/NOPE/settings", headers=ADMIN).status_code == 404
    assert client.get("/api/devices/D/settings").status_code == 401


def test_user_profile(client, member):
    user_id, _ = member
    client.put(f"/api/devices/D/users/{user_id}/notifications", json={"eventTypes": ["TAMPER_OPENED"]},
               headers=ADMIN)
    body = client.get(f"/api/profiles/users/{user_id}", headers=ADMIN).json()
    assert body["user"]["id"] == user_id
    assert body["devices"] == [{
        "deviceId": "D", "deviceName": "Front Gate", "role": "operator", "scheduleId": None,
        "notifications": {"eventTypes": ["TAMPER_OPENED"]},
    }]
    assert client.get("/api/profiles/users/u_missing", headers=ADMIN).status_code == 404
