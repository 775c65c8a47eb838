import pytest

from geata_core.errors import ConflictError, MalformedInputError, NotFoundError
from geata_core.users import normalize_phone


@pytest.mark.parametrize("raw,expected", [
    ("087 123 4567", "+353871234567"),
    ("(087) 123-4567", "+353871234567"),
    ("0044 20 7946 0000", "+442079460000"),
    ("+1 555 0100", "+15550100"),
    ("   ", None),
    (None, None),
])
def test_normalize_phone(raw, expected):
    assert normalize_phone(raw) == expected


def test_normalize_phone_uses_configured_country_code():
    assert normalize_phone("020 7946 0000", "+44") == "+442079460000"


def test_create_requires_contact_and_rejects_duplicates(services):
    with pytest.raises(MalformedInputError):
        services.users.create(name="Nobody")
    services.users.create(name="Aoife", phone="087 555 0000")
    with pytest.raises(ConflictError):
        services.users.create(name="Aoife again", phone="+353875550000")


def test_find_prefers_phone_then_email(services):
    by_phone = services.users.create(name="Phone", phone="0871111111")
    by_email = services.users.create(name="Mail", email="mail@example.com")
    assert services.users.find(email="mail@example.com", phone="0871111111").id == by_phone.id
    assert services.users.find(email=" mail@example.com ").id == by_email.id
    assert services.users.find(email="nobody@example.com") is None


def test_register_and_authenticate(services):
    user = services.users.register("Ciara", "ciara@example.com", None, "hunter22")
    assert services.users.authenticate("hunter22", email="ciara@example.com").id == user.id
    assert services.users.authenticate("wrong", email="ciara@example.com") is None
    assert services.users.authenticate("hunter22", email="who@example.com") is None
    with pytest.raises(MalformedInputError):
        services.users.register("No Pass", "np@example.com", None, "")


def test_user_without_password_cannot_log_in(services):
    services.users.create(name="Imported", email="imp@example.com")
    assert services.users.authenticate("anything", email="imp@example.com") is None


def test_delete_user_removes_memberships(services, gate):
    device_id, user_id = gate
    services.devices.attach_user(device_id, user_id)
    services.subscriptions.set_event_types(device_id, user_id, ["GATE_FORCED_OPEN"])
    services.users.delete(user_id)
    assert services.devices.members(device_id) == []
    assert services.subscriptions.subscribers(device_id, "GATE_FORCED_OPEN") == []
    with pytest.raises(NotFoundError):
        services.users.get(user_id)


def test_search_lists_devices(services, gate):
    device_id, user_id = gate
    services.devices.attach_user(device_id, user_id, "admin")
    found = services.users.search("una")
    assert [u["id"] for u in found] == [user_id]
    assert found[0]["devices"] == [{"deviceId": "D", "deviceName": "Front Gate", "role": "admin", "scheduleId": None}]


def test_import_members_finds_or_creates(services, gate):
    device_id, user_id = gate
    result = services.devices.import_members(device_id, services.users, [
        {"name": "Una", "email": "una@example.com"},
        {"name": "Brian", "phone": "0862222222", "role": "admin"},
        {"name": "Ghost"},
    ])
    assert result.reused == [user_id]
    assert len(result.created) == 1
    assert result.skipped == 1
    roles = {m["userId"]: m["role"] for m in services.devices.members(device_id)}
    assert roles == {user_id: "operator", result.created[0]: "admin"}


def test_update_to_taken_contact_conflicts(services):
    a = services.users.create(name="A", email="a@x.io")
    b = services.users.create(name="B", email="b@x.io", phone="0861234567")
    with pytest.raises(ConflictError):
        services.users.update(a.id, email="b@x.io")
    with pytest.raises(ConflictError):
        services.users.update(a.id, phone="+353 86 123 4567")
    assert services.users.get(a.id).email == "a@x.io"
    # keeping one's own contact details is not a clash
    assert services.users.update(b.id, email="b@x.io", name="Bea").name == "Bea"


def test_update_cannot_clear_every_contact(services):
    user = services.users.create(name="Solo", email="solo@example.com")
    with pytest.raises(MalformedInputError):
        services.users.update(user.id, email="")
    with pytest.raises(MalformedInputError):
        services.users.update(user.id, email="  ", phone="")
    assert services.users.get(user.id).email == "solo@example.com"
    moved = services.users.update(user.id, email="", phone="0870000000")
    assert moved.email is None and moved.phone == "+353870000000"


def test_profile_lists_devices_with_schedule_and_alerts(services, gate, weekday_schedule):
    device_id, user_id = gate
    services.devices.create("B", "Back Gate")
    services.devices.attach_user("B", user_id, "admin")
    services.devices.attach_user(device_id, user_id, "operator", weekday_schedule["id"])
    services.subscriptions.set_event_types(device_id, user_id, ["TAMPER_OPENED", "GATE_FORCED_OPEN"])

    profile = services.users.profile(user_id)
    assert profile["user"]["email"] == "una@example.com"
    assert profile["devices"] == [
        {"deviceId": "B", "deviceName": "Back Gate", "role": "admin", "scheduleId": None,
         "notifications": {"eventTypes": []}},
        {"deviceId": "D", "deviceName": "Front Gate", "role": "operator", "scheduleId": weekday_schedule["id"],
         "notifications": {"eventTypes": ["GATE_FORCED_OPEN", "TAMPER_OPENED"]}},
    ]
    with pytest.raises(NotFoundError):
        services.users.profile("u_missing")
