import pytest

from geata_core.errors import ConflictError, MalformedInputError, NotFoundError


def test_create_rejects_duplicate_id(services):
    services.devices.create("D", "Front Gate")
    with pytest.raises(ConflictError):
        services.devices.create("D", "Other")


def test_settings_default_empty_and_are_replaced(services, gate):
    device_id, _ = gate
    assert services.devices.get_settings(device_id) == {}
    services.devices.set_settings(device_id, {"relayMs": 800, "aux1Label": "Pedestrian"})
    assert services.devices.set_settings(device_id, {"relayMs": 1200}) == {"relayMs": 1200}
    assert services.devices.get_settings(device_id) == {"relayMs": 1200}
    assert services.devices.set_settings(device_id, None) == {}


def test_settings_validation(services, gate):
    device_id, _ = gate
    with pytest.raises(MalformedInputError):
        services.devices.set_settings(device_id, ["not", "an", "object"])
    with pytest.raises(NotFoundError):
        services.devices.get_settings("NOPE")
    with pytest.raises(NotFoundError):
        services.devices.set_settings("NOPE", {})


def test_delete_device_removes_its_dependents(services, gate):
    device_id, user_id = gate
    services.devices.attach_user(device_id, user_id)
    services.devices.set_secret(device_id, "s3cret")
    services.devices.set_settings(device_id, {"relayMs": 800})
    services.subscriptions.set_event_types(device_id, user_id, ["GATE_FORCED_OPEN"])

    services.devices.delete(device_id)

    assert not services.devices.exists(device_id)
    assert services.subscriptions.event_types(device_id, user_id) == []
    assert services.devices.get_secret(device_id) is None
    assert services.users.devices_for(user_id) == []
    services.devices.create(device_id, "Rebuilt Gate")
    assert services.devices.get_settings(device_id) == {}


def test_detach_missing_membership(services, gate):
    device_id, user_id = gate
    with pytest.raises(NotFoundError):
        services.devices.detach_user(device_id, user_id)
