from fastapi import APIRouter, Body, Depends
import logging
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from geata_core.errors import MalformedInputError
from geata_core.services import Services
from geata_core.users import user_to_dict
from ..deps import get_services, require_admin

router = APIRouter(prefix="/devices", tags=["devices"], dependencies=[Depends(require_admin)])
log = logging.getLogger("geata_api")


class DeviceCreateRequest(BaseModel):
    id: str
    name: str


class AttachRequest(BaseModel):
    userId: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    password: Optional[str] = None
    role: Optional[str] = None
    scheduleId: Optional[int] = None


class ScheduleAssignmentRequest(BaseModel):
    scheduleId: Optional[Any] = None


class NotificationsRequest(BaseModel):
    eventTypes: List[str]


class SecretRequest(BaseModel):
    secret: Optional[str] = None


class ImportRequest(BaseModel):
    rows: List[Dict[str, Any]] = Field(default_factory=list)


@router.get("")
@router.get("/", include_in_schema=False)
def list_devices(services: Services = Depends(get_services)):
    return services.devices.list()


@router.post("", status_code=201)
@router.post("/", status_code=201, include_in_schema=False)
def create_device(data: DeviceCreateRequest, services: Services = Depends(get_services)):
    dev = services.devices.create(data.id.strip(), data.name.strip())
    log.info("device.create id=%s", data.id)
    return dev


@router.delete("/{device_id}")
def delete_device(device_id: str, services: Services = Depends(get_services)):
    services.devices.delete(device_id)
    log.info("device.delete id=%s", device_id)
    return {"status": "deleted"}


@router.get("/{device_id}/users")
def list_members(device_id: str, services: Services = Depends(get_services)):
    return services.devices.members(device_id)


@router.post("/{device_id}/users", status_code=201)
def attach_user(device_id: str, data: AttachRequest, services: Services = Depends(get_services)):
    """Attach an existing user (``userId``) or find-or-create one by email/phone."""
    services.devices.get(device_id)
    if data.userId:
        user = services.users.get(data.userId)
    else:
        user = services.users.find(email=data.email, phone=data.phone)
        if user is None:
            user = services.users.create(name=data.name, email=data.email, phone=data.phone, password=data.password)
    membership = services.devices.attach_user(device_id, user.id, data.role, data.scheduleId)
    log.info("membership.attach device=%s user=%s role=%s", device_id, user.id, membership["role"])
    return {**membership, "user": user_to_dict(user)}


@router.delete("/{device_id}/users/{user_id}")
def detach_user(device_id: str, user_id: str, services: Services = Depends(get_services)):
    services.devices.detach_user(device_id, user_id)
    return {"status": "removed"}


@router.post("/{device_id}/users/import")
def import_users(device_id: str, data: ImportRequest, services: Services = Depends(get_services)):
    result = services.devices.import_members(device_id, services.users, data.rows)
    log.info("membership.import device=%s created=%d reused=%d skipped=%d",
             device_id, len(result.created), len(result.reused), result.skipped)
    return {"status": "ok", "created": result.created, "reused": result.reused, "skipped": result.skipped}


@router.get("/{device_id}/users/{user_id}/schedule-assignment")
def get_schedule_assignment(device_id: str, user_id: str, services: Services = Depends(get_services)):
    return {"scheduleId": services.devices.schedule_assignment(device_id, user_id)}


@router.put("/{device_id}/users/{user_id}/schedule-assignment")
def set_schedule_assignment(device_id: str, user_id: str, data: ScheduleAssignmentRequest,
                            services: Services = Depends(get_services)):
    try:
        sid = None if data.scheduleId in ("", None) else int(data.scheduleId)
    except (TypeError, ValueError):
        raise MalformedInputError("scheduleId must be an integer or null")
    return services.devices.set_schedule_assignment(device_id, user_id, sid)


@router.get("/{device_id}/users/{user_id}/notifications")
def get_notifications(device_id: str, user_id: str, services: Services = Depends(get_services)):
    return {"eventTypes": services.subscriptions.event_types(device_id, user_id)}


@router.put("/{device_id}/users/{user_id}/notifications")
def set_notifications(device_id: str, user_id: str, data: NotificationsRequest,
                      services: Services = Depends(get_services)):
    services.devices.get(device_id)
    services.users.get(user_id)
    return {"eventTypes": services.subscriptions.set_event_types(device_id, user_id, data.eventTypes)}


@router.put("/{device_id}/secret")
def set_secret(device_id: str, data: Optional[SecretRequest] = None, services: Services = Depends(get_services)):
    secret = services.devices.set_secret(device_id, data.secret if data else None)
    return {"deviceId": device_id, "secret": secret}


@router.get("/{device_id}/settings")
def get_settings(device_id: str, services: Services = Depends(get_services)):
    return services.devices.get_settings(device_id)


@router.put("/{device_id}/settings")
def put_settings(device_id: str, data: Optional[Dict[str, Any]] = Body(None),
                 services: Services = Depends(get_services)):
    return services.devices.set_settings(device_id, data)
