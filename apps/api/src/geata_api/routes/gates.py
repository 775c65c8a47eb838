from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
import logging
from pydantic import BaseModel
from typing import Optional
from geata_core.commands import command_to_dict
from geata_core.events import event_to_dict
from geata_core.models import User
from geata_core.services import Services
from ..deps import get_current_user, get_services, require_admin

router = APIRouter(tags=["gates"])
log = logging.getLogger("geata_api")

_PATH_TYPES = {"open": "OPEN", "aux1": "AUX1", "aux2": "AUX2"}

_DENIAL_MESSAGES = {
    "NOT_ASSIGNED": "You are not assigned to this gate",
    "SCHEDULE_DENIED": "Access not allowed at this time",
}


class PulseRequest(BaseModel):
    durationMs: Optional[int] = None


class SimulateRequest(BaseModel):
    eventType: str
    details: Optional[str] = None


def _request(device_id: str, type_: str, body: Optional[PulseRequest], user: User, services: Services):
    duration = (body.durationMs if body else None) or services.settings.default_duration_ms
    outcome = services.gates.request(device_id, user.id, type_, duration, services.settings.now())
    if not outcome.allowed:
        reason = outcome.decision.reason
        log.info("gate.%s denied device=%s actor=%s reason=%s", type_.lower(), device_id, user.id, reason)
        return JSONResponse(
            status_code=403,
            content={"allowed": False, "reason": reason, "error": _DENIAL_MESSAGES.get(reason, "Access denied")},
        )
    log.info("gate.%s queued device=%s actor=%s command=%s", type_.lower(), device_id, user.id, outcome.command.id)
    return JSONResponse(status_code=201, content=command_to_dict(outcome.command))


@router.post("/devices/{device_id}/open")
def open_gate(device_id: str, body: Optional[PulseRequest] = None, user: User = Depends(get_current_user),
              services: Services = Depends(get_services)):
    return _request(device_id, "OPEN", body, user, services)


@router.post("/devices/{device_id}/aux1")
def aux1(device_id: str, body: Optional[PulseRequest] = None, user: User = Depends(get_current_user),
         services: Services = Depends(get_services)):
    return _request(device_id, "AUX1", body, user, services)


@router.post("/devices/{device_id}/aux2")
def aux2(device_id: str, body: Optional[PulseRequest] = None, user: User = Depends(get_current_user),
         services: Services = Depends(get_services)):
    return _request(device_id, "AUX2", body, user, services)


@router.get("/devices/{device_id}/can-open")
def can_open(device_id: str, user: User = Depends(get_current_user), services: Services = Depends(get_services)):
    return services.gates.check(device_id, user.id, services.settings.now()).to_dict()


@router.post("/devices/{device_id}/test/{kind}", status_code=201)
def test_pulse(device_id: str, kind: str, body: Optional[PulseRequest] = None, admin: str = Depends(require_admin),
               services: Services = Depends(get_services)):
    type_ = _PATH_TYPES.get(kind.lower(), kind.upper())
    duration = (body.durationMs if body else None) or services.settings.default_duration_ms
    cmd = services.gates.test_pulse(device_id, type_, duration)
    log.info("gate.test_pulse device=%s type=%s command=%s", device_id, type_, cmd.id)
    return command_to_dict(cmd)


@router.post("/devices/{device_id}/simulate", status_code=201)
def simulate(device_id: str, body: SimulateRequest, admin: str = Depends(require_admin),
             services: Services = Depends(get_services)):
    event = services.gates.simulate(device_id, body.eventType, body.details)
    log.info("gate.simulate device=%s type=%s", device_id, body.eventType)
    return event_to_dict(event) if event else {"logged": False}
