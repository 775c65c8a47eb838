from fastapi import APIRouter, Depends
import logging
from datetime import datetime
from pydantic import BaseModel
from typing import Optional
from geata_core.commands import command_to_dict
from geata_core.events import event_to_dict
from geata_core.services import Services
from ..deps import get_services, require_admin

router = APIRouter(tags=["events"], dependencies=[Depends(require_admin)])
log = logging.getLogger("geata_api")


class PurgeRequest(BaseModel):
    olderThanDays: int
    includeQueued: bool = False


@router.get("/events")
@router.get("/admin/alerts", include_in_schema=False)
def query_events(
    deviceId: Optional[str] = None,
    userId: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    eventType: Optional[str] = None,
    limit: int = 500,
    services: Services = Depends(get_services),
):
    rows = services.events.query(device_id=deviceId, user_id=userId, start=start, end=end,
                                 event_type=eventType, limit=limit)
    return [event_to_dict(e) for e in rows]


@router.get("/devices/{device_id}/events")
def device_events(device_id: str, limit: int = 50, services: Services = Depends(get_services)):
    services.devices.get(device_id)
    return [event_to_dict(e) for e in services.events.query(device_id=device_id, limit=limit)]


@router.post("/admin/purge-events")
def purge_events(data: PurgeRequest, services: Services = Depends(get_services)):
    deleted = services.events.purge(data.olderThanDays)
    log.info("admin.purge_events days=%d deleted=%d", data.olderThanDays, deleted)
    return {"deleted": deleted}


@router.get("/commands")
def recent_commands(limit: int = 20, deviceId: Optional[str] = None, services: Services = Depends(get_services)):
    return [command_to_dict(c) for c in services.queue.recent(limit, device_id=deviceId)]


@router.post("/admin/purge-commands")
def purge_commands(data: PurgeRequest, services: Services = Depends(get_services)):
    deleted = services.queue.purge(data.olderThanDays, include_queued=data.includeQueued)
    log.info("admin.purge_commands days=%d include_queued=%s deleted=%d",
             data.olderThanDays, data.includeQueued, deleted)
    return {"deleted": deleted}
