from fastapi import APIRouter, Depends
import logging
from pydantic import BaseModel, Field
from typing import List, Optional
from geata_core.services import Services
from ..deps import get_services, require_admin

router = APIRouter(prefix="/schedules", tags=["schedules"], dependencies=[Depends(require_admin)])
log = logging.getLogger("geata_api")


class SlotModel(BaseModel):
    daysOfWeek: List[int] = Field(default_factory=list)
    start: str
    end: str


class ScheduleCreateRequest(BaseModel):
    name: str
    description: Optional[str] = None
    slots: List[SlotModel] = Field(default_factory=list)


class ScheduleUpdateRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    slots: Optional[List[SlotModel]] = None


def _slots(slots: Optional[List[SlotModel]]):
    if slots is None:
        return None
    return [s.model_dump() for s in slots]


@router.get("")
@router.get("/", include_in_schema=False)
def list_schedules(services: Services = Depends(get_services)):
    items = services.schedules.list()
    log.info("schedule.list count=%d", len(items))
    return items


@router.get("/{schedule_id}")
def get_schedule(schedule_id: int, services: Services = Depends(get_services)):
    return services.schedules.get(schedule_id)


@router.post("", status_code=201)
@router.post("/", status_code=201, include_in_schema=False)
def create_schedule(data: ScheduleCreateRequest, services: Services = Depends(get_services)):
    schedule = services.schedules.create(data.name, data.description, _slots(data.slots))
    log.info("schedule.create id=%s", schedule["id"])
    return schedule


@router.put("/{schedule_id}")
def update_schedule(schedule_id: int, update: ScheduleUpdateRequest, services: Services = Depends(get_services)):
    schedule = services.schedules.update(schedule_id, update.name, update.description, _slots(update.slots))
    log.info("schedule.update ok id=%s", schedule_id)
    return schedule


@router.delete("/{schedule_id}")
def delete_schedule(schedule_id: int, services: Services = Depends(get_services)):
    services.schedules.delete(schedule_id)
    log.info("schedule.delete ok id=%s", schedule_id)
    return {"status": "deleted"}
