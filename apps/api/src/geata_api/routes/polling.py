from fastapi import APIRouter, Depends
from pydantic import BaseModel
from typing import Any, Optional
from geata_core.services import Services
from ..deps import get_services

router = APIRouter(tags=["device"])


class PollRequest(BaseModel):
    deviceId: str
    secret: Optional[str] = None
    # Entries are validated one by one; a non-list is treated as no results.
    lastResults: Optional[Any] = None


@router.post("/device/poll")
def device_poll(body: PollRequest, services: Services = Depends(get_services)):
    """Body: ``{deviceId, secret?, lastResults: [{commandId, result}]}``.

    Response: ``{commands: [{commandId, type, durationMs}]}``.
    """
    results = body.lastResults if isinstance(body.lastResults, list) else []
    return services.poller.poll(body.deviceId, results, secret=body.secret).to_dict()
