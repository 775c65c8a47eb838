from fastapi import APIRouter, Depends, HTTPException
import logging
from pydantic import BaseModel
from typing import Optional
from geata_core.services import Services
from geata_core.users import user_to_dict
from ..deps import get_services, require_admin

router = APIRouter(prefix="/users", tags=["users"], dependencies=[Depends(require_admin)])
log = logging.getLogger("geata_api")


class UserCreateRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    password: Optional[str] = None


class UserUpdateRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    password: Optional[str] = None


@router.get("")
@router.get("/", include_in_schema=False)
def list_users(q: Optional[str] = None, services: Services = Depends(get_services)):
    return services.users.search((q or "").strip() or None)


@router.post("", status_code=201)
@router.post("/", status_code=201, include_in_schema=False)
def create_user(data: UserCreateRequest, services: Services = Depends(get_services)):
    user = services.users.create(data.name, data.email, data.phone, data.password)
    log.info("user.create ok: id=%s", user.id)
    return user_to_dict(user)


@router.get("/{user_id}")
def get_user(user_id: str, services: Services = Depends(get_services)):
    return user_to_dict(services.users.get(user_id))


@router.put("/{user_id}")
def update_user(user_id: str, data: UserUpdateRequest, services: Services = Depends(get_services)):
    if data.name is None and data.email is None and data.phone is None and data.password is None:
        raise HTTPException(status_code=400, detail="No valid fields provided to update")
    user = services.users.update(user_id, data.name, data.email, data.phone, data.password)
    log.info("user.update ok: id=%s", user_id)
    return user_to_dict(user)


@router.delete("/{user_id}")
def delete_user(user_id: str, services: Services = Depends(get_services)):
    services.users.delete(user_id)
    log.info("user.delete ok: id=%s", user_id)
    return {"deleted": user_id}
