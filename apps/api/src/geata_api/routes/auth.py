from fastapi import APIRouter, Depends, HTTPException
import logging
from pydantic import BaseModel
from typing import Optional
from geata_core.auth import create_access_token
from geata_core.models import User
from geata_core.services import Services
from geata_core.users import user_to_dict
from ..deps import get_current_user, get_services

router = APIRouter(tags=["auth"])
auth_log = logging.getLogger("geata_api.auth")


class RegisterRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    password: str


class LoginRequest(BaseModel):
    email: Optional[str] = None
    phone: Optional[str] = None
    password: str


@router.post("/auth/register", status_code=201)
def register(request: RegisterRequest, services: Services = Depends(get_services)):
    if not request.phone and not request.email:
        raise HTTPException(status_code=400, detail="phone or email and password are required")
    user = services.users.register(request.name, request.email, request.phone, request.password)
    token = create_access_token({"sub": user.id})
    auth_log.info("user.register ok: id=%s", user.id)
    return {"token": token, "user": user_to_dict(user)}


@router.post("/auth/login")
def login(request: LoginRequest, services: Services = Depends(get_services)):
    if not request.phone and not request.email:
        raise HTTPException(status_code=400, detail="phone or email and password are required")
    user = services.users.authenticate(request.password, email=request.email, phone=request.phone)
    if user is None:
        auth_log.warning("user.login fail: email=%s phone=%s", request.email, request.phone)
        raise HTTPException(status_code=401, detail="Invalid login or password")
    token = create_access_token({"sub": user.id})
    auth_log.info("user.login ok: id=%s", user.id)
    return {"token": token, "access_token": token, "token_type": "bearer", "user": user_to_dict(user)}


@router.get("/auth/me")
@router.get("/me", include_in_schema=False)
def me(user: User = Depends(get_current_user)):
    return user_to_dict(user)


@router.get("/me/devices")
def my_devices(user: User = Depends(get_current_user), services: Services = Depends(get_services)):
    return services.users.devices_for(user.id)
