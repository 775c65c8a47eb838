from fastapi import APIRouter, Depends
from geata_core.services import Services
from ..deps import get_services, require_admin

router = APIRouter(prefix="/profiles", tags=["profiles"], dependencies=[Depends(require_admin)])


@router.get("/users/{user_id}")
def user_profile(user_id: str, services: Services = Depends(get_services)):
    """User details with each enrolled device's role, schedule and alert subscriptions."""
    return services.users.profile(user_id)
