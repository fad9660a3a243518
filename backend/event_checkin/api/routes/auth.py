from fastapi import APIRouter, Depends
import logging

from event_checkin.api.deps import Services, get_services
from event_checkin.core.security import require_staff
from event_checkin.schemas import StaffLoginRequest, StaffLoginResponse

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/loginStaff", response_model=StaffLoginResponse)
def login_staff(body: StaffLoginRequest, services: Services = Depends(get_services)):
    """Check the shared staff password before the scanner is unlocked"""
    staff_name = require_staff(body.staff_name, body.password, services.settings.STAFF_PASSWORD)
    logger.info(f"✅ Staff login: {staff_name}")
    return {"message": "Login successful", "staffName": staff_name}
