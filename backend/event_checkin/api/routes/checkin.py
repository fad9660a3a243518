from fastapi import APIRouter, Depends
import logging
import time

from event_checkin.api.deps import Services, get_services
from event_checkin.schemas import CheckinRequest, CheckinResponse

router = APIRouter()
logger = logging.getLogger(__name__)

@router.post("/checkinQRcode", response_model=CheckinResponse)
def checkin_qr_code(body: CheckinRequest, services: Services = Depends(get_services)):
    """
    Redeem a scanned check-in QR code.
    A repeat scan is not an error: it reports who checked the household in and when.
    """
    start_time = time.time()

    outcome = services.checkin.redeem(body.encrypted_email, body.staff_name, body.password)

    processing_time = time.time() - start_time
    logger.info(f"🔍 Check-in {outcome.status.value} for {outcome.email} ({processing_time:.2f}s)")

    return {
        "message": outcome.message,
        "status": outcome.status.value,
        "name": outcome.name,
        "staffName": outcome.staff_name,
        "timestamp": outcome.timestamp,
    }
