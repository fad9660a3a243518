from fastapi import APIRouter, Depends
import logging

from event_checkin.api.deps import Services, get_services
from event_checkin.core.exceptions import InvalidCode
from event_checkin.schemas import MessageResponse, OTPRequest, OTPVerifyRequest
from event_checkin.utils.crypto import normalize_email

router = APIRouter()
logger = logging.getLogger(__name__)

@router.post("/sendOTP", response_model=MessageResponse)
def send_otp(body: OTPRequest, services: Services = Depends(get_services)):
    """
    Issue a one-time code and email it to the address.
    """
    logger.info("Running Request OTP Route")
    services.otp.issue(body.email)
    return {"message": "OTP sent to your email"}

@router.post("/verifyOTP")
def verify_otp(body: OTPVerifyRequest, services: Services = Depends(get_services)):
    """
    Verify a one-time code.
    Returns the stored registration when there is one, otherwise whether
    registration is currently open.
    """
    logger.info("Running Verify OTP Route")
    lookup = {}

    def load_registration():
        # A store failure here leaves the code usable for a retry
        lookup["found"] = services.registrations.find(body.email)

    if not services.otp.verify(body.email, body.otp, before_consume=load_registration):
        raise InvalidCode()

    found = lookup["found"]
    if found is not None:
        _, record = found
        return record.to_api()

    return {
        "systemOpen": services.control.is_registration_open(),
        "email": normalize_email(body.email),
    }
