from fastapi import APIRouter, Depends, Response, status
import logging
import time

from event_checkin.api.deps import Services, get_services
from event_checkin.core.exceptions import DeliveryFailed
from event_checkin.schemas import RegistrationPayload, SaveResponse
from event_checkin.services.notifier import build_confirmation_values
from event_checkin.services.registration import UpsertResult, build_input
from event_checkin.utils.image import generate_qr_png

router = APIRouter()
logger = logging.getLogger(__name__)


def send_confirmation(services: Services, result: UpsertResult) -> bool:
    """
    Email the confirmation with a fresh check-in QR code.
    Failures are written to the fail log and never raised.
    """
    email = result.record.email
    try:
        token = services.codec.encode(email)
        qr_png = generate_qr_png(token)
        values = build_confirmation_values(result.record, result.mode)
        services.notifier.send_confirmation(email, values, qr_png)
        return True
    except DeliveryFailed as e:
        cause = e.details.get("cause") or e.message
        logger.error(f"❌ Confirmation for {email} not delivered: {cause}")
        services.fail_log.record(email, cause)
    except Exception as e:
        logger.error(f"❌ Confirmation for {email} failed: {e}", exc_info=True)
        services.fail_log.record(email, str(e))
    return False


@router.post("/saveOrUpdate", response_model=SaveResponse)
def save_or_update(
    payload: RegistrationPayload,
    response: Response,
    services: Services = Depends(get_services),
):
    """
    Create or update the household registration for an email, then send
    the confirmation email.
    """
    start_time = time.time()

    result = services.registrations.upsert(
        build_input(
            email=payload.email,
            names=[(n.first_name, n.last_name) for n in payload.names],
            mobile=payload.mobile,
            tshirts=[(t.size, t.quantity) for t in payload.tshirts],
            total_fee=payload.total_fee,
        )
    )

    delivered = send_confirmation(services, result)

    processing_time = time.time() - start_time
    logger.info(
        f"✅ saveOrUpdate {result.mode} for {result.record.email} "
        f"(confirmation sent: {delivered}) in {processing_time:.2f}s"
    )

    if result.created:
        response.status_code = status.HTTP_201_CREATED
        return {"message": "Registration created", "status": "created", "email": result.record.email}
    return {"message": "Registration updated", "status": "updated", "email": result.record.email}
