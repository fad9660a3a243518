from fastapi import APIRouter, Depends
import logging

from event_checkin.api.deps import Services, get_services

router = APIRouter()
logger = logging.getLogger(__name__)

@router.get("/health")
def health_check(services: Services = Depends(get_services)):
    """Health check endpoint"""
    if services.store.ping():
        return {
            "status": "healthy",
            "store": "connected",
            "service": "event-checkin"
        }
    logger.error("Health check failed: row store unreachable")
    return {
        "status": "unhealthy",
        "store": "unreachable",
        "service": "event-checkin"
    }
