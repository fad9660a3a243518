import hmac
import logging
from typing import Optional

from event_checkin.core.exceptions import MissingField, Unauthorized

logger = logging.getLogger(__name__)


def verify_staff_password(candidate: Optional[str], expected: str) -> bool:
    """Constant-time comparison against the shared staff secret"""
    expected = (expected or "").strip()
    if not expected:
        return False
    return hmac.compare_digest((candidate or "").strip().encode(), expected.encode())


def require_staff(staff_name: Optional[str], password: Optional[str], expected: str) -> str:
    """Validate a staff login; returns the trimmed staff name."""
    staff_name = (staff_name or "").strip()
    if not staff_name:
        raise MissingField("staffName")
    if not password:
        raise MissingField("password")
    if not verify_staff_password(password, expected):
        logger.warning(f"Rejected staff credentials for {staff_name}")
        raise Unauthorized()
    return staff_name
