import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from event_checkin.core.exceptions import MissingField, NotFound
from event_checkin.core.security import require_staff
from event_checkin.models.registration import TIMESTAMP_FORMAT
from event_checkin.services.registration import RegistrationService
from event_checkin.services.token_codec import TokenCodec

logger = logging.getLogger(__name__)


class CheckinStatus(str, Enum):
    REDEEMED = "redeemed"
    ALREADY_REDEEMED = "already_redeemed"


@dataclass(frozen=True)
class CheckinOutcome:
    status: CheckinStatus
    email: str
    name: str
    staff_name: str
    timestamp: str

    @property
    def message(self) -> str:
        if self.status is CheckinStatus.REDEEMED:
            return f"{self.name} checked in successfully"
        return f"{self.name} was already checked in by {self.staff_name} at {self.timestamp}"


class CheckinCoordinator:
    """
    Redeems check-in tokens. A record moves NotCheckedIn -> CheckedIn once;
    later redemptions report the first staff name and timestamp.
    """

    def __init__(
        self,
        registrations: RegistrationService,
        codec: TokenCodec,
        staff_password: str,
        now: Callable[[], datetime] = datetime.now,
    ):
        self.registrations = registrations
        self.codec = codec
        self.staff_password = staff_password
        self.now = now

    def redeem(
        self,
        token: Optional[str],
        staff_name: Optional[str],
        staff_secret: Optional[str],
    ) -> CheckinOutcome:
        if not (token or "").strip():
            raise MissingField("encryptedEmail")
        staff_name = require_staff(staff_name, staff_secret, self.staff_password)

        email = self.codec.decode(token)

        # Shares the per-email lock with upserts so the read-then-write is atomic
        with self.registrations.locks.hold(email):
            found = self.registrations.locate_locked(email)
            if found is None:
                logger.info(f"Check-in token for unregistered email {email}")
                raise NotFound(email)
            position, record = found

            if record.checked_in:
                logger.info(
                    f"Repeat check-in for {email} by {staff_name}; "
                    f"first by {record.staff_checkin_name} at {record.checkin_timestamp}"
                )
                return CheckinOutcome(
                    status=CheckinStatus.ALREADY_REDEEMED,
                    email=email,
                    name=record.display_name,
                    staff_name=record.staff_checkin_name,
                    timestamp=record.checkin_timestamp,
                )

            timestamp = self.now().strftime(TIMESTAMP_FORMAT)
            updated = record.with_changes(
                staff_checkin_name=staff_name,
                checkin_timestamp=timestamp,
            )
            self.registrations.write_record(position, updated)

        logger.info(f"✅ Checked in {email} by {staff_name}")
        return CheckinOutcome(
            status=CheckinStatus.REDEEMED,
            email=email,
            name=updated.display_name,
            staff_name=staff_name,
            timestamp=timestamp,
        )
