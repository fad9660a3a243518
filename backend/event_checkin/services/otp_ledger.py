import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Union

from event_checkin.core.exceptions import DeliveryFailed, MissingField
from event_checkin.core.locks import KeyedLock
from event_checkin.utils.crypto import generate_otp_code, normalize_email

logger = logging.getLogger(__name__)

# Delivers (email, code); raises on failure
OtpSender = Callable[[str, int], None]


@dataclass
class OtpEntry:
    email: str
    code: int
    issued_at: float


def _as_code(value: Union[int, str, None]) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


class OtpLedger:
    """
    Short-lived one-time codes, one live entry per email.
    Issue and verify for the same email are serialized; codes are single-use.
    """

    def __init__(
        self,
        sender: OtpSender,
        ttl_seconds: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
        code_factory: Callable[[], int] = generate_otp_code,
    ):
        self.sender = sender
        self.ttl_seconds = ttl_seconds or None
        self.clock = clock
        self.code_factory = code_factory
        self._entries: Dict[str, OtpEntry] = {}
        self._locks = KeyedLock()

    def _expired(self, entry: OtpEntry) -> bool:
        if self.ttl_seconds is None:
            return False
        return self.clock() - entry.issued_at > self.ttl_seconds

    def issue(self, email: Optional[str]) -> int:
        key = normalize_email(email)
        if not key:
            raise MissingField("email")

        entry = OtpEntry(email=key, code=self.code_factory(), issued_at=self.clock())
        with self._locks.hold(key):
            self._entries[key] = entry

        try:
            self.sender(key, entry.code)
        except Exception as e:
            # Drop the code unless a newer issuance already replaced it
            with self._locks.hold(key):
                if self._entries.get(key) is entry:
                    del self._entries[key]
            logger.error(f"❌ OTP delivery to {key} failed: {e}")
            raise DeliveryFailed(key, e) from e

        logger.info(f"✅ OTP issued for {key}")
        return entry.code

    def verify(
        self,
        email: Optional[str],
        code: Union[int, str, None],
        before_consume: Optional[Callable[[], None]] = None,
    ) -> bool:
        """
        Check a code and consume it on a match. before_consume runs under the
        email lock once the code has matched; if it raises, the code stays live.
        """
        key = normalize_email(email)
        missing = [name for name, value in (("email", key), ("otp", code)) if value in (None, "")]
        if missing:
            raise MissingField(*missing)

        supplied = _as_code(code)
        with self._locks.hold(key):
            entry = self._entries.get(key)
            if entry is None:
                return False
            if self._expired(entry):
                del self._entries[key]
                logger.info(f"OTP for {key} expired")
                return False
            if supplied is None or supplied != entry.code:
                return False
            if before_consume is not None:
                before_consume()
            del self._entries[key]

        logger.info(f"✅ OTP verified for {key}")
        return True

