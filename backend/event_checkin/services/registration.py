"""
Upsert of registration rows keyed by email.

Server-owned fields (paid flag, household size, registration date and the
check-in fields) survive every registrant update; everything else is taken
from the payload. Writes for one email are serialized within the process.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Iterable, Optional, Tuple

from event_checkin.core.exceptions import MissingField
from event_checkin.core.locks import KeyedLock
from event_checkin.models.registration import (
    DATE_FORMAT,
    NOT_PAID,
    TIMESTAMP_FORMAT,
    MerchLine,
    Participant,
    RegistrationRecord,
)
from event_checkin.services.row_store import RowStore
from event_checkin.utils.crypto import normalize_email

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegistrationInput:
    """Registrant-supplied fields, already shaped by the API layer"""

    email: str
    participants: Tuple[Participant, ...] = ()
    mobile: str = ""
    merchandise: Tuple[MerchLine, ...] = ()
    total_fee: str = ""


@dataclass(frozen=True)
class UpsertResult:
    created: bool
    record: RegistrationRecord
    row_index: int

    @property
    def mode(self) -> str:
        return "new" if self.created else "update"


class RegistrationService:
    def __init__(
        self,
        store: RowStore,
        sheet: str,
        locks: Optional[KeyedLock] = None,
        now: Callable[[], datetime] = datetime.now,
    ):
        self.store = store
        self.sheet = sheet
        self.locks = locks or KeyedLock()
        self.now = now
        self._index: Dict[str, int] = {}
        self._index_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Email index
    # ------------------------------------------------------------------

    def _rebuild_index(self) -> Dict[str, int]:
        rows = self.store.read_all(self.sheet)
        index: Dict[str, int] = {}
        for i, row in enumerate(rows):
            if not row:
                continue
            key = normalize_email(row[0])
            # First occurrence wins if the sheet already holds duplicates
            if key and key not in index:
                index[key] = i
        with self._index_lock:
            self._index = index
        logger.debug(f"Rebuilt email index for {self.sheet}: {len(index)} rows")
        return index

    def _cached_position(self, key: str) -> Optional[int]:
        with self._index_lock:
            return self._index.get(key)

    def _remember(self, key: str, position: int) -> None:
        with self._index_lock:
            self._index[key] = position

    def _locate(self, key: str) -> Optional[Tuple[int, RegistrationRecord]]:
        """Row position and record for an email; caller holds the email lock"""
        position = self._cached_position(key)
        if position is not None:
            row = self.store.read_row(self.sheet, position)
            if row and normalize_email(row[0]) == key:
                return position, RegistrationRecord.from_row(row)

        position = self._rebuild_index().get(key)
        if position is None:
            return None
        row = self.store.read_row(self.sheet, position)
        if not row:
            return None
        return position, RegistrationRecord.from_row(row)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def find(self, email: Optional[str]) -> Optional[Tuple[int, RegistrationRecord]]:
        key = normalize_email(email)
        if not key:
            raise MissingField("email")
        with self.locks.hold(key):
            return self._locate(key)

    def upsert(self, payload: RegistrationInput) -> UpsertResult:
        key = normalize_email(payload.email)
        if not key:
            raise MissingField("email")

        with self.locks.hold(key):
            now = self.now()
            found = self._locate(key)
            fields = dict(
                email=key,
                participants=tuple(payload.participants),
                mobile=payload.mobile,
                merchandise=tuple(payload.merchandise),
                total_fee=payload.total_fee,
                last_updated_at=now.strftime(TIMESTAMP_FORMAT),
            )

            if found is not None:
                position, existing = found
                record = existing.with_changes(**fields)
                self.store.update_row(self.sheet, position, record.to_row())
                logger.info(f"✅ Updated registration for {key} at row {position}")
                return UpsertResult(created=False, record=record, row_index=position)

            record = RegistrationRecord(
                paid=NOT_PAID,
                household_size="",
                registration_date=now.strftime(DATE_FORMAT),
                **fields,
            )
            position = self.store.append_row(self.sheet, record.to_row())
            self._remember(key, position)
            logger.info(f"✅ Created registration for {key} at row {position}")
            return UpsertResult(created=True, record=record, row_index=position)

    def write_record(self, position: int, record: RegistrationRecord) -> None:
        """Raw row write for privileged paths; caller holds the email lock"""
        self.store.update_row(self.sheet, position, record.to_row())

    def locate_locked(self, key: str) -> Optional[Tuple[int, RegistrationRecord]]:
        """Lookup by normalized email; caller holds the email lock"""
        return self._locate(key)


def build_input(
    email: Optional[str],
    names: Iterable[Tuple[str, str]] = (),
    mobile: Optional[str] = "",
    tshirts: Iterable[Tuple[str, str]] = (),
    total_fee: Optional[str] = "",
) -> RegistrationInput:
    return RegistrationInput(
        email=email or "",
        participants=tuple(Participant((f or "").strip(), (l or "").strip()) for f, l in names),
        mobile=(mobile or "").strip(),
        merchandise=tuple(MerchLine((s or "").strip(), (q or "").strip()) for s, q in tshirts),
        total_fee=(total_fee or "").strip(),
    )
