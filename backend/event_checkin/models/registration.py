"""
Registration record and its positional row layout.

The registration sheet is header-less; a record is stored as a fixed-width
row. Column order is versioned: any change to COLUMNS must bump
SCHEMA_VERSION and ship a migration for existing sheets.
"""

from dataclasses import dataclass, field, replace
from typing import List, Sequence, Tuple

SCHEMA_VERSION = 2

MAX_PARTICIPANTS = 4
MAX_MERCH_LINES = 4

PAID = "Y"
NOT_PAID = "N"

DATE_FORMAT = "%Y-%m-%d"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def _participant_columns() -> List[str]:
    cols = []
    for i in range(1, MAX_PARTICIPANTS + 1):
        cols += [f"first_name_{i}", f"last_name_{i}"]
    return cols


def _merch_columns() -> List[str]:
    cols = []
    for i in range(1, MAX_MERCH_LINES + 1):
        cols += [f"tshirt_size_{i}", f"tshirt_qty_{i}"]
    return cols


COLUMNS: Tuple[str, ...] = tuple(
    ["email", "paid", "household_size"]
    + _participant_columns()
    + ["mobile"]
    + _merch_columns()
    + [
        "total_fee",
        "registration_date",
        "last_updated_at",
        "staff_checkin_name",
        "checkin_timestamp",
    ]
)

COLUMN_INDEX = {name: i for i, name in enumerate(COLUMNS)}


@dataclass(frozen=True)
class Participant:
    first_name: str = ""
    last_name: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def is_blank(self) -> bool:
        return not self.first_name and not self.last_name


@dataclass(frozen=True)
class MerchLine:
    size: str = ""
    quantity: str = ""

    def quantity_value(self) -> float:
        try:
            return float(self.quantity)
        except (TypeError, ValueError):
            return 0.0

    def is_ordered(self) -> bool:
        return self.quantity_value() != 0


def _pad(items: Sequence, size: int, blank) -> Tuple:
    items = list(items)[:size]
    return tuple(items + [blank] * (size - len(items)))


@dataclass(frozen=True)
class RegistrationRecord:
    email: str
    paid: str = NOT_PAID
    household_size: str = ""
    participants: Tuple[Participant, ...] = field(default_factory=tuple)
    mobile: str = ""
    merchandise: Tuple[MerchLine, ...] = field(default_factory=tuple)
    total_fee: str = ""
    registration_date: str = ""
    last_updated_at: str = ""
    staff_checkin_name: str = ""
    checkin_timestamp: str = ""

    def __post_init__(self):
        object.__setattr__(
            self, "participants", _pad(self.participants, MAX_PARTICIPANTS, Participant())
        )
        object.__setattr__(
            self, "merchandise", _pad(self.merchandise, MAX_MERCH_LINES, MerchLine())
        )

    @property
    def checked_in(self) -> bool:
        return bool(self.checkin_timestamp)

    @property
    def display_name(self) -> str:
        for p in self.participants:
            if not p.is_blank():
                return p.full_name
        return self.email

    def named_participants(self) -> List[Participant]:
        return [p for p in self.participants if not p.is_blank()]

    def with_changes(self, **changes) -> "RegistrationRecord":
        return replace(self, **changes)

    # ------------------------------------------------------------------
    # Positional serialization
    # ------------------------------------------------------------------

    def to_row(self) -> List[str]:
        values = {
            "email": self.email,
            "paid": self.paid,
            "household_size": self.household_size,
            "mobile": self.mobile,
            "total_fee": self.total_fee,
            "registration_date": self.registration_date,
            "last_updated_at": self.last_updated_at,
            "staff_checkin_name": self.staff_checkin_name,
            "checkin_timestamp": self.checkin_timestamp,
        }
        for i, p in enumerate(self.participants, start=1):
            values[f"first_name_{i}"] = p.first_name
            values[f"last_name_{i}"] = p.last_name
        for i, m in enumerate(self.merchandise, start=1):
            values[f"tshirt_size_{i}"] = m.size
            values[f"tshirt_qty_{i}"] = m.quantity
        return [values[name] for name in COLUMNS]

    @classmethod
    def from_row(cls, row: Sequence) -> "RegistrationRecord":
        cells = [("" if v is None else str(v)) for v in list(row)[: len(COLUMNS)]]
        cells += [""] * (len(COLUMNS) - len(cells))

        def cell(name: str) -> str:
            return cells[COLUMN_INDEX[name]]

        participants = tuple(
            Participant(cell(f"first_name_{i}"), cell(f"last_name_{i}"))
            for i in range(1, MAX_PARTICIPANTS + 1)
        )
        merchandise = tuple(
            MerchLine(cell(f"tshirt_size_{i}"), cell(f"tshirt_qty_{i}"))
            for i in range(1, MAX_MERCH_LINES + 1)
        )
        return cls(
            email=cell("email"),
            paid=cell("paid"),
            household_size=cell("household_size"),
            participants=participants,
            mobile=cell("mobile"),
            merchandise=merchandise,
            total_fee=cell("total_fee"),
            registration_date=cell("registration_date"),
            last_updated_at=cell("last_updated_at"),
            staff_checkin_name=cell("staff_checkin_name"),
            checkin_timestamp=cell("checkin_timestamp"),
        )

    def to_api(self) -> dict:
        """camelCase mapping returned to clients"""
        return {
            "email": self.email,
            "paid": self.paid,
            "householdSize": self.household_size,
            "names": [
                {"firstName": p.first_name, "lastName": p.last_name}
                for p in self.named_participants()
            ],
            "mobile": self.mobile,
            "tshirts": [
                {"size": m.size, "quantity": m.quantity}
                for m in self.merchandise
                if m.size or m.quantity
            ],
            "totalFee": self.total_fee,
            "registrationDate": self.registration_date,
            "lastUpdatedAt": self.last_updated_at,
            "staffCheckinName": self.staff_checkin_name,
            "checkinTimestamp": self.checkin_timestamp,
        }

    def __repr__(self):
        return f"<RegistrationRecord {self.email}>"
