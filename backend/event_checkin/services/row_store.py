"""
Row store contract and adapters.

A row store holds header-less sheets of positional string cells, addressed
by sheet name and zero-based row index. Adapters must make a single row
write all-or-nothing and report failures as StoreUnavailable.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence

from sqlalchemy import func, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from event_checkin.core.exceptions import StoreUnavailable
from event_checkin.models.sheet_row import SheetRow

logger = logging.getLogger(__name__)


def _as_cells(values: Sequence) -> List[str]:
    return ["" if v is None else str(v) for v in values]


class RowStore(ABC):
    @abstractmethod
    def read_all(self, sheet: str) -> List[List[str]]:
        """All rows of a sheet in positional order"""

    @abstractmethod
    def read_row(self, sheet: str, index: int) -> Optional[List[str]]:
        """One row, or None when the index is past the end"""

    @abstractmethod
    def append_row(self, sheet: str, values: Sequence) -> int:
        """Append a row and return its index"""

    @abstractmethod
    def update_row(self, sheet: str, index: int, values: Sequence) -> None:
        """Replace an existing row"""

    def ping(self) -> bool:
        return True


class InMemoryRowStore(RowStore):
    def __init__(self, sheets: Optional[Dict[str, List[Sequence]]] = None):
        self._lock = threading.Lock()
        self._sheets: Dict[str, List[List[str]]] = {
            name: [_as_cells(r) for r in rows] for name, rows in (sheets or {}).items()
        }

    def read_all(self, sheet):
        with self._lock:
            return [list(r) for r in self._sheets.get(sheet, [])]

    def read_row(self, sheet, index):
        with self._lock:
            rows = self._sheets.get(sheet, [])
            if 0 <= index < len(rows):
                return list(rows[index])
            return None

    def append_row(self, sheet, values):
        with self._lock:
            rows = self._sheets.setdefault(sheet, [])
            rows.append(_as_cells(values))
            return len(rows) - 1

    def update_row(self, sheet, index, values):
        with self._lock:
            rows = self._sheets.get(sheet, [])
            if not 0 <= index < len(rows):
                raise StoreUnavailable("update_row", IndexError(f"{sheet}[{index}]"))
            rows[index] = _as_cells(values)


class SqlRowStore(RowStore):
    """Sheets emulated in a relational table, one record per row."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory
        # Serializes index allocation for appends within this process
        self._append_lock = threading.Lock()

    def read_all(self, sheet):
        try:
            with self.session_factory() as db:
                rows = db.execute(
                    select(SheetRow.row_index, SheetRow.cells)
                    .where(SheetRow.sheet == sheet)
                    .order_by(SheetRow.row_index)
                ).all()
        except SQLAlchemyError as e:
            logger.error(f"❌ Failed to read sheet {sheet}: {e}")
            raise StoreUnavailable("read_all", e) from e

        result: List[List[str]] = []
        for row_index, cells in rows:
            # Gaps are kept as blank rows so positions stay stable
            while len(result) < row_index:
                result.append([])
            result.append(list(cells or []))
        return result

    def read_row(self, sheet, index):
        try:
            with self.session_factory() as db:
                cells = db.execute(
                    select(SheetRow.cells).where(
                        SheetRow.sheet == sheet, SheetRow.row_index == index
                    )
                ).scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"❌ Failed to read {sheet}[{index}]: {e}")
            raise StoreUnavailable("read_row", e) from e
        return None if cells is None else list(cells)

    def append_row(self, sheet, values):
        with self._append_lock:
            try:
                with self.session_factory() as db:
                    last = db.execute(
                        select(func.max(SheetRow.row_index)).where(SheetRow.sheet == sheet)
                    ).scalar()
                    index = 0 if last is None else last + 1
                    db.add(SheetRow(sheet=sheet, row_index=index, cells=_as_cells(values)))
                    db.commit()
            except SQLAlchemyError as e:
                logger.error(f"❌ Failed to append to {sheet}: {e}")
                raise StoreUnavailable("append_row", e) from e
        return index

    def update_row(self, sheet, index, values):
        try:
            with self.session_factory() as db:
                row = db.execute(
                    select(SheetRow).where(SheetRow.sheet == sheet, SheetRow.row_index == index)
                ).scalar_one_or_none()
                if row is None:
                    raise StoreUnavailable("update_row", LookupError(f"{sheet}[{index}]"))
                row.cells = _as_cells(values)
                db.commit()
        except SQLAlchemyError as e:
            logger.error(f"❌ Failed to update {sheet}[{index}]: {e}")
            raise StoreUnavailable("update_row", e) from e

    def ping(self) -> bool:
        try:
            with self.session_factory() as db:
                db.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.error(f"Row store ping failed: {e}")
            return False
