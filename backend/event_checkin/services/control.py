import logging

from event_checkin.services.row_store import RowStore

logger = logging.getLogger(__name__)

OPEN_VALUES = {"y", "yes", "true", "open", "1"}


class SystemControl:
    """Read-only view of the control sheet"""

    def __init__(self, store: RowStore, sheet: str, keyword: str):
        self.store = store
        self.sheet = sheet
        self.keyword = keyword.strip().lower()

    def is_registration_open(self) -> bool:
        for row in self.store.read_all(self.sheet):
            if row and str(row[0]).strip().lower() == self.keyword:
                value = str(row[1]).strip().lower() if len(row) > 1 else ""
                return value in OPEN_VALUES
        logger.warning(f"No '{self.keyword}' row in control sheet {self.sheet}; treating as closed")
        return False
