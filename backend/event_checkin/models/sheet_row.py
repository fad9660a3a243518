from sqlalchemy import Column, Integer, JSON, String, UniqueConstraint

from event_checkin.db.base import Base, BaseModel


class SheetRow(Base, BaseModel):
    """One positional row of a header-less sheet"""

    __tablename__ = "sheet_rows"
    __table_args__ = (UniqueConstraint("sheet", "row_index", name="uq_sheet_row"),)

    sheet = Column(String, nullable=False, index=True)
    row_index = Column(Integer, nullable=False)
    cells = Column(JSON, nullable=False, default=list)

    def __repr__(self):
        return f"<SheetRow {self.sheet}[{self.row_index}]>"
