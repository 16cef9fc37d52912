from sqlalchemy import Column, DateTime, Integer, String

from shared.database.base import Base


class DayMeta(Base):
    """Per-group generation bookkeeping."""

    __tablename__ = "day_meta"

    group_key = Column(String(10), primary_key=True)
    last_generated_at = Column(DateTime, nullable=False)
    item_count = Column(Integer, nullable=False, default=0)
