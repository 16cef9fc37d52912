from sqlalchemy import (JSON, Column, DateTime, Integer, String, Text,
                        UniqueConstraint, func)

from shared.database.base import Base


class FeedItem(Base):
    """One generated entry of a day group.

    On-this-day records (event / birth / death) live in the same table with
    ``event_year`` set.
    """

    __tablename__ = "feed_items"
    __table_args__ = (
        UniqueConstraint("group_key", "title_key", name="uq_feed_items_group_title"),
        UniqueConstraint(
            "group_key", "event_year", "category", name="uq_feed_items_group_year_category"
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    group_key = Column(String(10), nullable=False, index=True)
    category = Column(String(16), nullable=False, index=True)
    title = Column(Text, nullable=False)
    title_key = Column(Text, nullable=False)
    description = Column(Text, nullable=False, default="")
    summary = Column(Text, nullable=False, default="")
    image_url = Column(Text, nullable=True)
    links = Column(JSON, nullable=False, default=list)
    meta = Column("metadata", JSON, nullable=False, default=dict)
    provider_id = Column(String(64), nullable=True, index=True)
    event_year = Column(String(8), nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
