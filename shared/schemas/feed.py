from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class Category(str, Enum):
    VIDEO = "video"
    BOOK = "book"
    TREND = "trend"
    NEWS = "news"
    HISTORY = "history"
    EVENT = "event"
    BIRTH = "birth"
    DEATH = "death"


ON_THIS_DAY_CATEGORIES = (Category.EVENT, Category.BIRTH, Category.DEATH)


def normalize_title(title: str) -> str:
    """Uniqueness key for a title: lowercased and trimmed, nothing fuzzier."""
    return (title or "").strip().lower()


class Link(BaseModel):
    label: str = Field(..., description="Link text shown on the card")
    url: str = Field(..., description="Target URL")


class FeedEntry(BaseModel):
    """A candidate item produced by a source adapter."""

    group_key: str = Field(..., description="Day bucket (YYYY-MM-DD or MM-DD)")
    category: Category = Field(..., description="Content kind")
    title: str = Field(..., min_length=1, description="Primary human-readable identifier")
    description: str = Field("", description="Free-text body")
    summary: str = Field("", description="Short free-text body")
    image_url: Optional[str] = Field(None, description="Optional illustration")
    links: List[Link] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    provider_id: Optional[str] = Field(None, description="Provider content ID, e.g. a video ID")
    event_year: Optional[str] = Field(None, description="Year of an on-this-day record")

    @property
    def title_key(self) -> str:
        return normalize_title(self.title)

    def to_row(self) -> Dict[str, Any]:
        return {
            "group_key": self.group_key,
            "category": self.category.value,
            "title": self.title,
            "title_key": self.title_key,
            "description": self.description,
            "summary": self.summary,
            "image_url": self.image_url,
            "links": [link.model_dump() for link in self.links],
            "meta": self.metadata,
            "provider_id": self.provider_id,
            "event_year": self.event_year,
        }


class FeedItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int
    date: str = Field(..., validation_alias=AliasChoices("group_key", "date"))
    type: Category = Field(..., validation_alias=AliasChoices("category", "type"))
    title: str
    description: str
    summary: str
    image_url: Optional[str] = Field(
        None, validation_alias=AliasChoices("image_url", "imageUrl"), serialization_alias="imageUrl"
    )
    links: List[Link]
    # ORM rows expose the column as ``meta``; ``metadata`` is the declarative MetaData
    metadata: Dict[str, Any] = Field(default_factory=dict, validation_alias=AliasChoices("meta", "metadata"))
    year: Optional[str] = Field(None, validation_alias=AliasChoices("event_year", "year"))
    created_at: datetime = Field(
        ..., validation_alias=AliasChoices("created_at", "createdAt"), serialization_alias="createdAt"
    )
