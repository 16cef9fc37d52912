from datetime import datetime
from typing import Dict, List, Optional

from pydantic import AliasChoices, BaseModel, Field

from shared.schemas.feed import FeedItemOut


class FeedOut(BaseModel):
    date: Optional[str] = Field(None, description="Group key, when a single day was requested")
    items: List[FeedItemOut]
    count: int


class EventsOut(BaseModel):
    date: str = Field(..., description="MM-DD group key")
    generated_at: Optional[datetime] = Field(
        None, validation_alias=AliasChoices("generated_at", "generatedAt"), serialization_alias="generatedAt"
    )
    count: int
    events: List[FeedItemOut]
    births: List[FeedItemOut]
    deaths: List[FeedItemOut]


class GenerateRequest(BaseModel):
    date: Optional[str] = Field(None, description="Group key to generate; defaults to today")


class CycleOut(BaseModel):
    date: str
    count: int
    categories: Dict[str, int]
    failed: List[str]


class GenerateOut(BaseModel):
    ok: bool = True
    date: str = Field(..., description="First group key generated")
    count: int = Field(..., description="Items persisted across all cycles")
    results: List[CycleOut]


class DedupOut(BaseModel):
    deleted: int
    remaining: int
