from dataclasses import dataclass, field
from typing import Iterable, Optional, Set, Tuple

import httpx

from services.generator.app.keys import KeyKind
from shared.config.settings import PipelineSettings
from shared.schemas.feed import FeedEntry, normalize_title


def _category_value(category) -> str:
    return getattr(category, "value", category)


@dataclass
class UniquenessIndex:
    """Keys of already-stored (or already-accepted) items for one cycle.

    Built fresh per cycle and thrown away afterwards; adapters run
    sequentially, so whatever one adapter had accepted is visible to the next.
    """

    titles: Set[str] = field(default_factory=set)
    provider_ids: Set[str] = field(default_factory=set)
    urls: Set[str] = field(default_factory=set)
    # (category, event_year) of on-this-day records
    years: Set[Tuple[str, str]] = field(default_factory=set)

    @classmethod
    def from_rows(cls, rows: Iterable) -> "UniquenessIndex":
        """Build from ``(title, provider_id, links, category, event_year)`` tuples."""
        index = cls()
        for title, provider_id, links, category, event_year in rows:
            index._add(title, provider_id, [link.get("url") for link in links or []], category, event_year)
        return index

    def has_title(self, title: str) -> bool:
        return normalize_title(title) in self.titles

    def has_provider_id(self, provider_id: Optional[str]) -> bool:
        return bool(provider_id) and provider_id in self.provider_ids

    def has_url(self, url: Optional[str]) -> bool:
        return bool(url) and url in self.urls

    def has_year(self, category, event_year: Optional[str]) -> bool:
        return event_year is not None and (_category_value(category), str(event_year)) in self.years

    def admits(self, entry: FeedEntry) -> bool:
        return not (
            self.has_title(entry.title)
            or self.has_provider_id(entry.provider_id)
            or self.has_year(entry.category, entry.event_year)
        )

    def record(self, entry: FeedEntry) -> None:
        self._add(entry.title, entry.provider_id, [link.url for link in entry.links], entry.category, entry.event_year)

    def _add(self, title, provider_id, urls, category=None, event_year=None) -> None:
        if title:
            self.titles.add(normalize_title(title))
        if provider_id:
            self.provider_ids.add(provider_id)
        self.urls.update(u for u in urls if u)
        if category is not None and event_year is not None:
            self.years.add((_category_value(category), str(event_year)))

    def __len__(self) -> int:
        return len(self.titles)


@dataclass
class GenerationContext:
    group_key: str
    key_kind: KeyKind
    index: UniquenessIndex
    client: httpx.AsyncClient
    settings: PipelineSettings
