"""Wikipedia "on this day" sources.

``HistoryAdapter`` picks the single richest event for a daily feed;
``OnThisDayAdapter`` keeps a whole list of events, births or deaths for a
recurring month-day group.
"""

import asyncio
from typing import Any, Dict, List, Optional, Set
from urllib.parse import quote

from services.generator.app.context import GenerationContext
from services.generator.app.http_client import ProviderError, fetch_json
from services.generator.app.keys import month_day
from services.generator.app.sources.base import SourceAdapter
from shared.app_logging.logger import get_logger
from shared.schemas.feed import Category, FeedEntry, Link, normalize_title

logger = get_logger("generator.history")

TITLE_TEXT_LIMIT = 100

ON_THIS_DAY_KINDS = {
    Category.EVENT: "events",
    Category.BIRTH: "births",
    Category.DEATH: "deaths",
}


def derived_title(record: Dict[str, Any]) -> str:
    text = (record.get("text") or "Historical Event").strip()
    return f"{record.get('year')}: {text[:TITLE_TEXT_LIMIT]}"


def page_title(page: Dict[str, Any]) -> str:
    return (page.get("titles") or {}).get("normalized") or (page.get("title") or "").replace("_", " ")


def page_url(page: Dict[str, Any]) -> Optional[str]:
    url = ((page.get("content_urls") or {}).get("desktop") or {}).get("page")
    if url:
        return url
    if page.get("title"):
        return f"https://en.wikipedia.org/wiki/{quote(page['title'])}"
    return None


def page_thumbnail(page: Dict[str, Any]) -> Optional[str]:
    return (page.get("thumbnail") or {}).get("source")


def _year(record: Dict[str, Any]) -> Optional[str]:
    year = record.get("year")
    return str(year) if year is not None else None


def by_richness(records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Records with more linked pages first; ties keep provider order."""
    return sorted(records, key=lambda r: len(r.get("pages") or []), reverse=True)


async def fetch_on_this_day(ctx: GenerationContext, kind: str) -> List[Dict[str, Any]]:
    mm, dd = month_day(ctx.group_key)
    data = await fetch_json(ctx.client, f"{ctx.settings.wikipedia_base_url}/feed/onthisday/{kind}/{mm}/{dd}")
    if not isinstance(data, dict):
        raise ProviderError("on-this-day payload is not an object")
    records = data.get(kind) or []
    if not isinstance(records, list):
        raise ProviderError(f"on-this-day '{kind}' is not a list")
    return [r for r in records if isinstance(r, dict) and r.get("text")]


class HistoryAdapter(SourceAdapter):
    name = "history"
    category = Category.HISTORY

    async def fetch(self, ctx: GenerationContext) -> List[FeedEntry]:
        records = by_richness(await fetch_on_this_day(ctx, "events"))
        for record in records:
            title = derived_title(record)
            if ctx.index.has_title(title):
                continue
            pages = record.get("pages") or []
            page = pages[0] if pages else {}
            wiki_url = page_url(page) if page else None
            return [
                FeedEntry(
                    group_key=ctx.group_key,
                    category=self.category,
                    title=title,
                    description=record.get("text") or "",
                    summary=page.get("extract") or record.get("text") or "",
                    image_url=page_thumbnail(page),
                    links=[Link(label="Read on Wikipedia", url=wiki_url)] if wiki_url else [],
                    metadata={"year": record.get("year"), "wikiUrl": wiki_url},
                )
            ]
        return []


class OnThisDayAdapter(SourceAdapter):
    """All not-yet-stored events, births or deaths for a month-day.

    People records are enriched with a page extract, fetched concurrently in
    small batches.
    """

    def __init__(self, category: Category):
        if category not in ON_THIS_DAY_KINDS:
            raise ValueError(f"No on-this-day list for {category}")
        self.category = category
        self.kind = ON_THIS_DAY_KINDS[category]
        self.name = self.kind

    async def fetch(self, ctx: GenerationContext) -> List[FeedEntry]:
        limit = ctx.settings.history_max_per_kind
        taken: Set[str] = set()
        taken_years: Set[str] = set()
        chosen = []
        for record in by_richness(await fetch_on_this_day(ctx, self.kind)):
            if len(chosen) >= limit:
                break
            title = derived_title(record)
            key = normalize_title(title)
            year = _year(record)
            if ctx.index.has_title(title) or key in taken:
                continue
            # one record per (category, year) and group
            if year is not None and (year in taken_years or ctx.index.has_year(self.category, year)):
                continue
            taken.add(key)
            if year is not None:
                taken_years.add(year)
            chosen.append(record)

        if self.category is not Category.EVENT:
            await self._enrich_extracts(ctx, chosen)

        return [self._entry(ctx, record) for record in chosen]

    async def _enrich_extracts(self, ctx: GenerationContext, records: List[Dict[str, Any]]) -> None:
        missing = [r for r in records if r.get("pages") and not r["pages"][0].get("extract")]
        size = max(1, ctx.settings.extract_batch_size)
        for start in range(0, len(missing), size):
            batch = missing[start:start + size]
            results = await asyncio.gather(
                *(self._summary(ctx, r["pages"][0]) for r in batch), return_exceptions=True
            )
            for record, result in zip(batch, results):
                if isinstance(result, Exception):
                    logger.debug(f"No extract for {page_title(record['pages'][0])}: {result}")
                    continue
                page = record["pages"][0]
                page["extract"] = result.get("extract") or page.get("extract")
                if not page.get("thumbnail") and result.get("thumbnail"):
                    page["thumbnail"] = result["thumbnail"]

    async def _summary(self, ctx: GenerationContext, page: Dict[str, Any]) -> Dict[str, Any]:
        title = page.get("title") or page_title(page)
        data = await fetch_json(
            ctx.client, f"{ctx.settings.wikipedia_base_url}/page/summary/{quote(title, safe='')}"
        )
        if not isinstance(data, dict):
            raise ProviderError("page summary is not an object")
        return data

    def _entry(self, ctx: GenerationContext, record: Dict[str, Any]) -> FeedEntry:
        pages = record.get("pages") or []
        first = pages[0] if pages else {}
        page_refs = [
            {"title": page_title(p), "thumbnail": page_thumbnail(p), "url": page_url(p)}
            for p in pages
        ]
        return FeedEntry(
            group_key=ctx.group_key,
            category=self.category,
            title=derived_title(record),
            description=record["text"],
            summary=first.get("extract") or record["text"],
            image_url=page_thumbnail(first),
            links=[Link(label=ref["title"], url=ref["url"]) for ref in page_refs if ref["url"]],
            metadata={"year": record.get("year"), "pages": page_refs},
            event_year=_year(record),
        )
