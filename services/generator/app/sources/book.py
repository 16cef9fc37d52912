import random
from typing import Any, Dict, List, Optional, Set
from urllib.parse import quote_plus

from services.generator.app.context import GenerationContext
from services.generator.app.http_client import ProviderError, fetch_json
from services.generator.app.sources.base import SourceAdapter
from services.generator.app.sources.catalog import BOOK_CATALOG
from shared.app_logging.logger import get_logger
from shared.schemas.feed import Category, FeedEntry, Link, normalize_title

logger = get_logger("generator.book")

GOOGLE_BOOKS_URL = "https://www.googleapis.com/books/v1/volumes"


class BookAdapter(SourceAdapter):
    """Newest titles for a subject from Google Books, topped up from the catalog."""

    name = "books"
    category = Category.BOOK

    def __init__(self, catalog: Optional[List[Dict[str, Any]]] = None, rng: Optional[random.Random] = None):
        self.catalog = catalog if catalog is not None else BOOK_CATALOG
        self.rng = rng or random.Random()

    async def fetch(self, ctx: GenerationContext) -> List[FeedEntry]:
        wanted = max(0, ctx.settings.books_per_cycle)
        taken: Set[str] = set()
        entries: List[FeedEntry] = []

        try:
            volumes = await self._search(ctx)
        except Exception as e:
            logger.warning(f"Book search failed, using catalog only: {e}")
            volumes = []

        for volume in volumes:
            if len(entries) >= wanted:
                break
            entry = self._from_volume(ctx, volume)
            if entry is None or ctx.index.has_title(entry.title) or entry.title_key in taken:
                continue
            taken.add(entry.title_key)
            entries.append(entry)

        if len(entries) < wanted:
            fill = self._from_catalog(ctx, taken, wanted - len(entries))
            logger.info(f"Filled {len(fill)} book slot(s) from the curated catalog")
            entries.extend(fill)

        return entries

    async def _search(self, ctx: GenerationContext) -> List[Dict[str, Any]]:
        data = await fetch_json(
            ctx.client,
            GOOGLE_BOOKS_URL,
            params={
                "q": f"subject:{ctx.settings.book_subject}",
                "orderBy": "newest",
                "maxResults": 10,
            },
        )
        if not isinstance(data, dict):
            raise ProviderError("Google Books payload is not an object")
        items = data.get("items") or []
        if not isinstance(items, list):
            raise ProviderError("Google Books 'items' is not a list")
        return [item for item in items if isinstance(item, dict)]

    def _from_volume(self, ctx: GenerationContext, volume: Dict[str, Any]) -> Optional[FeedEntry]:
        info = volume.get("volumeInfo") or {}
        title = (info.get("title") or "").strip()
        if not title:
            return None
        authors = info.get("authors") or ["Unknown"]
        body = info.get("description") or info.get("subtitle") or ""
        links = []
        if info.get("previewLink"):
            links.append(Link(label="Preview on Google Books", url=info["previewLink"]))
        if info.get("infoLink"):
            links.append(Link(label="More Info", url=info["infoLink"]))
        return FeedEntry(
            group_key=ctx.group_key,
            category=self.category,
            title=title,
            description=body,
            summary=body,
            image_url=(info.get("imageLinks") or {}).get("thumbnail"),
            links=links,
            metadata={"author": authors[0], "quotes": [], "source": "Google Books"},
        )

    def _from_catalog(self, ctx: GenerationContext, taken: Set[str], slots: int) -> List[FeedEntry]:
        pool = list(self.catalog)
        self.rng.shuffle(pool)
        entries = []
        for book in pool:
            if len(entries) >= slots:
                break
            key = normalize_title(book["title"])
            if ctx.index.has_title(book["title"]) or key in taken:
                continue
            taken.add(key)
            entries.append(
                FeedEntry(
                    group_key=ctx.group_key,
                    category=self.category,
                    title=book["title"],
                    description=book["description"],
                    summary=book["description"],
                    links=[
                        Link(
                            label="Find on Google Books",
                            url=f"https://www.google.com/search?tbm=bks&q={quote_plus(book['title'])}",
                        )
                    ],
                    metadata={
                        "author": book["author"],
                        "quotes": list(book.get("quotes", [])),
                        "source": "Curated catalog",
                    },
                )
            )
        return entries
