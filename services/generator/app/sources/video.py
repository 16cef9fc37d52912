import re
from dataclasses import dataclass
from typing import List, Optional, Sequence, Set, Tuple

import httpx

from services.generator.app.context import GenerationContext
from services.generator.app.http_client import ProviderError, fetch_json, fetch_text
from services.generator.app.keys import day_ordinal
from services.generator.app.sources.base import (NoStrategySucceeded,
                                                 SourceAdapter, first_success)
from shared.app_logging.logger import get_logger
from shared.schemas.feed import Category, FeedEntry, Link, normalize_title

logger = get_logger("generator.video")

VIDEO_ID_PATTERN = re.compile(r'"videoId":"([a-zA-Z0-9_-]{11})"')
BROWSER_USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"

# enrichment lookups per query before giving up on finding an unseen title
MAX_ENRICHED_CANDIDATES = 5


@dataclass
class VideoHit:
    video_id: str
    title: Optional[str] = None
    author: Optional[str] = None


class YouTubeSearchBackend:
    """Scrapes video IDs out of the public results page."""

    name = "youtube"

    def __init__(self, base_url: str):
        self.base_url = base_url

    async def __call__(self, client: httpx.AsyncClient, query: str) -> List[VideoHit]:
        html = await fetch_text(
            client,
            f"{self.base_url}/results",
            params={"search_query": query},
            headers={"User-Agent": BROWSER_USER_AGENT},
        )
        ids = list(dict.fromkeys(VIDEO_ID_PATTERN.findall(html)))
        return [VideoHit(video_id) for video_id in ids]


class InvidiousSearchBackend:
    """Invidious JSON search API; already carries title and author."""

    name = "invidious"

    def __init__(self, base_url: str):
        self.base_url = base_url

    async def __call__(self, client: httpx.AsyncClient, query: str) -> List[VideoHit]:
        data = await fetch_json(
            client, f"{self.base_url}/api/v1/search", params={"q": query, "type": "video"}
        )
        if not isinstance(data, list):
            raise ProviderError("Invidious search did not return a list")
        return [
            VideoHit(row["videoId"], row.get("title"), row.get("author"))
            for row in data
            if isinstance(row, dict) and row.get("videoId")
        ]


def watch_url(video_id: str) -> str:
    return f"https://www.youtube.com/watch?v={video_id}"


class VideoAdapter(SourceAdapter):
    """One top video per rotating query.

    A video ID that is already stored is never re-emitted: when every hit of a
    query is known, that query contributes nothing this cycle.
    """

    name = "videos"
    category = Category.VIDEO

    def __init__(self, backends: Optional[Sequence] = None):
        self._backends = backends

    def backends(self, ctx: GenerationContext) -> Sequence:
        if self._backends is not None:
            return self._backends
        return [
            YouTubeSearchBackend(ctx.settings.youtube_base_url),
            InvidiousSearchBackend(ctx.settings.invidious_base_url),
        ]

    def queries_for(self, ctx: GenerationContext) -> List[str]:
        queries = ctx.settings.video_queries
        if not queries:
            return []
        start = day_ordinal(ctx.group_key) % len(queries)
        rotated = queries[start:] + queries[:start]
        return rotated[: max(0, ctx.settings.videos_per_cycle)]

    async def fetch(self, ctx: GenerationContext) -> List[FeedEntry]:
        entries: List[FeedEntry] = []
        taken_ids: Set[str] = set()
        taken_titles: Set[str] = set()

        for query in self.queries_for(ctx):
            try:
                hits = await first_success(
                    self.backends(ctx), ctx.client, query, label=f"video search '{query}'"
                )
            except NoStrategySucceeded as e:
                logger.warning(str(e))
                continue

            entry = await self._pick(ctx, query, hits, taken_ids, taken_titles)
            if entry is None:
                logger.info(f"No unseen video for '{query}'; skipping this cycle")
                continue
            taken_ids.add(entry.provider_id)
            taken_titles.add(entry.title_key)
            entries.append(entry)

        return entries

    async def _pick(
        self,
        ctx: GenerationContext,
        query: str,
        hits: List[VideoHit],
        taken_ids: Set[str],
        taken_titles: Set[str],
    ) -> Optional[FeedEntry]:
        attempts = 0
        for hit in hits:
            if ctx.index.has_provider_id(hit.video_id) or hit.video_id in taken_ids:
                continue
            attempts += 1
            if attempts > MAX_ENRICHED_CANDIDATES:
                break

            title, channel = await self._enrich(ctx, hit, query)
            if ctx.index.has_title(title) or normalize_title(title) in taken_titles:
                logger.debug(f"Video {hit.video_id} title already known: {title}")
                continue
            return self._entry(ctx, query, hit.video_id, title, channel)
        return None

    async def _enrich(self, ctx: GenerationContext, hit: VideoHit, query: str) -> Tuple[str, str]:
        base_url = ctx.settings.youtube_base_url

        async def from_search(client, hit, query):
            return (hit.title, hit.author or "") if hit.title else None

        async def from_oembed(client, hit, query):
            data = await fetch_json(
                client, f"{base_url}/oembed", params={"url": watch_url(hit.video_id), "format": "json"}
            )
            if not isinstance(data, dict):
                raise ProviderError("oEmbed payload is not an object")
            return (data.get("title") or query, data.get("author_name") or "")

        async def placeholder(client, hit, query):
            return (query, "")

        return await first_success(
            [from_search, from_oembed, placeholder],
            ctx.client,
            hit,
            query,
            label=f"video metadata {hit.video_id}",
        )

    def _entry(self, ctx: GenerationContext, query: str, video_id: str, title: str, channel: str) -> FeedEntry:
        return FeedEntry(
            group_key=ctx.group_key,
            category=self.category,
            title=title,
            description=f"By {channel}" if channel else "",
            summary=f'Top result for "{query}" on YouTube',
            image_url=f"https://img.youtube.com/vi/{video_id}/hqdefault.jpg",
            links=[Link(label="Watch on YouTube", url=watch_url(video_id))],
            metadata={"videoId": video_id, "channelName": channel, "query": query},
            provider_id=video_id,
        )
