from typing import Any, Dict, List, Optional

from bs4 import BeautifulSoup

from services.generator.app.context import GenerationContext
from services.generator.app.http_client import ProviderError, fetch_json
from services.generator.app.sources.base import SourceAdapter
from shared.app_logging.logger import get_logger
from shared.schemas.feed import Category, FeedEntry, Link

logger = get_logger("generator.news")

HN_API_URL = "https://hacker-news.firebaseio.com/v0"


def discussion_url(story_id) -> str:
    return f"https://news.ycombinator.com/item?id={story_id}"


def strip_html(text: str) -> str:
    return BeautifulSoup(text, "html.parser").get_text(separator=" ", strip=True)


def matches_keywords(title: str, keywords: List[str]) -> bool:
    lowered = title.lower()
    return any(kw.lower() in lowered for kw in keywords)


class NewsAdapter(SourceAdapter):
    """First top Hacker News story matching the keyword list that is not yet known."""

    name = "ai_trend"
    category = Category.NEWS

    def __init__(self, api_url: str = HN_API_URL):
        self.api_url = api_url

    async def fetch(self, ctx: GenerationContext) -> List[FeedEntry]:
        top_ids = await fetch_json(ctx.client, f"{self.api_url}/topstories.json")
        if not isinstance(top_ids, list):
            raise ProviderError("topstories payload is not a list")

        keywords = ctx.settings.news_keywords
        for story_id in top_ids[: ctx.settings.news_lookahead]:
            story = await self._story(ctx, story_id)
            if not story or not story.get("title"):
                continue
            title = story["title"]
            thread = discussion_url(story.get("id", story_id))
            if not matches_keywords(title, keywords):
                continue
            if ctx.index.has_title(title) or ctx.index.has_url(thread):
                logger.debug(f"Story {story_id} already featured")
                continue
            return [self._entry(ctx, story, thread)]

        logger.info(f"No matching story in the top {ctx.settings.news_lookahead}")
        return []

    async def _story(self, ctx: GenerationContext, story_id) -> Optional[Dict[str, Any]]:
        try:
            story = await fetch_json(ctx.client, f"{self.api_url}/item/{story_id}.json")
        except Exception as e:
            logger.debug(f"Skipping story {story_id}: {e}")
            return None
        return story if isinstance(story, dict) else None

    def _entry(self, ctx: GenerationContext, story: Dict[str, Any], thread: str) -> FeedEntry:
        score = story.get("score") or 0
        comments = story.get("descendants") or 0
        if story.get("text"):
            description = strip_html(story["text"])[:500]
        else:
            description = f"Trending story from Hacker News with {score} points"
        links = []
        if story.get("url"):
            links.append(Link(label="Read Article", url=story["url"]))
        links.append(Link(label="HN Discussion", url=thread))
        return FeedEntry(
            group_key=ctx.group_key,
            category=self.category,
            title=story["title"],
            description=description,
            summary=f"HN Score: {score} | {comments} comments",
            links=links,
            metadata={
                "source": "Hacker News",
                "storyId": story.get("id"),
                "score": score,
                "comments": comments,
            },
        )
