"""Named pipeline configurations.

A profile fixes how group keys look, whether a cycle replaces or appends,
which adapters run, and which stored items the uniqueness index is built from.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, List

from services.generator.app.keys import KeyKind
from services.generator.app.sources.base import SourceAdapter
from services.generator.app.sources.book import BookAdapter
from services.generator.app.sources.history import HistoryAdapter, OnThisDayAdapter
from services.generator.app.sources.news import NewsAdapter
from services.generator.app.sources.trend import TrendAdapter
from services.generator.app.sources.video import VideoAdapter
from shared.schemas.feed import Category


class Mode(str, Enum):
    REPLACE = "replace"
    APPEND = "append"


class IndexScope(str, Enum):
    ALL = "all"
    ALL_EXCEPT_GROUP = "all_except_group"
    GROUP = "group"


@dataclass(frozen=True)
class PipelineProfile:
    name: str
    key_kind: KeyKind
    mode: Mode
    index_scope: IndexScope
    adapters: Callable[[], List[SourceAdapter]]
    upsert_on_year: bool = False
    include_tomorrow: bool = False


def feed_adapters() -> List[SourceAdapter]:
    return [VideoAdapter(), BookAdapter(), TrendAdapter(), NewsAdapter(), HistoryAdapter()]


def on_this_day_adapters() -> List[SourceAdapter]:
    return [OnThisDayAdapter(Category.EVENT), OnThisDayAdapter(Category.BIRTH), OnThisDayAdapter(Category.DEATH)]


PROFILES = {
    "daily": PipelineProfile(
        name="daily",
        key_kind=KeyKind.DATE,
        mode=Mode.REPLACE,
        index_scope=IndexScope.ALL_EXCEPT_GROUP,
        adapters=feed_adapters,
    ),
    "global": PipelineProfile(
        name="global",
        key_kind=KeyKind.DATE,
        mode=Mode.APPEND,
        index_scope=IndexScope.ALL,
        adapters=feed_adapters,
    ),
    "onthisday": PipelineProfile(
        name="onthisday",
        key_kind=KeyKind.MONTH_DAY,
        mode=Mode.APPEND,
        index_scope=IndexScope.GROUP,
        adapters=on_this_day_adapters,
        upsert_on_year=True,
        include_tomorrow=True,
    ),
}


def get_profile(name: str) -> PipelineProfile:
    try:
        return PROFILES[name]
    except KeyError:
        raise ValueError(f"Unknown pipeline profile: {name}") from None
