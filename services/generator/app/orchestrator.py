import asyncio
import uuid
from collections import Counter as Tally
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence

import httpx

from services.generator.app import crud
from services.generator.app.context import GenerationContext, UniquenessIndex
from services.generator.app.http_client import build_client
from services.generator.app.keys import validate_key
from services.generator.app.metrics import CYCLES, ITEMS_GENERATED
from services.generator.app.profiles import IndexScope, Mode, PipelineProfile
from services.generator.app.sources.base import SourceAdapter
from shared.app_logging.logger import (CorrelationContext, get_logger,
                                       log_error_with_context)
from shared.config.settings import Settings, get_settings
from shared.database.session import SessionLocal
from shared.schemas.feed import FeedEntry

logger = get_logger("generator.orchestrator")


class CycleState(str, Enum):
    IDLE = "idle"
    BUILDING_INDEX = "building_index"
    RUNNING_ADAPTERS = "running_adapters"
    PERSISTING = "persisting"
    DONE = "done"
    FAILED = "failed"


class PersistenceError(Exception):
    """Storage failed during a cycle; nothing from the cycle was written."""


@dataclass
class CycleResult:
    group_key: str
    count: int = 0
    categories: Dict[str, int] = field(default_factory=dict)
    failed: List[str] = field(default_factory=list)

    def as_dict(self) -> Dict:
        return {
            "date": self.group_key,
            "count": self.count,
            "categories": self.categories,
            "failed": self.failed,
        }


class GenerationOrchestrator:
    """Runs one profile's adapters for a group key and persists the accepted batch.

    Adapters run one after another against a single uniqueness index, so an
    item accepted from one source suppresses duplicates from the next. Adapter
    failures cost only that adapter's items; storage failures fail the cycle.
    Callers must not run two cycles for the same group key concurrently.
    Storage work runs in a worker thread.
    """

    def __init__(
        self,
        profile: PipelineProfile,
        session_factory: Optional[Callable] = None,
        adapters: Optional[Sequence[SourceAdapter]] = None,
        settings: Optional[Settings] = None,
        client_factory: Optional[Callable[[], httpx.AsyncClient]] = None,
    ):
        self.profile = profile
        self.session_factory = session_factory or SessionLocal
        self.settings = settings or get_settings()
        self.adapters = list(adapters) if adapters is not None else profile.adapters()
        self.client_factory = client_factory or (lambda: build_client(self.settings.service))
        self.state = CycleState.IDLE

    def _transition(self, state: CycleState, group_key: str) -> None:
        logger.debug(f"{group_key}: {self.state.value} -> {state.value}")
        self.state = state

    async def run(self, group_key: str) -> CycleResult:
        validate_key(self.profile.key_kind, group_key)

        with CorrelationContext(f"cycle-{group_key}-{uuid.uuid4().hex[:8]}"):
            logger.info(f"Generating {self.profile.name} feed for {group_key}...")
            try:
                self._transition(CycleState.BUILDING_INDEX, group_key)
                index = await asyncio.to_thread(self.build_index, group_key)

                self._transition(CycleState.RUNNING_ADAPTERS, group_key)
                result = CycleResult(group_key)
                accepted = await self._run_adapters(group_key, index, result)

                self._transition(CycleState.PERSISTING, group_key)
                written = await asyncio.to_thread(self._persist, group_key, accepted)
                result.count = len(written)
                result.categories = dict(Tally(entry.category.value for entry in written))
            except PersistenceError:
                self._transition(CycleState.FAILED, group_key)
                CYCLES.labels(outcome="failed").inc()
                raise

            self._transition(CycleState.DONE, group_key)
            CYCLES.labels(outcome="succeeded").inc()
            logger.info(f"Generated {result.count} items for {group_key}")
            return result

    def build_index(self, group_key: str) -> UniquenessIndex:
        scope = self.profile.index_scope
        try:
            rows = crud.fetch_index_rows(
                self.session_factory,
                only_group=group_key if scope is IndexScope.GROUP else None,
                exclude_group=group_key if scope is IndexScope.ALL_EXCEPT_GROUP else None,
            )
        except Exception as e:
            log_error_with_context(logger, e, {"group_key": group_key, "step": "build_index"})
            raise PersistenceError(f"Could not build uniqueness index for {group_key}") from e
        index = UniquenessIndex.from_rows(rows)
        logger.info(f"Uniqueness index for {group_key}: {len(index)} titles, {len(index.provider_ids)} provider IDs")
        return index

    async def _run_adapters(self, group_key: str, index: UniquenessIndex, result: CycleResult) -> List[FeedEntry]:
        accepted: List[FeedEntry] = []
        async with self.client_factory() as client:
            ctx = GenerationContext(
                group_key=group_key,
                key_kind=self.profile.key_kind,
                index=index,
                client=client,
                settings=self.settings.pipeline,
            )
            for adapter in self.adapters:
                outcome = await adapter.run(ctx)
                if outcome.failed:
                    result.failed.append(outcome.adapter)
                kept = self.accept(outcome.entries, ctx)
                accepted.extend(kept)
                logger.info(f"  {adapter.name}: {len(kept)} items")

        return accepted

    def accept(self, entries: Sequence[FeedEntry], ctx: GenerationContext) -> List[FeedEntry]:
        """Fold entries into the index, dropping any that collide with known keys."""
        kept = []
        for entry in entries:
            if entry.group_key != ctx.group_key:
                entry = entry.model_copy(update={"group_key": ctx.group_key})
            if not ctx.index.admits(entry):
                logger.debug(f"Rejected duplicate {entry.category.value}: {entry.title}")
                continue
            ctx.index.record(entry)
            kept.append(entry)
        return kept

    def _persist(self, group_key: str, entries: List[FeedEntry]) -> List[FeedEntry]:
        try:
            written = crud.persist_cycle(
                self.session_factory,
                group_key,
                entries,
                replace=self.profile.mode is Mode.REPLACE,
                upsert_on_year=self.profile.upsert_on_year,
            )
        except Exception as e:
            log_error_with_context(logger, e, {"group_key": group_key, "step": "persist"})
            raise PersistenceError(f"Could not persist feed for {group_key}") from e

        for entry in written:
            ITEMS_GENERATED.labels(category=entry.category.value).inc()
        return written
