from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional, Sequence

from services.generator.app.context import GenerationContext
from services.generator.app.metrics import ADAPTER_FAILURES
from shared.app_logging.logger import get_logger
from shared.schemas.feed import Category, FeedEntry

logger = get_logger("generator.sources")


class NoStrategySucceeded(Exception):
    """Every strategy in a fallback chain failed or came back empty."""

    def __init__(self, label: str, errors: List[str]):
        self.errors = errors
        super().__init__(f"{label}: all strategies failed ({'; '.join(errors) or 'no results'})")


async def first_success(
    strategies: Sequence[Callable[..., Awaitable[Any]]],
    *args,
    label: str = "fallback",
    **kwargs,
) -> Any:
    """Try ``strategies`` in order; the first non-empty result wins."""
    errors = []
    for strategy in strategies:
        name = getattr(strategy, "name", None) or getattr(strategy, "__name__", repr(strategy))
        try:
            result = await strategy(*args, **kwargs)
        except Exception as e:
            logger.info(f"{label}: {name} failed: {e}")
            errors.append(f"{name}: {e}")
            continue
        if result:
            return result
        errors.append(f"{name}: empty")
    raise NoStrategySucceeded(label, errors)


@dataclass
class AdapterResult:
    adapter: str
    entries: List[FeedEntry] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None


class SourceAdapter(ABC):
    """Fetches candidate items of one category from one provider."""

    name: str = "source"
    category: Category

    @abstractmethod
    async def fetch(self, ctx: GenerationContext) -> List[FeedEntry]:
        """Return zero or more candidates not yet known to ``ctx.index``."""

    async def run(self, ctx: GenerationContext) -> AdapterResult:
        """Adapter boundary: any failure becomes an empty result."""
        try:
            entries = await self.fetch(ctx)
        except Exception as e:
            logger.warning(f"✗ {self.name} failed for {ctx.group_key}: {e}", exc_info=True)
            ADAPTER_FAILURES.labels(adapter=self.name).inc()
            return AdapterResult(self.name, error=str(e) or type(e).__name__)
        logger.info(f"✓ {self.name}: {len(entries)} candidate(s) for {ctx.group_key}")
        return AdapterResult(self.name, list(entries))
