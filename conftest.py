import os

# must be set before shared.config.settings is first imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["MAX_RETRIES"] = "0"
os.environ["RETRY_DELAY"] = "0"
os.environ["FEED_PROFILE"] = "daily"
os.environ.setdefault("LOG_LEVEL", "WARNING")

import httpx
import pytest
from sqlalchemy.orm import sessionmaker

from services.generator.app.context import GenerationContext, UniquenessIndex
from services.generator.app.keys import KeyKind
from shared.config.settings import PipelineSettings
from shared.database.session import build_engine, init_db


@pytest.fixture
def session_factory():
    engine = build_engine("sqlite://")
    init_db(bind=engine)
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    yield factory
    engine.dispose()


@pytest.fixture
def pipeline_settings():
    return PipelineSettings()


@pytest.fixture
def make_ctx(pipeline_settings):
    """Build a GenerationContext whose client answers through ``handler``."""
    def _make(handler, group_key="2024-03-01", index=None, key_kind=KeyKind.DATE, **overrides):
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        settings = pipeline_settings.model_copy(update=overrides) if overrides else pipeline_settings
        return GenerationContext(
            group_key=group_key,
            key_kind=key_kind,
            index=index if index is not None else UniquenessIndex(),
            client=client,
            settings=settings,
        )

    return _make
