from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from shared.app_logging.logger import get_logger
from shared.config.settings import get_settings

from .base import Base
from .models.day_meta import DayMeta  # noqa: F401
from .models.feed_item import FeedItem  # noqa: F401

logger = get_logger("database")


def build_engine(url: str):
    """Create an engine for ``url``; SQLite gets a single shared connection."""
    if url.startswith("sqlite"):
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(
        url,
        pool_size=10,
        max_overflow=20,
        pool_pre_ping=True,
        pool_recycle=3600,
    )


settings = get_settings()
DATABASE_URL = settings.database.database_url

logger.info(f"▶︎ Connecting to database: {DATABASE_URL.split('@')[1] if '@' in DATABASE_URL else DATABASE_URL}")

engine = build_engine(DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


def init_db(bind=None):
    """Initialize database tables."""
    try:
        Base.metadata.create_all(bind=bind or engine)
        logger.info("✅ Database initialized successfully")
    except Exception as e:
        logger.error(f"❌ Failed to initialize database: {e}")
        raise
