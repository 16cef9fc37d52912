#services/feed_api/app/main.py
import asyncio
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import Dict, Optional

from fastapi import Body, Depends, FastAPI, HTTPException, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from services.feed_api.app.schema import (CycleOut, DedupOut, EventsOut,
                                          FeedOut, GenerateOut,
                                          GenerateRequest)
from services.generator.app import crud
from services.generator.app.keys import (InvalidGroupKey, KeyKind,
                                         default_keys, validate_key)
from services.generator.app.orchestrator import (GenerationOrchestrator,
                                                 PersistenceError)
from services.generator.app.profiles import get_profile
from shared.app_logging.logger import setup_logging
from shared.config.settings import get_settings
from shared.database.session import SessionLocal, init_db
from shared.schemas.feed import ON_THIS_DAY_CATEGORIES, Category, FeedItemOut
from shared.utils.health import create_feed_api_health_checker

# Setup logging
logger = setup_logging("feed_api", extra_loggers=("generator", "database", "shared"))

# Get configuration
settings = get_settings()
profile = get_profile(settings.pipeline.profile)

# Create health checker
health_checker = create_feed_api_health_checker()

# one cycle per group key at a time; replace-mode cycles must not interleave
_cycle_locks: Dict[str, asyncio.Lock] = {}
_lock_users: Dict[str, int] = {}


@asynccontextmanager
async def cycle_lock(group_key: str):
    """Hold the group's lock; the entry is dropped once nobody holds or awaits it."""
    lock = _cycle_locks.setdefault(group_key, asyncio.Lock())
    _lock_users[group_key] = _lock_users.get(group_key, 0) + 1
    try:
        async with lock:
            yield
    finally:
        _lock_users[group_key] -= 1
        if not _lock_users[group_key]:
            del _lock_users[group_key]
            del _cycle_locks[group_key]


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info(f"Daily Discovery Feed API ready (profile={profile.name})")
    yield


app = FastAPI(title="Daily Discovery Feed API", lifespan=lifespan)


def get_session_factory():
    return SessionLocal


def get_db(session_factory=Depends(get_session_factory)):
    """Get database session with proper error handling."""
    db = session_factory()
    try:
        yield db
    except Exception as e:
        logger.error(f"Database session error: {e}")
        db.rollback()
        raise
    finally:
        db.close()


def get_orchestrator(session_factory=Depends(get_session_factory)) -> GenerationOrchestrator:
    return GenerationOrchestrator(profile, session_factory=session_factory, settings=settings)


def _require_key(kind: KeyKind, value: str) -> str:
    try:
        return validate_key(kind, value)
    except InvalidGroupKey as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.get("/api/health")
def health():
    """Comprehensive health check endpoint."""
    return health_checker.run_all_checks()


@app.get("/api/health/live")
def liveness_check():
    """Liveness check endpoint."""
    return {"status": "alive", "service": "feed_api"}


@app.get("/api/health/ready")
def readiness_check():
    """Readiness check endpoint."""
    health_data = health_checker.run_all_checks()
    critical_checks = [check for check in health_data["checks"] if check["name"] == "database"]
    all_critical_healthy = all(check["status"] == "healthy" for check in critical_checks)

    return {
        "status": "ready" if all_critical_healthy else "not_ready",
        "service": "feed_api",
        "critical_dependencies": {
            check["name"]: check["status"] for check in critical_checks
        },
    }


@app.get("/api/metrics")
def metrics():
    """Prometheus metrics endpoint."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.get("/api/feed", response_model=FeedOut)
def get_feed(db=Depends(get_db)):
    """Every stored item, grouped by day in creation order."""
    try:
        items = crud.list_items(db)
    except Exception as e:
        logger.exception("Unexpected error in /api/feed: %s", e)
        raise HTTPException(500, "Internal Server Error")
    return FeedOut(items=[FeedItemOut.model_validate(i) for i in items], count=len(items))


@app.get("/api/feed/{date}", response_model=FeedOut)
def get_feed_for_date(date: str, db=Depends(get_db)):
    _require_key(KeyKind.DATE, date)
    try:
        items = crud.list_items(db, group_key=date)
    except Exception as e:
        logger.exception("Unexpected error in /api/feed/%s: %s", date, e)
        raise HTTPException(500, "Internal Server Error")
    return FeedOut(date=date, items=[FeedItemOut.model_validate(i) for i in items], count=len(items))


@app.get("/api/events/{date}", response_model=EventsOut)
def get_events(date: str, db=Depends(get_db)):
    """On-this-day records for a month-day, split by kind."""
    _require_key(KeyKind.MONTH_DAY, date)
    try:
        items = crud.list_items(db, group_key=date, categories=[c.value for c in ON_THIS_DAY_CATEGORIES])
        meta = crud.get_group_meta(db, date)
    except Exception as e:
        logger.exception("Unexpected error in /api/events/%s: %s", date, e)
        raise HTTPException(500, "Internal Server Error")

    by_kind = defaultdict(list)
    for item in items:
        by_kind[item.category].append(FeedItemOut.model_validate(item))
    return EventsOut(
        date=date,
        generated_at=meta.last_generated_at if meta else None,
        count=len(items),
        events=by_kind[Category.EVENT.value],
        births=by_kind[Category.BIRTH.value],
        deaths=by_kind[Category.DEATH.value],
    )


@app.get("/api/dates")
def get_dates(db=Depends(get_db)):
    try:
        return crud.list_group_keys(db, profile.key_kind)
    except Exception as e:
        logger.exception("Unexpected error in /api/dates: %s", e)
        raise HTTPException(500, "Internal Server Error")


@app.post("/api/generate", response_model=GenerateOut)
async def generate(
    payload: Optional[GenerateRequest] = Body(None),
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
):
    """Run generation synchronously for the requested day, or today by default."""
    if payload is not None and payload.date:
        keys = [_require_key(profile.key_kind, payload.date)]
    else:
        keys = default_keys(profile.key_kind, settings.service.timezone, profile.include_tomorrow)

    results = []
    for key in keys:
        async with cycle_lock(key):
            try:
                result = await orchestrator.run(key)
            except PersistenceError as e:
                logger.error(f"Generation for {key} failed: {e}")
                raise HTTPException(500, "Internal Server Error")
        results.append(CycleOut(**result.as_dict()))

    return GenerateOut(date=keys[0], count=sum(r.count for r in results), results=results)


@app.post("/api/dedup", response_model=DedupOut)
def dedup(db=Depends(get_db)):
    """Maintenance: drop later duplicates across the whole table."""
    try:
        return DedupOut(**crud.dedup_sweep(db))
    except Exception as e:
        logger.exception("Unexpected error in /api/dedup: %s", e)
        raise HTTPException(500, "Internal Server Error")
