from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from services.generator.app.keys import KeyKind
from shared.app_logging.logger import get_logger
from shared.database.models.day_meta import DayMeta
from shared.database.models.feed_item import FeedItem
from shared.schemas.feed import FeedEntry, normalize_title
from shared.utils.retry import retry

logger = get_logger("generator.crud")

_DIALECT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def _insert(db: Session, table):
    dialect = db.get_bind().dialect.name
    try:
        return _DIALECT_INSERTS[dialect](table)
    except KeyError:
        raise NotImplementedError(f"Upserts are not supported on {dialect}") from None


@retry(retryable_exceptions=(Exception,))
def fetch_index_rows(
    session_factory,
    only_group: Optional[str] = None,
    exclude_group: Optional[str] = None,
) -> List[tuple]:
    """(title, provider_id, links, category, event_year) for every stored item in scope.

    Opens its own session so a retry starts from a clean connection.
    """
    stmt = select(FeedItem.title, FeedItem.provider_id, FeedItem.links, FeedItem.category, FeedItem.event_year)
    if only_group is not None:
        stmt = stmt.where(FeedItem.group_key == only_group)
    if exclude_group is not None:
        stmt = stmt.where(FeedItem.group_key != exclude_group)
    with session_factory() as db:
        rows = db.execute(stmt).all()
    logger.debug(f"Loaded {len(rows)} index rows")
    return [tuple(row) for row in rows]


def delete_group(db: Session, group_key: str) -> int:
    result = db.execute(delete(FeedItem).where(FeedItem.group_key == group_key))
    logger.info(f"Deleted {result.rowcount} item(s) of {group_key}")
    return result.rowcount


def insert_batch(db: Session, entries: Sequence[FeedEntry], upsert_on_year: bool = False) -> List[FeedEntry]:
    """Write ``entries`` inside the caller's transaction; returns the entries actually written.

    Feed items skip rows clashing with ``(group_key, title_key)``. On-this-day
    records upsert on ``(group_key, event_year, category)`` so overlapping
    re-runs refresh instead of failing.
    """
    written: List[FeedEntry] = []
    seen_keys = set()
    for entry in entries:
        row = entry.to_row()
        stmt = _insert(db, FeedItem.__table__).values(**_columns(row))
        if upsert_on_year and entry.event_year is not None:
            conflict_key = (entry.group_key, entry.event_year, entry.category.value)
            if conflict_key in seen_keys:
                continue
            seen_keys.add(conflict_key)
            stmt = stmt.on_conflict_do_update(
                index_elements=["group_key", "event_year", "category"],
                set_={
                    "title": stmt.excluded.title,
                    "title_key": stmt.excluded.title_key,
                    "description": stmt.excluded.description,
                    "summary": stmt.excluded.summary,
                    "image_url": stmt.excluded.image_url,
                    "links": stmt.excluded.links,
                    "metadata": stmt.excluded["metadata"],
                },
            )
        else:
            stmt = stmt.on_conflict_do_nothing(index_elements=["group_key", "title_key"])
        if db.execute(stmt).rowcount > 0:
            written.append(entry)
    return written


def _columns(row: Dict) -> Dict:
    # the ORM attribute ``meta`` maps to the ``metadata`` column
    row = dict(row)
    row["metadata"] = row.pop("meta")
    return row


def upsert_group_meta(db: Session, group_key: str, generated_at: datetime, count: int) -> None:
    stmt = _insert(db, DayMeta.__table__).values(
        group_key=group_key, last_generated_at=generated_at, item_count=count
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["group_key"],
        set_={"last_generated_at": generated_at, "item_count": count},
    )
    db.execute(stmt)


def count_group(db: Session, group_key: str) -> int:
    return db.scalar(select(func.count()).select_from(FeedItem).where(FeedItem.group_key == group_key)) or 0


@retry(retryable_exceptions=(Exception,))
def persist_cycle(
    session_factory,
    group_key: str,
    entries: Sequence[FeedEntry],
    replace: bool,
    upsert_on_year: bool = False,
) -> List[FeedEntry]:
    """Delete (replace mode), insert and stamp the group in one transaction.

    Returns the entries that were written; conflicts skipped by the database are left out.
    """
    with session_factory() as db:
        try:
            if replace:
                delete_group(db, group_key)
            written = insert_batch(db, entries, upsert_on_year=upsert_on_year)
            upsert_group_meta(db, group_key, datetime.now(timezone.utc).replace(tzinfo=None), count_group(db, group_key))
            db.commit()
        except Exception as e:
            db.rollback()
            logger.error(f"❌ Persisting {group_key} failed, rolled back: {e}")
            raise
    logger.info(f"✅ Persisted {len(written)} item(s) for {group_key}")
    return written


def list_items(db: Session, group_key: Optional[str] = None, categories: Optional[Sequence[str]] = None) -> List[FeedItem]:
    stmt = select(FeedItem)
    if group_key is not None:
        stmt = stmt.where(FeedItem.group_key == group_key)
    if categories:
        stmt = stmt.where(FeedItem.category.in_(list(categories)))
    stmt = stmt.order_by(FeedItem.group_key, FeedItem.created_at, FeedItem.id)
    return list(db.scalars(stmt).all())


def list_group_keys(db: Session, kind: KeyKind) -> List[str]:
    keys = db.scalars(select(FeedItem.group_key).distinct()).all()
    return sorted(k for k in keys if kind.pattern.match(k))


def get_group_meta(db: Session, group_key: str) -> Optional[DayMeta]:
    return db.get(DayMeta, group_key)


def dedup_sweep(db: Session) -> Dict[str, int]:
    """Delete every item whose normalized title or provider ID appeared earlier.

    Oldest rows win. Group counters are refreshed for the groups touched.
    """
    seen_titles = set()
    seen_ids = set()
    doomed = []
    touched = set()

    rows = db.execute(
        select(FeedItem.id, FeedItem.group_key, FeedItem.title, FeedItem.provider_id)
        .order_by(FeedItem.created_at, FeedItem.id)
    ).all()
    for item_id, group_key, title, provider_id in rows:
        key = normalize_title(title)
        if key in seen_titles or (provider_id and provider_id in seen_ids):
            doomed.append(item_id)
            touched.add(group_key)
            continue
        seen_titles.add(key)
        if provider_id:
            seen_ids.add(provider_id)

    try:
        if doomed:
            db.execute(delete(FeedItem).where(FeedItem.id.in_(doomed)))
            for group_key in touched:
                db.execute(
                    update(DayMeta)
                    .where(DayMeta.group_key == group_key)
                    .values(item_count=count_group(db, group_key))
                )
        db.commit()
    except Exception:
        db.rollback()
        raise

    remaining = len(rows) - len(doomed)
    logger.info(f"🧹 Dedup sweep removed {len(doomed)} item(s), {remaining} remain")
    return {"deleted": len(doomed), "remaining": remaining}
