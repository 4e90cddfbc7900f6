"""
Engagement history storage.

Records how the user interacted with items of past briefs and exposes an
immutable snapshot (EngagementHistory) that the scorer reads during one
generation. Two stores are provided: an in-memory store for embedding and
tests, and a SQLAlchemy-backed store for persistence across runs.
"""
import threading
from abc import ABC, abstractmethod
from collections import Counter, defaultdict, deque
from datetime import datetime, timedelta
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from daybrief.storage.database import create_session_factory, session_scope
from daybrief.storage.models import EngagementRow
from daybrief.utils.config import EngagementConfig
from daybrief.utils.constants import EngagementConstants
from daybrief.utils.logger import logger
from daybrief.utils.models import (
    BriefCategory,
    EngagementAction,
    EngagementRecord,
    ensure_utc,
    utcnow,
)


class EngagementStoreError(Exception):
    """Raised when engagement records cannot be stored or read."""

    pass


class EngagementHistory:
    """Read-only view over engagement records, ordered oldest first"""

    def __init__(self, records: Iterable[EngagementRecord] = ()):
        self._records: Tuple[EngagementRecord, ...] = tuple(
            sorted(records, key=lambda r: r.recorded_at)
        )

        by_content: Dict[str, List[EngagementRecord]] = defaultdict(list)
        by_source: Dict[str, List[EngagementRecord]] = defaultdict(list)
        by_category: Dict[BriefCategory, List[EngagementRecord]] = defaultdict(list)
        topics: Counter = Counter()

        for record in self._records:
            by_content[record.content_id].append(record)
            if record.source_id:
                by_source[record.source_id].append(record)
            if record.category:
                by_category[record.category].append(record)
            if record.action.is_positive:
                topics.update(record.topics)

        self._by_content = {k: tuple(v) for k, v in by_content.items()}
        self._by_source = {k: tuple(v) for k, v in by_source.items()}
        self._by_category = {k: tuple(v) for k, v in by_category.items()}
        self._engaged_topics: FrozenSet[str] = frozenset(topics)

    @classmethod
    def empty(cls) -> "EngagementHistory":
        return cls(())

    def __len__(self) -> int:
        return len(self._records)

    @property
    def records(self) -> Tuple[EngagementRecord, ...]:
        return self._records

    @property
    def is_empty(self) -> bool:
        return not self._records

    def for_content(self, content_id: str) -> Tuple[EngagementRecord, ...]:
        return self._by_content.get(content_id, ())

    def for_source(self, source_id: str) -> Tuple[EngagementRecord, ...]:
        return self._by_source.get(source_id, ())

    def has_engaged(self, content_id: str) -> bool:
        return content_id in self._by_content

    @property
    def engaged_source_ids(self) -> FrozenSet[str]:
        """Sources with at least one positive engagement"""
        return frozenset(
            source_id for source_id, records in self._by_source.items()
            if any(r.action.is_positive for r in records)
        )

    @property
    def engaged_topics(self) -> FrozenSet[str]:
        return self._engaged_topics

    def source_preference(self, source_id: str) -> Optional[float]:
        """Share of positive engagements for a source, None without history"""
        return self._positive_rate(self.for_source(source_id))

    def category_preference(self, category: BriefCategory) -> Optional[float]:
        return self._positive_rate(self._by_category.get(category, ()))

    def average_time_spent(self, source_id: str) -> Optional[float]:
        records = self.for_source(source_id)
        if not records:
            return None
        return sum(r.time_spent for r in records) / len(records)

    def topic_overlap(self, topics: Iterable[str]) -> float:
        """Fraction of the given topics the user engaged with before"""
        topics = set(topics)
        if not topics or not self._engaged_topics:
            return 0.0
        return len(topics & self._engaged_topics) / len(topics)

    def latest(self, limit: int = 10) -> Tuple[EngagementRecord, ...]:
        return tuple(reversed(self._records[-limit:])) if limit > 0 else ()

    @staticmethod
    def _positive_rate(records: Iterable[EngagementRecord]) -> Optional[float]:
        records = list(records)
        if not records:
            return None
        positive = sum(1 for r in records if r.action.is_positive)
        return positive / len(records)


class EngagementStore(ABC):
    """Append-only engagement record storage"""

    def __init__(self, retention_days: int = EngagementConstants.RETENTION_DAYS):
        self.retention_days = retention_days

    @abstractmethod
    def append(self, record: EngagementRecord) -> None:
        """Append a record; records are never modified afterwards"""
        pass

    @abstractmethod
    def records(self, since: Optional[datetime] = None) -> List[EngagementRecord]:
        """Records at or after `since`, oldest first"""
        pass

    def retention_cutoff(self, now: Optional[datetime] = None) -> datetime:
        now = ensure_utc(now) if now else utcnow()
        return now - timedelta(days=self.retention_days)

    def snapshot(self, now: Optional[datetime] = None) -> EngagementHistory:
        """Consistent history view within the retention window"""
        return EngagementHistory(self.records(since=self.retention_cutoff(now)))


class InMemoryEngagementStore(EngagementStore):
    """Thread-safe bounded in-memory store"""

    def __init__(
        self,
        retention_days: int = EngagementConstants.RETENTION_DAYS,
        max_records: int = EngagementConstants.MAX_IN_MEMORY_RECORDS,
    ):
        super().__init__(retention_days)
        self._records: deque = deque(maxlen=max_records)
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def append(self, record: EngagementRecord) -> None:
        # Retention is measured from the appended record's time
        cutoff = record.recorded_at - timedelta(days=self.retention_days)
        with self._lock:
            self._records.append(record)
            while self._records and self._records[0].recorded_at < cutoff:
                self._records.popleft()

    def records(self, since: Optional[datetime] = None) -> List[EngagementRecord]:
        with self._lock:
            current = list(self._records)
        if since is not None:
            since = ensure_utc(since)
            current = [r for r in current if r.recorded_at >= since]
        return sorted(current, key=lambda r: r.recorded_at)


class SqlEngagementStore(EngagementStore):
    """Engagement store persisted through SQLAlchemy"""

    def __init__(
        self,
        session_factory: sessionmaker,
        retention_days: int = EngagementConstants.RETENTION_DAYS,
    ):
        super().__init__(retention_days)
        self.session_factory = session_factory

    def append(self, record: EngagementRecord) -> None:
        row = EngagementRow(
            brief_item_id=record.brief_item_id,
            content_id=record.content_id,
            source_id=record.source_id,
            category=record.category.value if record.category else None,
            topics=list(record.topics),
            time_spent=record.time_spent,
            action=record.action.value,
            recorded_at=self._to_db_time(record.recorded_at),
        )

        with session_scope(self.session_factory) as db:
            try:
                db.add(row)
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Failed to store engagement for content {record.content_id}: {e}")
                raise EngagementStoreError(f"Failed to store engagement: {e}") from e

    def records(self, since: Optional[datetime] = None) -> List[EngagementRecord]:
        with session_scope(self.session_factory) as db:
            try:
                query = db.query(EngagementRow)
                if since is not None:
                    query = query.filter(EngagementRow.recorded_at >= self._to_db_time(since))
                rows = query.order_by(EngagementRow.recorded_at, EngagementRow.id).all()
            except SQLAlchemyError as e:
                logger.error(f"Failed to read engagement history: {e}")
                raise EngagementStoreError(f"Failed to read engagement history: {e}") from e

            return [self._to_record(row) for row in rows]

    def prune(self, now: Optional[datetime] = None) -> int:
        """Delete records older than the retention window, returning the count"""
        cutoff = self._to_db_time(self.retention_cutoff(now))
        with session_scope(self.session_factory) as db:
            try:
                deleted = (
                    db.query(EngagementRow)
                    .filter(EngagementRow.recorded_at < cutoff)
                    .delete(synchronize_session=False)
                )
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                raise EngagementStoreError(f"Failed to prune engagement history: {e}") from e

        if deleted:
            logger.info(f"Pruned {deleted} engagement records older than {self.retention_days} days")
        return deleted

    @staticmethod
    def _to_db_time(dt: datetime) -> datetime:
        # Stored as naive UTC so comparisons behave the same on every backend
        return ensure_utc(dt).replace(tzinfo=None)

    @staticmethod
    def _to_record(row: EngagementRow) -> EngagementRecord:
        return EngagementRecord(
            brief_item_id=row.brief_item_id,
            content_id=row.content_id,
            source_id=row.source_id,
            category=BriefCategory(row.category) if row.category else None,
            topics=tuple(row.topics or ()),
            time_spent=row.time_spent,
            action=EngagementAction(row.action),
            recorded_at=ensure_utc(row.recorded_at),
        )


def create_engagement_store(config: EngagementConfig) -> EngagementStore:
    """In-memory store for an empty or "memory" URL, SQL store otherwise"""
    if not config.database_url or config.database_url == "memory":
        return InMemoryEngagementStore(config.retention_days, config.max_records)
    return SqlEngagementStore(
        create_session_factory(config.database_url),
        retention_days=config.retention_days,
    )
