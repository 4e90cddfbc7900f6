"""SQLAlchemy ORM models for persisted engagement history."""

from sqlalchemy import (
    Column,
    Integer,
    String,
    Float,
    DateTime,
    JSON,
    CheckConstraint,
    Index,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class EngagementRow(Base):
    """Append-only record of a user interaction with a brief item."""

    __tablename__ = "engagement_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    brief_item_id = Column(String, nullable=False)
    content_id = Column(String, nullable=False)
    source_id = Column(String, nullable=True)
    category = Column(String, nullable=True)
    topics = Column(JSON, nullable=False, default=list)
    time_spent = Column(Float, nullable=False, default=0.0)
    action = Column(String, nullable=False)
    recorded_at = Column(DateTime, nullable=False)  # naive UTC

    __table_args__ = (
        CheckConstraint(
            "action IN ('clicked', 'dismissed', 'skipped', 'completed', 'viewed', 'shared', 'saved')",
            name="check_engagement_action",
        ),
        CheckConstraint("time_spent >= 0", name="check_engagement_time_spent"),
        Index("idx_engagement_content_id", "content_id"),
        Index("idx_engagement_source_id", "source_id"),
        Index("idx_engagement_recorded_at", "recorded_at"),
    )

    def __repr__(self):
        return f"<EngagementRow(id={self.id}, content_id='{self.content_id}', action='{self.action}')>"
