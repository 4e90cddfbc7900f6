"""
Base models and data structures
"""
import math
import uuid
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional, Dict, Tuple, Union

from pydantic import (
    AnyUrl,
    BaseModel,
    ConfigDict,
    Field,
    StrictFloat,
    StrictInt,
    StrictStr,
    field_validator,
    model_validator,
)

from daybrief.utils.constants import IdentifierConstants


# Closed set of metadata value types: number, duration, URL or plain text
MetadataValue = Union[StrictInt, StrictFloat, timedelta, AnyUrl, StrictStr]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Normalize datetime to timezone-aware UTC (naive values are taken as UTC)"""
    if dt.tzinfo is None or dt.tzinfo.utcoffset(dt) is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class SourceType(str, Enum):
    ARTICLE = "article"
    REDDIT = "reddit"
    BLUESKY = "bluesky"
    MASTODON = "mastodon"
    PODCAST = "podcast"

    @property
    def display_name(self) -> str:
        return {
            SourceType.ARTICLE: "News",
            SourceType.REDDIT: "Reddit",
            SourceType.BLUESKY: "Bluesky",
            SourceType.MASTODON: "Mastodon",
            SourceType.PODCAST: "Podcast",
        }[self]

    @property
    def is_audio(self) -> bool:
        return self is SourceType.PODCAST


def source_identifier(name: str, content_type: Union[SourceType, str], handle: Optional[str] = None) -> str:
    """
    Derive the stable identifier of a source.

    The same name, type and handle always map to the same identifier, on any
    platform and across runs, so selected-source ids can be matched against
    catalog entries.
    """
    key = "|".join([
        IdentifierConstants.SOURCE_ID_VERSION,
        (name or "").strip(),
        SourceType(content_type).value,
        (handle or "").strip(),
    ])
    return str(uuid.uuid5(IdentifierConstants.SOURCE_NAMESPACE, key))


class Source(BaseModel):
    """A subscribed content origin"""
    model_config = ConfigDict(frozen=True)

    id: str = ""
    name: str
    content_type: SourceType
    description: str = ""
    handle: Optional[str] = None
    feed_url: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def derive_identifier(cls, data):
        if isinstance(data, dict) and not data.get("id") and data.get("name") is not None:
            data = dict(data)
            data["id"] = source_identifier(data["name"], data.get("content_type"), data.get("handle"))
        return data


class ContentItem(BaseModel):
    """Normalized unit of consumable content supplied by the catalog"""
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    subtitle: str = ""
    published_at: datetime
    content_type: SourceType
    preview: str = ""
    progress: float = Field(default=0.0, ge=0.0, le=1.0)
    metadata: Dict[str, MetadataValue] = Field(default_factory=dict)
    source: Source

    @model_validator(mode="before")
    @classmethod
    def default_content_type(cls, data):
        if isinstance(data, dict) and not data.get("content_type") and data.get("source") is not None:
            source = data["source"]
            source_type = source.content_type if isinstance(source, Source) else source.get("content_type")
            if source_type is not None:
                data = dict(data)
                data["content_type"] = source_type
        return data

    @field_validator("published_at")
    @classmethod
    def normalize_published_at(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @field_validator("metadata", mode="before")
    @classmethod
    def reject_unsupported_metadata(cls, v):
        if isinstance(v, dict):
            for key, value in v.items():
                if isinstance(value, bool) or isinstance(value, (list, tuple, dict, set)):
                    raise ValueError(f"Unsupported metadata value for '{key}': {type(value).__name__}")
        return v

    def metadata_number(self, *keys: str) -> Optional[float]:
        """First numeric metadata value among keys"""
        for key in keys:
            value = self.metadata.get(key)
            if isinstance(value, (int, float)) and math.isfinite(value):
                return float(value)
        return None

    def metadata_duration(self, *keys: str) -> Optional[timedelta]:
        """First duration among keys; plain numbers are read as seconds"""
        for key in keys:
            value = self.metadata.get(key)
            if isinstance(value, timedelta):
                return value
            if isinstance(value, (int, float)) and math.isfinite(value):
                return timedelta(seconds=float(value))
        return None

    def metadata_text(self, *keys: str) -> Optional[str]:
        for key in keys:
            value = self.metadata.get(key)
            if isinstance(value, str):
                return value
            if isinstance(value, AnyUrl):
                return str(value)
        return None


class BriefMode(str, Enum):
    """Brief budgets: how many items and how much read time a brief may hold"""
    RUSH = "rush"
    STANDARD = "standard"
    WEEKEND = "weekend"

    @property
    def target_read_time(self) -> float:
        return {
            BriefMode.RUSH: 120.0,
            BriefMode.STANDARD: 300.0,
            BriefMode.WEEKEND: 1200.0,
        }[self]

    @property
    def max_items(self) -> int:
        return {
            BriefMode.RUSH: 5,
            BriefMode.STANDARD: 10,
            BriefMode.WEEKEND: 12,
        }[self]

    @property
    def display_name(self) -> str:
        return {
            BriefMode.RUSH: "Quick Brief",
            BriefMode.STANDARD: "Standard Brief",
            BriefMode.WEEKEND: "Weekend Brief",
        }[self]


class BriefCategory(str, Enum):
    TOP_STORIES = "top_stories"
    UPDATES = "updates"
    TRENDING = "trending"
    PODCASTS = "podcasts"
    SOCIAL = "social"
    DISCOVERY = "discovery"

    @property
    def display_name(self) -> str:
        return {
            BriefCategory.TOP_STORIES: "Top Stories",
            BriefCategory.UPDATES: "Updates",
            BriefCategory.TRENDING: "Trending",
            BriefCategory.PODCASTS: "Audio",
            BriefCategory.SOCIAL: "Social",
            BriefCategory.DISCOVERY: "Discover",
        }[self]

    @property
    def icon(self) -> str:
        return {
            BriefCategory.TOP_STORIES: "star.fill",
            BriefCategory.UPDATES: "arrow.triangle.2.circlepath",
            BriefCategory.TRENDING: "chart.line.uptrend.xyaxis",
            BriefCategory.PODCASTS: "headphones",
            BriefCategory.SOCIAL: "person.2.fill",
            BriefCategory.DISCOVERY: "sparkles",
        }[self]


class SelectionReason(str, Enum):
    """Why an item made it into the brief"""
    TOP_STORY = "top_story"
    TRENDING = "trending"
    FOLLOW_UP = "follow_up"
    DIVERSITY_PICK = "diversity_pick"

    @property
    def explanation(self) -> str:
        return {
            SelectionReason.TOP_STORY: "Top story from your sources",
            SelectionReason.TRENDING: "Trending in your network",
            SelectionReason.FOLLOW_UP: "Update on story you followed",
            SelectionReason.DIVERSITY_PICK: "Different perspective",
        }[self]


class EngagementAction(str, Enum):
    CLICKED = "clicked"
    DISMISSED = "dismissed"
    SKIPPED = "skipped"
    COMPLETED = "completed"
    VIEWED = "viewed"
    SHARED = "shared"
    SAVED = "saved"

    @property
    def is_positive(self) -> bool:
        return self not in (EngagementAction.DISMISSED, EngagementAction.SKIPPED)


class EngagementRecord(BaseModel):
    """One interaction with a previously generated brief item"""
    model_config = ConfigDict(frozen=True)

    brief_item_id: str
    content_id: str
    time_spent: float = Field(default=0.0, ge=0.0)
    action: EngagementAction
    recorded_at: datetime = Field(default_factory=utcnow)
    source_id: Optional[str] = None
    category: Optional[BriefCategory] = None
    topics: Tuple[str, ...] = ()

    @field_validator("recorded_at")
    @classmethod
    def normalize_recorded_at(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class BriefItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id)
    content: ContentItem
    reason: SelectionReason
    summary: str = Field(min_length=1)
    category: BriefCategory
    priority: int = Field(ge=0)
    context: Optional[str] = None
    estimated_seconds: float = Field(default=0.0, ge=0.0)

    @property
    def reason_text(self) -> str:
        return self.reason.explanation


class DailyBrief(BaseModel):
    """Generated digest; items are in ranked order"""
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id)
    items: Tuple[BriefItem, ...] = ()
    read_time: float = Field(default=0.0, ge=0.0)
    mode: BriefMode
    created_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def check_item_budget(self):
        if len(self.items) > self.mode.max_items:
            raise ValueError(
                f"Brief holds {len(self.items)} items, {self.mode.value} mode allows {self.mode.max_items}"
            )
        return self

    @property
    def read_time_minutes(self) -> int:
        return int(math.ceil(self.read_time / 60))

    @property
    def source_ids(self) -> Tuple[str, ...]:
        return tuple(dict.fromkeys(item.content.source.id for item in self.items))

    @property
    def content_types(self) -> Tuple[SourceType, ...]:
        return tuple(dict.fromkeys(item.content.content_type for item in self.items))

    def is_today(self, now: Optional[datetime] = None) -> bool:
        now = ensure_utc(now) if now else utcnow()
        return self.created_at.date() == now.date()

    def find_item(self, brief_item_id: str) -> Optional[BriefItem]:
        return next((item for item in self.items if item.id == brief_item_id), None)


class ScoredCandidate(BaseModel):
    """Candidate with relevance score and provisional selection reason"""
    model_config = ConfigDict(frozen=True)

    item: ContentItem
    score: float
    reason: SelectionReason
    interactions: int = 0
    is_trending: bool = False
    is_follow_up: bool = False


class SelectedCandidate(BaseModel):
    """Candidate admitted into the brief at a given priority"""
    model_config = ConfigDict(frozen=True)

    candidate: ScoredCandidate
    priority: int = Field(ge=0)
    estimated_seconds: float = Field(default=0.0, ge=0.0)

    @property
    def item(self) -> ContentItem:
        return self.candidate.item

    @property
    def reason(self) -> SelectionReason:
        return self.candidate.reason

    @property
    def score(self) -> float:
        return self.candidate.score
