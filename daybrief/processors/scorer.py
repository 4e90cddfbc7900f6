"""
Relevance scoring for brief candidates.

Each candidate gets a score combining recency, interaction counts from its
metadata, the user's engagement history and the engagement predicted from
time spent and category preference, plus a provisional selection reason.
Weights come from ScoringConfig.
"""
import math
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from daybrief.processors.content_processor import ContentProcessor
from daybrief.storage.engagement_store import EngagementHistory
from daybrief.summarizers.brief_summarizer import BriefSummarizer
from daybrief.utils.config import ScoringConfig
from daybrief.utils.constants import ScoringConstants
from daybrief.utils.models import (
    ContentItem,
    ScoredCandidate,
    SelectionReason,
    ensure_utc,
    utcnow,
)


class ContentScorer:
    """Scores candidates and assigns provisional selection reasons"""

    def __init__(self, config: Optional[ScoringConfig] = None):
        self.config = config or ScoringConfig()
        self.content_processor = ContentProcessor()

    def score(
        self,
        candidates: Sequence[ContentItem],
        history: Optional[EngagementHistory] = None,
        now: Optional[datetime] = None,
    ) -> List[ScoredCandidate]:
        """Score candidates; output order matches input order"""
        if not candidates:
            return []

        history = history or EngagementHistory.empty()
        now = ensure_utc(now) if now else utcnow()
        newest_by_source = self._newest_by_source(candidates)

        return [
            self._score_item(item, history, now, newest_by_source)
            for item in candidates
        ]

    def _score_item(
        self,
        item: ContentItem,
        history: EngagementHistory,
        now: datetime,
        newest_by_source: Dict[str, str],
    ) -> ScoredCandidate:
        cfg = self.config

        recency = self.recency_score(item, now)
        interactions = self.interaction_count(item)
        is_trending = self.is_trending(item, interactions)
        follow_up_strength = self.follow_up_strength(item, history)
        is_follow_up = follow_up_strength > 0.0

        if is_follow_up:
            reason = SelectionReason.FOLLOW_UP
        elif is_trending:
            reason = SelectionReason.TRENDING
        elif newest_by_source.get(item.source.id) == item.id:
            reason = SelectionReason.TOP_STORY
        else:
            reason = SelectionReason.DIVERSITY_PICK

        source_preference = history.source_preference(item.source.id)
        if source_preference is None:
            source_preference = ScoringConstants.NEUTRAL_SOURCE_PREFERENCE

        score = (
            cfg.recency_weight * recency
            + cfg.interaction_weight * self.interaction_score(item, interactions)
            + cfg.follow_up_weight * follow_up_strength
            + cfg.source_preference_weight * source_preference
            + cfg.engagement_weight * self.predicted_engagement(item, reason, history)
        )

        # Already engaged with this exact item
        if history.has_engaged(item.id):
            score -= cfg.seen_penalty

        return ScoredCandidate(
            item=item,
            score=score,
            reason=reason,
            interactions=interactions,
            is_trending=is_trending,
            is_follow_up=is_follow_up,
        )

    def recency_score(self, item: ContentItem, now: datetime) -> float:
        """1.0 for brand new items, halving every half-life"""
        age_hours = max(0.0, (now - item.published_at).total_seconds() / 3600)
        return 0.5 ** (age_hours / self.config.recency_half_life_hours)

    def interaction_count(self, item: ContentItem) -> int:
        total = 0.0
        for key in ScoringConstants.INTERACTION_KEYS:
            value = item.metadata_number(key)
            if value is not None and value > 0:
                total += value
        return int(total)

    def trending_threshold(self, item: ContentItem) -> Optional[int]:
        threshold = self.config.trending_thresholds.get(item.content_type.value)
        if threshold is None or threshold <= 0:
            return None
        return threshold

    def is_trending(self, item: ContentItem, interactions: Optional[int] = None) -> bool:
        threshold = self.trending_threshold(item)
        if threshold is None:
            return False
        if interactions is None:
            interactions = self.interaction_count(item)
        return interactions >= threshold

    def interaction_score(self, item: ContentItem, interactions: int) -> float:
        """Log-scaled interactions in [0, 1], saturating well above the threshold"""
        threshold = self.trending_threshold(item)
        if threshold is None or interactions <= 0:
            return 0.0
        ceiling = math.log1p(threshold * ScoringConstants.INTERACTION_SATURATION)
        return min(1.0, math.log1p(interactions) / ceiling)

    def follow_up_strength(self, item: ContentItem, history: EngagementHistory) -> float:
        """How strongly the item continues something the user engaged with, in [0, 1]"""
        # An item the user already engaged with is not a follow-up of itself
        if history.is_empty or history.has_engaged(item.id):
            return 0.0

        strength = 0.0
        if item.source.id in history.engaged_source_ids:
            strength = history.source_preference(item.source.id) or 0.0

        topic_overlap = history.topic_overlap(self.content_processor.item_topics(item))
        return max(strength, topic_overlap)

    def predicted_engagement(
        self,
        item: ContentItem,
        reason: SelectionReason,
        history: EngagementHistory,
    ) -> float:
        """
        Expected engagement with the item in [0, 1].

        Averages the time usually spent on the item's source (relative to
        engaged_time_seconds) and the positive rate of the category the item
        would land in. Neutral when neither is known.
        """
        signals = []

        average = history.average_time_spent(item.source.id)
        if average is not None:
            signals.append(min(1.0, average / self.config.engaged_time_seconds))

        category = BriefSummarizer.categorize(item, reason)
        preference = history.category_preference(category)
        if preference is not None:
            signals.append(preference)

        if not signals:
            return ScoringConstants.NEUTRAL_SOURCE_PREFERENCE
        return sum(signals) / len(signals)

    @staticmethod
    def _newest_by_source(candidates: Sequence[ContentItem]) -> Dict[str, str]:
        """Map source id to the id of its most recent candidate"""
        newest: Dict[str, ContentItem] = {}
        for item in candidates:
            current = newest.get(item.source.id)
            if current is None or (item.published_at, item.id) > (current.published_at, current.id):
                newest[item.source.id] = item
        return {source_id: item.id for source_id, item in newest.items()}
