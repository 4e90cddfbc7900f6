"""
Extractive summaries and category tags for brief items
"""
from typing import Optional, Tuple

from daybrief.processors.content_processor import ContentProcessor
from daybrief.storage.engagement_store import EngagementHistory
from daybrief.utils.constants import SummaryConstants
from daybrief.utils.logger import logger
from daybrief.utils.models import (
    BriefCategory,
    BriefMode,
    ContentItem,
    SelectionReason,
    SourceType,
)


class BriefSummarizer:
    """Builds the capped summary, category and personal context of a brief item"""

    def __init__(self):
        self.content_processor = ContentProcessor()

    def summarize(
        self,
        item: ContentItem,
        mode: BriefMode,
        reason: Optional[SelectionReason] = None,
    ) -> Tuple[str, BriefCategory]:
        """Return (summary, category) for an item; never raises for a valid item"""
        return self.summary_for(item, mode), self.categorize(item, reason)

    def summary_for(self, item: ContentItem, mode: BriefMode) -> str:
        max_length = self.max_length(mode)
        text = self._summary_source(item)
        return self._truncate(text, max_length)

    @staticmethod
    def max_length(mode: BriefMode) -> int:
        return SummaryConstants.MAX_SUMMARY_LENGTH[mode.value]

    @staticmethod
    def categorize(item: ContentItem, reason: Optional[SelectionReason] = None) -> BriefCategory:
        if item.content_type is SourceType.PODCAST:
            return BriefCategory.PODCASTS
        if reason is SelectionReason.TRENDING:
            return BriefCategory.TRENDING
        if reason is SelectionReason.FOLLOW_UP:
            return BriefCategory.UPDATES
        if item.content_type in (SourceType.BLUESKY, SourceType.MASTODON):
            return BriefCategory.SOCIAL
        if reason is SelectionReason.DIVERSITY_PICK:
            return BriefCategory.DISCOVERY
        return BriefCategory.TOP_STORIES

    def context_for(self, item: ContentItem, history: EngagementHistory) -> Optional[str]:
        """Personal relevance line based on time spent with the item's source"""
        average = history.average_time_spent(item.source.id)
        if average is None:
            return None
        minutes = int(average // 60)
        if minutes < 1:
            return f"You often check in on {item.source.name}"
        return f"You typically spend {minutes} min on content from this source"

    def _summary_source(self, item: ContentItem) -> str:
        preview = self.content_processor.clean_content(item.preview)
        if preview:
            return preview

        title = self.content_processor.clean_content(item.title)
        if title:
            return title

        logger.debug(f"Item {item.id} has neither preview nor title, using source name")
        source_name = item.source.name.strip() or item.content_type.display_name
        return f"Content from {source_name}"

    @staticmethod
    def _truncate(text: str, max_length: int) -> str:
        if len(text) <= max_length:
            return text

        ellipsis = SummaryConstants.ELLIPSIS
        limit = max(1, max_length - len(ellipsis))
        cut = text[:limit]

        # Prefer a word boundary if it keeps at least half the text
        boundary = cut.rfind(' ')
        if boundary >= limit // 2:
            cut = cut[:boundary]

        cut = cut.rstrip(' ,;:.-')
        if not cut:
            cut = text[:limit]
        return cut + ellipsis
