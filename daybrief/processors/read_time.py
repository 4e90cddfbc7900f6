"""
Read-time estimation for brief items
"""
from typing import Iterable

from daybrief.utils.models import ContentItem
from daybrief.utils.constants import ReadTimeConstants
from daybrief.processors.content_processor import ContentProcessor


class ReadTimeEstimator:
    """Estimates how long an item takes to read or listen to, in seconds"""

    def __init__(self, words_per_minute: int = ReadTimeConstants.WORDS_PER_MINUTE):
        if words_per_minute <= 0:
            raise ValueError("words_per_minute must be positive")
        self.words_per_minute = words_per_minute
        self.content_processor = ContentProcessor()

    def estimate(self, item: ContentItem) -> float:
        """Estimated seconds left to consume the item"""
        if item.content_type.is_audio:
            full_time = self._audio_seconds(item)
        else:
            full_time = self._text_seconds(item)

        remaining = full_time * (1.0 - item.progress)
        return max(0.0, remaining)

    def total(self, items: Iterable[ContentItem]) -> float:
        return sum(self.estimate(item) for item in items)

    def _audio_seconds(self, item: ContentItem) -> float:
        duration = item.metadata_duration(*ReadTimeConstants.DURATION_KEYS)
        if duration is None:
            return 0.0
        return max(0.0, duration.total_seconds())

    def _text_seconds(self, item: ContentItem) -> float:
        words = item.metadata_number(*ReadTimeConstants.WORD_COUNT_KEYS)
        if words is None:
            text = self.content_processor.clean_content(item.preview) or item.title
            words = self.content_processor.count_words(text)
        words = max(0.0, words)
        return words / self.words_per_minute * ReadTimeConstants.SECONDS_PER_MINUTE
