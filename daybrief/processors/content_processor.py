"""
Content text cleaning and topic extraction
"""
import re
from typing import List, Tuple

from daybrief.utils.models import ContentItem
from daybrief.utils.logger import logger
from daybrief.utils.constants import ContentConstants


class ContentProcessor:
    """Cleans item text and extracts topic keywords used to link related stories"""

    def clean_content(self, content: str) -> str:
        """Strip markup and normalize whitespace while preserving Unicode characters"""
        if not content:
            return ""

        try:
            content = ContentConstants.SCRIPT_STYLE_PATTERN.sub(' ', content)
            content = ContentConstants.HTML_TAG_PATTERN.sub(' ', content)
            content = ContentConstants.CONTROL_CHARACTER_PATTERN.sub('', content)
            content = ContentConstants.EXCESSIVE_WHITESPACE_PATTERN.sub(' ', content)

            for punct_char, pattern in ContentConstants.EXCESSIVE_PUNCTUATION_PATTERNS.items():
                content = pattern.sub(punct_char, content)

            # Normalize spaces before punctuation
            content = re.sub(r'\s+([.,!?;:])', r'\1', content)

            return content.strip()

        except Exception as e:
            logger.error(f"Error cleaning content: {e}")
            return content.strip()

    def count_words(self, text: str) -> int:
        if not text:
            return 0
        return len(ContentConstants.WORD_PATTERN.findall(text))

    def extract_topics(self, text: str) -> List[str]:
        """Extract distinctive lower-cased words, in order of first appearance"""
        if not text:
            return []

        topics = []
        seen = set()
        for word in ContentConstants.WORD_PATTERN.findall(self.clean_content(text).lower()):
            word = word.strip("'-")
            if (len(word) < ContentConstants.MIN_TOPIC_LENGTH
                    or word in ContentConstants.COMMON_WORDS
                    or word.isdigit()
                    or word in seen):
                continue
            seen.add(word)
            topics.append(word)
            if len(topics) >= ContentConstants.MAX_TOPICS:
                break

        return topics

    def item_topics(self, item: ContentItem) -> Tuple[str, ...]:
        """Topics of an item, taken from its title"""
        return tuple(self.extract_topics(item.title))
