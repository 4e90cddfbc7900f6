"""
Constants and configuration values for the daily brief engine
"""
import re
import uuid


# Read time estimation
class ReadTimeConstants:
    WORDS_PER_MINUTE = 200
    SECONDS_PER_MINUTE = 60

    WORD_COUNT_KEYS = ('wordCount', 'word_count')
    DURATION_KEYS = ('duration', 'episodeDuration', 'episode_duration')


# Scoring defaults (overridable through ScoringConfig)
class ScoringConstants:
    RECENCY_WEIGHT = 0.4
    INTERACTION_WEIGHT = 0.25
    FOLLOW_UP_WEIGHT = 0.2
    SOURCE_PREFERENCE_WEIGHT = 0.15
    ENGAGEMENT_WEIGHT = 0.1
    SEEN_PENALTY = 0.3
    RECENCY_HALF_LIFE_HOURS = 24.0

    # Neutral preference for sources without history
    NEUTRAL_SOURCE_PREFERENCE = 0.5

    # Average time spent that counts as full engagement with a source
    ENGAGED_TIME_SECONDS = 300.0

    # Interaction count keys found in normalized item metadata
    INTERACTION_KEYS = (
        'commentCount', 'numComments', 'score', 'ups',
        'likeCount', 'favouritesCount', 'repliesCount', 'replyCount',
        'reblogsCount', 'repostCount',
    )

    # Minimum interactions before an item counts as trending, per content type.
    # Podcasts carry no interaction counts.
    TRENDING_THRESHOLDS = {
        'article': 50,
        'reddit': 100,
        'bluesky': 50,
        'mastodon': 25,
    }

    # Interaction score saturates at this multiple of the threshold
    INTERACTION_SATURATION = 10


# Selection
class SelectionConstants:
    READ_TIME_SLACK_FACTOR = 2.0
    MAX_TYPE_SHARE = 0.6
    MIN_DISTINCT_TYPES = 2


# Summaries
class SummaryConstants:
    MAX_SUMMARY_LENGTH = {
        'rush': 150,
        'standard': 280,
        'weekend': 500,
    }
    ELLIPSIS = '...'


# Engagement history
class EngagementConstants:
    RETENTION_DAYS = 30
    MAX_IN_MEMORY_RECORDS = 5000
    MAX_TOPICS_PER_RECORD = 8


# Catalog fetching
class CatalogConstants:
    FETCH_TIMEOUT_SECONDS = 15.0
    MAX_ITEM_AGE_HOURS = 48


# Source identifiers
class IdentifierConstants:
    # Changing the namespace or version changes every derived source id
    SOURCE_NAMESPACE = uuid.UUID('6f1c2a8e-4b7d-5c3e-9a10-2d8f4e6b1c70')
    SOURCE_ID_VERSION = 'v1'


# Content Processing Constants
class ContentConstants:
    # Common words to filter out from topics
    COMMON_WORDS = {
        'news', 'article', 'story', 'read', 'time', 'day', 'year',
        'people', 'new', 'said', 'says', 'according', 'report',
        'also', 'would', 'could', 'should', 'might', 'may',
        'first', 'last', 'next', 'previous', 'current', 'recent',
        'local', 'national', 'international', 'global', 'world',
        'about', 'after', 'again', 'against', 'before', 'being', 'between',
        'from', 'have', 'here', 'into', 'just', 'more', 'most', 'over',
        'some', 'than', 'that', 'their', 'them', 'then', 'there', 'these',
        'they', 'this', 'what', 'when', 'where', 'which', 'while', 'with',
        'your', 'episode', 'today', 'week', 'anyone', 'else', 'thoughts',
    }

    MIN_TOPIC_LENGTH = 4
    MAX_TOPICS = 10

    # Regex patterns for content cleaning
    HTML_TAG_PATTERN = re.compile(r'<[^>]+>')
    SCRIPT_STYLE_PATTERN = re.compile(r'<(script|style)[^>]*>.*?</\1>', re.IGNORECASE | re.DOTALL)
    EXCESSIVE_WHITESPACE_PATTERN = re.compile(r'\s+')
    EXCESSIVE_PUNCTUATION_PATTERNS = {
        '!': re.compile(r'\!{2,}'),
        '?': re.compile(r'\?{2,}'),
    }
    CONTROL_CHARACTER_PATTERN = re.compile(r'[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]', re.UNICODE)
    WORD_PATTERN = re.compile(r"[^\W_][\w'-]*", re.UNICODE)


# Mode auto-detection defaults
class ModeConstants:
    RUSH_START_HOUR = 6
    RUSH_END_HOUR = 9
    WEEKEND_DAYS = [5, 6]  # Saturday, Sunday


# Log sinks
class LoggingConstants:
    DEFAULT_LEVEL = "INFO"
    LEVELS = ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL")
    DEFAULT_FILE = "logs/daybrief.log"
    ROTATION = "10 MB"
    RETENTION = "30 days"

    CONSOLE_FORMAT = (
        "<green>{time:HH:mm:ss}</green> <level>{level: <7}</level> "
        "<cyan>{name}</cyan> {message}"
    )
    FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS ZZ} {level: <7} {name}:{function}:{line} {message}"


# Export commonly used constants
__all__ = [
    'LoggingConstants',
    'ReadTimeConstants',
    'ScoringConstants',
    'SelectionConstants',
    'SummaryConstants',
    'EngagementConstants',
    'CatalogConstants',
    'IdentifierConstants',
    'ContentConstants',
    'ModeConstants',
]
