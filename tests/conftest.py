"""
Shared fixtures and item factories for the daily brief tests
"""
from datetime import datetime, timedelta, timezone

import pytest

from daybrief.utils.models import ContentItem, Source, SourceType


# Wednesday, mid-afternoon UTC
NOW = datetime(2026, 10, 14, 15, 0, tzinfo=timezone.utc)


def make_source(name="Tech Daily", content_type=SourceType.ARTICLE, handle=None):
    return Source(name=name, content_type=content_type, handle=handle)


def make_item(
    item_id,
    source,
    hours_ago=1.0,
    title=None,
    preview="",
    progress=0.0,
    **metadata,
):
    return ContentItem(
        id=item_id,
        title=title if title is not None else f"Story {item_id}",
        published_at=NOW - timedelta(hours=hours_ago),
        content_type=source.content_type,
        preview=preview,
        progress=progress,
        metadata=metadata,
        source=source,
    )


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def article_source():
    return make_source("Tech Daily", SourceType.ARTICLE)


@pytest.fixture
def reddit_source():
    return make_source("r/programming", SourceType.REDDIT, handle="programming")


@pytest.fixture
def podcast_source():
    return make_source("Hard Fork Weekly", SourceType.PODCAST)


@pytest.fixture
def social_source():
    return make_source("Bluesky friends", SourceType.BLUESKY, handle="me.bsky.social")
