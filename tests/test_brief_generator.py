"""
Tests for the daily brief generator state machine
"""
import asyncio
from datetime import timedelta
from unittest.mock import Mock

import pytest

from daybrief.aggregators.base import CatalogUnavailableError
from daybrief.aggregators.memory_catalog import InMemoryCatalog
from daybrief.engine.brief_generator import (
    BriefGenerationError,
    DailyBriefGenerator,
    GenerationState,
)
from daybrief.engine.mode_policy import ModePolicy
from daybrief.storage.engagement_store import EngagementStoreError, InMemoryEngagementStore
from daybrief.utils.config import Config, ModeConfig
from daybrief.utils.models import (
    BriefMode,
    EngagementAction,
    SelectionReason,
    SourceType,
)
from conftest import NOW, make_item


LONG_PREVIEW = "Engineers traced the outage to a configuration push that reached every region at once. " * 6


class FlakyCatalog(InMemoryCatalog):
    """Catalog whose sources can be made to fail or stall"""

    def __init__(self):
        super().__init__()
        self.failing = {}
        self.stalled = set()
        self.unavailable = False
        self.gate = None
        self.fetches = 0

    async def get_selected_source_ids(self):
        if self.unavailable:
            raise CatalogUnavailableError("catalog offline")
        return await super().get_selected_source_ids()

    async def fetch_candidates(self, source_id):
        self.fetches += 1
        if self.gate is not None:
            await self.gate.wait()
        if source_id in self.stalled:
            await asyncio.sleep(10)
        if source_id in self.failing:
            raise self.failing[source_id]
        return await super().fetch_candidates(source_id)


@pytest.fixture
def catalog(article_source, reddit_source, podcast_source):
    catalog = FlakyCatalog()
    catalog.add_source(article_source, [
        make_item(f"art-{i}", article_source, hours_ago=1 + i, preview=LONG_PREVIEW, wordCount=150 + 30 * i)
        for i in range(5)
    ])
    catalog.add_source(reddit_source, [
        make_item(f"red-{i}", reddit_source, hours_ago=2 + i, score=20 * i, numComments=i)
        for i in range(8)
    ])
    catalog.add_source(podcast_source, [
        make_item(f"pod-{i}", podcast_source, hours_ago=5 + i, duration=1800 + 600 * i)
        for i in range(3)
    ])
    return catalog


@pytest.fixture
def store():
    return InMemoryEngagementStore()


def build_generator(catalog, store, **overrides):
    config = overrides.pop("config", None) or Config()
    return DailyBriefGenerator(
        catalog,
        store,
        config=config,
        mode_policy=ModePolicy(ModeConfig(timezone="UTC")),
        clock=lambda: NOW,
        **overrides,
    )


@pytest.fixture
def generator(catalog, store):
    return build_generator(catalog, store)


class TestGeneration:
    """Test successful generation"""

    def test_initial_state(self, generator):
        assert generator.generation_state == GenerationState.IDLE
        assert generator.current_brief is None
        assert not generator.is_generating
        assert generator.last_error is None

    @pytest.mark.asyncio
    async def test_standard_brief_from_three_sources(self, generator):
        brief = await generator.generate_brief(BriefMode.STANDARD)

        assert brief is generator.current_brief
        assert generator.generation_state == GenerationState.LOADED
        assert generator.last_error is None
        assert 0 < len(brief.items) <= 10
        assert len({item.content.content_type for item in brief.items}) >= 2
        assert brief.read_time <= 600
        assert brief.mode == BriefMode.STANDARD
        assert brief.created_at == NOW

    @pytest.mark.asyncio
    @pytest.mark.parametrize("mode", list(BriefMode))
    async def test_brief_bounds_hold_in_every_mode(self, generator, mode):
        brief = await generator.generate_brief(mode)

        assert len(brief.items) <= mode.max_items
        assert brief.read_time <= mode.target_read_time * 2
        assert brief.read_time == pytest.approx(sum(i.estimated_seconds for i in brief.items))
        assert [item.priority for item in brief.items] == list(range(len(brief.items)))
        for item in brief.items:
            assert item.reason in SelectionReason
            assert item.reason_text
            assert item.summary

    @pytest.mark.asyncio
    async def test_rush_summaries_are_short(self, generator):
        brief = await generator.generate_brief(BriefMode.RUSH)
        assert brief.items
        assert all(len(item.summary) <= 150 for item in brief.items)

    @pytest.mark.asyncio
    async def test_rush_and_weekend_budgets_differ(self, generator):
        rush = await generator.generate_brief(BriefMode.RUSH)
        weekend = await generator.generate_brief(BriefMode.WEEKEND)

        assert rush.mode.max_items == 5
        assert weekend.mode.max_items == 12
        assert len(rush.items) <= 5
        assert weekend.read_time > rush.read_time

    @pytest.mark.asyncio
    async def test_regenerating_keeps_shape(self, generator):
        first = await generator.generate_brief(BriefMode.STANDARD)
        second = await generator.generate_brief(BriefMode.STANDARD)
        assert second.mode == first.mode
        assert len(second.items) <= BriefMode.STANDARD.max_items
        assert second.id != first.id

    @pytest.mark.asyncio
    async def test_mode_is_auto_detected(self, generator):
        # NOW is a Wednesday afternoon in UTC
        brief = await generator.generate_brief()
        assert brief.mode == BriefMode.STANDARD

    @pytest.mark.asyncio
    async def test_refresh_keeps_mode(self, generator):
        await generator.generate_brief(BriefMode.WEEKEND)
        refreshed = await generator.refresh_brief()
        assert refreshed.mode == BriefMode.WEEKEND

    @pytest.mark.asyncio
    async def test_no_sources_gives_empty_brief(self, store):
        generator = build_generator(InMemoryCatalog(), store)
        brief = await generator.generate_brief(BriefMode.STANDARD)

        assert brief is not None
        assert len(brief.items) == 0
        assert brief.read_time == 0
        assert generator.last_error is None
        assert generator.generation_state == GenerationState.LOADED

    @pytest.mark.asyncio
    async def test_empty_sources_give_empty_brief(self, store, article_source):
        catalog = InMemoryCatalog()
        catalog.add_source(article_source, [])
        generator = build_generator(catalog, store)

        brief = await generator.generate_brief(BriefMode.RUSH)
        assert len(brief.items) == 0
        assert generator.last_error is None

    @pytest.mark.asyncio
    async def test_stale_items_are_dropped(self, store, article_source, reddit_source):
        catalog = InMemoryCatalog()
        catalog.add_source(article_source, [make_item("stale", article_source, hours_ago=72)])
        catalog.add_source(reddit_source, [make_item("fresh", reddit_source, hours_ago=3)])
        generator = build_generator(catalog, store)

        brief = await generator.generate_brief(BriefMode.STANDARD)
        assert [item.content.id for item in brief.items] == ["fresh"]

    @pytest.mark.asyncio
    async def test_duplicate_content_is_collapsed(self, store, article_source):
        item = make_item("shared", article_source, hours_ago=1)
        catalog = InMemoryCatalog()
        catalog.add_source(article_source, [item, item])
        generator = build_generator(catalog, store)

        brief = await generator.generate_brief(BriefMode.STANDARD)
        assert [i.content.id for i in brief.items] == ["shared"]

    @pytest.mark.asyncio
    async def test_deselected_sources_are_ignored(self, catalog, generator, podcast_source, reddit_source):
        catalog.deselect(podcast_source.id)
        catalog.deselect(reddit_source.id)
        brief = await generator.generate_brief(BriefMode.WEEKEND)
        assert {item.content.content_type for item in brief.items} == {SourceType.ARTICLE}


class TestFailures:
    """Test partial and catalog-wide failures"""

    @pytest.mark.asyncio
    async def test_failing_source_is_isolated(self, catalog, generator, reddit_source):
        catalog.failing[reddit_source.id] = RuntimeError("rate limited")
        brief = await generator.generate_brief(BriefMode.STANDARD)

        assert brief is not None
        assert generator.last_error is None
        assert reddit_source.id not in brief.source_ids
        assert brief.items

    @pytest.mark.asyncio
    async def test_slow_source_times_out(self, catalog, store, reddit_source):
        catalog.stalled.add(reddit_source.id)
        generator = build_generator(catalog, store, config=Config(catalog={"fetch_timeout_seconds": 0.05}))

        brief = await generator.generate_brief(BriefMode.STANDARD)
        assert brief is not None
        assert reddit_source.id not in brief.source_ids

    @pytest.mark.asyncio
    async def test_all_sources_failing_gives_empty_brief(self, catalog, generator):
        for source_id in list(catalog.sources):
            catalog.failing[source_id] = ConnectionError("offline")
        brief = await generator.generate_brief(BriefMode.STANDARD)
        assert brief is not None
        assert len(brief.items) == 0
        assert generator.last_error is None

    @pytest.mark.asyncio
    async def test_unavailable_catalog_keeps_previous_brief(self, catalog, generator):
        previous = await generator.generate_brief(BriefMode.STANDARD)
        catalog.unavailable = True

        result = await generator.generate_brief(BriefMode.STANDARD)

        assert result is None
        assert generator.current_brief is previous
        assert isinstance(generator.last_error, CatalogUnavailableError)
        assert generator.generation_state == GenerationState.FAILED
        assert not generator.is_generating

    @pytest.mark.asyncio
    async def test_unavailable_catalog_on_first_run(self, catalog, generator):
        catalog.unavailable = True
        assert await generator.generate_brief() is None
        assert generator.current_brief is None
        assert generator.last_error is not None

    @pytest.mark.asyncio
    async def test_unavailable_error_from_fetch_fails_run(self, catalog, generator, podcast_source):
        catalog.failing[podcast_source.id] = CatalogUnavailableError("backend down")
        assert await generator.generate_brief(BriefMode.STANDARD) is None
        assert isinstance(generator.last_error, CatalogUnavailableError)

    @pytest.mark.asyncio
    async def test_unexpected_error_is_wrapped(self, catalog, store):
        scorer = Mock()
        scorer.score.side_effect = ValueError("bad weights")
        generator = build_generator(catalog, store, scorer=scorer)

        assert await generator.generate_brief(BriefMode.STANDARD) is None
        assert isinstance(generator.last_error, BriefGenerationError)
        assert isinstance(generator.last_error.__cause__, ValueError)

    @pytest.mark.asyncio
    async def test_success_clears_last_error(self, catalog, generator):
        catalog.unavailable = True
        await generator.generate_brief()
        catalog.unavailable = False

        assert await generator.generate_brief(BriefMode.STANDARD) is not None
        assert generator.last_error is None
        assert generator.generation_state == GenerationState.LOADED

    @pytest.mark.asyncio
    async def test_history_failure_does_not_fail_run(self, catalog):
        store = Mock()
        store.snapshot.side_effect = EngagementStoreError("locked")
        generator = build_generator(catalog, store)

        assert await generator.generate_brief(BriefMode.STANDARD) is not None


class TestConcurrency:
    """Test single-flight generation"""

    @pytest.mark.asyncio
    async def test_concurrent_calls_join_in_flight_run(self, catalog, generator):
        catalog.gate = asyncio.Event()

        first = asyncio.ensure_future(generator.generate_brief(BriefMode.STANDARD))
        second = asyncio.ensure_future(generator.generate_brief(BriefMode.RUSH))
        await asyncio.sleep(0)

        assert generator.is_generating
        assert generator.generation_state == GenerationState.GENERATING

        catalog.gate.set()
        first_brief, second_brief = await asyncio.gather(first, second)

        assert first_brief is second_brief
        assert first_brief.mode == BriefMode.STANDARD
        assert catalog.fetches == len(catalog.sources)
        assert not generator.is_generating

    @pytest.mark.asyncio
    async def test_cancelled_caller_does_not_stop_generation(self, catalog, generator):
        catalog.gate = asyncio.Event()
        caller = asyncio.ensure_future(generator.generate_brief(BriefMode.STANDARD))
        await asyncio.sleep(0)

        caller.cancel()
        with pytest.raises(asyncio.CancelledError):
            await caller
        assert generator.is_generating

        catalog.gate.set()
        brief = await generator.generate_brief(BriefMode.RUSH)
        assert brief.mode == BriefMode.STANDARD
        assert not generator.is_generating


class TestStateListeners:
    """Test state publication"""

    @pytest.mark.asyncio
    async def test_listener_sees_transitions(self, generator):
        states = []
        generator.subscribe(states.append)

        await generator.generate_brief(BriefMode.STANDARD)

        assert [s.state for s in states] == [GenerationState.GENERATING, GenerationState.LOADED]
        assert states[0].is_generating
        assert states[-1].current_brief is generator.current_brief

    @pytest.mark.asyncio
    async def test_unsubscribe(self, generator):
        states = []
        unsubscribe = generator.subscribe(states.append)
        unsubscribe()

        await generator.generate_brief(BriefMode.STANDARD)
        assert states == []

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_break_generation(self, generator):
        generator.subscribe(Mock(side_effect=RuntimeError("ui gone")))
        assert await generator.generate_brief(BriefMode.STANDARD) is not None


class TestEngagement:
    """Test engagement recording"""

    @pytest.mark.asyncio
    async def test_record_does_not_alter_current_brief(self, generator, store):
        brief = await generator.generate_brief(BriefMode.STANDARD)
        item = brief.items[0]

        recorded = generator.record_engagement(item.id, item.content.id, 42.0, EngagementAction.CLICKED)

        assert recorded
        assert generator.current_brief is brief
        stored, = store.records()
        assert stored.brief_item_id == item.id
        assert stored.source_id == item.content.source.id
        assert stored.category == item.category
        assert stored.recorded_at == NOW

    def test_record_without_brief(self, generator, store):
        assert generator.record_engagement("unknown", "content-1", 5, "viewed")
        stored, = store.records()
        assert stored.source_id is None
        assert stored.action == EngagementAction.VIEWED

    @pytest.mark.parametrize("time_spent", [-10, float("nan"), float("inf")])
    def test_bad_time_is_clamped(self, generator, store, time_spent):
        assert generator.record_engagement("b", "c", time_spent, EngagementAction.SKIPPED)
        assert store.records()[0].time_spent == 0.0

    def test_unknown_action_never_raises(self, generator, store):
        assert generator.record_engagement("b", "c", 10, "liked") is False
        assert generator.record_engagement("b", "c", "lots", "clicked") is False
        assert store.records() == []

    def test_store_failure_never_raises(self, catalog):
        store = Mock()
        store.append.side_effect = EngagementStoreError("disk full")
        generator = build_generator(catalog, store)
        assert generator.record_engagement("b", "c", 10, "clicked") is False

    @pytest.mark.asyncio
    async def test_engagement_shapes_next_brief(self, generator, article_source):
        brief = await generator.generate_brief(BriefMode.WEEKEND)
        article = next(i for i in brief.items if i.content.source.id == article_source.id)
        generator.record_engagement(article.id, article.content.id, 240, EngagementAction.COMPLETED)

        following = await generator.generate_brief(BriefMode.WEEKEND)
        from_source = [i for i in following.items if i.content.source.id == article_source.id]

        assert any(i.reason == SelectionReason.FOLLOW_UP for i in from_source)
        assert all(i.context for i in from_source)

    @pytest.mark.asyncio
    async def test_engagement_during_generation_waits_for_next_run(self, catalog, generator, store):
        first = await generator.generate_brief(BriefMode.STANDARD)
        item = first.items[0]

        catalog.gate = asyncio.Event()
        catalog.fetches = 0
        pending = asyncio.ensure_future(generator.generate_brief(BriefMode.STANDARD))
        # Fetching starts after the history snapshot was taken
        while catalog.fetches == 0:
            await asyncio.sleep(0)
        generator.record_engagement(item.id, item.content.id, 60, EngagementAction.CLICKED)
        catalog.gate.set()
        second = await pending

        assert all(i.reason != SelectionReason.FOLLOW_UP for i in second.items)
        assert len(store.records()) == 1
