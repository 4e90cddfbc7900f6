"""
Daily brief generation.

DailyBriefGenerator ties the catalog, engagement history, scorer, selector,
summarizer and read-time estimator together and owns the observable brief
state (idle -> generating -> loaded | failed). One generation runs at a time
per generator; concurrent callers join the run in flight.
"""
import asyncio
import math
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, List, Optional, Union

from pydantic import BaseModel, ConfigDict

from daybrief.aggregators.base import BaseCatalog, CatalogError, CatalogUnavailableError
from daybrief.engine.mode_policy import ModePolicy
from daybrief.processors.content_processor import ContentProcessor
from daybrief.processors.read_time import ReadTimeEstimator
from daybrief.processors.scorer import ContentScorer
from daybrief.processors.selector import DiversitySelector
from daybrief.storage.engagement_store import (
    EngagementHistory,
    EngagementStore,
    EngagementStoreError,
)
from daybrief.summarizers.brief_summarizer import BriefSummarizer
from daybrief.utils.config import Config
from daybrief.utils.constants import EngagementConstants
from daybrief.utils.logger import logger
from daybrief.utils.models import (
    BriefItem,
    BriefMode,
    ContentItem,
    DailyBrief,
    EngagementAction,
    EngagementRecord,
    SelectedCandidate,
    ensure_utc,
    utcnow,
)


class BriefGenerationError(Exception):
    """Raised (and kept as last_error) when a generation fails unexpectedly."""

    pass


class GenerationState(str, Enum):
    IDLE = "idle"
    GENERATING = "generating"
    LOADED = "loaded"
    FAILED = "failed"


class BriefState(BaseModel):
    """Snapshot of the generator state handed to listeners"""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    state: GenerationState = GenerationState.IDLE
    current_brief: Optional[DailyBrief] = None
    is_generating: bool = False
    last_error: Optional[Exception] = None


StateListener = Callable[[BriefState], None]


class DailyBriefGenerator:
    """Generates daily briefs and publishes the result as observable state"""

    def __init__(
        self,
        catalog: BaseCatalog,
        engagement_store: EngagementStore,
        config: Optional[Config] = None,
        scorer: Optional[ContentScorer] = None,
        selector: Optional[DiversitySelector] = None,
        summarizer: Optional[BriefSummarizer] = None,
        estimator: Optional[ReadTimeEstimator] = None,
        mode_policy: Optional[ModePolicy] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.catalog = catalog
        self.engagement_store = engagement_store
        self.config = config or Config()
        self.scorer = scorer or ContentScorer(self.config.scoring)
        self.selector = selector or DiversitySelector(
            self.config.selection, estimator or ReadTimeEstimator()
        )
        # Budget checks and reported read time must use the same estimator
        self.estimator = self.selector.estimator
        self.summarizer = summarizer or BriefSummarizer()
        self.mode_policy = mode_policy or ModePolicy(self.config.modes)
        self.clock = clock
        self.content_processor = ContentProcessor()

        self._state = BriefState()
        self._listeners: List[StateListener] = []
        self._inflight: Optional[asyncio.Future] = None

    # Observable state

    @property
    def state(self) -> BriefState:
        return self._state

    @property
    def generation_state(self) -> GenerationState:
        return self._state.state

    @property
    def current_brief(self) -> Optional[DailyBrief]:
        return self._state.current_brief

    @property
    def is_generating(self) -> bool:
        return self._state.is_generating

    @property
    def last_error(self) -> Optional[Exception]:
        return self._state.last_error

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a state listener; returns a callable that unregisters it"""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self, **changes) -> None:
        self._state = self._state.model_copy(update=changes)
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception as e:
                logger.error(f"Brief state listener failed: {e}")

    # Generation

    async def generate_brief(self, mode: Optional[BriefMode] = None) -> Optional[DailyBrief]:
        """
        Generate a brief, publishing it as current_brief.

        Returns None when the run failed; the error is kept in last_error and
        the previous brief stays current. A call made while a generation is in
        flight joins that generation and receives its result.
        """
        if self._inflight is not None and not self._inflight.done():
            logger.info("Brief generation already in progress, joining it")
            return await asyncio.shield(self._inflight)

        self._publish(state=GenerationState.GENERATING, is_generating=True)
        self._inflight = asyncio.ensure_future(self._run(mode))
        return await asyncio.shield(self._inflight)

    async def refresh_brief(self) -> Optional[DailyBrief]:
        """Regenerate with the current brief's mode, or an auto-detected one"""
        mode = self.current_brief.mode if self.current_brief else None
        return await self.generate_brief(mode)

    async def _run(self, mode: Optional[BriefMode]) -> Optional[DailyBrief]:
        started = self.clock()
        try:
            now = ensure_utc(started)
            resolved_mode = mode or self.mode_policy.detect(now)
            # History snapshot is taken once so engagement recorded meanwhile
            # only affects later generations
            history = self._history_snapshot(now)
            candidates = await self._collect_candidates(now)
            brief = self.assemble(candidates, resolved_mode, history, now)

        except asyncio.CancelledError:
            self._publish(
                state=GenerationState.FAILED,
                is_generating=False,
                last_error=BriefGenerationError("Brief generation was cancelled"),
            )
            raise

        except CatalogError as e:
            logger.error(f"Brief generation failed, catalog unavailable: {e}")
            self._publish(state=GenerationState.FAILED, is_generating=False, last_error=e)
            return None

        except Exception as e:
            logger.error(f"Brief generation failed: {e}")
            error = BriefGenerationError(f"Brief generation failed: {e}")
            error.__cause__ = e
            self._publish(state=GenerationState.FAILED, is_generating=False, last_error=error)
            return None

        self._publish(
            state=GenerationState.LOADED,
            current_brief=brief,
            is_generating=False,
            last_error=None,
        )
        logger.info(
            f"Generated {brief.mode.value} brief with {len(brief.items)} items "
            f"from {len(candidates)} candidates (~{brief.read_time_minutes} min read)"
        )
        return brief

    def _history_snapshot(self, now: datetime) -> EngagementHistory:
        try:
            return self.engagement_store.snapshot(now)
        except EngagementStoreError as e:
            logger.warning(f"Engagement history unavailable, scoring without it: {e}")
            return EngagementHistory.empty()

    async def _collect_candidates(self, now: datetime) -> List[ContentItem]:
        """Fetch every selected source concurrently, isolating per-source failures"""
        source_ids = sorted(await self.catalog.get_selected_source_ids())
        if not source_ids:
            logger.info("No sources selected")
            return []

        results = await asyncio.gather(
            *(self._fetch_source(source_id) for source_id in source_ids),
            return_exceptions=True,
        )

        max_age = self.config.catalog.max_item_age_hours
        cutoff = now - timedelta(hours=max_age) if max_age else None

        candidates: List[ContentItem] = []
        seen_ids = set()
        failed = 0

        for source_id, result in zip(source_ids, results):
            if isinstance(result, CatalogUnavailableError):
                raise result
            if isinstance(result, asyncio.TimeoutError):
                failed += 1
                logger.warning(f"Timed out fetching source {source_id}")
                continue
            if isinstance(result, BaseException):
                failed += 1
                logger.warning(f"Failed to fetch source {source_id}: {result}")
                continue

            for item in result or []:
                if not isinstance(item, ContentItem):
                    logger.warning(f"Ignoring non-item entry from source {source_id}")
                    continue
                if cutoff is not None and item.published_at < cutoff:
                    continue
                if item.id in seen_ids:
                    continue
                seen_ids.add(item.id)
                candidates.append(item)

        if failed:
            logger.warning(f"{failed}/{len(source_ids)} sources failed, continuing with the rest")
        return candidates

    async def _fetch_source(self, source_id: str) -> List[ContentItem]:
        return await asyncio.wait_for(
            self.catalog.fetch_candidates(source_id),
            timeout=self.config.catalog.fetch_timeout_seconds,
        )

    def assemble(
        self,
        candidates: List[ContentItem],
        mode: BriefMode,
        history: Optional[EngagementHistory] = None,
        now: Optional[datetime] = None,
    ) -> DailyBrief:
        """Score, select and summarize candidates into a brief"""
        history = history or EngagementHistory.empty()
        now = ensure_utc(now) if now else utcnow()

        scored = self.scorer.score(candidates, history, now)
        selected = self.selector.select(scored, mode)
        items = [self._build_item(s, mode, history) for s in selected]

        return DailyBrief(
            items=tuple(items),
            read_time=sum(item.estimated_seconds for item in items),
            mode=mode,
            created_at=now,
        )

    def _build_item(self, selected: SelectedCandidate, mode: BriefMode, history: EngagementHistory) -> BriefItem:
        summary, category = self.summarizer.summarize(selected.item, mode, selected.reason)
        return BriefItem(
            content=selected.item,
            reason=selected.reason,
            summary=summary,
            category=category,
            priority=selected.priority,
            context=self.summarizer.context_for(selected.item, history),
            estimated_seconds=selected.estimated_seconds,
        )

    # Engagement

    def record_engagement(
        self,
        brief_item_id: str,
        content_id: str,
        time_spent: float,
        action: Union[EngagementAction, str],
        content: Optional[ContentItem] = None,
    ) -> bool:
        """
        Append an engagement record for a brief item.

        The item is looked up in the current brief to attach its source,
        category and topics; `content` is used when it is not found there.
        Never raises; returns False when the record could not be stored.
        Does not trigger regeneration.
        """
        try:
            action = EngagementAction(action)
            seconds = float(time_spent)
            if not math.isfinite(seconds) or seconds < 0:
                seconds = 0.0

            category = None
            brief_item = self._find_brief_item(brief_item_id, content_id)
            if brief_item is not None:
                content = brief_item.content
                category = brief_item.category

            source_id = None
            topics = ()
            if content is not None:
                source_id = content.source.id
                topics = self.content_processor.item_topics(content)
                topics = topics[:EngagementConstants.MAX_TOPICS_PER_RECORD]

            record = EngagementRecord(
                brief_item_id=str(brief_item_id),
                content_id=str(content_id),
                time_spent=seconds,
                action=action,
                recorded_at=self.clock(),
                source_id=source_id,
                category=category,
                topics=topics,
            )
            self.engagement_store.append(record)
            logger.debug(f"Recorded {action.value} on content {content_id}")
            return True

        except Exception as e:
            logger.warning(f"Could not record engagement for content {content_id}: {e}")
            return False

    def _find_brief_item(self, brief_item_id: str, content_id: str) -> Optional[BriefItem]:
        brief = self.current_brief
        if brief is None:
            return None
        item = brief.find_item(brief_item_id)
        if item is None:
            item = next((i for i in brief.items if i.content.id == content_id), None)
        return item
