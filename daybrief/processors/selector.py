"""
Budgeted, diversity-constrained selection of scored candidates
"""
import math
from collections import Counter
from typing import List, Optional, Sequence

from daybrief.processors.read_time import ReadTimeEstimator
from daybrief.utils.config import SelectionConfig
from daybrief.utils.constants import SelectionConstants
from daybrief.utils.logger import logger
from daybrief.utils.models import BriefMode, ScoredCandidate, SelectedCandidate


class DiversitySelector:
    """Greedy selection under a mode budget that keeps content types mixed"""

    def __init__(
        self,
        config: Optional[SelectionConfig] = None,
        estimator: Optional[ReadTimeEstimator] = None,
    ):
        self.config = config or SelectionConfig()
        self.estimator = estimator or ReadTimeEstimator()

    @staticmethod
    def rank(scored: Sequence[ScoredCandidate]) -> List[ScoredCandidate]:
        """Score descending, then newest first, then source and item id for determinism"""
        return sorted(
            scored,
            key=lambda c: (
                -c.score,
                -c.item.published_at.timestamp(),
                c.item.source.id,
                c.item.id,
            ),
        )

    def read_time_ceiling(self, mode: BriefMode) -> float:
        return mode.target_read_time * self.config.slack_factor

    def select(self, scored: Sequence[ScoredCandidate], mode: BriefMode) -> List[SelectedCandidate]:
        """Pick candidates for a brief in the given mode, in priority order"""
        if not scored:
            return []

        ranked = self.rank(scored)
        estimates = [self.estimator.estimate(c.item) for c in ranked]
        ceiling = self.read_time_ceiling(mode)
        max_items = mode.max_items
        type_cap = max(1, math.floor(max_items * self.config.max_type_share))

        admitted: List[int] = []
        deferred: List[int] = []
        type_counts: Counter = Counter()
        total = 0.0

        for idx, candidate in enumerate(ranked):
            if len(admitted) >= max_items:
                break
            if total + estimates[idx] > ceiling:
                continue
            content_type = candidate.item.content_type
            if type_counts[content_type] >= type_cap:
                deferred.append(idx)
                continue
            admitted.append(idx)
            type_counts[content_type] += 1
            total += estimates[idx]

        # Fill leftover slots with items held back by the type cap
        for idx in deferred:
            if len(admitted) >= max_items:
                break
            if total + estimates[idx] > ceiling:
                continue
            admitted.append(idx)
            total += estimates[idx]

        admitted.sort()
        admitted = self._enforce_diversity(ranked, estimates, admitted, ceiling, max_items)

        selected = [
            SelectedCandidate(candidate=ranked[idx], priority=priority, estimated_seconds=estimates[idx])
            for priority, idx in enumerate(admitted)
        ]

        logger.debug(
            f"Selected {len(selected)}/{len(ranked)} candidates for {mode.value} mode "
            f"({sum(s.estimated_seconds for s in selected):.0f}s of {ceiling:.0f}s ceiling)"
        )
        return selected

    def _enforce_diversity(
        self,
        ranked: List[ScoredCandidate],
        estimates: List[float],
        admitted: List[int],
        ceiling: float,
        max_items: int,
    ) -> List[int]:
        """Make the admitted set span two content types when feasible candidates allow it"""
        if not admitted or max_items < SelectionConstants.MIN_DISTINCT_TYPES:
            return admitted

        feasible_types = {
            ranked[idx].item.content_type
            for idx in range(len(ranked))
            if estimates[idx] <= ceiling
        }
        admitted_types = {ranked[idx].item.content_type for idx in admitted}
        if (len(feasible_types) < SelectionConstants.MIN_DISTINCT_TYPES
                or len(admitted_types) >= SelectionConstants.MIN_DISTINCT_TYPES):
            return admitted

        dominant = next(iter(admitted_types))
        admitted_set = set(admitted)
        alternatives = [
            idx for idx in range(len(ranked))
            if idx not in admitted_set
            and ranked[idx].item.content_type != dominant
            and estimates[idx] <= ceiling
        ]

        # Rebuild around each alternative; prefer keeping the top item, then
        # keeping the most items, then the better-ranked alternative
        best: Optional[List[int]] = None
        best_key = None
        for rank_pos, pick in enumerate(alternatives):
            kept = self._rebuild_around(pick, ranked, estimates, admitted, ceiling, max_items)
            if len({ranked[idx].item.content_type for idx in kept}) < SelectionConstants.MIN_DISTINCT_TYPES:
                continue
            key = (admitted[0] in kept, len(kept), -rank_pos)
            if best_key is None or key > best_key:
                best, best_key = kept, key

        if best is None:
            return admitted

        picked = [idx for idx in best if ranked[idx].item.content_type != dominant]
        logger.debug(
            f"Diversity pick: admitted {ranked[picked[0]].item.content_type.value} item "
            f"'{ranked[picked[0]].item.title}' alongside {dominant.value} items"
        )
        return sorted(best)

    @staticmethod
    def _rebuild_around(
        pick: int,
        ranked: List[ScoredCandidate],
        estimates: List[float],
        admitted: List[int],
        ceiling: float,
        max_items: int,
    ) -> List[int]:
        """Seed with `pick`, re-admit admitted items that still fit, then add another type if none did"""
        kept = [pick]
        total = estimates[pick]

        for idx in admitted:
            if len(kept) >= max_items:
                break
            if total + estimates[idx] <= ceiling:
                kept.append(idx)
                total += estimates[idx]

        pick_type = ranked[pick].item.content_type
        if all(ranked[idx].item.content_type == pick_type for idx in kept) and len(kept) < max_items:
            partner = next(
                (
                    idx for idx in range(len(ranked))
                    if idx not in kept
                    and ranked[idx].item.content_type != pick_type
                    and total + estimates[idx] <= ceiling
                ),
                None,
            )
            if partner is not None:
                kept.append(partner)

        return kept
