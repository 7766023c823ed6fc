"""
Score aggregation.

Combines per-criterion judge scores into a 0‑100 score per category
and an overall 0‑100 score.  Both use the same weighted ratio::

    round(100 * sum(score_i * weight_i) / sum(MAX_SCORE * weight_i))

Criteria without an evaluation are left out of both sums.  The overall
score is computed from the raw weighted sums of all categories, not by
averaging category percentages, so a category with a few heavily
weighted criteria is not diluted by one with many light ones.  A zero
denominator gives a score of 0.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from .llm_providers import MAX_SCORE
from .llm_schema import CategoryResult, CriterionEvaluation

logger = logging.getLogger(__name__)


@dataclass
class WeightedTally:
    """Raw weighted sums behind a percentage score."""

    earned: float = 0.0
    possible: float = 0.0

    def add(self, score: float, weight: float) -> None:
        self.earned += score * weight
        self.possible += MAX_SCORE * weight

    def merge(self, other: "WeightedTally") -> None:
        self.earned += other.earned
        self.possible += other.possible

    @property
    def percentage(self) -> int:
        return weighted_percentage(self.earned, self.possible)


def weighted_percentage(earned: float, possible: float) -> int:
    """Return ``earned / possible`` as an integer percentage in [0, 100].

    Rounds half up.  Returns 0 when ``possible`` is not positive.
    """
    if possible <= 0:
        return 0
    value = math.floor(100.0 * earned / possible + 0.5)
    return max(0, min(100, int(value)))


def aggregate_category(
    name: str,
    results: Iterable[Tuple[Optional[CriterionEvaluation], int]],
) -> Tuple[CategoryResult, WeightedTally]:
    """Aggregate the evaluations of one category.

    Args:
        name: Category name.
        results: ``(evaluation, weight)`` pairs in criterion order.  An
            evaluation of ``None`` marks an excluded criterion.

    Returns:
        The `CategoryResult` and the tally to feed into the overall score.
    """
    tally = WeightedTally()
    evaluations: List[CriterionEvaluation] = []
    for evaluation, weight in results:
        if evaluation is None:
            continue
        tally.add(evaluation.score, weight)
        evaluations.append(evaluation)
    result = CategoryResult(name=name, score=tally.percentage, criteria=evaluations)
    logger.debug("Category %r scored %d from %d criteria", name, result.score, len(evaluations))
    return result, tally


def aggregate_overall(tallies: Iterable[WeightedTally]) -> int:
    """Overall score across the raw tallies of every category."""
    total = WeightedTally()
    for tally in tallies:
        total.merge(tally)
    return total.percentage
