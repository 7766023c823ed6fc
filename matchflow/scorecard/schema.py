"""
Scorecard data model.

A scorecard is an ordered list of categories, each an ordered list of
weighted criteria.  Order matters for display only.  Category scores
are always derived, never stored.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, Optional

from ..errors import InvalidScorecardError

WEIGHT_LEVELS = {1: "low", 2: "medium", 3: "high"}
DEFAULT_WEIGHT = 2


def _parse_weight(value: Any, criterion_name: str) -> int:
    if value is None:
        return DEFAULT_WEIGHT
    if isinstance(value, bool):
        raise InvalidScorecardError(f"Criterion {criterion_name!r} has a boolean weight: {value!r}")
    if isinstance(value, str):
        lowered = value.strip().lower()
        for level, label in WEIGHT_LEVELS.items():
            if lowered == label:
                return level
    try:
        weight = int(value)
    except (TypeError, ValueError):
        raise InvalidScorecardError(
            f"Criterion {criterion_name!r} has a non-numeric weight: {value!r}"
        ) from None
    if weight != value and not isinstance(value, str):
        raise InvalidScorecardError(f"Criterion {criterion_name!r} has a fractional weight: {value!r}")
    return weight


def _parse_order(value: Any, position: int) -> int:
    if value is None:
        return position
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidScorecardError(f"Invalid order value: {value!r}") from None


@dataclass
class Criterion:
    """One named, weighted evaluation axis."""

    id: str
    name: str
    description: str = ""
    weight: int = DEFAULT_WEIGHT
    embedding: Optional[List[float]] = None
    order: int = 0

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise InvalidScorecardError(f"Criterion {self.id!r} has no name")
        if self.weight not in WEIGHT_LEVELS:
            raise InvalidScorecardError(
                f"Criterion {self.name!r} has weight {self.weight}; expected one of {sorted(WEIGHT_LEVELS)}"
            )

    @property
    def embedding_text(self) -> str:
        """Text embedded to retrieve evidence for this criterion."""
        if self.description:
            return f"{self.name}: {self.description}"
        return self.name

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], fallback_id: str, order: int = 0) -> "Criterion":
        name = str(data.get("name") or "").strip()
        embedding = data.get("embedding")
        return cls(
            id=str(data.get("id") or fallback_id),
            name=name,
            description=str(data.get("description") or "").strip(),
            weight=_parse_weight(data.get("weight"), name),
            embedding=[float(v) for v in embedding] if embedding else None,
            order=_parse_order(data.get("order"), order),
        )


@dataclass
class Category:
    """A named group of criteria."""

    id: str
    name: str
    criteria: List[Criterion] = field(default_factory=list)
    order: int = 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], fallback_id: str, order: int = 0) -> "Category":
        category_id = str(data.get("id") or fallback_id)
        criteria = [
            Criterion.from_dict(item, f"{category_id}-{index}", index)
            for index, item in enumerate(data.get("criteria") or [])
            if str(item.get("name") or "").strip()
        ]
        criteria.sort(key=lambda c: c.order)
        return cls(
            id=category_id,
            name=str(data.get("name") or "").strip(),
            criteria=criteria,
            order=_parse_order(data.get("order"), order),
        )


@dataclass
class Scorecard:
    """A rubric of weighted evaluation criteria grouped into categories."""

    id: str
    name: str
    categories: List[Category] = field(default_factory=list)

    def iter_criteria(self) -> Iterator[Criterion]:
        for category in self.categories:
            yield from category.criteria

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], fallback_id: Optional[str] = None) -> "Scorecard":
        """Build a scorecard from a mapping.

        Criteria without a name are skipped.  Categories and criteria
        are sorted by their ``order`` key, falling back to their
        position in the input.

        Raises:
            InvalidScorecardError: If the scorecard has no id or a
                criterion has an invalid weight.
        """
        scorecard_id = str(data.get("id") or fallback_id or "").strip()
        if not scorecard_id:
            raise InvalidScorecardError("Scorecard has no id")
        categories = [
            Category.from_dict(item, f"{scorecard_id}-cat-{index}", index)
            for index, item in enumerate(data.get("categories") or [])
        ]
        categories.sort(key=lambda c: c.order)
        return cls(
            id=scorecard_id,
            name=str(data.get("name") or scorecard_id).strip(),
            categories=categories,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "categories": [
                {
                    "id": category.id,
                    "name": category.name,
                    "order": category.order,
                    "criteria": [
                        {
                            "id": criterion.id,
                            "name": criterion.name,
                            "description": criterion.description,
                            "weight": criterion.weight,
                            "order": criterion.order,
                            "embedding": criterion.embedding,
                        }
                        for criterion in category.criteria
                    ],
                }
                for category in self.categories
            ],
        }
