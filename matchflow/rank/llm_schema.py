"""
Match result schema.

Dataclasses describing the outcome of matching a profile against a
scorecard.  A `CriterionEvaluation` is the judge's verdict on one
criterion: an integer score from 1 to 5 and a short justification.
`CategoryResult` groups evaluations with a derived 0‑100 score and
`MatchResult` is the complete report returned to callers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List

STATUS_EVALUATED = "evaluated"
STATUS_NO_EVIDENCE = "no_evidence"
STATUS_FAILED = "failed"


@dataclass
class CriterionEvaluation:
    """Verdict of the judge on a single criterion."""

    criterion_name: str
    score: int
    justification: str
    status: str = STATUS_EVALUATED
    evidence: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "criterion_name": self.criterion_name,
            "score": self.score,
            "justification": self.justification,
            "status": self.status,
            "evidence": list(self.evidence),
        }


@dataclass
class CategoryResult:
    """Scored category with the evaluations that contributed to it."""

    name: str
    score: int
    criteria: List[CriterionEvaluation] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "score": self.score,
            "criteria": [c.to_dict() for c in self.criteria],
        }


@dataclass
class MatchResult:
    """Full report of a profile/scorecard match."""

    overall_score: int
    profile_name: str
    profile_headline: str
    categories: List[CategoryResult] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Serialise into a JSON-ready mapping."""
        return {
            "overall_score": self.overall_score,
            "profile_name": self.profile_name,
            "profile_headline": self.profile_headline,
            "categories": [c.to_dict() for c in self.categories],
        }
