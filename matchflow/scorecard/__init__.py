"""
Scorecard model and storage.
"""

from .schema import DEFAULT_WEIGHT, WEIGHT_LEVELS, Category, Criterion, Scorecard  # noqa: F401
from .repository import (  # noqa: F401
    FileScorecardRepository,
    InMemoryScorecardRepository,
    ScorecardRepository,
    embed_missing_criteria,
)
