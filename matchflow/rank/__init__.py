"""
Ranking stages for matchflow: evidence retrieval, LLM judging and
score aggregation.
"""

from .llm_schema import CategoryResult, CriterionEvaluation, MatchResult  # noqa: F401
from .vector_rank import ProfileIndex  # noqa: F401
from .llm_providers import (  # noqa: F401
    GeminiProvider,
    LLMProvider,
    OpenAIProvider,
    PlaceholderProvider,
    get_default_provider,
)
from .llm_judge import AsyncJudge, default_evaluation, no_evidence_evaluation  # noqa: F401
from .aggregate import WeightedTally, aggregate_category, aggregate_overall, weighted_percentage  # noqa: F401
