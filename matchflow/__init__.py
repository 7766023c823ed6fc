"""
Matchflow package: profile-to-scorecard matching.

This package scores a candidate profile against a scorecard, a rubric
of weighted evaluation criteria grouped into categories.  Each
submodule implements one step of the matching pipeline.

The high‑level flow is:

1. **profile** – Normalise a loosely-typed profile record into a
   `Profile` and split it into short evidence chunks, one per fact.
2. **embed** – Map chunks (and criteria) to fixed-dimension vectors
   through a pluggable embedding provider.
3. **rank** – For each criterion, retrieve the most similar chunks,
   ask an LLM judge for a 1–5 score with a justification, and
   aggregate the scores into weighted category and overall scores.
4. **scorecard** – Scorecard data model and the repositories the
   engine loads scorecards from.
5. **match** – `MatchEngine`, which wires the stages together and runs
   all criterion evaluations concurrently.
6. **cli** – Command line entry point.
"""

from .errors import (  # noqa: F401
    EmbeddingProviderError,
    InvalidScorecardError,
    MatchError,
    MatchTimeoutError,
    NoEvidenceError,
    ScorecardNotFoundError,
)
from .match import MatchEngine  # noqa: F401

__version__ = "0.1.0"
