"""
Error taxonomy for the matching engine.

Terminal errors abort a whole match and reach the caller.  Each one
carries a stable ``kind`` string and the HTTP-equivalent
``status_code`` the caller is expected to map it to.
`JudgeResponseError` is the exception: it is raised and caught inside
the judging stage and never escapes a match.
"""

from __future__ import annotations

from typing import Optional


class MatchError(Exception):
    """Base class for all matching errors."""

    kind = "match_error"
    status_code = 500


class ScorecardNotFoundError(MatchError):
    """The requested scorecard could not be loaded."""

    kind = "scorecard_not_found"
    status_code = 404

    def __init__(self, scorecard_id: str) -> None:
        super().__init__(f"Scorecard not found: {scorecard_id}")
        self.scorecard_id = scorecard_id


class NoEvidenceError(MatchError):
    """The profile contains no analysable text."""

    kind = "no_evidence"
    status_code = 400

    def __init__(self, message: str = "The profile contains no analysable text.") -> None:
        super().__init__(message)


class EmbeddingProviderError(MatchError):
    """The embedding provider failed or returned an unusable response."""

    kind = "embedding_provider_error"
    status_code = 502


class MatchTimeoutError(MatchError):
    """The whole match exceeded its time budget."""

    kind = "match_timeout"
    status_code = 504

    def __init__(self, timeout: Optional[float] = None) -> None:
        message = "Match timed out"
        if timeout is not None:
            message = f"Match timed out after {timeout:g}s"
        super().__init__(message)
        self.timeout = timeout


class InvalidScorecardError(MatchError, ValueError):
    """A scorecard definition violates the data model."""

    kind = "invalid_scorecard"
    status_code = 400


class JudgeResponseError(MatchError):
    """The LLM judge returned a response that could not be parsed."""

    kind = "judge_response_error"
    status_code = 502
