"""
LLM judging stage.

Each criterion of a scorecard is judged independently: the evidence
retrieved for it is handed to an LLM provider, which answers with a
1‑5 score and a one sentence justification.  Providers are synchronous,
so calls run in a thread pool owned by the match and are awaited from
asyncio, bounded by a semaphore.

Judging never aborts a match.  A criterion without evidence is not
sent to the provider at all, and any provider failure (timeout, error
or unparseable reply) is retried and finally replaced by a default
evaluation with score 1.
"""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import Executor
from typing import List, Optional, Sequence, Tuple

from ..errors import JudgeResponseError
from ..scorecard.schema import Criterion
from .llm_providers import MAX_SCORE, MIN_SCORE, LLMProvider, get_default_provider
from .llm_schema import STATUS_FAILED, STATUS_NO_EVIDENCE, CriterionEvaluation

logger = logging.getLogger(__name__)

UNEVALUATED_JUSTIFICATION = "This criterion could not be evaluated."
NO_EVIDENCE_JUSTIFICATION = "No relevant evidence was found in the profile."


def default_evaluation(criterion: Criterion, evidence: Sequence[str] = ()) -> CriterionEvaluation:
    """Evaluation recorded when the judge could not produce a verdict."""
    return CriterionEvaluation(
        criterion_name=criterion.name,
        score=MIN_SCORE,
        justification=UNEVALUATED_JUSTIFICATION,
        status=STATUS_FAILED,
        evidence=list(evidence),
    )


def no_evidence_evaluation(criterion: Criterion) -> CriterionEvaluation:
    """Floor evaluation for a criterion the profile has no evidence for."""
    return CriterionEvaluation(
        criterion_name=criterion.name,
        score=MIN_SCORE,
        justification=NO_EVIDENCE_JUSTIFICATION,
        status=STATUS_NO_EVIDENCE,
    )


class AsyncJudge:
    """Concurrent, fault tolerant wrapper around an `LLMProvider`.

    Create one per match.  The semaphore is bound to the event loop
    that first uses it.

    Args:
        provider: Provider to delegate to.  Defaults to
            :func:`get_default_provider`.
        max_concurrent: Maximum number of provider calls in flight.
        timeout: Seconds allowed for a single attempt.
        retries: Extra attempts after the first one fails.
        retry_delay: Seconds to wait before each retry.
        executor: Thread pool the blocking provider calls run on.
            ``None`` uses the event loop's default executor.
    """

    def __init__(
        self,
        provider: Optional[LLMProvider] = None,
        max_concurrent: int = 8,
        timeout: float = 8.0,
        retries: int = 1,
        retry_delay: float = 0.5,
        executor: Optional[Executor] = None,
    ) -> None:
        self.provider = provider or get_default_provider()
        self.max_concurrent = max_concurrent
        self.timeout = timeout
        self.retries = retries
        self.retry_delay = retry_delay
        self.executor = executor
        self._semaphore: Optional[asyncio.Semaphore] = None

    def _get_semaphore(self) -> asyncio.Semaphore:
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self.max_concurrent)
        return self._semaphore

    async def _call_provider(self, criterion: Criterion, evidence: List[str]) -> Tuple[int, str]:
        loop = asyncio.get_running_loop()
        async with self._get_semaphore():
            score, justification = await asyncio.wait_for(
                loop.run_in_executor(
                    self.executor,
                    self.provider.judge,
                    criterion.name,
                    criterion.description,
                    evidence,
                ),
                timeout=self.timeout,
            )
        if isinstance(score, bool) or not MIN_SCORE <= int(score) <= MAX_SCORE:
            raise JudgeResponseError(f"Score {score!r} is outside {MIN_SCORE}-{MAX_SCORE}")
        return int(score), justification

    async def judge(self, criterion: Criterion, evidence: Sequence[str]) -> Optional[CriterionEvaluation]:
        """Judge ``criterion`` against ``evidence``.

        Returns:
            ``None`` when ``evidence`` is empty (the provider is not
            called), otherwise the provider's evaluation or, after all
            attempts failed, :func:`default_evaluation`.
        """
        chunks = [c for c in evidence if c]
        if not chunks:
            logger.debug("No evidence for criterion %r; skipping judge", criterion.name)
            return None
        delays = [0.0] + [self.retry_delay] * self.retries
        for attempt, delay in enumerate(delays):
            if delay:
                await asyncio.sleep(delay)
            try:
                score, justification = await self._call_provider(criterion, chunks)
            except asyncio.TimeoutError:
                logger.warning(
                    "Judge timed out after %ss for criterion %r (attempt %d/%d)",
                    self.timeout, criterion.name, attempt + 1, len(delays),
                )
                continue
            except Exception as exc:  # noqa: BLE001
                logger.warning(
                    "Judge failed for criterion %r (attempt %d/%d): %s",
                    criterion.name, attempt + 1, len(delays), exc,
                )
                continue
            logger.debug("Criterion %r scored %d", criterion.name, score)
            return CriterionEvaluation(
                criterion_name=criterion.name,
                score=score,
                justification=justification or "No justification provided.",
                evidence=chunks,
            )
        logger.error("Giving up on criterion %r after %d attempts", criterion.name, len(delays))
        return default_evaluation(criterion, chunks)
