"""
Match orchestration.

`MatchEngine.analyze` runs the whole pipeline for one profile and one
scorecard:

1. load the scorecard (missing → `ScorecardNotFoundError`);
2. chunk the profile (nothing to analyse → `NoEvidenceError`);
3. embed all chunks in a single batch (failure → `EmbeddingProviderError`);
   stored criterion embeddings of another size → `InvalidScorecardError`;
4. for every criterion of every category, concurrently retrieve the
   top-K evidence chunks and judge the criterion;
5. aggregate per category, then overall.

Steps 1‑3 are terminal on failure.  Failures inside step 4 stay local
to the criterion and are turned into default evaluations.
"""

from __future__ import annotations

import asyncio
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, List, Mapping, Optional, Tuple, Union

from .config import MatchSettings
from .embed.gateway import EmbeddingGateway
from .errors import EmbeddingProviderError, InvalidScorecardError, MatchTimeoutError, ScorecardNotFoundError
from .profile.chunker import chunk_profile
from .profile.schema import Profile
from .rank.aggregate import aggregate_category, aggregate_overall
from .rank.llm_judge import AsyncJudge, default_evaluation, no_evidence_evaluation
from .rank.llm_providers import LLMProvider, get_default_provider
from .rank.llm_schema import CategoryResult, CriterionEvaluation, MatchResult
from .rank.vector_rank import ProfileIndex
from .scorecard.repository import ScorecardRepository
from .scorecard.schema import Criterion, Scorecard

logger = logging.getLogger(__name__)


class MatchEngine:
    """Scores candidate profiles against stored scorecards.

    The engine itself holds no per-request state, so one instance can
    serve any number of concurrent matches.

    Args:
        repository: Where scorecards are loaded from.
        embedder: Embedding gateway for profile chunks.  Defaults to a
            gateway over :func:`get_default_embedding_provider`.
        judge_provider: LLM provider used to judge criteria.  Defaults
            to :func:`get_default_provider`.
        settings: Matching parameters.  Defaults to `MatchSettings()`.
    """

    def __init__(
        self,
        repository: ScorecardRepository,
        embedder: Optional[EmbeddingGateway] = None,
        judge_provider: Optional[LLMProvider] = None,
        settings: Optional[MatchSettings] = None,
    ) -> None:
        self.repository = repository
        self.embedder = embedder or EmbeddingGateway()
        self.judge_provider = judge_provider or get_default_provider()
        self.settings = settings or MatchSettings()

    async def analyze(
        self,
        scorecard_id: str,
        profile_data: Union[Profile, Mapping[str, Any], None],
        timeout: Optional[float] = None,
    ) -> MatchResult:
        """Match a profile against the scorecard ``scorecard_id``.

        Args:
            scorecard_id: Id of the scorecard to evaluate against.
            profile_data: A `Profile` or a raw profile mapping.
            timeout: Time budget in seconds for the whole match.
                Defaults to ``settings.match_timeout``; ``None`` means
                no limit.

        Raises:
            ScorecardNotFoundError: The scorecard does not exist.
            NoEvidenceError: The profile has no analysable text.
            EmbeddingProviderError: Embedding the profile failed.
            InvalidScorecardError: Stored criterion embeddings do not
                have the size of the profile embeddings.
            MatchTimeoutError: The time budget ran out.
        """
        budget = timeout if timeout is not None else self.settings.match_timeout
        if budget is None:
            return await self._analyze(scorecard_id, profile_data)
        try:
            return await asyncio.wait_for(self._analyze(scorecard_id, profile_data), timeout=budget)
        except asyncio.TimeoutError as exc:
            logger.error("Match against scorecard %s timed out after %ss", scorecard_id, budget)
            raise MatchTimeoutError(budget) from exc

    def analyze_sync(
        self,
        scorecard_id: str,
        profile_data: Union[Profile, Mapping[str, Any], None],
        timeout: Optional[float] = None,
    ) -> MatchResult:
        """Blocking wrapper around :meth:`analyze` for non-async callers.

        Runs on a private event loop that is closed without joining
        worker threads, so a provider call still hanging after a
        timeout does not hold up the caller.
        """
        loop = asyncio.new_event_loop()
        try:
            return loop.run_until_complete(self.analyze(scorecard_id, profile_data, timeout=timeout))
        finally:
            try:
                loop.run_until_complete(loop.shutdown_asyncgens())
            finally:
                loop.close()

    async def _analyze(
        self,
        scorecard_id: str,
        profile_data: Union[Profile, Mapping[str, Any], None],
    ) -> MatchResult:
        settings = self.settings
        # Timed out attempts keep their thread until the provider returns.
        workers = settings.max_concurrent_judges * (settings.judge_retries + 1)
        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="matchflow")
        try:
            return await self._run(scorecard_id, profile_data, executor)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    async def _run(
        self,
        scorecard_id: str,
        profile_data: Union[Profile, Mapping[str, Any], None],
        executor: ThreadPoolExecutor,
    ) -> MatchResult:
        settings = self.settings
        started = time.perf_counter()
        loop = asyncio.get_running_loop()

        scorecard = await loop.run_in_executor(executor, self.repository.get_scorecard_by_id, scorecard_id)
        if scorecard is None:
            raise ScorecardNotFoundError(scorecard_id)

        profile = profile_data if isinstance(profile_data, Profile) else Profile.from_dict(profile_data)
        chunks = chunk_profile(profile)
        embeddings = await loop.run_in_executor(executor, self.embedder.embed, chunks)
        if len(embeddings) != len(chunks):
            raise EmbeddingProviderError(f"Expected {len(chunks)} chunk embeddings, got {len(embeddings)}")
        _check_dimensions(scorecard, len(embeddings[0]))
        logger.info(
            "Matching profile %r against scorecard %s with %d chunks",
            profile.name, scorecard.id, len(chunks),
        )

        judge = AsyncJudge(
            self.judge_provider,
            max_concurrent=settings.max_concurrent_judges,
            timeout=settings.judge_timeout,
            retries=settings.judge_retries,
            retry_delay=settings.retry_delay,
            executor=executor,
        )
        plan: List[Tuple[int, Criterion]] = [
            (index, criterion)
            for index, category in enumerate(scorecard.categories)
            for criterion in category.criteria
        ]
        with ProfileIndex(chunks, embeddings) as profile_index:
            outcomes = await asyncio.gather(
                *(self._evaluate(judge, profile_index, criterion) for _, criterion in plan),
                return_exceptions=True,
            )

        per_category: List[List[Tuple[Optional[CriterionEvaluation], int]]] = [[] for _ in scorecard.categories]
        for (index, criterion), outcome in zip(plan, outcomes):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, BaseException):
                logger.warning("Evaluation of criterion %r failed: %s", criterion.name, outcome)
                outcome = default_evaluation(criterion)
            per_category[index].append((outcome, criterion.weight))

        categories: List[CategoryResult] = []
        tallies = []
        for category, results in zip(scorecard.categories, per_category):
            result, tally = aggregate_category(category.name, results)
            categories.append(result)
            tallies.append(tally)
        overall = aggregate_overall(tallies)

        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(
            "Matched profile %r against scorecard %s: overall %d in %.0f ms",
            profile.name, scorecard.id, overall, elapsed_ms,
        )
        return MatchResult(
            overall_score=overall,
            profile_name=profile.name or "",
            profile_headline=profile.headline or "",
            categories=categories,
        )

    async def _evaluate(
        self,
        judge: AsyncJudge,
        profile_index: ProfileIndex,
        criterion: Criterion,
    ) -> Optional[CriterionEvaluation]:
        evidence = profile_index.search(
            criterion.embedding,
            top_k=self.settings.top_k,
            min_similarity=self.settings.min_similarity,
        )
        evaluation = await judge.judge(criterion, evidence)
        if evaluation is None and self.settings.no_evidence_policy == "floor":
            return no_evidence_evaluation(criterion)
        return evaluation


def _check_dimensions(scorecard: Scorecard, dimension: int) -> None:
    """Reject stored criterion embeddings from a different embedding model."""
    mismatched = [
        criterion.name
        for criterion in scorecard.iter_criteria()
        if criterion.embedding is not None and len(criterion.embedding) != dimension
    ]
    if mismatched:
        raise InvalidScorecardError(
            f"Scorecard {scorecard.id} has criterion embeddings that do not match the "
            f"{dimension}-dimensional profile embeddings: {', '.join(mismatched)}"
        )
