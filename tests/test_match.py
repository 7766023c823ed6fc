"""End-to-end tests for the match orchestrator.

Every test wires a `MatchEngine` to the keyword embedder from
``conftest`` and a stub judge, so the evidence each criterion receives
and the scores it gets are fully predictable.
"""

from __future__ import annotations

import asyncio
import time

import pytest  # type: ignore

from matchflow.embed.gateway import EmbeddingGateway
from matchflow.errors import (
    EmbeddingProviderError,
    InvalidScorecardError,
    MatchTimeoutError,
    NoEvidenceError,
    ScorecardNotFoundError,
)
from matchflow.match import MatchEngine
from matchflow.profile import Profile
from matchflow.scorecard.repository import InMemoryScorecardRepository

from conftest import (
    BACKEND_PROFILE,
    SCENARIO_PROFILE,
    FailingEmbeddingProvider,
    FailingJudgeProvider,
    SlowJudgeProvider,
    StubJudgeProvider,
    fast_settings,
)

PYTHON_VERDICT = {"Python experience": (4, "Senior Python Engineer at Acme who built data pipelines.")}


def test_scenario_excludes_criterion_without_evidence(make_engine) -> None:
    judge = StubJudgeProvider(PYTHON_VERDICT)
    engine = make_engine(judge, min_similarity=0.5, no_evidence_policy="exclude")
    result = engine.analyze_sync("python-dev", SCENARIO_PROFILE)
    category = result.categories[0]
    assert category.name == "Technical Skills"
    assert [c.criterion_name for c in category.criteria] == ["Python experience"]
    python = category.criteria[0]
    assert python.score == 4
    assert "Acme" in python.justification
    assert any("Acme" in chunk for chunk in python.evidence)
    # 100 * (4*3) / (5*3)
    assert category.score == 80
    assert result.overall_score == 80
    # The judge is never asked about public speaking.
    assert [name for name, _ in judge.calls] == ["Python experience"]


def test_scenario_floor_policy_scores_missing_evidence_at_one(make_engine) -> None:
    judge = StubJudgeProvider(PYTHON_VERDICT)
    engine = make_engine(judge, min_similarity=0.5, no_evidence_policy="floor")
    result = engine.analyze_sync("python-dev", SCENARIO_PROFILE)
    category = result.categories[0]
    speaking = category.criteria[1]
    assert speaking.criterion_name == "Public speaking"
    assert speaking.score == 1
    assert speaking.status == "no_evidence"
    # 100 * (4*3 + 1*1) / (5*3 + 5*1)
    assert category.score == 65
    assert result.overall_score == 65
    assert len(judge.calls) == 1


def test_result_passes_profile_identity_through(make_engine) -> None:
    result = make_engine(StubJudgeProvider()).analyze_sync("backend", BACKEND_PROFILE)
    assert result.profile_name == "John Smith"
    assert result.profile_headline == "Backend engineer"
    assert [c.name for c in result.categories] == ["Technical Skills", "Communication"]
    payload = result.to_dict()
    assert payload["overall_score"] == result.overall_score
    assert payload["categories"][1]["criteria"][0]["criterion_name"] == "Public speaking"


def test_every_criterion_gets_top_k_evidence_without_threshold(make_engine) -> None:
    judge = StubJudgeProvider()
    engine = make_engine(judge, top_k=2)
    result = engine.analyze_sync("backend", BACKEND_PROFILE)
    assert len(judge.calls) == 5
    assert all(1 <= len(evidence) <= 2 for _, evidence in judge.calls)
    # Uniform score 3 everywhere gives 60 regardless of weights.
    assert [c.score for c in result.categories] == [60, 60]
    assert result.overall_score == 60


def test_judge_failure_degrades_only_that_criterion(make_engine) -> None:
    judge = FailingJudgeProvider(fail_for=["Databases"], score=5)
    engine = make_engine(judge, judge_retries=1)
    result = engine.analyze_sync("backend", BACKEND_PROFILE)
    tech = result.categories[0]
    by_name = {c.criterion_name: c for c in tech.criteria}
    assert by_name["Databases"].score == 1
    assert by_name["Databases"].status == "failed"
    assert by_name["Databases"].justification == "This criterion could not be evaluated."
    assert by_name["Python experience"].score == 5
    assert judge.attempts["Databases"] == 2
    # 100 * (5*3 + 5*2 + 1*2) / (5*7)
    assert tech.score == 77


def test_all_judges_failing_still_returns_a_result(make_engine) -> None:
    result = make_engine(FailingJudgeProvider(), judge_retries=0).analyze_sync("backend", BACKEND_PROFILE)
    assert result.overall_score == 20
    assert all(c.status == "failed" for cat in result.categories for c in cat.criteria)


def test_unexpected_error_at_criterion_boundary_is_contained(make_engine, monkeypatch: pytest.MonkeyPatch) -> None:
    engine = make_engine(StubJudgeProvider(default=5))
    real_evaluate = engine._evaluate

    async def flaky(judge, index, criterion):
        if criterion.name == "Mentoring":
            raise RuntimeError("retrieval exploded")
        return await real_evaluate(judge, index, criterion)

    monkeypatch.setattr(engine, "_evaluate", flaky)
    result = engine.analyze_sync("backend", BACKEND_PROFILE)
    mentoring = result.categories[1].criteria[1]
    assert mentoring.criterion_name == "Mentoring"
    assert mentoring.status == "failed"
    assert mentoring.score == 1


def test_analysis_is_idempotent_with_deterministic_judge(make_engine) -> None:
    engine = make_engine(StubJudgeProvider(PYTHON_VERDICT, default=2))
    first = engine.analyze_sync("backend", BACKEND_PROFILE)
    second = engine.analyze_sync("backend", BACKEND_PROFILE)
    assert first.to_dict() == second.to_dict()


def test_accepts_profile_instances(make_engine) -> None:
    profile = Profile.from_dict(SCENARIO_PROFILE)
    result = make_engine(StubJudgeProvider(PYTHON_VERDICT)).analyze_sync("python-dev", profile)
    assert result.profile_name == "Jane Doe"


def test_unknown_scorecard_is_terminal(make_engine) -> None:
    judge = StubJudgeProvider()
    with pytest.raises(ScorecardNotFoundError) as excinfo:
        make_engine(judge).analyze_sync("does-not-exist", SCENARIO_PROFILE)
    assert excinfo.value.status_code == 404
    assert judge.calls == []


def test_empty_profile_is_terminal(make_engine) -> None:
    judge = StubJudgeProvider()
    with pytest.raises(NoEvidenceError):
        make_engine(judge).analyze_sync("backend", {"name": "Ghost"})
    assert judge.calls == []


def test_embedding_outage_is_terminal(make_engine) -> None:
    judge = StubJudgeProvider()
    engine = make_engine(judge)
    engine.embedder = EmbeddingGateway(FailingEmbeddingProvider())
    with pytest.raises(EmbeddingProviderError):
        engine.analyze_sync("backend", BACKEND_PROFILE)
    assert judge.calls == []


def test_match_timeout_raises(make_engine) -> None:
    engine = make_engine(SlowJudgeProvider(delay=0.5), judge_timeout=5.0)
    with pytest.raises(MatchTimeoutError) as excinfo:
        engine.analyze_sync("backend", BACKEND_PROFILE, timeout=0.1)
    assert excinfo.value.kind == "match_timeout"


def test_match_timeout_returns_without_waiting_for_hung_judges(make_engine) -> None:
    engine = make_engine(SlowJudgeProvider(delay=3.0), judge_timeout=5.0)
    started = time.perf_counter()
    with pytest.raises(MatchTimeoutError):
        engine.analyze_sync("backend", BACKEND_PROFILE, timeout=0.2)
    assert time.perf_counter() - started < 1.0


def test_configured_match_timeout_applies(make_engine) -> None:
    engine = make_engine(SlowJudgeProvider(delay=0.5), judge_timeout=5.0, match_timeout=0.1)
    with pytest.raises(MatchTimeoutError):
        engine.analyze_sync("backend", BACKEND_PROFILE)


def test_criteria_are_judged_concurrently(make_engine) -> None:
    judge = SlowJudgeProvider(delay=0.2)
    engine = make_engine(judge, judge_timeout=5.0, max_concurrent_judges=8)
    started = time.perf_counter()
    result = engine.analyze_sync("backend", BACKEND_PROFILE)
    elapsed = time.perf_counter() - started
    assert judge.peak >= 2
    assert elapsed < 5 * 0.2
    assert result.overall_score == 60


def test_concurrency_limit_is_respected(make_engine) -> None:
    judge = SlowJudgeProvider(delay=0.05)
    make_engine(judge, judge_timeout=5.0, max_concurrent_judges=1).analyze_sync("backend", BACKEND_PROFILE)
    assert judge.peak == 1


def test_engine_serves_concurrent_matches(make_engine) -> None:
    engine = make_engine(StubJudgeProvider(PYTHON_VERDICT))

    async def run_both():
        return await asyncio.gather(
            engine.analyze("python-dev", SCENARIO_PROFILE),
            engine.analyze("backend", BACKEND_PROFILE),
        )

    scenario, backend = asyncio.run(run_both())
    assert scenario.profile_name == "Jane Doe"
    assert backend.profile_name == "John Smith"


def test_unembedded_criteria_are_treated_as_no_evidence(gateway) -> None:
    from matchflow.scorecard.schema import Scorecard

    scorecard = Scorecard.from_dict(
        {"id": "raw", "categories": [{"name": "Tech", "criteria": [{"name": "Python experience", "weight": 3}]}]}
    )
    judge = StubJudgeProvider()
    engine = MatchEngine(
        InMemoryScorecardRepository([scorecard]),
        embedder=gateway,
        judge_provider=judge,
        settings=fast_settings(),
    )
    result = engine.analyze_sync("raw", SCENARIO_PROFILE)
    assert result.categories[0].criteria == []
    assert result.categories[0].score == 0
    assert result.overall_score == 0
    assert judge.calls == []


def test_criterion_embeddings_from_another_model_are_rejected(gateway) -> None:
    from matchflow.scorecard.schema import Scorecard

    scorecard = Scorecard.from_dict(
        {
            "id": "stale",
            "categories": [
                {"name": "Communication", "criteria": [{"name": "Public speaking", "embedding": [0.01] * 1536}]}
            ],
        }
    )
    judge = StubJudgeProvider()
    engine = MatchEngine(
        InMemoryScorecardRepository([scorecard]),
        embedder=gateway,
        judge_provider=judge,
        settings=fast_settings(),
    )
    with pytest.raises(InvalidScorecardError, match="Public speaking"):
        engine.analyze_sync("stale", SCENARIO_PROFILE)
    assert judge.calls == []
