"""Shared fixtures and stub providers for the matchflow test-suite.

No test talks to a real API.  Embeddings come from a tiny concept
vocabulary so similarities are predictable, and judges are stubs whose
scores, failures and latency are fully controlled by the test.
"""

from __future__ import annotations

import re
import threading
import time
from typing import Dict, List, Optional, Sequence, Tuple

import pytest  # type: ignore

from matchflow.config import MatchSettings
from matchflow.embed.gateway import EmbeddingGateway
from matchflow.embed.providers import EmbeddingProvider
from matchflow.match import MatchEngine
from matchflow.rank.llm_providers import LLMProvider
from matchflow.scorecard.repository import InMemoryScorecardRepository, embed_missing_criteria
from matchflow.scorecard.schema import Scorecard

# Each concept is one vector dimension; a word hits a concept when it
# starts with one of the listed stems.
CONCEPTS: List[Tuple[str, ...]] = [
    ("python",),
    ("pipeline", "data"),
    ("aws", "cloud", "gcp", "azure"),
    ("speak", "talk", "conference", "meetup"),
    ("postgres", "database", "sql", "schema"),
    ("mentor", "lead"),
]
_WORD = re.compile(r"[a-z]+")


class KeywordEmbeddingProvider(EmbeddingProvider):
    """Binary concept-presence vectors plus a small constant bias."""

    def __init__(self) -> None:
        self.calls: List[List[str]] = []

    def embed(self, texts: Sequence[str]) -> List[List[float]]:
        self.calls.append(list(texts))
        vectors = []
        for text in texts:
            words = _WORD.findall(text.lower())
            vector = [
                1.0 if any(w.startswith(stem) for w in words for stem in stems) else 0.0
                for stems in CONCEPTS
            ]
            vectors.append(vector + [0.1])
        return vectors


class FailingEmbeddingProvider(EmbeddingProvider):
    def embed(self, texts: Sequence[str]) -> List[List[float]]:
        raise ConnectionError("embedding service unavailable")


class StubJudgeProvider(LLMProvider):
    """Returns configured scores per criterion name and records every call."""

    def __init__(self, scores: Optional[Dict[str, Tuple[int, str]]] = None, default: int = 3) -> None:
        self.scores = scores or {}
        self.default = default
        self.calls: List[Tuple[str, List[str]]] = []
        self._lock = threading.Lock()

    def judge(self, criterion_name: str, description: str, evidence: Sequence[str]) -> Tuple[int, str]:
        with self._lock:
            self.calls.append((criterion_name, list(evidence)))
        return self.scores.get(criterion_name, (self.default, f"Evidence supports {criterion_name}."))


class FailingJudgeProvider(LLMProvider):
    """Fails for the named criteria (or for all of them when none are named)."""

    def __init__(self, fail_for: Sequence[str] = (), score: int = 4) -> None:
        self.fail_for = set(fail_for)
        self.score = score
        self.attempts: Dict[str, int] = {}
        self._lock = threading.Lock()

    def judge(self, criterion_name: str, description: str, evidence: Sequence[str]) -> Tuple[int, str]:
        with self._lock:
            self.attempts[criterion_name] = self.attempts.get(criterion_name, 0) + 1
        if not self.fail_for or criterion_name in self.fail_for:
            raise RuntimeError("provider exploded")
        return self.score, "Solid evidence."


class SlowJudgeProvider(LLMProvider):
    """Sleeps before answering and tracks the peak number of concurrent calls."""

    def __init__(self, delay: float, score: int = 3) -> None:
        self.delay = delay
        self.score = score
        self.in_flight = 0
        self.peak = 0
        self._lock = threading.Lock()

    def judge(self, criterion_name: str, description: str, evidence: Sequence[str]) -> Tuple[int, str]:
        with self._lock:
            self.in_flight += 1
            self.peak = max(self.peak, self.in_flight)
        try:
            time.sleep(self.delay)
        finally:
            with self._lock:
                self.in_flight -= 1
        return self.score, "Took a while."


SCENARIO_SCORECARD = {
    "id": "python-dev",
    "name": "Python Developer",
    "categories": [
        {
            "name": "Technical Skills",
            "criteria": [
                {"name": "Python experience", "description": "Builds production software in Python", "weight": 3},
                {"name": "Public speaking", "description": "Gives talks at conferences", "weight": 1},
            ],
        }
    ],
}

SCENARIO_PROFILE = {
    "name": "Jane Doe",
    "headline": "Senior Python Engineer",
    "experience": [
        {"title": "Senior Python Engineer", "company": "Acme", "description": "built data pipelines"}
    ],
}

BACKEND_SCORECARD = {
    "id": "backend",
    "name": "Backend Engineer",
    "categories": [
        {
            "name": "Technical Skills",
            "criteria": [
                {"name": "Python experience", "description": "Production Python", "weight": 3},
                {"name": "Cloud infrastructure", "description": "Runs services on AWS", "weight": 2},
                {"name": "Databases", "description": "PostgreSQL schema design", "weight": 2},
            ],
        },
        {
            "name": "Communication",
            "criteria": [
                {"name": "Public speaking", "description": "Gives talks at conferences", "weight": 1},
                {"name": "Mentoring", "description": "Mentors other engineers", "weight": 2},
            ],
        },
    ],
}

BACKEND_PROFILE = {
    "fullName": "John Smith",
    "headline": "Backend engineer",
    "about": "I speak at Python meetups and mentor junior developers.",
    "skills": ["Python", {"name": "PostgreSQL"}, "AWS"],
    "experience": [
        {"title": "Engineer", "companyName": "Initech", "description": "Built data pipelines on AWS."},
    ],
}


@pytest.fixture
def embedder() -> KeywordEmbeddingProvider:
    return KeywordEmbeddingProvider()


@pytest.fixture
def gateway(embedder: KeywordEmbeddingProvider) -> EmbeddingGateway:
    return EmbeddingGateway(embedder)


def build_scorecard(data: dict, gateway: EmbeddingGateway) -> Scorecard:
    scorecard = Scorecard.from_dict(data)
    embed_missing_criteria(scorecard, gateway)
    return scorecard


def fast_settings(**overrides) -> MatchSettings:
    values = {"retry_delay": 0.0, "judge_timeout": 2.0}
    values.update(overrides)
    return MatchSettings(**values)


@pytest.fixture
def make_engine(gateway: EmbeddingGateway):
    """Factory building an engine over the scenario and backend scorecards."""

    def _make(judge: LLMProvider, settings: Optional[MatchSettings] = None, **setting_overrides) -> MatchEngine:
        repository = InMemoryScorecardRepository(
            [build_scorecard(SCENARIO_SCORECARD, gateway), build_scorecard(BACKEND_SCORECARD, gateway)]
        )
        return MatchEngine(
            repository,
            embedder=gateway,
            judge_provider=judge,
            settings=settings or fast_settings(**setting_overrides),
        )

    return _make
