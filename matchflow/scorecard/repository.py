"""
Scorecard repositories.

The engine only needs one operation from a scorecard store: fetch a
scorecard, with its categories and criteria sorted, by id.  Two stores
are provided.  `InMemoryScorecardRepository` holds already-built
`Scorecard` objects and is what tests use.  `FileScorecardRepository`
reads ``<id>.yaml``, ``<id>.yml`` or ``<id>.json`` files from a
directory, caches the parsed result and, when given an embedding
gateway, fills in criterion embeddings that the file does not carry.
"""

from __future__ import annotations

import json
import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Iterable, Optional

import yaml  # type: ignore

from ..embed.gateway import EmbeddingGateway
from ..errors import InvalidScorecardError
from .schema import Scorecard

logger = logging.getLogger(__name__)

SCORECARD_SUFFIXES = (".yaml", ".yml", ".json")


class ScorecardRepository(ABC):
    """Read access to stored scorecards."""

    @abstractmethod
    def get_scorecard_by_id(self, scorecard_id: str) -> Optional[Scorecard]:
        """Return the scorecard with ``scorecard_id`` or ``None`` if it does not exist."""
        raise NotImplementedError


class InMemoryScorecardRepository(ScorecardRepository):
    """Repository backed by a dictionary of scorecards."""

    def __init__(self, scorecards: Iterable[Scorecard] = ()) -> None:
        self._scorecards: Dict[str, Scorecard] = {}
        for scorecard in scorecards:
            self.add(scorecard)

    def add(self, scorecard: Scorecard) -> None:
        self._scorecards[scorecard.id] = scorecard

    def get_scorecard_by_id(self, scorecard_id: str) -> Optional[Scorecard]:
        return self._scorecards.get(scorecard_id)


def embed_missing_criteria(scorecard: Scorecard, gateway: EmbeddingGateway) -> int:
    """Embed every criterion of ``scorecard`` that has no embedding yet.

    All missing criteria are embedded in a single batch.  Returns the
    number of criteria that were updated.
    """
    missing = [c for c in scorecard.iter_criteria() if not c.embedding]
    if not missing:
        return 0
    vectors = gateway.embed([c.embedding_text for c in missing])
    for criterion, vector in zip(missing, vectors):
        criterion.embedding = vector
    logger.info("Embedded %d criteria for scorecard %s", len(missing), scorecard.id)
    return len(missing)


class FileScorecardRepository(ScorecardRepository):
    """Repository that loads scorecards from YAML or JSON files.

    Args:
        directory: Folder holding one file per scorecard, named after
            the scorecard id.
        gateway: Optional embedding gateway.  When given, criteria
            without a stored embedding are embedded on first load.
            Without it such criteria stay unembedded and are treated as
            having no evidence.
    """

    def __init__(self, directory: str | Path, gateway: Optional[EmbeddingGateway] = None) -> None:
        self.directory = Path(directory)
        self.gateway = gateway
        self._cache: Dict[str, Scorecard] = {}
        self._lock = threading.Lock()

    def _find_file(self, scorecard_id: str) -> Optional[Path]:
        # Ids containing path separators never map to a file.
        if not scorecard_id or Path(scorecard_id).name != scorecard_id:
            return None
        for suffix in SCORECARD_SUFFIXES:
            candidate = self.directory / f"{scorecard_id}{suffix}"
            if candidate.is_file():
                return candidate
        return None

    def _read_file(self, path: Path) -> Dict[str, object]:
        with open(path, "r", encoding="utf-8") as f:
            if path.suffix == ".json":
                data = json.load(f)
            else:
                data = yaml.safe_load(f)
        if not isinstance(data, dict):
            raise InvalidScorecardError(f"Scorecard file {path} must contain a mapping")
        return data

    def get_scorecard_by_id(self, scorecard_id: str) -> Optional[Scorecard]:
        with self._lock:
            cached = self._cache.get(scorecard_id)
            if cached is not None:
                return cached
            path = self._find_file(scorecard_id)
            if path is None:
                logger.info("No scorecard file for id %s in %s", scorecard_id, self.directory)
                return None
            scorecard = Scorecard.from_dict(self._read_file(path), fallback_id=scorecard_id)
            if self.gateway is not None:
                embed_missing_criteria(scorecard, self.gateway)
            self._cache[scorecard_id] = scorecard
            logger.debug("Loaded scorecard %s from %s", scorecard_id, path)
            return scorecard

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()
