"""
Matcher configuration.

Settings come from three layers, later layers winning: dataclass
defaults, the ``matcher`` section of a YAML config file and
``MATCH_*`` environment variables.  A ``.env`` file in the working
directory is loaded first so its values behave like real environment
variables.

The YAML file may also carry an ``llm`` section selecting providers
and models.  Those values are exported to the environment (without
overriding variables that are already set) so the provider factories
pick them up.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional

import yaml  # type: ignore
from dotenv import find_dotenv, load_dotenv

logger = logging.getLogger(__name__)

NO_EVIDENCE_POLICIES = ("exclude", "floor")

# Fields whose environment variable is not MATCH_<FIELD>.
_ENV_NAMES = {"match_timeout": "MATCH_TIMEOUT"}

# llm section key -> environment variable
_LLM_ENV_KEYS = {
    "provider": "LLM_PROVIDER",
    "embedding_provider": "EMBEDDING_PROVIDER",
    "openai_model": "OPENAI_MODEL",
    "gemini_model": "GEMINI_MODEL",
    "openai_embedding_model": "OPENAI_EMBEDDING_MODEL",
    "gemini_embedding_model": "GEMINI_EMBEDDING_MODEL",
}


@dataclass(frozen=True)
class MatchSettings:
    """Tunable parameters of a match.

    Attributes:
        top_k: Number of profile chunks retrieved per criterion.
        min_similarity: Optional cosine similarity floor; chunks below it
            are not offered to the judge as evidence.
        no_evidence_policy: ``"exclude"`` drops criteria without evidence
            from scoring, ``"floor"`` scores them at 1.
        judge_timeout: Seconds allowed for a single judge attempt.
        judge_retries: Extra attempts after a failed judge call.
        retry_delay: Seconds to wait between judge attempts.
        max_concurrent_judges: Upper bound on in-flight judge calls.
        match_timeout: Optional time budget for a whole match.
    """

    top_k: int = 3
    min_similarity: Optional[float] = None
    no_evidence_policy: str = "exclude"
    judge_timeout: float = 8.0
    judge_retries: int = 1
    retry_delay: float = 0.5
    max_concurrent_judges: int = 8
    match_timeout: Optional[float] = None

    def __post_init__(self) -> None:
        if self.top_k < 1:
            raise ValueError(f"top_k must be at least 1, got {self.top_k}")
        if self.no_evidence_policy not in NO_EVIDENCE_POLICIES:
            raise ValueError(
                f"no_evidence_policy must be one of {NO_EVIDENCE_POLICIES}, got {self.no_evidence_policy!r}"
            )
        if self.judge_timeout <= 0:
            raise ValueError("judge_timeout must be positive")
        if self.judge_retries < 0:
            raise ValueError("judge_retries cannot be negative")
        if self.retry_delay < 0:
            raise ValueError("retry_delay cannot be negative")
        if self.max_concurrent_judges < 1:
            raise ValueError("max_concurrent_judges must be at least 1")
        if self.match_timeout is not None and self.match_timeout <= 0:
            raise ValueError("match_timeout must be positive")

    @classmethod
    def from_mapping(cls, data: Dict[str, Any]) -> "MatchSettings":
        """Build settings from a mapping, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning("Ignoring unknown matcher settings: %s", ", ".join(unknown))
        values = {k: _coerce(k, v) for k, v in data.items() if k in known}
        return cls(**values)

    def with_env_overrides(self) -> "MatchSettings":
        """Return a copy with ``MATCH_*`` environment variables applied."""
        overrides: Dict[str, Any] = {}
        for f in fields(self):
            raw = os.getenv(_ENV_NAMES.get(f.name, f"MATCH_{f.name.upper()}"))
            if raw is None or raw.strip() == "":
                continue
            overrides[f.name] = _coerce(f.name, raw)
        return replace(self, **overrides) if overrides else self


_INT_FIELDS = {"top_k", "judge_retries", "max_concurrent_judges"}
_FLOAT_FIELDS = {"min_similarity", "judge_timeout", "retry_delay", "match_timeout"}


def _coerce(name: str, value: Any) -> Any:
    if value is None:
        return None
    if name in _INT_FIELDS:
        return int(value)
    if name in _FLOAT_FIELDS:
        if isinstance(value, str) and value.strip().lower() in {"none", "null"}:
            return None
        return float(value)
    return str(value).strip().lower()


def _load_yaml(path: Path) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ValueError(f"Configuration file {path} is not valid YAML: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file {path} must contain a mapping")
    return data


def _export_llm_section(llm_config: Dict[str, Any]) -> None:
    for key, env_var in _LLM_ENV_KEYS.items():
        if key in llm_config and not os.getenv(env_var):
            os.environ[env_var] = str(llm_config[key])


def load_settings(config_path: Optional[str] = None) -> MatchSettings:
    """Load matcher settings from defaults, an optional YAML file and the environment.

    Args:
        config_path: Path to a YAML config file.  When omitted only
            defaults and environment variables are used.

    Returns:
        A validated `MatchSettings`.

    Raises:
        FileNotFoundError: If ``config_path`` does not exist.
        ValueError: If a value is malformed or out of range.
    """
    load_dotenv(find_dotenv(usecwd=True))
    settings = MatchSettings()
    if config_path:
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")
        config = _load_yaml(path)
        _export_llm_section(config.get("llm") or {})
        matcher_config = config.get("matcher") or {}
        settings = MatchSettings.from_mapping(matcher_config)
        logger.info("Loaded configuration from %s", path)
    return settings.with_env_overrides()
