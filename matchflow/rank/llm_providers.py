"""
LLM judge providers.

This module defines a common interface for the large language model
(LLM) providers matchflow uses to judge how well a candidate profile
satisfies a single scorecard criterion.  Concrete implementations are
provided for the OpenAI and Gemini (Google Generative AI) APIs.  A
placeholder implementation scores criteria by keyword overlap and is
used when no API keys are configured or the optional dependencies are
not installed.  Applications can select the provider via environment
variables or pass an instance of ``LLMProvider`` directly.

Providers raise on any failure (transport errors, malformed replies).
Retries, timeouts and fallback scores are the judging stage's job, see
:mod:`matchflow.rank.llm_judge`.
"""

from __future__ import annotations

import json
import logging
import os
import re
from abc import ABC, abstractmethod
from typing import Sequence, Tuple

from ..errors import JudgeResponseError

logger = logging.getLogger(__name__)

MIN_SCORE = 1
MAX_SCORE = 5

SYSTEM_PROMPT = (
    "You are an experienced technical recruiter. You assess candidates strictly "
    "on the evidence you are given and always answer with a JSON object."
)

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)
_WORD_RE = re.compile(r"[a-z0-9+#]+")
_STOPWORDS = {
    "a", "an", "and", "are", "as", "at", "be", "by", "for", "from", "has", "have",
    "in", "is", "it", "of", "on", "or", "that", "the", "their", "to", "with",
    "experience", "ability", "strong", "skills",
}


def build_judge_prompt(criterion_name: str, description: str, evidence: Sequence[str]) -> str:
    """Build the user prompt asking for a 1‑5 score and a one sentence justification."""
    evidence_block = "\n".join(f"- {chunk}" for chunk in evidence)
    return (
        "Evaluate the candidate against the following criterion using ONLY the evidence "
        "excerpts from their profile listed below. Do not assume anything that is not "
        "stated in the evidence.\n\n"
        f"Criterion: {criterion_name}\n"
        f"Description: {description or 'n/a'}\n\n"
        f"Evidence:\n{evidence_block}\n\n"
        "Score the candidate on an integer scale from 1 to 5 where 1 means no evidence "
        "and 5 means strong, direct evidence. Return a JSON object with keys "
        "'score' (integer 1-5) and 'justification' (one sentence citing the evidence)."
    )


def parse_judgement(content: str | None) -> Tuple[int, str]:
    """Parse a judge reply into ``(score, justification)``.

    Markdown code fences around the JSON are tolerated.  Fractional
    scores are rounded half up.

    Raises:
        JudgeResponseError: If the reply is not a JSON object, the score
            is not numeric or it falls outside 1..5.
    """
    if not content or not content.strip():
        raise JudgeResponseError("Empty judge response")
    text = _FENCE_RE.sub("", content.strip())
    try:
        data = json.loads(text)
    except ValueError as exc:
        raise JudgeResponseError(f"Judge response is not valid JSON: {content[:200]!r}") from exc
    if not isinstance(data, dict):
        raise JudgeResponseError("Judge response is not a JSON object")
    raw_score = data.get("score")
    if isinstance(raw_score, bool):
        raise JudgeResponseError(f"Judge score is not numeric: {raw_score!r}")
    try:
        score = int(float(raw_score) + 0.5)
    except (TypeError, ValueError) as exc:
        raise JudgeResponseError(f"Judge score is not numeric: {raw_score!r}") from exc
    if not MIN_SCORE <= score <= MAX_SCORE:
        raise JudgeResponseError(f"Judge score {raw_score!r} is outside {MIN_SCORE}-{MAX_SCORE}")
    justification = str(data.get("justification") or "").strip()
    return score, justification


class LLMProvider(ABC):
    """Abstract base class for LLM providers."""

    @abstractmethod
    def judge(self, criterion_name: str, description: str, evidence: Sequence[str]) -> Tuple[int, str]:
        """Judge one criterion against the supplied evidence.

        Args:
            criterion_name: Name of the criterion.
            description: Longer description of what the criterion asks for.
            evidence: Profile excerpts retrieved for the criterion.

        Returns:
            Tuple of (score, justification) with score in 1..5.
        """
        raise NotImplementedError


class PlaceholderProvider(LLMProvider):
    """Fallback provider that does not call any external API.

    The score grows with the share of criterion keywords that appear in
    the evidence: no overlap gives 1, full overlap gives 5.
    """

    def judge(self, criterion_name: str, description: str, evidence: Sequence[str]) -> Tuple[int, str]:
        wanted = {w for w in _WORD_RE.findall(f"{criterion_name} {description}".lower()) if w not in _STOPWORDS}
        found = set(_WORD_RE.findall(" ".join(evidence).lower()))
        matched = sorted(wanted & found)
        ratio = len(matched) / len(wanted) if wanted else 0.0
        score = MIN_SCORE + int((MAX_SCORE - MIN_SCORE) * ratio + 0.5)
        if matched:
            justification = f"The profile mentions {', '.join(matched)}."
        else:
            justification = "The profile does not mention anything related to this criterion."
        return score, justification


class OpenAIProvider(LLMProvider):
    """Provider that uses the OpenAI chat completions API in JSON mode."""

    def __init__(self, api_key: str | None = None, model: str | None = None) -> None:
        try:
            from openai import OpenAI  # type: ignore
        except ImportError as exc:
            raise RuntimeError(
                "openai package is required for OpenAIProvider. Install it via pip."
            ) from exc
        self.api_key = api_key or os.getenv("OPENAI_API_KEY")
        self.model = model or os.getenv("OPENAI_MODEL") or "gpt-4o-mini"
        if not self.api_key:
            raise ValueError("OPENAI_API_KEY not provided")
        # Retries are driven by the judging stage.
        self.client = OpenAI(api_key=self.api_key, max_retries=0)

    def judge(self, criterion_name: str, description: str, evidence: Sequence[str]) -> Tuple[int, str]:
        prompt = build_judge_prompt(criterion_name, description, evidence)
        logger.debug("Sending prompt to OpenAI: %s", prompt[:200])
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            temperature=0,
            response_format={"type": "json_object"},
        )
        return parse_judgement(response.choices[0].message.content)


class GeminiProvider(LLMProvider):
    """Provider that uses Google Generative AI (Gemini) via google‑generativeai."""

    def __init__(self, api_key: str | None = None, model: str = "gemini-2.0-flash") -> None:
        try:
            import google.generativeai as genai  # type: ignore
        except ImportError as exc:
            raise RuntimeError(
                "google-generativeai package is required for GeminiProvider. Install it via pip."
            ) from exc
        self.genai = genai
        # API key resolution: explicit argument > env variables
        self.api_key = api_key or os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY")
        env_model = os.getenv("GEMINI_MODEL") or os.getenv("GOOGLE_MODEL")
        self.model_name = env_model or model
        if not self.api_key:
            raise ValueError("GEMINI_API_KEY/GOOGLE_API_KEY not provided")
        self.genai.configure(api_key=self.api_key)
        try:
            self.model = self.genai.GenerativeModel(
                self.model_name,
                system_instruction=SYSTEM_PROMPT,
                generation_config=self.genai.GenerationConfig(
                    temperature=0,
                    response_mime_type="application/json",
                ),
            )
        except Exception as exc:
            raise RuntimeError(f"Failed to load Gemini model {self.model_name}: {exc}") from exc

    def judge(self, criterion_name: str, description: str, evidence: Sequence[str]) -> Tuple[int, str]:
        prompt = build_judge_prompt(criterion_name, description, evidence)
        logger.debug("Sending prompt to Gemini: %s", prompt[:200])
        response = self.model.generate_content(prompt)
        return parse_judgement(response.text)


def get_default_provider() -> LLMProvider:
    """Return an LLMProvider instance based on configuration and API keys.

    The resolution order is:

    1. If the ``LLM_PROVIDER`` environment variable is set to
       ``"openai"``, ``"gemini"`` or ``"placeholder"``, the
       corresponding provider is selected.  If the specified provider
       cannot be initialised (e.g. missing API key or package), a
       warning is logged and the automatic detection logic is used.
    2. If ``OPENAI_API_KEY`` is present, return :class:`OpenAIProvider`.
    3. If ``GEMINI_API_KEY`` or ``GOOGLE_API_KEY`` is present, return
       :class:`GeminiProvider`.
    4. Otherwise, return :class:`PlaceholderProvider`.
    """
    preferred = os.getenv("LLM_PROVIDER")
    if preferred:
        pref = preferred.lower()
        if pref == "openai":
            try:
                return OpenAIProvider(os.getenv("OPENAI_API_KEY"))
            except Exception as exc:  # noqa: BLE001
                logger.warning("LLM_PROVIDER=openai but failed to initialise OpenAIProvider: %s", exc)
        elif pref == "gemini":
            try:
                return GeminiProvider(os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY"))
            except Exception as exc:  # noqa: BLE001
                logger.warning("LLM_PROVIDER=gemini but failed to initialise GeminiProvider: %s", exc)
        elif pref == "placeholder":
            logger.info("LLM_PROVIDER=placeholder; using placeholder provider")
            return PlaceholderProvider()
        else:
            logger.warning("Unknown LLM_PROVIDER value '%s'; falling back to automatic detection", preferred)
    api_key_openai = os.getenv("OPENAI_API_KEY")
    api_key_gemini = os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY")
    if api_key_openai:
        try:
            return OpenAIProvider(api_key_openai)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to initialise OpenAIProvider: %s", exc)
    if api_key_gemini:
        try:
            return GeminiProvider(api_key_gemini)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to initialise GeminiProvider: %s", exc)
    logger.info("No LLM API keys found; using placeholder provider")
    return PlaceholderProvider()
