"""
Evidence chunker.

Turns a profile into an ordered list of short natural-language
fragments, one per discrete fact: headline, summary, location, the
skill list (as a single comma-joined fragment), each position and each
degree.  Missing fields produce no fragment.  Chunks are embedded
once per match and never outlive it.
"""

from __future__ import annotations

import logging
from typing import Any, List, Mapping, Union

from ..errors import NoEvidenceError
from .schema import EducationEntry, ExperienceEntry, Profile

logger = logging.getLogger(__name__)


def _experience_chunk(entry: ExperienceEntry) -> str:
    if entry.title and entry.company:
        head = f"{entry.title} at {entry.company}"
    else:
        head = entry.title or entry.company or ""
    if head and entry.description:
        text = f"{head}. {entry.description}"
    else:
        text = head or entry.description or ""
    return f"Experience: {text}"


def _education_chunk(entry: EducationEntry) -> str:
    if entry.degree and entry.field_of_study:
        head = f"{entry.degree} in {entry.field_of_study}"
    else:
        head = entry.degree or entry.field_of_study or ""
    if head and entry.school:
        text = f"{head} at {entry.school}"
    else:
        text = head or entry.school or ""
    return f"Education: {text}"


def chunk_profile(profile: Union[Profile, Mapping[str, Any], None]) -> List[str]:
    """Split a profile into evidence chunks.

    Args:
        profile: A `Profile` or a raw profile mapping.

    Returns:
        Non-empty chunk strings in profile order.

    Raises:
        NoEvidenceError: If the profile has no analysable text.
    """
    if not isinstance(profile, Profile):
        profile = Profile.from_dict(profile)
    chunks: List[str] = []
    if profile.headline:
        chunks.append(f"Headline: {profile.headline}")
    if profile.summary:
        chunks.append(f"About: {profile.summary}")
    if profile.location:
        chunks.append(f"Location: {profile.location}")
    if profile.skills:
        chunks.append(f"Skills: {', '.join(profile.skills)}")
    for exp in profile.experience:
        chunks.append(_experience_chunk(exp))
    for edu in profile.education:
        chunks.append(_education_chunk(edu))
    if not chunks:
        raise NoEvidenceError()
    logger.debug("Chunked profile %r into %d chunks", profile.name, len(chunks))
    return chunks
