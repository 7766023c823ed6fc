"""
Profile handling for matchflow.

This package normalises raw profile records into the `Profile`
dataclass and splits them into evidence chunks for retrieval.
"""

from .schema import EducationEntry, ExperienceEntry, Profile  # noqa: F401
from .chunker import chunk_profile  # noqa: F401
