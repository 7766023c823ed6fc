"""
Candidate profile record.

Profiles arrive as loosely-typed mappings produced by the scraping
provider.  `Profile.from_dict` normalises them into explicit
optional-field dataclasses: keys are resolved through a fixed alias
list, strings are stripped and blank values become ``None`` so that
presence checks downstream are a plain truthiness test.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional


def _clean(value: Any) -> Optional[str]:
    """Return a stripped string, or ``None`` for missing/blank values."""
    if value is None:
        return None
    if not isinstance(value, str):
        value = str(value)
    value = value.strip()
    return value or None


def _first(data: Mapping[str, Any], keys: Iterable[str]) -> Optional[str]:
    for key in keys:
        cleaned = _clean(data.get(key))
        if cleaned:
            return cleaned
    return None


def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


@dataclass
class ExperienceEntry:
    """One position held by the candidate."""

    title: Optional[str] = None
    company: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ExperienceEntry":
        return cls(
            title=_first(data, ("title", "position", "role")),
            company=_first(data, ("company", "companyName", "company_name")),
            description=_first(data, ("description", "summary")),
            location=_first(data, ("location",)),
            start_date=_first(data, ("startDate", "start_date", "start")),
            end_date=_first(data, ("endDate", "end_date", "end")),
        )

    def is_empty(self) -> bool:
        return not (self.title or self.company or self.description)


@dataclass
class EducationEntry:
    """One degree or course of study."""

    school: Optional[str] = None
    degree: Optional[str] = None
    field_of_study: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "EducationEntry":
        return cls(
            school=_first(data, ("school", "schoolName", "school_name", "institution")),
            degree=_first(data, ("degree", "degreeName", "degree_name")),
            field_of_study=_first(data, ("field_of_study", "fieldOfStudy", "field")),
        )

    def is_empty(self) -> bool:
        return not (self.school or self.degree or self.field_of_study)


@dataclass
class Profile:
    """Normalised candidate profile.

    Every textual field is optional.  List fields never contain blank
    or empty entries.
    """

    name: Optional[str] = None
    headline: Optional[str] = None
    summary: Optional[str] = None
    location: Optional[str] = None
    skills: List[str] = field(default_factory=list)
    experience: List[ExperienceEntry] = field(default_factory=list)
    education: List[EducationEntry] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "Profile":
        """Build a profile from a scraped profile mapping.

        Accepts the aliases used by the scraping provider (``about`` for
        the summary, ``companyName``, ``schoolName``, ``degreeName``,
        ``fieldOfStudy``, ``fullName``) and skills given either as
        strings or as objects with a ``name`` key.
        """
        if not data:
            return cls()
        skills: List[str] = []
        for item in _as_list(data.get("skills")):
            if isinstance(item, Mapping):
                item = item.get("name")
            cleaned = _clean(item)
            if cleaned:
                skills.append(cleaned)
        experience = [
            ExperienceEntry.from_dict(item)
            for item in _as_list(data.get("experience"))
            if isinstance(item, Mapping)
        ]
        education = [
            EducationEntry.from_dict(item)
            for item in _as_list(data.get("education"))
            if isinstance(item, Mapping)
        ]
        return cls(
            name=_first(data, ("name", "fullName", "full_name")),
            headline=_first(data, ("headline",)),
            summary=_first(data, ("summary", "about")),
            location=_first(data, ("location",)),
            skills=skills,
            experience=[e for e in experience if not e.is_empty()],
            education=[e for e in education if not e.is_empty()],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "headline": self.headline,
            "summary": self.summary,
            "location": self.location,
            "skills": list(self.skills),
            "experience": [vars(e).copy() for e in self.experience],
            "education": [vars(e).copy() for e in self.education],
        }
