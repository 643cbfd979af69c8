"""Race codes printed on start lists and results sheets.

The code is derived only from the race's category and boat class, so the same
pair always yields the same code.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Pattern

DEFAULT_BOAT_CODE = "1X"
DEFAULT_CATEGORY_GENDER = "mixed"
DEFAULT_WEIGHT_CLASS = "open"

CATEGORY_GENDERS = ("men", "women", "mixed")
WEIGHT_CLASSES = ("open", "lightweight", "para")

SENIOR_ABBREVIATIONS = frozenset({"SM", "SW", "S"})

# Boat codes such as LW1X, LM2x or L1x predate the weightClass field.
LEGACY_LIGHTWEIGHT_PREFIX: Pattern[str] = re.compile(r"^L[MW]?(?=\d)", re.IGNORECASE | re.ASCII)

_GENDER_PREFIXES = {"women": "W", "mixed": "Mix"}
_GENDER_SUFFIXES = ("Mix", "M", "W")


def _reference_id(payload: Mapping[str, Any]) -> str:
    return str(payload.get("id") or payload.get("_id") or "").strip()


@dataclass
class CategoryDescriptor:
    """Age category as served by the reference data service."""

    abbreviation: str = ""
    gender: str = DEFAULT_CATEGORY_GENDER
    titles: Dict[str, str] = field(default_factory=dict)
    id: str = ""

    @property
    def is_senior(self) -> bool:
        if self.abbreviation.upper() in SENIOR_ABBREVIATIONS:
            return True
        return "senior" in (self.titles.get("en") or "").lower()

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any] | None) -> "CategoryDescriptor":
        if not payload:
            return cls()
        titles = payload.get("titles") or payload.get("localizedTitles") or {}
        return cls(
            abbreviation=str(payload.get("abbreviation") or "").strip(),
            gender=str(payload.get("gender") or DEFAULT_CATEGORY_GENDER).strip().lower(),
            titles={str(lang): str(title) for lang, title in dict(titles).items() if title},
            id=_reference_id(payload),
        )


@dataclass
class BoatClassDescriptor:
    """Boat class reference data (code, weight class and display names)."""

    code: str = DEFAULT_BOAT_CODE
    weight_class: str = DEFAULT_WEIGHT_CLASS
    names: Dict[str, str] = field(default_factory=dict)
    discipline: str = "classic"
    crew_size: int = 1
    id: str = ""

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any] | None) -> "BoatClassDescriptor":
        if not payload:
            return cls()
        names = payload.get("names") or payload.get("localizedNames") or {}
        try:
            crew_size = int(payload.get("crewSize") or payload.get("crew_size") or 1)
        except (TypeError, ValueError):
            crew_size = 1
        weight_class = payload.get("weightClass") or payload.get("weight_class") or DEFAULT_WEIGHT_CLASS
        return cls(
            code=str(payload.get("code") or "").strip() or DEFAULT_BOAT_CODE,
            weight_class=str(weight_class).strip().lower(),
            names={str(lang): str(name) for lang, name in dict(names).items() if name},
            discipline=str(payload.get("discipline") or "classic"),
            crew_size=crew_size,
            id=_reference_id(payload),
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            "id": self.id or None,
            "code": self.code,
            "weightClass": self.weight_class,
            "names": dict(self.names),
            "discipline": self.discipline,
            "crewSize": self.crew_size,
        }


def strip_legacy_prefix(
    boat_code: str, legacy_prefix: Pattern[str] = LEGACY_LIGHTWEIGHT_PREFIX
) -> tuple[str, bool]:
    """Return ``(code_without_prefix, had_prefix)`` for a boat code."""

    match = legacy_prefix.match(boat_code)
    if not match:
        return boat_code, False
    return boat_code[match.end():], True


def _split_gender_suffix(abbreviation: str) -> tuple[str, str] | None:
    for suffix in _GENDER_SUFFIXES:
        if abbreviation.endswith(suffix):
            return abbreviation[: -len(suffix)], suffix
    return None


def generate_race_code(
    category: CategoryDescriptor | None,
    boat_class: BoatClassDescriptor | None,
    *,
    default_boat_code: str = DEFAULT_BOAT_CODE,
    legacy_prefix: Pattern[str] = LEGACY_LIGHTWEIGHT_PREFIX,
) -> str:
    """Compute the race code for a category and boat class.

    Missing descriptors fall back to the default boat code and an empty
    category abbreviation.
    """

    category = category or CategoryDescriptor()
    boat_class = boat_class or BoatClassDescriptor()

    boat_code, legacy_lightweight = strip_legacy_prefix(
        boat_class.code or default_boat_code, legacy_prefix
    )
    abbreviation = category.abbreviation or ""

    lightweight = boat_class.weight_class == "lightweight" or legacy_lightweight
    coastal = boat_code[:1] in ("C", "c")
    gender_prefix = _GENDER_PREFIXES.get(category.gender, "M")
    marker = "L" if lightweight else ""

    if category.is_senior:
        if coastal:
            return f"{marker}{boat_code}"
        return f"{marker}{gender_prefix}{boat_code}"

    if coastal:
        return f"{abbreviation}{marker}{boat_code}"

    gendered = _split_gender_suffix(abbreviation)
    if gendered is not None:
        base, suffix = gendered
        return f"{base}{marker}{suffix}{boat_code}"

    return f"{abbreviation}{marker}{gender_prefix}{boat_code}"


__all__ = [
    "BoatClassDescriptor",
    "CATEGORY_GENDERS",
    "CategoryDescriptor",
    "DEFAULT_BOAT_CODE",
    "LEGACY_LIGHTWEIGHT_PREFIX",
    "WEIGHT_CLASSES",
    "generate_race_code",
    "strip_legacy_prefix",
]
