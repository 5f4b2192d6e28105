"""
Completeness predicates deciding whether an entity still needs enrichment.

All functions here are pure: they look at values already read from the
store and never touch it, so they can be called any number of times from
any thread.
"""

import re
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Pattern, Set

# Observed tiers: "basic" narrative runs use 150, "rich" runs use 500.
BASIC_DESCRIPTION_THRESHOLD = 150
RICH_DESCRIPTION_THRESHOLD = 500

EXPERIENCE_TARGET = 3


class Theme(str, Enum):
    cultural = "cultural"
    culinary = "culinary"
    nature = "nature"


THEME_KEYWORDS: Dict[Theme, List[str]] = {
    Theme.cultural: [
        "cultur", "tea ceremony", "gothic quarter", "art nouveau", "heritage",
        "temple", "museum", "histor", "art", "festival", "craft", "artisan",
        "music", "dance", "architect", "cathedral", "palace", "tradition",
    ],
    Theme.culinary: [
        "food", "cook", "culinary", "tsukiji", "market", "cuisine", "tasting",
        "wine", "dinner", "kitchen", "cafe", "coffee", "tapas", "brew",
        "chef", "feast", "bakery", "vineyard",
    ],
    Theme.nature: [
        "garden", "nature", "outdoor", "mountain", "hik", "beach", "park",
        "river", "lake", "forest", "valley", "coast", "island", "volcan",
        "waterfall", "trail", "reef", "canyon", "wildlife",
    ],
}

# Keywords match at the start of a word so "art" finds "artists" but not "heart".
_THEME_PATTERNS: Dict[Theme, Pattern] = {
    theme: re.compile(r"\b(?:" + "|".join(re.escape(k) for k in keywords) + r")", re.IGNORECASE)
    for theme, keywords in THEME_KEYWORDS.items()
}


class ItineraryState(str, Enum):
    MISSING = "missing"
    MISSING_DAYS = "missing_days"
    OVERFULL = "overfull"
    MISNUMBERED = "misnumbered"
    COMPLETE = "complete"


def is_blank(value) -> bool:
    """None, empty and whitespace-only strings all count as blank."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple)):
        return all(is_blank(v) for v in value)
    return False


def text_is_complete(value: Optional[str], threshold: int = 0) -> bool:
    """A narrative field is complete once it is non-blank and at least `threshold` chars long."""
    if is_blank(value):
        return False
    return len(value.strip()) >= threshold


def fields_complete(row: Mapping, fields: Iterable[str]) -> bool:
    return all(not is_blank(row.get(f)) for f in fields)


def itinerary_state(
    itinerary_id: Optional[int],
    duration: Optional[int],
    day_count: int,
    first_day: Optional[int] = None,
    last_day: Optional[int] = None,
) -> ItineraryState:
    """
    Day numbers are unique per itinerary, so `duration` rows running from
    day 1 to day `duration` are exactly the days 1..duration.
    """
    if itinerary_id is None:
        return ItineraryState.MISSING
    if not duration or day_count < duration:
        return ItineraryState.MISSING_DAYS
    if day_count > duration:
        return ItineraryState.OVERFULL
    if first_day is not None and first_day != 1:
        return ItineraryState.MISNUMBERED
    if last_day is not None and last_day != duration:
        return ItineraryState.MISNUMBERED
    return ItineraryState.COMPLETE


def title_themes(title: Optional[str]) -> Set[Theme]:
    """Themes a title evidences by keyword; one title may evidence several."""
    if is_blank(title):
        return set()
    return {theme for theme, pattern in _THEME_PATTERNS.items() if pattern.search(title)}


def experience_themes(experience: Mapping) -> Set[Theme]:
    """Stored theme wins; older rows without one fall back to title keywords."""
    stored = experience.get("theme")
    if not is_blank(stored):
        try:
            return {Theme(stored.strip().lower())}
        except ValueError:
            pass
    return title_themes(experience.get("title"))


def missing_themes(experiences: Iterable[Mapping]) -> List[Theme]:
    present: Set[Theme] = set()
    for experience in experiences:
        present |= experience_themes(experience)
    return [theme for theme in Theme if theme not in present]


def experiences_complete(experiences: Iterable[Mapping]) -> bool:
    experiences = [e for e in experiences if not is_blank(e.get("title"))]
    return len(experiences) >= EXPERIENCE_TARGET and not missing_themes(experiences)
