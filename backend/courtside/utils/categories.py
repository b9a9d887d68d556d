"""
Canonical helpers for tournament categories.

A category is a tournament type crossed with a division and is always keyed
as "{tournament_type}_{division}" (e.g. "mens_doubles_1") so that dispatch,
duration history and priority boosts agree on one spelling.
"""
from enum import Enum
from typing import Optional, Tuple


class TournamentType(str, Enum):
    mens_singles = "mens_singles"
    womens_singles = "womens_singles"
    mens_doubles = "mens_doubles"
    womens_doubles = "womens_doubles"
    mixed_doubles = "mixed_doubles"


TYPE_LABELS = {
    TournamentType.mens_singles: "Men's Singles",
    TournamentType.womens_singles: "Women's Singles",
    TournamentType.mens_doubles: "Men's Doubles",
    TournamentType.womens_doubles: "Women's Doubles",
    TournamentType.mixed_doubles: "Mixed Doubles",
}


def category_key(tournament_type: str, division: int) -> str:
    return f"{_type_value(tournament_type)}_{division}"


def parse_category(key: str) -> Tuple[str, int]:
    """Split "mens_doubles_1" into ("mens_doubles", 1). Raises ValueError on malformed keys."""
    type_part, _, division_part = key.rpartition("_")
    if not type_part or not division_part.isdigit():
        raise ValueError(f"Malformed category key: {key!r}")
    return TournamentType(type_part).value, int(division_part)


def category_gender(tournament_type: str) -> Optional[str]:
    """Gender a category is restricted to, or None for mixed."""
    value = _type_value(tournament_type)
    if value.startswith("mens_"):
        return "male"
    if value.startswith("womens_"):
        return "female"
    return None


def is_doubles(tournament_type: str) -> bool:
    return _type_value(tournament_type).endswith("_doubles")


def category_label(key: str) -> str:
    try:
        type_value, division = parse_category(key)
    except ValueError:
        return key
    return f"{TYPE_LABELS[TournamentType(type_value)]} (Division {division})"


def _type_value(tournament_type) -> str:
    if isinstance(tournament_type, TournamentType):
        return tournament_type.value
    return str(tournament_type)
