"""Preservation age rules for Australian superannuation.

The preservation age is the earliest age at which retirement savings can be
drawn. It is 55 for people born before 1960, rises by one year per birth year
across 1960-1964 and settles at 60 from 1965 onwards.
"""

from __future__ import annotations

from datetime import date
from typing import Final

DEFAULT_PRESERVATION_AGE: Final[int] = 60
MINIMUM_BIRTH_YEAR: Final[int] = 1940
MINIMUM_ADULT_AGE: Final[int] = 18
GRADUATED_SCALE: Final[dict[int, int]] = {
    1960: 56,
    1961: 57,
    1962: 58,
    1963: 59,
    1964: 60,
}

__all__ = [
    "DEFAULT_PRESERVATION_AGE",
    "GRADUATED_SCALE",
    "preservation_age",
    "validate_birth_year",
    "describe_preservation_age",
    "can_access_super",
    "years_until_access",
]


def preservation_age(birth_year: int | None) -> int:
    """Return the preservation age for ``birth_year`` (60 when unknown)."""

    if birth_year is None:
        return DEFAULT_PRESERVATION_AGE
    year = int(birth_year)
    if year < 1960:
        return 55
    return GRADUATED_SCALE.get(year, DEFAULT_PRESERVATION_AGE)


def validate_birth_year(birth_year: int, *, as_of_year: int | None = None) -> None:
    """Reject birth years that are implausibly early or belong to a minor.

    Raises:
      ValueError: If ``birth_year`` is before 1940 or less than 18 years
        before ``as_of_year``.
    """

    current_year = as_of_year if as_of_year is not None else date.today().year
    if birth_year < MINIMUM_BIRTH_YEAR:
        msg = f"birth_year {birth_year} is before {MINIMUM_BIRTH_YEAR}"
        raise ValueError(msg)
    if birth_year > current_year - MINIMUM_ADULT_AGE:
        msg = f"birth_year {birth_year} implies an age below {MINIMUM_ADULT_AGE}"
        raise ValueError(msg)


def describe_preservation_age(birth_year: int) -> str:
    """Short human readable explanation of the preservation age bracket."""

    age = preservation_age(birth_year)
    if birth_year < 1960:
        return f"Preservation age {age} (born before 1960)"
    if birth_year in GRADUATED_SCALE:
        return f"Preservation age {age} (graduated scale for {birth_year})"
    return f"Preservation age {age} (born 1965 or later)"


def can_access_super(current_age: int, birth_year: int | None) -> bool:
    return current_age >= preservation_age(birth_year)


def years_until_access(current_age: int, birth_year: int | None) -> int:
    return max(0, preservation_age(birth_year) - current_age)
