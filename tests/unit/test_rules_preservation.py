from __future__ import annotations

import pytest

from superplan.engine.rules import (
    can_access_super,
    describe_preservation_age,
    preservation_age,
    validate_birth_year,
    years_until_access,
)


@pytest.mark.parametrize(
    ("birth_year", "expected"),
    [(1955, 55), (1959, 55), (1960, 56), (1962, 58), (1964, 60), (1965, 60), (1990, 60)],
)
def test_preservation_age_scale(birth_year: int, expected: int) -> None:
    assert preservation_age(birth_year) == expected


def test_preservation_age_defaults_to_sixty() -> None:
    assert preservation_age(None) == 60


def test_validate_birth_year_rejects_implausible_values() -> None:
    with pytest.raises(ValueError, match="before 1940"):
        validate_birth_year(1930)
    with pytest.raises(ValueError, match="below 18"):
        validate_birth_year(2015, as_of_year=2026)
    validate_birth_year(1980, as_of_year=2026)


def test_access_helpers() -> None:
    assert can_access_super(60, 1970)
    assert not can_access_super(59, 1970)
    assert years_until_access(50, 1970) == 10
    assert years_until_access(65, 1970) == 0
    assert "graduated" in describe_preservation_age(1961)
    assert "before 1960" in describe_preservation_age(1950)
