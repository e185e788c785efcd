"""Means-tested Age Pension from pension age.

Amounts are yearly and in today's dollars. A person receives the lower of the
assets-test and income-test rates once they reach :attr:`AgePensionRules.pension_age`.
Couples are assessed on their combined assets and each partner receives half
of the couple rate.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Final

__all__ = [
    "PENSION_AGE",
    "AgePensionRules",
    "DEFAULT_AGE_PENSION_RULES",
    "deemed_income",
    "household_age_pension",
    "is_pension_age",
]

PENSION_AGE: Final[int] = 67
FORTNIGHTS_PER_YEAR: Final[int] = 26


@dataclass(frozen=True)
class AgePensionRules:
    """Rates and thresholds of the 2025-26 Age Pension.

    Attributes:
      pension_age: Age from which the pension is payable.
      maximum_single: Yearly maximum rate for a single person.
      maximum_couple: Yearly maximum rate for a couple, combined.
      assets_threshold_single: Assets free area for a single homeowner.
      assets_threshold_couple: Assets free area for a homeowner couple.
      non_homeowner_extra: Extra free area for people who do not own a home.
      income_threshold_single: Yearly income free area for a single person.
      income_threshold_couple: Yearly income free area for a couple, combined.
      deeming_rate_lower: Deeming rate below the deeming threshold.
      deeming_rate_upper: Deeming rate above the deeming threshold.
      deeming_threshold_single: Deeming threshold for a single person.
      deeming_threshold_couple: Deeming threshold for a couple.
      assets_taper: Yearly reduction per dollar of assets above the free area.
      income_taper: Reduction per dollar of income above the free area.
    """

    pension_age: int = PENSION_AGE
    maximum_single: float = 1_144.40 * FORTNIGHTS_PER_YEAR
    maximum_couple: float = 1_725.20 * FORTNIGHTS_PER_YEAR
    assets_threshold_single: float = 301_750.0
    assets_threshold_couple: float = 451_500.0
    non_homeowner_extra: float = 242_000.0
    income_threshold_single: float = 212.0 * FORTNIGHTS_PER_YEAR
    income_threshold_couple: float = 372.0 * FORTNIGHTS_PER_YEAR
    deeming_rate_lower: float = 0.025
    deeming_rate_upper: float = 0.0425
    deeming_threshold_single: float = 62_600.0
    deeming_threshold_couple: float = 103_800.0
    # $3 a fortnight for every $1,000 above the free area.
    assets_taper: float = 3.0 * FORTNIGHTS_PER_YEAR / 1_000.0
    income_taper: float = 0.5


DEFAULT_AGE_PENSION_RULES = AgePensionRules()


def is_pension_age(age: int, rules: AgePensionRules = DEFAULT_AGE_PENSION_RULES) -> bool:
    return age >= rules.pension_age


def deemed_income(
    financial_assets: float,
    *,
    couple: bool,
    rules: AgePensionRules = DEFAULT_AGE_PENSION_RULES,
) -> float:
    """Income deemed to be earned on ``financial_assets``, whatever they return."""

    assets = max(0.0, float(financial_assets))
    threshold = rules.deeming_threshold_couple if couple else rules.deeming_threshold_single
    lower = min(assets, threshold)
    return lower * rules.deeming_rate_lower + (assets - lower) * rules.deeming_rate_upper


def household_age_pension(
    ages: Sequence[int],
    assessable_assets: float,
    *,
    homeowner: bool = True,
    rules: AgePensionRules = DEFAULT_AGE_PENSION_RULES,
) -> tuple[float, ...]:
    """Yearly Age Pension of each household member.

    Args:
      ages: Age of every member this year; one entry for a single person, two
        for a couple.
      assessable_assets: Combined assets counted by the means tests, super
        and investments included, the family home excluded.
      homeowner: Whether the household owns its home.
      rules: Rates and thresholds.

    Returns:
      One amount per entry of ``ages``; zero below pension age.

    Raises:
      ValueError: If ``ages`` does not describe a single person or a couple.
    """

    if len(ages) not in (1, 2):
        msg = "ages must describe a single person or a couple"
        raise ValueError(msg)
    couple = len(ages) == 2
    assets = max(0.0, float(assessable_assets))
    if couple:
        maximum = rules.maximum_couple
        assets_free = rules.assets_threshold_couple
        income_free = rules.income_threshold_couple
    else:
        maximum = rules.maximum_single
        assets_free = rules.assets_threshold_single
        income_free = rules.income_threshold_single
    if not homeowner:
        assets_free += rules.non_homeowner_extra

    assets_rate = maximum - max(0.0, assets - assets_free) * rules.assets_taper
    income = deemed_income(assets, couple=couple, rules=rules)
    income_rate = maximum - max(0.0, income - income_free) * rules.income_taper
    household_rate = max(0.0, min(assets_rate, income_rate))
    share = household_rate / len(ages)
    return tuple(share if is_pension_age(age, rules) else 0.0 for age in ages)
