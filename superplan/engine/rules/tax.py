"""Resident income tax and superannuation contribution rules."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from superplan.engine.household import Person

__all__ = [
    "TaxBracket",
    "RESIDENT_BRACKETS",
    "MEDICARE_LEVY",
    "ContributionRules",
    "DEFAULT_CONTRIBUTION_RULES",
    "income_tax",
    "marginal_rate",
    "after_tax_income",
    "super_contribution",
    "contribution_for_year",
]


@dataclass(frozen=True)
class TaxBracket:
    """Progressive bracket applied to income above ``threshold``.

    Attributes:
      threshold: Income at which the bracket starts.
      rate: Marginal rate applied above ``threshold``.
    """

    threshold: float
    rate: float


RESIDENT_BRACKETS: tuple[TaxBracket, ...] = (
    TaxBracket(0.0, 0.0),
    TaxBracket(18_200.0, 0.19),
    TaxBracket(45_000.0, 0.325),
    TaxBracket(120_000.0, 0.37),
    TaxBracket(180_000.0, 0.45),
)
MEDICARE_LEVY = 0.02


@dataclass(frozen=True)
class ContributionRules:
    """Superannuation contribution parameters.

    Attributes:
      guarantee_rate: Mandatory employer contribution as a share of salary.
      concessional_cap: Yearly cap on concessional contributions.
      catch_up_cap: Cap applied from ``catch_up_age`` onwards.
      catch_up_age: Age at which the higher cap applies.
      voluntary_limit: Maximum voluntary top-up per year.
    """

    guarantee_rate: float = 0.105
    concessional_cap: float = 25_000.0
    catch_up_cap: float = 27_500.0
    catch_up_age: int = 50
    voluntary_limit: float = 5_000.0

    def cap_for_age(self, age: int) -> float:
        return self.catch_up_cap if age >= self.catch_up_age else self.concessional_cap


DEFAULT_CONTRIBUTION_RULES = ContributionRules()


def income_tax(
    income: float,
    brackets: tuple[TaxBracket, ...] = RESIDENT_BRACKETS,
    medicare_levy: float = MEDICARE_LEVY,
) -> float:
    """Return the progressive income tax plus the flat Medicare levy.

    Args:
      income: Gross yearly taxable income.
      brackets: Ordered progressive brackets.
      medicare_levy: Flat levy applied to the full income.

    Returns:
      Total tax payable; zero for non-positive income.
    """

    if income <= 0.0:
        return 0.0
    tax = 0.0
    ordered = sorted(brackets, key=lambda bracket: bracket.threshold)
    for idx, bracket in enumerate(ordered):
        if income <= bracket.threshold:
            break
        upper = ordered[idx + 1].threshold if idx + 1 < len(ordered) else income
        taxable = min(income, upper) - bracket.threshold
        tax += taxable * bracket.rate
    return tax + income * medicare_levy


def marginal_rate(income: float, brackets: tuple[TaxBracket, ...] = RESIDENT_BRACKETS) -> float:
    """Return the bracket rate applied to the last dollar of ``income``."""

    rate = 0.0
    for bracket in sorted(brackets, key=lambda item: item.threshold):
        if income > bracket.threshold:
            rate = bracket.rate
    return rate


def after_tax_income(income: float) -> float:
    return income - income_tax(income)


def super_contribution(
    income: float,
    age: int,
    rules: ContributionRules = DEFAULT_CONTRIBUTION_RULES,
) -> float:
    """Return mandatory plus voluntary contributions for one year.

    The voluntary part fills the remaining concessional cap up to the
    voluntary limit.
    """

    if income <= 0.0:
        return 0.0
    mandatory = income * rules.guarantee_rate
    headroom = max(0.0, rules.cap_for_age(age) - mandatory)
    voluntary = min(rules.voluntary_limit, headroom)
    return mandatory + voluntary


def contribution_for_year(
    person: Person,
    age: int,
    rules: ContributionRules = DEFAULT_CONTRIBUTION_RULES,
) -> float:
    """Contribution credited to ``person`` in the year they are ``age``.

    Nothing is credited once the person has stopped work.
    """

    if not person.is_working(age):
        return 0.0
    amount = float(person.annual_contribution)
    if person.salary > 0.0:
        amount += super_contribution(person.salary, age, rules)
    return amount
