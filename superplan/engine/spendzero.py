"""Spend-to-zero drawdown of two pooled super balances.

The simulator sizes a level real withdrawal that exhausts the combined balance
by the planning age, then replays the drawdown year by year with nominal
growth and inflation-indexed withdrawals.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from enum import Enum

import pandas as pd

from superplan.engine.annuity.formulas import real_rate, spend_to_zero_withdrawal
from superplan.engine.logging import setup_logger

__all__ = [
    "WithdrawalOrder",
    "SuperSpendSettings",
    "SpendZeroYear",
    "RiskAnalysis",
    "SpendZeroProjection",
    "EXHAUSTION_THRESHOLD",
    "draw_from_accounts",
    "simulate_spend_to_zero",
]

LOG = setup_logger(__name__)

EXHAUSTION_THRESHOLD = 1_000.0
EXTRA_YEARS = 5
DEFAULT_START_AGE = 60


class WithdrawalOrder(str, Enum):
    SEQUENTIAL = "sequential"
    PROPORTIONAL = "proportional"
    # Tax-aware ordering is not modelled yet and falls back to sequential.
    OPTIMIZE_TAX = "optimize_tax"


@dataclass(frozen=True)
class SuperSpendSettings:
    """Inputs of the spend-to-zero simulator.

    Attributes:
      person1_name: Label of the first account holder.
      person1_balance: First account balance at ``start_age``.
      person2_name: Label of the second account holder.
      person2_balance: Second account balance at ``start_age``.
      withdrawal_order: Which account funds each withdrawal.
      planning_age: Age by which the money should be spent.
      annual_expenses: Minimum yearly spending in today's money.
      return_rate: Nominal yearly return.
      volatility: Yearly return volatility, used for recommendations only.
      inflation_rate: Yearly inflation used to index withdrawals.
      start_age: Age at which the drawdown begins.
      person1_preservation_age: Preservation age of the first holder.
      person2_preservation_age: Preservation age of the second holder.
    """

    person1_name: str
    person1_balance: float
    person2_name: str
    person2_balance: float
    withdrawal_order: WithdrawalOrder = WithdrawalOrder.SEQUENTIAL
    planning_age: int = 90
    annual_expenses: float = 0.0
    return_rate: float = 0.07
    volatility: float = 0.12
    inflation_rate: float = 0.025
    start_age: int = DEFAULT_START_AGE
    person1_preservation_age: int = 60
    person2_preservation_age: int = 60

    @property
    def total_balance(self) -> float:
        return self.person1_balance + self.person2_balance

    @property
    def years_to_live(self) -> int:
        return self.planning_age - self.start_age

    def validate(self) -> list[str]:
        errors: list[str] = []
        if not 70 <= self.planning_age <= 120:
            errors.append("planning_age must lie in [70, 120]")
        if self.planning_age <= self.start_age:
            errors.append("planning_age must be greater than start_age")
        if not 0.0 <= self.return_rate <= 0.20:
            errors.append("return_rate must lie in [0, 0.2]")
        if not 0.0 <= self.volatility <= 0.50:
            errors.append("volatility must lie in [0, 0.5]")
        if not 0.0 <= self.inflation_rate <= 0.10:
            errors.append("inflation_rate must lie in [0, 0.1]")
        if self.person1_balance < 0.0 or self.person2_balance < 0.0:
            errors.append("balances must be >= 0")
        if self.annual_expenses < 0.0:
            errors.append("annual_expenses must be >= 0")
        return errors

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> SuperSpendSettings:
        """Build settings from a YAML mapping."""

        return cls(
            person1_name=str(payload.get("person1_name", "Person 1")),
            person1_balance=float(payload["person1_balance"]),
            person2_name=str(payload.get("person2_name", "Person 2")),
            person2_balance=float(payload.get("person2_balance", 0.0)),
            withdrawal_order=WithdrawalOrder(str(payload.get("withdrawal_order", "sequential"))),
            planning_age=int(payload.get("planning_age", 90)),
            annual_expenses=float(payload.get("annual_expenses", 0.0)),
            return_rate=float(payload.get("return_rate", 0.07)),
            volatility=float(payload.get("volatility", 0.12)),
            inflation_rate=float(payload.get("inflation_rate", 0.025)),
            start_age=int(payload.get("start_age", DEFAULT_START_AGE)),
            person1_preservation_age=int(payload.get("person1_preservation_age", 60)),
            person2_preservation_age=int(payload.get("person2_preservation_age", 60)),
        )


@dataclass(frozen=True)
class SpendZeroYear:
    year: int
    age: int
    person1_balance: float
    person2_balance: float
    combined_balance: float
    withdrawal: float
    real_withdrawal: float


@dataclass(frozen=True)
class RiskAnalysis:
    success_probability: int
    worst_case_scenario: str
    recommendations: tuple[str, ...]


@dataclass(frozen=True)
class SpendZeroProjection:
    """Result of :func:`simulate_spend_to_zero`.

    Attributes:
      annual_withdrawal: First-year withdrawal in today's money.
      final_year: Calendar year in which the balance is exhausted, or the
        last simulated year.
      years_funded: Number of simulated years up to ``final_year``.
      exhausted: Whether the combined balance fell below the threshold.
      strategy_description: Plain-language summary of the ordering.
      yearly: Year-by-year balances.
      risk_analysis: Coarse success heuristic and recommendations.
    """

    annual_withdrawal: float
    final_year: int
    years_funded: int
    exhausted: bool
    strategy_description: str
    yearly: tuple[SpendZeroYear, ...]
    risk_analysis: RiskAnalysis

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame([vars(row) for row in self.yearly]).set_index("year")


def draw_from_accounts(
    balance1: float,
    balance2: float,
    amount: float,
    order: WithdrawalOrder,
) -> tuple[float, float]:
    """Withdraw ``amount`` from two accounts and return the new balances.

    Balances never go below zero; an amount above the combined balance
    empties both accounts.
    """

    amount = min(amount, balance1 + balance2)
    if order is WithdrawalOrder.PROPORTIONAL:
        total = balance1 + balance2
        if total <= 0.0:
            return balance1, balance2
        share1 = balance1 / total
        return (
            max(0.0, balance1 - amount * share1),
            max(0.0, balance2 - amount * (1.0 - share1)),
        )
    if balance1 >= amount:
        return balance1 - amount, balance2
    return 0.0, max(0.0, balance2 - (amount - balance1))


def _describe(settings: SuperSpendSettings) -> str:
    p1, p2 = settings.person1_name, settings.person2_name
    if settings.withdrawal_order is WithdrawalOrder.SEQUENTIAL:
        return (
            f"Drain {p1}'s super first (${settings.person1_balance:,.0f}), "
            f"then {p2}'s super (${settings.person2_balance:,.0f})."
        )
    if settings.withdrawal_order is WithdrawalOrder.PROPORTIONAL:
        total = settings.total_balance
        share1 = settings.person1_balance / total * 100.0 if total > 0.0 else 50.0
        return (
            f"Withdraw proportionally from both accounts. Each year, take {share1:.0f}% "
            f"from {p1} and {100.0 - share1:.0f}% from {p2}."
        )
    return (
        "Tax-optimised ordering is not modelled yet; withdrawals follow the "
        f"sequential order and drain {p1}'s super first."
    )


def _risk_analysis(
    settings: SuperSpendSettings, years_funded: int, annual_withdrawal: float
) -> RiskAnalysis:
    target = settings.years_to_live
    if years_funded >= target:
        success = 90
    elif years_funded >= target - 2:
        success = 75
    elif years_funded >= target - 5:
        success = 60
    else:
        success = 30

    if success >= 90:
        worst_case = "Money lasts until the planning age with a market volatility buffer"
    elif success >= 75:
        worst_case = "May run short by 1-2 years in poor market conditions"
    else:
        worst_case = "Significant risk of running out of money 3-5 years early"

    notes: list[str] = []
    if success < 90:
        notes.append("Consider reducing annual expenses by 10-15%")
        notes.append("Explore part-time income options to reduce withdrawal needs")
    if annual_withdrawal > settings.annual_expenses * 1.1:
        notes.append("Your super can support higher spending than requested")
    if settings.volatility > 0.15:
        notes.append("Consider more conservative investment allocation as you age")
    notes.append("Review and adjust strategy annually based on market performance")
    return RiskAnalysis(
        success_probability=success,
        worst_case_scenario=worst_case,
        recommendations=tuple(notes),
    )


def simulate_spend_to_zero(
    settings: SuperSpendSettings,
    *,
    as_of_year: int | None = None,
) -> SpendZeroProjection:
    """Replay a spend-to-zero drawdown year by year.

    Args:
      settings: Balances, ordering and market assumptions.
      as_of_year: Calendar year of the first drawdown year; defaults to the
        current year.

    Returns:
      A :class:`SpendZeroProjection`.

    Raises:
      ValueError: If ``settings`` fails validation.
    """

    errors = settings.validate()
    if errors:
        raise ValueError("invalid spend-to-zero settings: " + "; ".join(errors))

    year0 = as_of_year if as_of_year is not None else date.today().year
    years_to_live = settings.years_to_live
    real_return = real_rate(settings.return_rate, settings.inflation_rate)
    payment = spend_to_zero_withdrawal(
        settings.total_balance, years_to_live, real_return, settings.annual_expenses
    )
    order = settings.withdrawal_order
    if order is WithdrawalOrder.OPTIMIZE_TAX:
        LOG.warning("optimize_tax ordering is not modelled; using sequential withdrawals")
        order = WithdrawalOrder.SEQUENTIAL

    balance1 = float(settings.person1_balance)
    balance2 = float(settings.person2_balance)
    rows: list[SpendZeroYear] = []
    exhausted = False
    for offset in range(years_to_live + EXTRA_YEARS):
        # Withdrawals fall at year end, after that year's growth and inflation.
        indexed = payment * (1.0 + settings.inflation_rate) ** (offset + 1)
        balance1 *= 1.0 + settings.return_rate
        balance2 *= 1.0 + settings.return_rate
        balance1, balance2 = draw_from_accounts(balance1, balance2, indexed, order)
        rows.append(
            SpendZeroYear(
                year=year0 + offset,
                age=settings.start_age + offset,
                person1_balance=balance1,
                person2_balance=balance2,
                combined_balance=balance1 + balance2,
                withdrawal=indexed,
                real_withdrawal=payment,
            )
        )
        if balance1 + balance2 < EXHAUSTION_THRESHOLD:
            exhausted = True
            break

    final_year = rows[-1].year if rows else year0 + years_to_live
    years_funded = len(rows)
    LOG.info(
        "spend-to-zero payment=%.0f years_funded=%s target=%s exhausted=%s",
        payment,
        years_funded,
        years_to_live,
        exhausted,
        extra={"strategy": settings.withdrawal_order.value},
    )
    return SpendZeroProjection(
        annual_withdrawal=payment,
        final_year=final_year,
        years_funded=years_funded,
        exhausted=exhausted,
        strategy_description=_describe(settings),
        yearly=tuple(rows),
        risk_analysis=_risk_analysis(settings, years_funded, payment),
    )
