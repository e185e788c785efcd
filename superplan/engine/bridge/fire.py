"""Bridge-funding feasibility for retiring before preservation age.

Between stopping work and reaching preservation age a household cannot draw on
super, so the gap between expenses and other income has to be funded from a
lump sum. The calculator sizes that lump sum for four household strategies and
compares it with the money available, either as a flat amount or as the
probability-weighted, after-tax value of expected windfalls.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from enum import Enum

from superplan.engine.annuity.formulas import fire_number, years_to_target
from superplan.engine.household import Person
from superplan.engine.logging import setup_logger

from .events import WindfallEvent, events_in_window, net_expected_value, validate_windfall_event
from .income import BridgeIncomePlan, BridgeIncomeSource, plan_bridge_income, validate_income_source

__all__ = [
    "HouseholdStrategy",
    "Pre60FireSettings",
    "FireMilestone",
    "SuperAtPreservation",
    "FireProjection",
    "MAX_RETURN_RATE",
    "MAX_INFLATION_RATE",
    "bridge_lump_sum",
    "bridge_requirement",
    "balance_at_preservation",
    "project_fire",
]

LOG = setup_logger(__name__)

MAX_RETURN_RATE = 0.20
MAX_INFLATION_RATE = 0.10


class HouseholdStrategy(str, Enum):
    BOTH_FIRE = "both_fire"
    STAGGERED = "staggered"
    LUMP_SUM_BRIDGE = "lump_sum_bridge"
    SINGLE_FIRE = "single_fire"


@dataclass(frozen=True)
class Pre60FireSettings:
    """Inputs of the bridge calculator.

    Attributes:
      person1: First household member.
      person2: Second household member.
      strategy: Household retirement-timing strategy.
      household_expenses: Yearly spending of the couple.
      single_person_expenses: Yearly spending when only one person retires.
      lump_sum_available: Flat bridge fund (simple mode only).
      lump_sum_events: Expected windfalls (advanced mode only).
      use_advanced_lump_sum: Switches between the flat amount and events.
      part_time_income: Yearly part-time income during the bridge.
      investment_income: Yearly income from non-super investments.
      super_return_rate: Nominal yearly return on super.
      inflation_rate: Yearly inflation applied to the funding gap.
      income_sources: Declining income streams received during the bridge.
      safe_withdrawal_rate: Rate sizing the portfolio that funds expenses
        indefinitely once super is open.
    """

    person1: Person
    person2: Person
    strategy: HouseholdStrategy
    household_expenses: float
    single_person_expenses: float = 0.0
    lump_sum_available: float | None = None
    lump_sum_events: tuple[WindfallEvent, ...] = field(default_factory=tuple)
    use_advanced_lump_sum: bool = False
    part_time_income: float = 0.0
    investment_income: float = 0.0
    super_return_rate: float = 0.07
    inflation_rate: float = 0.025
    income_sources: tuple[BridgeIncomeSource, ...] = field(default_factory=tuple)
    safe_withdrawal_rate: float = 0.04

    def validate(self, *, as_of: date | None = None) -> list[str]:
        """Return every field-level problem; an empty list means valid."""

        errors: list[str] = []
        for label, person in (("person1", self.person1), ("person2", self.person2)):
            if person.retirement_age < person.current_age:
                errors.append(f"{label}.retirement_age must be >= current_age")
        if not 0.0 <= self.super_return_rate <= MAX_RETURN_RATE:
            errors.append(f"super_return_rate must lie in [0, {MAX_RETURN_RATE}]")
        if not 0.0 <= self.inflation_rate <= MAX_INFLATION_RATE:
            errors.append(f"inflation_rate must lie in [0, {MAX_INFLATION_RATE}]")
        if self.household_expenses < 0.0 or self.single_person_expenses < 0.0:
            errors.append("expenses must be >= 0")
        if self.part_time_income < 0.0 or self.investment_income < 0.0:
            errors.append("part_time_income and investment_income must be >= 0")
        if not 0.0 < self.safe_withdrawal_rate <= 0.10:
            errors.append("safe_withdrawal_rate must lie in (0, 0.1]")
        for idx, source in enumerate(self.income_sources):
            errors.extend(validate_income_source(source, path=f"income_sources[{idx}]"))
        if self.use_advanced_lump_sum:
            if not self.lump_sum_events:
                errors.append("lump_sum_events are required when use_advanced_lump_sum is set")
            if self.lump_sum_available is not None:
                errors.append(
                    "lump_sum_available must be omitted when use_advanced_lump_sum is set"
                )
            for idx, event in enumerate(self.lump_sum_events):
                errors.extend(
                    validate_windfall_event(event, as_of=as_of, path=f"lump_sum_events[{idx}]")
                )
        else:
            if self.lump_sum_available is None:
                errors.append("lump_sum_available is required in simple mode")
            elif self.lump_sum_available < 0.0:
                errors.append("lump_sum_available must be >= 0")
            if self.lump_sum_events:
                errors.append("lump_sum_events require use_advanced_lump_sum")
        return errors

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> Pre60FireSettings:
        """Build settings from a YAML mapping."""

        raw_events = payload.get("lump_sum_events") or []
        events = tuple(
            WindfallEvent.from_mapping(item) for item in raw_events if isinstance(item, Mapping)
        )
        raw_sources = payload.get("income_sources") or []
        sources = tuple(
            BridgeIncomeSource.from_mapping(item)
            for item in raw_sources
            if isinstance(item, Mapping)
        )
        lump_sum = payload.get("lump_sum_available")
        return cls(
            person1=Person.from_mapping(payload["person1"]),  # type: ignore[arg-type]
            person2=Person.from_mapping(payload["person2"]),  # type: ignore[arg-type]
            strategy=HouseholdStrategy(str(payload.get("strategy", "both_fire"))),
            household_expenses=float(payload["household_expenses"]),
            single_person_expenses=float(payload.get("single_person_expenses", 0.0)),
            lump_sum_available=float(lump_sum) if lump_sum is not None else None,
            lump_sum_events=events,
            use_advanced_lump_sum=bool(payload.get("use_advanced_lump_sum", False)),
            part_time_income=float(payload.get("part_time_income", 0.0)),
            investment_income=float(payload.get("investment_income", 0.0)),
            super_return_rate=float(payload.get("super_return_rate", 0.07)),
            inflation_rate=float(payload.get("inflation_rate", 0.025)),
            income_sources=sources,
            safe_withdrawal_rate=float(payload.get("safe_withdrawal_rate", 0.04)),
        )


@dataclass(frozen=True)
class FireMilestone:
    person: str
    age: int
    year: int
    years_until_preservation: int


@dataclass(frozen=True)
class SuperAtPreservation:
    person1_balance: float
    person1_preservation_year: int
    person2_balance: float
    person2_preservation_year: int

    @property
    def combined_balance(self) -> float:
        return self.person1_balance + self.person2_balance


@dataclass(frozen=True)
class FireProjection:
    """Result of :func:`project_fire`.

    Attributes:
      is_feasible: ``True`` when the available money covers the bridge.
      strategy: Strategy that was evaluated.
      first_to_fire: Milestone of the first person to stop work.
      second_to_fire: Milestone of the second person, ``None`` when both stop
        in the same year.
      total_bridge_years: Length of the funded window.
      annual_household_gap: Yearly gap in today's money.
      lump_sum_required: Inflation-indexed sum of the gap over the window.
      effective_lump_sum: Money available for the bridge.
      lump_sum_shortfall: ``max(0, required - effective)``.
      working_partner_contribution: Salary counted as household income.
      super_at_preservation: Projected balances at each preservation age.
      strategy_description: One-line summary.
      recommendations: Suggested actions.
      bridge_income: Year-by-year projection of ``income_sources``, ``None``
        without sources.
      fire_number: Portfolio that funds household expenses at the safe
        withdrawal rate.
      years_to_fire_number: Years of contributions until combined super
        reaches ``fire_number`` at the super return; ``inf`` without
        contributions.
    """

    is_feasible: bool
    strategy: HouseholdStrategy
    first_to_fire: FireMilestone
    second_to_fire: FireMilestone | None
    total_bridge_years: int
    annual_household_gap: float
    lump_sum_required: float
    effective_lump_sum: float
    lump_sum_shortfall: float
    working_partner_contribution: float
    super_at_preservation: SuperAtPreservation
    strategy_description: str
    recommendations: tuple[str, ...]
    bridge_income: BridgeIncomePlan | None = None
    fire_number: float = 0.0
    years_to_fire_number: float = 0.0


def bridge_lump_sum(annual_gap: float, years: int, inflation_rate: float) -> float:
    """Inflation-indexed total of ``annual_gap`` over ``years``."""

    return sum(annual_gap * (1.0 + inflation_rate) ** year for year in range(max(0, years)))


def bridge_requirement(
    annual_gap: float,
    start_year: int,
    years: int,
    inflation_rate: float,
    income: BridgeIncomePlan | None = None,
) -> float:
    """Lump sum needed to cover ``annual_gap`` from ``start_year`` for ``years``.

    The gap is indexed by inflation and each year is reduced by the after-tax
    income of ``income`` for that calendar year, never below zero.
    """

    if income is None:
        return bridge_lump_sum(annual_gap, years, inflation_rate)
    total = 0.0
    for offset in range(max(0, years)):
        indexed = annual_gap * (1.0 + inflation_rate) ** offset
        total += max(0.0, indexed - income.net_in_year(start_year + offset))
    return total


def balance_at_preservation(person: Person, return_rate: float) -> float:
    """Project ``person``'s super to their preservation age.

    Contributions are added until the earlier of retirement and preservation
    age; afterwards the balance only grows. The result is rounded to whole
    dollars.
    """

    working_years = max(0, person.retirement_age - person.current_age)
    years_to_preservation = max(0, person.access_age - person.current_age)
    contribution_years = min(working_years, years_to_preservation)
    balance = float(person.current_balance)
    for _ in range(contribution_years):
        balance = balance * (1.0 + return_rate) + person.annual_contribution
    for _ in range(years_to_preservation - contribution_years):
        balance *= 1.0 + return_rate
    return float(round(balance))


def _milestone(person: Person, as_of_year: int) -> FireMilestone:
    return FireMilestone(
        person=person.name,
        age=person.retirement_age,
        year=as_of_year + (person.retirement_age - person.current_age),
        years_until_preservation=max(0, person.access_age - person.retirement_age),
    )


def _preservation_year(person: Person, as_of_year: int) -> int:
    return as_of_year + (person.access_age - person.current_age)


def _staggered_notes(
    retiree: FireMilestone, partner: Person, salary: float, expenses: float
) -> tuple[str, list[str]]:
    coverage = salary / expenses * 100.0 if expenses > 0.0 and salary > 0.0 else 0.0
    description = (
        f"{retiree.person} retires first in {retiree.year}, {partner.name} continues working. "
        f"Working salary covers {coverage:.0f}% of household expenses "
        f"(${salary:,.0f}/year vs ${expenses:,.0f}/year needed)."
    )
    if salary >= expenses:
        notes = [
            f"{partner.name}'s salary fully covers household expenses - no lump sum needed!",
            "Consider increasing super contributions with surplus income",
        ]
    elif salary > 0.0:
        gap_share = (expenses - salary) / expenses * 100.0 if expenses > 0.0 else 0.0
        notes = [
            f"{partner.name} provides significant income bridge - "
            f"only {gap_share:.0f}% gap to cover",
            "Dramatically reduced lump sum requirement due to ongoing income",
        ]
    else:
        notes = [
            f"Warning: {partner.name} not set to keep working - consider enabling ongoing salary",
        ]
    return description, notes


def project_fire(settings: Pre60FireSettings, *, as_of_year: int | None = None) -> FireProjection:
    """Size the bridge lump sum for ``settings.strategy``.

    Args:
      settings: Household inputs.
      as_of_year: Calendar year of the projection start; defaults to the
        current year.

    Returns:
      A :class:`FireProjection`.

    Raises:
      ValueError: If ``settings`` fails validation; every problem is listed.
    """

    errors = settings.validate()
    if errors:
        raise ValueError("invalid bridge settings: " + "; ".join(errors))

    year0 = as_of_year if as_of_year is not None else date.today().year
    p1, p2 = settings.person1, settings.person2
    m1, m2 = _milestone(p1, year0), _milestone(p2, year0)
    first = m1 if m1.year <= m2.year else m2
    second = None if m1.year == m2.year else (m1 if m1.year > m2.year else m2)
    pres1, pres2 = _preservation_year(p1, year0), _preservation_year(p2, year0)
    other_income = settings.part_time_income + settings.investment_income

    working_contribution = 0.0
    strategy = settings.strategy
    if strategy is HouseholdStrategy.BOTH_FIRE:
        both_stop = max(m1.year, m2.year)
        bridge_start = both_stop
        bridge_years = max(0, min(pres1, pres2) - both_stop)
        gap = max(0.0, settings.household_expenses - other_income)
        description = f"Both retire in {both_stop}, bridge {bridge_years} years until super access"
        notes = ["Both stop working simultaneously", "Live off lump sum until preservation age"]
    elif strategy is HouseholdStrategy.STAGGERED:
        partner = p2 if first is m1 else p1
        salary = partner.ongoing_salary if partner.keeps_working else 0.0
        working_contribution = salary
        bridge_start = first.year
        bridge_years = first.years_until_preservation
        gap = max(0.0, settings.household_expenses - other_income - salary)
        description, notes = _staggered_notes(first, partner, salary, settings.household_expenses)
    elif strategy is HouseholdStrategy.LUMP_SUM_BRIDGE:
        first_stop = min(m1.year, m2.year)
        bridge_start = first_stop
        bridge_years = max(0, min(pres1, pres2) - first_stop)
        gap = max(0.0, settings.household_expenses - other_income)
        description = (
            f"Both stop working in {first_stop}, live on lump sum for {bridge_years} years, "
            "then sequential super access"
        )
        notes = [
            "Drain first person's super completely before touching second",
            "Optimize for tax brackets and longevity",
            "Consider pension phase transition timing",
        ]
    elif strategy is HouseholdStrategy.SINGLE_FIRE:
        bridge_start = first.year
        bridge_years = first.years_until_preservation
        gap = max(0.0, settings.single_person_expenses - other_income)
        description = (
            f"Only {first.person} retires in {first.year}, reduced expenses for single-person FIRE"
        )
        notes = ["Lower expenses during solo FIRE period", "Partner continues building super"]
    else:  # pragma: no cover - exhaustive over HouseholdStrategy
        raise ValueError(f"unsupported household strategy: {strategy}")

    income_plan: BridgeIncomePlan | None = None
    if settings.income_sources:
        income_plan = plan_bridge_income(
            settings.income_sources, bridge_start, bridge_start + bridge_years - 1
        )
        notes.extend(income_plan.recommendations)
    required = bridge_requirement(
        gap, bridge_start, bridge_years, settings.inflation_rate, income_plan
    )
    window_start, window_end = min(m1.year, m2.year), min(pres1, pres2)
    if settings.use_advanced_lump_sum:
        effective = net_expected_value(
            events_in_window(settings.lump_sum_events, window_start, window_end)
        )
    else:
        effective = float(settings.lump_sum_available or 0.0)
    shortfall = max(0.0, required - effective)

    super_balances = SuperAtPreservation(
        person1_balance=balance_at_preservation(p1, settings.super_return_rate),
        person1_preservation_year=pres1,
        person2_balance=balance_at_preservation(p2, settings.super_return_rate),
        person2_preservation_year=pres2,
    )
    target = fire_number(settings.household_expenses, settings.safe_withdrawal_rate)
    years_needed = years_to_target(
        float(p1.current_balance + p2.current_balance),
        target,
        float(p1.annual_contribution + p2.annual_contribution),
        settings.super_return_rate,
    )
    if super_balances.combined_balance < target:
        coverage = super_balances.combined_balance / target * 100.0 if target > 0.0 else 0.0
        notes.append(
            f"Super at preservation covers {coverage:.0f}% of the ${target:,.0f} needed "
            f"to fund expenses at {settings.safe_withdrawal_rate:.1%}"
        )
    LOG.info(
        "bridge strategy=%s years=%s required=%.0f effective=%.0f shortfall=%.0f",
        strategy.value,
        bridge_years,
        required,
        effective,
        shortfall,
        extra={"strategy": strategy.value},
    )
    return FireProjection(
        is_feasible=shortfall == 0.0,
        strategy=strategy,
        first_to_fire=first,
        second_to_fire=second,
        total_bridge_years=bridge_years,
        annual_household_gap=gap,
        lump_sum_required=required,
        effective_lump_sum=effective,
        lump_sum_shortfall=shortfall,
        working_partner_contribution=working_contribution,
        super_at_preservation=super_balances,
        strategy_description=description,
        recommendations=tuple(notes),
        bridge_income=income_plan,
        fire_number=target,
        years_to_fire_number=years_needed,
    )
