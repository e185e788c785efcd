"""Input and output records of the Monte Carlo orchestrator."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date
from enum import Enum

import pandas as pd

from superplan.engine.household import Person
from superplan.engine.withdrawal.guardrails import DEFAULT_GUARDRAILS, Guardrails

__all__ = [
    "ScenarioMode",
    "AllocationTarget",
    "WithdrawalPolicy",
    "BaselineSettings",
    "LumpSumEvent",
    "Scenario",
    "PercentileBand",
    "YearlyProjection",
    "DistributionData",
    "SimulationResult",
    "SPLIT_TOLERANCE",
    "events_in_year",
]

SPLIT_TOLERANCE = 1e-9


class ScenarioMode(str, Enum):
    TARGET_INCOME = "target_income"
    TARGET_DATE = "target_date"


class AllocationTarget(str, Enum):
    SUPER = "super"
    MORTGAGE_PAYOFF = "mortgage_payoff"
    TAXABLE_INVESTMENT = "taxable_investment"


class WithdrawalPolicy(str, Enum):
    FIXED = "fixed"
    DYNAMIC = "dynamic"
    GUARDRAILS = "guardrails"


def _parse_date(value: object) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


@dataclass(frozen=True)
class BaselineSettings:
    """Snapshot of the pooled two-person starting state.

    Attributes:
      person1: First household member.
      person2: Second household member.
      expected_return_mean: Mean nominal yearly return.
      expected_return_volatility: Standard deviation of yearly returns.
      inflation_rate: Yearly inflation used to index targets and withdrawals.
      safe_withdrawal_rate: Fixed withdrawal rate applied to accessible
        balances.
      planning_age: Longevity age closing the projection horizon.
      mortgage_balance: Outstanding home loan principal today.
      mortgage_rate: Nominal yearly interest rate on the home loan.
      mortgage_years: Remaining contract term of the home loan.
      homeowner: Whether the household owns its home, which sets the Age
        Pension assets free area.
    """

    person1: Person
    person2: Person
    expected_return_mean: float = 0.07
    expected_return_volatility: float = 0.12
    inflation_rate: float = 0.025
    safe_withdrawal_rate: float = 0.04
    planning_age: int = 95
    mortgage_balance: float = 0.0
    mortgage_rate: float = 0.06
    mortgage_years: int = 30
    homeowner: bool = True

    def __post_init__(self) -> None:
        errors: list[str] = []
        if self.expected_return_volatility < 0.0:
            errors.append("baseline.expected_return_volatility must be >= 0")
        if self.expected_return_mean <= -1.0:
            errors.append("baseline.expected_return_mean must be > -1")
        if not 0.0 < self.safe_withdrawal_rate <= 0.10:
            errors.append("baseline.safe_withdrawal_rate must lie in (0, 0.1]")
        if not -0.05 <= self.inflation_rate <= 0.20:
            errors.append("baseline.inflation_rate must lie in [-0.05, 0.2]")
        if self.planning_age <= 0:
            errors.append("baseline.planning_age must be > 0")
        if self.mortgage_balance < 0.0:
            errors.append("baseline.mortgage_balance must be >= 0")
        if not 0.0 <= self.mortgage_rate <= 0.25:
            errors.append("baseline.mortgage_rate must lie in [0, 0.25]")
        if self.mortgage_years <= 0:
            errors.append("baseline.mortgage_years must be > 0")
        if errors:
            raise ValueError("; ".join(errors))

    @property
    def horizon_years(self) -> int:
        """Years until the younger person reaches the planning age."""

        youngest = min(self.person1.current_age, self.person2.current_age)
        return max(0, self.planning_age - youngest)

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> BaselineSettings:
        """Create baseline settings from a YAML mapping.

        Args:
          payload: Mapping with ``person1``, ``person2`` and market
            assumptions.

        Returns:
          A validated :class:`BaselineSettings`.
        """

        return cls(
            person1=Person.from_mapping(payload["person1"]),  # type: ignore[arg-type]
            person2=Person.from_mapping(payload["person2"]),  # type: ignore[arg-type]
            expected_return_mean=float(payload.get("expected_return_mean", 0.07)),
            expected_return_volatility=float(payload.get("expected_return_volatility", 0.12)),
            inflation_rate=float(payload.get("inflation_rate", 0.025)),
            safe_withdrawal_rate=float(payload.get("safe_withdrawal_rate", 0.04)),
            planning_age=int(payload.get("planning_age", 95)),
            mortgage_balance=float(payload.get("mortgage_balance", 0.0)),
            mortgage_rate=float(payload.get("mortgage_rate", 0.06)),
            mortgage_years=int(payload.get("mortgage_years", 30)),
            homeowner=bool(payload.get("homeowner", True)),
        )


@dataclass(frozen=True)
class LumpSumEvent:
    """One-off amount entering or leaving the household.

    Attributes:
      name: Label used in reports.
      amount: Positive for gifts or income, negative for planned expenses.
      event_date: Date of the event; only its year matters.
      allocation: Where the money goes.
      person1_split: Percentage allocated to person 1.
      person2_split: Percentage allocated to person 2.
    """

    name: str
    amount: float
    event_date: date
    allocation: AllocationTarget = AllocationTarget.SUPER
    person1_split: float = 50.0
    person2_split: float = 50.0

    def __post_init__(self) -> None:
        splits = (("person1_split", self.person1_split), ("person2_split", self.person2_split))
        for label, split in splits:
            if not 0.0 <= split <= 100.0:
                msg = f"lump sum {self.name!r}: {label} must lie in [0, 100]"
                raise ValueError(msg)
        if abs(self.person1_split + self.person2_split - 100.0) > SPLIT_TOLERANCE:
            msg = f"lump sum {self.name!r}: splits must sum to 100"
            raise ValueError(msg)

    @property
    def year(self) -> int:
        return self.event_date.year

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> LumpSumEvent:
        return cls(
            name=str(payload.get("name", "event")),
            amount=float(payload["amount"]),
            event_date=_parse_date(payload["event_date"]),
            allocation=AllocationTarget(str(payload.get("allocation", "super"))),
            person1_split=float(payload.get("person1_split", 50.0)),
            person2_split=float(payload.get("person2_split", 50.0)),
        )


@dataclass(frozen=True)
class Scenario:
    """Named simulation request.

    Exactly one of ``target_annual_income`` and ``target_retirement_date`` is
    set, matching ``mode``.
    With ``include_age_pension`` retirement income also counts the
    means-tested Age Pension of each person from pension age.
    """

    name: str
    mode: ScenarioMode
    monte_carlo_runs: int = 1_000
    target_annual_income: float | None = None
    target_retirement_date: date | None = None
    lump_sum_events: tuple[LumpSumEvent, ...] = field(default_factory=tuple)
    withdrawal_policy: WithdrawalPolicy = WithdrawalPolicy.FIXED
    withdrawal_rule: str = "Moderate Dynamic"
    guardrails: Guardrails = DEFAULT_GUARDRAILS
    seed: int | None = None
    include_age_pension: bool = False

    def __post_init__(self) -> None:
        errors: list[str] = []
        if self.monte_carlo_runs <= 0:
            errors.append("scenario.monte_carlo_runs must be > 0")
        if self.mode is ScenarioMode.TARGET_INCOME:
            if self.target_annual_income is None:
                errors.append("scenario.target_annual_income is required for target_income mode")
            elif self.target_annual_income <= 0.0:
                errors.append("scenario.target_annual_income must be > 0")
            if self.target_retirement_date is not None:
                errors.append(
                    "scenario.target_retirement_date is not allowed in target_income mode"
                )
        else:
            if self.target_retirement_date is None:
                errors.append("scenario.target_retirement_date is required for target_date mode")
            if self.target_annual_income is not None:
                errors.append("scenario.target_annual_income is not allowed in target_date mode")
        if errors:
            raise ValueError(f"scenario {self.name!r}: " + "; ".join(errors))

    @property
    def target_year(self) -> int | None:
        return self.target_retirement_date.year if self.target_retirement_date else None

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> Scenario:
        """Create a scenario from a YAML mapping."""

        raw_events = payload.get("lump_sum_events") or []
        events = tuple(
            LumpSumEvent.from_mapping(item) for item in raw_events if isinstance(item, Mapping)
        )
        income = payload.get("target_annual_income")
        target_date = payload.get("target_retirement_date")
        guardrails = payload.get("guardrails")
        seed = payload.get("seed")
        return cls(
            name=str(payload.get("name", "scenario")),
            mode=ScenarioMode(str(payload["mode"])),
            monte_carlo_runs=int(payload.get("monte_carlo_runs", 1_000)),
            target_annual_income=float(income) if income is not None else None,
            target_retirement_date=_parse_date(target_date) if target_date is not None else None,
            lump_sum_events=events,
            withdrawal_policy=WithdrawalPolicy(str(payload.get("withdrawal_policy", "fixed"))),
            withdrawal_rule=str(payload.get("withdrawal_rule", "Moderate Dynamic")),
            guardrails=(
                Guardrails.from_mapping(guardrails)
                if isinstance(guardrails, Mapping)
                else DEFAULT_GUARDRAILS
            ),
            seed=int(seed) if seed is not None else None,
            include_age_pension=bool(payload.get("include_age_pension", False)),
        )


@dataclass(frozen=True)
class PercentileBand:
    p10: float
    p50: float
    p90: float

    @property
    def width(self) -> float:
        return self.p90 - self.p10


@dataclass(frozen=True)
class YearlyProjection:
    """Cross-trial percentiles for one projection year."""

    year: int
    person1_age: int
    person2_age: int
    person1_balance: PercentileBand
    person2_balance: PercentileBand
    taxable_balance: PercentileBand
    combined_balance: PercentileBand
    income: PercentileBand


@dataclass(frozen=True)
class DistributionData:
    """Sorted per-trial outcomes for the final-state histogram."""

    retirement_years: tuple[int, ...]
    sustainable_incomes: tuple[float, ...]
    final_balances: tuple[float, ...]

    def to_frame(self) -> pd.DataFrame:
        """Long-form frame with ``metric`` and ``value`` columns."""

        rows: list[tuple[str, float]] = []
        rows.extend(("retirement_year", float(value)) for value in self.retirement_years)
        rows.extend(("sustainable_income", value) for value in self.sustainable_incomes)
        rows.extend(("final_balance", value) for value in self.final_balances)
        return pd.DataFrame(rows, columns=["metric", "value"])


_BAND_FIELDS = (
    "person1_balance",
    "person2_balance",
    "taxable_balance",
    "combined_balance",
    "income",
)


@dataclass(frozen=True)
class SimulationResult:
    """Aggregate output of :func:`superplan.engine.montecarlo.simulate`.

    Attributes:
      scenario: Name of the simulated scenario.
      mode: Scenario mode.
      runs: Number of trials.
      seed: Seed used for the return matrix.
      median_retirement_year: Earliest year the p50 income band meets the
        target (target_income mode).
      p10_retirement_year: First year the p10 income band meets the target.
        This is the pessimistic (late) year, not the 10th percentile of
        per-trial retirement years; those are in
        ``distribution.retirement_years``.
      p90_retirement_year: First year the p90 income band meets the target,
        the optimistic (early) year.
      median_income: p50 income at the target year (target_date mode).
      p10_income: p10 income at the target year.
      p90_income: p90 income at the target year.
      success_rate: Fraction of trials never depleted before the planning age.
      yearly_projections: Percentile bands per year.
      distribution: Sorted per-trial outcomes.
      mortgage_allocations: Lump-sum money directed to mortgage payoff.
      mortgage_interest_saved: Home loan interest avoided by those lump sums.
      mortgage_months_saved: Months cut from the home loan term.
    """

    scenario: str
    mode: ScenarioMode
    runs: int
    seed: int
    success_rate: float
    yearly_projections: tuple[YearlyProjection, ...]
    distribution: DistributionData
    median_retirement_year: int | None = None
    p10_retirement_year: int | None = None
    p90_retirement_year: int | None = None
    median_income: float | None = None
    p10_income: float | None = None
    p90_income: float | None = None
    mortgage_allocations: float = 0.0
    mortgage_interest_saved: float = 0.0
    mortgage_months_saved: int = 0

    @property
    def depletion_rate(self) -> float:
        return 1.0 - self.success_rate

    def to_frame(self) -> pd.DataFrame:
        """Flatten the yearly bands into a DataFrame indexed by year."""

        records = []
        for item in self.yearly_projections:
            record: dict[str, float | int] = {
                "year": item.year,
                "person1_age": item.person1_age,
                "person2_age": item.person2_age,
            }
            for name in _BAND_FIELDS:
                band: PercentileBand = getattr(item, name)
                record[f"{name}_p10"] = band.p10
                record[f"{name}_p50"] = band.p50
                record[f"{name}_p90"] = band.p90
            records.append(record)
        columns = ["year", "person1_age", "person2_age"] + [
            f"{name}_{suffix}" for name in _BAND_FIELDS for suffix in ("p10", "p50", "p90")
        ]
        return pd.DataFrame(records, columns=columns).set_index("year")

    def summary(self) -> dict[str, object]:
        """Scalar headline figures suitable for JSON export."""

        return {
            "scenario": self.scenario,
            "mode": self.mode.value,
            "runs": self.runs,
            "seed": self.seed,
            "success_rate": self.success_rate,
            "depletion_rate": self.depletion_rate,
            "median_retirement_year": self.median_retirement_year,
            "p10_retirement_year": self.p10_retirement_year,
            "p90_retirement_year": self.p90_retirement_year,
            "median_income": self.median_income,
            "p10_income": self.p10_income,
            "p90_income": self.p90_income,
            "mortgage_allocations": self.mortgage_allocations,
            "mortgage_interest_saved": self.mortgage_interest_saved,
            "mortgage_months_saved": self.mortgage_months_saved,
        }


def events_in_year(events: Sequence[LumpSumEvent], year: int) -> list[LumpSumEvent]:
    return [event for event in events if event.year == year]
