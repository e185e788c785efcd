"""Monte Carlo projection of a two-person household.

The orchestrator samples one matrix of yearly portfolio returns, replays every
trial through accumulation and decumulation, and reduces the trials into
per-year percentile bands. Sampling happens before any fan-out, so the serial
and the process-pool paths produce identical results for the same seed.
"""

from __future__ import annotations

import math
import time
from collections.abc import Sequence
from dataclasses import asdict, dataclass, replace
from datetime import date
from functools import partial
from multiprocessing import Pool
from pathlib import Path

import numpy as np

from superplan.engine.annuity.amortization import MortgagePayoff, mortgage_payoff
from superplan.engine.household import Person
from superplan.engine.infra.paths import DEFAULT_REPORT_ROOT, run_dir
from superplan.engine.logging import setup_logger
from superplan.engine.rules.age_pension import household_age_pension
from superplan.engine.rules.tax import contribution_for_year
from superplan.engine.utils.io import (
    content_hash,
    ensure_dir,
    read_mapping,
    safe_path_segment,
    write_json,
)
from superplan.engine.utils.rand import generator_from_seed, seed_for_stream
from superplan.engine.withdrawal.dynamic import (
    WITHDRAWAL_RULES,
    MarketCondition,
    WithdrawalRule,
    get_withdrawal_rule,
    recommend_rate,
)
from superplan.engine.withdrawal.guardrails import adjust_for_guardrails

from .models import (
    AllocationTarget,
    BaselineSettings,
    DistributionData,
    LumpSumEvent,
    PercentileBand,
    Scenario,
    ScenarioMode,
    SimulationResult,
    WithdrawalPolicy,
    YearlyProjection,
    events_in_year,
)

__all__ = [
    "TrialContext",
    "TrialOutcome",
    "SimulationArtifacts",
    "MONTE_CARLO_STREAM",
    "DEPLETION_THRESHOLD",
    "percentile_index",
    "sorted_percentile",
    "sample_returns",
    "validate_simulation_inputs",
    "build_trial_context",
    "run_trial",
    "simulate",
    "baseline_hash",
    "write_simulation_artifacts",
    "load_baseline",
    "load_scenario",
    "mortgage_prepayment_effect",
]

LOG = setup_logger(__name__)

MONTE_CARLO_STREAM = "monte_carlo"
DEPLETION_THRESHOLD = 1.0
RETURN_FLOOR = -1.0
_FUNDING_TOLERANCE = 1e-6


@dataclass(frozen=True)
class TrialContext:
    """Deterministic inputs shared by every trial of one simulation.

    Attributes:
      person1: First person, with the retirement age overridden in
        target_date mode.
      person2: Second person, likewise.
      horizon: Number of projected years.
      as_of_year: Calendar year of projection year zero.
      decumulation_start: Year index at which withdrawals begin.
      starting_rate: Withdrawal rate applied in the first decumulation year.
      inflation_rate: Yearly inflation indexing the withdrawal.
      volatility: Baseline volatility reported in the market history.
      target_year_index: Year index of the income targets.
      target_incomes: Inflation-indexed income target per year, or ``None``.
      scenario: Scenario being simulated.
      rule: Dynamic withdrawal rule.
      homeowner: Whether the household owns its home, which sets the Age
        Pension assets free area.
    """

    person1: Person
    person2: Person
    horizon: int
    as_of_year: int
    decumulation_start: int
    starting_rate: float
    inflation_rate: float
    volatility: float
    scenario: Scenario
    rule: WithdrawalRule
    target_year_index: int | None = None
    target_incomes: tuple[float, ...] | None = None
    homeowner: bool = True


@dataclass(frozen=True)
class TrialOutcome:
    """Per-year paths of one trial; every array has ``horizon`` entries."""

    person1: np.ndarray
    person2: np.ndarray
    taxable: np.ndarray
    income: np.ndarray
    depleted: bool
    retirement_index: int | None

    @property
    def combined(self) -> np.ndarray:
        return self.person1 + self.person2 + self.taxable


@dataclass(frozen=True)
class SimulationArtifacts:
    yearly_csv: Path
    distribution_csv: Path
    summary_json: Path


def percentile_index(count: int, percentile: float) -> int:
    """Index of ``percentile`` in a sorted sample of ``count`` values."""

    if count <= 0:
        msg = "count must be positive"
        raise ValueError(msg)
    return min(int(math.floor(percentile / 100.0 * count)), count - 1)


def sorted_percentile(values: Sequence[float] | np.ndarray, percentile: float) -> float:
    """Sort-and-index percentile, without interpolation."""

    ordered = np.sort(np.asarray(values, dtype="float64"))
    return float(ordered[percentile_index(ordered.size, percentile)])


def sample_returns(
    rng: np.random.Generator, mean: float, volatility: float, runs: int, horizon: int
) -> np.ndarray:
    """Draw a ``(runs, horizon)`` matrix of yearly returns floored at -100%."""

    if volatility == 0.0:
        return np.full((runs, horizon), max(mean, RETURN_FLOOR), dtype="float64")
    draws = rng.normal(loc=mean, scale=volatility, size=(runs, horizon))
    return np.maximum(draws, RETURN_FLOOR)


def _current_year() -> int:
    return date.today().year


def validate_simulation_inputs(
    baseline: BaselineSettings,
    scenario: Scenario,
    *,
    as_of_year: int | None = None,
) -> list[str]:
    """Return the problems that prevent ``scenario`` from running.

    Args:
      baseline: Household snapshot.
      scenario: Simulation request.
      as_of_year: Calendar year of projection year zero.

    Returns:
      Field-level messages; an empty list means the inputs can be simulated.
    """

    year0 = as_of_year if as_of_year is not None else _current_year()
    errors: list[str] = []
    for label, person in (("person1", baseline.person1), ("person2", baseline.person2)):
        if baseline.planning_age <= person.current_age:
            errors.append(f"baseline.planning_age must exceed {label}.current_age")
    if baseline.expected_return_volatility < 0.0:
        errors.append("baseline.expected_return_volatility must be >= 0")
    if scenario.mode is ScenarioMode.TARGET_DATE and scenario.target_year is not None:
        last_year = year0 + baseline.horizon_years - 1
        if scenario.target_year < year0:
            errors.append("scenario.target_retirement_date cannot be in the past")
        elif scenario.target_year > last_year:
            errors.append(
                f"scenario.target_retirement_date must not be after {last_year} "
                "(end of the planning horizon)"
            )
    if scenario.withdrawal_rule not in {rule.name for rule in WITHDRAWAL_RULES}:
        errors.append(f"scenario.withdrawal_rule {scenario.withdrawal_rule!r} is unknown")
    return errors


def build_trial_context(
    baseline: BaselineSettings,
    scenario: Scenario,
    *,
    as_of_year: int,
) -> TrialContext:
    """Resolve the deterministic schedule shared by every trial."""

    horizon = baseline.horizon_years
    person1, person2 = baseline.person1, baseline.person2
    target_index: int | None = None
    target_incomes: tuple[float, ...] | None = None
    if scenario.mode is ScenarioMode.TARGET_DATE and scenario.target_year is not None:
        target_index = scenario.target_year - as_of_year
        # Both persons stop work at the target date.
        person1 = replace(person1, retirement_age=person1.current_age + target_index)
        person2 = replace(person2, retirement_age=person2.current_age + target_index)
        decumulation_start = target_index
    else:
        decumulation_start = max(
            person1.retirement_age - person1.current_age,
            person2.retirement_age - person2.current_age,
            0,
        )
        target = float(scenario.target_annual_income or 0.0)
        target_incomes = tuple(
            target * (1.0 + baseline.inflation_rate) ** year for year in range(horizon)
        )

    rule = get_withdrawal_rule(scenario.withdrawal_rule)
    if scenario.withdrawal_policy is WithdrawalPolicy.DYNAMIC:
        starting_rate = rule.base_rate
    else:
        starting_rate = baseline.safe_withdrawal_rate
    return TrialContext(
        person1=person1,
        person2=person2,
        horizon=horizon,
        as_of_year=as_of_year,
        decumulation_start=decumulation_start,
        starting_rate=starting_rate,
        inflation_rate=baseline.inflation_rate,
        volatility=baseline.expected_return_volatility,
        scenario=scenario,
        rule=rule,
        target_year_index=target_index,
        target_incomes=target_incomes,
        homeowner=baseline.homeowner,
    )


def _apply_lump_sums(
    context: TrialContext, year: int, balances: list[float]
) -> None:
    """Apply the events dated in ``year`` to ``[person1, person2, taxable]``."""

    for event in events_in_year(context.scenario.lump_sum_events, year):
        if event.allocation is AllocationTarget.SUPER:
            balances[0] = max(0.0, balances[0] + event.amount * event.person1_split / 100.0)
            balances[1] = max(0.0, balances[1] + event.amount * event.person2_split / 100.0)
        elif event.allocation is AllocationTarget.TAXABLE_INVESTMENT:
            balances[2] = max(0.0, balances[2] + event.amount)


def _withdraw(
    balances: list[float], access: tuple[bool, bool], amount: float
) -> float:
    """Draw ``amount`` from the taxable pool, then from accessible super."""

    from_taxable = min(balances[2], amount)
    balances[2] -= from_taxable
    remaining = amount - from_taxable
    open_super = [idx for idx in (0, 1) if access[idx] and balances[idx] > 0.0]
    pool = sum(balances[idx] for idx in open_super)
    if remaining <= 0.0 or pool <= 0.0:
        return from_taxable
    from_super = min(remaining, pool)
    for idx in open_super:
        share = balances[idx] / pool
        balances[idx] = max(0.0, balances[idx] - from_super * share)
    return from_taxable + from_super


def _age_pension(
    context: TrialContext, ages: tuple[int, int], assets: float, year_idx: int
) -> float:
    """Household Age Pension in nominal dollars for projection year ``year_idx``."""

    # Rates and thresholds move with inflation.
    index = (1.0 + context.inflation_rate) ** year_idx
    amounts = household_age_pension(ages, assets / index, homeowner=context.homeowner)
    return sum(amounts) * index


def run_trial(returns: np.ndarray, context: TrialContext) -> TrialOutcome:
    """Replay one trial over the projection horizon.

    Args:
      returns: One row of yearly returns, ``horizon`` entries long.
      context: Schedule shared by all trials.

    Returns:
      The per-year balance and income paths of the trial.
    """

    horizon = context.horizon
    person1, person2 = context.person1, context.person2
    path1 = np.zeros(horizon, dtype="float64")
    path2 = np.zeros(horizon, dtype="float64")
    path_taxable = np.zeros(horizon, dtype="float64")
    path_income = np.zeros(horizon, dtype="float64")

    balances = [float(person1.current_balance), float(person2.current_balance), 0.0]
    rate = context.starting_rate
    initial_value: float | None = None
    first_withdrawal_year = 0
    history: list[MarketCondition] = []
    depleted = False
    retirement_index: int | None = None

    for year_idx in range(horizon):
        growth = 1.0 + float(returns[year_idx])
        balances = [max(0.0, value * growth) for value in balances]
        age1, age2 = person1.age_in(year_idx), person2.age_in(year_idx)
        balances[0] += contribution_for_year(person1, age1)
        balances[1] += contribution_for_year(person2, age2)
        calendar_year = context.as_of_year + year_idx
        _apply_lump_sums(context, calendar_year, balances)

        access = (age1 >= person1.access_age, age2 >= person2.access_age)
        accessible = balances[2] + sum(balances[idx] for idx in (0, 1) if access[idx])

        if year_idx < context.decumulation_start:
            income = rate * accessible
        elif initial_value is None and accessible <= 0.0:
            income = 0.0
        else:
            if initial_value is None:
                # Health ratios use every pool, locked super included.
                initial_value = sum(balances)
                first_withdrawal_year = year_idx
            years_in = year_idx - first_withdrawal_year
            policy = context.scenario.withdrawal_policy
            if years_in > 0 and policy is WithdrawalPolicy.DYNAMIC:
                rate = recommend_rate(rate, history, context.rule, initial_value).rate
            elif years_in > 0 and policy is WithdrawalPolicy.GUARDRAILS:
                rate = adjust_for_guardrails(
                    sum(balances), initial_value, rate, context.scenario.guardrails, years_in
                ).rate
            demand = rate * initial_value * (1.0 + context.inflation_rate) ** years_in
            income = _withdraw(balances, access, demand)
            history.append(
                MarketCondition(
                    year=calendar_year,
                    portfolio_return=growth - 1.0,
                    portfolio_value=sum(balances),
                    market_volatility=context.volatility,
                    inflation_rate=context.inflation_rate,
                    withdrawal_amount=income,
                )
            )
            if income < demand - _FUNDING_TOLERANCE and sum(balances) < DEPLETION_THRESHOLD:
                depleted = True
        if year_idx >= context.decumulation_start and context.scenario.include_age_pension:
            income += _age_pension(context, (age1, age2), sum(balances), year_idx)

        path1[year_idx], path2[year_idx], path_taxable[year_idx] = balances
        path_income[year_idx] = income
        if (
            retirement_index is None
            and context.target_incomes is not None
            and income >= context.target_incomes[year_idx]
        ):
            retirement_index = year_idx
        if depleted:
            # Remaining years stay at zero.
            break

    return TrialOutcome(
        person1=path1,
        person2=path2,
        taxable=path_taxable,
        income=path_income,
        depleted=depleted,
        retirement_index=retirement_index,
    )


def _run_trials(
    returns: np.ndarray, context: TrialContext, workers: int
) -> list[TrialOutcome]:
    rows = list(returns)
    if workers > 1 and len(rows) > 1:
        with Pool(processes=workers) as pool:
            return pool.map(partial(run_trial, context=context), rows)
    return [run_trial(row, context) for row in rows]


def _band(ordered: np.ndarray, year_idx: int) -> PercentileBand:
    count = ordered.shape[0]
    return PercentileBand(
        p10=float(ordered[percentile_index(count, 10), year_idx]),
        p50=float(ordered[percentile_index(count, 50), year_idx]),
        p90=float(ordered[percentile_index(count, 90), year_idx]),
    )


def _first_year_meeting(
    band: np.ndarray, targets: Sequence[float], year0: int
) -> int | None:
    for year_idx, (income, target) in enumerate(zip(band, targets, strict=False)):
        if income >= target:
            return year0 + year_idx
    return None


def mortgage_prepayment_effect(
    baseline: BaselineSettings,
    events: Sequence[LumpSumEvent],
    as_of_year: int,
) -> MortgagePayoff | None:
    """Interest and term saved by paying lump sums off the home loan.

    Each event is applied at the start of its calendar year on top of the
    contract repayments; negative amounts are ignored. Returns ``None``
    without a loan or events.
    """

    if baseline.mortgage_balance <= 0.0 or not events:
        return None
    prepayments: dict[int, float] = {}
    for event in events:
        if event.amount <= 0.0:
            continue
        month = max(0, event.year - as_of_year) * 12
        prepayments[month] = prepayments.get(month, 0.0) + event.amount
    return mortgage_payoff(
        baseline.mortgage_balance,
        baseline.mortgage_rate,
        years=baseline.mortgage_years,
        prepayments=prepayments,
    )


def simulate(
    baseline: BaselineSettings,
    scenario: Scenario,
    *,
    seed: int | None = None,
    as_of_year: int | None = None,
    workers: int = 1,
) -> SimulationResult:
    """Run the Monte Carlo projection for ``scenario``.

    Args:
      baseline: Household snapshot.
      scenario: Mode, targets, lump sums and withdrawal policy.
      seed: Explicit seed; falls back to ``scenario.seed`` and then to the
        ``monte_carlo`` stream default.
      as_of_year: Calendar year of projection year zero; defaults to today.
      workers: Number of worker processes; ``1`` runs serially.

    Returns:
      Percentile bands, distribution data and headline figures.

    Raises:
      ValueError: If the inputs cannot be simulated.
    """

    year0 = as_of_year if as_of_year is not None else _current_year()
    errors = validate_simulation_inputs(baseline, scenario, as_of_year=year0)
    if errors:
        raise ValueError(f"invalid simulation inputs for {scenario.name!r}: " + "; ".join(errors))

    if seed is not None:
        resolved_seed = int(seed)
    elif scenario.seed is not None:
        resolved_seed = int(scenario.seed)
    else:
        resolved_seed = seed_for_stream(MONTE_CARLO_STREAM)

    started = time.perf_counter()
    context = build_trial_context(baseline, scenario, as_of_year=year0)
    runs, horizon = scenario.monte_carlo_runs, context.horizon
    rng = generator_from_seed(resolved_seed, stream=MONTE_CARLO_STREAM)
    returns = sample_returns(
        rng, baseline.expected_return_mean, baseline.expected_return_volatility, runs, horizon
    )
    outcomes = _run_trials(returns, context, max(1, int(workers)))

    person1 = np.sort(np.vstack([item.person1 for item in outcomes]), axis=0)
    person2 = np.sort(np.vstack([item.person2 for item in outcomes]), axis=0)
    taxable = np.sort(np.vstack([item.taxable for item in outcomes]), axis=0)
    combined = np.sort(np.vstack([item.combined for item in outcomes]), axis=0)
    income = np.sort(np.vstack([item.income for item in outcomes]), axis=0)

    projections = tuple(
        YearlyProjection(
            year=year0 + year_idx,
            person1_age=baseline.person1.age_in(year_idx),
            person2_age=baseline.person2.age_in(year_idx),
            person1_balance=_band(person1, year_idx),
            person2_balance=_band(person2, year_idx),
            taxable_balance=_band(taxable, year_idx),
            combined_balance=_band(combined, year_idx),
            income=_band(income, year_idx),
        )
        for year_idx in range(horizon)
    )

    idx10, idx50, idx90 = (percentile_index(runs, p) for p in (10, 50, 90))
    headline: dict[str, float | int | None] = {}
    if scenario.mode is ScenarioMode.TARGET_INCOME:
        targets = context.target_incomes or ()
        headline["median_retirement_year"] = _first_year_meeting(income[idx50], targets, year0)
        headline["p10_retirement_year"] = _first_year_meeting(income[idx10], targets, year0)
        headline["p90_retirement_year"] = _first_year_meeting(income[idx90], targets, year0)
        sustainable = sorted(float(item.income[-1]) for item in outcomes) if horizon else []
    else:
        target_idx = int(context.target_year_index or 0)
        headline["median_income"] = float(income[idx50, target_idx])
        headline["p10_income"] = float(income[idx10, target_idx])
        headline["p90_income"] = float(income[idx90, target_idx])
        sustainable = sorted(float(item.income[target_idx]) for item in outcomes)

    retirement_years = sorted(
        year0 + item.retirement_index for item in outcomes if item.retirement_index is not None
    )
    final_balances = sorted(float(item.combined[-1]) for item in outcomes) if horizon else []
    success_rate = sum(1 for item in outcomes if not item.depleted) / runs
    mortgage_events = [
        event
        for event in scenario.lump_sum_events
        if event.allocation is AllocationTarget.MORTGAGE_PAYOFF
        and year0 <= event.year < year0 + horizon
    ]
    mortgage = sum(event.amount for event in mortgage_events)
    payoff = mortgage_prepayment_effect(baseline, mortgage_events, year0)

    elapsed_ms = (time.perf_counter() - started) * 1000.0
    LOG.info(
        "monte carlo scenario=%s mode=%s runs=%s horizon=%s seed=%s success=%.3f",
        scenario.name,
        scenario.mode.value,
        runs,
        horizon,
        resolved_seed,
        success_rate,
        extra={
            "trials": runs,
            "scenario": scenario.name,
            "seed": resolved_seed,
            "success_rate": success_rate,
            "process_time_ms": elapsed_ms,
        },
    )
    return SimulationResult(
        scenario=scenario.name,
        mode=scenario.mode,
        runs=runs,
        seed=resolved_seed,
        success_rate=success_rate,
        yearly_projections=projections,
        distribution=DistributionData(
            retirement_years=tuple(retirement_years),
            sustainable_incomes=tuple(sustainable),
            final_balances=tuple(final_balances),
        ),
        mortgage_allocations=float(mortgage),
        mortgage_interest_saved=payoff.interest_saved if payoff else 0.0,
        mortgage_months_saved=payoff.months_saved if payoff else 0,
        **headline,  # type: ignore[arg-type]
    )


def baseline_hash(baseline: BaselineSettings) -> str:
    """Content hash of ``baseline`` used to key cached simulation results."""

    return content_hash(asdict(baseline))


def write_simulation_artifacts(
    result: SimulationResult,
    *,
    label: str | None = None,
    output_dir: Path | str | None = None,
) -> SimulationArtifacts:
    """Export the yearly bands, distribution and summary of ``result``.

    Args:
      result: Output of :func:`simulate`.
      label: Filename label; defaults to the scenario name.
      output_dir: Destination root; defaults to a timestamped run directory
        under ``artifacts/reports``.

    Returns:
      Paths to the exported artefacts.
    """

    if output_dir is not None:
        root = ensure_dir(Path(output_dir) / "montecarlo")
    else:
        root = run_dir(DEFAULT_REPORT_ROOT, label="montecarlo")
    stem = safe_path_segment(label or result.scenario or "scenario")

    yearly_csv = root / f"simulation_{stem}_yearly.csv"
    distribution_csv = root / f"simulation_{stem}_distribution.csv"
    summary_json = root / f"simulation_{stem}_summary.json"

    result.to_frame().to_csv(yearly_csv)
    result.distribution.to_frame().to_csv(distribution_csv, index=False)
    write_json(result.summary(), summary_json)
    return SimulationArtifacts(
        yearly_csv=yearly_csv,
        distribution_csv=distribution_csv,
        summary_json=summary_json,
    )


def load_baseline(path: Path | str) -> BaselineSettings:
    """Load :class:`BaselineSettings` from ``baseline.yml``."""

    return BaselineSettings.from_mapping(read_mapping(path, section="baseline"))


def load_scenario(path: Path | str) -> Scenario:
    """Load a :class:`Scenario` from ``scenario.yml``."""

    return Scenario.from_mapping(read_mapping(path, section="scenario"))

