"""Unit tests for the Monte Carlo orchestrator."""

from __future__ import annotations

import json
from dataclasses import replace
from datetime import date

import numpy as np
import pandas as pd
import pytest

from superplan.engine.annuity import mortgage_payoff
from superplan.engine.household import Person
from superplan.engine.montecarlo import (
    AllocationTarget,
    BaselineSettings,
    LumpSumEvent,
    Scenario,
    ScenarioMode,
    WithdrawalPolicy,
    baseline_hash,
    build_trial_context,
    load_baseline,
    mortgage_prepayment_effect,
    percentile_index,
    run_trial,
    sample_returns,
    simulate,
    sorted_percentile,
    validate_simulation_inputs,
    write_simulation_artifacts,
)
from superplan.engine.rules import household_age_pension

AS_OF = 2026


def _income_scenario(**overrides: object) -> Scenario:
    scenario = Scenario(
        name="income",
        mode=ScenarioMode.TARGET_INCOME,
        monte_carlo_runs=5,
        target_annual_income=40_000.0,
    )
    return replace(scenario, **overrides)


def _deterministic_baseline(
    person1: Person, person2: Person, *, mean: float, planning_age: int, inflation: float = 0.0
) -> BaselineSettings:
    return BaselineSettings(
        person1=person1,
        person2=person2,
        expected_return_mean=mean,
        expected_return_volatility=0.0,
        inflation_rate=inflation,
        planning_age=planning_age,
    )


def test_percentile_helpers() -> None:
    assert percentile_index(10, 50) == 5
    assert percentile_index(10, 100) == 9
    assert sorted_percentile([5, 1, 3, 2, 4], 50) == 3.0
    with pytest.raises(ValueError):
        percentile_index(0, 50)


def test_sample_returns_shape_and_floor() -> None:
    rng = np.random.default_rng(3)
    draws = sample_returns(rng, 0.0, 5.0, 200, 4)
    assert draws.shape == (200, 4)
    assert float(draws.min()) >= -1.0
    flat = sample_returns(rng, 0.05, 0.0, 3, 2)
    np.testing.assert_allclose(flat, np.full((3, 2), 0.05))


def test_accumulation_matches_closed_form() -> None:
    saver = Person(
        name="Alex",
        current_age=40,
        current_balance=212_289.0,
        annual_contribution=50_000.0,
        retirement_age=67,
    )
    partner = Person(name="Sam", current_age=40, current_balance=0.0, retirement_age=67)
    baseline = _deterministic_baseline(saver, partner, mean=0.075, planning_age=67)
    scenario = _income_scenario(target_annual_income=1e9)
    result = simulate(baseline, scenario, seed=1, as_of_year=AS_OF)

    growth = 1.075**27
    expected = 212_289.0 * growth + 50_000.0 * (growth - 1.0) / 0.075
    final = result.yearly_projections[-1]
    assert len(result.yearly_projections) == 27
    assert final.person1_balance.p50 == pytest.approx(expected)
    assert final.combined_balance.p10 == pytest.approx(final.combined_balance.p90)
    assert result.median_retirement_year is None
    assert result.success_rate == 1.0


def test_target_date_income_uses_balance_at_access() -> None:
    person1 = Person(name="Alex", current_age=55, current_balance=500_000.0)
    person2 = Person(name="Sam", current_age=55, current_balance=500_000.0)
    baseline = _deterministic_baseline(person1, person2, mean=0.05, planning_age=90)
    scenario = Scenario(
        name="date",
        mode=ScenarioMode.TARGET_DATE,
        monte_carlo_runs=3,
        target_retirement_date=date(AS_OF + 5, 1, 1),
    )
    result = simulate(baseline, scenario, seed=1, as_of_year=AS_OF)
    expected = 0.04 * 1_000_000.0 * 1.05**6
    assert result.median_income == pytest.approx(expected)
    assert result.p10_income == pytest.approx(expected)
    assert result.median_retirement_year is None


def test_target_income_reports_first_year_meeting_target() -> None:
    person1 = Person(name="Alex", current_age=59, current_balance=1_000_000.0, retirement_age=59)
    person2 = Person(name="Sam", current_age=59, current_balance=0.0, retirement_age=59)
    baseline = _deterministic_baseline(person1, person2, mean=0.0, planning_age=90)
    result = simulate(baseline, _income_scenario(), seed=1, as_of_year=AS_OF)
    assert result.median_retirement_year == AS_OF + 1
    assert result.p10_retirement_year == AS_OF + 1
    assert result.yearly_projections[0].income.p50 == 0.0
    assert result.distribution.retirement_years == (AS_OF + 1,) * 5


def test_depletion_stops_the_trial() -> None:
    person1 = Person(name="Alex", current_age=60, current_balance=100_000.0, retirement_age=60)
    person2 = Person(name="Sam", current_age=60, current_balance=0.0, retirement_age=60)
    baseline = replace(
        _deterministic_baseline(person1, person2, mean=-0.5, planning_age=70),
        safe_withdrawal_rate=0.1,
    )
    context = build_trial_context(baseline, _income_scenario(), as_of_year=AS_OF)
    outcome = run_trial(np.full(context.horizon, -0.5), context)
    assert outcome.depleted
    assert outcome.income[:3].tolist() == pytest.approx([5_000.0, 5_000.0, 5_000.0])
    assert outcome.income[3] == pytest.approx(1_875.0)
    assert float(outcome.combined[3:].sum()) == 0.0

    result = simulate(baseline, _income_scenario(), seed=1, as_of_year=AS_OF)
    assert result.success_rate == 0.0
    assert result.depletion_rate == 1.0


def _staggered_access_baseline() -> BaselineSettings:
    retired = Person(
        name="Alex",
        current_age=60,
        current_balance=500_000.0,
        retirement_age=60,
        preservation_age=60,
    )
    locked = Person(
        name="Sam",
        current_age=55,
        current_balance=500_000.0,
        retirement_age=55,
        preservation_age=60,
    )
    return _deterministic_baseline(retired, locked, mean=0.0, planning_age=90)


def test_guardrails_do_not_read_super_unlock_as_growth() -> None:
    baseline = _staggered_access_baseline()
    scenario = _income_scenario(withdrawal_policy=WithdrawalPolicy.GUARDRAILS)
    context = build_trial_context(baseline, scenario, as_of_year=AS_OF)
    outcome = run_trial(np.zeros(context.horizon), context)

    income = outcome.income.tolist()
    assert income[0] == pytest.approx(40_000.0)
    assert max(income) <= income[0] + 1e-6
    # Sam's pool unlocks in year 5 without triggering a prosperity bonus.
    assert income[5] <= income[4] + 1e-6
    assert np.all(np.diff(outcome.combined) <= 1e-6)


def test_fixed_rate_is_sized_on_the_whole_household() -> None:
    baseline = _staggered_access_baseline()
    context = build_trial_context(baseline, _income_scenario(), as_of_year=AS_OF)
    outcome = run_trial(np.zeros(context.horizon), context)

    assert outcome.income[:10].tolist() == pytest.approx([40_000.0] * 10)
    # Only Alex's pool is drawn before Sam reaches preservation age.
    assert outcome.person2[4] == pytest.approx(500_000.0)
    assert outcome.person1[4] == pytest.approx(300_000.0)
    assert outcome.person2[5] < 500_000.0


def test_lump_sums_route_to_pools() -> None:
    person1 = Person(name="Alex", current_age=50, current_balance=0.0, retirement_age=70)
    person2 = Person(name="Sam", current_age=50, current_balance=0.0, retirement_age=70)
    baseline = _deterministic_baseline(person1, person2, mean=0.0, planning_age=60)
    events = (
        LumpSumEvent(
            name="gift",
            amount=100_000.0,
            event_date=date(AS_OF + 1, 3, 1),
            person1_split=75.0,
            person2_split=25.0,
        ),
        LumpSumEvent(
            name="bonus",
            amount=20_000.0,
            event_date=date(AS_OF + 1, 6, 1),
            allocation=AllocationTarget.TAXABLE_INVESTMENT,
        ),
        LumpSumEvent(
            name="car",
            amount=-50_000.0,
            event_date=date(AS_OF + 2, 6, 1),
            allocation=AllocationTarget.TAXABLE_INVESTMENT,
        ),
        LumpSumEvent(
            name="mortgage",
            amount=30_000.0,
            event_date=date(AS_OF + 2, 6, 1),
            allocation=AllocationTarget.MORTGAGE_PAYOFF,
        ),
    )
    scenario = _income_scenario(lump_sum_events=events, target_annual_income=1e9)
    context = build_trial_context(baseline, scenario, as_of_year=AS_OF)
    outcome = run_trial(np.zeros(context.horizon), context)
    assert outcome.person1[1] == pytest.approx(75_000.0)
    assert outcome.person2[1] == pytest.approx(25_000.0)
    assert outcome.taxable[1] == pytest.approx(20_000.0)
    # Expenses larger than the pool floor it at zero; mortgage money leaves pools alone.
    assert outcome.taxable[2] == 0.0
    assert outcome.person1[2] == pytest.approx(75_000.0)

    result = simulate(baseline, scenario, seed=1, as_of_year=AS_OF)
    assert result.mortgage_allocations == pytest.approx(30_000.0)
    # No home loan on the baseline, so nothing is saved.
    assert result.mortgage_interest_saved == 0.0
    assert result.mortgage_months_saved == 0


def test_mortgage_lump_sums_report_interest_and_term_saved() -> None:
    person1 = Person(name="Alex", current_age=50, current_balance=100_000.0)
    person2 = Person(name="Sam", current_age=50, current_balance=100_000.0)
    baseline = replace(
        _deterministic_baseline(person1, person2, mean=0.05, planning_age=70),
        mortgage_balance=200_000.0,
        mortgage_rate=0.06,
        mortgage_years=30,
    )
    events = (
        LumpSumEvent(
            name="offset",
            amount=50_000.0,
            event_date=date(AS_OF + 2, 6, 1),
            allocation=AllocationTarget.MORTGAGE_PAYOFF,
        ),
    )
    scenario = _income_scenario(lump_sum_events=events)
    result = simulate(baseline, scenario, seed=3, as_of_year=AS_OF)

    expected = mortgage_payoff(200_000.0, 0.06, prepayments={24: 50_000.0})
    assert result.mortgage_allocations == pytest.approx(50_000.0)
    assert result.mortgage_interest_saved == pytest.approx(expected.interest_saved)
    assert result.mortgage_months_saved == expected.months_saved > 0
    summary = result.summary()
    assert summary["mortgage_months_saved"] == expected.months_saved

    # Later lump sums save less interest than the same amount paid earlier.
    early = mortgage_prepayment_effect(baseline, events, AS_OF + 2)
    assert early is not None
    assert early.interest_saved > result.mortgage_interest_saved
    debt_free = replace(baseline, mortgage_balance=0.0)
    assert mortgage_prepayment_effect(debt_free, events, AS_OF) is None


def test_validate_simulation_inputs_reports_problems() -> None:
    person1 = Person(name="Alex", current_age=60, current_balance=1.0)
    person2 = Person(name="Sam", current_age=50, current_balance=1.0)
    baseline = BaselineSettings(person1=person1, person2=person2, planning_age=80)
    past = Scenario(
        name="past", mode=ScenarioMode.TARGET_DATE, target_retirement_date=date(AS_OF - 1, 1, 1)
    )
    assert validate_simulation_inputs(baseline, past, as_of_year=AS_OF) == [
        "scenario.target_retirement_date cannot be in the past"
    ]
    late = replace(past, target_retirement_date=date(AS_OF + 40, 1, 1))
    errors = validate_simulation_inputs(baseline, late, as_of_year=AS_OF)
    assert errors[0].startswith("scenario.target_retirement_date must not be after 2055")

    unknown = _income_scenario(withdrawal_rule="Nope")
    assert validate_simulation_inputs(baseline, unknown, as_of_year=AS_OF) == [
        "scenario.withdrawal_rule 'Nope' is unknown"
    ]
    too_old = replace(baseline, planning_age=55)
    with pytest.raises(ValueError, match="planning_age must exceed person1.current_age"):
        simulate(too_old, _income_scenario(), as_of_year=AS_OF)


def test_simulate_is_reproducible_and_seed_sensitive(configs_dir) -> None:
    baseline = load_baseline(configs_dir / "baseline.yml")
    scenario = _income_scenario(monte_carlo_runs=40, target_annual_income=90_000.0)
    first = simulate(baseline, scenario, seed=9, as_of_year=AS_OF)
    second = simulate(baseline, scenario, seed=9, as_of_year=AS_OF)
    other = simulate(baseline, scenario, seed=10, as_of_year=AS_OF)
    assert first.to_frame().equals(second.to_frame())
    assert not first.to_frame().equals(other.to_frame())

    from_scenario = simulate(baseline, replace(scenario, seed=9), as_of_year=AS_OF)
    assert from_scenario.seed == 9
    assert from_scenario.to_frame().equals(first.to_frame())


def test_policies_change_the_income_path(configs_dir) -> None:
    baseline = load_baseline(configs_dir / "baseline.yml")
    scenario = _income_scenario(monte_carlo_runs=30, target_annual_income=90_000.0)
    fixed = simulate(baseline, scenario, seed=4, as_of_year=AS_OF)
    dynamic = simulate(
        baseline,
        replace(scenario, withdrawal_policy=WithdrawalPolicy.DYNAMIC),
        seed=4,
        as_of_year=AS_OF,
    )
    guardrails = simulate(
        baseline,
        replace(scenario, withdrawal_policy=WithdrawalPolicy.GUARDRAILS),
        seed=4,
        as_of_year=AS_OF,
    )
    for result in (fixed, dynamic, guardrails):
        for item in result.yearly_projections:
            assert item.income.p10 <= item.income.p50 <= item.income.p90
    assert not fixed.to_frame().equals(dynamic.to_frame())


def test_p10_retirement_year_is_the_late_estimate(configs_dir) -> None:
    baseline = load_baseline(configs_dir / "baseline.yml")
    scenario = _income_scenario(monte_carlo_runs=60)
    result = simulate(baseline, scenario, seed=11, as_of_year=AS_OF)

    def _year(value: int | None) -> float:
        return float("inf") if value is None else float(value)

    assert result.median_retirement_year is not None
    assert _year(result.p90_retirement_year) <= result.median_retirement_year
    assert result.median_retirement_year <= _year(result.p10_retirement_year)


def test_worker_pool_matches_serial_run(configs_dir) -> None:
    baseline = load_baseline(configs_dir / "baseline.yml")
    scenario = _income_scenario(monte_carlo_runs=12, target_annual_income=90_000.0)
    serial = simulate(baseline, scenario, seed=5, as_of_year=AS_OF)
    parallel = simulate(baseline, scenario, seed=5, as_of_year=AS_OF, workers=2)
    pd.testing.assert_frame_equal(serial.to_frame(), parallel.to_frame())
    assert serial.distribution == parallel.distribution


def test_write_simulation_artifacts(tmp_path, configs_dir) -> None:
    baseline = load_baseline(configs_dir / "baseline.yml")
    result = simulate(
        baseline,
        _income_scenario(monte_carlo_runs=10, target_annual_income=90_000.0),
        seed=2,
        as_of_year=AS_OF,
    )
    artifacts = write_simulation_artifacts(result, output_dir=tmp_path)
    assert artifacts.yearly_csv == tmp_path / "montecarlo" / "simulation_income_yearly.csv"
    yearly = pd.read_csv(artifacts.yearly_csv, index_col="year")
    assert yearly.index[0] == AS_OF
    assert "combined_balance_p50" in yearly.columns
    distribution = pd.read_csv(artifacts.distribution_csv)
    assert (distribution["metric"] == "final_balance").sum() == 10
    summary = json.loads(artifacts.summary_json.read_text(encoding="utf-8"))
    assert summary["scenario"] == "income"
    assert summary["runs"] == 10


def test_baseline_hash_is_stable(configs_dir) -> None:
    baseline = load_baseline(configs_dir / "baseline.yml")
    assert baseline_hash(baseline) == baseline_hash(load_baseline(configs_dir / "baseline.yml"))
    changed = replace(baseline, inflation_rate=0.03)
    assert baseline_hash(changed) != baseline_hash(baseline)


def test_age_pension_tops_up_retirement_income() -> None:
    person1 = Person(name="Alex", current_age=67, current_balance=200_000.0, retirement_age=67)
    person2 = Person(name="Sam", current_age=64, current_balance=200_000.0, retirement_age=64)
    baseline = _deterministic_baseline(person1, person2, mean=0.0, planning_age=80)
    plain = build_trial_context(baseline, _income_scenario(), as_of_year=AS_OF)
    with_pension = build_trial_context(
        baseline, _income_scenario(include_age_pension=True), as_of_year=AS_OF
    )
    base = run_trial(np.zeros(plain.horizon), plain)
    topped = run_trial(np.zeros(with_pension.horizon), with_pension)

    assert base.income[0] == pytest.approx(16_000.0)
    # Only Alex has reached pension age in the first year.
    first = household_age_pension((67, 64), float(topped.combined[0]))
    assert first[1] == 0.0
    assert topped.income[0] == pytest.approx(16_000.0 + sum(first))
    later = household_age_pension((70, 67), float(topped.combined[3]))
    assert topped.income[3] == pytest.approx(16_000.0 + sum(later))
    # Pension income does not change what is drawn from the pools.
    np.testing.assert_allclose(topped.combined, base.combined)


def test_age_pension_is_indexed_with_inflation() -> None:
    person1 = Person(name="Alex", current_age=67, current_balance=0.0, retirement_age=67)
    person2 = Person(name="Sam", current_age=67, current_balance=0.0, retirement_age=67)
    baseline = _deterministic_baseline(
        person1, person2, mean=0.0, planning_age=75, inflation=0.03
    )
    scenario = _income_scenario(include_age_pension=True)
    context = build_trial_context(baseline, scenario, as_of_year=AS_OF)
    outcome = run_trial(np.zeros(context.horizon), context)

    maximum = sum(household_age_pension((67, 67), 0.0))
    assert outcome.income[0] == pytest.approx(maximum)
    assert outcome.income[4] == pytest.approx(maximum * 1.03**4)
    assert not outcome.depleted
