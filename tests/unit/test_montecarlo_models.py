from __future__ import annotations

from datetime import date

import pytest

from superplan.engine.household import Person
from superplan.engine.montecarlo import (
    AllocationTarget,
    BaselineSettings,
    DistributionData,
    LumpSumEvent,
    PercentileBand,
    Scenario,
    ScenarioMode,
    WithdrawalPolicy,
)
from superplan.engine.montecarlo.models import events_in_year


def _person(name: str, age: int) -> Person:
    return Person(name=name, current_age=age, current_balance=100_000.0)


def test_baseline_horizon_follows_younger_person() -> None:
    baseline = BaselineSettings(person1=_person("Alex", 45), person2=_person("Sam", 40))
    assert baseline.horizon_years == 55


def test_baseline_rejects_out_of_range_assumptions() -> None:
    with pytest.raises(ValueError, match="safe_withdrawal_rate"):
        BaselineSettings(
            person1=_person("Alex", 45), person2=_person("Sam", 40), safe_withdrawal_rate=0.2
        )
    with pytest.raises(ValueError, match="expected_return_volatility"):
        BaselineSettings(
            person1=_person("Alex", 45),
            person2=_person("Sam", 40),
            expected_return_volatility=-0.1,
        )


def test_scenario_modes_are_mutually_exclusive() -> None:
    with pytest.raises(ValueError, match="target_annual_income is required"):
        Scenario(name="a", mode=ScenarioMode.TARGET_INCOME)
    with pytest.raises(ValueError, match="not allowed in target_date mode"):
        Scenario(
            name="b",
            mode=ScenarioMode.TARGET_DATE,
            target_annual_income=50_000.0,
            target_retirement_date=date(2035, 1, 1),
        )
    scenario = Scenario(
        name="c", mode=ScenarioMode.TARGET_DATE, target_retirement_date=date(2035, 6, 30)
    )
    assert scenario.target_year == 2035


def test_lump_sum_splits_must_total_one_hundred() -> None:
    with pytest.raises(ValueError, match="splits must sum to 100"):
        LumpSumEvent(
            name="gift",
            amount=10_000.0,
            event_date=date(2030, 1, 1),
            person1_split=60.0,
            person2_split=30.0,
        )
    with pytest.raises(ValueError, match="must lie in"):
        LumpSumEvent(
            name="gift",
            amount=10_000.0,
            event_date=date(2030, 1, 1),
            person1_split=120.0,
            person2_split=-20.0,
        )


def test_scenario_from_mapping(configs_dir) -> None:
    from superplan.engine.montecarlo import load_scenario

    scenario = load_scenario(configs_dir / "scenario.yml")
    assert scenario.mode is ScenarioMode.TARGET_INCOME
    assert scenario.withdrawal_policy is WithdrawalPolicy.GUARDRAILS
    assert len(scenario.lump_sum_events) == 3
    assert scenario.lump_sum_events[0].allocation is AllocationTarget.TAXABLE_INVESTMENT
    assert [event.name for event in events_in_year(scenario.lump_sum_events, 2041)] == [
        "downsizer"
    ]


def test_percentile_band_width_and_distribution_frame() -> None:
    assert PercentileBand(p10=1.0, p50=2.0, p90=4.0).width == pytest.approx(3.0)
    frame = DistributionData(
        retirement_years=(2030, 2031), sustainable_incomes=(1.0,), final_balances=()
    ).to_frame()
    assert list(frame.columns) == ["metric", "value"]
    assert frame["metric"].tolist() == ["retirement_year", "retirement_year", "sustainable_income"]
