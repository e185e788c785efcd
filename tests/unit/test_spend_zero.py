from __future__ import annotations

import pytest

from superplan.engine.annuity import annuity_payment, real_rate
from superplan.engine.spendzero import (
    SuperSpendSettings,
    WithdrawalOrder,
    draw_from_accounts,
    simulate_spend_to_zero,
)


def _settings(**overrides: object) -> SuperSpendSettings:
    payload: dict[str, object] = {
        "person1_name": "Alex",
        "person1_balance": 600_000.0,
        "person2_name": "Sam",
        "person2_balance": 400_000.0,
        "planning_age": 90,
        "return_rate": 0.05,
        "inflation_rate": 0.0,
        "start_age": 60,
    }
    payload.update(overrides)
    return SuperSpendSettings(**payload)  # type: ignore[arg-type]


def test_drawdown_exhausts_balance_on_planning_horizon() -> None:
    projection = simulate_spend_to_zero(_settings(), as_of_year=2030)
    assert projection.annual_withdrawal == pytest.approx(annuity_payment(1_000_000.0, 0.05, 30))
    assert projection.exhausted
    assert projection.years_funded == 30
    assert projection.final_year == 2059
    assert projection.risk_analysis.success_probability == 90


@pytest.mark.parametrize(
    "return_rate, inflation_rate, start_age, planning_age",
    [(0.07, 0.025, 40, 90), (0.07, 0.05, 60, 90), (0.03, 0.04, 65, 95)],
)
def test_inflation_indexed_drawdown_ends_on_the_planning_age(
    return_rate: float, inflation_rate: float, start_age: int, planning_age: int
) -> None:
    settings = _settings(
        return_rate=return_rate,
        inflation_rate=inflation_rate,
        start_age=start_age,
        planning_age=planning_age,
    )
    projection = simulate_spend_to_zero(settings, as_of_year=2030)
    years = planning_age - start_age
    expected = annuity_payment(1_000_000.0, real_rate(return_rate, inflation_rate), years)
    assert projection.annual_withdrawal == pytest.approx(expected)
    assert projection.exhausted
    assert projection.years_funded == years
    first = projection.yearly[0]
    assert first.withdrawal == pytest.approx(expected * (1.0 + inflation_rate))
    assert first.real_withdrawal == pytest.approx(expected)


def test_real_rate_is_the_exact_fisher_form() -> None:
    assert real_rate(0.07, 0.025) == pytest.approx(1.07 / 1.025 - 1.0)
    assert real_rate(0.05, 0.0) == pytest.approx(0.05)
    assert real_rate(0.02, 0.04) < 0.0


def test_sequential_order_drains_first_account_first() -> None:
    projection = simulate_spend_to_zero(_settings(), as_of_year=2030)
    first = projection.yearly[0]
    assert first.person2_balance == pytest.approx(400_000.0 * 1.05)
    assert first.person1_balance < 600_000.0 * 1.05


def test_proportional_order_keeps_shares() -> None:
    projection = simulate_spend_to_zero(
        _settings(withdrawal_order=WithdrawalOrder.PROPORTIONAL), as_of_year=2030
    )
    row = projection.yearly[3]
    assert row.person1_balance / row.combined_balance == pytest.approx(0.6)
    assert "proportionally" in projection.strategy_description


def test_optimize_tax_falls_back_to_sequential() -> None:
    sequential = simulate_spend_to_zero(_settings(), as_of_year=2030)
    optimized = simulate_spend_to_zero(
        _settings(withdrawal_order=WithdrawalOrder.OPTIMIZE_TAX), as_of_year=2030
    )
    assert optimized.yearly == sequential.yearly
    assert "not modelled" in optimized.strategy_description


def test_draw_from_accounts_never_goes_negative() -> None:
    assert draw_from_accounts(100.0, 50.0, 500.0, WithdrawalOrder.SEQUENTIAL) == (0.0, 0.0)
    assert draw_from_accounts(100.0, 50.0, 120.0, WithdrawalOrder.SEQUENTIAL) == (
        0.0,
        pytest.approx(30.0),
    )
    assert draw_from_accounts(0.0, 0.0, 10.0, WithdrawalOrder.PROPORTIONAL) == (0.0, 0.0)


def test_invalid_settings_raise() -> None:
    with pytest.raises(ValueError, match="planning_age must lie in"):
        simulate_spend_to_zero(_settings(planning_age=65), as_of_year=2030)
    with pytest.raises(ValueError, match="inflation_rate must lie in"):
        simulate_spend_to_zero(_settings(inflation_rate=0.2), as_of_year=2030)


def test_to_frame_indexed_by_year() -> None:
    frame = simulate_spend_to_zero(_settings(), as_of_year=2030).to_frame()
    assert frame.index[0] == 2030
    assert "combined_balance" in frame.columns
