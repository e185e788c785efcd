"""Unit tests for declining bridge income streams."""

from __future__ import annotations

from dataclasses import replace

import pytest

from superplan.engine.bridge import (
    BridgeIncomeSource,
    DeclinePattern,
    IncomeType,
    TaxTreatment,
    describe_decline_pattern,
    describe_income_type,
    income_in_year,
    plan_bridge_income,
    tax_on_income,
    validate_income_source,
)
from superplan.engine.rules import income_tax


def _source(**overrides: object) -> BridgeIncomeSource:
    source = BridgeIncomeSource(
        name="Consulting",
        income_type=IncomeType.CONSULTING,
        annual_amount=60_000.0,
        start_year=2030,
        end_year=2035,
    )
    return replace(source, **overrides)


def test_income_is_zero_outside_its_window() -> None:
    source = _source()
    assert income_in_year(source, 2029) == 0.0
    assert income_in_year(source, 2036) == 0.0
    assert income_in_year(source, 2030) == pytest.approx(60_000.0)
    assert income_in_year(source, 2035) == pytest.approx(60_000.0)


@pytest.mark.parametrize(
    ("pattern", "rate", "year", "expected"),
    [
        (DeclinePattern.LINEAR_DECLINE, 10.0, 2032, 60_000.0 * 0.9**2),
        (DeclinePattern.STEP_DECLINE, 3.0, 2032, 60_000.0),
        (DeclinePattern.STEP_DECLINE, 3.0, 2033, 30_000.0),
        (DeclinePattern.EXPONENTIAL_DECLINE, 0.0, 2032, 60_000.0 * 0.85**2),
        (DeclinePattern.LINEAR_DECLINE, 10.0, 2030, 60_000.0),
    ],
)
def test_decline_patterns(
    pattern: DeclinePattern, rate: float, year: int, expected: float
) -> None:
    source = _source(decline_pattern=pattern, decline_rate=rate)
    assert income_in_year(source, year) == pytest.approx(expected)


def test_tax_depends_on_treatment() -> None:
    assert tax_on_income(60_000.0, TaxTreatment.INCOME) == pytest.approx(income_tax(60_000.0))
    # Capital gains are taxed on the discounted half.
    assert tax_on_income(40_000.0, TaxTreatment.CAPITAL_GAINS) == pytest.approx(342.0 + 400.0)
    assert tax_on_income(40_000.0, TaxTreatment.TAX_FREE) == 0.0
    with pytest.raises(ValueError):
        tax_on_income(40_000.0, TaxTreatment.SUPER_CONTRIBUTION)


def test_streams_of_one_treatment_share_the_brackets() -> None:
    sources = [
        _source(name="Consulting", annual_amount=30_000.0),
        _source(name="Part-time", income_type=IncomeType.PART_TIME_WORK, annual_amount=30_000.0),
        _source(
            name="Dividends",
            income_type=IncomeType.DIVIDENDS,
            annual_amount=10_000.0,
            tax_treatment=TaxTreatment.TAX_FREE,
        ),
    ]
    plan = plan_bridge_income(sources, 2030, 2031)
    first = plan.years[0]
    assert first.gross == pytest.approx(70_000.0)
    assert first.tax == pytest.approx(income_tax(60_000.0))
    assert first.net == pytest.approx(70_000.0 - income_tax(60_000.0))
    assert plan.total_gross == pytest.approx(140_000.0)
    assert plan.total_net == pytest.approx(plan.total_gross - plan.total_tax)
    assert plan.net_in_year(2031) == pytest.approx(first.net)
    assert plan.net_in_year(2040) == 0.0


def test_fast_decline_lowers_sustainability() -> None:
    steady = plan_bridge_income([_source(reliability=80.0)], 2030, 2035)
    assert steady.sustainability_score == pytest.approx(100.0)

    fading = _source(decline_pattern=DeclinePattern.EXPONENTIAL_DECLINE, reliability=80.0)
    plan = plan_bridge_income([fading], 2030, 2035)
    # Exponential penalty plus a final-year net between 30% and 60% of the first.
    assert plan.sustainability_score == pytest.approx(65.0)
    assert plan.years[-1].net < plan.years[0].net * 0.6


def test_recommendations_flag_gaps_in_the_mix() -> None:
    part_time = _source(
        name="Locum shifts",
        income_type=IncomeType.PART_TIME_WORK,
        decline_pattern=DeclinePattern.LINEAR_DECLINE,
        decline_rate=30.0,
        reliability=60.0,
    )
    notes = plan_bridge_income([part_time], 2030, 2035).recommendations
    assert any("additional income streams" in note for note in notes)
    assert any("investment property" in note for note in notes)
    assert any("higher-rate consulting" in note for note in notes)
    assert any(note.startswith("Improve reliability of Locum shifts") for note in notes)


def test_validate_income_source_lists_problems() -> None:
    assert validate_income_source(_source()) == []
    broken = _source(
        name=" ",
        annual_amount=-1.0,
        end_year=2020,
        tax_treatment=TaxTreatment.SUPER_CONTRIBUTION,
        reliability=120.0,
    )
    errors = validate_income_source(broken, path="income_sources[0]")
    assert "income_sources[0].name is required" in errors
    assert "income_sources[0].annual_amount must be >= 0" in errors
    assert "income_sources[0].end_year must be >= start_year" in errors
    assert "income_sources[0].reliability must lie in [0, 100]" in errors
    assert len(errors) == 5


def test_from_mapping_and_descriptions() -> None:
    source = BridgeIncomeSource.from_mapping(
        {
            "name": "Rent",
            "type": "rental_property",
            "annual_amount": 25_000,
            "start_year": 2030,
            "end_year": 2045,
            "tax_treatment": "income",
            "reliability": 90,
        }
    )
    assert source.income_type is IncomeType.RENTAL_PROPERTY
    assert source.decline_pattern is DeclinePattern.CONSTANT
    assert describe_income_type(source.income_type).startswith("Rental income")
    assert describe_decline_pattern(DeclinePattern.STEP_DECLINE).startswith("Income drops")
