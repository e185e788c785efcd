from __future__ import annotations

import pytest

from superplan.engine.withdrawal import (
    DEFAULT_GUARDRAILS,
    Guardrails,
    GuardrailStatus,
    adjust_for_guardrails,
    classify_ratio,
)


def test_prosperity_bonus_after_guardrail_period() -> None:
    result = adjust_for_guardrails(1_300_000.0, 1_000_000.0, 0.04, DEFAULT_GUARDRAILS, 5)
    assert result.status is GuardrailStatus.PROSPERITY
    assert result.rate == pytest.approx(0.044)
    assert "prosperity bonus applied" in result.reason


def test_prosperity_bonus_delayed_early_in_retirement() -> None:
    result = adjust_for_guardrails(1_300_000.0, 1_000_000.0, 0.04, DEFAULT_GUARDRAILS, 1)
    assert result.status is GuardrailStatus.PROSPERITY
    assert result.rate == pytest.approx(0.04)
    assert result.reason.endswith("(adjustment delayed for stability)")


def test_austerity_applies_immediately() -> None:
    result = adjust_for_guardrails(700_000.0, 1_000_000.0, 0.04, DEFAULT_GUARDRAILS, 1)
    assert result.status is GuardrailStatus.AUSTERITY
    assert result.rate == pytest.approx(0.036)


def test_missing_initial_value_leaves_rate_untouched() -> None:
    result = adjust_for_guardrails(500_000.0, 0.0, 0.05, DEFAULT_GUARDRAILS, 10)
    assert result.status is GuardrailStatus.NORMAL
    assert result.rate == pytest.approx(0.05)


def test_classify_ratio_band_edges_are_inclusive() -> None:
    assert classify_ratio(1.2, DEFAULT_GUARDRAILS) is GuardrailStatus.PROSPERITY
    assert classify_ratio(0.8, DEFAULT_GUARDRAILS) is GuardrailStatus.AUSTERITY
    assert classify_ratio(1.0, DEFAULT_GUARDRAILS) is GuardrailStatus.NORMAL


def test_guardrails_from_mapping_and_validation() -> None:
    guardrails = Guardrails.from_mapping({"upper_guardrail": 1.5, "guardrail_period": 0})
    assert guardrails.upper_guardrail == pytest.approx(1.5)
    assert guardrails.lower_guardrail == pytest.approx(0.8)
    with pytest.raises(ValueError, match="lower_guardrail"):
        Guardrails(upper_guardrail=0.8, lower_guardrail=0.9)
