"""Guardrails withdrawal strategy.

The withdrawal rate only moves when the portfolio crosses an upper or lower
band relative to its value at the start of retirement.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum

__all__ = [
    "GuardrailStatus",
    "Guardrails",
    "GuardrailAdjustment",
    "DEFAULT_GUARDRAILS",
    "classify_ratio",
    "adjust_for_guardrails",
]


class GuardrailStatus(str, Enum):
    PROSPERITY = "prosperity"
    NORMAL = "normal"
    AUSTERITY = "austerity"


@dataclass(frozen=True)
class Guardrails:
    """Band thresholds and responses.

    Attributes:
      upper_guardrail: Value/initial ratio at or above which withdrawals rise.
      lower_guardrail: Value/initial ratio at or below which withdrawals fall.
      prosperity_bonus: Relative rate increase in prosperity.
      austerity_reduction: Relative rate cut in austerity.
      guardrail_period: Years of retirement during which only austerity cuts
        are applied.
    """

    upper_guardrail: float = 1.2
    lower_guardrail: float = 0.8
    prosperity_bonus: float = 0.1
    austerity_reduction: float = 0.1
    guardrail_period: int = 3

    def __post_init__(self) -> None:
        if self.lower_guardrail >= self.upper_guardrail:
            msg = "lower_guardrail must be below upper_guardrail"
            raise ValueError(msg)
        if not 0.0 <= self.austerity_reduction <= 1.0:
            msg = "austerity_reduction must lie in [0, 1]"
            raise ValueError(msg)
        if self.prosperity_bonus < 0.0:
            msg = "prosperity_bonus must be non-negative"
            raise ValueError(msg)
        if self.guardrail_period < 0:
            msg = "guardrail_period must be non-negative"
            raise ValueError(msg)

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> Guardrails:
        defaults = cls()
        return cls(
            upper_guardrail=float(payload.get("upper_guardrail", defaults.upper_guardrail)),
            lower_guardrail=float(payload.get("lower_guardrail", defaults.lower_guardrail)),
            prosperity_bonus=float(payload.get("prosperity_bonus", defaults.prosperity_bonus)),
            austerity_reduction=float(
                payload.get("austerity_reduction", defaults.austerity_reduction)
            ),
            guardrail_period=int(payload.get("guardrail_period", defaults.guardrail_period)),
        )


DEFAULT_GUARDRAILS = Guardrails()


@dataclass(frozen=True)
class GuardrailAdjustment:
    rate: float
    status: GuardrailStatus
    reason: str


def classify_ratio(ratio: float, guardrails: Guardrails) -> GuardrailStatus:
    if ratio >= guardrails.upper_guardrail:
        return GuardrailStatus.PROSPERITY
    if ratio <= guardrails.lower_guardrail:
        return GuardrailStatus.AUSTERITY
    return GuardrailStatus.NORMAL


def adjust_for_guardrails(
    current_value: float,
    initial_value: float,
    current_rate: float,
    guardrails: Guardrails,
    years_in_retirement: int,
) -> GuardrailAdjustment:
    """Apply the guardrail bands to ``current_rate``.

    Args:
      current_value: Portfolio value now.
      initial_value: Portfolio value at the start of retirement.
      current_rate: Withdrawal rate currently applied.
      guardrails: Band configuration.
      years_in_retirement: Completed years of decumulation.

    Returns:
      A :class:`GuardrailAdjustment`. Prosperity increases are withheld while
      ``years_in_retirement < guardrail_period``; austerity cuts never are.
    """

    if initial_value <= 0.0:
        return GuardrailAdjustment(
            rate=current_rate,
            status=GuardrailStatus.NORMAL,
            reason="No initial portfolio value; guardrails not applied",
        )

    ratio = current_value / initial_value
    status = classify_ratio(ratio, guardrails)
    if status is GuardrailStatus.PROSPERITY:
        rate = current_rate * (1.0 + guardrails.prosperity_bonus)
        reason = (
            f"Portfolio {(ratio - 1.0) * 100:.1f}% above initial value - prosperity bonus applied"
        )
    elif status is GuardrailStatus.AUSTERITY:
        rate = current_rate * (1.0 - guardrails.austerity_reduction)
        reason = (
            f"Portfolio {(1.0 - ratio) * 100:.1f}% below initial value - austerity measures applied"
        )
    else:
        rate = current_rate
        reason = "Portfolio within normal guardrails"

    delayed = years_in_retirement < guardrails.guardrail_period
    if delayed and status is not GuardrailStatus.AUSTERITY:
        rate = current_rate
        reason += " (adjustment delayed for stability)"
    return GuardrailAdjustment(rate=rate, status=status, reason=reason)
