"""Dynamic withdrawal rate engine.

Each year the engine looks back over the most recent market history and nudges
the withdrawal rate up or down according to realised returns, portfolio health
relative to the starting value, volatility and inflation. Every nudge is
dampened by the rule's ``adjustment_factor`` and the result is clamped to the
rule's ``[min_rate, max_rate]`` band.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

import numpy as np
import pandas as pd

from superplan.engine.logging import setup_logger
from superplan.engine.utils.rand import generator_from_seed

__all__ = [
    "WithdrawalRule",
    "MarketCondition",
    "RateRecommendation",
    "RateAdjustment",
    "DynamicWithdrawalOutcome",
    "MarketScenario",
    "WITHDRAWAL_RULES",
    "get_withdrawal_rule",
    "describe_withdrawal_rule",
    "recommend_rate",
    "simulate_dynamic_withdrawals",
    "sustainability_score",
    "generate_market_scenarios",
    "compare_withdrawal_rules",
    "adjustment_severity",
    "format_rate",
]

LOG = setup_logger(__name__)

BASE_CONFIDENCE = 70
INSUFFICIENT_DATA_CONFIDENCE = 50
NO_CHANGE_CONFIDENCE = 80
MAX_CONFIDENCE = 95
RATE_PRECISION = 0.001
RATE_SCALE = 1000
DEFAULT_INFLATION = 0.025
DEFAULT_VOLATILITY = 0.15
MAX_SIMULATION_YEARS = 30


@dataclass(frozen=True)
class WithdrawalRule:
    """Named withdrawal policy.

    Attributes:
      name: Catalog identifier.
      description: Short explanation of the policy.
      min_rate: Lowest rate the policy may recommend.
      max_rate: Highest rate the policy may recommend.
      base_rate: Starting withdrawal rate.
      adjustment_factor: Share of the recommended change actually applied.
      safety_buffer: Value/initial ratio above which the portfolio is healthy.
      lookback_years: Number of recent years used to evaluate performance.
    """

    name: str
    description: str
    min_rate: float
    max_rate: float
    base_rate: float
    adjustment_factor: float
    safety_buffer: float
    lookback_years: int

    def __post_init__(self) -> None:
        if not (0.0 <= self.min_rate <= self.base_rate <= self.max_rate):
            msg = f"{self.name}: rates must satisfy 0 <= min_rate <= base_rate <= max_rate"
            raise ValueError(msg)
        if not 0.0 <= self.adjustment_factor <= 1.0:
            msg = f"{self.name}: adjustment_factor must lie in [0, 1]"
            raise ValueError(msg)
        if self.lookback_years < 1:
            msg = f"{self.name}: lookback_years must be >= 1"
            raise ValueError(msg)

    def clamp(self, rate: float) -> float:
        return max(self.min_rate, min(self.max_rate, rate))

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> WithdrawalRule:
        """Build a rule from a YAML mapping."""

        return cls(
            name=str(payload["name"]),
            description=str(payload.get("description", "")),
            min_rate=float(payload["min_rate"]),
            max_rate=float(payload["max_rate"]),
            base_rate=float(payload["base_rate"]),
            adjustment_factor=float(payload.get("adjustment_factor", 0.15)),
            safety_buffer=float(payload.get("safety_buffer", 1.15)),
            lookback_years=int(payload.get("lookback_years", 3)),
        )


WITHDRAWAL_RULES: tuple[WithdrawalRule, ...] = (
    WithdrawalRule(
        name="Conservative Fixed (4% Rule)",
        description="Traditional 4% rule with minimal adjustments",
        min_rate=0.035,
        max_rate=0.045,
        base_rate=0.04,
        adjustment_factor=0.05,
        safety_buffer=1.1,
        lookback_years=1,
    ),
    WithdrawalRule(
        name="Moderate Dynamic",
        description="Balanced approach with moderate market-based adjustments",
        min_rate=0.03,
        max_rate=0.055,
        base_rate=0.04,
        adjustment_factor=0.15,
        safety_buffer=1.15,
        lookback_years=3,
    ),
    WithdrawalRule(
        name="Aggressive Adaptive",
        description="Responsive to market conditions with larger adjustments",
        min_rate=0.025,
        max_rate=0.07,
        base_rate=0.04,
        adjustment_factor=0.25,
        safety_buffer=1.2,
        lookback_years=3,
    ),
    WithdrawalRule(
        name="Guardrails Strategy",
        description="Use portfolio value guardrails to trigger adjustments",
        min_rate=0.03,
        max_rate=0.06,
        base_rate=0.04,
        adjustment_factor=0.2,
        safety_buffer=1.15,
        lookback_years=2,
    ),
    WithdrawalRule(
        name="Volatility Adjusted",
        description="Adjust based on market volatility and recent performance",
        min_rate=0.025,
        max_rate=0.065,
        base_rate=0.04,
        adjustment_factor=0.3,
        safety_buffer=1.25,
        lookback_years=5,
    ),
)


@dataclass(frozen=True)
class MarketCondition:
    """Realised market state for one simulated year."""

    year: int
    portfolio_return: float
    portfolio_value: float
    market_volatility: float
    inflation_rate: float
    withdrawal_amount: float


@dataclass(frozen=True)
class RateRecommendation:
    """Recommended withdrawal rate with the reasons behind it."""

    rate: float
    reason: str
    confidence: int

    def as_tuple(self) -> tuple[float, str, int]:
        return (self.rate, self.reason, self.confidence)


@dataclass(frozen=True)
class RateAdjustment:
    """Audit record for one year of a dynamic withdrawal simulation."""

    year: int
    previous_rate: float
    market_performance: float
    portfolio_health: float
    recommended_rate: float
    actual_rate: float
    reason: str
    confidence: int


@dataclass(frozen=True)
class DynamicWithdrawalOutcome:
    """Summary of a deterministic dynamic withdrawal run.

    Attributes:
      rule: Policy that produced the run.
      adjustments: Per-year audit records.
      success_probability: Heuristic 0-95 score based on the final value.
      total_withdrawals: Sum of all withdrawals.
      final_value: Portfolio value at the end, floored at zero.
      sustainability_score: 0-100 score combining preservation and stability.
    """

    rule: WithdrawalRule
    adjustments: tuple[RateAdjustment, ...]
    success_probability: int
    total_withdrawals: float
    final_value: float
    sustainability_score: int

    def to_frame(self) -> pd.DataFrame:
        """Return the yearly adjustments as a DataFrame indexed by year."""

        columns = [
            "year",
            "previous_rate",
            "market_performance",
            "portfolio_health",
            "recommended_rate",
            "actual_rate",
            "reason",
            "confidence",
        ]
        rows = [
            (
                item.year,
                item.previous_rate,
                item.market_performance,
                item.portfolio_health,
                item.recommended_rate,
                item.actual_rate,
                item.reason,
                item.confidence,
            )
            for item in self.adjustments
        ]
        return pd.DataFrame(rows, columns=columns).set_index("year")


@dataclass(frozen=True)
class MarketScenario:
    """Projected yearly returns, inflation and volatility."""

    returns: np.ndarray
    inflation: np.ndarray
    volatility: np.ndarray


def get_withdrawal_rule(name: str) -> WithdrawalRule:
    """Return the catalog rule called ``name``.

    Raises:
      ValueError: If no rule carries that name.
    """

    for rule in WITHDRAWAL_RULES:
        if rule.name == name:
            return rule
    known = ", ".join(rule.name for rule in WITHDRAWAL_RULES)
    raise ValueError(f"unknown withdrawal rule {name!r}; expected one of: {known}")


def describe_withdrawal_rule(name: str) -> str:
    for rule in WITHDRAWAL_RULES:
        if rule.name == name:
            return rule.description
    return "Unknown withdrawal rule"


def _round_rate(rate: float) -> float:
    return math.floor(rate * RATE_SCALE + 0.5) / RATE_SCALE


def recommend_rate(
    current_rate: float,
    history: Sequence[MarketCondition],
    rule: WithdrawalRule,
    initial_value: float,
) -> RateRecommendation:
    """Recommend next year's withdrawal rate.

    Args:
      current_rate: Rate applied in the year just finished.
      history: Append-only market history, oldest first.
      rule: Policy providing bounds, dampening and look-back.
      initial_value: Portfolio value at the start of retirement.

    Returns:
      A :class:`RateRecommendation` whose rate always lies in
      ``[rule.min_rate, rule.max_rate]``.
    """

    recent = list(history)[-rule.lookback_years :]
    if not recent:
        return RateRecommendation(
            rate=rule.clamp(current_rate),
            reason="Insufficient data for adjustment",
            confidence=INSUFFICIENT_DATA_CONFIDENCE,
        )

    avg_return = sum(item.portfolio_return for item in recent) / len(recent)
    avg_volatility = sum(item.market_volatility for item in recent) / len(recent)
    current_value = history[-1].portfolio_value
    health = current_value / initial_value if initial_value > 0.0 else 1.0

    adjustment = 0.0
    fragments: list[str] = []
    confidence = BASE_CONFIDENCE

    if avg_return > 0.08:
        adjustment += 0.005
        fragments.append("Strong market performance (+0.5%).")
        confidence += 10
    elif avg_return < 0.02:
        adjustment -= 0.01
        fragments.append("Below-target returns (-1%).")
        confidence += 15

    if health > rule.safety_buffer:
        adjustment += 0.003
        fragments.append("Portfolio above safety buffer (+0.3%).")
        confidence += 10
    elif health < 0.9:
        adjustment -= 0.008
        fragments.append("Portfolio health concern (-0.8%).")
        confidence += 20

    if avg_volatility > 0.25:
        adjustment -= 0.003
        fragments.append("High market volatility (-0.3%).")
        confidence += 5
    elif avg_volatility < 0.12:
        adjustment += 0.002
        fragments.append("Low volatility environment (+0.2%).")

    latest_inflation = recent[-1].inflation_rate
    if latest_inflation > 0.04:
        boost = min(0.005, latest_inflation - DEFAULT_INFLATION)
        adjustment += boost
        fragments.append(f"High inflation adjustment (+{boost * 100:.1f}%).")
        confidence -= 5

    new_rate = rule.clamp(current_rate + adjustment * rule.adjustment_factor)
    new_rate = rule.clamp(_round_rate(new_rate))

    if abs(new_rate - current_rate) < RATE_PRECISION:
        return RateRecommendation(
            rate=new_rate,
            reason="No significant adjustment needed",
            confidence=NO_CHANGE_CONFIDENCE,
        )
    reason = " ".join(fragments) or "Standard rule-based adjustment"
    return RateRecommendation(
        rate=new_rate, reason=reason, confidence=min(MAX_CONFIDENCE, confidence)
    )


def _value_at(values: Sequence[float], idx: int, default: float) -> float:
    return float(values[idx]) if idx < len(values) else default


def simulate_dynamic_withdrawals(
    initial_value: float,
    rule: WithdrawalRule,
    returns: Sequence[float],
    inflation: Sequence[float] = (),
    volatility: Sequence[float] = (),
    *,
    max_years: int = MAX_SIMULATION_YEARS,
) -> DynamicWithdrawalOutcome:
    """Run a single deterministic path under a dynamic withdrawal rule.

    Each year withdraws ``value * rate``, grows the value by the realised
    return, records the market condition and asks :func:`recommend_rate` for
    the next rate. Missing inflation or volatility entries default to 2.5%
    and 15%. The run stops early once the portfolio is exhausted.

    Raises:
      ValueError: If ``initial_value`` is not positive.
    """

    if initial_value <= 0.0:
        msg = "initial_value must be positive"
        raise ValueError(msg)

    value = float(initial_value)
    rate = rule.base_rate
    total_withdrawals = 0.0
    history: list[MarketCondition] = []
    adjustments: list[RateAdjustment] = []

    years = min(len(returns), max_years)
    for idx in range(years):
        realised = float(returns[idx])
        year_inflation = _value_at(inflation, idx, DEFAULT_INFLATION)
        year_volatility = _value_at(volatility, idx, DEFAULT_VOLATILITY)

        withdrawal = value * rate
        total_withdrawals += withdrawal
        value = value * (1.0 + realised) - withdrawal
        history.append(
            MarketCondition(
                year=idx + 1,
                portfolio_return=realised,
                portfolio_value=value,
                market_volatility=year_volatility,
                inflation_rate=year_inflation,
                withdrawal_amount=withdrawal,
            )
        )

        recommendation = recommend_rate(rate, history, rule, initial_value)
        window = history[-rule.lookback_years :]
        adjustments.append(
            RateAdjustment(
                year=idx + 1,
                previous_rate=rate,
                market_performance=sum(item.portfolio_return for item in window) / len(window),
                portfolio_health=value / initial_value,
                recommended_rate=recommendation.rate,
                actual_rate=recommendation.rate,
                reason=recommendation.reason,
                confidence=recommendation.confidence,
            )
        )
        rate = recommendation.rate
        if value <= 0.0:
            LOG.debug("%s exhausted the portfolio in year %s", rule.name, idx + 1)
            break

    if value > 0.0:
        success = round(min(95.0, 60.0 + value / initial_value * 30.0))
    else:
        success = 0
    return DynamicWithdrawalOutcome(
        rule=rule,
        adjustments=tuple(adjustments),
        success_probability=int(success),
        total_withdrawals=total_withdrawals,
        final_value=max(0.0, value),
        sustainability_score=sustainability_score(adjustments, value, initial_value),
    )


def sustainability_score(
    adjustments: Sequence[RateAdjustment],
    final_value: float,
    initial_value: float,
) -> int:
    """Score a run between 0 and 100.

    The score starts at 50 and rewards capital preservation, stable rates,
    confident adjustments and a moderate adaptation frequency.
    """

    score = 50.0
    preservation = final_value / initial_value if initial_value > 0.0 else 0.0
    if preservation > 0.8:
        score += 30
    elif preservation > 0.5:
        score += 15
    elif preservation > 0.2:
        score += 5
    else:
        score -= 20

    if adjustments:
        rates = np.array([item.actual_rate for item in adjustments], dtype="float64")
        variance = float(np.var(rates))
        if variance < 0.0001:
            score += 15
        elif variance < 0.0004:
            score += 10
        elif variance > 0.001:
            score -= 10

        avg_confidence = sum(item.confidence for item in adjustments) / len(adjustments)
        score += (avg_confidence - BASE_CONFIDENCE) * 0.3

        adaptations = sum(
            1 for item in adjustments if abs(item.actual_rate - item.previous_rate) > 0.002
        )
        adaptation_rate = adaptations / len(adjustments)
        if 0.1 < adaptation_rate < 0.4:
            score += 10
        elif adaptation_rate > 0.5:
            score -= 5

    return int(max(0, min(100, round(score))))


def generate_market_scenarios(
    years: int,
    *,
    base_return: float = 0.07,
    base_inflation: float = DEFAULT_INFLATION,
    base_volatility: float = DEFAULT_VOLATILITY,
    seed: int | np.random.Generator | None = None,
) -> dict[str, MarketScenario]:
    """Draw optimistic, expected and pessimistic market paths.

    All three paths share the same yearly noise and differ by fixed offsets.
    Inflation is floored at 1% and volatility at 8%.
    """

    if years < 0:
        msg = "years must be >= 0"
        raise ValueError(msg)
    rng = generator_from_seed(seed, stream="market_scenarios")
    return_noise = (rng.random(years) - 0.5) * 0.1
    inflation_noise = (rng.random(years) - 0.5) * 0.02
    volatility_noise = (rng.random(years) - 0.5) * 0.05

    offsets = {
        "optimistic": (0.02, -0.005, -0.03),
        "expected": (0.0, 0.0, 0.0),
        "pessimistic": (-0.02, 0.01, 0.05),
    }
    scenarios: dict[str, MarketScenario] = {}
    for label, (ret_shift, infl_shift, vol_shift) in offsets.items():
        scenarios[label] = MarketScenario(
            returns=base_return + ret_shift + return_noise,
            inflation=np.maximum(0.01, base_inflation + infl_shift + inflation_noise),
            volatility=np.maximum(0.08, base_volatility + vol_shift + volatility_noise),
        )
    return scenarios


def compare_withdrawal_rules(
    initial_value: float,
    scenario: MarketScenario,
    rules: Sequence[WithdrawalRule] = WITHDRAWAL_RULES,
) -> list[DynamicWithdrawalOutcome]:
    """Simulate every rule on ``scenario`` and rank by sustainability score."""

    outcomes = [
        simulate_dynamic_withdrawals(
            initial_value,
            rule,
            scenario.returns,
            scenario.inflation,
            scenario.volatility,
        )
        for rule in rules
    ]
    return sorted(outcomes, key=lambda outcome: outcome.sustainability_score, reverse=True)


def adjustment_severity(rate_change: float) -> str:
    """Classify a rate change as ``minor``, ``moderate`` or ``major``."""

    change = abs(rate_change)
    if change < 0.002:
        return "minor"
    if change < 0.005:
        return "moderate"
    return "major"


def format_rate(rate: float) -> str:
    return f"{rate * 100:.1f}%"
