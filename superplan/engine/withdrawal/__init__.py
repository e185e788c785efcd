"""Withdrawal rate policies: dynamic rule engine and guardrails."""

from .dynamic import (
    WITHDRAWAL_RULES,
    DynamicWithdrawalOutcome,
    MarketCondition,
    MarketScenario,
    RateAdjustment,
    RateRecommendation,
    WithdrawalRule,
    adjustment_severity,
    compare_withdrawal_rules,
    describe_withdrawal_rule,
    format_rate,
    generate_market_scenarios,
    get_withdrawal_rule,
    recommend_rate,
    simulate_dynamic_withdrawals,
    sustainability_score,
)
from .guardrails import (
    DEFAULT_GUARDRAILS,
    GuardrailAdjustment,
    Guardrails,
    GuardrailStatus,
    adjust_for_guardrails,
    classify_ratio,
)

__all__ = [
    "DEFAULT_GUARDRAILS",
    "WITHDRAWAL_RULES",
    "DynamicWithdrawalOutcome",
    "GuardrailAdjustment",
    "GuardrailStatus",
    "Guardrails",
    "MarketCondition",
    "MarketScenario",
    "RateAdjustment",
    "RateRecommendation",
    "WithdrawalRule",
    "adjust_for_guardrails",
    "adjustment_severity",
    "classify_ratio",
    "compare_withdrawal_rules",
    "describe_withdrawal_rule",
    "format_rate",
    "generate_market_scenarios",
    "get_withdrawal_rule",
    "recommend_rate",
    "simulate_dynamic_withdrawals",
    "sustainability_score",
]
