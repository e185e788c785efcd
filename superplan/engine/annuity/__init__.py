"""Annuity, growth and amortisation math."""

from .amortization import MortgagePayoff, amortization_schedule, mortgage_payoff
from .formulas import (
    SUSTAINABLE_CEILING,
    ZERO_RATE_TOLERANCE,
    annuity_payment,
    fire_number,
    future_value,
    real_rate,
    spend_to_zero_withdrawal,
    years_to_target,
)

__all__ = [
    "MortgagePayoff",
    "SUSTAINABLE_CEILING",
    "ZERO_RATE_TOLERANCE",
    "amortization_schedule",
    "annuity_payment",
    "fire_number",
    "future_value",
    "mortgage_payoff",
    "real_rate",
    "spend_to_zero_withdrawal",
    "years_to_target",
]
