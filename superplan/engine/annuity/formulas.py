"""Closed-form annuity and growth formulas.

All rates are decimal fractions per period. Near-zero rates fall back to the
linear limit of each formula instead of dividing by a vanishing denominator.
"""

from __future__ import annotations

import math

__all__ = [
    "ZERO_RATE_TOLERANCE",
    "SUSTAINABLE_CEILING",
    "annuity_payment",
    "real_rate",
    "spend_to_zero_withdrawal",
    "future_value",
    "fire_number",
    "years_to_target",
]

ZERO_RATE_TOLERANCE = 1e-3
SUSTAINABLE_CEILING = 0.15


def annuity_payment(present_value: float, rate: float, periods: int) -> float:
    """Level payment that amortises ``present_value`` over ``periods``.

    Args:
      present_value: Balance to exhaust.
      rate: Return per period.
      periods: Number of payments.

    Returns:
      ``pv * r(1+r)^n / ((1+r)^n - 1)``; ``pv / n`` when ``|r|`` is below
      :data:`ZERO_RATE_TOLERANCE`; ``pv`` when no periods remain.
    """

    if periods <= 0:
        return float(present_value)
    if abs(rate) < ZERO_RATE_TOLERANCE:
        return float(present_value) / periods
    growth = (1.0 + rate) ** periods
    return float(present_value) * rate * growth / (growth - 1.0)


def real_rate(nominal_rate: float, inflation_rate: float) -> float:
    """Return earned in today's money, ``(1+r)/(1+i) - 1``.

    ``nominal_rate - inflation_rate`` is its first-order approximation.
    """

    return (1.0 + float(nominal_rate)) / (1.0 + float(inflation_rate)) - 1.0


def spend_to_zero_withdrawal(
    balance: float,
    years: int,
    real_return: float,
    expenses: float,
    *,
    ceiling: float = SUSTAINABLE_CEILING,
) -> float:
    """Annual withdrawal that exhausts ``balance`` over ``years``.

    The annuity payment is floored at the requested ``expenses`` and capped at
    ``ceiling`` times the balance. When the floor exceeds the cap the cap wins.
    """

    payment = annuity_payment(balance, real_return, years)
    floored = max(payment, float(expenses))
    return min(floored, float(balance) * ceiling)


def future_value(
    principal: float,
    rate: float,
    years: int,
    contribution: float = 0.0,
) -> float:
    """Balance after ``years`` of growth with end-of-year contributions."""

    if years <= 0:
        return float(principal)
    if rate == 0.0:
        return float(principal) + float(contribution) * years
    growth = (1.0 + rate) ** years
    return float(principal) * growth + float(contribution) * (growth - 1.0) / rate


def fire_number(annual_expenses: float, withdrawal_rate: float = 0.04) -> float:
    """Portfolio size that funds ``annual_expenses`` at ``withdrawal_rate``."""

    if withdrawal_rate <= 0.0:
        msg = "withdrawal_rate must be positive"
        raise ValueError(msg)
    return float(annual_expenses) / withdrawal_rate


def years_to_target(
    current: float,
    target: float,
    annual_savings: float,
    annual_return: float = 0.07,
) -> float:
    """Whole years of monthly saving needed to grow ``current`` to ``target``.

    Returns ``math.inf`` when nothing is saved and ``0`` once the target is
    already reached.
    """

    if current >= target:
        return 0.0
    if annual_savings <= 0.0:
        return math.inf
    monthly_rate = annual_return / 12.0
    monthly_payment = annual_savings / 12.0
    gap = target - current
    if abs(monthly_rate) < 1e-12:
        months = gap / monthly_payment
    else:
        months = math.log(1.0 + gap * monthly_rate / monthly_payment) / math.log(
            1.0 + monthly_rate
        )
    return float(math.ceil(months / 12.0))
