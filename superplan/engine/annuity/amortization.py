"""Mortgage-style amortisation schedules."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

import numpy as np
import pandas as pd

__all__ = ["MortgagePayoff", "amortization_schedule", "mortgage_payoff"]

SCHEDULE_COLUMNS = ["month", "payment", "interest", "principal", "prepayment", "balance"]


@dataclass(frozen=True)
class MortgagePayoff:
    """Outcome of repaying a loan ahead of its contract schedule.

    Attributes:
      months: Months until the balance reaches zero.
      years: ``months`` expressed in years.
      base_payment: Scheduled monthly payment without extras.
      total_interest: Interest paid with the extra payments and prepayments.
      interest_saved: Interest avoided compared with the base schedule.
      months_saved: Months cut from the contract term.
    """

    months: int
    years: float
    base_payment: float
    total_interest: float
    interest_saved: float
    months_saved: int = 0

    @property
    def monthly_savings(self) -> float:
        """Interest saved per month of the shortened schedule."""

        return self.interest_saved / self.months if self.months else 0.0


def amortization_schedule(
    principal: float,
    annual_rate: float,
    years: int = 30,
    extra_payment: float = 0.0,
    prepayments: Mapping[int, float] | None = None,
) -> pd.DataFrame:
    """Build the monthly repayment schedule for a loan.

    Args:
      principal: Amount borrowed.
      annual_rate: Nominal yearly interest rate.
      years: Contract term used for the scheduled payment.
      extra_payment: Additional amount paid every month.
      prepayments: Lump sums keyed by the number of months already elapsed
        when they are paid; ``0`` reduces the balance before the first
        payment. The scheduled payment does not change.

    Returns:
      DataFrame with ``month``, ``payment``, ``interest``, ``principal``,
      ``prepayment`` and ``balance`` columns, one row per month until the
      loan is repaid.
    """

    if principal < 0.0:
        msg = "principal must be non-negative"
        raise ValueError(msg)
    if years <= 0:
        msg = "years must be positive"
        raise ValueError(msg)
    lumps = dict(prepayments or {})
    if any(amount < 0.0 for amount in lumps.values()):
        msg = "prepayments must be non-negative"
        raise ValueError(msg)
    monthly_rate = annual_rate / 12.0
    total_payments = years * 12
    if monthly_rate == 0.0:
        base_payment = principal / total_payments
    else:
        growth = (1.0 + monthly_rate) ** total_payments
        base_payment = principal * monthly_rate * growth / (growth - 1.0)
    payment = base_payment + max(0.0, extra_payment)

    rows: list[tuple[int, float, float, float, float, float]] = []
    remaining = float(principal)
    month = 0
    while remaining > 1e-9 and month < total_payments:
        prepaid = min(float(lumps.get(month, 0.0)), remaining)
        remaining -= prepaid
        interest = remaining * monthly_rate
        repaid = min(payment - interest, remaining)
        remaining -= repaid
        month += 1
        rows.append(
            (month, interest + repaid, interest, repaid, prepaid, max(0.0, remaining))
        )
    frame = pd.DataFrame(rows, columns=SCHEDULE_COLUMNS)
    frame.attrs["base_payment"] = base_payment
    return frame


def mortgage_payoff(
    principal: float,
    annual_rate: float,
    extra_payment: float = 0.0,
    *,
    years: int = 30,
    prepayments: Mapping[int, float] | None = None,
) -> MortgagePayoff:
    """Summarise how extra payments and lump sums shorten a loan."""

    schedule = amortization_schedule(principal, annual_rate, years, extra_payment, prepayments)
    base_payment = float(schedule.attrs["base_payment"])
    months = int(len(schedule))
    total_interest = float(np.sum(schedule["interest"].to_numpy(dtype="float64")))
    baseline_interest = base_payment * years * 12 - principal
    return MortgagePayoff(
        months=months,
        years=months / 12.0,
        base_payment=base_payment,
        total_interest=total_interest,
        interest_saved=max(0.0, baseline_interest - total_interest),
        months_saved=max(0, years * 12 - months),
    )
