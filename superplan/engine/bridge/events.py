"""Probability-weighted windfall events used to fund the bridge period."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import date
from enum import Enum

__all__ = [
    "WindfallSource",
    "TaxTreatment",
    "WindfallEvent",
    "TaxImpact",
    "TAX_TREATMENT_RATES",
    "MAX_EVENT_AMOUNT",
    "expected_value",
    "guaranteed_value",
    "events_by_year",
    "events_in_window",
    "tax_impact",
    "net_expected_value",
    "validate_windfall_event",
    "describe_source",
    "describe_tax_treatment",
    "timeline_summary",
]

MAX_EVENT_AMOUNT = 50_000_000.0


class WindfallSource(str, Enum):
    INHERITANCE = "inheritance"
    PROPERTY_SALE = "property_sale"
    INVESTMENT_EXIT = "investment_exit"
    WINDFALL = "windfall"
    BONUS = "bonus"
    OTHER = "other"


class TaxTreatment(str, Enum):
    TAX_FREE = "tax_free"
    CAPITAL_GAINS = "capital_gains"
    INCOME = "income"
    SUPER_CONTRIBUTION = "super_contribution"


# Capital gains assume the 50% discount on a 30% marginal rate.
TAX_TREATMENT_RATES: dict[TaxTreatment, float] = {
    TaxTreatment.TAX_FREE: 0.0,
    TaxTreatment.CAPITAL_GAINS: 0.15,
    TaxTreatment.INCOME: 0.30,
    TaxTreatment.SUPER_CONTRIBUTION: 0.15,
}

_SOURCE_DESCRIPTIONS: dict[WindfallSource, str] = {
    WindfallSource.INHERITANCE: "Inheritance from family member or estate",
    WindfallSource.PROPERTY_SALE: "Sale of investment or primary residence",
    WindfallSource.INVESTMENT_EXIT: "Sale of shares, business, or other investments",
    WindfallSource.WINDFALL: "Lottery, gambling, or unexpected gain",
    WindfallSource.BONUS: "Work bonus, performance payment, or severance",
    WindfallSource.OTHER: "Other lump sum source",
}

_TREATMENT_DESCRIPTIONS: dict[TaxTreatment, str] = {
    TaxTreatment.TAX_FREE: "No tax payable (e.g., inheritance, some super withdrawals)",
    TaxTreatment.CAPITAL_GAINS: "Capital gains tax (50% discount if held >12 months)",
    TaxTreatment.INCOME: "Taxed as income at marginal rate",
    TaxTreatment.SUPER_CONTRIBUTION: "15% contributions tax if within super caps",
}


@dataclass(frozen=True)
class WindfallEvent:
    """A possible future lump sum.

    Attributes:
      name: Label shown in reports.
      amount: Gross amount before tax.
      event_date: Expected date of receipt.
      probability: Likelihood in percent (0-100).
      source: Origin of the money.
      tax_treatment: How the amount is taxed on receipt.
    """

    name: str
    amount: float
    event_date: date
    probability: float = 100.0
    source: WindfallSource = WindfallSource.OTHER
    tax_treatment: TaxTreatment = TaxTreatment.TAX_FREE

    @property
    def year(self) -> int:
        return self.event_date.year

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> WindfallEvent:
        raw_date = payload["date"]
        event_date = raw_date if isinstance(raw_date, date) else date.fromisoformat(str(raw_date))
        return cls(
            name=str(payload.get("name", "")),
            amount=float(payload["amount"]),
            event_date=event_date,
            probability=float(payload.get("probability", 100.0)),
            source=WindfallSource(str(payload.get("source", WindfallSource.OTHER.value))),
            tax_treatment=TaxTreatment(
                str(payload.get("tax_treatment", TaxTreatment.TAX_FREE.value))
            ),
        )


@dataclass(frozen=True)
class TaxImpact:
    net_amount: float
    tax_amount: float
    tax_rate: float


def expected_value(events: Iterable[WindfallEvent]) -> float:
    """Sum of gross amounts weighted by their probability."""

    return sum(event.amount * event.probability / 100.0 for event in events)


def guaranteed_value(events: Iterable[WindfallEvent]) -> float:
    """Sum of the events that are certain to happen."""

    return sum(event.amount for event in events if event.probability >= 100.0)


def events_by_year(events: Iterable[WindfallEvent]) -> dict[int, list[WindfallEvent]]:
    grouped: dict[int, list[WindfallEvent]] = defaultdict(list)
    for event in events:
        grouped[event.year].append(event)
    return dict(grouped)


def events_in_window(
    events: Iterable[WindfallEvent], start_year: int, end_year: int
) -> list[WindfallEvent]:
    """Events whose year lies in ``[start_year, end_year]`` (both inclusive)."""

    return [event for event in events if start_year <= event.year <= end_year]


def tax_impact(event: WindfallEvent) -> TaxImpact:
    rate = TAX_TREATMENT_RATES[event.tax_treatment]
    tax = event.amount * rate
    return TaxImpact(net_amount=event.amount - tax, tax_amount=tax, tax_rate=rate)


def net_expected_value(events: Iterable[WindfallEvent]) -> float:
    """Probability-weighted value of ``events`` after tax."""

    return sum(tax_impact(event).net_amount * event.probability / 100.0 for event in events)


def validate_windfall_event(
    event: WindfallEvent,
    *,
    as_of: date | None = None,
    path: str = "event",
) -> list[str]:
    """Return field-level problems with ``event``; an empty list means valid."""

    errors: list[str] = []
    if not event.name.strip():
        errors.append(f"{path}.name is required")
    if event.amount <= 0.0:
        errors.append(f"{path}.amount must be > 0")
    elif event.amount > MAX_EVENT_AMOUNT:
        errors.append(f"{path}.amount must be <= {MAX_EVENT_AMOUNT:,.0f}")
    if as_of is not None and event.event_date < as_of:
        errors.append(f"{path}.date cannot be in the past")
    if not 0.0 <= event.probability <= 100.0:
        errors.append(f"{path}.probability must lie in [0, 100]")
    return errors


def describe_source(source: WindfallSource) -> str:
    return _SOURCE_DESCRIPTIONS.get(source, "Unknown source")


def describe_tax_treatment(treatment: TaxTreatment) -> str:
    return _TREATMENT_DESCRIPTIONS.get(treatment, "Unknown tax treatment")


def timeline_summary(events: Sequence[WindfallEvent]) -> dict[str, float | int | None]:
    """Headline numbers for a list of events."""

    years = [event.year for event in events]
    return {
        "total_expected_value": expected_value(events),
        "total_guaranteed_value": guaranteed_value(events),
        "first_event_year": min(years) if years else None,
        "last_event_year": max(years) if years else None,
    }
