"""Declining income streams that shrink the bridge funding gap.

Part-time work, consulting, rent and similar income rarely stays flat once a
household stops full-time work. Each :class:`BridgeIncomeSource` follows a
decline pattern and is taxed by its treatment; :func:`plan_bridge_income`
projects the streams year by year over the bridge window.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum

from superplan.engine.rules.tax import income_tax

from .events import TaxTreatment

__all__ = [
    "IncomeType",
    "DeclinePattern",
    "BridgeIncomeSource",
    "IncomeYear",
    "BridgeIncomePlan",
    "STEP_DECLINE_FACTOR",
    "EXPONENTIAL_DECLINE_FACTOR",
    "CAPITAL_GAINS_DISCOUNT",
    "income_in_year",
    "tax_on_income",
    "plan_bridge_income",
    "validate_income_source",
    "describe_income_type",
    "describe_decline_pattern",
]

STEP_DECLINE_FACTOR = 0.5
EXPONENTIAL_DECLINE_FACTOR = 0.85
CAPITAL_GAINS_DISCOUNT = 0.5


class IncomeType(str, Enum):
    PART_TIME_WORK = "part_time_work"
    CONSULTING = "consulting"
    RENTAL_PROPERTY = "rental_property"
    DIVIDENDS = "dividends"
    SIDE_BUSINESS = "side_business"
    OTHER = "other"


class DeclinePattern(str, Enum):
    CONSTANT = "constant"
    LINEAR_DECLINE = "linear_decline"
    STEP_DECLINE = "step_decline"
    EXPONENTIAL_DECLINE = "exponential_decline"


_TYPE_DESCRIPTIONS: dict[IncomeType, str] = {
    IncomeType.PART_TIME_WORK: "Part-time employment with regular hours",
    IncomeType.CONSULTING: "Freelance consulting or contract work",
    IncomeType.RENTAL_PROPERTY: "Rental income from investment properties",
    IncomeType.DIVIDENDS: "Dividend income from share portfolio",
    IncomeType.SIDE_BUSINESS: "Income from side business or entrepreneurship",
    IncomeType.OTHER: "Other income source",
}

_PATTERN_DESCRIPTIONS: dict[DeclinePattern, str] = {
    DeclinePattern.CONSTANT: "Income remains constant throughout period",
    DeclinePattern.LINEAR_DECLINE: "Income decreases by fixed percentage each year",
    DeclinePattern.STEP_DECLINE: "Income drops significantly at specific point",
    DeclinePattern.EXPONENTIAL_DECLINE: "Income decreases rapidly over time",
}


@dataclass(frozen=True)
class BridgeIncomeSource:
    """An income stream received during the bridge.

    Attributes:
      name: Label shown in reports.
      income_type: Kind of income.
      annual_amount: Gross amount in the first year.
      start_year: First calendar year of income.
      end_year: Last calendar year of income (inclusive).
      decline_pattern: How the amount changes after the first year.
      decline_rate: Percent lost per year for the linear pattern, or the
        number of years before the step for the step pattern.
      tax_treatment: How the income is taxed.
      reliability: Confidence in the stream in percent (0-100).
    """

    name: str
    income_type: IncomeType
    annual_amount: float
    start_year: int
    end_year: int
    decline_pattern: DeclinePattern = DeclinePattern.CONSTANT
    decline_rate: float = 0.0
    tax_treatment: TaxTreatment = TaxTreatment.INCOME
    reliability: float = 100.0

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> BridgeIncomeSource:
        return cls(
            name=str(payload.get("name", "")),
            income_type=IncomeType(str(payload.get("type", IncomeType.OTHER.value))),
            annual_amount=float(payload["annual_amount"]),  # type: ignore[arg-type]
            start_year=int(payload["start_year"]),  # type: ignore[call-overload]
            end_year=int(payload["end_year"]),  # type: ignore[call-overload]
            decline_pattern=DeclinePattern(
                str(payload.get("decline_pattern", DeclinePattern.CONSTANT.value))
            ),
            decline_rate=float(payload.get("decline_rate", 0.0)),  # type: ignore[arg-type]
            tax_treatment=TaxTreatment(
                str(payload.get("tax_treatment", TaxTreatment.INCOME.value))
            ),
            reliability=float(payload.get("reliability", 100.0)),  # type: ignore[arg-type]
        )


@dataclass(frozen=True)
class IncomeYear:
    year: int
    gross: float
    tax: float

    @property
    def net(self) -> float:
        return self.gross - self.tax


@dataclass(frozen=True)
class BridgeIncomePlan:
    """Year-by-year projection of the bridge income streams.

    Attributes:
      years: One entry per calendar year of the window.
      sustainability_score: 0-100 rating of how steady the streams are.
      recommendations: Suggested actions.
    """

    years: tuple[IncomeYear, ...]
    sustainability_score: float
    recommendations: tuple[str, ...]

    @property
    def total_gross(self) -> float:
        return sum(item.gross for item in self.years)

    @property
    def total_tax(self) -> float:
        return sum(item.tax for item in self.years)

    @property
    def total_net(self) -> float:
        return self.total_gross - self.total_tax

    def net_in_year(self, year: int) -> float:
        return next((item.net for item in self.years if item.year == year), 0.0)


def income_in_year(source: BridgeIncomeSource, year: int) -> float:
    """Gross income of ``source`` in calendar ``year``; zero outside its window."""

    if year < source.start_year or year > source.end_year:
        return 0.0
    elapsed = year - source.start_year
    amount = float(source.annual_amount)
    pattern = source.decline_pattern
    if elapsed == 0 or pattern is DeclinePattern.CONSTANT:
        return amount
    if pattern is DeclinePattern.LINEAR_DECLINE:
        return amount * (1.0 - source.decline_rate / 100.0) ** elapsed
    if pattern is DeclinePattern.STEP_DECLINE:
        return amount * STEP_DECLINE_FACTOR if elapsed >= source.decline_rate else amount
    return amount * EXPONENTIAL_DECLINE_FACTOR**elapsed


def tax_on_income(amount: float, treatment: TaxTreatment) -> float:
    """Resident tax on ``amount`` received as a stream of the given treatment.

    Capital gains are taxed on the discounted half.

    Raises:
      ValueError: For treatments that do not apply to income streams.
    """

    if treatment is TaxTreatment.TAX_FREE:
        return 0.0
    if treatment is TaxTreatment.CAPITAL_GAINS:
        return income_tax(amount * CAPITAL_GAINS_DISCOUNT)
    if treatment is TaxTreatment.INCOME:
        return income_tax(amount)
    msg = f"tax treatment {treatment.value!r} does not apply to income streams"
    raise ValueError(msg)


def _sustainability_score(
    sources: Sequence[BridgeIncomeSource], years: Sequence[IncomeYear]
) -> float:
    score = 100.0
    for source in sources:
        if source.decline_pattern is DeclinePattern.LINEAR_DECLINE and source.decline_rate > 10.0:
            score -= 15.0
        if source.decline_pattern is DeclinePattern.EXPONENTIAL_DECLINE:
            score -= 20.0
        score += (source.reliability - 80.0) * 0.5
    first = years[0].net if years else 0.0
    last = years[-1].net if years else 0.0
    if last < first * 0.3:
        score -= 25.0
    elif last < first * 0.6:
        score -= 15.0
    return max(0.0, min(100.0, score))


def _recommendations(
    sources: Sequence[BridgeIncomeSource], years: Sequence[IncomeYear]
) -> list[str]:
    notes: list[str] = []
    first = years[0].net if years else 0.0
    last = years[-1].net if years else 0.0
    if last < first * 0.5:
        notes.append(
            "Consider developing additional income streams to offset declining work income"
        )
    kinds = {source.income_type for source in sources}
    if IncomeType.RENTAL_PROPERTY not in kinds and len(sources) < 3:
        notes.append("Consider investment property for stable rental income during FIRE")
    if IncomeType.PART_TIME_WORK in kinds and IncomeType.CONSULTING not in kinds:
        notes.append(
            "Transition from part-time work to higher-rate consulting "
            "as skills become more specialized"
        )
    gross = sum(item.gross for item in years)
    tax = sum(item.tax for item in years)
    if gross > 0.0 and tax / gross > 0.25:
        notes.append(
            "Consider tax optimization strategies - high effective tax rate on bridge income"
        )
    unreliable = [source.name for source in sources if source.reliability < 70.0]
    if unreliable:
        notes.append(f"Improve reliability of {', '.join(unreliable)} or develop backup options")
    return notes


def plan_bridge_income(
    sources: Iterable[BridgeIncomeSource], start_year: int, end_year: int
) -> BridgeIncomePlan:
    """Project ``sources`` over ``[start_year, end_year]`` (both inclusive).

    Tax is assessed on the combined gross of each treatment, so two income
    streams share one set of brackets.
    """

    items = list(sources)
    years: list[IncomeYear] = []
    for year in range(start_year, end_year + 1):
        by_treatment: dict[TaxTreatment, float] = {}
        for source in items:
            amount = income_in_year(source, year)
            kind = source.tax_treatment
            by_treatment[kind] = by_treatment.get(kind, 0.0) + amount
        gross = sum(by_treatment.values())
        tax = sum(tax_on_income(amount, kind) for kind, amount in by_treatment.items())
        years.append(IncomeYear(year=year, gross=gross, tax=tax))
    return BridgeIncomePlan(
        years=tuple(years),
        sustainability_score=_sustainability_score(items, years),
        recommendations=tuple(_recommendations(items, years)),
    )


def validate_income_source(source: BridgeIncomeSource, *, path: str = "source") -> list[str]:
    """Return field-level problems with ``source``; an empty list means valid."""

    errors: list[str] = []
    if not source.name.strip():
        errors.append(f"{path}.name is required")
    if source.annual_amount < 0.0:
        errors.append(f"{path}.annual_amount must be >= 0")
    if source.end_year < source.start_year:
        errors.append(f"{path}.end_year must be >= start_year")
    if source.decline_rate < 0.0:
        errors.append(f"{path}.decline_rate must be >= 0")
    elif source.decline_pattern is DeclinePattern.LINEAR_DECLINE and source.decline_rate > 100.0:
        errors.append(f"{path}.decline_rate must be <= 100 for linear_decline")
    if source.tax_treatment is TaxTreatment.SUPER_CONTRIBUTION:
        errors.append(f"{path}.tax_treatment must be income, capital_gains or tax_free")
    if not 0.0 <= source.reliability <= 100.0:
        errors.append(f"{path}.reliability must lie in [0, 100]")
    return errors


def describe_income_type(income_type: IncomeType) -> str:
    return _TYPE_DESCRIPTIONS.get(income_type, "Unknown income type")


def describe_decline_pattern(pattern: DeclinePattern) -> str:
    return _PATTERN_DESCRIPTIONS.get(pattern, "Unknown decline pattern")
