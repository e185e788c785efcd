"""Validation utilities for superplan configuration files.

The validator checks the YAML documents consumed by the CLI and records human
readable diagnostics instead of raising. Sections that pass validation are
returned in normalised form so callers can inspect what would be simulated.
Field checks run first; records that pass them are then built through the
engine ``from_mapping`` constructors so cross-field rules (mode exclusivity,
lump-sum splits) are reported with the same messages the engine raises.
"""

from __future__ import annotations

# ruff: noqa: ANN401
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any

from superplan.engine.bridge.fire import HouseholdStrategy, Pre60FireSettings
from superplan.engine.montecarlo.models import (
    AllocationTarget,
    BaselineSettings,
    Scenario,
    ScenarioMode,
    WithdrawalPolicy,
)
from superplan.engine.spendzero import SuperSpendSettings, WithdrawalOrder
from superplan.engine.utils.io import read_yaml
from superplan.engine.withdrawal.dynamic import WITHDRAWAL_RULES

__all__ = ["ValidationSummary", "validate_configs"]

_RULE_NAMES = tuple(rule.name for rule in WITHDRAWAL_RULES)


@dataclass(slots=True)
class ValidationSummary:
    """Aggregate structure returning validation diagnostics and parsed configs.

    Attributes:
      errors: Collection of error messages detected during validation.
      warnings: Soft diagnostics that highlight questionable assumptions.
      configs: Mapping between config label and the normalised payload
        obtained after validation.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    configs: dict[str, dict[str, Any]] = field(default_factory=dict)


def _is_number(value: Any) -> bool:
    """Return ``True`` if ``value`` is a real number (excluding booleans)."""

    return isinstance(value, int | float) and not isinstance(value, bool)


def _as_float(
    value: Any,
    *,
    path: str,
    errors: list[str],
    minimum: float | None = None,
    maximum: float | None = None,
) -> float | None:
    """Validate ``value`` as float returning the coerced number when valid."""

    if not _is_number(value):
        errors.append(f"{path} must be a number")
        return None
    number = float(value)
    if minimum is not None and number < minimum:
        errors.append(f"{path} must be >= {minimum}")
        return None
    if maximum is not None and number > maximum:
        errors.append(f"{path} must be <= {maximum}")
        return None
    return number


def _as_int(
    value: Any,
    *,
    path: str,
    errors: list[str],
    minimum: int | None = None,
    maximum: int | None = None,
) -> int | None:
    """Validate ``value`` as integer returning the number when valid."""

    if not isinstance(value, int) or isinstance(value, bool):
        errors.append(f"{path} must be an integer")
        return None
    if minimum is not None and value < minimum:
        errors.append(f"{path} must be >= {minimum}")
        return None
    if maximum is not None and value > maximum:
        errors.append(f"{path} must be <= {maximum}")
        return None
    return value


def _as_string(value: Any, *, path: str, errors: list[str]) -> str | None:
    if not isinstance(value, str) or not value.strip():
        errors.append(f"{path} must be a non-empty string")
        return None
    return value.strip()


def _as_choice(value: Any, *, path: str, errors: list[str], choices: tuple[str, ...]) -> str | None:
    text = _as_string(value, path=path, errors=errors)
    if text is None:
        return None
    if text not in choices:
        errors.append(f"{path} must be one of: {', '.join(choices)}")
        return None
    return text


def _as_bool(value: Any, *, path: str, errors: list[str]) -> bool | None:
    if not isinstance(value, bool):
        errors.append(f"{path} must be true or false")
        return None
    return value


def _as_date(value: Any, *, path: str, errors: list[str]) -> date | None:
    """Accept YAML dates or ISO ``YYYY-MM-DD`` strings."""

    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            pass
    errors.append(f"{path} must be an ISO date (YYYY-MM-DD)")
    return None


def _optional(
    payload: dict[str, Any],
    key: str,
    check: Callable[..., Any],
    *,
    path: str,
    errors: list[str],
    **bounds: Any,
) -> Any:
    if key not in payload or payload[key] is None:
        return None
    return check(payload[key], path=f"{path}.{key}", errors=errors, **bounds)


def _build(
    factory: Callable[[dict[str, Any]], Any],
    payload: dict[str, Any],
    errors: list[str],
) -> Any:
    """Run an engine constructor recording construction errors as diagnostics."""

    try:
        return factory(payload)
    except (KeyError, TypeError, ValueError) as exc:
        errors.append(str(exc))
        return None


def _enum_values(enum_cls: Any) -> tuple[str, ...]:
    return tuple(item.value for item in enum_cls)


def _validate_person(value: Any, *, path: str, errors: list[str]) -> dict[str, Any] | None:
    if not isinstance(value, dict):
        errors.append(f"{path} must be a mapping")
        return None
    _as_string(value.get("name"), path=f"{path}.name", errors=errors)
    _as_int(
        value.get("current_age"),
        path=f"{path}.current_age",
        errors=errors,
        minimum=18,
        maximum=100,
    )
    _as_float(
        value.get("current_balance", 0.0),
        path=f"{path}.current_balance",
        errors=errors,
        minimum=0.0,
    )
    checks: tuple[tuple[str, Callable[..., Any], dict[str, Any]], ...] = (
        ("annual_contribution", _as_float, {"minimum": 0.0}),
        ("retirement_age", _as_int, {"minimum": 18, "maximum": 100}),
        ("birth_year", _as_int, {"minimum": 1940}),
        ("preservation_age", _as_int, {"minimum": 55, "maximum": 60}),
        ("salary", _as_float, {"minimum": 0.0}),
        ("ongoing_salary", _as_float, {"minimum": 0.0}),
    )
    for key, check, bounds in checks:
        _optional(value, key, check, path=path, errors=errors, **bounds)
    return dict(value)


def _validate_baseline_config(
    payload: dict[str, Any], *, summary: ValidationSummary
) -> dict[str, Any] | None:
    errors: list[str] = []
    section = payload.get("baseline")
    if not isinstance(section, dict):
        summary.errors.append("baseline: missing 'baseline' mapping")
        return None
    _validate_person(section.get("person1"), path="baseline.person1", errors=errors)
    _validate_person(section.get("person2"), path="baseline.person2", errors=errors)
    checks: tuple[tuple[str, Callable[..., Any], dict[str, Any]], ...] = (
        ("expected_return_mean", _as_float, {"minimum": -0.5, "maximum": 0.3}),
        ("expected_return_volatility", _as_float, {"minimum": 0.0, "maximum": 1.0}),
        ("inflation_rate", _as_float, {"minimum": -0.05, "maximum": 0.2}),
        ("safe_withdrawal_rate", _as_float, {"minimum": 0.001, "maximum": 0.1}),
        ("planning_age", _as_int, {"minimum": 60, "maximum": 120}),
        ("mortgage_balance", _as_float, {"minimum": 0.0}),
        ("mortgage_rate", _as_float, {"minimum": 0.0, "maximum": 0.25}),
        ("mortgage_years", _as_int, {"minimum": 1, "maximum": 40}),
        ("homeowner", _as_bool, {}),
    )
    for key, check, bounds in checks:
        _optional(section, key, check, path="baseline", errors=errors, **bounds)
    if not errors:
        baseline = _build(BaselineSettings.from_mapping, section, errors)
        if baseline is not None:
            if baseline.safe_withdrawal_rate > 0.05:
                summary.warnings.append(
                    f"baseline.safe_withdrawal_rate {baseline.safe_withdrawal_rate:.3f} "
                    "is above 5%"
                )
            if baseline.expected_return_volatility > 0.3:
                summary.warnings.append("baseline.expected_return_volatility is unusually high")
    summary.errors.extend(errors)
    return dict(section) if not errors else None


def _validate_lump_sums(value: Any, *, path: str, errors: list[str]) -> None:
    if value is None:
        return
    if not isinstance(value, list):
        errors.append(f"{path} must be a list")
        return
    allocations = _enum_values(AllocationTarget)
    for idx, entry in enumerate(value):
        entry_path = f"{path}[{idx}]"
        if not isinstance(entry, dict):
            errors.append(f"{entry_path} must be a mapping")
            continue
        _as_float(entry.get("amount"), path=f"{entry_path}.amount", errors=errors)
        _as_date(entry.get("event_date"), path=f"{entry_path}.event_date", errors=errors)
        _optional(
            entry, "allocation", _as_choice, path=entry_path, errors=errors, choices=allocations
        )
        for key in ("person1_split", "person2_split"):
            _optional(
                entry, key, _as_float, path=entry_path, errors=errors, minimum=0.0, maximum=100.0
            )


def _validate_scenario_config(
    payload: dict[str, Any], *, summary: ValidationSummary
) -> dict[str, Any] | None:
    errors: list[str] = []
    section = payload.get("scenario")
    if not isinstance(section, dict):
        summary.errors.append("scenario: missing 'scenario' mapping")
        return None
    _as_string(section.get("name"), path="scenario.name", errors=errors)
    _as_choice(
        section.get("mode"),
        path="scenario.mode",
        errors=errors,
        choices=_enum_values(ScenarioMode),
    )
    checks: tuple[tuple[str, Callable[..., Any], dict[str, Any]], ...] = (
        ("monte_carlo_runs", _as_int, {"minimum": 1, "maximum": 100_000}),
        ("target_annual_income", _as_float, {"minimum": 0.0}),
        ("target_retirement_date", _as_date, {}),
        ("withdrawal_policy", _as_choice, {"choices": _enum_values(WithdrawalPolicy)}),
        ("withdrawal_rule", _as_choice, {"choices": _RULE_NAMES}),
        ("seed", _as_int, {"minimum": 0}),
        ("include_age_pension", _as_bool, {}),
    )
    for key, check, bounds in checks:
        _optional(section, key, check, path="scenario", errors=errors, **bounds)
    _validate_lump_sums(
        section.get("lump_sum_events"), path="scenario.lump_sum_events", errors=errors
    )
    if not errors:
        scenario = _build(Scenario.from_mapping, section, errors)
        if scenario is not None and scenario.monte_carlo_runs < 100:
            summary.warnings.append(
                f"scenario.monte_carlo_runs={scenario.monte_carlo_runs}; percentiles will be noisy"
            )
    summary.errors.extend(errors)
    return dict(section) if not errors else None


def _validate_fire_config(
    payload: dict[str, Any], *, summary: ValidationSummary
) -> dict[str, Any] | None:
    errors: list[str] = []
    section = payload.get("fire")
    if not isinstance(section, dict):
        summary.errors.append("fire: missing 'fire' mapping")
        return None
    _validate_person(section.get("person1"), path="fire.person1", errors=errors)
    _validate_person(section.get("person2"), path="fire.person2", errors=errors)
    _optional(
        section,
        "strategy",
        _as_choice,
        path="fire",
        errors=errors,
        choices=_enum_values(HouseholdStrategy),
    )
    _as_float(
        section.get("household_expenses"),
        path="fire.household_expenses",
        errors=errors,
        minimum=0.0,
    )
    sources = section.get("income_sources")
    if sources is not None and not (
        isinstance(sources, list) and all(isinstance(item, dict) for item in sources)
    ):
        errors.append("fire.income_sources must be a list of mappings")
    if not errors:
        settings = _build(Pre60FireSettings.from_mapping, section, errors)
        if settings is not None:
            errors.extend(f"fire.{message}" for message in settings.validate())
    summary.errors.extend(errors)
    return dict(section) if not errors else None


def _validate_spend_zero_config(
    payload: dict[str, Any], *, summary: ValidationSummary
) -> dict[str, Any] | None:
    errors: list[str] = []
    section = payload.get("spend_zero")
    if not isinstance(section, dict):
        summary.errors.append("spend_zero: missing 'spend_zero' mapping")
        return None
    _as_float(
        section.get("person1_balance"),
        path="spend_zero.person1_balance",
        errors=errors,
        minimum=0.0,
    )
    _optional(section, "person2_balance", _as_float, path="spend_zero", errors=errors, minimum=0.0)
    _optional(
        section,
        "withdrawal_order",
        _as_choice,
        path="spend_zero",
        errors=errors,
        choices=_enum_values(WithdrawalOrder),
    )
    if not errors:
        settings = _build(SuperSpendSettings.from_mapping, section, errors)
        if settings is not None:
            errors.extend(f"spend_zero.{message}" for message in settings.validate())
            if settings.withdrawal_order is WithdrawalOrder.OPTIMIZE_TAX:
                summary.warnings.append(
                    "spend_zero.withdrawal_order optimize_tax falls back to sequential"
                )
    summary.errors.extend(errors)
    return dict(section) if not errors else None


def _load_payload(
    label: str,
    path: Path,
    *,
    summary: ValidationSummary,
) -> dict[str, Any] | None:
    """Load YAML payload handling missing files and empty documents."""

    if not path.exists():
        summary.errors.append(f"{label}: missing file at {path}")
        return None
    payload = read_yaml(path)
    if payload is None:
        summary.errors.append(f"{label}: file at {path} is empty")
        return None
    if not isinstance(payload, dict):
        summary.errors.append(f"{label}: expected a mapping at {path}")
        return None
    return payload


def _check_target_horizon(summary: ValidationSummary, *, as_of_year: int) -> None:
    baseline = summary.configs.get("baseline")
    scenario = summary.configs.get("scenario")
    if not baseline or not scenario:
        return
    if scenario.get("mode") != ScenarioMode.TARGET_DATE.value:
        return
    target = _as_date(
        scenario.get("target_retirement_date"),
        path="scenario.target_retirement_date",
        errors=summary.errors,
    )
    if target is None:
        return
    ages = [baseline["person1"]["current_age"], baseline["person2"]["current_age"]]
    horizon = int(baseline.get("planning_age", 95)) - min(ages)
    if target.year < as_of_year:
        summary.errors.append("scenario.target_retirement_date cannot be in the past")
    elif target.year - as_of_year >= horizon:
        summary.errors.append(
            "scenario.target_retirement_date lies beyond the baseline planning horizon"
        )


def validate_configs(
    *,
    baseline_path: Path | str = Path("configs") / "baseline.yml",
    scenario_path: Path | str = Path("configs") / "scenario.yml",
    fire_path: Path | str | None = Path("configs") / "fire.yml",
    spend_zero_path: Path | str | None = Path("configs") / "spend_zero.yml",
    as_of_year: int | None = None,
) -> ValidationSummary:
    """Validate superplan YAML configuration files and return diagnostics.

    ``fire_path`` and ``spend_zero_path`` may be ``None`` to skip those
    documents. ``as_of_year`` anchors the target-date checks and defaults to
    the current year.
    """

    summary = ValidationSummary()
    sections = (
        ("baseline", baseline_path, _validate_baseline_config),
        ("scenario", scenario_path, _validate_scenario_config),
        ("fire", fire_path, _validate_fire_config),
        ("spend_zero", spend_zero_path, _validate_spend_zero_config),
    )
    for label, path, validator in sections:
        if path is None:
            continue
        payload = _load_payload(label, Path(path), summary=summary)
        if payload is None:
            continue
        config = validator(payload, summary=summary)
        if config is not None:
            summary.configs[label] = config

    year0 = as_of_year if as_of_year is not None else date.today().year
    _check_target_horizon(summary, as_of_year=year0)
    return summary
