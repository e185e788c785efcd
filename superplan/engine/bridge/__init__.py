"""Bridge-funding feasibility calculator, windfall events and bridge income."""

from .events import (
    TAX_TREATMENT_RATES,
    TaxImpact,
    TaxTreatment,
    WindfallEvent,
    WindfallSource,
    describe_source,
    describe_tax_treatment,
    events_by_year,
    events_in_window,
    expected_value,
    guaranteed_value,
    net_expected_value,
    tax_impact,
    timeline_summary,
    validate_windfall_event,
)
from .fire import (
    FireMilestone,
    FireProjection,
    HouseholdStrategy,
    Pre60FireSettings,
    SuperAtPreservation,
    balance_at_preservation,
    bridge_lump_sum,
    bridge_requirement,
    project_fire,
)
from .income import (
    BridgeIncomePlan,
    BridgeIncomeSource,
    DeclinePattern,
    IncomeType,
    IncomeYear,
    describe_decline_pattern,
    describe_income_type,
    income_in_year,
    plan_bridge_income,
    tax_on_income,
    validate_income_source,
)

__all__ = [
    "TAX_TREATMENT_RATES",
    "BridgeIncomePlan",
    "BridgeIncomeSource",
    "DeclinePattern",
    "IncomeType",
    "IncomeYear",
    "FireMilestone",
    "FireProjection",
    "HouseholdStrategy",
    "Pre60FireSettings",
    "SuperAtPreservation",
    "TaxImpact",
    "TaxTreatment",
    "WindfallEvent",
    "WindfallSource",
    "balance_at_preservation",
    "bridge_lump_sum",
    "bridge_requirement",
    "describe_decline_pattern",
    "describe_income_type",
    "describe_source",
    "describe_tax_treatment",
    "events_by_year",
    "events_in_window",
    "expected_value",
    "guaranteed_value",
    "income_in_year",
    "net_expected_value",
    "plan_bridge_income",
    "project_fire",
    "tax_impact",
    "tax_on_income",
    "timeline_summary",
    "validate_income_source",
    "validate_windfall_event",
]
