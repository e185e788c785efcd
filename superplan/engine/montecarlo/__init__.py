"""Monte Carlo orchestrator for household retirement projections."""

from .mc import (
    DEPLETION_THRESHOLD,
    MONTE_CARLO_STREAM,
    SimulationArtifacts,
    TrialContext,
    TrialOutcome,
    baseline_hash,
    build_trial_context,
    load_baseline,
    load_scenario,
    mortgage_prepayment_effect,
    percentile_index,
    run_trial,
    sample_returns,
    simulate,
    sorted_percentile,
    validate_simulation_inputs,
    write_simulation_artifacts,
)
from .models import (
    AllocationTarget,
    BaselineSettings,
    DistributionData,
    LumpSumEvent,
    PercentileBand,
    Scenario,
    ScenarioMode,
    SimulationResult,
    WithdrawalPolicy,
    YearlyProjection,
)

__all__ = [
    "DEPLETION_THRESHOLD",
    "MONTE_CARLO_STREAM",
    "AllocationTarget",
    "BaselineSettings",
    "DistributionData",
    "LumpSumEvent",
    "PercentileBand",
    "Scenario",
    "ScenarioMode",
    "SimulationArtifacts",
    "SimulationResult",
    "TrialContext",
    "TrialOutcome",
    "WithdrawalPolicy",
    "YearlyProjection",
    "baseline_hash",
    "build_trial_context",
    "load_baseline",
    "load_scenario",
    "mortgage_prepayment_effect",
    "percentile_index",
    "run_trial",
    "sample_returns",
    "simulate",
    "sorted_percentile",
    "validate_simulation_inputs",
    "write_simulation_artifacts",
]
