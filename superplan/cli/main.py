"""Command-line interface orchestrating the superplan engines."""

from __future__ import annotations

import argparse
from dataclasses import replace
from pathlib import Path

import yaml

from superplan.engine.bridge import Pre60FireSettings, project_fire
from superplan.engine.logging import configure_cli_logging, record_metrics
from superplan.engine.montecarlo import (
    ScenarioMode,
    baseline_hash,
    load_baseline,
    load_scenario,
    simulate,
    write_simulation_artifacts,
)
from superplan.engine.spendzero import SuperSpendSettings, simulate_spend_to_zero
from superplan.engine.utils.io import ensure_dir, read_mapping, safe_path_segment
from superplan.engine.utils.rand import load_seeds, seed_for_stream
from superplan.engine.validate import validate_configs
from superplan.engine.withdrawal import (
    compare_withdrawal_rules,
    format_rate,
    generate_market_scenarios,
)

DESCRIPTION = "superplan retirement funding simulator"


def _add_simulate_subparser(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> None:
    simulate_cmd = subparsers.add_parser(
        "simulate", help="Run the household Monte Carlo projection"
    )
    simulate_cmd.add_argument(
        "--baseline",
        type=Path,
        default=Path("configs") / "baseline.yml",
        help="Path to baseline.yml",
    )
    simulate_cmd.add_argument(
        "--scenario",
        type=Path,
        default=Path("configs") / "scenario.yml",
        help="Path to scenario.yml",
    )
    simulate_cmd.add_argument("--runs", type=int, help="Override the number of trials")
    simulate_cmd.add_argument("--seed", type=int, help="Override the random seed")
    simulate_cmd.add_argument(
        "--seeds-config",
        type=Path,
        help="Optional seeds.yml providing the monte_carlo stream seed",
    )
    simulate_cmd.add_argument("--as-of-year", type=int, help="Calendar year of year zero")
    simulate_cmd.add_argument(
        "--workers", type=int, default=1, help="Worker processes used for the trials"
    )
    simulate_cmd.add_argument(
        "--output-dir",
        type=Path,
        help="Optional directory for simulation artefacts",
    )


def _add_bridge_subparser(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> None:
    bridge = subparsers.add_parser("bridge", help="Size the pre-preservation bridge lump sum")
    bridge.add_argument(
        "--config",
        type=Path,
        default=Path("configs") / "fire.yml",
        help="Path to fire.yml",
    )
    bridge.add_argument("--as-of-year", type=int, help="Calendar year of the projection start")


def _add_spend_zero_subparser(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> None:
    spend = subparsers.add_parser("spend-zero", help="Replay a spend-to-zero drawdown")
    spend.add_argument(
        "--config",
        type=Path,
        default=Path("configs") / "spend_zero.yml",
        help="Path to spend_zero.yml",
    )
    spend.add_argument("--as-of-year", type=int, help="Calendar year of the first drawdown")
    spend.add_argument(
        "--output-dir",
        type=Path,
        help="Optional directory for the yearly drawdown CSV",
    )


def _add_withdrawal_subparser(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> None:
    withdrawal = subparsers.add_parser(
        "withdrawal", help="Rank the dynamic withdrawal rules on a market scenario"
    )
    withdrawal.add_argument(
        "--initial-value", type=float, default=1_000_000.0, help="Portfolio value at retirement"
    )
    withdrawal.add_argument("--years", type=int, default=30, help="Simulated years")
    withdrawal.add_argument(
        "--market",
        choices=["optimistic", "expected", "pessimistic"],
        default="expected",
        help="Market scenario used for the comparison",
    )
    withdrawal.add_argument("--seed", type=int, help="Seed for the market scenarios")


def _add_validate_subparser(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> None:
    """Attach the validate command used for configuration checks."""

    validate = subparsers.add_parser("validate", help="Validate YAML configuration files")
    validate.add_argument(
        "--baseline",
        type=Path,
        default=Path("configs") / "baseline.yml",
        help="Path to baseline.yml configuration",
    )
    validate.add_argument(
        "--scenario",
        type=Path,
        default=Path("configs") / "scenario.yml",
        help="Path to scenario.yml configuration",
    )
    validate.add_argument(
        "--fire",
        type=Path,
        default=Path("configs") / "fire.yml",
        help="Path to fire.yml configuration",
    )
    validate.add_argument(
        "--spend-zero",
        type=Path,
        default=Path("configs") / "spend_zero.yml",
        help="Path to spend_zero.yml configuration",
    )
    validate.add_argument(
        "--verbose",
        action="store_true",
        help="Print the parsed configuration payloads on success",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="superplan", description=DESCRIPTION)
    parser.add_argument(
        "--json-logs",
        action=argparse.BooleanOptionalAction,
        default=False,
        help="Mirror logs to artifacts/logs/superplan.log in JSON format",
    )
    sub = parser.add_subparsers(dest="cmd", required=True)
    _add_validate_subparser(sub)
    _add_simulate_subparser(sub)
    _add_bridge_subparser(sub)
    _add_spend_zero_subparser(sub)
    _add_withdrawal_subparser(sub)
    return parser


def _format_year(value: int | None) -> str:
    return str(value) if value is not None else "never"


def _handle_simulate(args: argparse.Namespace) -> None:
    baseline = load_baseline(args.baseline)
    scenario = load_scenario(args.scenario)
    if args.runs is not None:
        scenario = replace(scenario, monte_carlo_runs=max(1, int(args.runs)))
    seed = args.seed
    if seed is None and scenario.seed is None and args.seeds_config is not None:
        seed = seed_for_stream("monte_carlo", seeds=load_seeds(args.seeds_config))
    try:
        result = simulate(
            baseline,
            scenario,
            seed=seed,
            as_of_year=args.as_of_year,
            workers=int(args.workers),
        )
    except ValueError as exc:
        print(f"[superplan] simulate error: {exc}")
        raise SystemExit(1) from exc
    artifacts = write_simulation_artifacts(result, output_dir=args.output_dir)
    record_metrics("simulate.success_rate", result.success_rate, {"scenario": result.scenario})
    if result.mode is ScenarioMode.TARGET_INCOME:
        headline = (
            f"median_year={_format_year(result.median_retirement_year)} "
            f"p10_year={_format_year(result.p10_retirement_year)} "
            f"p90_year={_format_year(result.p90_retirement_year)}"
        )
    else:
        headline = (
            f"median_income={result.median_income:,.0f} "
            f"p10_income={result.p10_income:,.0f} p90_income={result.p90_income:,.0f}"
        )
    print(
        f"[superplan] simulate scenario={result.scenario} runs={result.runs} seed={result.seed} "
        f"success={result.success_rate:.3f} {headline} "
        f"baseline={baseline_hash(baseline)[:12]} yearly={artifacts.yearly_csv}"
    )
    if result.mortgage_allocations:
        print(
            f"[superplan] mortgage prepaid={result.mortgage_allocations:,.0f} "
            f"interest_saved={result.mortgage_interest_saved:,.0f} "
            f"months_saved={result.mortgage_months_saved}"
        )


def _handle_bridge(args: argparse.Namespace) -> None:
    settings = Pre60FireSettings.from_mapping(read_mapping(args.config, section="fire"))
    try:
        projection = project_fire(settings, as_of_year=args.as_of_year)
    except ValueError as exc:
        print(f"[superplan] bridge error: {exc}")
        raise SystemExit(1) from exc
    status = "feasible" if projection.is_feasible else "shortfall"
    print(
        f"[superplan] bridge strategy={projection.strategy.value} status={status} "
        f"years={projection.total_bridge_years} gap={projection.annual_household_gap:,.0f} "
        f"required={projection.lump_sum_required:,.0f} "
        f"available={projection.effective_lump_sum:,.0f} "
        f"shortfall={projection.lump_sum_shortfall:,.0f}"
    )
    if projection.bridge_income is not None:
        plan = projection.bridge_income
        print(
            f"[superplan] bridge income gross={plan.total_gross:,.0f} tax={plan.total_tax:,.0f} "
            f"net={plan.total_net:,.0f} sustainability={plan.sustainability_score:.0f}"
        )
    print(
        f"[superplan] bridge fire_number={projection.fire_number:,.0f} "
        f"years_to_fire_number={projection.years_to_fire_number:g}"
    )
    for note in projection.recommendations:
        print(f"[superplan] bridge recommendation: {note}")


def _handle_spend_zero(args: argparse.Namespace) -> None:
    settings = SuperSpendSettings.from_mapping(read_mapping(args.config, section="spend_zero"))
    try:
        projection = simulate_spend_to_zero(settings, as_of_year=args.as_of_year)
    except ValueError as exc:
        print(f"[superplan] spend-zero error: {exc}")
        raise SystemExit(1) from exc
    if args.output_dir is not None:
        root = ensure_dir(Path(args.output_dir) / "spendzero")
        label = safe_path_segment(f"{settings.person1_name}_{settings.person2_name}")
        projection.to_frame().to_csv(root / f"spend_zero_{label}.csv")
    print(
        f"[superplan] spend-zero withdrawal={projection.annual_withdrawal:,.0f} "
        f"final_year={projection.final_year} years_funded={projection.years_funded} "
        f"exhausted={projection.exhausted} "
        f"success={projection.risk_analysis.success_probability}"
    )
    print(f"[superplan] spend-zero strategy: {projection.strategy_description}")


def _handle_withdrawal(args: argparse.Namespace) -> None:
    scenarios = generate_market_scenarios(max(0, int(args.years)), seed=args.seed)
    outcomes = compare_withdrawal_rules(float(args.initial_value), scenarios[args.market])
    for rank, outcome in enumerate(outcomes, start=1):
        print(
            f"[superplan] withdrawal rank={rank} rule={outcome.rule.name!r} "
            f"base={format_rate(outcome.rule.base_rate)} "
            f"score={outcome.sustainability_score} success={outcome.success_probability} "
            f"final={outcome.final_value:,.0f} total={outcome.total_withdrawals:,.0f}"
        )


def _handle_validate(args: argparse.Namespace) -> None:
    """Validate configuration files and report diagnostics to stdout."""

    summary = validate_configs(
        baseline_path=args.baseline,
        scenario_path=args.scenario,
        fire_path=args.fire,
        spend_zero_path=args.spend_zero,
    )
    if args.verbose and summary.configs:
        for label, payload in summary.configs.items():
            rendered = yaml.safe_dump(payload, sort_keys=True)
            print(f"[superplan] validate {label}\n{rendered}", end="")
    for warning in summary.warnings:
        print(f"[superplan] validate warning: {warning}")
    if summary.errors:
        for error in summary.errors:
            print(f"[superplan] validate error: {error}")
        raise SystemExit(1)
    print("[superplan] validate status=ok")


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_cli_logging(json_logs=bool(args.json_logs))
    if args.cmd == "simulate":
        _handle_simulate(args)
    elif args.cmd == "bridge":
        _handle_bridge(args)
    elif args.cmd == "spend-zero":
        _handle_spend_zero(args)
    elif args.cmd == "withdrawal":
        _handle_withdrawal(args)
    elif args.cmd == "validate":
        _handle_validate(args)
    else:
        print(f"[superplan] command = {args.cmd}")


if __name__ == "__main__":
    main()
