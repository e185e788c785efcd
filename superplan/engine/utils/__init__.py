"""Utility helpers for superplan."""

from superplan.engine.logging import configure_cli_logging, record_metrics, setup_logger

from .io import (
    ARTIFACTS_ROOT,
    artifact_path,
    canonical_json,
    content_hash,
    ensure_dir,
    read_mapping,
    read_yaml,
    safe_path_segment,
    write_json,
    write_yaml,
)
from .rand import (
    DEFAULT_SEED,
    DEFAULT_SEED_PATH,
    DEFAULT_STREAM,
    DEFAULT_STREAM_SEEDS,
    generator_from_seed,
    load_seeds,
    save_seeds,
    seed_for_stream,
    spawn_child_rng,
    spawn_child_seeds,
)

__all__ = [
    "ARTIFACTS_ROOT",
    "artifact_path",
    "canonical_json",
    "content_hash",
    "ensure_dir",
    "read_mapping",
    "read_yaml",
    "safe_path_segment",
    "write_json",
    "write_yaml",
    "configure_cli_logging",
    "record_metrics",
    "setup_logger",
    "DEFAULT_SEED",
    "DEFAULT_SEED_PATH",
    "DEFAULT_STREAM",
    "DEFAULT_STREAM_SEEDS",
    "generator_from_seed",
    "load_seeds",
    "save_seeds",
    "seed_for_stream",
    "spawn_child_rng",
    "spawn_child_seeds",
]
