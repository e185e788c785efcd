"""Gestione centralizzata dei seed casuali per le simulazioni superplan.

Ogni chiamata di simulazione crea un solo generatore NumPy. Gli stream nominati
(``monte_carlo``, ``market_scenarios``) permettono di avere seed distinti ma
riproducibili senza leggere file dal motore: il file ``seeds.yml`` viene
caricato solo dalla CLI e passato esplicitamente tramite ``seeds``.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path

import numpy as np
import yaml

DEFAULT_STREAM = "global"
DEFAULT_SEED = 42
DEFAULT_SEED_PATH = Path("configs") / "seeds.yml"
DEFAULT_STREAM_SEEDS: dict[str, int] = {
    DEFAULT_STREAM: DEFAULT_SEED,
    "monte_carlo": 20_240_601,
    "market_scenarios": 7_301,
}

__all__ = [
    "DEFAULT_SEED",
    "DEFAULT_SEED_PATH",
    "DEFAULT_STREAM",
    "DEFAULT_STREAM_SEEDS",
    "load_seeds",
    "save_seeds",
    "seed_for_stream",
    "generator_from_seed",
    "spawn_child_rng",
    "spawn_child_seeds",
]


def load_seeds(seed_path: Path | str = DEFAULT_SEED_PATH) -> dict[str, int]:
    """Carica il dizionario dei seed dal percorso indicato.

    Un file assente restituisce i seed predefiniti, così che la CLI resti
    deterministica anche prima di aver salvato una configurazione.
    """

    path = Path(seed_path)
    if not path.exists():
        return dict(DEFAULT_STREAM_SEEDS)

    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}

    if isinstance(data, dict) and "seeds" in data and isinstance(data["seeds"], dict):
        seeds_section = data["seeds"]
    elif isinstance(data, dict):
        seeds_section = data
    else:
        raise TypeError("Seed file must contain a mapping of stream -> seed")

    seeds: dict[str, int] = {}
    for key, value in seeds_section.items():
        if value is None:
            continue
        seeds[str(key)] = int(value)

    for stream, seed in DEFAULT_STREAM_SEEDS.items():
        seeds.setdefault(stream, seed)
    return seeds


def save_seeds(
    seeds: Mapping[str, int],
    seed_path: Path | str = DEFAULT_SEED_PATH,
) -> Path:
    """Salva su disco una mappatura ``stream -> seed`` normalizzata."""

    path = Path(seed_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = {"seeds": {str(k): int(v) for k, v in seeds.items()}}
    with path.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(payload, handle, sort_keys=True)
    return path


def seed_for_stream(
    stream: str = DEFAULT_STREAM,
    *,
    seeds: Mapping[str, int] | None = None,
) -> int:
    """Ricava il seed per ``stream`` usando la mappatura fornita o i default in memoria."""

    seeds_dict = dict(DEFAULT_STREAM_SEEDS)
    if seeds is not None:
        seeds_dict.update({str(k): int(v) for k, v in seeds.items()})
    return int(seeds_dict.get(stream, seeds_dict[DEFAULT_STREAM]))


def generator_from_seed(
    seed: int | np.random.Generator | None = None,
    *,
    stream: str = DEFAULT_STREAM,
    seeds: Mapping[str, int] | None = None,
) -> np.random.Generator:
    """Restituisce un generatore NumPy coerente con lo stream richiesto.

    Un :class:`numpy.random.Generator` esistente viene restituito invariato.
    """

    if isinstance(seed, np.random.Generator):
        return seed
    if seed is not None:
        resolved_seed = seed
    else:
        resolved_seed = seed_for_stream(stream, seeds=seeds)
    return np.random.default_rng(int(resolved_seed))


def spawn_child_rng(
    parent: np.random.Generator,
    *,
    jumps: int = 1,
) -> np.random.Generator:
    """Genera un RNG figlio deterministico eseguendo salti controllati."""

    if jumps < 1:
        raise ValueError("jumps must be >= 1")

    jumped = parent.bit_generator.jumped(jumps)
    return np.random.Generator(jumped)


def spawn_child_seeds(seed: int, count: int) -> list[np.random.SeedSequence]:
    """Deriva ``count`` sequenze indipendenti da un unico seed radice."""

    if count < 0:
        raise ValueError("count must be >= 0")
    return np.random.SeedSequence(int(seed)).spawn(count)
