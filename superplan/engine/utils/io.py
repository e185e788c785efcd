"""Utility di I/O per configurazioni YAML e artefatti della CLI superplan.

Il motore di simulazione non tocca mai il disco: questi helper vengono usati
solo dalla CLI per leggere i file di configurazione e serializzare i risultati
in formato YAML/JSON, oltre a calcolare hash di contenuto per le cache dei
chiamanti.
"""

from __future__ import annotations

import hashlib
import json
import re
from collections.abc import Mapping
from pathlib import Path

import yaml

# Cartella principale dove la CLI salva gli artefatti delle simulazioni.
ARTIFACTS_ROOT = Path("artifacts")

__all__ = [
    "ARTIFACTS_ROOT",
    "ensure_dir",
    "safe_path_segment",
    "artifact_path",
    "read_yaml",
    "read_mapping",
    "write_yaml",
    "write_json",
    "canonical_json",
    "content_hash",
]


# Espressione regolare che intercetta caratteri vietati nei nomi di file.
INVALID_FS_CHARS = r'[<>:"/\\|?*\x00-\x1F]'


def ensure_dir(path: Path | str) -> Path:
    """Garantisce l'esistenza del percorso e lo restituisce come :class:`Path`."""

    path_obj = Path(path)
    path_obj.mkdir(parents=True, exist_ok=True)
    return path_obj


def safe_path_segment(name: str) -> str:
    """Restituisce ``name`` ripulito dai caratteri non ammessi dal filesystem."""

    safe = re.sub(INVALID_FS_CHARS, "-", str(name))
    return safe.rstrip(" .")


def artifact_path(
    *parts: str,
    create: bool = True,
    root: Path | str | None = None,
) -> Path:
    """Costruisce un percorso all'interno della directory degli artefatti."""

    base = Path(root) if root is not None else ARTIFACTS_ROOT
    target = base.joinpath(*parts)
    if create:
        target.parent.mkdir(parents=True, exist_ok=True)
    return target


def read_yaml(path: Path | str) -> object:
    """Legge un file YAML e restituisce l'oggetto Python corrispondente."""

    with Path(path).open("r", encoding="utf-8") as handle:
        return yaml.safe_load(handle)


def read_mapping(path: Path | str, *, section: str | None = None) -> Mapping[str, object]:
    """Legge un file YAML garantendo che il contenuto (o ``section``) sia una mappa.

    Raises:
      ValueError: Se il file o la sezione richiesta non contengono una mappa.
    """

    data = read_yaml(path)
    if section is not None and isinstance(data, Mapping) and section in data:
        data = data[section]
    if not isinstance(data, Mapping):
        label = f"{path}:{section}" if section else str(path)
        raise ValueError(f"{label} must contain a mapping")
    return data


def write_yaml(data: object, path: Path | str) -> Path:
    """Scrive ``data`` nel percorso indicato in formato YAML leggibile."""

    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open("w", encoding="utf-8") as handle:
        # ``sort_keys`` garantisce diff deterministici durante i test.
        yaml.safe_dump(data, handle, sort_keys=True)
    return target


def write_json(data: object, path: Path | str, *, indent: int = 2) -> Path:
    """Serializza ``data`` in JSON garantendo un'ultima riga con newline."""

    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open("w", encoding="utf-8") as handle:
        json.dump(data, handle, indent=indent, sort_keys=True, default=str)
        handle.write("\n")
    return target


def canonical_json(data: object) -> str:
    """Restituisce una forma JSON canonica (chiavi ordinate, separatori compatti)."""

    return json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)


def content_hash(data: object) -> str:
    """Calcola l'hash SHA-256 della forma canonica di ``data``."""

    digest = hashlib.sha256()
    digest.update(canonical_json(data).encode("utf-8"))
    return digest.hexdigest()
