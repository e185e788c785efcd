"""Logging strutturato e metriche per il motore superplan."""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from pathlib import Path
from typing import Final

from superplan.engine.infra.paths import DEFAULT_LOG_ROOT

CONSOLE_FORMAT: Final[str] = "[%(levelname)s] %(name)s: %(message)s"
DEFAULT_LEVEL: Final[str] = "INFO"
AUDIT_DIR: Final[Path] = DEFAULT_LOG_ROOT
LOG_PATH: Final[Path] = AUDIT_DIR / "superplan.log"
METRICS_PATH: Final[Path] = AUDIT_DIR / "metrics.jsonl"
JSON_ENV_FLAG: Final[str] = "SUPERPLAN_JSON_LOGS"
LEVEL_ENV_FLAG: Final[str] = "SUPERPLAN_LOG_LEVEL"
CONSOLE_MARKER: Final[str] = "_superplan_console"
JSON_MARKER: Final[str] = "_superplan_json"

# Campi opzionali passati via ``extra`` dai motori di simulazione.
NUMERIC_FIELDS: Final[tuple[str, ...]] = ("process_time_ms", "trials", "seed", "success_rate")
TEXT_FIELDS: Final[tuple[str, ...]] = ("scenario", "strategy")


class JsonAuditFormatter(logging.Formatter):
    """Serializza un record in una riga JSON con i campi della simulazione.

    I campi numerici assenti o non convertibili diventano ``null``; quelli
    testuali vengono riportati così come sono.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "source": record.name,
            "message": record.getMessage(),
        }
        for field in NUMERIC_FIELDS:
            payload[field] = _coerce_number(getattr(record, field, None))
        for field in TEXT_FIELDS:
            value = getattr(record, field, None)
            payload[field] = None if value is None else str(value)
        return json.dumps(payload, ensure_ascii=False)


def _coerce_number(value: object) -> float | None:
    """Converte valori arbitrari in float quando possibile."""

    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _ensure_audit_dir() -> None:
    """Crea la cartella dei log solo quando serve (uso da CLI)."""

    AUDIT_DIR.mkdir(parents=True, exist_ok=True)


def _resolve_level(level: str | int | None) -> int:
    """Determina il livello di log usando preferenze CLI o d'ambiente."""

    env_level = os.environ.get(LEVEL_ENV_FLAG)
    if env_level:
        candidate = env_level.strip().upper()
    elif isinstance(level, str):
        candidate = level.strip().upper()
    elif isinstance(level, int):
        return int(level)
    else:
        candidate = DEFAULT_LEVEL
    resolved = logging.getLevelName(candidate)
    return int(resolved) if isinstance(resolved, int) else logging.INFO


def _json_logging_enabled(explicit: bool) -> bool:
    """Restituisce ``True`` quando il logging JSON è richiesto da flag o ambiente."""

    if explicit:
        return True
    value = os.environ.get(JSON_ENV_FLAG)
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _find_handler(logger: logging.Logger, marker: str) -> logging.Handler | None:
    for handler in logger.handlers:
        if getattr(handler, marker, False):
            return handler
    return None


def _attach_handler(
    logger: logging.Logger,
    marker: str,
    level: int,
    factory: Callable[[], logging.Handler],
) -> None:
    """Aggiunge l'handler marcato con ``marker`` una sola volta per logger.

    Se l'handler esiste già viene solo riallineato il livello, così che
    chiamate ripetute a :func:`setup_logger` non duplichino l'output.
    """

    existing = _find_handler(logger, marker)
    if existing is not None:
        existing.setLevel(level)
        return
    handler = factory()
    handler.setLevel(level)
    setattr(handler, marker, True)
    logger.addHandler(handler)


def _console_handler() -> logging.Handler:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    return handler


def _json_file_handler() -> logging.Handler:
    _ensure_audit_dir()
    handler = logging.FileHandler(LOG_PATH, encoding="utf-8")
    handler.setFormatter(JsonAuditFormatter())
    return handler


def setup_logger(
    name: str,
    json_format: bool = False,
    level: str | int | None = None,
) -> logging.Logger:
    """Configura e restituisce un logger strutturato per i moduli superplan."""

    resolved_level = _resolve_level(level)
    logger = logging.getLogger(name)
    logger.setLevel(resolved_level)
    # La propagazione resta attiva per gli handler di cattura (``pytest caplog``).
    logger.propagate = True
    _attach_handler(logger, CONSOLE_MARKER, resolved_level, _console_handler)
    if _json_logging_enabled(json_format):
        _attach_handler(logger, JSON_MARKER, resolved_level, _json_file_handler)
    return logger


def record_metrics(metric_name: str, value: float, tags: Mapping[str, str] | None = None) -> None:
    """Aggiunge un'osservazione di metrica al file JSONL delle metriche."""

    _ensure_audit_dir()
    payload = {
        "timestamp": datetime.now(tz=UTC).isoformat(),
        "metric": metric_name,
        "value": float(value),
        "tags": dict(tags or {}),
    }
    with METRICS_PATH.open("a", encoding="utf-8") as handle:
        handle.write(json.dumps(payload, ensure_ascii=False) + "\n")


def configure_cli_logging(json_logs: bool, level: str | int | None = None) -> None:
    """Riconfigura i logger superplan esistenti per l'esecuzione via CLI.

    Solo i logger dei moduli ricevono handler: il logger di pacchetto
    ``superplan`` resta senza handler per non duplicare le righe propagate.
    """

    if json_logs:
        os.environ[JSON_ENV_FLAG] = "1"
    else:
        os.environ.pop(JSON_ENV_FLAG, None)
    for name, logger in logging.Logger.manager.loggerDict.items():
        if not isinstance(logger, logging.Logger):
            continue
        if not name.startswith("superplan."):
            continue
        setup_logger(name, json_format=json_logs, level=level)


__all__ = ["setup_logger", "record_metrics", "configure_cli_logging", "JsonAuditFormatter"]
