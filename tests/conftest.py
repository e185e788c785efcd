"""Configurazione Pytest condivisa per superplan."""

from __future__ import annotations

import os
import sys
from collections.abc import Iterable
from pathlib import Path

import pytest


def _insert_repo_root() -> None:
    """Assicura che la root del repository sia sul ``sys.path`` per gli import."""

    repo_root = Path(__file__).resolve().parents[1]
    if str(repo_root) not in sys.path:
        sys.path.insert(0, str(repo_root))


_insert_repo_root()

REPO_ROOT = Path(__file__).resolve().parents[1]


def pytest_report_header(config: pytest.Config) -> Iterable[str]:  # pragma: no cover - pytest hook
    """Mostra contesto diagnostico per le esecuzioni di test."""

    root = Path.cwd()
    log_level = os.environ.get("SUPERPLAN_LOG_LEVEL", "INFO")
    return [f"superplan repo: {root}", f"SUPERPLAN_LOG_LEVEL={log_level}"]


@pytest.fixture(autouse=True)
def _set_verbose_logging(monkeypatch: pytest.MonkeyPatch) -> None:
    """Imposta il livello di log a INFO e disattiva i log JSON di audit."""

    monkeypatch.setenv("SUPERPLAN_LOG_LEVEL", "INFO")
    monkeypatch.delenv("SUPERPLAN_JSON_LOGS", raising=False)


@pytest.fixture()
def configs_dir() -> Path:
    """Cartella con le configurazioni YAML di esempio."""

    return REPO_ROOT / "configs"


def pytest_configure(config: pytest.Config) -> None:
    """Registra il marker ``slow`` usato dai controlli statistici Monte Carlo."""

    config.addinivalue_line(
        "markers",
        "slow: test statistici che eseguono molti batch Monte Carlo.",
    )
