"""Namespace principale del motore superplan."""

from __future__ import annotations

from . import (
    annuity,
    bridge,
    household,
    infra,
    montecarlo,
    rules,
    spendzero,
    withdrawal,
)

__all__ = [
    "annuity",
    "bridge",
    "household",
    "infra",
    "montecarlo",
    "rules",
    "spendzero",
    "withdrawal",
]
