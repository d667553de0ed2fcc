"""
Configuration Loader (``closing_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into the frozen dataclasses
of ``closing_config.schema``.  Runtime callers go through
``closing_config.get_active_config()``; the parse functions are exposed for
tests and tooling.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* Structural problems raise ``ConfigurationError`` naming the source file.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.
"""

from __future__ import annotations

import hashlib
import json
import re
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from closing_config.schema import ClosingConfig, CurrencyRule, DraftSourceDef
from closing_kernel.exceptions import ConfigurationError

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_CADENCES = ("monthly", "quarterly")
_KINDS = ("journal", "table")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        ConfigurationError: if the file is not valid YAML or not a mapping.
    """
    with open(path) as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(str(path), f"invalid YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(str(path), "top level must be a mapping")
    return data


def parse_decimal(value: Any, source: str, key: str) -> Decimal:
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ConfigurationError(source, f"{key} is not a number: {value!r}") from exc


def parse_currency_rule(code: str, data: dict[str, Any] | None, source: str) -> CurrencyRule:
    data = data or {}
    places = int(data.get("decimal_places", 2))
    if places < 0:
        raise ConfigurationError(source, f"{code}.decimal_places must be >= 0")
    tolerance = None
    if data.get("balance_tolerance") is not None:
        tolerance = parse_decimal(data["balance_tolerance"], source, f"{code}.balance_tolerance")
        if tolerance < 0:
            raise ConfigurationError(source, f"{code}.balance_tolerance must be >= 0")
    return CurrencyRule(code=code, decimal_places=places, balance_tolerance=tolerance)


def parse_draft_source(data: dict[str, Any], source: str) -> DraftSourceDef:
    """
    Parse a ``DraftSourceDef``.

    Table and column names are interpolated into SQL identifiers, so they
    must be plain identifiers.
    """
    if "category" not in data:
        raise ConfigurationError(source, "draft source without category")
    kind = data.get("kind", "table")
    if kind not in _KINDS:
        raise ConfigurationError(source, f"unknown draft source kind {kind!r}")

    table = data.get("table")
    if kind == "table":
        if not table:
            raise ConfigurationError(source, f"draft source {data['category']!r} needs a table")
        for name in (table, data.get("date_column", "transaction_date"), data.get("status_column", "status")):
            if not _IDENTIFIER.match(str(name)):
                raise ConfigurationError(source, f"invalid SQL identifier {name!r}")

    statuses = data.get("draft_statuses", ["DRAFT"])
    if isinstance(statuses, str):
        statuses = [statuses]

    return DraftSourceDef(
        category=data["category"],
        kind=kind,
        table=table,
        date_column=data.get("date_column", "transaction_date"),
        status_column=data.get("status_column", "status"),
        draft_statuses=tuple(str(s) for s in statuses),
        description=data.get("description", ""),
    )


def parse_config(data: dict[str, Any], source: str = "<memory>") -> ClosingConfig:
    """
    Parse a ``ClosingConfig`` from a dict.

    Raises:
        ConfigurationError: on any structural or value error.
    """
    base_currency = data.get("base_currency")
    if not base_currency:
        raise ConfigurationError(source, "base_currency is required")

    currencies_data = data.get("currencies") or {}
    if not isinstance(currencies_data, dict):
        raise ConfigurationError(source, "currencies must be a mapping")
    currencies = tuple(
        parse_currency_rule(code, rule, source)
        for code, rule in sorted(currencies_data.items())
    )
    if base_currency not in {rule.code for rule in currencies}:
        currencies = currencies + (CurrencyRule(code=base_currency),)

    cadence = data.get("successor_cadence", "monthly")
    if cadence not in _CADENCES:
        raise ConfigurationError(source, f"successor_cadence must be one of {_CADENCES}")

    fy_start = int(data.get("fiscal_year_start_month", 1))
    if not 1 <= fy_start <= 12:
        raise ConfigurationError(source, "fiscal_year_start_month must be 1-12")

    lock_ttl = int(data.get("lock_ttl_seconds", 900))
    workers = int(data.get("recalculation_workers", 2))
    if lock_ttl <= 0 or workers <= 0:
        raise ConfigurationError(source, "lock_ttl_seconds and recalculation_workers must be positive")

    return ClosingConfig(
        base_currency=base_currency,
        currencies=currencies,
        draft_sources=tuple(
            parse_draft_source(d, source) for d in data.get("draft_sources") or []
        ),
        successor_cadence=cadence,
        fiscal_year_start_month=fy_start,
        lock_ttl_seconds=lock_ttl,
        recalculation_workers=workers,
        source=source,
        checksum=compute_checksum(data),
    )


def load_config(path: Path) -> ClosingConfig:
    return parse_config(load_yaml_file(path), source=str(path))


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
