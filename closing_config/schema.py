"""
Configuration Schema (``closing_config.schema``).

Responsibility
--------------
Frozen dataclass definitions for the closing engine's configuration.  The
loader parses YAML into these types; nothing else constructs them from raw
dicts.

Architecture position
---------------------
**Config layer** -- pure data definitions.  Imports only the stdlib and,
lazily, the kernel exception types.
Consumed by ``closing_config.loader`` (construction) and by
``closing_services`` (runtime reads).

Invariants enforced
-------------------
* All dataclasses are ``frozen=True``.
* ``CurrencyRule.tolerance`` is never negative and defaults to one minor
  unit of the currency.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class CurrencyRule:
    """
    Rounding rule for one currency.

    ``balance_tolerance`` is the largest |debit - credit| difference still
    treated as balanced.  When not configured it is one minor unit, i.e.
    0.01 for a two-decimal currency and 1 for a zero-decimal one.
    """

    code: str
    decimal_places: int = 2
    balance_tolerance: Decimal | None = None

    @property
    def tolerance(self) -> Decimal:
        if self.balance_tolerance is not None:
            return self.balance_tolerance
        return Decimal(1).scaleb(-self.decimal_places)


@dataclass(frozen=True)
class DraftSourceDef:
    """
    One external document source counted by the period validator.

    kind == "journal" counts DRAFT entries of the in-core ledger; kind ==
    "table" counts rows of ``table`` whose ``status_column`` is one of
    ``draft_statuses`` and whose ``date_column`` falls in the period.
    Several sources may share a category; their counts are summed.
    """

    category: str
    kind: str = "table"
    table: str | None = None
    date_column: str = "transaction_date"
    status_column: str = "status"
    draft_statuses: tuple[str, ...] = ("DRAFT",)
    description: str = ""


@dataclass(frozen=True)
class ClosingConfig:
    """Runtime configuration of the closing engine."""

    base_currency: str
    currencies: tuple[CurrencyRule, ...]
    draft_sources: tuple[DraftSourceDef, ...]
    successor_cadence: str = "monthly"
    fiscal_year_start_month: int = 1
    lock_ttl_seconds: int = 900
    recalculation_workers: int = 2
    source: str = "<memory>"
    checksum: str = field(default="", compare=False)

    def currency_rule(self, code: str | None = None) -> CurrencyRule:
        """Rule for ``code`` (base currency when omitted)."""
        from closing_kernel.exceptions import ConfigurationError

        code = code or self.base_currency
        for rule in self.currencies:
            if rule.code == code:
                return rule
        raise ConfigurationError(self.source, f"no currency rule for {code}")

    def tolerance_for(self, code: str | None = None) -> Decimal:
        return self.currency_rule(code).tolerance

    @property
    def categories(self) -> tuple[str, ...]:
        """Distinct draft categories in declaration order."""
        seen: list[str] = []
        for source in self.draft_sources:
            if source.category not in seen:
                seen.append(source.category)
        return tuple(seen)
