"""
Balance arithmetic -- pure functional core of the Balance Aggregator.

Responsibility:
    Turn opening figures and ledger movements into the four balance
    horizons of a trial balance row, normalized against the account's
    normal balance side.

Architecture position:
    Kernel > Domain -- zero I/O.  Called by BalanceAggregator after all
    ledger data has been loaded.

Invariants enforced:
    - Every ending/ytd pair has at most one non-zero side.
    - All figures are quantized to the storage scale, so repeated runs over
      the same ledger produce identical Decimals (same digits, same exponent).
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_EVEN, Decimal
from uuid import UUID

from closing_kernel.db.base import AMOUNT_SCALE
from closing_kernel.models.account import NormalBalance

ZERO = Decimal("0")
AMOUNT_QUANTUM = Decimal(1).scaleb(-AMOUNT_SCALE)


def quantize_amount(value: Decimal | int | None) -> Decimal:
    """Quantize a monetary figure to the storage scale."""
    if value is None:
        value = ZERO
    return Decimal(value).quantize(AMOUNT_QUANTUM, rounding=ROUND_HALF_EVEN)


def format_amount(value: Decimal) -> str:
    """Plain positional notation for transport; never scientific ('0E-9')."""
    return f"{value:f}"


@dataclass(frozen=True)
class DebitCredit:
    """A debit/credit pair."""

    debit: Decimal = ZERO
    credit: Decimal = ZERO

    def __add__(self, other: "DebitCredit") -> "DebitCredit":
        return DebitCredit(self.debit + other.debit, self.credit + other.credit)

    @property
    def net(self) -> Decimal:
        """Debit minus credit."""
        return self.debit - self.credit

    def quantized(self) -> "DebitCredit":
        return DebitCredit(quantize_amount(self.debit), quantize_amount(self.credit))


def normalize_position(
    position: DebitCredit,
    normal_balance: NormalBalance | str,
) -> DebitCredit:
    """
    Collapse a debit/credit position to a single side.

    The net position is debit minus credit.  A debit-normal account keeps a
    positive net on the debit side and shows a negative net as a credit; a
    credit-normal account mirrors this.  The result never has both sides
    non-zero.
    """
    net = quantize_amount(position.net)
    if NormalBalance(normal_balance) == NormalBalance.DEBIT:
        if net >= 0:
            return DebitCredit(net, quantize_amount(ZERO))
        return DebitCredit(quantize_amount(ZERO), -net)
    credit_net = -net
    if credit_net >= 0:
        return DebitCredit(quantize_amount(ZERO), credit_net)
    return DebitCredit(-credit_net, quantize_amount(ZERO))


@dataclass(frozen=True)
class BalanceRow:
    """Computed trial balance figures for one posting account in one period."""

    account_id: UUID
    account_code: str
    opening_debit: Decimal
    opening_credit: Decimal
    period_debit: Decimal
    period_credit: Decimal
    ending_debit: Decimal
    ending_credit: Decimal
    ytd_debit: Decimal
    ytd_credit: Decimal
    currency: str

    @property
    def opening(self) -> DebitCredit:
        return DebitCredit(self.opening_debit, self.opening_credit)

    @property
    def movement(self) -> DebitCredit:
        return DebitCredit(self.period_debit, self.period_credit)

    @property
    def ending(self) -> DebitCredit:
        return DebitCredit(self.ending_debit, self.ending_credit)


def compute_balance_row(
    account_id: UUID,
    account_code: str,
    normal_balance: NormalBalance | str,
    opening: DebitCredit,
    movement: DebitCredit,
    fiscal_year_opening: DebitCredit,
    fiscal_year_movement: DebitCredit,
    currency: str,
) -> BalanceRow:
    """
    Build one BalanceRow.

    Args:
        opening: Prior period's ending position (already one-sided).
        movement: Posted movement inside the period.
        fiscal_year_opening: Opening of the fiscal year's first period.
        fiscal_year_movement: Posted movement from the fiscal year's first
            period through this period, re-derived from ledger lines.
    """
    opening = opening.quantized()
    movement = movement.quantized()
    ending = normalize_position(opening + movement, normal_balance)
    ytd = normalize_position(
        fiscal_year_opening.quantized() + fiscal_year_movement.quantized(),
        normal_balance,
    )
    return BalanceRow(
        account_id=account_id,
        account_code=account_code,
        opening_debit=opening.debit,
        opening_credit=opening.credit,
        period_debit=movement.debit,
        period_credit=movement.credit,
        ending_debit=ending.debit,
        ending_credit=ending.credit,
        ytd_debit=ytd.debit,
        ytd_credit=ytd.credit,
        currency=currency,
    )


@dataclass(frozen=True)
class BalanceTotals:
    """Column-wise sum of a set of trial balance rows."""

    opening_debit: Decimal = ZERO
    opening_credit: Decimal = ZERO
    period_debit: Decimal = ZERO
    period_credit: Decimal = ZERO
    ending_debit: Decimal = ZERO
    ending_credit: Decimal = ZERO
    ytd_debit: Decimal = ZERO
    ytd_credit: Decimal = ZERO

    _FIELDS = (
        "opening_debit",
        "opening_credit",
        "period_debit",
        "period_credit",
        "ending_debit",
        "ending_credit",
        "ytd_debit",
        "ytd_credit",
    )

    @classmethod
    def of(cls, rows) -> "BalanceTotals":
        """Sum any iterable of objects exposing the eight balance columns."""
        sums = {name: ZERO for name in cls._FIELDS}
        for row in rows:
            for name in cls._FIELDS:
                sums[name] += getattr(row, name)
        return cls(**{name: quantize_amount(value) for name, value in sums.items()})

    def to_dict(self) -> dict[str, str]:
        return {name: format_amount(getattr(self, name)) for name in self._FIELDS}
