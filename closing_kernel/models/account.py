"""
Module: closing_kernel.models.account
Responsibility: ORM persistence for the Chart of Accounts (COA) -- the target
    of every ledger line and the grouping key of the trial balance.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - code is unique (uq_account_code).
    - normal_balance agrees with account_type (ChartOfAccountsRegistry).
    - HEADER accounts never receive ledger lines (LedgerService).
    - parent_id references a HEADER account and never forms a cycle
      (ChartOfAccountsRegistry).
"""

from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from closing_kernel.db.base import TrackedBase, UUIDString


class AccountType(str, Enum):
    """Types of accounts in the chart of accounts."""

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    COST_OF_GOODS = "cost_of_goods"
    EXPENSE = "expense"


class NormalBalance(str, Enum):
    """Normal balance side for an account."""

    DEBIT = "debit"
    CREDIT = "credit"


class PostingType(str, Enum):
    """Whether an account aggregates children or receives ledger lines."""

    HEADER = "header"
    POSTING = "posting"


class Account(TrackedBase):
    """
    Chart of Accounts entry -- a single node in the account hierarchy.

    Contract:
        Account.code is globally unique.  POSTING accounts are leaves that
        receive ledger lines; HEADER accounts only aggregate their posting
        descendants.
    """

    __tablename__ = "accounts"

    __table_args__ = (
        UniqueConstraint("code", name="uq_account_code"),
        Index("idx_account_type", "account_type"),
        Index("idx_account_parent", "parent_id"),
    )

    code: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    account_type: Mapped[AccountType] = mapped_column(
        String(20),
        nullable=False,
    )

    normal_balance: Mapped[NormalBalance] = mapped_column(
        String(10),
        nullable=False,
    )

    posting_type: Mapped[PostingType] = mapped_column(
        String(10),
        default=PostingType.POSTING,
        nullable=False,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    # Weak reference to the parent header account
    parent_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Account {self.code}: {self.name}>"

    @property
    def is_posting(self) -> bool:
        return PostingType(self.posting_type) == PostingType.POSTING

