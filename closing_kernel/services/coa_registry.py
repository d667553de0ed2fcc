"""
ChartOfAccountsRegistry -- hierarchical account definitions.

Responsibility:
    Creates and resolves accounts, enforces the type/normal-balance pairing
    and the HEADER/POSTING split, and answers hierarchy questions (children,
    posting descendants, ancestors) for validation and roll-up views.

Architecture position:
    Kernel > Services -- imperative shell.
    Consulted by LedgerService (posting targets), BalanceAggregator (which
    accounts get a row) and the trial balance query roll-up.

Invariants enforced:
    - ASSET, EXPENSE and COST_OF_GOODS accounts are DEBIT-normal; LIABILITY,
      EQUITY and REVENUE accounts are CREDIT-normal.
    - A parent is an existing HEADER account.
    - The parent chain never forms a cycle.
    - Returns frozen ``AccountInfo`` DTOs.

Failure modes:
    - AccountNotFoundError: id or code does not resolve.
    - AccountNotPostingError: a HEADER account where a POSTING one is required.
    - InvalidAccountError: normal balance contradicts the account type, or
      the code is already taken.
    - AccountHierarchyError: invalid parent or a cycle.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from closing_kernel.domain.dtos import AccountInfo
from closing_kernel.exceptions import (
    AccountHierarchyError,
    AccountNotFoundError,
    AccountNotPostingError,
    InvalidAccountError,
)
from closing_kernel.logging_config import get_logger
from closing_kernel.models.account import Account, AccountType, NormalBalance, PostingType
from closing_kernel.services.base import BaseService

logger = get_logger("services.coa")

EXPECTED_NORMAL_BALANCE: dict[AccountType, NormalBalance] = {
    AccountType.ASSET: NormalBalance.DEBIT,
    AccountType.EXPENSE: NormalBalance.DEBIT,
    AccountType.COST_OF_GOODS: NormalBalance.DEBIT,
    AccountType.LIABILITY: NormalBalance.CREDIT,
    AccountType.EQUITY: NormalBalance.CREDIT,
    AccountType.REVENUE: NormalBalance.CREDIT,
}


def expected_normal_balance(account_type: AccountType | str) -> NormalBalance:
    return EXPECTED_NORMAL_BALANCE[AccountType(account_type)]


class ChartOfAccountsRegistry(BaseService[Account]):
    """
    Registry over the ``accounts`` table.

    Contract:
        Mutations flush within the caller's transaction.  Hierarchy queries
        load the whole chart once per call; charts are small compared to
        the ledger.
    """

    def __init__(self, session: Session):
        super().__init__(session)

    # -- mutations ----------------------------------------------------------

    def create_account(
        self,
        code: str,
        name: str,
        account_type: AccountType | str,
        actor_id: UUID,
        normal_balance: NormalBalance | str | None = None,
        posting_type: PostingType | str = PostingType.POSTING,
        parent_code: str | None = None,
        is_active: bool = True,
    ) -> AccountInfo:
        """
        Create an account.

        The normal balance defaults from the account type.  An explicit
        value that contradicts the type is rejected.

        Raises:
            InvalidAccountError: Duplicate code or wrong normal balance.
            AccountHierarchyError: Parent missing or not a HEADER.
        """
        account_type = AccountType(account_type)
        expected = expected_normal_balance(account_type)
        if normal_balance is None:
            normal_balance = expected
        elif NormalBalance(normal_balance) != expected:
            raise InvalidAccountError(
                code,
                f"{account_type.value} accounts must have {expected.value} normal balance",
            )

        if self._get_by_code_orm(code) is not None:
            raise InvalidAccountError(code, "account code already exists")

        parent_id = None
        if parent_code is not None:
            parent_id = self._resolve_parent(code, parent_code).id

        account = Account(
            code=code,
            name=name,
            account_type=account_type.value,
            normal_balance=NormalBalance(normal_balance).value,
            posting_type=PostingType(posting_type).value,
            parent_id=parent_id,
            is_active=is_active,
            created_by_id=actor_id,
        )
        self.session.add(account)
        self.session.flush()

        logger.info(
            "account_created",
            extra={
                "account_code": code,
                "account_type": account_type.value,
                "posting_type": PostingType(posting_type).value,
                "parent_code": parent_code,
            },
        )
        return AccountInfo.from_model(account)

    def move_account(self, code: str, new_parent_code: str | None, actor_id: UUID) -> AccountInfo:
        """
        Re-parent an account.

        Raises:
            AccountHierarchyError: If the new parent is not a HEADER or is
                the account itself or one of its descendants.
        """
        account = self._require_by_code(code)
        parent_id = None
        if new_parent_code is not None:
            parent = self._resolve_parent(code, new_parent_code)
            tree = self._load_tree()
            walk = parent.id
            while walk is not None:
                if walk == account.id:
                    raise AccountHierarchyError(code, new_parent_code, "would create a cycle")
                walk = tree[walk].parent_id
            parent_id = parent.id

        account.parent_id = parent_id
        account.updated_by_id = actor_id
        self.session.flush()
        logger.info(
            "account_moved",
            extra={"account_code": code, "parent_code": new_parent_code},
        )
        return AccountInfo.from_model(account)

    def deactivate_account(self, code: str, actor_id: UUID) -> AccountInfo:
        """Stop an account from receiving new postings.  History is kept."""
        account = self._require_by_code(code)
        account.is_active = False
        account.updated_by_id = actor_id
        self.session.flush()
        logger.info("account_deactivated", extra={"account_code": code})
        return AccountInfo.from_model(account)

    def _resolve_parent(self, code: str, parent_code: str) -> Account:
        if parent_code == code:
            raise AccountHierarchyError(code, parent_code, "an account cannot be its own parent")
        parent = self._get_by_code_orm(parent_code)
        if parent is None:
            raise AccountHierarchyError(code, parent_code, "parent account does not exist")
        if parent.is_posting:
            raise AccountHierarchyError(code, parent_code, "parent must be a HEADER account")
        return parent

    # -- lookups ------------------------------------------------------------

    def _get_by_code_orm(self, code: str) -> Account | None:
        return self.session.execute(
            select(Account).where(Account.code == code)
        ).scalar_one_or_none()

    def _require_by_code(self, code: str) -> Account:
        account = self._get_by_code_orm(code)
        if account is None:
            raise AccountNotFoundError(code)
        return account

    def get(self, account_id: UUID) -> AccountInfo:
        account = self.session.get(Account, account_id)
        if account is None:
            raise AccountNotFoundError(str(account_id))
        return AccountInfo.from_model(account)

    def get_by_code(self, code: str) -> AccountInfo:
        return AccountInfo.from_model(self._require_by_code(code))

    def require_posting(self, account_id: UUID) -> AccountInfo:
        """
        Raises:
            AccountNotFoundError: Unknown id.
            AccountNotPostingError: The account is a HEADER.
        """
        account = self.get(account_id)
        if not account.is_posting:
            raise AccountNotPostingError(account.code)
        return account

    def posting_accounts(self, include_inactive: bool = False) -> list[AccountInfo]:
        """POSTING accounts ordered by code."""
        query = select(Account).where(Account.posting_type == PostingType.POSTING.value)
        if not include_inactive:
            query = query.where(Account.is_active.is_(True))
        accounts = self.session.execute(query.order_by(Account.code)).scalars().all()
        return [AccountInfo.from_model(a) for a in accounts]

    def all_accounts(self) -> list[AccountInfo]:
        accounts = self.session.execute(select(Account).order_by(Account.code)).scalars().all()
        return [AccountInfo.from_model(a) for a in accounts]

    # -- hierarchy ----------------------------------------------------------

    def _load_tree(self) -> dict[UUID, AccountInfo]:
        """
        Load the whole chart keyed by id.

        Raises:
            AccountHierarchyError: If the stored parent chain has a cycle.
        """
        tree = {a.id: a for a in self.all_accounts()}
        for account in tree.values():
            seen = {account.id}
            walk = account.parent_id
            while walk is not None and walk in tree:
                if walk in seen:
                    raise AccountHierarchyError(
                        account.code, tree[walk].code, "cycle in stored hierarchy"
                    )
                seen.add(walk)
                walk = tree[walk].parent_id
        return tree

    def children(self, account_id: UUID) -> list[AccountInfo]:
        tree = self._load_tree()
        return [a for a in tree.values() if a.parent_id == account_id]

    def ancestors(self, account_id: UUID) -> list[AccountInfo]:
        """Parent chain from the immediate parent up to the root."""
        tree = self._load_tree()
        if account_id not in tree:
            raise AccountNotFoundError(str(account_id))
        chain = []
        walk = tree[account_id].parent_id
        while walk is not None and walk in tree:
            chain.append(tree[walk])
            walk = tree[walk].parent_id
        return chain

    def posting_descendants(self, account_id: UUID) -> list[AccountInfo]:
        """All POSTING accounts below ``account_id`` ordered by code."""
        tree = self._load_tree()
        if account_id not in tree:
            raise AccountNotFoundError(str(account_id))
        return _collect_posting(_children_index(tree), account_id)

    def header_descendants(self) -> list[tuple[AccountInfo, list[AccountInfo]]]:
        """
        Every HEADER account with its POSTING descendants, headers ordered
        by code.  Reads the chart once, however many headers it has.
        """
        tree = self._load_tree()
        by_parent = _children_index(tree)
        headers = sorted((a for a in tree.values() if a.is_header), key=lambda a: a.code)
        return [(header, _collect_posting(by_parent, header.id)) for header in headers]


def _children_index(tree: dict[UUID, AccountInfo]) -> dict[UUID, list[AccountInfo]]:
    by_parent: dict[UUID, list[AccountInfo]] = {}
    for account in tree.values():
        if account.parent_id is not None:
            by_parent.setdefault(account.parent_id, []).append(account)
    return by_parent


def _collect_posting(
    by_parent: dict[UUID, list[AccountInfo]], account_id: UUID
) -> list[AccountInfo]:
    result = []
    stack = list(by_parent.get(account_id, []))
    while stack:
        node = stack.pop()
        if node.is_posting:
            result.append(node)
        stack.extend(by_parent.get(node.id, []))
    return sorted(result, key=lambda a: a.code)
