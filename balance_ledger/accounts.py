"""
Account Management Module

Account records, the account store keyed by account number, and the
lifecycle manager that opens and closes accounts. Balances are integers
in minor currency units and are only ever mutated by the ledger engine.
"""

from datetime import datetime, timezone
from dataclasses import dataclass
from typing import List, Optional
from enum import Enum
import uuid

from .storage import StorageInterface, StorageRecord
from .owners import OwnerDirectory, Owner
from .config import get_config
from .errors import (
    AccountNotFound, OwnerNotFound, OwnerAccountMismatch, AccountAlreadyClosed,
    MaxAccountsPerOwnerExceeded, AccountBalanceNotEmpty, LedgerError
)
from .logging_config import get_logger, log_action


ACCOUNT_NUMBER_WIDTH = 10


class AccountStatus(Enum):
    """Account lifecycle states"""
    ACTIVE = "active"
    CLOSED = "closed"


@dataclass
class Account(StorageRecord):
    """Bank account holding a single integer balance"""
    account_number: str
    owner_id: str
    balance: int
    opened_at: datetime
    status: AccountStatus = AccountStatus.ACTIVE
    closed_at: Optional[datetime] = None

    def __post_init__(self):
        if isinstance(self.status, str):
            self.status = AccountStatus(self.status)
        if self.balance < 0:
            raise ValueError("Account balance cannot be negative")

    @property
    def is_active(self) -> bool:
        return self.status == AccountStatus.ACTIVE


@dataclass
class AccountSummary:
    """Result of opening or closing an account"""
    owner_id: str
    account_number: str
    balance: int
    status: AccountStatus
    opened_at: datetime
    closed_at: Optional[datetime] = None

    @classmethod
    def from_account(cls, account: Account) -> 'AccountSummary':
        return cls(
            owner_id=account.owner_id,
            account_number=account.account_number,
            balance=account.balance,
            status=account.status,
            opened_at=account.opened_at,
            closed_at=account.closed_at
        )


@dataclass
class AccountInfo:
    account_number: str
    balance: int


class AccountStore:
    """Account records keyed by account number"""

    def __init__(self, storage: StorageInterface):
        self.storage = storage
        self.table_name = "accounts"

    def find_by_number(self, account_number: str) -> Optional[Account]:
        data = self.storage.load(self.table_name, account_number)
        if data:
            return Account.from_dict(data)
        return None

    def find_by_owner(self, owner_id: str) -> List[Account]:
        return [
            Account.from_dict(data)
            for data in self.storage.find(self.table_name, {"owner_id": owner_id})
        ]

    def count_by_owner(self, owner_id: str) -> int:
        return len(self.storage.find(self.table_name, {"owner_id": owner_id}))

    def find_latest(self) -> Optional[Account]:
        """Account with the highest numeric account number"""
        accounts = self.storage.load_all(self.table_name)
        if not accounts:
            return None
        latest = max(accounts, key=lambda data: int(data["account_number"]))
        return Account.from_dict(latest)

    def save(self, account: Account) -> Account:
        account.updated_at = datetime.now(timezone.utc)
        self.storage.save(self.table_name, account.account_number, account.to_dict())
        return account


class AccountManager:
    """
    Manages the account lifecycle: opening, closing and listing accounts
    """

    def __init__(
        self,
        storage: StorageInterface,
        owner_directory: OwnerDirectory,
        account_store: Optional[AccountStore] = None,
        max_accounts_per_owner: Optional[int] = None,
        account_number_seed: Optional[str] = None
    ):
        config = get_config()
        self.storage = storage
        self.owner_directory = owner_directory
        self.account_store = account_store or AccountStore(storage)
        self.max_accounts_per_owner = (
            max_accounts_per_owner if max_accounts_per_owner is not None
            else config.max_accounts_per_owner
        )
        self.account_number_seed = account_number_seed or config.account_number_seed
        self.logger = get_logger("ledger.accounts")

    def create_account(self, owner_id: str, initial_balance: int) -> AccountSummary:
        """
        Open a new account for an owner

        Args:
            owner_id: ID of the account owner
            initial_balance: Opening balance in minor units

        Returns:
            Summary of the created account

        Raises:
            OwnerNotFound: If the owner does not exist
            MaxAccountsPerOwnerExceeded: If the owner is at the account limit
        """
        try:
            with self.storage.atomic():
                owner = self._get_owner(owner_id)
                if self.account_store.count_by_owner(owner.id) >= self.max_accounts_per_owner:
                    raise MaxAccountsPerOwnerExceeded()

                now = datetime.now(timezone.utc)
                account = Account(
                    id=str(uuid.uuid4()),
                    created_at=now,
                    updated_at=now,
                    account_number=self._generate_account_number(),
                    owner_id=owner.id,
                    balance=initial_balance,
                    opened_at=now
                )
                self.account_store.save(account)
        except LedgerError as e:
            self._log_rejection("create_account", owner_id, None, e)
            raise

        log_action(
            self.logger, "info", "Account created",
            user_id=owner_id, action="create_account",
            resource=f"account:{account.account_number}",
            extra={"initial_balance": initial_balance}
        )
        return AccountSummary.from_account(account)

    def close_account(self, owner_id: str, account_number: str) -> AccountSummary:
        """
        Close an owner's account. Closed accounts are kept, never deleted.

        Raises:
            OwnerNotFound, AccountNotFound, OwnerAccountMismatch,
            AccountAlreadyClosed, AccountBalanceNotEmpty
        """
        try:
            with self.storage.atomic():
                owner = self._get_owner(owner_id)
                account = self.account_store.find_by_number(account_number)
                if not account:
                    raise AccountNotFound()
                self._validate_close_account(owner, account)

                account.status = AccountStatus.CLOSED
                account.closed_at = datetime.now(timezone.utc)
                self.account_store.save(account)
        except LedgerError as e:
            self._log_rejection("close_account", owner_id, account_number, e)
            raise

        log_action(
            self.logger, "info", "Account closed",
            user_id=owner_id, action="close_account",
            resource=f"account:{account_number}"
        )
        return AccountSummary.from_account(account)

    def get_accounts_by_owner(self, owner_id: str) -> List[AccountInfo]:
        """List account numbers and balances for an owner"""
        owner = self._get_owner(owner_id)
        return [
            AccountInfo(account_number=account.account_number, balance=account.balance)
            for account in self.account_store.find_by_owner(owner.id)
        ]

    def _get_owner(self, owner_id: str) -> Owner:
        owner = self.owner_directory.find_by_id(owner_id)
        if not owner:
            raise OwnerNotFound()
        return owner

    def _validate_close_account(self, owner: Owner, account: Account) -> None:
        if account.owner_id != owner.id:
            raise OwnerAccountMismatch()
        if not account.is_active:
            raise AccountAlreadyClosed()
        if account.balance > 0:
            raise AccountBalanceNotEmpty()

    def _generate_account_number(self) -> str:
        """Next number after the highest existing one, zero-padded"""
        latest = self.account_store.find_latest()
        if not latest:
            return self.account_number_seed
        return str(int(latest.account_number) + 1).zfill(ACCOUNT_NUMBER_WIDTH)

    def _log_rejection(self, action: str, owner_id: str,
                       account_number: Optional[str], error: LedgerError) -> None:
        log_action(
            self.logger, "warning", f"{action} rejected: {error.error_message}",
            user_id=owner_id, action=action,
            resource=f"account:{account_number}" if account_number else None,
            extra={"error_code": error.error_code.name}
        )
