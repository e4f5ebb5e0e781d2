"""
Transaction Processing Module

The balance ledger engine. Validates balance-use and balance-cancel
requests, mutates the account balance, and appends a Transaction record
carrying the post-operation balance snapshot. Transactions are never
updated or deleted; they are the audit trail of every balance change.
"""

from datetime import datetime, timezone
from dataclasses import dataclass
from typing import List, Optional
from enum import Enum
import uuid

from .storage import StorageInterface, StorageRecord
from .accounts import Account, AccountStore
from .owners import OwnerDirectory
from .config import get_config
from .errors import (
    LedgerError, OwnerNotFound, AccountNotFound, OwnerAccountMismatch,
    AccountAlreadyClosed, AmountExceedsBalance, TransactionNotFound,
    TransactionAccountMismatch, CancelMustBeFull, TooOldToCancel,
    TransactionNotCancellable, TransactionAlreadyCancelled, InvalidAmount
)
from .logging_config import get_logger, log_action


# Snapshot recorded on a failed use whose account could not be loaded
FAILED_SNAPSHOT_UNKNOWN = -1


class TransactionType(Enum):
    """Kinds of ledger entries"""
    USE = "USE"
    CANCEL = "CANCEL"


class TransactionResultType(Enum):
    """Outcome of a ledger entry"""
    SUCCESS = "S"
    FAIL = "F"


@dataclass
class Transaction(StorageRecord):
    """Immutable ledger entry"""
    transaction_id: str
    account_id: Optional[str]       # Identity of the account record
    account_number: str
    transaction_type: TransactionType
    result: TransactionResultType
    amount: int
    balance_snapshot: int
    transacted_at: datetime
    cancelled_transaction_id: Optional[str] = None  # Set on CANCEL entries

    def __post_init__(self):
        if isinstance(self.transaction_type, str):
            self.transaction_type = TransactionType(self.transaction_type)
        if isinstance(self.result, str):
            self.result = TransactionResultType(self.result)
        if self.amount <= 0:
            raise ValueError("Transaction amount must be positive")

    @property
    def is_cancellable(self) -> bool:
        return (self.transaction_type == TransactionType.USE and
                self.result == TransactionResultType.SUCCESS)


@dataclass
class TransactionResult:
    """Projection of a Transaction returned to callers"""
    account_number: str
    transaction_type: TransactionType
    result: TransactionResultType
    transaction_id: str
    amount: int
    balance_snapshot: int
    transacted_at: datetime

    @classmethod
    def from_transaction(cls, transaction: Transaction) -> 'TransactionResult':
        return cls(
            account_number=transaction.account_number,
            transaction_type=transaction.transaction_type,
            result=transaction.result,
            transaction_id=transaction.transaction_id,
            amount=transaction.amount,
            balance_snapshot=transaction.balance_snapshot,
            transacted_at=transaction.transacted_at
        )


class TransactionStore:
    """Transaction records keyed by transaction id"""

    def __init__(self, storage: StorageInterface):
        self.storage = storage
        self.table_name = "transactions"

    def find_by_id(self, transaction_id: str) -> Optional[Transaction]:
        data = self.storage.load(self.table_name, transaction_id)
        if data:
            return Transaction.from_dict(data)
        return None

    def find_by_account(self, account_number: str) -> List[Transaction]:
        transactions = [
            Transaction.from_dict(data)
            for data in self.storage.find(self.table_name, {"account_number": account_number})
        ]
        return sorted(transactions, key=lambda t: t.transacted_at)

    def find_cancellation(self, transaction_id: str) -> Optional[Transaction]:
        """CANCEL entry that reversed the given transaction, if any"""
        matches = self.storage.find(self.table_name, {"cancelled_transaction_id": transaction_id})
        if matches:
            return Transaction.from_dict(matches[0])
        return None

    def exists(self, transaction_id: str) -> bool:
        return self.storage.exists(self.table_name, transaction_id)

    def save(self, transaction: Transaction) -> Transaction:
        self.storage.save(self.table_name, transaction.transaction_id, transaction.to_dict())
        return transaction


def years_before(moment: datetime, years: int = 1) -> datetime:
    """Same calendar moment `years` years earlier; Feb 29 maps to Feb 28"""
    try:
        return moment.replace(year=moment.year - years)
    except ValueError:
        return moment.replace(year=moment.year - years, day=28)


class TransactionService:
    """
    Executes balance use and cancel operations against accounts
    """

    def __init__(
        self,
        storage: StorageInterface,
        owner_directory: OwnerDirectory,
        account_store: Optional[AccountStore] = None,
        transaction_store: Optional[TransactionStore] = None,
        cancel_window_years: Optional[int] = None
    ):
        self.storage = storage
        self.owner_directory = owner_directory
        self.account_store = account_store or AccountStore(storage)
        self.transaction_store = transaction_store or TransactionStore(storage)
        self.cancel_window_years = (
            cancel_window_years if cancel_window_years is not None
            else get_config().cancel_window_years
        )
        self.logger = get_logger("ledger.transactions")

    def use_balance(self, owner_id: str, account_number: str, amount: int) -> TransactionResult:
        """
        Debit an account

        Args:
            owner_id: Owner requesting the debit
            account_number: Account to debit
            amount: Amount in minor units

        Returns:
            Projection of the SUCCESS USE transaction

        Raises:
            InvalidAmount, OwnerNotFound, AccountNotFound, OwnerAccountMismatch,
            AccountAlreadyClosed, AmountExceedsBalance
        """
        try:
            self._validate_amount(amount)
            with self.storage.atomic():
                owner = self.owner_directory.find_by_id(owner_id)
                if not owner:
                    raise OwnerNotFound()

                account = self._get_account(account_number)
                self._validate_use_balance(owner.id, account, amount)

                account.balance -= amount
                self.account_store.save(account)
                transaction = self._save_transaction(
                    TransactionType.USE, TransactionResultType.SUCCESS, account, amount
                )
        except AmountExceedsBalance as e:
            # Failed debits are kept in the ledger; the account is untouched
            self.save_failed_transaction(account_number, amount)
            self._log_rejection("use_balance", account_number, amount, e, user_id=owner_id)
            raise
        except LedgerError as e:
            self._log_rejection("use_balance", account_number, amount, e, user_id=owner_id)
            raise

        log_action(
            self.logger, "info", "Balance used",
            user_id=owner_id, action="use_balance",
            resource=f"account:{account_number}",
            extra={
                "transaction_id": transaction.transaction_id,
                "amount": amount,
                "balance_snapshot": transaction.balance_snapshot
            }
        )
        return TransactionResult.from_transaction(transaction)

    def cancel_balance(self, transaction_id: str, account_number: str, amount: int) -> TransactionResult:
        """
        Reverse a prior use in full, crediting the amount back

        Args:
            transaction_id: ID of the transaction being cancelled
            account_number: Account the transaction belongs to
            amount: Must equal the original transaction amount

        Returns:
            Projection of the new SUCCESS CANCEL transaction

        Raises:
            TransactionNotFound, AccountNotFound, TransactionAccountMismatch,
            CancelMustBeFull, TooOldToCancel, TransactionNotCancellable,
            TransactionAlreadyCancelled
        """
        try:
            with self.storage.atomic():
                original = self.transaction_store.find_by_id(transaction_id)
                if not original:
                    raise TransactionNotFound()

                account = self._get_account(account_number)
                self._validate_cancel_balance(original, account, amount)

                account.balance += amount
                self.account_store.save(account)
                transaction = self._save_transaction(
                    TransactionType.CANCEL, TransactionResultType.SUCCESS, account, amount,
                    cancelled_transaction_id=original.transaction_id
                )
        except LedgerError as e:
            self._log_rejection("cancel_balance", account_number, amount, e,
                                extra={"transaction_id": transaction_id})
            raise

        log_action(
            self.logger, "info", "Balance use cancelled",
            action="cancel_balance", resource=f"account:{account_number}",
            extra={
                "original_transaction_id": transaction_id,
                "transaction_id": transaction.transaction_id,
                "amount": amount,
                "balance_snapshot": transaction.balance_snapshot
            }
        )
        return TransactionResult.from_transaction(transaction)

    def query_transaction(self, transaction_id: str) -> TransactionResult:
        """Get a transaction; the snapshot is the balance at that entry"""
        transaction = self.transaction_store.find_by_id(transaction_id)
        if not transaction:
            raise TransactionNotFound()
        return TransactionResult.from_transaction(transaction)

    def list_transactions(self, account_number: str) -> List[TransactionResult]:
        """All ledger entries of an account, oldest first"""
        self._get_account(account_number)
        return [
            TransactionResult.from_transaction(transaction)
            for transaction in self.transaction_store.find_by_account(account_number)
        ]

    def save_failed_transaction(self, account_number: str, amount: int) -> Transaction:
        """
        Record a FAIL USE entry for a rejected debit.

        The account may not exist; the entry then has no account_id and a
        snapshot of FAILED_SNAPSHOT_UNKNOWN.
        """
        self._validate_amount(amount)
        with self.storage.atomic():
            account = self.account_store.find_by_number(account_number)
            return self._save_transaction(
                TransactionType.USE, TransactionResultType.FAIL, account, amount,
                account_number=account_number
            )

    def _get_account(self, account_number: str) -> Account:
        account = self.account_store.find_by_number(account_number)
        if not account:
            raise AccountNotFound()
        return account

    @staticmethod
    def _validate_amount(amount: int) -> None:
        if amount <= 0:
            raise InvalidAmount()

    def _validate_use_balance(self, owner_id: str, account: Account, amount: int) -> None:
        if account.owner_id != owner_id:
            raise OwnerAccountMismatch()
        if not account.is_active:
            raise AccountAlreadyClosed()
        if amount > account.balance:
            raise AmountExceedsBalance()

    def _validate_cancel_balance(self, original: Transaction, account: Account, amount: int) -> None:
        if original.account_id != account.id:
            raise TransactionAccountMismatch()
        if original.amount != amount:
            raise CancelMustBeFull()
        cutoff = years_before(datetime.now(timezone.utc), self.cancel_window_years)
        if original.transacted_at < cutoff:
            raise TooOldToCancel(
                f"Transactions older than {self.cancel_window_years} year(s) cannot be cancelled"
            )
        if not original.is_cancellable:
            raise TransactionNotCancellable()
        if self.transaction_store.find_cancellation(original.transaction_id):
            raise TransactionAlreadyCancelled()

    def _save_transaction(
        self,
        transaction_type: TransactionType,
        result: TransactionResultType,
        account: Optional[Account],
        amount: int,
        account_number: Optional[str] = None,
        cancelled_transaction_id: Optional[str] = None
    ) -> Transaction:
        now = datetime.now(timezone.utc)
        return self.transaction_store.save(Transaction(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            transaction_id=self._generate_transaction_id(),
            account_id=account.id if account else None,
            account_number=account.account_number if account else account_number,
            transaction_type=transaction_type,
            result=result,
            amount=amount,
            balance_snapshot=account.balance if account else FAILED_SNAPSHOT_UNKNOWN,
            transacted_at=now,
            cancelled_transaction_id=cancelled_transaction_id
        ))

    def _generate_transaction_id(self) -> str:
        transaction_id = uuid.uuid4().hex
        while self.transaction_store.exists(transaction_id):
            transaction_id = uuid.uuid4().hex
        return transaction_id

    def _log_rejection(self, action: str, account_number: str, amount: int,
                       error: LedgerError, user_id: Optional[str] = None,
                       extra: Optional[dict] = None) -> None:
        log_action(
            self.logger, "warning", f"{action} rejected: {error.error_message}",
            user_id=user_id, action=action, resource=f"account:{account_number}",
            extra={"error_code": error.error_code.name, "amount": amount, **(extra or {})}
        )
