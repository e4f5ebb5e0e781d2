"""
Error Taxonomy Module

Business-rule failures raised by the ledger engine and the account
lifecycle manager, plus the infrastructure failure raised by storage
backends. Business errors subclass ValueError; storage failures do not.
"""

from enum import Enum


class ErrorCode(Enum):
    """Error kinds with their default messages"""
    OWNER_NOT_FOUND = "Owner not found"
    ACCOUNT_NOT_FOUND = "Account not found"
    OWNER_ACCOUNT_MISMATCH = "Account is not owned by the requesting owner"
    ACCOUNT_ALREADY_CLOSED = "Account is already closed"
    AMOUNT_EXCEEDS_BALANCE = "Amount exceeds account balance"
    TRANSACTION_NOT_FOUND = "Transaction not found"
    TRANSACTION_ACCOUNT_MISMATCH = "Transaction does not belong to this account"
    CANCEL_MUST_BE_FULL = "Partial cancellation is not allowed"
    TOO_OLD_TO_CANCEL = "Transaction is outside the cancel window"
    TRANSACTION_NOT_CANCELLABLE = "Only successful balance uses can be cancelled"
    TRANSACTION_ALREADY_CANCELLED = "Transaction has already been cancelled"
    INVALID_AMOUNT = "Amount must be a positive integer"
    MAX_ACCOUNTS_PER_OWNER_EXCEEDED = "Owner already holds the maximum number of accounts"
    ACCOUNT_BALANCE_NOT_EMPTY = "Account balance must be empty before closing"


class LedgerError(ValueError):
    """Base class for validated business-rule failures"""

    error_code: ErrorCode

    def __init__(self, message: str = None):
        self.error_message = message or self.error_code.value
        super().__init__(self.error_message)


class OwnerNotFound(LedgerError):
    error_code = ErrorCode.OWNER_NOT_FOUND


class AccountNotFound(LedgerError):
    error_code = ErrorCode.ACCOUNT_NOT_FOUND


class OwnerAccountMismatch(LedgerError):
    error_code = ErrorCode.OWNER_ACCOUNT_MISMATCH


class AccountAlreadyClosed(LedgerError):
    error_code = ErrorCode.ACCOUNT_ALREADY_CLOSED


class AmountExceedsBalance(LedgerError):
    error_code = ErrorCode.AMOUNT_EXCEEDS_BALANCE


class TransactionNotFound(LedgerError):
    error_code = ErrorCode.TRANSACTION_NOT_FOUND


class TransactionAccountMismatch(LedgerError):
    error_code = ErrorCode.TRANSACTION_ACCOUNT_MISMATCH


class CancelMustBeFull(LedgerError):
    error_code = ErrorCode.CANCEL_MUST_BE_FULL


class TooOldToCancel(LedgerError):
    error_code = ErrorCode.TOO_OLD_TO_CANCEL


class TransactionNotCancellable(LedgerError):
    error_code = ErrorCode.TRANSACTION_NOT_CANCELLABLE


class TransactionAlreadyCancelled(LedgerError):
    error_code = ErrorCode.TRANSACTION_ALREADY_CANCELLED


class InvalidAmount(LedgerError):
    error_code = ErrorCode.INVALID_AMOUNT


class MaxAccountsPerOwnerExceeded(LedgerError):
    error_code = ErrorCode.MAX_ACCOUNTS_PER_OWNER_EXCEEDED


class AccountBalanceNotEmpty(LedgerError):
    error_code = ErrorCode.ACCOUNT_BALANCE_NOT_EMPTY


class StorageError(Exception):
    """Raised when a storage backend fails (unavailable, corrupt, I/O)"""
