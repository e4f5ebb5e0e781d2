"""
Pydantic schemas for API requests and responses
"""

from datetime import datetime
from typing import Annotated, Optional
from pydantic import BaseModel, Field

from ..accounts import AccountSummary, AccountInfo
from ..transactions import TransactionResult


AccountNumber = Annotated[str, Field(min_length=10, max_length=10, description="10-digit account number")]


# Owner schemas
class CreateOwnerRequest(BaseModel):
    name: str = Field(..., min_length=1)


class OwnerResponse(BaseModel):
    owner_id: str
    name: str


# Account schemas
class CreateAccountRequest(BaseModel):
    user_id: str = Field(..., min_length=1, description="Owner ID")
    initial_balance: int = Field(..., ge=0, description="Opening balance in minor units")


class CloseAccountRequest(BaseModel):
    user_id: str = Field(..., min_length=1, description="Owner ID")
    account_number: AccountNumber


class AccountResponse(BaseModel):
    user_id: str
    account_number: str
    balance: int
    status: str
    registered_at: datetime
    unregistered_at: Optional[datetime] = None

    @classmethod
    def from_summary(cls, summary: AccountSummary) -> 'AccountResponse':
        return cls(
            user_id=summary.owner_id,
            account_number=summary.account_number,
            balance=summary.balance,
            status=summary.status.value,
            registered_at=summary.opened_at,
            unregistered_at=summary.closed_at
        )


class AccountInfoResponse(BaseModel):
    account_number: str
    balance: int

    @classmethod
    def from_info(cls, info: AccountInfo) -> 'AccountInfoResponse':
        return cls(account_number=info.account_number, balance=info.balance)


# Transaction schemas
class UseBalanceRequest(BaseModel):
    user_id: str = Field(..., min_length=1, description="Owner ID")
    account_number: AccountNumber
    amount: int = Field(..., ge=10, le=1_000_000_000)


class CancelBalanceRequest(BaseModel):
    transaction_id: str = Field(..., min_length=1)
    account_number: AccountNumber
    amount: int = Field(..., ge=10, le=1_000_000_000)


class TransactionResponse(BaseModel):
    account_number: str
    transaction_type: str
    transaction_result: str
    transaction_id: str
    amount: int
    balance_snapshot: int
    transacted_at: datetime

    @classmethod
    def from_result(cls, result: TransactionResult) -> 'TransactionResponse':
        return cls(
            account_number=result.account_number,
            transaction_type=result.transaction_type.value,
            transaction_result=result.result.value,
            transaction_id=result.transaction_id,
            amount=result.amount,
            balance_snapshot=result.balance_snapshot,
            transacted_at=result.transacted_at
        )


class ErrorResponse(BaseModel):
    error_code: str
    error_message: str
