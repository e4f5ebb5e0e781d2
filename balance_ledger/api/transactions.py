"""
Transaction endpoints
"""

from fastapi import APIRouter, Depends

from .deps import LedgerSystem, get_ledger_system
from .schemas import UseBalanceRequest, CancelBalanceRequest, TransactionResponse


router = APIRouter()


@router.post("/use", response_model=TransactionResponse)
async def use_balance(
    request: UseBalanceRequest,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Debit an account"""
    result = system.transaction_service.use_balance(
        owner_id=request.user_id,
        account_number=request.account_number,
        amount=request.amount
    )
    return TransactionResponse.from_result(result)


@router.post("/cancel", response_model=TransactionResponse)
async def cancel_balance(
    request: CancelBalanceRequest,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Cancel a prior debit in full"""
    result = system.transaction_service.cancel_balance(
        transaction_id=request.transaction_id,
        account_number=request.account_number,
        amount=request.amount
    )
    return TransactionResponse.from_result(result)


@router.get("/{transaction_id}", response_model=TransactionResponse)
async def query_transaction(
    transaction_id: str,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Get a transaction with its balance snapshot"""
    result = system.transaction_service.query_transaction(transaction_id)
    return TransactionResponse.from_result(result)
