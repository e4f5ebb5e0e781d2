"""
Owner and account endpoints
"""

from typing import List

from fastapi import APIRouter, Depends, Query, status

from .deps import LedgerSystem, get_ledger_system
from .schemas import (
    CreateOwnerRequest, OwnerResponse, CreateAccountRequest, CloseAccountRequest,
    AccountResponse, AccountInfoResponse, TransactionResponse
)


router = APIRouter()


@router.post("/owners", response_model=OwnerResponse, status_code=status.HTTP_201_CREATED)
async def create_owner(
    request: CreateOwnerRequest,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Register an account owner"""
    owner = system.owner_directory.create_owner(request.name)
    return OwnerResponse(owner_id=owner.id, name=owner.name)


@router.post("/account", response_model=AccountResponse)
async def create_account(
    request: CreateAccountRequest,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Open an account"""
    summary = system.account_manager.create_account(request.user_id, request.initial_balance)
    return AccountResponse.from_summary(summary)


@router.delete("/account", response_model=AccountResponse)
async def close_account(
    request: CloseAccountRequest,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Close an account"""
    summary = system.account_manager.close_account(request.user_id, request.account_number)
    return AccountResponse.from_summary(summary)


@router.get("/account", response_model=List[AccountInfoResponse])
async def get_accounts(
    user_id: str = Query(..., min_length=1),
    system: LedgerSystem = Depends(get_ledger_system)
):
    """List an owner's accounts"""
    return [
        AccountInfoResponse.from_info(info)
        for info in system.account_manager.get_accounts_by_owner(user_id)
    ]


@router.get("/account/{account_number}/transactions", response_model=List[TransactionResponse])
async def get_account_transactions(
    account_number: str,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """List an account's ledger entries, oldest first"""
    return [
        TransactionResponse.from_result(result)
        for result in system.transaction_service.list_transactions(account_number)
    ]
