"""
Test suite for accounts module

Tests account records, the account store, account number assignment and
the open/close lifecycle rules.
"""

import pytest
from datetime import datetime, timezone

from balance_ledger.storage import InMemoryStorage
from balance_ledger.owners import OwnerDirectory, Owner
from balance_ledger.accounts import (
    Account, AccountStatus, AccountStore, AccountManager, AccountInfo
)
from balance_ledger.errors import (
    OwnerNotFound, AccountNotFound, OwnerAccountMismatch, AccountAlreadyClosed,
    MaxAccountsPerOwnerExceeded, AccountBalanceNotEmpty
)


class TestAccount:
    """Test the Account record"""

    def test_negative_balance_rejected(self):
        now = datetime.now(timezone.utc)
        with pytest.raises(ValueError):
            Account(
                id="acc-1", created_at=now, updated_at=now,
                account_number="1000000000", owner_id="owner-1",
                balance=-1, opened_at=now
            )

    def test_dict_round_trip(self):
        now = datetime.now(timezone.utc)
        account = Account(
            id="acc-1", created_at=now, updated_at=now,
            account_number="1000000000", owner_id="owner-1",
            balance=500, opened_at=now, status=AccountStatus.CLOSED, closed_at=now
        )

        data = account.to_dict()
        assert data["status"] == "closed"
        assert data["closed_at"] == now.isoformat()

        restored = Account.from_dict(data)
        assert restored == account


class TestOwnerDirectory:
    """Test owner lookup"""

    def test_create_and_find_owner(self):
        directory = OwnerDirectory(InMemoryStorage())
        owner = directory.create_owner("pobi")

        found = directory.find_by_id(owner.id)
        assert isinstance(found, Owner)
        assert found.name == "pobi"
        assert directory.find_by_id("missing") is None

    def test_blank_name_rejected(self):
        directory = OwnerDirectory(InMemoryStorage())
        with pytest.raises(ValueError):
            directory.create_owner("  ")


class TestAccountManager:
    """Test account lifecycle management"""

    def setup_method(self):
        """Set up test fixtures"""
        self.storage = InMemoryStorage()
        self.owner_directory = OwnerDirectory(self.storage)
        self.account_store = AccountStore(self.storage)
        self.account_manager = AccountManager(
            self.storage, self.owner_directory, self.account_store,
            max_accounts_per_owner=3, account_number_seed="1000000000"
        )
        self.owner = self.owner_directory.create_owner("pobi")

    def test_first_account_gets_seed_number(self):
        summary = self.account_manager.create_account(self.owner.id, 1000)

        assert summary.account_number == "1000000000"
        assert summary.owner_id == self.owner.id
        assert summary.balance == 1000
        assert summary.status == AccountStatus.ACTIVE
        assert summary.closed_at is None

        stored = self.account_store.find_by_number("1000000000")
        assert stored.balance == 1000
        assert stored.is_active

    def test_account_numbers_increment(self):
        first = self.account_manager.create_account(self.owner.id, 0)
        second = self.account_manager.create_account(self.owner.id, 0)

        assert first.account_number == "1000000000"
        assert second.account_number == "1000000001"

    def test_next_number_follows_highest_existing(self):
        now = datetime.now(timezone.utc)
        self.account_store.save(Account(
            id="imported", created_at=now, updated_at=now,
            account_number="0000000041", owner_id="someone-else",
            balance=0, opened_at=now
        ))

        summary = self.account_manager.create_account(self.owner.id, 0)

        assert summary.account_number == "0000000042"

    def test_create_account_owner_not_found(self):
        with pytest.raises(OwnerNotFound):
            self.account_manager.create_account("missing", 1000)

        assert self.storage.count("accounts") == 0

    def test_max_accounts_per_owner(self):
        for _ in range(3):
            self.account_manager.create_account(self.owner.id, 0)

        with pytest.raises(MaxAccountsPerOwnerExceeded):
            self.account_manager.create_account(self.owner.id, 0)

        assert len(self.account_store.find_by_owner(self.owner.id)) == 3

    def test_close_account_success(self):
        summary = self.account_manager.create_account(self.owner.id, 0)

        closed = self.account_manager.close_account(self.owner.id, summary.account_number)

        assert closed.status == AccountStatus.CLOSED
        assert closed.closed_at is not None
        stored = self.account_store.find_by_number(summary.account_number)
        assert stored.status == AccountStatus.CLOSED

    def test_close_account_not_found(self):
        with pytest.raises(AccountNotFound):
            self.account_manager.close_account(self.owner.id, "9999999999")

    def test_close_account_owner_mismatch(self):
        summary = self.account_manager.create_account(self.owner.id, 0)
        other = self.owner_directory.create_owner("rupi")

        with pytest.raises(OwnerAccountMismatch):
            self.account_manager.close_account(other.id, summary.account_number)

    def test_close_account_already_closed(self):
        summary = self.account_manager.create_account(self.owner.id, 0)
        self.account_manager.close_account(self.owner.id, summary.account_number)

        with pytest.raises(AccountAlreadyClosed):
            self.account_manager.close_account(self.owner.id, summary.account_number)

    def test_close_account_balance_not_empty(self):
        summary = self.account_manager.create_account(self.owner.id, 100)

        with pytest.raises(AccountBalanceNotEmpty):
            self.account_manager.close_account(self.owner.id, summary.account_number)

        assert self.account_store.find_by_number(summary.account_number).is_active

    def test_get_accounts_by_owner(self):
        self.account_manager.create_account(self.owner.id, 100)
        self.account_manager.create_account(self.owner.id, 200)
        other = self.owner_directory.create_owner("rupi")
        self.account_manager.create_account(other.id, 300)

        accounts = self.account_manager.get_accounts_by_owner(self.owner.id)

        assert accounts == [
            AccountInfo(account_number="1000000000", balance=100),
            AccountInfo(account_number="1000000001", balance=200),
        ]

    def test_get_accounts_owner_not_found(self):
        with pytest.raises(OwnerNotFound):
            self.account_manager.get_accounts_by_owner("missing")
