"""
Component wiring and FastAPI dependencies
"""

from typing import Optional

from ..storage import StorageInterface, create_storage
from ..owners import OwnerDirectory
from ..accounts import AccountManager, AccountStore
from ..transactions import TransactionService, TransactionStore
from ..config import get_config


class LedgerSystem:
    """Ledger components sharing one storage backend"""

    def __init__(self, storage: Optional[StorageInterface] = None):
        config = get_config()
        self.storage = storage or create_storage(config.database_url)

        self.owner_directory = OwnerDirectory(self.storage)
        self.account_store = AccountStore(self.storage)
        self.transaction_store = TransactionStore(self.storage)
        self.account_manager = AccountManager(
            self.storage, self.owner_directory, self.account_store
        )
        self.transaction_service = TransactionService(
            self.storage, self.owner_directory, self.account_store, self.transaction_store
        )

    def close(self) -> None:
        self.storage.close()


_ledger_system: Optional[LedgerSystem] = None


def get_ledger_system() -> LedgerSystem:
    """Return the process-wide ledger system, creating it on first use"""
    global _ledger_system
    if _ledger_system is None:
        _ledger_system = LedgerSystem()
    return _ledger_system
