"""
Owner Directory Module

Holds the identities that own accounts. The ledger only needs to know
whether an owner exists; profile management lives elsewhere.
"""

from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Optional
import uuid

from .storage import StorageInterface, StorageRecord
from .logging_config import get_logger, log_action


@dataclass
class Owner(StorageRecord):
    """Account owner"""
    name: str

    def __post_init__(self):
        if not self.name or not self.name.strip():
            raise ValueError("Owner name is required")


class OwnerDirectory:
    """Looks up and registers owners"""

    def __init__(self, storage: StorageInterface):
        self.storage = storage
        self.table_name = "owners"
        self.logger = get_logger("ledger.owners")

    def create_owner(self, name: str) -> Owner:
        """Register a new owner"""
        now = datetime.now(timezone.utc)
        owner = Owner(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            name=name
        )
        self.storage.save(self.table_name, owner.id, owner.to_dict())

        log_action(
            self.logger, "info", "Owner created",
            action="create_owner", resource=f"owner:{owner.id}"
        )
        return owner

    def find_by_id(self, owner_id: str) -> Optional[Owner]:
        """Get owner by ID"""
        data = self.storage.load(self.table_name, owner_id)
        if data:
            return Owner.from_dict(data)
        return None
