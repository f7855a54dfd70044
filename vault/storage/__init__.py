# vault/storage/__init__.py
"""
Storage backends for the persistent event journal.

Besides the append-only journal, a backend keeps withdrawal reservations:
a reservation is written before value leaves the vault and is released in
the same write that journals the Withdrawal event. Reservations still open
at load time count as debits.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Tuple
from pathlib import Path
from vault.core.types import Event


class StorageBackend(ABC):
    """Abstract base for all persistent journal implementations."""

    @abstractmethod
    def append(self, event: Event, release: Optional[str] = None) -> None:
        """Journal `event`; if `release` is given, drop that reservation in the same write."""

    @abstractmethod
    def load_events(self, vault_id: str) -> List[Event]:
        pass

    @abstractmethod
    def reserve(self, vault_id: str, account: str, amount: int) -> str:
        """Record a pending withdrawal and return its token."""

    @abstractmethod
    def release(self, token: str) -> bool:
        pass

    @abstractmethod
    def load_reservations(self, vault_id: str) -> List[Tuple[str, int]]:
        pass

    @abstractmethod
    def close(self) -> None:
        pass


def create_storage(uri: str) -> StorageBackend:
    if uri.startswith("sqlite://"):
        from .sqlite import SQLiteStorage
        # Extract everything after sqlite://
        raw_path = uri[len("sqlite://"):]
        if not raw_path:
            raise ValueError(f"Missing database path in storage URI: {uri}")
        return SQLiteStorage(Path(raw_path).resolve())

    raise ValueError(f"Unsupported storage URI: {uri}")


from .sqlite import SQLiteStorage

__all__ = ["StorageBackend", "create_storage", "SQLiteStorage"]
