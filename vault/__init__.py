# vault/__init__.py
"""
Vault — a minimal custodial ledger with a tamper-evident event journal.
Callers deposit value, withdraw up to their own balance, and every change is
recorded as a hash-chained Deposit/Withdrawal notification.
"""

__version__ = "0.1.0-dev"

from vault.chain.vault import Vault
from vault.core.errors import (
    CorruptJournal,
    InsufficientBalance,
    InvalidAmount,
    JournalWriteFailed,
    TransferFailed,
    VaultError,
)
from vault.core.types import Event
from vault.core.units import format_ether, parse_ether
from vault.verify.verifier import JournalVerifier

__all__ = [
    "Vault",
    "Event",
    "VaultError",
    "InvalidAmount",
    "InsufficientBalance",
    "TransferFailed",
    "JournalWriteFailed",
    "CorruptJournal",
    "JournalVerifier",
    "parse_ether",
    "format_ether",
]
