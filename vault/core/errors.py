# vault/core/errors.py
"""
Error taxonomy for the vault.

Every error aborts its operation atomically: the caller gets the exception and
the vault state is exactly what it was before the call.
"""

from typing import Any, Dict, Optional


class VaultError(Exception):
    """Base class for all vault errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        return self.message


class InvalidAmount(VaultError):
    """Amount is not a usable value (zero or negative withdrawal, malformed deposit)."""

    def __init__(self, message: str, amount: Any = None):
        super().__init__(message, {"amount": amount})
        self.amount = amount


class InsufficientBalance(VaultError):
    """Withdrawal requested for more than the account holds."""

    def __init__(self, account: str, balance: int, requested: int):
        super().__init__(
            "Insufficient balance",
            {"account": account, "balance": balance, "requested": requested},
        )
        self.account = account
        self.balance = balance
        self.requested = requested

    @property
    def shortfall(self) -> int:
        return self.requested - self.balance


class TransferFailed(VaultError):
    """Outbound payout raised; the withdrawal was rolled back."""

    def __init__(self, account: str, amount: int, cause: Exception):
        super().__init__(
            f"Transfer to {account} failed: {cause}",
            {"account": account, "amount": amount},
        )
        self.account = account
        self.amount = amount


class JournalWriteFailed(VaultError):
    """The event journal could not be written; the operation was not recorded."""

    def __init__(self, account: str, amount: int, cause: Exception):
        super().__init__(
            f"Could not record operation for {account}: {cause}",
            {"account": account, "amount": amount},
        )
        self.account = account
        self.amount = amount


class CorruptJournal(VaultError):
    """Stored events cannot be replayed into a valid state."""

    def __init__(self, message: str, sequence: int):
        super().__init__(message, {"sequence": sequence})
        self.sequence = sequence
