# vault/chain/vault.py
import re
from typing import Callable, Dict, List, Optional, Union
from dataclasses import dataclass, field
from datetime import datetime, timezone

from vault.config import DEFAULT_VAULT_ID
from vault.core.types import Event, EventKind, DEPOSIT, WITHDRAWAL
from vault.core.errors import (
    CorruptJournal,
    InsufficientBalance,
    InvalidAmount,
    JournalWriteFailed,
    TransferFailed,
)
from vault.core.hashing import event_hash
from vault.core.logging import get_logger
from vault.storage import StorageBackend, create_storage

logger = get_logger("chain")

Payout = Callable[[str, int], None]
Listener = Callable[[Event], None]

# URI scheme ("sqlite://..."), not a drive letter ("C:\\...")
_URI_SCHEME = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]+:")


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _is_amount(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass
class Vault:
    """
    Custodial ledger: per-account balances plus the running total of deposits.

    Balances and total are only ever changed together, inside deposit() and
    withdraw(), so the total always equals the sum of balances. Every successful
    mutation is journaled as a hash-chained Event and pushed to subscribers.
    Supports optional persistent storage (SQLite) that is replayed on startup.
    """
    vault_id: str = DEFAULT_VAULT_ID
    storage: Optional[Union[StorageBackend, str]] = None
    payout: Optional[Payout] = None
    clock: Callable[[], str] = utc_now

    _balances: Dict[str, int] = field(default_factory=dict, init=False, repr=False)
    _total: int = field(default=0, init=False, repr=False)
    _events: List[Event] = field(default_factory=list, init=False, repr=False)
    _listeners: List[Listener] = field(default_factory=list, init=False, repr=False)

    def __post_init__(self):
        owned = isinstance(self.storage, str)
        if owned:
            stripped = self.storage.strip()
            if _URI_SCHEME.match(stripped):
                self.storage = create_storage(stripped)
            elif stripped:
                # Plain file path → auto-convert to SQLite URI
                self.storage = create_storage(f"sqlite://{stripped}")
            else:
                self.storage = None

        if self.storage:
            try:
                self._load()
            except BaseException:
                if owned:
                    self.storage.close()
                raise

    def _load(self) -> None:
        """Replay the stored journal, then re-apply withdrawals that never got journaled."""
        loaded = self.storage.load_events(self.vault_id)
        for index, event in enumerate(loaded):
            if event.sequence != index or event.vault_id != self.vault_id:
                raise CorruptJournal(
                    f"Event {event.vault_id}/{event.sequence} out of place at position {index}",
                    event.sequence,
                )
            self._replay(event)
        self._events = loaded

        # Withdrawals whose journal entry never landed stay debited
        for account, amount in self.storage.load_reservations(self.vault_id):
            if not 0 < amount <= self.get_balance(account):
                raise CorruptJournal(
                    f"Cannot apply pending withdrawal of {amount} for {account}", len(loaded)
                )
            self._debit(account, amount)
        logger.info("Loaded %d events for vault %s", len(loaded), self.vault_id)

    # ── queries

    def get_balance(self, account: str) -> int:
        return self._balances.get(account, 0)

    def get_total_deposits(self) -> int:
        return self._total

    @property
    def balances(self) -> Dict[str, int]:
        """Copy of the non-zero balances."""
        return dict(self._balances)

    @property
    def events(self) -> List[Event]:
        """Copy of the full event journal."""
        return self._events.copy()

    @property
    def length(self) -> int:
        return len(self._events)

    def get_last_hash(self) -> Optional[str]:
        if not self._events:
            return None
        return event_hash(self._events[-1])

    # ── notifications

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        self._listeners.remove(listener)

    # ── mutations

    def deposit(self, caller: str, amount: int) -> Event:
        """
        Credit `amount` (the value sent with the call) to `caller`.
        Zero is accepted and still emits a Deposit event.
        With storage active the event is written first; if that fails,
        JournalWriteFailed is raised and nothing is credited.
        """
        if not _is_amount(amount) or amount < 0:
            raise InvalidAmount("Deposit amount must be a non-negative integer", amount)

        event = self._record(DEPOSIT, caller, amount)
        self._credit(caller, amount)
        logger.debug("Deposit %s -> %s", amount, caller)
        self._notify(event)
        return event

    def withdraw(self, caller: str, amount: int) -> Event:
        """
        Debit `amount` from `caller` and hand it back through the payout.

        The debit is applied before the payout runs, so a payout that re-enters
        the vault sees the reduced balance. If the payout raises, the debit is
        reversed and TransferFailed is raised; no event is emitted.

        With storage active, a reservation for the debit is persisted before
        the payout and released by the same write that journals the
        Withdrawal. Value never leaves without a durable record of the debit.
        """
        if not _is_amount(amount) or amount <= 0:
            logger.warning("Rejected withdrawal of %r by %s: invalid amount", amount, caller)
            raise InvalidAmount("Withdrawal amount must be greater than 0", amount)

        balance = self.get_balance(caller)
        if balance < amount:
            logger.warning("Rejected withdrawal of %s by %s: balance is %s", amount, caller, balance)
            raise InsufficientBalance(caller, balance, amount)

        self._debit(caller, amount)

        token = None
        if self.storage:
            try:
                token = self.storage.reserve(self.vault_id, caller, amount)
            except Exception as e:
                self._credit(caller, amount)
                raise JournalWriteFailed(caller, amount, e) from e

        if self.payout is not None:
            try:
                self.payout(caller, amount)
            except BaseException as e:
                self._credit(caller, amount)
                if token is not None:
                    self._release(token)
                if not isinstance(e, Exception):
                    raise
                logger.warning("Payout of %s to %s failed, withdrawal reverted: %s", amount, caller, e)
                raise TransferFailed(caller, amount, e) from e

        try:
            event = self._record(WITHDRAWAL, caller, amount, release=token)
        except JournalWriteFailed:
            # Paid out: the open reservation keeps the debit across restarts
            logger.error("Withdrawal of %s by %s paid out but not journaled", amount, caller)
            raise

        logger.debug("Withdrawal %s <- %s", amount, caller)
        self._notify(event)
        return event

    def _credit(self, account: str, amount: int) -> None:
        self._balances[account] = self._balances.get(account, 0) + amount
        self._total += amount
        if self._balances[account] == 0:
            del self._balances[account]

    def _debit(self, account: str, amount: int) -> None:
        remaining = self._balances.get(account, 0) - amount
        if remaining:
            self._balances[account] = remaining
        else:
            self._balances.pop(account, None)
        self._total -= amount

    def _release(self, token: str) -> None:
        try:
            self.storage.release(token)
        except Exception as e:
            # Left open, the reservation is re-applied as a debit on the next load
            logger.error("Could not release reservation %s: %s", token, e)

    def _replay(self, event: Event) -> None:
        if event.kind == DEPOSIT and event.amount >= 0:
            self._credit(event.account, event.amount)
        elif event.kind == WITHDRAWAL and 0 < event.amount <= self.get_balance(event.account):
            self._debit(event.account, event.amount)
        else:
            raise CorruptJournal(
                f"Cannot replay {event.kind} of {event.amount} for {event.account}",
                event.sequence,
            )

    def _record(self, kind: EventKind, account: str, amount: int, release: Optional[str] = None) -> Event:
        """Build the next event and journal it, persisting first when storage is active."""
        event = Event(
            id=f"evt-{self.length:06d}",
            vault_id=self.vault_id,
            sequence=self.length,
            kind=kind,
            account=account,
            amount=amount,
            timestamp=self.clock(),
            prev_hash=self.get_last_hash() or "",
        )

        if self.storage:
            try:
                self.storage.append(event, release=release)
            except Exception as e:
                logger.warning("Failed to persist event %d: %s", event.sequence, e)
                raise JournalWriteFailed(account, amount, e) from e

        self._events.append(event)
        return event

    def _notify(self, event: Event) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Listener %r failed on event %d", listener, event.sequence)

    def close(self) -> None:
        """Release any storage resources (e.g. database connection)."""
        if self.storage:
            try:
                self.storage.close()
                logger.info("Storage closed for vault %s", self.vault_id)
            except Exception as e:
                logger.warning("Error closing storage: %s", e)
            self.storage = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
