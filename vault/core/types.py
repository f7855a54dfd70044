# vault/core/types.py
from dataclasses import dataclass, asdict
from typing import Literal

EventKind = Literal["Deposit", "Withdrawal"]

DEPOSIT: EventKind = "Deposit"
WITHDRAWAL: EventKind = "Withdrawal"


@dataclass(frozen=True)
class Event:
    """Notification emitted once per successful deposit or withdrawal."""
    id: str                         # evt-000000, derived from sequence
    vault_id: str
    sequence: int
    kind: EventKind
    account: str                    # opaque account handle, e.g. "0xabc..."
    amount: int                     # wei
    timestamp: str                  # ISO 8601 UTC with millis
    prev_hash: str = ""             # hex(sha256) or empty for first event

    def to_dict(self) -> dict:
        """Helper for canonicalization / hashing. Amount goes out as a string."""
        d = asdict(self)
        d["amount"] = str(self.amount)
        return d

    @classmethod
    def from_dict(cls, data: dict) -> "Event":
        return cls(
            id=data["id"],
            vault_id=data["vault_id"],
            sequence=int(data["sequence"]),
            kind=data["kind"],
            account=data["account"],
            amount=int(data["amount"]),
            timestamp=data["timestamp"],
            prev_hash=data.get("prev_hash", ""),
        )
