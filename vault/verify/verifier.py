# vault/verify/verifier.py
from typing import Dict, List, Optional
from dataclasses import dataclass

from vault.core.types import Event, DEPOSIT, WITHDRAWAL
from vault.core.hashing import event_hash
from vault.storage import StorageBackend


@dataclass
class VerificationFailure:
    index: int
    message: str
    category: str = "general"  # e.g. "hash_chain", "sequence", "vault", "amount", "balance", "state"


@dataclass
class VerificationResult:
    is_valid: bool
    message: str = ""
    failures: List[VerificationFailure] = None
    balances: Dict[str, int] = None
    total: int = 0

    def __post_init__(self):
        if self.failures is None:
            self.failures = []
        if self.balances is None:
            self.balances = {}

    @property
    def first_failure(self) -> Optional[VerificationFailure]:
        return self.failures[0] if self.failures else None

    def __bool__(self):
        return self.is_valid

    def __str__(self):
        if self.is_valid:
            return "Journal is valid ✓"
        lines = [f"Verification FAILED ({len(self.failures)} issues):"]
        for f in self.failures:
            lines.append(f"  • [{f.index}] {f.category}: {f.message}")
        return "\n".join(lines)


class JournalVerifier:
    """
    Offline verifier for vault event journals.
    Checks the hash chain, then replays deposits/withdrawals to confirm no
    balance ever went negative and the total matches the sum of balances.
    """

    def verify(
        self,
        journal: List[Event],
        expected_balances: Optional[Dict[str, int]] = None,
        expected_total: Optional[int] = None,
    ) -> VerificationResult:
        """Core verification logic over a loaded journal."""
        if not journal:
            result = VerificationResult(True, "Empty journal is valid")
            self._compare_state(result, expected_balances, expected_total)
            if not result.is_valid:
                result.message = f"Failed with {len(result.failures)} issues"
            return result

        result = VerificationResult(True)

        # 1. Vault & sequence consistency
        vault_id = journal[0].vault_id
        for i, event in enumerate(journal):
            if event.vault_id != vault_id:
                result.failures.append(VerificationFailure(i, f"Vault mismatch: {event.vault_id}", "vault"))
                result.is_valid = False
            if event.sequence != i:
                result.failures.append(VerificationFailure(i, f"Sequence mismatch: expected {i}, got {event.sequence}", "sequence"))
                result.is_valid = False

        if not result.is_valid:
            return result

        # 2. Hash chain
        if journal[0].prev_hash != "":
            result.failures.append(VerificationFailure(0, "First event must have empty prev_hash", "hash_chain"))
            result.is_valid = False
        for i in range(1, len(journal)):
            if journal[i].prev_hash != event_hash(journal[i - 1]):
                result.failures.append(VerificationFailure(i, "prev_hash does not match previous event hash", "hash_chain"))
                result.is_valid = False

        # 3. Replay
        balances: Dict[str, int] = {}
        total = 0
        for i, event in enumerate(journal):
            current = balances.get(event.account, 0)
            if event.kind == DEPOSIT:
                if event.amount < 0:
                    result.failures.append(VerificationFailure(i, f"Negative deposit: {event.amount}", "amount"))
                    result.is_valid = False
                    continue
                balances[event.account] = current + event.amount
                total += event.amount
            elif event.kind == WITHDRAWAL:
                if event.amount <= 0:
                    result.failures.append(VerificationFailure(i, f"Non-positive withdrawal: {event.amount}", "amount"))
                    result.is_valid = False
                    continue
                if event.amount > current:
                    result.failures.append(VerificationFailure(
                        i, f"Withdrawal of {event.amount} exceeds balance {current} of {event.account}", "balance"))
                    result.is_valid = False
                    continue
                balances[event.account] = current - event.amount
                total -= event.amount
            else:
                result.failures.append(VerificationFailure(i, f"Unknown event kind: {event.kind}", "amount"))
                result.is_valid = False

        result.balances = {a: b for a, b in balances.items() if b}
        result.total = total

        self._compare_state(result, expected_balances, expected_total)

        result.message = "Valid journal" if result.is_valid else f"Failed with {len(result.failures)} issues"
        return result

    def _compare_state(self, result, expected_balances, expected_total) -> None:
        if expected_balances is not None:
            wanted = {a: b for a, b in expected_balances.items() if b}
            if wanted != result.balances:
                result.failures.append(VerificationFailure(-1, "Replayed balances differ from expected", "state"))
                result.is_valid = False
        if expected_total is not None and expected_total != result.total:
            result.failures.append(VerificationFailure(
                -1, f"Replayed total {result.total} differs from expected {expected_total}", "state"))
            result.is_valid = False

    def verify_from_storage(self, vault_id: str, storage: StorageBackend) -> VerificationResult:
        """
        Load events from persistent storage and verify the journal.
        Returns a failed result (category "storage") if loading fails.
        """
        try:
            journal = storage.load_events(vault_id)
        except Exception as e:
            return VerificationResult(
                False,
                f"Failed to load vault '{vault_id}' from storage: {str(e)}",
                [VerificationFailure(-1, str(e), "storage")]
            )

        return self.verify(journal)
