# examples/vault_demo.py
# Run with: poetry run python examples/vault_demo.py
#
# Walks through deposits, a full drain, a rejected overdraw and a re-entrant
# payout, then verifies the persisted journal.

from pathlib import Path
from tempfile import TemporaryDirectory

from vault import (
    InsufficientBalance,
    JournalVerifier,
    Vault,
    format_ether,
    parse_ether,
)
from vault.storage import SQLiteStorage


ALICE = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"
BOB = "0x3C44CdDdB6a900fa2b585dd299e03d12FA4293BC"


def show(v: Vault, label: str):
    print(f"{label:<28} alice={format_ether(v.get_balance(ALICE)):<6} "
          f"bob={format_ether(v.get_balance(BOB)):<6} "
          f"total={format_ether(v.get_total_deposits())}")


if __name__ == "__main__":
    with TemporaryDirectory() as tmp:
        db = Path(tmp) / "demo.db"

        v = Vault(vault_id="demo", storage=str(db))
        v.subscribe(lambda e: print(f"  ↳ {e.kind}({e.account[:8]}…, {format_ether(e.amount)})"))

        v.deposit(ALICE, parse_ether("1.0"))
        v.deposit(ALICE, parse_ether("0.5"))
        v.deposit(BOB, parse_ether("2.0"))
        show(v, "after deposits")

        v.withdraw(ALICE, parse_ether("1.5"))
        show(v, "alice drained")

        try:
            v.withdraw(BOB, parse_ether("3.0"))
        except InsufficientBalance as e:
            print(f"  rejected: {e} (shortfall {format_ether(e.shortfall)} ETH)")

        # A payout that tries to withdraw again before the first call returns
        def greedy(account, amount):
            try:
                v.withdraw(account, amount)
            except InsufficientBalance:
                print("  re-entrant withdrawal blocked: balance already debited")

        v.payout = greedy
        v.withdraw(BOB, parse_ether("2.0"))
        v.payout = None
        show(v, "bob drained")
        v.close()

        with SQLiteStorage(db) as storage:
            result = JournalVerifier().verify_from_storage("demo", storage)
        print(result)
