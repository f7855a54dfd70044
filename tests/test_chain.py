# tests/test_chain.py
import pytest

from vault.chain.vault import Vault
from vault.core.errors import InsufficientBalance, InvalidAmount, TransferFailed
from vault.core.hashing import event_hash
from vault.core.units import parse_ether

ALICE = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"
BOB = "0x3C44CdDdB6a900fa2b585dd299e03d12FA4293BC"


def fixed_clock():
    return "2026-01-31T14:00:00.000Z"


@pytest.fixture
def vault():
    return Vault(vault_id="chain-test", clock=fixed_clock)


@pytest.fixture
def funded(vault):
    """ALICE holds 2 ETH."""
    vault.deposit(ALICE, parse_ether("2.0"))
    return vault


def assert_conserved(v: Vault):
    assert sum(v.balances.values()) == v.get_total_deposits()
    assert all(b >= 0 for b in v.balances.values())


def test_vault_starts_empty(vault):
    assert vault.length == 0
    assert vault.get_last_hash() is None
    assert vault.get_balance(ALICE) == 0
    assert vault.get_total_deposits() == 0


# ── deposits

def test_deposit_credits_and_emits(vault):
    seen = []
    vault.subscribe(seen.append)

    event = vault.deposit(ALICE, parse_ether("1.0"))

    assert vault.get_balance(ALICE) == parse_ether("1.0")
    assert vault.get_total_deposits() == parse_ether("1.0")
    assert (event.kind, event.account, event.amount) == ("Deposit", ALICE, parse_ether("1.0"))
    assert seen == [event]


def test_multiple_deposits_accumulate(vault):
    vault.deposit(ALICE, parse_ether("1.0"))
    vault.deposit(ALICE, parse_ether("0.5"))
    assert vault.get_balance(ALICE) == parse_ether("1.5")


def test_balances_tracked_per_account(vault):
    vault.deposit(ALICE, parse_ether("1.0"))
    vault.deposit(BOB, parse_ether("2.0"))

    assert vault.get_balance(ALICE) == parse_ether("1.0")
    assert vault.get_balance(BOB) == parse_ether("2.0")
    assert vault.get_total_deposits() == parse_ether("3.0")
    assert_conserved(vault)


def test_zero_deposit_is_accepted(vault):
    event = vault.deposit(ALICE, 0)
    assert event.amount == 0
    assert vault.get_balance(ALICE) == 0
    assert vault.balances == {}


@pytest.mark.parametrize("amount", [-1, 1.5, "1", True, None])
def test_malformed_deposit_rejected(vault, amount):
    with pytest.raises(InvalidAmount):
        vault.deposit(ALICE, amount)
    assert vault.length == 0
    assert vault.get_total_deposits() == 0


# ── withdrawals

def test_partial_withdrawal(funded):
    seen = []
    funded.subscribe(seen.append)

    event = funded.withdraw(ALICE, parse_ether("1.0"))

    assert funded.get_balance(ALICE) == parse_ether("1.0")
    assert funded.get_total_deposits() == parse_ether("1.0")
    assert (event.kind, event.account, event.amount) == ("Withdrawal", ALICE, parse_ether("1.0"))
    assert seen == [event]


def test_full_balance_can_be_withdrawn(funded):
    event = funded.withdraw(ALICE, parse_ether("2.0"))

    assert event.amount == parse_ether("2.0")
    assert funded.get_balance(ALICE) == 0
    assert funded.get_total_deposits() == 0


def test_overdraw_rejected(funded):
    seen = []
    funded.subscribe(seen.append)

    with pytest.raises(InsufficientBalance, match="Insufficient balance") as exc:
        funded.withdraw(ALICE, parse_ether("3.0"))

    assert exc.value.balance == parse_ether("2.0")
    assert funded.get_balance(ALICE) == parse_ether("2.0")
    assert funded.get_total_deposits() == parse_ether("2.0")
    assert seen == []


def test_overdraw_by_one_wei_rejected(funded):
    with pytest.raises(InsufficientBalance):
        funded.withdraw(ALICE, parse_ether("2.0") + 1)
    assert funded.get_balance(ALICE) == parse_ether("2.0")


def test_unfunded_account_cannot_withdraw(funded):
    with pytest.raises(InsufficientBalance):
        funded.withdraw(BOB, 1)


@pytest.mark.parametrize("amount", [0, -1])
def test_non_positive_withdrawal_rejected(funded, amount):
    with pytest.raises(InvalidAmount, match="Withdrawal amount must be greater than 0"):
        funded.withdraw(ALICE, amount)
    assert funded.length == 1


def test_zero_withdrawal_checked_before_balance(vault):
    # Unfunded account: amount check comes first
    with pytest.raises(InvalidAmount):
        vault.withdraw(BOB, 0)


def test_conservation_over_mixed_sequence(vault):
    steps = [
        ("deposit", ALICE, 5), ("deposit", BOB, 7), ("withdraw", ALICE, 5),
        ("withdraw", BOB, 3), ("deposit", ALICE, 1), ("withdraw", BOB, 4),
    ]
    for op, who, amount in steps:
        getattr(vault, op)(who, amount)
        assert_conserved(vault)

    assert vault.balances == {ALICE: 1}
    assert vault.get_total_deposits() == 1


# ── payout / reentrancy

def test_payout_receives_withdrawal(vault):
    paid = []
    v = Vault(vault_id="payout", payout=lambda acct, amt: paid.append((acct, amt)))
    v.deposit(ALICE, 10)
    v.withdraw(ALICE, 4)
    assert paid == [(ALICE, 4)]


def test_state_debited_before_payout():
    observed = []
    v = Vault(vault_id="cei")
    v.payout = lambda acct, amt: observed.append((v.get_balance(acct), v.get_total_deposits()))
    v.deposit(ALICE, 10)

    v.withdraw(ALICE, 10)

    assert observed == [(0, 0)]


def test_reentrant_withdraw_sees_reduced_balance():
    v = Vault(vault_id="reentry")
    attempts = []

    def greedy_payout(acct, amt):
        # Try to drain again while the first withdrawal is in flight
        if len(attempts) < 1:
            attempts.append(amt)
            with pytest.raises(InsufficientBalance):
                v.withdraw(acct, amt)

    v.payout = greedy_payout
    v.deposit(ALICE, 10)
    v.withdraw(ALICE, 10)

    assert attempts == [10]
    assert v.get_balance(ALICE) == 0
    assert v.get_total_deposits() == 0
    assert [e.kind for e in v.events] == ["Deposit", "Withdrawal"]


def test_reentrant_partial_withdraws_stay_conserved():
    v = Vault(vault_id="reentry-partial")
    depth = []

    def payout(acct, amt):
        if not depth:
            depth.append(amt)
            v.withdraw(acct, 3)

    v.payout = payout
    v.deposit(ALICE, 10)
    v.withdraw(ALICE, 5)

    assert v.get_balance(ALICE) == 2
    assert_conserved(v)
    # Inner withdrawal completes first
    assert [e.amount for e in v.events] == [10, 3, 5]


def test_failed_payout_rolls_back():
    def broken(acct, amt):
        raise ConnectionError("recipient rejected value")

    v = Vault(vault_id="broken", payout=broken)
    v.deposit(ALICE, 10)
    seen = []
    v.subscribe(seen.append)

    with pytest.raises(TransferFailed, match="recipient rejected value") as exc:
        v.withdraw(ALICE, 6)

    assert isinstance(exc.value.__cause__, ConnectionError)
    assert v.get_balance(ALICE) == 10
    assert v.get_total_deposits() == 10
    assert v.length == 1
    assert seen == []


@pytest.mark.parametrize("interrupt", [KeyboardInterrupt, SystemExit])
def test_interrupted_payout_rolls_back_and_propagates(interrupt):
    def stopped(acct, amt):
        raise interrupt()

    v = Vault(vault_id="stopped", payout=stopped)
    v.deposit(ALICE, 10)

    with pytest.raises(interrupt):
        v.withdraw(ALICE, 6)

    assert v.get_balance(ALICE) == 10
    assert v.get_total_deposits() == 10
    assert v.length == 1
    assert_conserved(v)


# ── notifications / journal

def test_unsubscribe_stops_delivery(vault):
    seen = []
    vault.subscribe(seen.append)
    vault.deposit(ALICE, 1)
    vault.unsubscribe(seen.append)
    vault.deposit(ALICE, 1)
    assert len(seen) == 1


def test_failing_listener_does_not_undo_deposit(vault):
    def bad_listener(event):
        raise RuntimeError("watcher crashed")

    vault.subscribe(bad_listener)
    vault.deposit(ALICE, 5)
    assert vault.get_balance(ALICE) == 5
    assert vault.length == 1


def test_journal_links_hashes(funded):
    funded.withdraw(ALICE, parse_ether("1.0"))

    journal = funded.events
    assert len(journal) == 2
    assert journal[0].prev_hash == ""
    assert journal[1].prev_hash == event_hash(journal[0])
    assert [e.sequence for e in journal] == [0, 1]
    assert [e.id for e in journal] == ["evt-000000", "evt-000001"]
    assert funded.get_last_hash() == event_hash(journal[1])


def test_events_returns_copy(funded):
    funded.events.clear()
    assert funded.length == 1
