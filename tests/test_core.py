# tests/test_core.py
import pytest
from datetime import datetime, timezone

from vault.core.types import Event
from vault.core.units import parse_ether, format_ether, WEI_PER_ETHER
from vault.core.canon import canonical_json, canonical_json_str
from vault.core.hashing import event_hash
from vault.core.errors import InsufficientBalance, InvalidAmount, VaultError


def utc_iso_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds")


@pytest.fixture
def sample_event():
    return Event(
        id="evt-000000",
        vault_id="vault-test",
        sequence=0,
        kind="Deposit",
        account="0xA11CE",
        amount=10 ** 18,
        timestamp=utc_iso_now(),
        prev_hash="",
    )


def test_event_immutable(sample_event):
    with pytest.raises(AttributeError):
        sample_event.amount = 99


def test_event_to_dict(sample_event):
    d = sample_event.to_dict()
    assert d["sequence"] == 0
    assert d["prev_hash"] == ""
    assert d["amount"] == "1000000000000000000"


def test_event_from_dict(sample_event):
    assert Event.from_dict(sample_event.to_dict()) == sample_event


def test_canonical_json_deterministic(sample_event):
    evt2 = Event(**sample_event.__dict__)  # same content, different object

    json1 = canonical_json(sample_event.to_dict())
    json2 = canonical_json(evt2.to_dict())

    assert json1 == json2
    assert b'"sequence":0' in json1


def test_canonical_json_sorting():
    messy = {
        "z": 1,
        "a": "hello",
        "nested": {"b": 2, "a": 1},
    }
    canon = canonical_json_str(messy)
    assert canon.index('"a":"hello"') < canon.index('"z":1')
    assert '{"a":1,"b":2}' in canon


def test_event_hash_changes_with_content(sample_event):
    other = Event(**{**sample_event.__dict__, "amount": 2 * 10 ** 18})
    assert event_hash(sample_event) != event_hash(other)
    assert len(event_hash(sample_event)) == 64


def test_parse_ether():
    assert parse_ether("1.0") == WEI_PER_ETHER
    assert parse_ether("0.5") == WEI_PER_ETHER // 2
    assert parse_ether("2") == 2 * WEI_PER_ETHER
    assert parse_ether("0") == 0
    assert parse_ether("0.000000000000000001") == 1


def test_parse_ether_large_value_is_exact():
    assert parse_ether("123456789012.123456789012345678") == 123456789012123456789012345678


@pytest.mark.parametrize("bad", ["abc", "", "1.0000000000000000001", "NaN", "Infinity"])
def test_parse_ether_rejects(bad):
    with pytest.raises(ValueError):
        parse_ether(bad)


def test_format_ether():
    assert format_ether(WEI_PER_ETHER) == "1.0"
    assert format_ether(3 * WEI_PER_ETHER // 2) == "1.5"
    assert format_ether(0) == "0.0"
    assert format_ether(1) == "0.000000000000000001"


def test_error_messages():
    assert str(InvalidAmount("Withdrawal amount must be greater than 0", 0)) == \
        "Withdrawal amount must be greater than 0"

    err = InsufficientBalance("0xA11CE", 2, 3)
    assert str(err) == "Insufficient balance"
    assert err.shortfall == 1
    assert err.details == {"account": "0xA11CE", "balance": 2, "requested": 3}
    assert isinstance(err, VaultError)
