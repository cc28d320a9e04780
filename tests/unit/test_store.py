"""Unit tests for ledger persistence."""
import json
import pytest
from stake_ledger.core.errors import CorruptStateError
from stake_ledger.core.ledger import StakingLedger
from stake_ledger.core.stake import MAX_AMOUNT, MAX_TIMESTAMP

@pytest.fixture
def populated_ledger():
    ledger = StakingLedger(reward_rate=2)
    ledger.stake("bob.testnet", 300, 5)
    ledger.stake("alice.testnet", 500, 10)
    return ledger

def test_snapshot_layout(populated_ledger):
    """Test snapshots list records as account/record pairs with string integers."""
    data = populated_ledger.snapshot()
    assert data == {
        "version": 1,
        "total_staked": "800",
        "records": [
            ["alice.testnet", {"principal": "500", "start_time": "10", "reward_rate": "2"}],
            ["bob.testnet", {"principal": "300", "start_time": "5", "reward_rate": "2"}],
        ],
    }

def test_snapshot_reload(populated_ledger):
    """Test a reloaded ledger behaves like the original."""
    restored = StakingLedger.from_snapshot(populated_ledger.snapshot())
    assert restored.get_total_staked() == 800
    assert restored.get_stake_info("alice.testnet") == populated_ledger.get_stake_info("alice.testnet")
    assert restored.unstake("alice.testnet", 20) == 520

def test_reload_keeps_stake_time_ordering(populated_ledger):
    """Test stake timestamps stay ordered after a reload."""
    restored = StakingLedger.from_snapshot(populated_ledger.snapshot())
    with pytest.raises(ValueError):
        restored.stake("carol.testnet", 1, 9)

def test_snapshot_preserves_large_amounts():
    """Test 128-bit amounts survive a JSON round trip."""
    ledger = StakingLedger()
    ledger.stake("whale.testnet", MAX_AMOUNT, 0)
    data = json.loads(json.dumps(ledger.snapshot()))
    assert StakingLedger.from_snapshot(data).get_total_staked() == MAX_AMOUNT

def test_total_mismatch_is_corrupt(populated_ledger):
    """Test a total that disagrees with the principals is rejected."""
    data = populated_ledger.snapshot()
    data["total_staked"] = "801"
    with pytest.raises(CorruptStateError, match="does not match"):
        StakingLedger.from_snapshot(data)

@pytest.mark.parametrize("mutate", [
    lambda d: d.update(version=2),
    lambda d: d.pop("records"),
    lambda d: d.update(total_staked="-1"),
    lambda d: d["records"].append(["alice.testnet", {"principal": "0", "start_time": "0", "reward_rate": "1"}]),
    lambda d: d["records"].append(["carol.testnet", {"principal": "0", "start_time": "0", "reward_rate": "1"}]),
    lambda d: d["records"].append(["Carol", {"principal": "1", "start_time": "0", "reward_rate": "1"}]),
    lambda d: d["records"].append(["carol.testnet", {"principal": "x"}]),
    lambda d: d["records"].append("carol.testnet"),
])
def test_malformed_snapshot_is_corrupt(populated_ledger, mutate):
    """Test malformed snapshots raise CorruptStateError."""
    data = populated_ledger.snapshot()
    mutate(data)
    with pytest.raises(CorruptStateError):
        StakingLedger.from_snapshot(data)

def test_duplicate_account_is_corrupt(populated_ledger):
    """Test duplicate account entries are rejected."""
    data = populated_ledger.snapshot()
    data["records"].append(data["records"][0])
    data["total_staked"] = "1300"
    with pytest.raises(CorruptStateError, match="Duplicate"):
        StakingLedger.from_snapshot(data)

def test_start_time_beyond_range_is_corrupt(populated_ledger):
    """Test a stored start time past the u64 range is rejected on load."""
    data = populated_ledger.snapshot()
    data["records"][0][1]["start_time"] = str(4 * MAX_TIMESTAMP)
    with pytest.raises(CorruptStateError, match="Start time"):
        StakingLedger.from_snapshot(data)

def test_principal_beyond_max_amount_is_corrupt():
    """Test a stored principal above the configured maximum is rejected on load."""
    ledger = StakingLedger(max_amount=1000)
    ledger.stake("alice.testnet", 1000, 0)
    data = ledger.snapshot()
    data["records"][0][1]["principal"] = "1001"
    data["total_staked"] = "1001"
    with pytest.raises(CorruptStateError, match="Principal"):
        StakingLedger.from_snapshot(data, max_amount=1000)

def test_loaded_ledger_accepts_new_stakes(populated_ledger):
    """Test a ledger that passed load checks can still take stakes."""
    data = populated_ledger.snapshot()
    data["records"][0][1]["start_time"] = str(MAX_TIMESTAMP)
    restored = StakingLedger.from_snapshot(data)
    restored.stake("carol.testnet", 1, MAX_TIMESTAMP)
    assert restored.get_total_staked() == 801

@pytest.mark.parametrize("value", ["١٢", "１２", "²", " 12", "+12"])
def test_non_ascii_or_signed_numbers_are_corrupt(populated_ledger, value):
    """Test only ASCII decimal strings are accepted as stored integers."""
    data = populated_ledger.snapshot()
    data["total_staked"] = value
    with pytest.raises(CorruptStateError):
        StakingLedger.from_snapshot(data)
    data = populated_ledger.snapshot()
    data["records"][1][1]["principal"] = value
    with pytest.raises(CorruptStateError):
        StakingLedger.from_snapshot(data)

def test_store_missing_file_loads_empty(store):
    """Test loading without saved state gives an empty ledger."""
    assert not store.exists()
    ledger = store.load(reward_rate=3)
    assert ledger.get_total_staked() == 0
    assert ledger.reward_rate == 3

def test_store_save_and_load(store, populated_ledger):
    """Test ledger state persists across store instances."""
    store.save(populated_ledger)
    assert store.exists()

    ledger = store.load()
    assert ledger.accounts() == ["alice.testnet", "bob.testnet"]
    assert ledger.get_total_staked() == 800
    assert list(store.path.parent.glob(".ledger-*")) == []

def test_store_creates_parent_directory(tmp_path, populated_ledger):
    """Test saving creates missing directories."""
    from stake_ledger.core.store import LedgerStore
    store = LedgerStore(tmp_path / "nested" / "dir" / "ledger.json")
    store.save(populated_ledger)
    assert store.load().get_total_staked() == 800

def test_store_undecodable_file_is_corrupt(store):
    """Test garbage on disk raises CorruptStateError."""
    store.path.write_text("{not json")
    with pytest.raises(CorruptStateError):
        store.load()

def test_store_tampered_total_is_corrupt(store, populated_ledger):
    """Test a tampered total on disk is detected on load."""
    store.save(populated_ledger)
    data = json.loads(store.path.read_text())
    data["total_staked"] = "0"
    store.path.write_text(json.dumps(data))
    with pytest.raises(CorruptStateError):
        store.load()
