"""Test configuration and fixtures for Stake Ledger."""
import pytest
from unittest.mock import AsyncMock, MagicMock
from stake_ledger.core.clock import ManualClock
from stake_ledger.core.disbursement import RPCDisbursement
from stake_ledger.core.ledger import StakingLedger
from stake_ledger.core.store import LedgerStore

@pytest.fixture
def ledger():
    """Create an empty ledger with the default reward rate."""
    return StakingLedger()

@pytest.fixture
def clock():
    """Create a manual clock starting at the epoch."""
    return ManualClock()

@pytest.fixture
def state_dir(tmp_path, monkeypatch):
    """Point ledger state and config lookups at a temporary directory."""
    monkeypatch.setenv("STAKE_LEDGER_STATE_DIR", str(tmp_path))
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.delenv("STAKE_LEDGER_LOG_LEVEL", raising=False)
    monkeypatch.delenv("STAKE_LEDGER_RPC_URL", raising=False)
    return tmp_path

@pytest.fixture
def store(state_dir):
    """Create a store backed by the temporary state directory."""
    return LedgerStore(state_dir / "ledger.json")

@pytest.fixture
def mock_disbursement():
    """Create a disbursement backend whose transfers succeed."""
    disbursement = MagicMock(spec=RPCDisbursement)
    disbursement.transfer = AsyncMock(return_value=None)
    return disbursement
