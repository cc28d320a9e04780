"""Staking ledger core and its collaborators."""
from .accounts import allow_any_account, validate_account_id
from .clock import Clock, ManualClock, SystemClock
from .config import ConfigError, LedgerConfig, load_config
from .disbursement import Disbursement, RPCDisbursement, settle_unstake
from .errors import (
    ClockSkewError,
    CorruptStateError,
    InvalidAccountError,
    InvalidAmountError,
    InvalidTimestampError,
    LedgerOverflowError,
    SettlementError,
    StakeConflictError,
    StakeNotFoundError,
    StakingError,
    TransferError,
    TransferOutcomeUnknownError,
)
from .ledger import StakingLedger
from .stake import MAX_AMOUNT, MAX_TIMESTAMP, StakeRecord, Withdrawal
from .store import LedgerStore
