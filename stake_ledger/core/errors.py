"""Error types raised by the staking ledger and its collaborators."""
from typing import Optional

from .stake import Withdrawal


class StakingError(Exception):
    """Base class for all staking ledger errors."""


class StakeNotFoundError(StakingError, LookupError):
    """Raised when an account has no active stake."""

    def __init__(self, account_id: str):
        super().__init__(f"No stake found for account {account_id}")
        self.account_id = account_id


class InvalidAmountError(StakingError, ValueError):
    """Raised when a stake amount is zero, negative or not an integer."""


class InvalidAccountError(StakingError, ValueError):
    """Raised when an account id is malformed."""


class LedgerOverflowError(StakingError, ArithmeticError):
    """Raised when an amount, total or reward exceeds the representable range."""


class InvalidTimestampError(StakingError, TypeError):
    """Raised when a timestamp is not an integer number of seconds."""


class ClockSkewError(StakingError, ValueError):
    """Raised when a timestamp precedes a recorded start time."""


class CorruptStateError(StakingError, ValueError):
    """Raised when persisted ledger state fails validation."""


class StakeConflictError(StakingError):
    """Raised when a withdrawal cannot be restored because the account staked again."""


class TransferError(StakingError):
    """Raised by a disbursement backend when a transfer was definitely not executed."""


class SettlementError(StakingError):
    """Raised when a transfer failed and the withdrawal could not be restored.

    The withdrawal is attached so the host can reconcile the stranded funds.
    """

    def __init__(self, message: str, withdrawal: Optional[Withdrawal] = None):
        super().__init__(message)
        self.withdrawal = withdrawal


class TransferOutcomeUnknownError(StakingError):
    """Raised when a transfer may or may not have been executed.

    The request reached the custody service but no definite answer came back,
    so the withdrawal must not be restored. Settlement attaches the withdrawal
    for reconciliation.
    """

    def __init__(self, message: str, withdrawal: Optional[Withdrawal] = None):
        super().__init__(message)
        self.withdrawal = withdrawal
