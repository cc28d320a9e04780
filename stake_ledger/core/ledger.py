"""Staking ledger: active stakes, their running total and reward accrual."""
import threading
from typing import Any, Dict, Iterable, List, Optional, Tuple

from loguru import logger
from pydantic import ValidationError

from .accounts import AccountValidator, validate_account_id
from .errors import (
    ClockSkewError,
    CorruptStateError,
    InvalidAmountError,
    InvalidTimestampError,
    LedgerOverflowError,
    StakeConflictError,
    StakeNotFoundError,
)
from .stake import MAX_AMOUNT, MAX_TIMESTAMP, StakeRecord, Withdrawal

SNAPSHOT_VERSION = 1
DEFAULT_REWARD_RATE = 1


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class StakingLedger:
    """Ledger of active stakes keyed by account.

    ``total_staked`` always equals the sum of principals over all records.
    Every operation runs under a single lock, and mutating operations validate
    everything before they touch state, so a failed call leaves the ledger
    exactly as it was.
    """

    def __init__(self,
                 reward_rate: int = DEFAULT_REWARD_RATE,
                 max_amount: int = MAX_AMOUNT,
                 validate_account: AccountValidator = validate_account_id):
        """Initialize an empty ledger.

        Args:
            reward_rate: Reward units accrued per second by new stakes
            max_amount: Largest representable amount, total or reward
            validate_account: Callable rejecting malformed account ids
        """
        if not _is_int(reward_rate) or reward_rate < 0:
            raise ValueError(f"Reward rate must be a non-negative integer: {reward_rate!r}")
        if not _is_int(max_amount) or max_amount <= 0:
            raise ValueError(f"Max amount must be a positive integer: {max_amount!r}")
        self.reward_rate = reward_rate
        self.max_amount = max_amount
        self._validate_account = validate_account
        self._records: Dict[str, StakeRecord] = {}
        self._total_staked = 0
        self._last_start_time = 0
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, account_id: object) -> bool:
        with self._lock:
            return account_id in self._records

    def __repr__(self) -> str:
        return (f"StakingLedger(stakes={len(self)}, total_staked={self.get_total_staked()}, "
                f"reward_rate={self.reward_rate})")

    # Validation helpers

    def _check_timestamp(self, now: Any) -> None:
        if not _is_int(now):
            raise InvalidTimestampError(f"Timestamp must be an integer number of seconds: {now!r}")
        if now < 0:
            raise ClockSkewError(f"Timestamp precedes the epoch: {now}")
        if now > MAX_TIMESTAMP:
            raise LedgerOverflowError(f"Timestamp {now} exceeds {MAX_TIMESTAMP}")

    def _check_amount(self, amount: Any) -> None:
        if not _is_int(amount):
            raise InvalidAmountError(f"Stake amount must be an integer: {amount!r}")
        if amount <= 0:
            raise InvalidAmountError(f"Stake amount must be positive: {amount}")
        if amount > self.max_amount:
            raise LedgerOverflowError(f"Stake amount {amount} exceeds {self.max_amount}")

    def _get_record(self, account_id: str) -> StakeRecord:
        record = self._records.get(account_id)
        if record is None:
            raise StakeNotFoundError(account_id)
        return record

    def _accrued(self, record: StakeRecord, now: int) -> Tuple[int, int]:
        """Return (reward, principal + reward) for ``record`` at ``now``."""
        if now < record.start_time:
            raise ClockSkewError(
                f"Timestamp {now} precedes stake start time {record.start_time}"
            )
        duration = now - record.start_time
        reward = duration * record.reward_rate
        if reward > self.max_amount:
            raise LedgerOverflowError(
                f"Reward {reward} for {duration}s exceeds {self.max_amount}"
            )
        total = record.principal + reward
        if total > self.max_amount:
            raise LedgerOverflowError(
                f"Payout {total} (principal {record.principal} + reward {reward}) "
                f"exceeds {self.max_amount}"
            )
        return reward, total

    # Operations

    def stake(self, account_id: str, amount: int, now: int) -> None:
        """Record a stake of ``amount`` for ``account_id`` starting at ``now``.

        An existing stake for the account is replaced and its principal is
        taken out of the total before the new amount is added.

        Args:
            account_id: Account placing the stake
            amount: Principal deposited, already received by custody
            now: Current time in seconds

        Raises:
            InvalidAccountError: If the account id is malformed
            InvalidAmountError: If the amount is not a positive integer
            InvalidTimestampError: If ``now`` is not an integer
            ClockSkewError: If ``now`` precedes an earlier stake's start time
            LedgerOverflowError: If the new total would not be representable
        """
        self._validate_account(account_id)
        self._check_amount(amount)
        self._check_timestamp(now)

        with self._lock:
            if now < self._last_start_time:
                raise ClockSkewError(
                    f"Timestamp {now} precedes latest stake start time {self._last_start_time}"
                )
            previous = self._records.get(account_id)
            new_total = self._total_staked - (previous.principal if previous else 0) + amount
            if new_total > self.max_amount:
                raise LedgerOverflowError(
                    f"Total staked {new_total} would exceed {self.max_amount}"
                )

            self._records[account_id] = StakeRecord(
                principal=amount,
                start_time=now,
                reward_rate=self.reward_rate,
            )
            self._total_staked = new_total
            self._last_start_time = now

        if previous is not None:
            logger.debug(f"Replaced stake of {previous.principal} for {account_id} "
                         f"with {amount} (total {new_total})")
        else:
            logger.debug(f"Staked {amount} for {account_id} at {now} (total {new_total})")

    def withdraw(self, account_id: str, now: int) -> Withdrawal:
        """Remove the stake for ``account_id`` and compute what it is owed.

        Args:
            account_id: Account withdrawing
            now: Current time in seconds

        Returns:
            Withdrawal holding the removed record, reward and total payout

        Raises:
            StakeNotFoundError: If the account has no stake
            ClockSkewError: If ``now`` precedes the stake's start time
            LedgerOverflowError: If the reward or payout is not representable
        """
        self._check_timestamp(now)

        with self._lock:
            record = self._get_record(account_id)
            reward, total = self._accrued(record, now)
            del self._records[account_id]
            self._total_staked -= record.principal
            remaining = self._total_staked

        logger.debug(f"Unstaked {record.principal} + reward {reward} for {account_id} "
                     f"(total {remaining})")
        return Withdrawal(account_id=account_id, record=record, reward=reward, total=total)

    def unstake(self, account_id: str, now: int) -> int:
        """Remove the stake for ``account_id`` and return principal plus reward.

        The caller is responsible for disbursing the returned amount.
        """
        return self.withdraw(account_id, now).total

    def restore(self, withdrawal: Withdrawal) -> None:
        """Put a withdrawn stake back, undoing ``withdraw``.

        Used when disbursing a withdrawal fails. The original start time is
        kept, so reward accrues as if the withdrawal never happened.

        Raises:
            StakeConflictError: If the account has staked again since
            LedgerOverflowError: If the restored total would not be representable
        """
        account_id = withdrawal.account_id
        record = withdrawal.record
        with self._lock:
            if account_id in self._records:
                raise StakeConflictError(
                    f"Cannot restore stake for {account_id}: account has an active stake"
                )
            new_total = self._total_staked + record.principal
            if new_total > self.max_amount:
                raise LedgerOverflowError(
                    f"Total staked {new_total} would exceed {self.max_amount}"
                )
            self._records[account_id] = record
            self._total_staked = new_total
            self._last_start_time = max(self._last_start_time, record.start_time)

        logger.warning(f"Restored stake of {record.principal} for {account_id} (total {new_total})")

    def get_stake_info(self, account_id: str) -> Optional[StakeRecord]:
        """Get the active stake for an account, or None."""
        with self._lock:
            return self._records.get(account_id)

    def calculate_reward(self, account_id: str, now: int) -> int:
        """Reward ``unstake`` would pay at ``now``, without changing state."""
        self._check_timestamp(now)
        with self._lock:
            record = self._get_record(account_id)
            reward, _ = self._accrued(record, now)
        return reward

    def get_total_staked(self) -> int:
        """Sum of all active principals."""
        with self._lock:
            return self._total_staked

    def accounts(self) -> List[str]:
        """Account ids with an active stake, sorted."""
        with self._lock:
            return sorted(self._records)

    # Persistence

    def snapshot(self) -> Dict[str, Any]:
        """Serialize the ledger to a JSON-compatible dict.

        Integers are written as decimal strings so 128-bit amounts survive
        JSON decoders that use doubles.
        """
        with self._lock:
            records = [
                [account_id, {
                    "principal": str(record.principal),
                    "start_time": str(record.start_time),
                    "reward_rate": str(record.reward_rate),
                }]
                for account_id, record in sorted(self._records.items())
            ]
            total = self._total_staked
        return {
            "version": SNAPSHOT_VERSION,
            "total_staked": str(total),
            "records": records,
        }

    @classmethod
    def from_snapshot(cls, data: Dict[str, Any], **kwargs) -> "StakingLedger":
        """Rebuild a ledger from ``snapshot`` output.

        Args:
            data: Snapshot dict
            **kwargs: Passed to the constructor (reward rate, limits, validator)

        Raises:
            CorruptStateError: If the data is malformed or the total does not
                match the sum of principals
        """
        ledger = cls(**kwargs)
        if not isinstance(data, dict):
            raise CorruptStateError("Ledger snapshot must be an object")
        if data.get("version") != SNAPSHOT_VERSION:
            raise CorruptStateError(f"Unsupported snapshot version: {data.get('version')!r}")

        records: Dict[str, StakeRecord] = {}
        try:
            total = _parse_uint(data["total_staked"])
            entries: Iterable = data["records"]
            for account_id, fields in entries:
                if account_id in records:
                    raise CorruptStateError(f"Duplicate stake for account {account_id}")
                ledger._validate_account(account_id)
                record = StakeRecord(
                    principal=_parse_uint(fields["principal"]),
                    start_time=_parse_uint(fields["start_time"]),
                    reward_rate=_parse_uint(fields["reward_rate"]),
                )
                if record.start_time > MAX_TIMESTAMP:
                    raise CorruptStateError(
                        f"Start time {record.start_time} for {account_id} exceeds {MAX_TIMESTAMP}"
                    )
                if record.principal > ledger.max_amount:
                    raise CorruptStateError(
                        f"Principal {record.principal} for {account_id} exceeds {ledger.max_amount}"
                    )
                records[account_id] = record
        except CorruptStateError:
            raise
        except (KeyError, TypeError, ValueError, ValidationError) as e:
            raise CorruptStateError(f"Malformed ledger snapshot: {e}") from e

        principal_sum = sum(record.principal for record in records.values())
        if principal_sum != total:
            raise CorruptStateError(
                f"Total staked {total} does not match sum of principals {principal_sum}"
            )
        if total > ledger.max_amount:
            raise CorruptStateError(f"Total staked {total} exceeds {ledger.max_amount}")

        ledger._records = records
        ledger._total_staked = total
        ledger._last_start_time = max((r.start_time for r in records.values()), default=0)
        return ledger


def _parse_uint(value: Any) -> int:
    if isinstance(value, str) and value.isascii() and value.isdigit():
        return int(value)
    if _is_int(value) and value >= 0:
        return value
    raise ValueError(f"Expected an unsigned integer, got {value!r}")
