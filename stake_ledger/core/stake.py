"""Stake records and withdrawal instructions."""
from pydantic import BaseModel, ConfigDict, Field

# NEAR balances are u128, block timestamps u64
MAX_AMOUNT = 2**128 - 1
MAX_TIMESTAMP = 2**64 - 1


class StakeRecord(BaseModel):
    """Active stake held by one account."""
    model_config = ConfigDict(frozen=True, strict=True)

    principal: int = Field(gt=0)
    start_time: int = Field(ge=0)
    reward_rate: int = Field(ge=0)  # reward units per second, independent of principal


class Withdrawal(BaseModel):
    """Result of removing a stake: what left the ledger and what is owed."""
    model_config = ConfigDict(frozen=True)

    account_id: str
    record: StakeRecord
    reward: int
    total: int

    @property
    def principal(self) -> int:
        return self.record.principal
