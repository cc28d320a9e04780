"""Stake Ledger."""
from .core import StakingLedger, StakeRecord, Withdrawal

__version__ = "0.1.0"
