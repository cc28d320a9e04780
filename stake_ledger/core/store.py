"""JSON file persistence for the staking ledger."""
import json
import os
import tempfile
from pathlib import Path
from typing import Union

from loguru import logger

from .errors import CorruptStateError
from .ledger import StakingLedger


class LedgerStore:
    """Saves and loads a ledger snapshot at a fixed path."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    def load(self, **kwargs) -> StakingLedger:
        """Load the ledger from disk, or return an empty one if none is saved.

        Args:
            **kwargs: Passed to the ledger constructor

        Raises:
            CorruptStateError: If the file cannot be decoded or fails validation
        """
        if not self.path.exists():
            logger.debug(f"No ledger state at {self.path}, starting empty")
            return StakingLedger(**kwargs)

        try:
            with open(self.path) as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise CorruptStateError(f"Failed to decode {self.path}: {e}") from e

        ledger = StakingLedger.from_snapshot(data, **kwargs)
        logger.debug(f"Loaded {len(ledger)} stakes from {self.path}")
        return ledger

    def save(self, ledger: StakingLedger) -> None:
        """Write the ledger snapshot, replacing the previous file atomically."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = ledger.snapshot()

        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".ledger-", suffix=".tmp")
        try:
            with os.fdopen(fd, 'w') as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            os.unlink(tmp_path)
            raise
        logger.debug(f"Saved {len(data['records'])} stakes to {self.path}")
