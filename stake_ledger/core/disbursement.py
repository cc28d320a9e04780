"""Disbursement of unstaked funds and the unstake/transfer hand-off."""
import asyncio
from typing import Callable, Optional, Protocol

import aiohttp
from loguru import logger

from .errors import SettlementError, StakingError, TransferError, TransferOutcomeUnknownError
from .ledger import StakingLedger
from .stake import Withdrawal


class Disbursement(Protocol):
    """Moves released funds to an account.

    Raises TransferError when the funds definitely did not move and
    TransferOutcomeUnknownError when they may have.
    """

    async def transfer(self, account_id: str, amount: int) -> None:
        ...


class RPCDisbursement:
    """Sends transfers to a custody service over JSON-RPC."""

    def __init__(self,
                 rpc_url: str,
                 sender_id: str,
                 session_factory: Optional[Callable[[], aiohttp.ClientSession]] = None):
        """Initialize the RPC disbursement client.

        Args:
            rpc_url: JSON-RPC endpoint of the custody service
            sender_id: Custody account the funds are paid from
            session_factory: Builds the HTTP session, aiohttp.ClientSession by default
        """
        self.rpc_url = rpc_url
        self.sender_id = sender_id
        self._session_factory = session_factory or aiohttp.ClientSession

    async def transfer(self, account_id: str, amount: int) -> None:
        """Transfer ``amount`` to ``account_id``.

        Only a refused connection, a 4xx status or a JSON-RPC ``error`` member
        count as a rejected transfer. Once the request may have reached the
        service, any other failure leaves the outcome unknown.

        Raises:
            TransferError: If the service definitely did not execute the transfer
            TransferOutcomeUnknownError: If the transfer may have been executed
        """
        payload = {
            "jsonrpc": "2.0",
            "id": "dontcare",
            "method": "transfer",
            "params": {
                "sender_id": self.sender_id,
                "receiver_id": account_id,
                # u128 amounts travel as strings
                "amount": str(amount),
            },
        }
        failed = f"Transfer of {amount} to {account_id} failed"
        try:
            async with self._session_factory() as session:
                async with session.post(self.rpc_url, json=payload) as response:
                    if 400 <= response.status < 500:
                        raise TransferError(f"{failed}: HTTP {response.status}")
                    if response.status >= 300:
                        raise TransferOutcomeUnknownError(
                            f"Transfer of {amount} to {account_id} has unknown outcome: "
                            f"HTTP {response.status}"
                        )
                    result = await response.json()
        except aiohttp.ClientConnectorError as e:
            raise TransferError(f"{failed}: {e}") from e
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise TransferOutcomeUnknownError(
                f"Transfer of {amount} to {account_id} has unknown outcome: {e}"
            ) from e

        if not isinstance(result, dict):
            raise TransferOutcomeUnknownError(
                f"Transfer of {amount} to {account_id} has unknown outcome: "
                f"unexpected response {result!r}"
            )
        if "error" in result:
            raise TransferError(f"{failed}: {result['error']}")
        logger.info(f"Transferred {amount} to {account_id}")


async def settle_unstake(ledger: StakingLedger,
                         disbursement: Disbursement,
                         account_id: str,
                         now: int,
                         checkpoint: Optional[Callable[[StakingLedger], None]] = None) -> Withdrawal:
    """Unstake ``account_id`` and disburse the payout.

    The stake is removed and ``checkpoint`` called with the ledger before the
    transfer is awaited, so a host that persists there never pays out a stake
    it still has on disk.

    - TransferError: the stake is restored, ``checkpoint`` called again and
      the error re-raised. If the restore fails the funds are stranded and
      SettlementError is raised with the withdrawal attached.
    - TransferOutcomeUnknownError: the stake stays removed and the error is
      re-raised with the withdrawal attached for reconciliation.
    - Anything else from the backend propagates with the stake removed.

    Args:
        ledger: Ledger holding the stake
        disbursement: Backend that moves the funds
        account_id: Account unstaking
        now: Current time in seconds
        checkpoint: Called with the ledger after every state change

    Raises:
        StakingError: Ledger errors from the withdrawal, before any transfer
        TransferError: The transfer failed and the stake was restored
        TransferOutcomeUnknownError: The transfer may have gone through
        SettlementError: The transfer failed and the stake could not be restored
    """
    withdrawal = ledger.withdraw(account_id, now)
    if checkpoint is not None:
        checkpoint(ledger)

    try:
        await disbursement.transfer(account_id, withdrawal.total)
    except TransferOutcomeUnknownError as e:
        logger.error(f"Disbursement of {withdrawal.total} to {account_id} has unknown "
                     f"outcome, stake not restored: {e}")
        raise TransferOutcomeUnknownError(str(e), withdrawal) from e
    except TransferError as e:
        logger.warning(f"Disbursement of {withdrawal.total} to {account_id} failed: {e}")
        try:
            ledger.restore(withdrawal)
        except StakingError as restore_error:
            logger.error(
                f"Stranded {withdrawal.total} for {account_id}: transfer failed "
                f"and stake could not be restored: {restore_error}"
            )
            raise SettlementError(
                f"Transfer to {account_id} failed and stake could not be restored",
                withdrawal,
            ) from restore_error
        if checkpoint is not None:
            checkpoint(ledger)
        raise

    return withdrawal
