"""Stake Ledger CLI."""
import asyncio
import json
import sys
from typing import Optional

import click
from loguru import logger

from .core.clock import SystemClock
from .core.config import ConfigError, LedgerConfig, load_config
from .core.disbursement import RPCDisbursement, settle_unstake
from .core.errors import SettlementError, StakingError, TransferError, TransferOutcomeUnknownError
from .core.ledger import StakingLedger
from .core.store import LedgerStore

_clock = SystemClock()


def configure_logging(level: str) -> None:
    """Route loguru output to stderr at the configured level."""
    logger.remove()
    logger.add(sys.stderr, level=level.upper())


def _fail(message: str) -> None:
    logger.error(message)
    raise SystemExit(1)


def _resolve_time(at: Optional[int]) -> int:
    return _clock.now() if at is None else at


class LedgerContext:
    """Holds the configuration and store for a single CLI invocation."""

    def __init__(self, config: LedgerConfig):
        self.config = config
        self.store = LedgerStore(config.state_path)

    def load(self) -> StakingLedger:
        return self.store.load(reward_rate=self.config.reward_rate,
                               max_amount=self.config.max_amount)

    def save(self, ledger: StakingLedger) -> None:
        self.store.save(ledger)


pass_context = click.make_pass_decorator(LedgerContext)

at_option = click.option('--at', type=int, default=None,
                         help='Timestamp in seconds (defaults to now)')


@click.group()
@click.version_option(package_name="stake-ledger")
@click.option('--config', 'config_path', type=click.Path(dir_okay=False), default=None,
              help='Path to YAML configuration file')
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[str]):
    """Stake Ledger CLI for staking, reward accrual and withdrawal."""
    try:
        config = load_config(config_path)
    except ConfigError as e:
        configure_logging("INFO")
        _fail(str(e))
    configure_logging(config.log_level)
    ctx.obj = LedgerContext(config)


@cli.command()
@click.argument('account')
@click.argument('amount', type=int)
@at_option
@pass_context
def stake(context: LedgerContext, account: str, amount: int, at: Optional[int]):
    """Stake AMOUNT for ACCOUNT."""
    now = _resolve_time(at)
    try:
        ledger = context.load()
        ledger.stake(account, amount, now)
        context.save(ledger)
    except StakingError as e:
        _fail(f"Failed to stake: {e}")
    click.echo(f"Staked {amount} for {account} at {now}")
    click.echo(f"Total staked: {ledger.get_total_staked()}")


@cli.command()
@click.argument('account')
@at_option
@click.option('--disburse/--no-disburse', default=False,
              help='Transfer the payout through the configured RPC endpoint')
@pass_context
def unstake(context: LedgerContext, account: str, at: Optional[int], disburse: bool):
    """Withdraw ACCOUNT's stake with accrued reward."""
    now = _resolve_time(at)
    try:
        ledger = context.load()
    except StakingError as e:
        _fail(f"Failed to load ledger: {e}")

    if not disburse:
        try:
            withdrawal = ledger.withdraw(account, now)
            context.save(ledger)
        except StakingError as e:
            _fail(f"Failed to unstake: {e}")
    else:
        if not context.config.sender_id:
            _fail("Disbursement requires sender_id in the configuration")
        disbursement = RPCDisbursement(context.config.rpc_url, context.config.sender_id)
        try:
            withdrawal = asyncio.run(
                settle_unstake(ledger, disbursement, account, now, checkpoint=context.save)
            )
        except TransferError as e:
            # Stake was restored and saved again
            _fail(f"Disbursement failed, stake kept: {e}")
        except TransferOutcomeUnknownError as e:
            _fail(f"Disbursement outcome unknown, stake removed pending reconciliation: {e}")
        except SettlementError as e:
            _fail(f"Disbursement failed and stake could not be restored: {e}")
        except StakingError as e:
            _fail(f"Failed to unstake: {e}")

    click.echo(f"Unstaked {withdrawal.principal} for {account}")
    click.echo(f"Reward: {withdrawal.reward}")
    click.echo(f"Payout: {withdrawal.total}")


@cli.command()
@click.argument('account')
@pass_context
def info(context: LedgerContext, account: str):
    """Show the active stake for ACCOUNT."""
    try:
        record = context.load().get_stake_info(account)
    except StakingError as e:
        _fail(f"Failed to load ledger: {e}")
    if record is None:
        _fail(f"No stake found for {account}")
    click.echo(json.dumps({"account_id": account, **record.model_dump()}, indent=2))


@cli.command()
@click.argument('account')
@at_option
@pass_context
def reward(context: LedgerContext, account: str, at: Optional[int]):
    """Show the reward ACCOUNT has accrued."""
    now = _resolve_time(at)
    try:
        amount = context.load().calculate_reward(account, now)
    except StakingError as e:
        _fail(f"Failed to calculate reward: {e}")
    click.echo(f"Reward for {account} at {now}: {amount}")


@cli.command()
@pass_context
def total(context: LedgerContext):
    """Show the total staked principal."""
    try:
        ledger = context.load()
    except StakingError as e:
        _fail(f"Failed to load ledger: {e}")
    click.echo(f"Total staked: {ledger.get_total_staked()} across {len(ledger)} stakes")


@cli.command()
@pass_context
def verify(context: LedgerContext):
    """Check the stored ledger against its invariants."""
    if not context.store.exists():
        click.echo(f"No ledger state at {context.store.path}")
        return
    try:
        ledger = context.load()
    except StakingError as e:
        _fail(f"Ledger state is corrupt: {e}")
    click.echo(f"Ledger OK: {len(ledger)} stakes, total staked {ledger.get_total_staked()}")


if __name__ == "__main__":
    cli()
