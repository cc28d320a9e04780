"""Ledger configuration."""
import os
import platform
from pathlib import Path
from typing import Optional, Union

import yaml
from loguru import logger
from pydantic import BaseModel, Field, ValidationError

from .stake import MAX_AMOUNT

MAINNET_RPC_URL = "https://rpc.mainnet.near.org"
TESTNET_RPC_URL = "https://rpc.testnet.near.org"

CONFIG_FILENAME = "config.yaml"
STATE_FILENAME = "ledger.json"

ENV_STATE_DIR = "STAKE_LEDGER_STATE_DIR"
ENV_LOG_LEVEL = "STAKE_LEDGER_LOG_LEVEL"
ENV_RPC_URL = "STAKE_LEDGER_RPC_URL"


class ConfigError(ValueError):
    """Raised when the configuration file or environment is invalid."""


def get_config_dir() -> Path:
    """Get platform-specific config directory."""
    if os.name == 'nt':  # Windows
        return Path(os.getenv('APPDATA', Path.home())) / 'stake-ledger'
    elif platform.system() == 'Darwin':  # macOS
        return Path.home() / 'Library' / 'Application Support' / 'stake-ledger'
    else:  # Linux and others
        return Path.home() / '.config' / 'stake-ledger'


class LedgerConfig(BaseModel):
    """Staking ledger configuration."""
    reward_rate: int = Field(default=1, ge=0)
    max_amount: int = Field(default=MAX_AMOUNT, gt=0)
    state_dir: Path = Field(default_factory=get_config_dir)
    network: str = "testnet"
    rpc_url: Optional[str] = None
    sender_id: Optional[str] = None  # custody account paying out disbursements
    log_level: str = "INFO"

    def __init__(self, **data):
        super().__init__(**data)
        # Derive RPC endpoint from network unless set explicitly
        if not self.rpc_url:
            self.rpc_url = MAINNET_RPC_URL if self.network == "mainnet" else TESTNET_RPC_URL

    @property
    def state_path(self) -> Path:
        return self.state_dir / STATE_FILENAME


def load_config(path: Optional[Union[str, Path]] = None) -> LedgerConfig:
    """Load configuration from YAML and environment overrides.

    Args:
        path: Explicit YAML file. Defaults to ``config.yaml`` in the config
            directory, which may be absent.

    Returns:
        Validated configuration

    Raises:
        ConfigError: If the file cannot be parsed or holds invalid values
    """
    explicit = path is not None
    config_path = Path(path) if explicit else get_config_dir() / CONFIG_FILENAME

    data = {}
    if config_path.exists():
        try:
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse {config_path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"Expected a mapping in {config_path}")
        logger.debug(f"Loaded config from {config_path}")
    elif explicit:
        raise ConfigError(f"Config file not found: {config_path}")

    if os.getenv(ENV_STATE_DIR):
        data["state_dir"] = os.environ[ENV_STATE_DIR]
    if os.getenv(ENV_LOG_LEVEL):
        data["log_level"] = os.environ[ENV_LOG_LEVEL]
    if os.getenv(ENV_RPC_URL):
        data["rpc_url"] = os.environ[ENV_RPC_URL]

    try:
        return LedgerConfig(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
