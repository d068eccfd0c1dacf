"""
Client configuration for DAP.

Values come from, in increasing priority: defaults, a .env file, the
process environment (DAP_* variables), and explicit overrides.
"""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

from dap.crypto import is_valid_address
from dap.core.errors import ConfigError
from dap.network.abi import DEFAULT_CONTRACT_ADDRESS


ENV_PREFIX = "DAP_"


class ClientConfig(BaseModel):
    """Connection and polling parameters"""

    # Ledger connection
    rpc_url: str = "http://127.0.0.1:8545"
    contract_address: str = DEFAULT_CONTRACT_ADDRESS

    # Timing (seconds)
    poll_interval: float = Field(default=10.0, gt=0)
    receipt_timeout: float = Field(default=120.0, gt=0)

    # Logging
    log_dir: Optional[Path] = None
    log_to_file: bool = False

    @field_validator("contract_address")
    @classmethod
    def _check_contract_address(cls, value: str) -> str:
        if not is_valid_address(value):
            raise ValueError(f"not a contract address: {value!r}")
        return value


def _from_environment() -> dict:
    values = {}
    for field_name in ClientConfig.model_fields:
        raw = os.environ.get(ENV_PREFIX + field_name.upper())
        if raw is not None and raw != "":
            values[field_name] = raw
    return values


def load_config(env_file: Optional[str] = None, **overrides) -> ClientConfig:
    """
    Load configuration from the environment.

    Args:
        env_file: Optional .env file; by default a .env in the working
            directory is used if present
        **overrides: Explicit values (None values are ignored)

    Returns:
        ClientConfig instance

    Raises:
        ConfigError: If a value fails validation
    """
    if env_file:
        if not Path(env_file).is_file():
            raise ConfigError(f"Env file not found: {env_file}")
        load_dotenv(env_file)
    else:
        load_dotenv()

    values = _from_environment()
    values.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return ClientConfig(**values)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc
