"""
Client configuration

Timeouts, polling intervals and statistics tuning. Values come from the
[client] table of a TOML file; anything missing falls back to the
defaults below.

Example config.toml:

    [client]
    connect_timeout_s = 5.0
    data_timeout_s = 0.5
    detect_loss = true
"""

import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union

import toml

logger = logging.getLogger(__name__)


@dataclass
class ClientConfig:
    """Configuration for an RTSPConnection"""
    # Bounded blocking
    connect_timeout_s: float = 30.0
    control_timeout_s: float = 10.0
    data_timeout_s: float = 1.0

    # Receive task
    receive_interval_ms: int = 20
    receive_buffer_size: int = 15000

    # Statistics
    accrual_interval_ms: int = 20
    history_size: int = 10
    max_timestamp_gap: int = 0x7FFFFFFF
    detect_loss: bool = False

    def __post_init__(self):
        for name in ('connect_timeout_s', 'control_timeout_s', 'data_timeout_s',
                     'receive_interval_ms', 'receive_buffer_size',
                     'accrual_interval_ms', 'history_size', 'max_timestamp_gap'):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")
        if self.history_size < 2:
            raise ValueError("history_size must hold at least two entries")
        if self.max_timestamp_gap >= 1 << 32:
            raise ValueError("max_timestamp_gap must fit in 32 bits")

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> 'ClientConfig':
        """Build from a mapping, ignoring unknown keys"""
        known = {f.name for f in fields(cls)}
        for key in values:
            if key not in known:
                logger.warning(f"Ignoring unknown client config key: {key}")
        return cls(**{k: v for k, v in values.items() if k in known})


def load_config(config_path: Optional[Union[str, Path]] = None) -> ClientConfig:
    """
    Load client configuration from a TOML file.

    Args:
        config_path: Path to TOML file; None returns defaults

    Returns:
        ClientConfig

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If a value is out of range
    """
    if config_path is None:
        return ClientConfig()

    path = Path(config_path)
    with open(path, 'r') as f:
        config = toml.load(f)

    logger.info(f"Loaded configuration from {path}")
    return ClientConfig.from_dict(config.get('client', {}))
