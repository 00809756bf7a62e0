import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Dict, Any

import yaml

from ecc import curves, is_valid_curve, DEFAULT_CURVE
from elgamal import DEFAULT_MAX_MESSAGE, FIELDS_PER_BALLOT
from state import DEFAULT_VOTES_PER_BATCH, HASH_FUNCTIONS
from state.tree import DEFAULT_MAX_LEVELS

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config.yaml")


class ConfigError(Exception):
    """Raised for invalid configuration values or files"""
    pass


@dataclass
class CryptoConfig:
    curve_type: str = DEFAULT_CURVE
    max_message: int = DEFAULT_MAX_MESSAGE
    dkg_threshold: int = 2
    dkg_participants: int = 3
    encrypt_shares: bool = True

    def __post_init__(self):
        if not is_valid_curve(self.curve_type):
            logger.critical(f"Unsupported curve type {self.curve_type!r}")
            raise ConfigError(
                f"unsupported curve {self.curve_type!r}, expected one of {curves()}")
        if self.max_message <= 0:
            raise ConfigError("max_message must be positive")
        if self.dkg_participants <= 0:
            raise ConfigError("dkg_participants must be positive")
        if not 1 <= self.dkg_threshold <= self.dkg_participants:
            raise ConfigError(
                f"dkg_threshold {self.dkg_threshold} must be between 1 and "
                f"dkg_participants ({self.dkg_participants})")


@dataclass
class StateConfig:
    hash_function: str = "sha256"
    max_levels: int = DEFAULT_MAX_LEVELS
    votes_per_batch: int = DEFAULT_VOTES_PER_BATCH
    fields_per_ballot: int = FIELDS_PER_BALLOT
    db_path: Optional[Path] = None
    batch_time_window: float = 30.0

    def __post_init__(self):
        if self.db_path is not None:
            self.db_path = Path(self.db_path)
        if self.hash_function not in HASH_FUNCTIONS:
            raise ConfigError(
                f"unknown hash function {self.hash_function!r}, "
                f"expected one of {list(HASH_FUNCTIONS)}")
        if self.batch_time_window <= 0:
            logger.critical(f"Invalid batch time window {self.batch_time_window}")
            raise ConfigError("batch_time_window must be positive")
        if self.votes_per_batch <= 0:
            raise ConfigError("votes_per_batch must be positive")
        if self.fields_per_ballot <= 0:
            raise ConfigError("fields_per_ballot must be positive")
        if self.max_levels <= 0:
            raise ConfigError("max_levels must be positive")


@dataclass
class SystemConfig:
    crypto_config: CryptoConfig = field(default_factory=CryptoConfig)
    state_config: StateConfig = field(default_factory=StateConfig)

    log_dir: Path = field(default_factory=lambda: Path("logs"))
    enable_benchmarking: bool = True
    enable_debug_mode: bool = False

    def __post_init__(self):
        self.log_dir = Path(self.log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)

    @property
    def log_level(self) -> str:
        return "DEBUG" if self.enable_debug_mode else "INFO"


def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"section {name!r} must be a mapping")
    return section


def load_config(config_path: Optional[Path] = None) -> SystemConfig:
    """Load configuration from file or return default"""
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH
    config_path = Path(config_path)

    if not config_path.exists():
        logger.info(f"No config file at {config_path}, using defaults")
        return SystemConfig()

    try:
        with open(config_path, 'r') as f:
            config_data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"could not parse config file {config_path}: {e}") from e
    if not isinstance(config_data, dict):
        raise ConfigError(f"config file {config_path} must contain a mapping")

    crypto_data = _section(config_data, 'crypto')
    state_data = _section(config_data, 'state')
    try:
        crypto_config = CryptoConfig(
            curve_type=crypto_data.get('curve_type', DEFAULT_CURVE),
            max_message=int(crypto_data.get('max_message', DEFAULT_MAX_MESSAGE)),
            dkg_threshold=int(crypto_data.get('dkg_threshold', 2)),
            dkg_participants=int(crypto_data.get('dkg_participants', 3)),
            encrypt_shares=bool(crypto_data.get('encrypt_shares', True)),
        )
        db_path = state_data.get('db_path')
        state_config = StateConfig(
            hash_function=state_data.get('hash_function', 'sha256'),
            max_levels=int(state_data.get('max_levels', DEFAULT_MAX_LEVELS)),
            votes_per_batch=int(state_data.get('votes_per_batch', DEFAULT_VOTES_PER_BATCH)),
            fields_per_ballot=int(state_data.get('fields_per_ballot', FIELDS_PER_BALLOT)),
            db_path=Path(db_path) if db_path else None,
            batch_time_window=float(state_data.get('batch_time_window', 30.0)),
        )
    except (TypeError, ValueError) as e:
        raise ConfigError(f"invalid value in config file {config_path}: {e}") from e

    config = SystemConfig(
        crypto_config=crypto_config,
        state_config=state_config,
        log_dir=Path(config_data.get('log_dir', 'logs')),
        enable_benchmarking=config_data.get('enable_benchmarking', True),
        enable_debug_mode=config_data.get('enable_debug_mode', False),
    )
    logger.info(f"Loaded configuration from {config_path}")
    return config


def save_config(config: SystemConfig, config_path: Optional[Path] = None):
    """Save configuration to YAML file"""
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH

    state_config = config.state_config
    config_data = {
        'crypto': {
            'curve_type': config.crypto_config.curve_type,
            'max_message': config.crypto_config.max_message,
            'dkg_threshold': config.crypto_config.dkg_threshold,
            'dkg_participants': config.crypto_config.dkg_participants,
            'encrypt_shares': config.crypto_config.encrypt_shares,
        },
        'state': {
            'hash_function': state_config.hash_function,
            'max_levels': state_config.max_levels,
            'votes_per_batch': state_config.votes_per_batch,
            'fields_per_ballot': state_config.fields_per_ballot,
            'db_path': str(state_config.db_path) if state_config.db_path else None,
            'batch_time_window': state_config.batch_time_window,
        },
        'log_dir': str(config.log_dir),
        'enable_benchmarking': config.enable_benchmarking,
        'enable_debug_mode': config.enable_debug_mode,
    }

    with open(config_path, 'w') as f:
        yaml.dump(config_data, f, default_flow_style=False)
    logger.info(f"Saved configuration to {config_path}")
