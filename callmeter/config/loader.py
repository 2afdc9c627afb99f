"""
Configuration management and loading.

Handles the store settings read from a YAML file.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict

import yaml

from callmeter.storage.schema import DATABASE_NAME, DATABASE_VERSION

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class StoreConfig:
    """Settings for opening the usage store."""
    db_path: str = DATABASE_NAME
    schema_version: int = DATABASE_VERSION
    log_level: str = "INFO"

    def __post_init__(self):
        """Validate config values."""
        if not self.db_path or not self.db_path.strip():
            raise ValueError("database path cannot be empty")
        if self.schema_version < 1:
            raise ValueError("schema version must be >= 1")
        if self.log_level not in LOG_LEVELS:
            raise ValueError(f"log level must be one of: {list(LOG_LEVELS)}")

    @property
    def logging_level(self) -> int:
        return getattr(logging, self.log_level)


def load_store_config(path: str) -> StoreConfig:
    """Load and validate store configuration from YAML file.

    Unknown keys are rejected rather than ignored so a typo never points
    the store at the wrong database.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated StoreConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Store config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if not raw_config:
        raise ValueError("Configuration file is empty")
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a dictionary")

    allowed_top_keys = {'database', 'logging'}
    unknown_keys = set(raw_config.keys()) - allowed_top_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    if 'database' not in raw_config:
        raise ValueError("Missing required 'database' section")

    database = _parse_section(raw_config['database'], 'database', {'path', 'version'})
    if 'path' not in database:
        raise ValueError("Missing required 'path' in database")

    db_path = database['path']
    if not isinstance(db_path, str) or not db_path.strip():
        raise ValueError("'path' in database must be a non-empty string")

    version = database.get('version', DATABASE_VERSION)
    if isinstance(version, bool) or not isinstance(version, int) or version < 1:
        raise ValueError("'version' in database must be an integer >= 1")

    log_section = _parse_section(raw_config.get('logging', {}), 'logging', {'level'})
    level = log_section.get('level', 'INFO')
    if not isinstance(level, str) or level.upper() not in LOG_LEVELS:
        raise ValueError(f"'level' in logging must be one of: {list(LOG_LEVELS)}")

    return StoreConfig(
        db_path=db_path,
        schema_version=version,
        log_level=level.upper()
    )


def _parse_section(data, path: str, allowed_keys: set) -> Dict:
    """Check a config section is a dictionary holding only allowed keys.

    Raises:
        ValueError: If the section is malformed
    """
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"'{path}' must be a dictionary")
    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown keys in {path}: {unknown_keys}")
    return data
