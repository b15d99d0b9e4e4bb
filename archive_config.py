"""
Run configuration and logging setup.

Settings come from three layers, later ones winning: the CrawlConfig
defaults, an optional YAML file (config.yaml by default) and the command
line.
"""

import logging
import re
import sys
from dataclasses import dataclass, field, fields
from pathlib import Path

import yaml

CONFIG_FILE = "config.yaml"

DEBUG_LEVELS = {'info': logging.INFO, 'error': logging.ERROR}

DATE_PATTERN = re.compile(r'^\d{8}$')

# YAML keys accepted from the config file
FILE_KEYS = {
    'output_dir', 'max_pages', 'skip_patterns', 'timeout', 'max_redirects',
    'retry_backoff', 'frontier_limit', 'request_delay', 'debug_level',
}


class ConfigError(Exception):
    pass


@dataclass
class CrawlConfig:
    domain: str
    date: str
    debug_level: str = 'info'
    skip_existing: bool = False
    max_pages: int = 50
    skip_patterns: list = field(default_factory=list)
    output_dir: str = 'output'
    timeout: float = 30
    max_redirects: int = 5
    retry_backoff: tuple = (1, 1, 3, 15, 30, 60)
    frontier_limit: int = 10000
    request_delay: float = 0.0

    def __post_init__(self):
        if not self.domain:
            raise ConfigError("Domain cannot be empty")
        if not DATE_PATTERN.match(str(self.date)):
            raise ConfigError(f"Date must be YYYYMMDD, got {self.date!r}")
        if self.debug_level not in DEBUG_LEVELS:
            raise ConfigError(f"Debug level must be one of {sorted(DEBUG_LEVELS)}, got {self.debug_level!r}")
        if self.max_pages < 0:
            raise ConfigError("max_pages cannot be negative")
        if not self.retry_backoff:
            raise ConfigError("retry_backoff needs at least one delay")
        if isinstance(self.skip_patterns, str):
            self.skip_patterns = parse_skip_patterns(self.skip_patterns)
        self.retry_backoff = tuple(self.retry_backoff)

    @property
    def site_dir(self) -> Path:
        return Path(self.output_dir) / self.domain

    @classmethod
    def from_sources(cls, file_settings: dict, **overrides) -> 'CrawlConfig':
        """Build a config from YAML settings plus explicit (non-None) overrides."""
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in file_settings.items() if k in known}
        values.update({k: v for k, v in overrides.items() if v is not None})
        try:
            return cls(**values)
        except TypeError as e:
            raise ConfigError(str(e)) from e


def parse_skip_patterns(value: str | None) -> list[str]:
    if not value:
        return []
    return [pattern.strip() for pattern in value.split(',') if pattern.strip()]


def load_config(path: str | None = None) -> dict:
    """Load configuration from YAML file; a missing default file yields {}."""
    config_path = Path(path or CONFIG_FILE)
    if not config_path.exists():
        if path:
            raise ConfigError(f"Config file not found: {config_path}")
        return {}

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{config_path} must contain a mapping")

    unknown = set(data) - FILE_KEYS
    if unknown:
        raise ConfigError(f"Unknown config keys in {config_path}: {', '.join(sorted(unknown))}")
    return data


def configure_logging(debug_level: str = 'info') -> logging.Logger:
    """Console logging; 'error' silences progress output."""
    root = logging.getLogger()
    root.setLevel(DEBUG_LEVELS.get(debug_level, logging.INFO))

    if not any(getattr(h, '_archive_console', False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(
            '%(asctime)s | %(levelname)s | %(message)s',
            datefmt='%H:%M:%S'
        ))
        handler._archive_console = True
        root.addHandler(handler)

    # urllib3 connection chatter is only useful when debugging
    logging.getLogger('urllib3').setLevel(logging.WARNING)
    return root
