"""Loading and saving of feed configuration files."""
import dataclasses
import logging
from pathlib import Path
from typing import Any, Dict, List

import yaml

from processor.models import FeedSourceConfig

logger = logging.getLogger(__name__)

REQUIRED_KEYS = ('id', 'url')
FIELD_NAMES = {f.name for f in dataclasses.fields(FeedSourceConfig)}


class ConfigError(Exception):
    """Raised when the feed configuration is missing or invalid."""


def load_feed_configs(path: str) -> List[FeedSourceConfig]:
    """
    Load feed configurations from a YAML file.

    The file holds a top-level "feeds" list of mappings. "id" and "url" are
    required; other fields fall back to their defaults and unknown keys are
    ignored.

    Args:
        path: Path to the YAML file

    Returns:
        List of FeedSourceConfig objects

    Raises:
        ConfigError: If the file is missing, unreadable or invalid
    """
    config_path = Path(path)
    if not config_path.is_file():
        raise ConfigError(f"Feed configuration not found: {path}")

    try:
        data = yaml.safe_load(config_path.read_text(encoding='utf-8')) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict) or not isinstance(data.get('feeds', []), list):
        raise ConfigError(f"Expected a 'feeds' list in {path}")

    configs = [feed_config_from_dict(entry) for entry in data.get('feeds', [])]

    ids = [config.id for config in configs]
    duplicates = sorted({feed_id for feed_id in ids if ids.count(feed_id) > 1})
    if duplicates:
        raise ConfigError(f"Duplicate feed ids: {', '.join(duplicates)}")

    logger.info(f"Loaded {len(configs)} feed configurations from {path}")
    return configs


def feed_config_from_dict(entry: Dict[str, Any]) -> FeedSourceConfig:
    """Build a FeedSourceConfig from one mapping of the configuration file."""
    if not isinstance(entry, dict):
        raise ConfigError(f"Feed entry must be a mapping, got: {entry!r}")

    missing = [key for key in REQUIRED_KEYS if not entry.get(key)]
    if missing:
        raise ConfigError(f"Feed entry missing required fields: {', '.join(missing)}")

    values = {key: value for key, value in entry.items() if key in FIELD_NAMES}
    values['id'] = str(values['id'])

    try:
        values['sync_interval_minutes'] = int(values.get('sync_interval_minutes', 0))
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid sync_interval_minutes for feed {values['id']}") from e
    if values['sync_interval_minutes'] < 0:
        raise ConfigError(f"Negative sync_interval_minutes for feed {values['id']}")

    return FeedSourceConfig(**values)


def save_feed_configs(path: str, configs: List[FeedSourceConfig]) -> None:
    """Write feed configurations back to a YAML file."""
    data = {'feeds': [dataclasses.asdict(config) for config in configs]}
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(
        yaml.safe_dump(data, sort_keys=False, allow_unicode=True), encoding='utf-8'
    )
