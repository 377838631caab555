"""
Configuration management for the player roster system.
"""

import copy
import logging
import yaml
from typing import Dict, Any

logger = logging.getLogger(__name__)


class ConfigManager:
    """Manages configuration loading and provides default values."""

    @staticmethod
    def load_config(config_file: str) -> Dict[str, Any]:
        """Load configuration from YAML file, merged over the defaults."""
        defaults = ConfigManager.get_default_config()
        try:
            with open(config_file, 'r', encoding='utf-8') as f:
                loaded = yaml.safe_load(f) or {}
        except FileNotFoundError:
            logger.warning(f"Configuration file '{config_file}' not found. Using default configuration.")
            return defaults
        except yaml.YAMLError as e:
            logger.warning(f"Error parsing configuration file: {e}. Using default configuration.")
            return defaults

        if not isinstance(loaded, dict):
            logger.warning(f"Configuration file '{config_file}' is not a mapping. Using default configuration.")
            return defaults

        return ConfigManager.merge(defaults, loaded)

    @staticmethod
    def merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively merge override into a copy of base."""
        merged = copy.deepcopy(base)
        for key, value in override.items():
            if isinstance(value, dict) and isinstance(merged.get(key), dict):
                merged[key] = ConfigManager.merge(merged[key], value)
            else:
                merged[key] = value
        return merged

    @staticmethod
    def get_default_config() -> Dict[str, Any]:
        """Return default configuration if config file is not available."""
        return {
            'age_groups': [
                {'name': 'youth-bracket-1', 'min_age': 3, 'max_age': 5},
                {'name': 'youth-bracket-2', 'min_age': 6, 'max_age': 13}
            ],
            'ineligible_cutoff_age': 14,
            'participation': {
                'statuses': ['completed', 'processing'],
                'optional_statuses': ['on-hold', 'pending'],
                'include_optional': False,
                'event_date_format': '%d/%m/%Y'
            },
            'directory': {
                'page_size': 20,
                'batch_size': 25,
                'max_batches': 20,
                'max_bytes': 300 * 1024 * 1024,
                'cache_ttl_minutes': 30
            },
            'maintenance': {
                'batch_size': 100,
                'max_batches': 50
            },
            'regions': ['Geneva', 'Zurich', 'Basel', 'Lausanne', 'Zug', 'Vaud'],
            'api': {
                'base_url': '',
                'orders_path': '/wp-json/wc/v3/orders',
                'consumer_key': '',
                'consumer_secret': '',
                'timeout': 30,
                'per_page': 100
            }
        }
