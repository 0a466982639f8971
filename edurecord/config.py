"""
Configuration loading for the EduRecord platform.

Settings come from built-in defaults, optionally overridden by a JSON file.
"""

import copy
import json
import logging
from decimal import Decimal
from typing import Any, Dict, Optional

from .core.exceptions import ConfigurationError, EduRecordException
from .services.record_engine import DEFAULT_PASSING_THRESHOLD, validate_passing_threshold

logger = logging.getLogger(__name__)

SUPPORTED_DATABASES = ("sqlite", "postgresql")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

DEFAULT_CONFIG: Dict[str, Any] = {
    'database_type': 'sqlite',
    'database_config': {'database_path': 'edurecord.db'},
    'passing_threshold': str(DEFAULT_PASSING_THRESHOLD),
    'lock_timeout': 5.0,
    'lock_retries': 3,
    'log_level': 'INFO',
    'rest_host': '0.0.0.0',
    'rest_port': 8000,
}


def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """Return the defaults merged with the JSON file at ``path``, validated."""
    config = copy.deepcopy(DEFAULT_CONFIG)
    if path:
        try:
            with open(path, 'r') as f:
                overrides = json.load(f)
        except OSError as e:
            raise ConfigurationError(f"Cannot read configuration file {path}: {e}",
                                     details={'path': path}) from e
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in configuration file {path}: {e}",
                                     details={'path': path}) from e
        if not isinstance(overrides, dict):
            raise ConfigurationError("Configuration file must contain a JSON object",
                                     details={'path': path})

        unknown = sorted(set(overrides) - set(DEFAULT_CONFIG))
        if unknown:
            logger.warning("Ignoring unknown configuration keys: %s", ", ".join(unknown))
        config.update({key: value for key, value in overrides.items() if key in DEFAULT_CONFIG})

    return validate_config(config)


def validate_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """Normalize a configuration dictionary or raise ConfigurationError."""
    database_type = str(config['database_type']).lower()
    if database_type not in SUPPORTED_DATABASES:
        raise ConfigurationError(f"Unsupported database type: {config['database_type']}",
                                 details={'database_type': config['database_type']})
    config['database_type'] = database_type

    if not isinstance(config['database_config'], dict):
        raise ConfigurationError("database_config must be an object")

    try:
        threshold: Decimal = validate_passing_threshold(config['passing_threshold'])
    except EduRecordException as e:
        raise ConfigurationError(f"Invalid passing_threshold: {e.message}",
                                 details={'passing_threshold': str(config['passing_threshold'])}) from e
    config['passing_threshold'] = threshold

    config['lock_timeout'] = _number(config, 'lock_timeout', float, minimum=0)
    config['lock_retries'] = _number(config, 'lock_retries', int, minimum=0)
    config['rest_port'] = _number(config, 'rest_port', int, minimum=1)
    if config['rest_port'] > 65535:
        raise ConfigurationError("rest_port must be at most 65535", details={'rest_port': config['rest_port']})

    log_level = str(config['log_level']).upper()
    if log_level not in LOG_LEVELS:
        raise ConfigurationError(f"Invalid log_level: {config['log_level']}",
                                 details={'log_level': config['log_level']})
    config['log_level'] = log_level
    return config


def _number(config: Dict[str, Any], key: str, kind, minimum):
    value = config[key]
    if isinstance(value, bool):
        raise ConfigurationError(f"{key} must be a number", details={key: value})
    try:
        number = kind(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{key} must be a number", details={key: value}) from None
    if number < minimum:
        raise ConfigurationError(f"{key} must be at least {minimum}", details={key: value})
    return number
