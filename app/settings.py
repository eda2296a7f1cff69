from constants import *
from utils import sanitize_sensitive_data
import copy
import yaml
import os

import logging

# Retrieve main logger
logger = logging.getLogger("main")

TRUE_VALUES = ("1", "true", "yes", "on", "enable", "enabled")
FALSE_VALUES = ("0", "false", "no", "off", "disable", "disabled")


def parse_bool(value, default=False):
    if isinstance(value, bool):
        return value
    if value is None:
        return default
    value = str(value).strip().lower()
    if value in TRUE_VALUES:
        return True
    if value in FALSE_VALUES:
        return False
    return default


def parse_list(value, default=None):
    if isinstance(value, (list, tuple)):
        return [str(item).strip() for item in value]
    if not value:
        return list(default or [])
    return [item.strip() for item in str(value).split(",") if item.strip()]


def parse_number(value, default=None):
    """Non-negative int (or float) from a string; anything else yields the default"""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if number < 0:
        return default
    return int(number) if number.is_integer() else number


def _read_env(name):
    """Resolve an environment variable, preferring a `<name>_FILE` secret file"""
    file_path = os.environ.get(f"{name}_FILE")
    if file_path:
        try:
            with open(file_path, "r") as secret_file:
                return secret_file.read().strip()
        except OSError as e:
            raise ValueError(f"Failed to read secret from {name}_FILE='{file_path}': {e}")
    return os.environ.get(name)


def _coerce(raw, default):
    if isinstance(default, bool):
        return parse_bool(raw, default)
    if isinstance(default, (int, float)):
        return parse_number(raw, default)
    if isinstance(default, list):
        return parse_list(raw, default)
    return raw


def _deep_merge(base, override):
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def apply_env_overrides(settings, defaults=DEFAULT_SETTINGS, prefix=ENV_PREFIX):
    """Override settings from LUDOTECA_<SECTION>_<KEY> environment variables"""
    for key, default in defaults.items():
        env_name = f"{prefix}_{key.upper()}"
        if isinstance(default, dict):
            settings.setdefault(key, {})
            apply_env_overrides(settings[key], default, env_name)
            continue
        raw = _read_env(env_name)
        if raw is not None:
            settings[key] = _coerce(raw, default)
            logger.debug(f"Setting {env_name} overridden from environment")
    return settings


# Cache variable
_cached_settings = None


def load_settings(force=False, config_file=CONFIG_FILE):
    global _cached_settings

    if _cached_settings and not force:
        return _cached_settings

    settings = copy.deepcopy(DEFAULT_SETTINGS)

    if os.path.exists(config_file):
        logger.debug(f"Reading configuration file: {config_file}")
        with open(config_file, "r") as yaml_file:
            file_settings = yaml.safe_load(yaml_file) or {}
        if not isinstance(file_settings, dict):
            raise ValueError(f"Configuration root in {config_file} must be a mapping")
        _deep_merge(settings, file_settings)
    else:
        try:
            os.makedirs(os.path.dirname(config_file), exist_ok=True)
            with open(config_file, "w") as yaml_file:
                yaml.dump(settings, yaml_file)
        except OSError as e:
            logger.warning(f"Could not write default configuration to {config_file}: {e}")

    apply_env_overrides(settings)

    _cached_settings = settings
    return settings


def get_censored_settings(settings=None):
    """Settings safe to log: credentials are redacted"""
    return sanitize_sensitive_data(settings or load_settings(), SENSITIVE_SETTINGS)


def verify_settings(settings):
    success = True
    errors = []
    games = settings.get("games", {})
    if not os.path.isdir(games.get("path") or ""):
        success = False
        errors.append({"path": "games/path", "error": f"Path {games.get('path')} does not exist."})
    if not games.get("supported_file_formats"):
        success = False
        errors.append({"path": "games/supported_file_formats", "error": "At least one file format is required."})
    return success, errors
