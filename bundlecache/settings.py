import copy
import logging
import os

import yaml

from bundlecache.constants import CONFIG_FILE, DEFAULT_SETTINGS

# Retrieve main logger
logger = logging.getLogger("main")


# Cache variable
_cached_settings = None


def default_settings():
    return copy.deepcopy(DEFAULT_SETTINGS)


def merge_settings(overrides):
    """Deep merge a settings dict over the defaults, one level per section"""
    merged_settings = default_settings()
    for section, values in (overrides or {}).items():
        if isinstance(values, dict) and isinstance(merged_settings.get(section), dict):
            merged_settings[section].update(values)
        else:
            merged_settings[section] = values
    return merged_settings


def load_settings(force=False, config_file=CONFIG_FILE):
    global _cached_settings

    if _cached_settings and not force:
        return _cached_settings

    if os.path.exists(config_file):
        logger.debug(f"Reading configuration file: {config_file}")
        with open(config_file, "r") as yaml_file:
            settings = merge_settings(yaml.safe_load(yaml_file) or {})
    else:
        settings = default_settings()
        os.makedirs(os.path.dirname(config_file), exist_ok=True)
        with open(config_file, "w") as yaml_file:
            yaml.dump(settings, yaml_file)

    db_uri = os.environ.get("BUNDLECACHE_DB")
    if db_uri:
        settings["database"]["uri"] = db_uri

    _cached_settings = settings
    return settings


def verify_settings(settings):
    success = True
    errors = []
    staleness = settings.get("staleness", {})
    for key in ("max_age_days", "nameless_max_age_days"):
        value = staleness.get(key)
        if not isinstance(value, (int, float)) or value < 0:
            success = False
            errors.append({"path": f"staleness/{key}", "error": f"Must be a non-negative number, got {value!r}."})

    max_batch_size = settings.get("bundles", {}).get("max_batch_size")
    if not isinstance(max_batch_size, int) or max_batch_size < 1:
        success = False
        errors.append({"path": "bundles/max_batch_size", "error": "Must be a positive integer."})
    return success, errors


def reload_conf():
    """Reload application settings cache"""
    global _cached_settings
    _cached_settings = None
    return load_settings(force=True)
