"""
config_loader.py
-----------------
Singleton config loader. Reads config.yaml once and caches it.
All modules access configuration through this — never hardcoded values.
"""

import os
import yaml
from typing import Any, Dict


_CONFIG_CACHE: Dict[str, Any] = {}


def load_config(config_path: str | None = None) -> Dict[str, Any]:
    """
    Load and cache the YAML configuration file.

    Args:
        config_path: Path to config.yaml. Defaults to config/ relative to this file.

    Returns:
        Full config dictionary.
    """
    global _CONFIG_CACHE

    if _CONFIG_CACHE:
        return _CONFIG_CACHE

    if config_path is None:
        config_path = os.path.join(os.path.dirname(__file__), "config.yaml")

    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        _CONFIG_CACHE = yaml.safe_load(f)

    return _CONFIG_CACHE


def get_config_section(section: str) -> Dict[str, Any]:
    """
    Returns a top-level config section.

    Raises:
        KeyError: If the section is not in the config.
    """
    config = load_config()
    if section not in config:
        raise KeyError(
            f"No config section '{section}'. "
            f"Available: {list(config.keys())}"
        )
    return config[section]


def get_subscription_detection_config() -> Dict[str, Any]:
    """Returns the subscription_detection block."""
    return get_config_section("subscription_detection")


def get_cadences() -> list[Dict[str, Any]]:
    """Returns the ordered cadence table."""
    return get_subscription_detection_config()["cadences"]


def get_amount_tolerances() -> Dict[str, float]:
    """Returns the strict / normal / loose amount tolerance tiers."""
    return get_subscription_detection_config()["amount_tolerances"]


def get_default_min_confidence() -> float:
    return get_subscription_detection_config()["min_confidence"]


def get_confidence_scoring_config() -> Dict[str, Any]:
    """Returns the sub-score threshold tables."""
    return get_config_section("confidence_scoring")


def get_confidence_tiers() -> Dict[str, Dict[str, float]]:
    """Returns confidence tier boundaries."""
    return get_config_section("confidence_tiers")


def get_normalization_rules() -> Dict[str, list[Dict[str, Any]]]:
    """Returns the prefix_rules / suffix_rules lists for the name normalizer."""
    return get_config_section("recipient_normalization")


def get_storage_config() -> Dict[str, Any]:
    """Returns storage key and default path for the subscription store."""
    return get_config_section("storage")


def reset_config() -> None:
    """Clears cached config. Useful for testing."""
    global _CONFIG_CACHE
    _CONFIG_CACHE = {}
