"""
Configuration utilities for ProviderTrust.

Provides configuration loading, validation and merging for the scoring,
address validation, acquisition, enrichment and audit components.
"""

import copy
import logging
import yaml
from typing import Dict, Any
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config/provider_trust.yaml"


def get_default_config() -> Dict[str, Any]:
    """
    Get default ProviderTrust configuration.

    Returns:
        Default configuration dictionary
    """
    return {
        "scoring": {
            # Trust applied to SIMULATION evidence; every other provenance
            # type has a fixed trust level.
            "simulation_trust": 0.5,
            "thresholds": {
                "address_quality_min": 80,
                "similarity_min": 0.8,
                "verified_min": 80,
                "trust_min": 0.5
            },
            "penalties": {
                "invalid_registry_id": 10,
                "license_not_found": 50,
                "name_mismatch": 20,
                "address_quality_factor": 0.75,
                "address_quality_cap": 40
            }
        },
        "address": {
            "min_length": 8
        },
        "acquisition": {
            "outage_rate": 0.05,
            "latency_seconds": 0.0,
            "simulation_identifiers": ["8888888888"],
            "inactive_identifiers": ["9999999999"],
            "cache_ttl_seconds": 86400,
            "default_specialties": ["General Practice"]
        },
        "enrichment": {
            "endpoint": None,
            "timeout_seconds": 30
        },
        "audit": {
            "db_path": "data/provider_trust.db"
        },
        "pipeline": {
            "max_workers": 4
        }
    }


def merge_configs(base_config: Dict[str, Any], override_config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge two configuration dictionaries.

    Args:
        base_config: Base configuration
        override_config: Override configuration

    Returns:
        Merged configuration
    """
    merged = copy.deepcopy(base_config)

    for key, value in override_config.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = merge_configs(merged[key], value)
        else:
            merged[key] = value

    return merged


def load_config(config_path: str = DEFAULT_CONFIG_PATH) -> Dict[str, Any]:
    """
    Load ProviderTrust configuration from YAML file.

    Values from the file are merged over the defaults, so a partial file
    only needs to name the settings it changes.

    Args:
        config_path: Path to configuration file

    Returns:
        Configuration dictionary
    """
    defaults = get_default_config()
    config_file = Path(config_path)
    if not config_file.exists():
        logger.warning(f"Configuration file {config_path} not found, using defaults")
        return defaults

    try:
        with open(config_file, 'r') as f:
            file_config = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Failed to load configuration from {config_path}: {e}")
        return defaults

    if not isinstance(file_config, dict):
        logger.error(f"Configuration file {config_path} must contain a mapping, using defaults")
        return defaults

    logger.info(f"Loaded configuration from {config_path}")
    return merge_configs(defaults, file_config)


def _is_fraction(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and 0 <= value <= 1


def validate_config(config: Dict[str, Any]) -> bool:
    """
    Validate ProviderTrust configuration.

    Args:
        config: Configuration dictionary

    Returns:
        True if configuration is valid, False otherwise
    """
    required_sections = ["scoring", "address", "acquisition"]

    for section in required_sections:
        if section not in config:
            logger.error(f"Missing required configuration section: {section}")
            return False

    scoring_config = config.get("scoring", {})
    if not _is_fraction(scoring_config.get("simulation_trust", 0.5)):
        logger.error("scoring.simulation_trust must be a number between 0 and 1")
        return False

    thresholds = scoring_config.get("thresholds", {})
    for key in ("similarity_min", "trust_min"):
        if not _is_fraction(thresholds.get(key, 0.5)):
            logger.error(f"scoring.thresholds.{key} must be a number between 0 and 1")
            return False

    for key in ("address_quality_min", "verified_min"):
        value = thresholds.get(key, 80)
        if not isinstance(value, (int, float)) or not 0 <= value <= 100:
            logger.error(f"scoring.thresholds.{key} must be a number between 0 and 100")
            return False

    penalties = scoring_config.get("penalties", {})
    for key, value in penalties.items():
        if not isinstance(value, (int, float)) or value < 0:
            logger.error(f"scoring.penalties.{key} must be a non-negative number")
            return False

    acquisition_config = config.get("acquisition", {})
    if not _is_fraction(acquisition_config.get("outage_rate", 0.0)):
        logger.error("acquisition.outage_rate must be a number between 0 and 1")
        return False

    for key in ("simulation_identifiers", "inactive_identifiers"):
        if not isinstance(acquisition_config.get(key, []), list):
            logger.error(f"acquisition.{key} must be a list")
            return False

    logger.info("Configuration validation passed")
    return True


def save_config(config: Dict[str, Any], config_path: str) -> bool:
    """
    Save configuration to YAML file.

    Args:
        config: Configuration dictionary
        config_path: Path to save configuration

    Returns:
        True if successful, False otherwise
    """
    try:
        config_file = Path(config_path)
        config_file.parent.mkdir(parents=True, exist_ok=True)

        with open(config_file, 'w') as f:
            yaml.dump(config, f, default_flow_style=False, indent=2)

        logger.info(f"Saved configuration to {config_path}")
        return True

    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Failed to save configuration to {config_path}: {e}")
        return False
