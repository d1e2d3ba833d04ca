"""
config_loader.py
- Loads and previews the YAML configuration file (labeler.yml).
- The file is optional: every value has a default in core.constants.
"""

import os

import yaml
from loguru import logger


def load_yaml(path):
    """Safely load a YAML file and return a parsed dict. Returns {} on failure."""
    if not os.path.exists(path):
        logger.debug(f"[load_yaml] No config file at {path}, using defaults.")
        return {}
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"[load_yaml] Failed to load {path}: {e}")
        return {}
    if not isinstance(data, dict):
        logger.error(f"[load_yaml] Expected a mapping at the top of {path}, got {type(data).__name__}.")
        return {}
    return data


def preview_yaml(path, name=None):
    """
    Log a human-readable preview of the YAML file contents.
    Typically used during startup to verify config presence and structure.
    """
    if not os.path.exists(path):
        logger.info(f"[config] File not found: {path} (defaults apply)")
        return

    try:
        with open(path, "r") as f:
            contents = f.read()
    except OSError as e:
        logger.error(f"[config] Could not preview {path}: {e}")
        return
    logger.info(f"\n📄 Loaded {name or path}:\n" + "\n".join(f"│ {line}" for line in contents.strip().splitlines()))
