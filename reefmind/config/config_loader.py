import copy
import logging
import os
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

CONFIG_DIR_ENV = "REEFMIND_CONFIG_DIR"
DEFAULT_CONFIG_DIR = Path(__file__).parent

RANGES_FILE = "ranges.yaml"
RULES_FILE = "rules.yaml"
SETTINGS_FILE = "reefmind.yaml"

_CONFIG_CACHE = {}


def config_dir(override: str | Path | None = None) -> Path:
    """
    Resolve the config directory.
    Explicit argument > REEFMIND_CONFIG_DIR > bundled defaults.
    """
    if override is not None:
        return Path(override)
    if os.environ.get(CONFIG_DIR_ENV):
        return Path(os.environ[CONFIG_DIR_ENV])
    return DEFAULT_CONFIG_DIR


def load_config(path: str | Path) -> dict:
    """
    Load YAML config with per-file cache.
    Callers get their own copy; the cached document is never handed out.
    """
    key = str(Path(path).resolve())

    if key not in _CONFIG_CACHE:
        config_path = Path(path)

        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        _CONFIG_CACHE[key] = data
        logger.info(f"Config loaded: {config_path}")

    return copy.deepcopy(_CONFIG_CACHE[key])


def clear_config_cache():
    _CONFIG_CACHE.clear()


# =========================================================
# NAMED DOCUMENTS
# =========================================================
def load_ranges(directory: str | Path | None = None) -> dict:
    return load_config(config_dir(directory) / RANGES_FILE).get("parameters", {})


def load_rules(directory: str | Path | None = None) -> dict:
    return load_config(config_dir(directory) / RULES_FILE)


def load_settings(directory: str | Path | None = None) -> dict:
    return load_config(config_dir(directory) / SETTINGS_FILE)
