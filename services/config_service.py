# FILE: services/config_service.py

import json
import logging
from dataclasses import asdict, dataclass, fields
from pathlib import Path

from gi.repository import GLib

logger = logging.getLogger(__name__)

# --- Settings ---
CONFIG_DIR = Path(GLib.get_user_config_dir()) / 'debinstaller'
CONFIG_FILE = CONFIG_DIR / 'settings.json'


@dataclass
class Settings:
    dpkg_binary: str = "dpkg"
    command_timeout: float = 5.0
    elevation_command: str = "pkexec"
    log_level: str = "INFO"


def _coerce(name: str, value, default):
    """Returns value converted to the type of default, or None if it does not fit."""
    if isinstance(default, float):
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
            return None
        return float(value)
    if isinstance(default, str):
        if not isinstance(value, str):
            return None
        if name == 'log_level' and value.upper() not in logging.getLevelNamesMapping():
            return None
        return value.upper() if name == 'log_level' else value
    return None


def load_settings(path: Path = CONFIG_FILE) -> Settings:
    """Loads settings from a JSON file, falling back to defaults for anything missing or invalid."""
    settings = Settings()
    if not path.exists():
        return settings
    try:
        with open(path, 'r') as f:
            data = json.load(f)
    except (json.JSONDecodeError, IOError) as e:
        # If file is corrupted or unreadable, treat as empty settings
        logger.warning("Ignoring unreadable settings file %s: %s", path, e)
        return settings
    if not isinstance(data, dict):
        logger.warning("Ignoring settings file %s: expected a JSON object", path)
        return settings

    for field in fields(Settings):
        if field.name not in data:
            continue
        default = getattr(settings, field.name)
        value = _coerce(field.name, data[field.name], default)
        if value is None:
            logger.warning("Invalid value for '%s' in %s, using %r", field.name, path, default)
            continue
        setattr(settings, field.name, value)
    return settings


def save_settings(settings: Settings, path: Path = CONFIG_FILE) -> bool:
    """Writes settings to a JSON file. Returns False if the file could not be written."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            json.dump(asdict(settings), f, indent=2)
    except IOError as e:
        logger.error("Error saving settings: %s", e)
        return False
    return True


def load_or_create_settings(path: Path = CONFIG_FILE) -> Settings:
    """Loads settings, writing a file with the defaults on first run so it can be edited by hand."""
    if not path.exists():
        save_settings(Settings(), path)
    return load_settings(path)
