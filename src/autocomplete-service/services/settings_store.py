"""Settings Store - Validated, atomically persisted autocomplete settings"""
import json
import logging
import os
from typing import Any, Dict, Mapping, Optional
from pydantic.alias_generators import to_camel
from config import settings
from models import AutocompleteSettings

logger = logging.getLogger(__name__)


def _aliased(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Map snake_case field names onto their camelCase aliases"""
    fields = AutocompleteSettings.model_fields
    return {to_camel(key) if key in fields else key: value for key, value in data.items()}


def normalize_settings(raw: Optional[Mapping[str, Any]]) -> AutocompleteSettings:
    """
    Build settings from an untrusted mapping.
    Out-of-range numbers are clamped, invalid values fall back to defaults.
    """
    if not isinstance(raw, Mapping):
        return AutocompleteSettings()
    return AutocompleteSettings.model_validate(_aliased(raw))


def merge_settings(base: AutocompleteSettings, updates: Mapping[str, Any]) -> AutocompleteSettings:
    """Apply a partial update; the result is re-validated in full"""
    return normalize_settings({**base.model_dump(by_alias=True), **_aliased(updates)})


def load_settings(path: str) -> AutocompleteSettings:
    """Read settings from ``path``; missing or corrupt files yield defaults"""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        logger.info(f"No settings file at {path}, using defaults")
        return AutocompleteSettings()
    except (OSError, ValueError) as e:
        logger.warning(f"⚠️  Could not read settings from {path}: {e}")
        return AutocompleteSettings()

    return normalize_settings(data)


def save_settings(path: str, autocomplete_settings: AutocompleteSettings) -> None:
    """Write to a temp file and rename it over ``path``"""
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    temp_path = f"{path}.tmp"
    payload = json.dumps(autocomplete_settings.model_dump(by_alias=True), indent=2)
    with open(temp_path, "w", encoding="utf-8") as f:
        f.write(payload + "\n")
    os.replace(temp_path, path)


class SettingsStore:
    """Owns the current settings and keeps the settings file in sync"""

    def __init__(self, path: Optional[str] = None):
        self.path = path or settings.settings_path
        self.current = self.load()

    def load(self) -> AutocompleteSettings:
        """Re-read the settings file, replacing the in-memory settings"""
        self.current = load_settings(self.path)
        logger.info(f"✓ Loaded autocomplete settings from {self.path} (model: {self.current.model})")
        return self.current

    def save(self) -> None:
        save_settings(self.path, self.current)

    def get(self) -> AutocompleteSettings:
        return self.current

    def update(self, updates: Mapping[str, Any]) -> AutocompleteSettings:
        self.current = merge_settings(self.current, updates)
        self.save()
        logger.info(f"✓ Updated autocomplete settings: {sorted(updates)}")
        return self.current

    def reset(self) -> AutocompleteSettings:
        self.current = AutocompleteSettings()
        self.save()
        logger.info("✓ Reset autocomplete settings to defaults")
        return self.current
