"""
settings_manager.py
===================
Persisted launcher settings (settings.json).

Stores:
  - custom_jdk_locations    – extra root directories to scan for JDKs
  - preferred_jdk_per_file  – remembered java binary per JAR path
"""

from __future__ import annotations

import json
import logging
import os
import platform
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

SETTINGS_ENV = "MULTIJDK_SETTINGS"
SETTINGS_FILENAME = "settings.json"
APP_DIR_NAME = "multijdk"


def default_settings_path() -> Path:
    """
    Resolve where settings.json lives.

    Order: $MULTIJDK_SETTINGS, then %APPDATA%\\multijdk on Windows,
    then $XDG_CONFIG_HOME/multijdk (``~/.config/multijdk``) elsewhere.
    """
    override = os.environ.get(SETTINGS_ENV)
    if override:
        return Path(override).expanduser()

    if platform.system() == "Windows":
        base = os.environ.get("APPDATA") or os.path.expanduser("~")
    else:
        base = os.environ.get("XDG_CONFIG_HOME") or os.path.expanduser("~/.config")
    return Path(base) / APP_DIR_NAME / SETTINGS_FILENAME


def normalize_jar_key(jar_path: str | Path) -> str:
    """Key remembered choices by absolute JAR path."""
    return os.path.normpath(os.path.abspath(os.path.expanduser(str(jar_path))))


# ──────────────────────────────────────────────
#  Settings Dataclass
# ──────────────────────────────────────────────

@dataclass
class Settings:
    custom_jdk_locations: List[str] = field(default_factory=list)
    preferred_jdk_per_file: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "custom_jdk_locations": list(self.custom_jdk_locations),
            "preferred_jdk_per_file": dict(self.preferred_jdk_per_file),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Settings":
        locations = data.get("custom_jdk_locations") or []
        preferred = data.get("preferred_jdk_per_file") or {}
        return cls(
            custom_jdk_locations=[str(p) for p in locations],
            preferred_jdk_per_file={str(k): str(v) for k, v in preferred.items()},
        )


# ──────────────────────────────────────────────
#  SettingsManager
# ──────────────────────────────────────────────

class SettingsManager:
    """
    Loads and saves settings.json.

    Args:
        settings_path: Path to settings.json (default: ``default_settings_path()``)
    """

    def __init__(self, settings_path: Optional[str | Path] = None) -> None:
        self.settings_path = Path(settings_path) if settings_path else default_settings_path()
        self.settings = Settings()
        self._load()

    # ================================================================
    #  PERSISTENCE
    # ================================================================

    def _load(self) -> None:
        """Load settings.json into self.settings."""
        if not self.settings_path.exists():
            logger.debug("Settings file not found at %s, using defaults", self.settings_path)
            return
        try:
            with open(self.settings_path, "r", encoding="utf-8") as fh:
                data = json.load(fh)
            if not isinstance(data, dict):
                raise ValueError("top-level JSON value is not an object")
            self.settings = Settings.from_dict(data)
            logger.debug("Settings loaded from %s", self.settings_path)
        except (OSError, ValueError, AttributeError) as exc:
            logger.error("Failed to load settings from %s: %s", self.settings_path, exc)
            self.settings = Settings()

    def save(self) -> bool:
        """Persist self.settings to settings.json. Returns False on failure."""
        try:
            self.settings_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.settings_path, "w", encoding="utf-8") as fh:
                json.dump(self.settings.to_dict(), fh, indent=2)
            logger.debug("Settings saved to %s", self.settings_path)
            return True
        except OSError as exc:
            logger.error("Failed to save settings to %s: %s", self.settings_path, exc)
            return False

    # ================================================================
    #  REMEMBERED CHOICES
    # ================================================================

    def get(self, jar_path: str | Path) -> Optional[str]:
        """Return the remembered java binary for a JAR, or None."""
        return self.settings.preferred_jdk_per_file.get(normalize_jar_key(jar_path))

    def put(self, jar_path: str | Path, java_path: str | Path) -> bool:
        key = normalize_jar_key(jar_path)
        self.settings.preferred_jdk_per_file[key] = str(java_path)
        logger.info("Remembering %s for %s", java_path, key)
        return self.save()

    def forget(self, jar_path: str | Path) -> bool:
        """Drop the remembered binary for a JAR. Returns True if one existed."""
        key = normalize_jar_key(jar_path)
        if self.settings.preferred_jdk_per_file.pop(key, None) is None:
            return False
        logger.info("Forgot remembered JDK for %s", key)
        self.save()
        return True

    # ================================================================
    #  EXTRA SCAN ROOTS
    # ================================================================

    def list_extra_roots(self) -> List[str]:
        return list(self.settings.custom_jdk_locations)

    def add_location(self, location: str | Path) -> bool:
        """Add an extra scan root. Returns False if it was already present."""
        location = os.path.abspath(os.path.expanduser(str(location)))
        if location in self.settings.custom_jdk_locations:
            return False
        if not os.path.isdir(location):
            logger.warning("JDK location %s does not exist (saved anyway)", location)
        self.settings.custom_jdk_locations.append(location)
        self.save()
        return True
