"""Persisted CLI defaults for Takeout Metadata Fixer."""

import logging
import os
import json
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


def default_config_path() -> str:
    """Settings file location for the current platform."""
    if os.name == "nt":  # Windows
        base = os.environ.get("APPDATA", os.path.expanduser("~"))
    else:  # macOS/Linux
        base = os.environ.get("XDG_CONFIG_HOME", os.path.expanduser("~/.config"))
    return os.path.join(base, "tmf", "settings.json")


class Settings:
    """Remembers the last paths, mode and worker count between runs.

    A missing or corrupt file simply yields the defaults.
    """

    DEFAULT_SETTINGS = {
        "last_paths": [],
        "last_destination": "",
        "last_mode": "inplace",
        "workers": 25,
    }

    def __init__(self, config_path: Optional[str] = None):
        """Initialize settings.

        Args:
            config_path: Settings file (default: per-user config dir).
        """
        self._settings: Dict[str, Any] = dict(self.DEFAULT_SETTINGS)
        self._config_path = config_path or default_config_path()
        self.load()

    @property
    def path(self) -> str:
        return self._config_path

    def load(self) -> None:
        """Load settings from file."""
        try:
            if os.path.exists(self._config_path):
                with open(self._config_path, "r", encoding="utf-8") as f:
                    loaded = json.load(f)
                if isinstance(loaded, dict):
                    self._settings.update(
                        {k: v for k, v in loaded.items() if k in self.DEFAULT_SETTINGS}
                    )
        except (OSError, ValueError) as e:
            logger.debug(f"Error loading settings from {self._config_path}: {e}")

    def save(self) -> None:
        """Save settings to file."""
        try:
            os.makedirs(os.path.dirname(self._config_path), exist_ok=True)
            with open(self._config_path, "w", encoding="utf-8") as f:
                json.dump(self._settings, f, indent=2)
        except OSError as e:
            logger.debug(f"Error saving settings to {self._config_path}: {e}")

    def get(self, key: str, default: Any = None) -> Any:
        """Get a setting value."""
        return self._settings.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Set a setting value."""
        self._settings[key] = value

    @property
    def workers(self) -> int:
        """Saved worker count, or the default if the stored value is unusable."""
        value = self._settings.get("workers")
        if isinstance(value, int) and not isinstance(value, bool) and value >= 1:
            return value
        return self.DEFAULT_SETTINGS["workers"]
