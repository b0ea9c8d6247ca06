import json
import logging
from pathlib import Path
from typing import Dict, Any
import screenlogger.settings as default_settings

log = logging.getLogger(__name__)


class GlobalSync:
    """
    A singleton class that houses all application configuration.

    Values come from `settings.py` (which already applies `.env`), then
    whitelisted overrides from `overrides.json`. Every process (console,
    boot hook, worker) loads the same files; there is no configuration
    channel between processes.
    """

    def __init__(self) -> None:
        """Initializes the settings object from defaults and overrides."""
        self._config: Dict[str, Any] = {}
        self._load_defaults()
        self._load_overrides_from_file()

    def get(self, item: str, default: Any = None) -> Any:
        """Provides dictionary-like access to settings with a default value."""
        return self._config.get(item, default)

    def __getattr__(self, name: str) -> Any:
        """Allows attribute access to settings, raising an AttributeError if not found."""
        if name.startswith("_"):
            raise AttributeError(name)
        if name in self._config:
            return self._config[name]
        raise AttributeError(f"'{self.__class__.__name__}' object has no attribute '{name}'")

    def __setattr__(self, name: str, value: Any) -> None:
        if name.startswith("_"):
            super().__setattr__(name, value)
        else:
            self._config[name] = value

    def _load_defaults(self) -> None:
        """Loads all uppercase attributes from settings.py as the baseline."""
        for key in dir(default_settings):
            if key.isupper():
                self._config[key] = getattr(default_settings, key)

    def _load_overrides_from_file(self) -> None:
        """Loads overrides from the JSON file, ignoring keys that are not modifiable."""
        overrides_path = Path(self._config["OVERRIDES_JSON_PATH"])
        if not overrides_path.exists():
            return

        try:
            with overrides_path.open('r') as f:
                overrides = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            log.error(f"Failed to load or parse overrides file: {e}")
            return

        log.debug(f"Loading runtime config overrides from {overrides_path}")
        for key, value in overrides.items():
            if key not in self._config["MODIFIABLE_SETTINGS"]:
                log.warning(f"Attempted to override non-modifiable setting '{key}'. Ignoring.")
                continue
            self._config[key] = self._coerce(key, value)

    def _coerce(self, key: str, value: Any) -> Any:
        """Coerces a raw value to the type of the default setting."""
        original_value = getattr(default_settings, key, None)
        if isinstance(original_value, bool):
            return str(value).lower() in ('true', '1', 't', 'yes', 'y')
        if isinstance(original_value, Path):
            return Path(value)
        if original_value is not None:
            return type(original_value)(value)
        return value

    def update_setting(self, key: str, value: Any) -> tuple:
        """
        Updates a modifiable setting and persists it to overrides.json.

        :param key: The setting name.
        :param value: The new value, coerced to the default's type.
        :return: A (success, message) tuple.
        """
        if key not in self._config["MODIFIABLE_SETTINGS"]:
            return False, f"Setting '{key}' is not modifiable."
        try:
            self._config[key] = self._coerce(key, value)
        except (ValueError, TypeError) as e:
            return False, f"Could not convert value '{value}' for key '{key}'. Error: {e}"
        self.save_overrides()
        return True, f"Setting '{key}' updated to '{self._config[key]}'. Restart the worker to apply it there."

    def save_overrides(self) -> None:
        """Persists the modifiable parts of the config to overrides.json."""
        overrides_path = Path(self._config["OVERRIDES_JSON_PATH"])
        overrides = {
            key: str(self._config[key]) if isinstance(self._config[key], Path) else self._config[key]
            for key in self._config["MODIFIABLE_SETTINGS"]
            if key in self._config
        }
        try:
            overrides_path.parent.mkdir(parents=True, exist_ok=True)
            overrides_path.write_text(json.dumps(overrides, indent=4))
        except IOError as e:
            log.error(f"Failed to write overrides to '{overrides_path}': {e}")

    def get_all_settings(self) -> Dict[str, Any]:
        """Returns the entire configuration dictionary."""
        return self._config

# A singleton instance to be imported by other modules
app_globals = GlobalSync()
