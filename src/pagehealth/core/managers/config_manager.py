# src/pagehealth/core/managers/config_manager.py
import json
import logging
import os
from typing import Any, Dict, List, Optional

from pagehealth.core.utils.path_utils import PathUtils
from pagehealth.model import ValidatorDescriptor

logger = logging.getLogger(__name__)


class ConfigManager:
    """
    A singleton class to manage the application's configuration.
    It loads settings from a file and allows for in-memory modifications.
    Secrets (API keys, logins) are never stored in the file; they are read
    from the environment variables the file names.
    """
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(ConfigManager, cls).__new__(cls)
            cls._instance._initialize()
        return cls._instance

    def _initialize(self):
        """Loads the configuration from the file."""
        self._config: Dict[str, Any] = {}
        self.reset()
        logger.debug("ConfigManager initialized.")

    def get_all(self) -> Dict[str, Any]:
        """Returns the entire current configuration dictionary."""
        return self._config

    def get_nested(self, key_path: str, default: Optional[Any] = None) -> Any:
        """
        Safely retrieves a nested value from the configuration.
        e.g., 'services.w3c.endpoint'.
        """
        keys = key_path.split('.')
        value = self._config
        for key in keys:
            if isinstance(value, dict):
                value = value.get(key)
            else:
                return default
        return value if value is not None else default

    def set_nested(self, key_path: str, value: Any) -> bool:
        """
        Sets a nested value in the in-memory configuration.
        e.g., 'auditor.seo.scoring_policy', 'strict'
        """
        keys = key_path.split('.')
        d = self._config
        # Navigate to the second-to-last dictionary
        for key in keys[:-1]:
            d = d.setdefault(key, {})
            if not isinstance(d, dict):
                logger.error("Cannot set value: '%s' is not a dictionary.", key)
                return False

        # Cast to the type of the value being replaced, when there is one
        original_value = d.get(keys[-1])
        if original_value is not None and not isinstance(original_value, (dict, list)):
            try:
                value = type(original_value)(value)
            except (ValueError, TypeError):
                logger.warning(
                    "Could not cast new value for '%s' to type %s. Storing as-is.",
                    key_path, type(original_value).__name__
                )

        d[keys[-1]] = value
        logger.info("Configuration updated: %s = %s", key_path, value)
        return True

    @staticmethod
    def read_secret(env_name: Optional[str]) -> Optional[str]:
        """Returns the stripped value of `env_name`, or None when unset or blank."""
        if not env_name:
            return None
        value = os.environ.get(env_name, "").strip()
        return value or None

    @staticmethod
    def parse_validator_descriptors(entries: Optional[List[Any]]) -> List[ValidatorDescriptor]:
        """Builds the declarative check list from a 'validators' section, skipping malformed entries."""
        descriptors = []
        for entry in entries or []:
            try:
                descriptors.append(ValidatorDescriptor(**entry))
            except (TypeError, ValueError) as e:
                logger.warning("Skipping malformed validator entry %r: %s", entry, e)
        return descriptors

    def reset(self):
        """Resets the in-memory configuration from the settings file."""
        try:
            config_path = PathUtils.get_settings_file()
            if not config_path.exists():
                logger.warning("settings.json not found at %s. Using empty config.", config_path)
                self._config = {}
                return
            with open(config_path, "r", encoding="utf-8") as f:
                self._config = json.load(f)
            logger.debug("Configuration has been (re)loaded from %s.", config_path)
        except (OSError, json.JSONDecodeError) as e:
            logger.error("Failed to load settings file: %s", e, exc_info=True)
            self._config = {}


# The global singleton instance that the entire application will use.
config_manager = ConfigManager()
