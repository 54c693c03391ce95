# src/pagehealth/core/utils/path_utils.py
import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)


class PathUtils:
    """
    A central utility for reliably retrieving package and user paths.
    """

    # --- Package specific paths

    @staticmethod
    def get_package_root() -> Path:
        """
        Returns the absolute path of the installed 'pagehealth' package
        (the directory holding the bundled settings.json).
        """
        return Path(__file__).resolve().parents[2]

    @staticmethod
    def get_default_settings_file() -> Path:
        return PathUtils.get_package_root() / "settings.json"

    # --- User specific paths ---

    @staticmethod
    def get_user_config_dir() -> Path:
        """
        Returns the path to the user's config directory (e.g., ~/.pagehealth/).
        """
        return Path.home() / ".pagehealth"

    @staticmethod
    def get_settings_file() -> Path:
        """
        Resolves the active settings file.

        Order: $PAGEHEALTH_SETTINGS, ~/.pagehealth/settings.json, bundled default.
        """
        env_path = os.environ.get("PAGEHEALTH_SETTINGS")
        if env_path:
            return Path(env_path).expanduser()

        user_file = PathUtils.get_user_config_dir() / "settings.json"
        if user_file.exists():
            logger.debug("Using user settings file at %s", user_file)
            return user_file

        return PathUtils.get_default_settings_file()
