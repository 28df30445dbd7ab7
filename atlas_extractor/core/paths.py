# ==============================================================================
# ATLAS EXTRACTOR - PATH UTILITIES
# ==============================================================================
# Centralized path handling for user data and default locations.
#
# User data (history database, config, logs) lives in a per-user folder:
#   - Windows: %APPDATA%/AtlasExtractor/
#   - macOS:   ~/Library/Application Support/AtlasExtractor/
#   - Linux:   $XDG_CONFIG_HOME/AtlasExtractor/ (default ~/.config)
#
# Usage:
#   from atlas_extractor.core.paths import Paths
#   db_path = Paths.get_database_path()
#   config_path = Paths.get_config_path()
# ==============================================================================

import os
import sys
from typing import Optional


class Paths:
    """
    Centralized path management for Atlas Extractor.

    Computed directories are cached on the class. Tests (or embedding
    applications) can point everything elsewhere with set_user_data_dir().
    """

    # Application name for folder creation
    APP_NAME = "AtlasExtractor"

    # Name of the default output folder
    OUTPUT_DIR_NAME = "result"

    # Cache for computed paths
    _app_dir: Optional[str] = None
    _user_data_dir: Optional[str] = None

    @classmethod
    def get_app_dir(cls) -> str:
        """
        Get the project root directory.

        This file is in atlas_extractor/core/, so go up 3 levels.
        """
        if cls._app_dir is None:
            cls._app_dir = os.path.dirname(
                os.path.dirname(
                    os.path.dirname(os.path.abspath(__file__))
                )
            )
        return cls._app_dir

    @classmethod
    def get_user_data_dir(cls) -> str:
        """
        Get the user data directory, creating it on first use.

        Returns:
            Absolute path to user data directory
        """
        if cls._user_data_dir is None:
            if sys.platform == 'win32':
                base = os.environ.get('APPDATA', os.path.expanduser('~'))
                cls._user_data_dir = os.path.join(base, cls.APP_NAME)
            elif sys.platform == 'darwin':
                cls._user_data_dir = os.path.join(
                    os.path.expanduser('~'),
                    'Library', 'Application Support', cls.APP_NAME
                )
            else:
                base = os.environ.get('XDG_CONFIG_HOME',
                                      os.path.join(os.path.expanduser('~'), '.config'))
                cls._user_data_dir = os.path.join(base, cls.APP_NAME)

            os.makedirs(cls._user_data_dir, exist_ok=True)

        return cls._user_data_dir

    @classmethod
    def set_user_data_dir(cls, path: Optional[str]):
        """Override the user data directory (None restores the default)."""
        cls._user_data_dir = os.path.abspath(path) if path else None
        if cls._user_data_dir:
            os.makedirs(cls._user_data_dir, exist_ok=True)

    @classmethod
    def get_database_path(cls) -> str:
        """Absolute path to the conversion history database."""
        return os.path.join(cls.get_user_data_dir(), 'history.db')

    @classmethod
    def get_config_path(cls) -> str:
        """Absolute path to config.json."""
        return os.path.join(cls.get_user_data_dir(), 'config.json')

    @classmethod
    def get_logs_dir(cls) -> str:
        """Absolute path to the logs directory (created if missing)."""
        logs_dir = os.path.join(cls.get_user_data_dir(), 'logs')
        os.makedirs(logs_dir, exist_ok=True)
        return logs_dir

    @classmethod
    def get_default_output_dir(cls) -> str:
        """
        Default output root for converted PNGs.

        ./result, resolved against the current working directory.
        """
        return os.path.abspath(cls.OUTPUT_DIR_NAME)
