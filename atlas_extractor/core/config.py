# ==============================================================================
# ATLAS EXTRACTOR - CONFIGURATION MODULE
# ==============================================================================
# Centralized configuration management for the application.
#
# This module handles:
#   - Loading/saving configuration from a JSON file
#   - Default values for all settings
#   - Validation of the settings that feed the converter
#
# Configuration is stored in: <user data dir>/config.json (see paths.py)
#
# Usage:
#   from atlas_extractor.core.config import Config
#   config = Config()
#   config.load()
#   print(config.output_path)
#   config.worker_threads = 4
#   config.save()
# ==============================================================================

import json
import logging
import os
from typing import Any, Dict, Optional

from .paths import Paths

logger = logging.getLogger(__name__)


# ==============================================================================
# DEFAULT CONFIGURATION VALUES
# ==============================================================================
# These are used when no config file exists or when values are missing.

DEFAULT_CONFIG = {
    # -------------------------------------------------------------------------
    # PATHS
    # -------------------------------------------------------------------------
    # Where converted PNGs go ("" = ./result)
    "output_path": "",

    # Conversion history database ("" = user data dir)
    "database_path": "",

    # -------------------------------------------------------------------------
    # FILE TYPES
    # -------------------------------------------------------------------------
    "source_extension": ".data",
    "output_extension": ".png",

    # -------------------------------------------------------------------------
    # CONVERSION SETTINGS
    # -------------------------------------------------------------------------
    # Refuse to decode images with more pixels than this (0 = no limit)
    "max_image_pixels": 8192 * 8192,

    # Number of parallel conversion threads (1 = sequential)
    "worker_threads": 1,

    # What to do when a file fails: "abort" the batch or "skip" it
    "error_policy": "abort",

    # Overwrite existing PNGs
    "overwrite_existing": True,

    # Skip files unchanged since their last successful conversion
    "incremental": False,

    # Record every conversion in the history database
    "track_history": True,

    # zlib level used for PNG output (0-9)
    "png_compress_level": 6,

    # -------------------------------------------------------------------------
    # ADVANCED
    # -------------------------------------------------------------------------
    # Enable debug logging
    "debug_mode": False,
}

ERROR_POLICIES = ('abort', 'skip')


# ==============================================================================
# CONFIGURATION CLASS
# ==============================================================================
class Config:
    """
    Configuration manager for Atlas Extractor.

    Settings are stored in a JSON file and exposed as properties.

    Attributes:
        config_path: Path to the configuration file
        data: Dictionary containing all settings

    Example:
        >>> config = Config("/tmp/atlas/config.json")
        >>> config.load()
        >>> config.error_policy = "skip"
        >>> config.save()
    """

    def __init__(self, config_path: Optional[str] = None):
        """
        Args:
            config_path: Path to config file. If None, uses Paths.get_config_path().
        """
        self.config_path = config_path or Paths.get_config_path()
        self.data: Dict[str, Any] = DEFAULT_CONFIG.copy()
        self._modified = False

    # -------------------------------------------------------------------------
    # LOADING AND SAVING
    # -------------------------------------------------------------------------

    def load(self) -> bool:
        """
        Load configuration from file.

        If the file doesn't exist, defaults are used. Unknown keys are
        ignored and missing keys keep their defaults.

        Returns:
            True if file was loaded, False if using defaults
        """
        if not os.path.isfile(self.config_path):
            logger.info("Config file not found, using defaults")
            return False

        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                loaded = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.error("Invalid config file %s: %s", self.config_path, e)
            return False

        if not isinstance(loaded, dict):
            logger.error("Invalid config file %s: expected a JSON object", self.config_path)
            return False

        for key, value in loaded.items():
            if key not in DEFAULT_CONFIG:
                logger.warning("Ignoring unknown config key: %s", key)
                continue
            try:
                self.set(key, value)
            except (TypeError, ValueError) as e:
                logger.warning("Ignoring invalid value for %s (%r): %s", key, value, e)

        logger.info("Loaded config from %s", self.config_path)
        self._modified = False
        return True

    def save(self) -> bool:
        """
        Save configuration to file, creating the directory if needed.

        Returns:
            True if saved successfully
        """
        directory = os.path.dirname(self.config_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        with open(self.config_path, 'w', encoding='utf-8') as f:
            json.dump(self.data, f, indent=4, sort_keys=True)

        logger.info("Saved config to %s", self.config_path)
        self._modified = False
        return True

    def reset_to_defaults(self):
        """Reset all settings to their default values."""
        self.data = DEFAULT_CONFIG.copy()
        self._modified = True

    @property
    def is_modified(self) -> bool:
        return self._modified

    # -------------------------------------------------------------------------
    # PROPERTY ACCESS
    # -------------------------------------------------------------------------

    @property
    def output_path(self) -> str:
        """Output root for converted images."""
        return self.data.get('output_path') or Paths.get_default_output_dir()

    @output_path.setter
    def output_path(self, value: str):
        self.data['output_path'] = self._require_str('output_path', value)
        self._modified = True

    @property
    def database_path(self) -> str:
        """History database path."""
        return self.data.get('database_path') or Paths.get_database_path()

    @database_path.setter
    def database_path(self, value: str):
        self.data['database_path'] = self._require_str('database_path', value)
        self._modified = True

    @property
    def source_extension(self) -> str:
        return self.data.get('source_extension', '.data')

    @source_extension.setter
    def source_extension(self, value: str):
        self.data['source_extension'] = self._normalize_extension(value)
        self._modified = True

    @property
    def output_extension(self) -> str:
        return self.data.get('output_extension', '.png')

    @output_extension.setter
    def output_extension(self, value: str):
        self.data['output_extension'] = self._normalize_extension(value)
        self._modified = True

    @property
    def max_image_pixels(self) -> int:
        """Decode cap in pixels (0 = unlimited)."""
        return int(self.data.get('max_image_pixels', 0) or 0)

    @max_image_pixels.setter
    def max_image_pixels(self, value: int):
        value = int(value)
        if value < 0:
            raise ValueError("max_image_pixels must be >= 0")
        self.data['max_image_pixels'] = value
        self._modified = True

    @property
    def worker_threads(self) -> int:
        return self.data.get('worker_threads', 1)

    @worker_threads.setter
    def worker_threads(self, value: int):
        self.data['worker_threads'] = max(1, min(32, int(value)))
        self._modified = True

    @property
    def error_policy(self) -> str:
        return self.data.get('error_policy', 'abort')

    @error_policy.setter
    def error_policy(self, value: str):
        if value not in ERROR_POLICIES:
            raise ValueError("error_policy must be 'abort' or 'skip'")
        self.data['error_policy'] = value
        self._modified = True

    @property
    def overwrite_existing(self) -> bool:
        return self.data.get('overwrite_existing', True)

    @overwrite_existing.setter
    def overwrite_existing(self, value: bool):
        self.data['overwrite_existing'] = self._require_bool('overwrite_existing', value)
        self._modified = True

    @property
    def incremental(self) -> bool:
        return self.data.get('incremental', False)

    @incremental.setter
    def incremental(self, value: bool):
        self.data['incremental'] = self._require_bool('incremental', value)
        self._modified = True

    @property
    def track_history(self) -> bool:
        return self.data.get('track_history', True)

    @track_history.setter
    def track_history(self, value: bool):
        self.data['track_history'] = self._require_bool('track_history', value)
        self._modified = True

    @property
    def png_compress_level(self) -> int:
        return self.data.get('png_compress_level', 6)

    @png_compress_level.setter
    def png_compress_level(self, value: int):
        self.data['png_compress_level'] = max(0, min(9, int(value)))
        self._modified = True

    @property
    def debug_mode(self) -> bool:
        return self.data.get('debug_mode', False)

    @debug_mode.setter
    def debug_mode(self, value: bool):
        self.data['debug_mode'] = self._require_bool('debug_mode', value)
        self._modified = True

    # -------------------------------------------------------------------------
    # GENERIC ACCESS
    # -------------------------------------------------------------------------

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def set(self, key: str, value: Any):
        """
        Set a configuration value.

        Known keys go through their property setter so validation applies.

        Raises:
            KeyError: unknown key
            ValueError: invalid value for a validated key
        """
        if key not in DEFAULT_CONFIG:
            raise KeyError(f"Unknown config key: {key}")
        if isinstance(getattr(type(self), key, None), property):
            setattr(self, key, value)
        else:
            self.data[key] = value
            self._modified = True

    def set_from_string(self, key: str, text: str):
        """Set a value parsed from command-line text, coerced to the default's type."""
        if key not in DEFAULT_CONFIG:
            raise KeyError(f"Unknown config key: {key}")

        default = DEFAULT_CONFIG[key]
        if isinstance(default, bool):
            lowered = text.strip().lower()
            if lowered in ('1', 'true', 'yes', 'on'):
                value = True
            elif lowered in ('0', 'false', 'no', 'off'):
                value = False
            else:
                raise ValueError(f"Expected a boolean for {key}, got {text!r}")
        elif isinstance(default, int):
            value = int(text)
        else:
            value = text

        self.set(key, value)

    def __getitem__(self, key: str) -> Any:
        """Allow dictionary-style access: config['key']"""
        return self.data[key]

    def __setitem__(self, key: str, value: Any):
        """Allow dictionary-style setting: config['key'] = value"""
        self.set(key, value)

    @staticmethod
    def _require_str(key: str, value: Any) -> str:
        if not isinstance(value, str):
            raise TypeError(f"{key} must be a string")
        return value

    @staticmethod
    def _require_bool(key: str, value: Any) -> bool:
        if not isinstance(value, bool):
            raise TypeError(f"{key} must be true or false")
        return value

    @staticmethod
    def _normalize_extension(value: str) -> str:
        if not isinstance(value, str):
            raise TypeError("extension must be a string")
        value = value.strip()
        if not value:
            raise ValueError("extension must not be empty")
        return value if value.startswith('.') else '.' + value


# ==============================================================================
# GLOBAL CONFIG INSTANCE
# ==============================================================================

_global_config: Optional[Config] = None


def get_config() -> Config:
    """
    Get the global configuration instance.

    Creates and loads config on first call.
    """
    global _global_config

    if _global_config is None:
        _global_config = Config()
        _global_config.load()

    return _global_config


def reset_config():
    """Drop the cached global instance (next get_config() reloads)."""
    global _global_config
    _global_config = None
