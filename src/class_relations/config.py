# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Configuration loading and validation for class relationship analysis."""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILENAME = ".class_relations.yml"

# Common build/VCS directories and noise files skipped during project scans
DEFAULT_IGNORE_PATTERNS = [
    "node_modules",
    ".git",
    "dist",
    "build",
    ".next",
    "coverage",
    "*.log",
    ".DS_Store",
    ".env*",
    "tmp",
    "temp",
]

# Source extensions in resolution priority order
DEFAULT_EXTENSIONS = [".ts", ".tsx", ".js", ".jsx"]

DEFAULT_MAX_FILES = 15000
DEFAULT_CONCURRENCY = 20

_MAX_CONCURRENCY = 256


class ConfigurationError(Exception):
    """Raised when configuration validation fails critically."""

    pass


class Config:
    """Configuration for the cross-file analysis engine.

    Loads configuration from .class_relations.yml with validation and defaults.
    Pass ``config_path=None`` and ``load=False`` to get pure defaults without
    touching the file system.
    """

    DEFAULTS: Dict[str, Any] = {
        "ignore_patterns": list(DEFAULT_IGNORE_PATTERNS),
        "extensions": list(DEFAULT_EXTENSIONS),
        "max_files": DEFAULT_MAX_FILES,
        "concurrency": DEFAULT_CONCURRENCY,
        "parse_cache_max_entries": 5000,
        "max_file_lines": 50000,
        "validate_mtime": True,
    }

    def __init__(self, config_path: Optional[Path] = None, load: bool = True):
        """Initialize configuration.

        Args:
            config_path: Path to configuration file. If None, uses default location.
            load: Whether to read the configuration file at all.
        """
        if config_path is None:
            config_path = Path.cwd() / DEFAULT_CONFIG_FILENAME

        self.config_path = config_path
        self._config: Dict[str, Any] = self._defaults()
        if load:
            self._load_config()

    @classmethod
    def defaults(cls) -> "Config":
        """Build a configuration holding only default values."""
        return cls(load=False)

    def _defaults(self) -> Dict[str, Any]:
        # Lists are copied so callers cannot mutate the class-level defaults
        return {
            key: list(value) if isinstance(value, list) else value
            for key, value in self.DEFAULTS.items()
        }

    def _load_config(self) -> None:
        """Load and validate configuration from file."""
        if not self.config_path.exists():
            logger.info(f"Configuration file not found at {self.config_path}, using defaults")
            return

        try:
            with open(self.config_path, encoding="utf-8") as f:
                loaded_config = yaml.safe_load(f)

            if loaded_config is None:
                logger.warning("Configuration file is empty, using defaults")
                return

            if not isinstance(loaded_config, dict):
                logger.warning(
                    f"Configuration file must contain a YAML dictionary, "
                    f"got {type(loaded_config)}, using defaults"
                )
                return

            self._validate_and_merge(loaded_config)

        except yaml.YAMLError as e:
            logger.warning(
                f"Error parsing configuration file {self.config_path}: {e}, using defaults"
            )
            self._config = self._defaults()
        except OSError as e:
            logger.warning(
                f"Error reading configuration file {self.config_path}: {e}, using defaults"
            )
            self._config = self._defaults()

    def _validate_and_merge(self, loaded_config: Dict[str, Any]) -> None:
        """Validate loaded configuration and merge with defaults.

        Invalid parameters are logged as warnings and defaults are used.
        """
        for key, value in loaded_config.items():
            if key not in self.DEFAULTS:
                logger.warning(f"Unknown configuration parameter '{key}', ignoring")
                continue

            if not self._validate_parameter(key, value):
                logger.warning(
                    f"Invalid value for '{key}': {value}, using default {self.DEFAULTS[key]}"
                )
                continue

            if key == "extensions":
                value = [ext if ext.startswith(".") else f".{ext}" for ext in value]
            self._config[key] = value

    def _validate_parameter(self, key: str, value: Any) -> bool:
        """Validate a configuration parameter.

        Returns:
            True if valid, False if invalid
        """
        expected_type = type(self.DEFAULTS[key])
        # bool is a subclass of int; reject it for numeric settings
        if expected_type is int and isinstance(value, bool):
            return False
        if not isinstance(value, expected_type):
            return False

        if key in ("max_files", "parse_cache_max_entries", "max_file_lines"):
            return value > 0
        elif key == "concurrency":
            return 0 < value <= _MAX_CONCURRENCY
        elif key == "ignore_patterns":
            return all(isinstance(p, str) and p for p in value)
        elif key == "extensions":
            return len(value) > 0 and all(isinstance(e, str) and e.strip(".") for e in value)

        return True

    @property
    def ignore_patterns(self) -> List[str]:
        """Glob patterns for paths skipped during project scans."""
        value = self._config["ignore_patterns"]
        assert isinstance(value, list)
        return value

    @property
    def extensions(self) -> List[str]:
        """Source file extensions, in resolution priority order."""
        value = self._config["extensions"]
        assert isinstance(value, list)
        return value

    @property
    def max_files(self) -> int:
        """Maximum number of files included in an import index."""
        value = self._config["max_files"]
        assert isinstance(value, int)
        return value

    @property
    def concurrency(self) -> int:
        """Maximum number of files or directories processed in parallel."""
        value = self._config["concurrency"]
        assert isinstance(value, int)
        return value

    @property
    def parse_cache_max_entries(self) -> int:
        """Maximum number of parsed files kept in the parse cache.

        When the cache reaches this limit, least recently used entries
        are evicted to make room for new entries.
        """
        value = self._config["parse_cache_max_entries"]
        assert isinstance(value, int)
        return value

    @property
    def max_file_lines(self) -> int:
        """Files longer than this are skipped by the analyzer."""
        value = self._config["max_file_lines"]
        assert isinstance(value, int)
        return value

    @property
    def validate_mtime(self) -> bool:
        """Whether cached parses are revalidated against file modification time."""
        value = self._config["validate_mtime"]
        assert isinstance(value, bool)
        return value
