# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Tests for configuration loading and validation."""

import tempfile
from pathlib import Path

import yaml

from class_relations.config import DEFAULT_EXTENSIONS, DEFAULT_IGNORE_PATTERNS, Config
from class_relations.import_index import ImportIndexOptions


def test_default_config_when_file_missing():
    """Test that defaults are used when config file is missing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config = Config(config_path=Path(tmpdir) / "nonexistent.yml")

        assert config.ignore_patterns == DEFAULT_IGNORE_PATTERNS
        assert config.extensions == [".ts", ".tsx", ".js", ".jsx"]
        assert config.max_files == 15000
        assert config.concurrency == 20
        assert config.parse_cache_max_entries == 5000
        assert config.max_file_lines == 50000
        assert config.validate_mtime is True


def test_defaults_do_not_read_files():
    """Test that Config.defaults() never touches the file system."""
    config = Config.defaults()

    assert config.max_files == 15000
    assert config.extensions == DEFAULT_EXTENSIONS


def test_default_lists_are_copied():
    """Test that mutating one config's lists does not leak into another."""
    first = Config.defaults()
    first.ignore_patterns.append("vendor")

    second = Config.defaults()

    assert "vendor" not in second.ignore_patterns
    assert "vendor" not in Config.DEFAULTS["ignore_patterns"]


def test_valid_config_loading():
    """Test loading a valid configuration file."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "config.yml"
        config_data = {
            "ignore_patterns": ["node_modules", "*.spec.ts"],
            "max_files": 200,
            "concurrency": 4,
            "validate_mtime": False,
        }
        with open(config_path, "w") as f:
            yaml.dump(config_data, f)

        config = Config(config_path=config_path)

        assert config.ignore_patterns == ["node_modules", "*.spec.ts"]
        assert config.max_files == 200
        assert config.concurrency == 4
        assert config.validate_mtime is False
        # Defaults for unspecified values
        assert config.extensions == DEFAULT_EXTENSIONS


def test_invalid_parameter_values():
    """Test that invalid parameter values are rejected and defaults used."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "config.yml"
        config_data = {
            "max_files": -5,  # Invalid: must be > 0
            "concurrency": 1000,  # Invalid: must be <= 256
            "parse_cache_max_entries": True,  # Invalid: bool is not an int setting
            "validate_mtime": "yes",  # Invalid: must be bool
            "extensions": [],  # Invalid: must not be empty
        }
        with open(config_path, "w") as f:
            yaml.dump(config_data, f)

        config = Config(config_path=config_path)

        assert config.max_files == 15000
        assert config.concurrency == 20
        assert config.parse_cache_max_entries == 5000
        assert config.validate_mtime is True
        assert config.extensions == DEFAULT_EXTENSIONS


def test_extensions_are_normalized():
    """Test that extensions without a leading dot get one."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "config.yml"
        with open(config_path, "w") as f:
            yaml.dump({"extensions": ["ts", ".mts"]}, f)

        config = Config(config_path=config_path)

        assert config.extensions == [".ts", ".mts"]


def test_unknown_parameters_ignored():
    """Test that unknown parameters are logged and ignored."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "config.yml"
        with open(config_path, "w") as f:
            yaml.dump({"unknown_param": "value", "max_files": 10}, f)

        config = Config(config_path=config_path)

        assert config.max_files == 10
        assert not hasattr(config, "unknown_param")


def test_empty_config_file():
    """Test that an empty config file falls back to defaults."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "config.yml"
        config_path.write_text("")

        config = Config(config_path=config_path)

        assert config.max_files == 15000


def test_malformed_yaml():
    """Test that malformed YAML falls back to defaults."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "config.yml"
        config_path.write_text("max_files: [unclosed\n")

        config = Config(config_path=config_path)

        assert config.max_files == 15000


def test_non_dict_yaml():
    """Test that a YAML list instead of a mapping falls back to defaults."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "config.yml"
        config_path.write_text("- max_files\n- 10\n")

        config = Config(config_path=config_path)

        assert config.max_files == 15000


def test_import_index_options_from_config():
    """Test bridging Config into ImportIndexOptions."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "config.yml"
        with open(config_path, "w") as f:
            yaml.dump({"max_files": 42, "concurrency": 3, "extensions": [".ts"]}, f)

        options = ImportIndexOptions.from_config(Config(config_path=config_path))

        assert options.max_files == 42
        assert options.concurrency == 3
        assert options.extensions == [".ts"]
        assert options.ignore_patterns == DEFAULT_IGNORE_PATTERNS


def test_import_index_options_defaults():
    """Test that ImportIndexOptions defaults match the config defaults."""
    options = ImportIndexOptions()

    assert options.ignore_patterns == DEFAULT_IGNORE_PATTERNS
    assert options.extensions == DEFAULT_EXTENSIONS
    assert options.max_files == 15000
    assert options.concurrency == 20
