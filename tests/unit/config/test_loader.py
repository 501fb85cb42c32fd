"""Unit tests for TOML configuration loader."""

import tomllib
from pathlib import Path

import pytest

from memobot.config.loader import (
    deep_merge,
    get_config_dir,
    get_environment,
    load_config,
    load_toml,
)


class TestDeepMerge:
    """Tests for deep_merge function."""

    def test_merge_nested_dicts(self) -> None:
        """Nested dictionaries are merged recursively."""
        base = {"a": {"x": 1, "y": 2}, "b": 3}
        override = {"a": {"y": 20, "z": 30}}
        result = deep_merge(base, override)
        assert result == {"a": {"x": 1, "y": 20, "z": 30}, "b": 3}

    def test_override_replaces_non_dict(self) -> None:
        """Non-dict values in override replace base values."""
        result = deep_merge({"a": {"x": 1}}, {"a": "replaced"})
        assert result == {"a": "replaced"}

    def test_base_unmodified(self) -> None:
        """Original base dictionary is not modified."""
        base = {"a": {"x": 1}}
        deep_merge(base, {"a": {"x": 2}})
        assert base == {"a": {"x": 1}}


class TestLoadToml:
    """Tests for load_toml function."""

    def test_load_valid_toml(self, test_config_dir: Path) -> None:
        toml_file = test_config_dir / "test.toml"
        toml_file.write_text('[session]\nttl_seconds = 60\n')
        assert load_toml(toml_file) == {"session": {"ttl_seconds": 60}}

    def test_missing_file_raises(self, test_config_dir: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_toml(test_config_dir / "missing.toml")

    def test_invalid_toml_raises(self, test_config_dir: Path) -> None:
        toml_file = test_config_dir / "bad.toml"
        toml_file.write_text("this is = = not toml")
        with pytest.raises(tomllib.TOMLDecodeError):
            load_toml(toml_file)


class TestEnvironment:
    """Tests for environment and config dir resolution."""

    def test_default_environment(self, env_override) -> None:
        with env_override({"MEMOBOT_ENV": "development"}):
            assert get_environment() == "development"

    def test_config_dir_from_env(self, test_config_dir: Path, env_override) -> None:
        with env_override({"MEMOBOT_CONFIG_DIR": str(test_config_dir)}):
            assert get_config_dir() == test_config_dir

    def test_missing_config_dir_raises(self, tmp_path: Path, env_override) -> None:
        with env_override({"MEMOBOT_CONFIG_DIR": str(tmp_path / "nope")}):
            with pytest.raises(FileNotFoundError):
                get_config_dir()


class TestLoadConfig:
    """Tests for load_config with environment overlays."""

    def test_environment_file_overrides_default(
        self, test_config_dir: Path, mock_toml_files, env_override
    ) -> None:
        mock_toml_files({
            "default.toml": "[agent]\nmax_iterations = 8\n[session]\nttl_seconds = 100\n",
            "staging.toml": "[agent]\nmax_iterations = 3\n",
        })
        with env_override({
            "MEMOBOT_CONFIG_DIR": str(test_config_dir),
            "MEMOBOT_ENV": "staging",
        }):
            config = load_config()

        assert config["agent"]["max_iterations"] == 3
        assert config["session"]["ttl_seconds"] == 100
