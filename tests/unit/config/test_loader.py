"""Unit tests for TOML configuration loader."""

import tomllib
from pathlib import Path

import pytest

from logsink.config.loader import (
    deep_merge,
    get_config_dir,
    get_environment,
    load_config,
    load_toml,
)


class TestDeepMerge:
    """Tests for deep_merge function."""

    def test_merge_nested_dicts(self) -> None:
        """Nested sink sections are merged key by key."""
        base = {"sink": {"database": "log_database", "collection": "logs"}}
        override = {"sink": {"database": "log_test"}}
        result = deep_merge(base, override)
        assert result == {"sink": {"database": "log_test", "collection": "logs"}}

    def test_lists_are_replaced(self) -> None:
        """An override's index list replaces the base list entirely."""
        base = {"sink": {"indexes": [[{"foo": 1}], [{"bar": -1}]]}}
        override = {"sink": {"indexes": [[{"baz": 1}]]}}
        result = deep_merge(base, override)
        assert result["sink"]["indexes"] == [[{"baz": 1}]]

    def test_override_replaces_non_dict(self) -> None:
        """Non-dict values in override replace base values."""
        result = deep_merge({"a": {"x": 1}}, {"a": "replaced"})
        assert result == {"a": "replaced"}

    def test_base_unmodified(self) -> None:
        """Original base dictionary is not modified."""
        base = {"a": 1}
        deep_merge(base, {"b": 2})
        assert base == {"a": 1}


class TestLoadToml:
    """Tests for load_toml function."""

    def test_load_valid_toml(self, tmp_path: Path) -> None:
        """Valid TOML file is loaded correctly."""
        toml_file = tmp_path / "test.toml"
        toml_file.write_text('[sink]\ndatabase = "logs"\nport = 27018')

        result = load_toml(toml_file)
        assert result == {"sink": {"database": "logs", "port": 27018}}

    def test_load_missing_file_raises(self, tmp_path: Path) -> None:
        """Missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_toml(tmp_path / "nonexistent.toml")

    def test_load_invalid_toml_raises(self, tmp_path: Path) -> None:
        """Invalid TOML syntax raises error."""
        invalid_file = tmp_path / "invalid.toml"
        invalid_file.write_text("invalid = [unclosed")

        with pytest.raises(tomllib.TOMLDecodeError):
            load_toml(invalid_file)


class TestGetEnvironment:
    """Tests for get_environment function."""

    def test_returns_env_var_value(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LOGSINK_ENV", "production")
        assert get_environment() == "production"

    def test_defaults_to_development(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("LOGSINK_ENV", raising=False)
        assert get_environment() == "development"


class TestGetConfigDir:
    """Tests for get_config_dir function."""

    def test_uses_env_var_when_set(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        config_dir = tmp_path / "custom_config"
        config_dir.mkdir()
        monkeypatch.setenv("LOGSINK_CONFIG_DIR", str(config_dir))

        assert get_config_dir() == config_dir

    def test_raises_for_missing_env_dir(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("LOGSINK_CONFIG_DIR", str(tmp_path / "missing"))

        with pytest.raises(FileNotFoundError):
            get_config_dir()

    def test_finds_config_in_parent_directory(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Walks up from the working directory to find config/."""
        (tmp_path / "config").mkdir()
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)
        monkeypatch.delenv("LOGSINK_CONFIG_DIR", raising=False)
        monkeypatch.chdir(nested)

        assert get_config_dir() == tmp_path / "config"


class TestLoadConfig:
    """Tests for load_config function."""

    def test_loads_default_config(
        self, test_config_dir: Path, mock_toml_files, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        mock_toml_files({"default.toml": "app_name = 'test'\ndebug = false"})
        monkeypatch.setenv("LOGSINK_CONFIG_DIR", str(test_config_dir))
        monkeypatch.setenv("LOGSINK_ENV", "nonexistent")

        assert load_config() == {"app_name": "test", "debug": False}

    def test_merges_environment_config(
        self, test_config_dir: Path, mock_toml_files, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Environment config overrides default config."""
        mock_toml_files({
            "default.toml": "[sink]\ndatabase = 'log_database'\ncollection = 'logs'",
            "test.toml": "[sink]\ndatabase = 'log_test'",
        })
        monkeypatch.setenv("LOGSINK_CONFIG_DIR", str(test_config_dir))
        monkeypatch.setenv("LOGSINK_ENV", "test")

        result = load_config()
        assert result == {"sink": {"database": "log_test", "collection": "logs"}}

    def test_missing_default_raises(
        self, test_config_dir: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("LOGSINK_CONFIG_DIR", str(test_config_dir))

        with pytest.raises(FileNotFoundError, match="default.toml"):
            load_config()
