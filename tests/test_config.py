"""tests for the configuration module."""

from __future__ import annotations

import os
from pathlib import Path
from unittest import mock

import pytest

from venvswitch.config import DEFAULT_VENV_NAMES, Config
from venvswitch.errors import ConfigError


class TestConfigDefaults:
    """tests for Config defaults and validation."""

    def test_defaults(self) -> None:
        """Test default configuration values."""
        config = Config()

        assert config.venv_names == DEFAULT_VENV_NAMES
        assert config.parents == 2
        assert config.show_conda is True
        assert config.auto_detect_on_start is True
        assert config.module_paths == {}
        assert config.package_query_timeout == 30.0

    def test_defaults_are_independent(self) -> None:
        """Test that list defaults are not shared between instances."""
        a = Config()
        b = Config()
        a.venv_names.append("custom")

        assert "custom" not in b.venv_names

    def test_roots_expand_user(self) -> None:
        """Test that search roots expand '~'."""
        config = Config(venv_paths=["~/envs"], conda_paths=["~/conda/envs"])

        assert config.venv_roots == [Path("~/envs").expanduser()]
        assert config.conda_roots == [Path("~/conda/envs").expanduser()]

    def test_negative_parents_rejected(self) -> None:
        """Test that a negative search depth is malformed."""
        with pytest.raises(ConfigError, match="parents"):
            Config(parents=-1)

    def test_wrong_type_rejected(self) -> None:
        """Test that a string where a list is expected is malformed."""
        with pytest.raises(ConfigError, match="venv_paths"):
            Config(venv_paths="~/envs")  # pyright: ignore[reportArgumentType]

    def test_module_paths_must_be_lists(self) -> None:
        """Test that module path entries are lists of strings."""
        with pytest.raises(ConfigError, match="module_paths"):
            Config(module_paths={"simnibs*": "/opt/simnibs"})  # pyright: ignore[reportArgumentType]


class TestConfigFiles:
    """tests for loading configuration files."""

    def test_pyproject_toml(self, tmp_path: Path) -> None:
        """Test loading the [tool.venvswitch] table."""
        (tmp_path / "pyproject.toml").write_text(
            """
[tool.venvswitch]
venv_paths = ["/srv/envs"]
parents = 4
show_conda = false
"""
        )

        config = Config.from_pyproject_toml(tmp_path)

        assert config is not None
        assert config.venv_paths == ["/srv/envs"]
        assert config.parents == 4
        assert config.show_conda is False

    def test_pyproject_without_table(self, tmp_path: Path) -> None:
        """Test that a pyproject.toml without our table gives none."""
        (tmp_path / "pyproject.toml").write_text('[project]\nname = "x"\n')

        assert Config.from_pyproject_toml(tmp_path) is None

    def test_missing_files(self, tmp_path: Path) -> None:
        """Test that missing files give none."""
        assert Config.from_pyproject_toml(tmp_path) is None
        assert Config.from_venvswitch_toml(tmp_path) is None

    def test_venvswitch_toml_module_paths(self, tmp_path: Path) -> None:
        """Test loading module path mappings from .venvswitch.toml."""
        (tmp_path / ".venvswitch.toml").write_text(
            """
[module_paths]
"simnibs*" = ["/opt/SimNIBS-4.5"]
"""
        )

        config = Config.from_venvswitch_toml(tmp_path)

        assert config is not None
        assert config.module_paths == {"simnibs*": ["/opt/SimNIBS-4.5"]}

    def test_invalid_toml(self, tmp_path: Path) -> None:
        """Test that unparseable toml is a configuration error."""
        (tmp_path / ".venvswitch.toml").write_text("invalid toml [[{{content")

        with pytest.raises(ConfigError, match="not valid toml"):
            Config.from_venvswitch_toml(tmp_path)

    def test_unknown_option(self, tmp_path: Path) -> None:
        """Test that unknown keys are reported."""
        (tmp_path / ".venvswitch.toml").write_text("venv_dirs = []\n")

        with pytest.raises(ConfigError, match="venv_dirs"):
            Config.from_venvswitch_toml(tmp_path)


class TestConfigEnvironment:
    """tests for loading configuration from environment variables."""

    def test_paths_and_names(self) -> None:
        """Test list variables."""
        env = {
            "VENVSWITCH_VENV_PATHS": os.pathsep.join(["/a", "/b"]),
            "VENVSWITCH_CONDA_PATHS": "/c",
            "VENVSWITCH_VENV_NAMES": "venv, .venv",
        }
        with mock.patch.dict(os.environ, env):
            config = Config.from_environment()

        assert config.venv_paths == ["/a", "/b"]
        assert config.conda_paths == ["/c"]
        assert config.venv_names == ["venv", ".venv"]

    def test_flags(self) -> None:
        """Test boolean and integer variables."""
        env = {
            "VENVSWITCH_PARENTS": "5",
            "VENVSWITCH_SHOW_CONDA": "no",
            "VENVSWITCH_AUTO_DETECT": "0",
        }
        with mock.patch.dict(os.environ, env):
            config = Config.from_environment()

        assert config.parents == 5
        assert config.show_conda is False
        assert config.auto_detect_on_start is False

    def test_bad_integer(self) -> None:
        """Test that a non-numeric depth is a configuration error."""
        with mock.patch.dict(os.environ, {"VENVSWITCH_PARENTS": "many"}):
            with pytest.raises(ConfigError, match="VENVSWITCH_PARENTS"):
                Config.from_environment()


class TestConfigLoad:
    """tests for merging all sources."""

    def test_priority(self, tmp_path: Path) -> None:
        """Test that later sources override earlier ones."""
        (tmp_path / "pyproject.toml").write_text(
            '[tool.venvswitch]\nparents = 3\nvenv_paths = ["/from/pyproject"]\n'
        )
        (tmp_path / ".venvswitch.toml").write_text("parents = 4\n")

        with mock.patch.dict(os.environ, {"VENVSWITCH_SHOW_CONDA": "false"}):
            config = Config.load(tmp_path)

        assert config.venv_paths == ["/from/pyproject"]
        assert config.parents == 4
        assert config.show_conda is False

    def test_defaults_when_nothing_configured(self, tmp_path: Path) -> None:
        """Test that an empty project loads defaults."""
        assert Config.load(tmp_path) == Config()

    def test_dotfile_resets_pyproject_value_to_default(self, tmp_path: Path) -> None:
        """Test that .venvswitch.toml can set a value back to its default."""
        (tmp_path / "pyproject.toml").write_text("[tool.venvswitch]\nparents = 5\n")
        (tmp_path / ".venvswitch.toml").write_text("parents = 2\n")

        assert Config.load(tmp_path).parents == 2

    def test_environment_resets_dotfile_value_to_default(self, tmp_path: Path) -> None:
        """Test that an environment variable can set a value back to its default."""
        (tmp_path / ".venvswitch.toml").write_text("show_conda = false\n")

        with mock.patch.dict(os.environ, {"VENVSWITCH_SHOW_CONDA": "true"}):
            config = Config.load(tmp_path)

        assert config.show_conda is True

    def test_unset_options_keep_earlier_values(self, tmp_path: Path) -> None:
        """Test that a source only overrides the options it sets."""
        (tmp_path / "pyproject.toml").write_text("[tool.venvswitch]\nparents = 5\nshow_conda = false\n")
        (tmp_path / ".venvswitch.toml").write_text("show_conda = true\n")

        config = Config.load(tmp_path)

        assert config.parents == 5
        assert config.show_conda is True
