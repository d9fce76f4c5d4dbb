"""
configuration loading for venvswitch.

this module handles loading and validation of configuration from
pyproject.toml, .venvswitch.toml, and environment variables.
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

from .errors import ConfigError

DEFAULT_VENV_NAMES = ["venv", ".venv", "env", ".env", "virtualenv"]


def _default_venv_paths() -> list[str]:
    return ["~/.virtualenvs", "~/venvs"]


def _default_conda_paths() -> list[str]:
    return [
        "~/miniconda3/envs",
        "~/anaconda3/envs",
        "~/miniforge3/envs",
        "~/mambaforge/envs",
        "~/.conda/envs",
    ]


@dataclass
class Config:
    """
    main configuration class for venvswitch.

    attributes:
        `venv_paths: list[str]`
            ordered roots searched for virtual environments
        `conda_paths: list[str]`
            ordered roots searched for conda environments
        `venv_names: list[str]`
            directory names recognised as a project's virtual environment
        `parents: int`
            number of directories, starting at the cwd, searched for venv names
        `show_conda: bool`
            whether conda environments are discovered at all
        `auto_detect_on_start: bool`
            activate an externally active environment at startup
        `module_paths: dict[str, list[str]]`
            fnmatch pattern on an environment's name to extra PYTHONPATH entries
        `package_query_timeout: float`
            seconds to wait for `pip list`
    """

    venv_paths: list[str] = field(default_factory=_default_venv_paths)
    conda_paths: list[str] = field(default_factory=_default_conda_paths)
    venv_names: list[str] = field(default_factory=lambda: list(DEFAULT_VENV_NAMES))
    parents: int = 2
    show_conda: bool = True
    auto_detect_on_start: bool = True
    module_paths: dict[str, list[str]] = field(default_factory=dict)
    package_query_timeout: float = 30.0

    # options a loader set explicitly, even when set to their default
    _explicit: set[str] = field(default_factory=set, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        """Validate values that would otherwise fail deep inside a walk."""
        self.validate("configuration")

    def validate(self, source: str) -> None:
        """
        check value types and ranges.

        arguments:
            `source: str`
                where the values came from, used in the error message

        raises:
            `ConfigError`
                if a value is malformed
        """
        for name in ("venv_paths", "conda_paths", "venv_names"):
            value = getattr(self, name)
            if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
                raise ConfigError(source, f"'{name}' must be a list of strings")

        if isinstance(self.parents, bool) or not isinstance(self.parents, int):
            raise ConfigError(source, "'parents' must be an integer")
        if self.parents < 0:
            raise ConfigError(source, f"'parents' must be >= 0, got {self.parents}")

        for name in ("show_conda", "auto_detect_on_start"):
            if not isinstance(getattr(self, name), bool):
                raise ConfigError(source, f"'{name}' must be a boolean")

        if not isinstance(self.module_paths, dict):
            raise ConfigError(source, "'module_paths' must be a table of pattern to paths")
        for pattern, paths in self.module_paths.items():
            if not isinstance(paths, list) or not all(isinstance(p, str) for p in paths):
                raise ConfigError(source, f"'module_paths.{pattern}' must be a list of strings")

        if isinstance(self.package_query_timeout, bool) or not isinstance(
            self.package_query_timeout, int | float
        ):
            raise ConfigError(source, "'package_query_timeout' must be a number")
        if self.package_query_timeout <= 0:
            raise ConfigError(source, "'package_query_timeout' must be positive")

    @property
    def venv_roots(self) -> list[Path]:
        """configured venv roots with `~` expanded."""
        return [Path(p).expanduser() for p in self.venv_paths]

    @property
    def conda_roots(self) -> list[Path]:
        """configured conda roots with `~` expanded."""
        return [Path(p).expanduser() for p in self.conda_paths]

    @classmethod
    def from_pyproject_toml(cls, project_root: str | Path) -> Config | None:
        """
        Load configuration from pyproject.toml.

        arguments:
            `project_root: str | Path`
                project root directory containing pyproject.toml

        returns: `Config | None`
            configuration object if a `[tool.venvswitch]` table was found, none otherwise

        raises:
            `ConfigError`
                if the file cannot be parsed or holds invalid values
        """
        pyproject = Path(project_root).joinpath("pyproject.toml")

        if not pyproject.exists():
            return None

        data = _load_toml(pyproject)
        tool_config = data.get("tool", {}).get("venvswitch")
        if tool_config is None:
            return None

        return cls._from_dict(tool_config, f"{pyproject} [tool.venvswitch]")

    @classmethod
    def from_venvswitch_toml(cls, project_root: str | Path) -> Config | None:
        """
        Load configuration from .venvswitch.toml.

        arguments:
            `project_root: str | Path`
                project root directory containing .venvswitch.toml

        returns: `Config | None`
            configuration object if found, none otherwise

        raises:
            `ConfigError`
                if the file cannot be parsed or holds invalid values
        """
        config_file = Path(project_root).joinpath(".venvswitch.toml")

        if not config_file.exists():
            return None

        return cls._from_dict(_load_toml(config_file), str(config_file))

    @classmethod
    def from_environment(cls) -> Config:
        """
        Load configuration from environment variables.

        returns: `Config`
            configuration with values from environment

        raises:
            `ConfigError`
                if a numeric variable is not a number
        """
        config = cls()

        if venv_paths := os.environ.get("VENVSWITCH_VENV_PATHS"):
            config.venv_paths = [p for p in venv_paths.split(os.pathsep) if p]
            config._explicit.add("venv_paths")

        if conda_paths := os.environ.get("VENVSWITCH_CONDA_PATHS"):
            config.conda_paths = [p for p in conda_paths.split(os.pathsep) if p]
            config._explicit.add("conda_paths")

        if venv_names := os.environ.get("VENVSWITCH_VENV_NAMES"):
            config.venv_names = [n.strip() for n in venv_names.split(",") if n.strip()]
            config._explicit.add("venv_names")

        if parents := os.environ.get("VENVSWITCH_PARENTS"):
            try:
                config.parents = int(parents)
            except ValueError:
                raise ConfigError("VENVSWITCH_PARENTS", f"not an integer: {parents!r}") from None
            config._explicit.add("parents")

        if show_conda := os.environ.get("VENVSWITCH_SHOW_CONDA"):
            config.show_conda = show_conda.lower() in ("true", "1", "yes")
            config._explicit.add("show_conda")

        if auto_detect := os.environ.get("VENVSWITCH_AUTO_DETECT"):
            config.auto_detect_on_start = auto_detect.lower() in ("true", "1", "yes")
            config._explicit.add("auto_detect_on_start")

        config.validate("environment")
        return config

    @classmethod
    def load(cls, project_root: str | Path = ".") -> Config:
        """
        Load configuration from all available sources.

        sources are loaded in order of priority (later overrides earlier):
        1. default values
        2. pyproject.toml
        3. .venvswitch.toml
        4. environment variables

        arguments:
            `project_root: str | Path`
                project root directory

        returns: `Config`
            merged configuration from all sources

        raises:
            `ConfigError`
                if any source is malformed
        """
        project_path = Path(project_root).resolve()

        config = cls()

        if pyproject_config := cls.from_pyproject_toml(project_path):
            config = config.merge(pyproject_config)

        # .venvswitch.toml overrides pyproject.toml
        if file_config := cls.from_venvswitch_toml(project_path):
            config = config.merge(file_config)

        # environment has the highest priority
        config = config.merge(cls.from_environment())

        return config

    def merge(self, other: Config) -> Config:
        """
        merge another configuration into this one.

        values from 'other' take precedence over this config for every option
        its loader set, and for any option that differs from the defaults.

        arguments:
            `other: Config`
                configuration to merge

        returns: `Config`
            new merged configuration
        """
        defaults = Config()
        overridden = set(other._explicit)
        overridden.update(
            name for name in _option_names() if getattr(other, name) != getattr(defaults, name)
        )

        merged: dict[str, Any] = {}
        for name in _option_names():
            merged[name] = getattr(other if name in overridden else self, name)

        config = Config(**merged)
        config._explicit = self._explicit | overridden
        return config

    @classmethod
    def _from_dict(cls, data: dict[str, Any], source: str) -> Config:
        """
        Create configuration from a dictionary.

        arguments:
            `data: dict[str, Any]`
                configuration dictionary
            `source: str`
                description of where the dictionary came from

        returns: `Config`
            configuration object

        raises:
            `ConfigError`
                on unknown keys or invalid values
        """
        known = set(_option_names())
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(source, f"unknown option(s): {', '.join(unknown)}")

        config = cls()
        for key, value in data.items():
            setattr(config, key, value)
        config._explicit.update(data)

        config.validate(source)
        return config


def _option_names() -> list[str]:
    return [f.name for f in fields(Config) if f.init]


def _load_toml(path: Path) -> dict[str, Any]:
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(str(path), f"not valid toml: {e}") from e
    except OSError as e:
        raise ConfigError(str(path), f"cannot be read: {e}") from e
