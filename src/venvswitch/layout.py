"""
on-disk layout of python environments.

handles cross-platform differences between windows and unix. every function
here is a pure filesystem lookup with no side effects.
"""

from __future__ import annotations

import json
import logging
import re
import sys
from pathlib import Path

from packaging.version import InvalidVersion, Version

from .models import EnvKind

logger = logging.getLogger(__name__)

# activation scripts that mark a directory as a virtual environment
VENV_MARKERS = (
    Path("bin", "activate"),
    Path("Scripts", "activate.bat"),
)

# executable directories that mark a directory as a conda environment
CONDA_MARKERS = (
    Path("bin"),
    Path("Scripts"),
)

# leading release segment, e.g. "3.11.4" out of virtualenv's "3.11.4.final.0"
_RELEASE = re.compile(r"\d+(?:\.\d+)*")


def _is_windows() -> bool:
    return sys.platform == "win32"


def is_directory(path: Path) -> bool:
    """`path.is_dir()`, with any os error (name too long, permission denied) read as absence."""
    try:
        return path.is_dir()
    except OSError as e:
        logger.debug("cannot stat %s: %s", path, e)
        return False


def is_venv(path: Path) -> bool:
    """
    check whether a directory is a virtual environment.

    arguments:
        `path: Path`
            candidate directory

    returns: `bool`
        true if a posix or windows activation script exists under it
    """
    try:
        return any(path.joinpath(marker).is_file() for marker in VENV_MARKERS)
    except OSError:
        return False


def is_conda_env(path: Path) -> bool:
    """
    check whether a directory is a conda environment.

    arguments:
        `path: Path`
            candidate directory

    returns: `bool`
        true if it holds a `bin` or `Scripts` directory
    """
    try:
        return any(path.joinpath(marker).is_dir() for marker in CONDA_MARKERS)
    except OSError:
        return False


def is_environment(path: Path, kind: EnvKind) -> bool:
    """apply the validity predicate for `kind`."""
    if kind is EnvKind.CONDA:
        return is_conda_env(path)
    return is_venv(path)


def bin_dir_name() -> str:
    """name of the executable directory on this platform."""
    return "Scripts" if _is_windows() else "bin"


def get_python_executable(env_path: Path, kind: EnvKind = EnvKind.VENV) -> Path | None:
    """
    get the python executable path for an environment.

    arguments:
        `env_path: Path`
            path to the environment
        `kind: EnvKind`
            environment kind. windows conda prefixes keep python.exe at the root.

    returns: `Path | None`
        path to python executable, or none if not found
    """
    if _is_windows():
        if kind is EnvKind.CONDA:
            candidates = [env_path.joinpath("python.exe"), env_path.joinpath("Scripts", "python.exe")]
        else:
            candidates = [env_path.joinpath("Scripts", "python.exe")]
    else:
        candidates = [env_path.joinpath("bin", "python")]

    for python_exe in candidates:
        try:
            if python_exe.exists():
                return python_exe
        except OSError as e:
            logger.debug("cannot stat %s: %s", python_exe, e)

    return None


def expected_python_executable(env_path: Path, kind: EnvKind = EnvKind.VENV) -> Path:
    """location `get_python_executable` looks at first, for error messages."""
    if _is_windows():
        if kind is EnvKind.CONDA:
            return env_path.joinpath("python.exe")
        return env_path.joinpath("Scripts", "python.exe")
    return env_path.joinpath("bin", "python")


def overlay_directories(env_path: Path, kind: EnvKind) -> list[Path]:
    """
    directories to prepend to PATH when the environment is active.

    arguments:
        `env_path: Path`
            resolved environment path
        `kind: EnvKind`
            environment kind

    returns: `list[Path]`
        directories in the order they should appear on PATH
    """
    if _is_windows() and kind is EnvKind.CONDA:
        return [env_path, env_path.joinpath("Library", "bin"), env_path.joinpath("Scripts")]
    return [env_path.joinpath(bin_dir_name())]


def read_python_version(env_path: Path, kind: EnvKind = EnvKind.VENV) -> str | None:
    """
    read the interpreter version recorded inside an environment.

    venvs record it in `pyvenv.cfg`, conda keeps a package record for python in
    `conda-meta/`.

    arguments:
        `env_path: Path`
            environment directory
        `kind: EnvKind`
            environment kind

    returns: `str | None`
        normalised version string, or none if it cannot be determined
    """
    raw: str | None = None
    try:
        if kind is EnvKind.CONDA:
            raw = _conda_python_version(env_path)
        else:
            raw = _pyvenv_cfg_version(env_path)
    except (OSError, ValueError) as e:
        logger.debug("could not read python version of %s: %s", env_path, e)
        return None

    if raw is None or (match := _RELEASE.match(raw.strip())) is None:
        logger.debug("no python version recorded in %s", env_path)
        return None

    try:
        return str(Version(match.group(0)))
    except InvalidVersion:
        logger.debug("ignoring unparseable python version %r in %s", raw, env_path)
        return None


def _pyvenv_cfg_version(env_path: Path) -> str | None:
    cfg = env_path.joinpath("pyvenv.cfg")
    if not cfg.is_file():
        return None

    values: dict[str, str] = {}
    for line in cfg.read_text(encoding="utf-8").splitlines():
        key, sep, value = line.partition("=")
        if sep:
            values[key.strip().lower()] = value.strip()

    # cpython writes `version`, uv and virtualenv write `version_info`
    return values.get("version") or values.get("version_info")


def _conda_python_version(env_path: Path) -> str | None:
    meta = env_path.joinpath("conda-meta")
    if not meta.is_dir():
        return None

    for record in sorted(meta.glob("python-[0-9]*.json")):
        with open(record, encoding="utf-8") as f:
            data = json.load(f)
        version = data.get("version")
        if isinstance(version, str):
            return version

    return None
