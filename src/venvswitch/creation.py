"""
virtual environment creation.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from pathlib import Path

from .errors import CreationFailed
from .layout import get_python_executable, is_venv
from .models import DiscoveryOrigin, EnvironmentDescriptor, EnvKind

logger = logging.getLogger(__name__)


def find_base_python() -> str | None:
    """python interpreter on PATH used to create environments."""
    return shutil.which("python3") or shutil.which("python")


def create_venv(
    name: str,
    parent: str | Path | None = None,
    *,
    python: str | None = None,
    timeout: float = 300,
) -> EnvironmentDescriptor:
    """
    create a new virtual environment with `python -m venv`.

    pip is upgraded afterwards on a best-effort basis. a failed creation may
    leave a partially created directory behind.

    arguments:
        `name: str`
            directory name of the new environment
        `parent: str | Path | None`
            directory to create it in (default: the current directory)
        `python: str | None`
            interpreter to create it with (default: `python3` or `python` on PATH)
        `timeout: float`
            seconds to wait for `venv` to finish

    returns: `EnvironmentDescriptor`
        descriptor of the new environment

    raises:
        `CreationFailed`
            if the target exists, no interpreter is available, or `venv` fails
    """
    if not name or os.sep in name or (os.altsep and os.altsep in name):
        raise CreationFailed(Path(name or "."), "environment name must be a single directory name")

    target = Path(parent if parent is not None else os.getcwd()).joinpath(name)

    if target.exists():
        raise CreationFailed(target, "directory already exists")

    base_python = python or find_base_python()
    if not base_python:
        raise CreationFailed(target, "no python interpreter found on PATH")

    logger.info("creating virtual environment %s with %s", target, base_python)
    try:
        result = subprocess.run(
            [base_python, "-m", "venv", str(target)],
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except (subprocess.TimeoutExpired, OSError) as e:
        raise CreationFailed(target, f"could not run {base_python}: {e}") from e

    if result.returncode != 0:
        raise CreationFailed(
            target,
            f"venv exited with code {result.returncode}",
            (result.stderr or result.stdout or "").strip(),
        )

    if not is_venv(target):
        raise CreationFailed(target, "environment was created but has no activation script")

    _upgrade_pip(target)

    return EnvironmentDescriptor.from_path(target, EnvKind.VENV, DiscoveryOrigin.CREATED)


def _upgrade_pip(target: Path) -> None:
    python_exe = get_python_executable(target)
    if python_exe is None:
        logger.warning("skipping pip upgrade, no interpreter in %s", target)
        return

    try:
        result = subprocess.run(
            [str(python_exe), "-m", "pip", "install", "--upgrade", "pip"],
            capture_output=True,
            text=True,
            timeout=300,
        )
    except (subprocess.TimeoutExpired, OSError) as e:
        logger.warning("failed to upgrade pip in %s: %s", target, e)
        return

    if result.returncode != 0:
        logger.warning("failed to upgrade pip in %s:\n%s", target, result.stderr.strip())
    else:
        logger.info("pip upgraded in %s", target)
