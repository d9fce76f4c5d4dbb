"""
installed package listing.

a read-only preview: every failure is returned as diagnostic lines, nothing
here raises.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from .config import Config
from .errors import EnvironmentNotFound, InterpreterMissing, PackageQueryFailed
from .layout import expected_python_executable, get_python_executable
from .models import EnvironmentDescriptor
from .resolver import resolve_path

logger = logging.getLogger(__name__)

PIP_LIST_ARGS = ["-m", "pip", "list", "--format=columns", "--disable-pip-version-check"]


def _error_lines(msg: str) -> list[str]:
    first, *rest = msg.splitlines()
    return [f"ERROR: {first}", *rest]


def list_packages(
    descriptor: EnvironmentDescriptor | None,
    config: Config,
    cwd: Path | None = None,
) -> list[str]:
    """
    list the packages installed in an environment.

    arguments:
        `descriptor: EnvironmentDescriptor | None`
            environment to inspect
        `config: Config`
            configuration used for resolution and the query timeout
        `cwd: Path | None`
            start of the parent-directory walk (default: the current directory)

    returns: `list[str]`
        trimmed non-empty lines of `pip list`, or diagnostic lines explaining
        why the list is unavailable
    """
    if descriptor is None:
        return ["no preview available"]

    env_path = resolve_path(descriptor, config, cwd=cwd)
    if env_path is None:
        return _error_lines(EnvironmentNotFound(descriptor.identifier, descriptor.cached_path).msg)

    python_exe = get_python_executable(env_path, descriptor.kind)
    if python_exe is None:
        missing = InterpreterMissing(
            descriptor.identifier, expected_python_executable(env_path, descriptor.kind)
        )
        return _error_lines(missing.msg)

    try:
        result = subprocess.run(
            [str(python_exe), *PIP_LIST_ARGS],
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            timeout=config.package_query_timeout,
        )
    except subprocess.TimeoutExpired:
        failure = PackageQueryFailed(
            descriptor.identifier, f"timed out after {config.package_query_timeout:g} seconds"
        )
        logger.debug("%s", failure.msg)
        return failure.diagnostic_lines()
    except OSError as e:
        failure = PackageQueryFailed(descriptor.identifier, str(e))
        logger.debug("%s", failure.msg)
        return failure.diagnostic_lines()

    if result.returncode != 0:
        failure = PackageQueryFailed(descriptor.identifier, result.stdout or "", result.returncode)
        logger.debug("%s", failure.msg)
        return failure.diagnostic_lines()

    lines = [line.strip() for line in (result.stdout or "").splitlines()]
    lines = [line for line in lines if line]
    return lines or ["no packages installed"]
